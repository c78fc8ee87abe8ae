"""
Heritage Church CMS
Blueprint registry: church (dashboard workflow), review (queues and
notifications), public (read-only feed) and health.
"""
