"""
Security headers middleware.

Every response is JSON, so the Content-Security-Policy denies everything.
Dashboard and reviewer responses carry unpublished church content and must
never be cached; the public feed may be cached briefly by browsers and CDNs.

Usage:
    from heritage_cms.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

from flask import request

API_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), payment=()",
    "Cross-Origin-Resource-Policy": "same-site",
}

PUBLIC_PREFIX = "/api/v1/public/"
PUBLIC_CACHE = "public, max-age=60"
PRIVATE_CACHE = "no-store"


def init_security_headers(app):
    """Register the after_request hook that stamps security and cache headers."""

    @app.after_request
    def _add_security_headers(response):
        for name, value in API_HEADERS.items():
            response.headers.setdefault(name, value)

        if "Cache-Control" not in response.headers:
            public_read = (
                request.method == "GET"
                and request.path.startswith(PUBLIC_PREFIX)
                and response.status_code == 200
            )
            response.headers["Cache-Control"] = PUBLIC_CACHE if public_read else PRIVATE_CACHE

        response.headers.pop("Server", None)
        return response
