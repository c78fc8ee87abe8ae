"""
Review Workflow Engine Tests — coverage for:
  - Submission guard (completion threshold, consent flags)
  - Heritage branching: approve vs forward_to_museum
  - Revisions, resubmission, unpublish
  - Check order: undefined transition → role → notes → guard
  - Review history: exactly one entry per transition, append-only
  - Available actions, status info, completion percentage
  - Event payload + nothing partially applied on failure
"""

from datetime import datetime, timezone

import pytest

from heritage_cms.core.exceptions import GuardFailed, InvariantViolation
from heritage_cms.models import db as _db
from heritage_cms.models.church import ChurchProfile
from heritage_cms.models.review import ReviewHistoryEntry
from heritage_cms.services import church_workflow
from heritage_cms.services.workflow_engine import (
    CHURCH_TRANSITIONS,
    apply_transition,
    available_actions,
    completion_percentage,
    status_info,
)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════


def _reload(pid):
    profile, err = church_workflow.get_profile(pid)
    assert err is None
    return profile


def _transitions(pid):
    return [(e.from_status, e.to_status) for e in _reload(pid).review_history]


# ═══════════════════════════════════════════════════════════════════════════
# Submission
# ═══════════════════════════════════════════════════════════════════════════


class TestSubmission:

    def test_mostly_complete_draft_submits(self, make_church, parish):
        """Non-heritage draft above the threshold goes to pending."""
        pid = make_church(locationDetails={
            "streetAddress": "Poblacion Road", "municipality": "Dauis",
        })
        assert completion_percentage(_reload(pid)) == 92

        profile, err = church_workflow.submit_for_review(pid, parish)

        assert err is None
        assert profile.status == "pending"
        assert _transitions(pid) == [("draft", "pending")]

    def test_incomplete_draft_blocked(self, make_church, parish):
        pid = make_church(historicalDetails={}, currentParishPriest=None)

        profile, err = church_workflow.submit_for_review(pid, parish)

        assert profile is None
        assert err.kind == "guard_failed"
        assert "33%" in err.message
        assert _reload(pid).status == "draft"
        assert _reload(pid).review_history == []

    def test_missing_consent_blocked(self, make_church, parish):
        pid = make_church(consentDataAccuracy=False)
        _, err = church_workflow.submit_for_review(pid, parish)
        assert err.kind == "guard_failed"
        assert "consentDataAccuracy" in err.message

    def test_threshold_from_config(self, app, monkeypatch, make_church, parish):
        monkeypatch.setitem(app.config, "SUBMISSION_COMPLETION_THRESHOLD", 100)
        pid = make_church(locationDetails={"streetAddress": "Poblacion Road", "municipality": "Dauis"})
        _, err = church_workflow.submit_for_review(pid, parish)
        assert err.kind == "guard_failed"

    def test_only_parish_submits(self, make_church, museum):
        pid = make_church()
        _, err = church_workflow.submit_for_review(pid, museum)
        assert err.kind == "permission_denied"
        assert err.details["allowed_roles"] == ["parish_secretary"]


# ═══════════════════════════════════════════════════════════════════════════
# Heritage branching
# ═══════════════════════════════════════════════════════════════════════════


class TestHeritageBranching:

    def test_heritage_church_cannot_be_approved_directly(self, make_church, chancery):
        """NCT church must go through the museum."""
        pid = make_church("pending", classification="National Cultural Treasures")

        _, err = church_workflow.approve(pid, chancery)
        assert err.kind == "guard_failed"
        assert _reload(pid).status == "pending"

        profile, err = church_workflow.forward_to_museum(pid, chancery)
        assert err is None
        assert profile.status == "heritage_review"

    def test_non_heritage_cannot_be_forwarded(self, make_church, chancery):
        pid = make_church("pending")
        _, err = church_workflow.forward_to_museum(pid, chancery)
        assert err.kind == "guard_failed"

    def test_museum_approves(self, make_church, museum):
        pid = make_church("heritage_review", classification="ICP")
        profile, err = church_workflow.museum_approve(pid, museum)
        assert err is None
        assert profile.status == "approved"
        assert profile.last_reviewed_by == museum.id
        assert profile.requires_heritage_review is False

    def test_chancery_cannot_museum_approve(self, make_church, chancery):
        pid = make_church("heritage_review", classification="ICP")
        _, err = church_workflow.museum_approve(pid, chancery)
        assert err.kind == "permission_denied"

    def test_guard_sees_reclassification_after_submission(self, make_church, chancery):
        pid = make_church("pending")
        _, err = church_workflow.reclassify_heritage(pid, chancery, "ICP")
        assert err is None

        _, err = church_workflow.approve(pid, chancery)

        assert err.kind == "guard_failed"
        assert _reload(pid).status == "pending"


# ═══════════════════════════════════════════════════════════════════════════
# Revisions + unpublish
# ═══════════════════════════════════════════════════════════════════════════


class TestRevisionsAndUnpublish:

    def test_request_revisions_requires_notes(self, make_church, chancery):
        pid = make_church("pending")
        _, err = church_workflow.request_revisions(pid, chancery, "   ")
        assert err.kind == "guard_failed"

        profile, err = church_workflow.request_revisions(pid, chancery, "Founding year looks wrong")
        assert err is None
        assert profile.status == "revisions"
        assert profile.last_review_note == "Founding year looks wrong"

    def test_museum_returns_for_revisions(self, make_church, museum):
        pid = make_church("heritage_review", classification="ICP")
        profile, err = church_workflow.request_revisions(pid, museum, "Need archival sources")
        assert err is None
        assert profile.status == "revisions"

    def test_resubmit_after_revisions(self, make_church, parish):
        pid = make_church("revisions")
        profile, err = church_workflow.submit_for_review(pid, parish)
        assert err is None
        assert profile.status == "pending"

    def test_unpublish_records_reason_and_clears_overlay(self, make_church, parish, chancery):
        pid = make_church("approved")
        _, err = church_workflow.stage_pending_edit(pid, parish, {"description": "New text"})
        assert err is None

        profile, err = church_workflow.unpublish(pid, chancery, reason="Ownership dispute")

        assert err is None
        assert profile.status == "draft"
        assert profile.has_pending_changes is False
        assert profile.pending_changes is None
        assert profile.unpublish_reason == "Ownership dispute"
        assert profile.unpublished_by == chancery.id

    def test_only_chancery_unpublishes(self, make_church, museum):
        pid = make_church("approved", classification="ICP")
        _, err = church_workflow.unpublish(pid, museum)
        assert err.kind == "permission_denied"


# ═══════════════════════════════════════════════════════════════════════════
# Rejections
# ═══════════════════════════════════════════════════════════════════════════


class TestRejections:

    def test_undefined_transition(self, make_church, chancery):
        pid = make_church()
        _, err = church_workflow.approve(pid, chancery)
        assert err.kind == "invalid_transition"
        assert err.details["status"] == "draft"

    def test_unknown_action(self, make_church, chancery):
        pid = make_church("pending")
        _, err = church_workflow.transition(pid, "publish_now", chancery)
        assert err.kind == "invalid_transition"

    def test_state_checked_before_role(self, make_church, parish):
        pid = make_church("approved")
        _, err = church_workflow.museum_approve(pid, parish)
        assert err.kind == "invalid_transition"

    def test_role_checked_before_guard(self, make_church, parish):
        pid = make_church("pending", classification="ICP")
        _, err = church_workflow.approve(pid, parish)
        assert err.kind == "permission_denied"

    def test_missing_profile(self, chancery):
        _, err = church_workflow.approve("no-such-church", chancery)
        assert err.kind == "not_found"
        assert err.transient is False


# ═══════════════════════════════════════════════════════════════════════════
# Review history
# ═══════════════════════════════════════════════════════════════════════════


class TestReviewHistory:

    def test_one_entry_per_transition(self, make_church, parish, chancery, museum):
        pid = make_church(classification="ICP")
        steps = [
            (church_workflow.submit_for_review, parish, ()),
            (church_workflow.forward_to_museum, chancery, ()),
            (church_workflow.request_revisions, museum, ("Add the 1850 restoration",)),
            (church_workflow.submit_for_review, parish, ()),
            (church_workflow.forward_to_museum, chancery, ()),
            (church_workflow.museum_approve, museum, ()),
            (church_workflow.unpublish, chancery, ("Typhoon damage",)),
        ]
        for count, (op, actor, args) in enumerate(steps, start=1):
            _, err = op(pid, actor, *args)
            assert err is None, err
            assert len(_reload(pid).review_history) == count

        assert _transitions(pid) == [
            ("draft", "pending"),
            ("pending", "heritage_review"),
            ("heritage_review", "revisions"),
            ("revisions", "pending"),
            ("pending", "heritage_review"),
            ("heritage_review", "approved"),
            ("approved", "draft"),
        ]
        last = _reload(pid).review_history[-1].to_dict()
        assert last["action"] == "unpublish"
        assert last["actorRole"] == "chancery_office"
        assert last["notes"] == "Typhoon damage"

    def test_failed_transition_adds_no_entry(self, make_church, chancery):
        pid = make_church("pending", classification="ICP")
        church_workflow.approve(pid, chancery)
        assert len(_reload(pid).review_history) == 1

    def test_entries_cannot_be_updated(self, make_church):
        pid = make_church("pending")
        entry = _reload(pid).review_history[0]
        entry.notes = "rewritten"
        with pytest.raises(InvariantViolation):
            _db.session.commit()
        _db.session.rollback()

    def test_entries_cannot_be_deleted(self, make_church):
        pid = make_church("pending")
        entry = ReviewHistoryEntry.query.filter_by(profile_id=pid).first()
        _db.session.delete(entry)
        with pytest.raises(InvariantViolation):
            _db.session.commit()
        _db.session.rollback()


# ═══════════════════════════════════════════════════════════════════════════
# Engine internals
# ═══════════════════════════════════════════════════════════════════════════


class TestEngine:

    def test_event_payload(self, chancery):
        profile = ChurchProfile(id="c-1", status="pending", heritage_classification="none", fields={})
        when = datetime(2026, 5, 1, 8, 30, tzinfo=timezone.utc)

        event = apply_transition(profile, "approve", chancery, now=when)

        payload = event.to_payload()
        assert payload["churchId"] == "c-1"
        assert payload["fromStatus"] == "pending"
        assert payload["toStatus"] == "approved"
        assert payload["actorRole"] == "chancery_office"
        assert payload["timestamp"] == "2026-05-01T08:30:00+00:00"
        assert profile.status == "approved"
        assert len(profile.review_history) == 1

    def test_failure_leaves_profile_untouched(self, chancery):
        profile = ChurchProfile(
            id="c-2", status="pending", heritage_classification="important_cultural_property", fields={},
        )
        with pytest.raises(GuardFailed):
            apply_transition(profile, "approve", chancery)
        assert profile.status == "pending"
        assert profile.last_status_change is None
        assert len(profile.review_history) == 0

    def test_table_is_keyed_by_status_and_action(self):
        assert CHURCH_TRANSITIONS[("pending", "approve")].to_status == "approved"
        assert CHURCH_TRANSITIONS[("approved", "unpublish")].clears_overlay is True
        assert ("draft", "approve") not in CHURCH_TRANSITIONS

    def test_completion_percentage(self):
        assert completion_percentage(ChurchProfile(fields={})) == 0
        # basic 25%, historical 0%, parish 0% → 8
        assert completion_percentage(ChurchProfile(fields={"name": "X"})) == 8
        # basic 50%, historical 50%, parish 100% → 67
        assert completion_percentage(ChurchProfile(fields={
            "name": "X", "barangay": "Y", "foundingYear": 1700, "assignedPriest": "Fr. Z",
            "historicalBackground": "   ",
        })) == 67

    def test_available_actions_for_chancery(self, make_church):
        profile = _reload(make_church("pending"))
        actions = {a["action"]: a for a in available_actions(profile, "chancery_office")}

        assert set(actions) == {"approve", "forward_to_museum", "request_revisions"}
        assert actions["approve"]["guardPassed"] is True
        assert actions["forward_to_museum"]["guardPassed"] is False
        assert actions["request_revisions"]["requiresNotes"] is True

    def test_available_actions_empty_for_other_roles(self, make_church):
        profile = _reload(make_church("pending"))
        assert available_actions(profile, "parish_secretary") == []

    def test_status_info(self):
        assert status_info("approved")["label"] == "Published"
        assert status_info("heritage_review")["label"] == "Heritage Review"
        assert status_info("archived")["label"] == "archived"
