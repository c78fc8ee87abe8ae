"""
Notification Emission Tests — coverage for:
  - One notification per recipient role per successful workflow event
  - Payload carries the workflow event
  - Rejected operations emit nothing
  - Role inbox queries + read tracking
"""

from heritage_cms.models.notification import Notification
from heritage_cms.services import church_workflow
from heritage_cms.services.notification import NotificationService


def _for_role(role):
    return Notification.query.filter_by(recipient_role=role).order_by(Notification.id).all()


class TestEmission:

    def test_submission_notifies_chancery(self, make_church, parish):
        pid = make_church()
        church_workflow.submit_for_review(pid, parish)

        (notif,) = _for_role("chancery_office")
        assert notif.profile_id == pid
        assert notif.kind == "status_transition"
        assert notif.payload["churchId"] == pid
        assert notif.payload["fromStatus"] == "draft"
        assert notif.payload["toStatus"] == "pending"
        assert notif.payload["actorRole"] == "parish_secretary"
        assert "Our Lady of the Assumption Parish" in notif.title

    def test_revisions_notify_the_authoring_parish(self, make_church, parish, chancery):
        pid = make_church("pending")
        church_workflow.request_revisions(pid, chancery, "Add the bell tower history")

        (notif,) = _for_role("parish_secretary")
        assert notif.recipient == parish.id
        assert notif.severity == "warning"
        assert notif.message == "Add the bell tower history"

    def test_forwarding_notifies_museum(self, make_church, chancery):
        make_church("heritage_review", classification="ICP")
        assert len(_for_role("museum_researcher")) == 1

    def test_staged_edit_notifies_chancery(self, make_church, parish):
        pid = make_church("approved")
        before = len(_for_role("chancery_office"))
        church_workflow.stage_pending_edit(pid, parish, {"description": "Updated"})
        notifs = _for_role("chancery_office")
        assert len(notifs) == before + 1
        assert notifs[-1].kind == "content_staged"
        assert notifs[-1].payload["changedFields"] == ["description"]

    def test_rejected_operation_emits_nothing(self, make_church, chancery):
        pid = make_church("pending", classification="ICP")
        before = Notification.query.count()
        _, err = church_workflow.approve(pid, chancery)
        assert err is not None
        assert Notification.query.count() == before

    def test_draft_edits_emit_nothing(self, make_church, parish):
        pid = make_church()
        _, err = church_workflow.update_profile_fields(pid, parish, {"feastDay": "August 15"})
        assert err is None
        assert Notification.query.count() == 0


class TestInbox:

    def test_list_and_mark_all_read(self, make_church, parish, chancery):
        make_church("pending")
        make_church("pending")

        items, total = NotificationService.list_for_role("chancery_office", recipient=chancery.id)
        assert total == 2
        assert all(not n.is_read for n in items)

        assert NotificationService.mark_all_read("chancery_office", recipient=chancery.id) == 2
        _, unread = NotificationService.list_for_role("chancery_office", unread_only=True)
        assert unread == 0
