"""
API Helper Tests — coverage for:
  - db_commit_or_error: commit failures become standard api_error bodies
  - parse_expected_version / actor_from_request edge cases
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from heritage_cms.utils.helpers import actor_from_request, db_commit_or_error, parse_expected_version


def _failing_commit(exc):
    def commit(self):
        raise exc
    return commit


class TestCommitOrError:

    def test_success_returns_none(self):
        assert db_commit_or_error() is None

    def test_integrity_error_is_conflict(self, monkeypatch):
        monkeypatch.setattr(Session, "commit", _failing_commit(
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        ))

        response, status = db_commit_or_error()

        assert status == 409
        body = response.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["message"] == body["error"] == "Duplicate or constraint violation"

    def test_operational_error_is_database_error(self, monkeypatch):
        monkeypatch.setattr(Session, "commit", _failing_commit(
            OperationalError("SELECT", {}, Exception("database is locked"))
        ))

        response, status = db_commit_or_error()

        assert status == 500
        assert response.get_json()["code"] == "ERR_DATABASE"

    def test_non_database_errors_propagate(self, monkeypatch):
        monkeypatch.setattr(Session, "commit", _failing_commit(RuntimeError("bug")))
        with pytest.raises(RuntimeError):
            db_commit_or_error()


class TestRequestParsing:

    @pytest.mark.parametrize("value, expected", [(None, None), (3, 3), ("4", 4)])
    def test_expected_version(self, value, expected):
        version, err = parse_expected_version({"expected_version": value})
        assert err is None
        assert version == expected

    @pytest.mark.parametrize("value", [True, "latest", [1]])
    def test_bad_expected_version(self, value):
        version, err = parse_expected_version({"expected_version": value})
        assert version is None
        assert err[1] == 400

    def test_actor_from_body(self):
        actor, err = actor_from_request({"actor_id": " u-1 ", "actor_role": "museum_researcher", "actor_name": "Ana"})
        assert err is None
        assert (actor.id, actor.role, actor.name) == ("u-1", "museum_researcher", "Ana")

    def test_actor_from_query_string(self, app):
        with app.test_request_context("/?actor_id=u-2&actor_role=chancery_office"):
            actor, err = actor_from_request()
        assert err is None
        assert actor.role == "chancery_office"
