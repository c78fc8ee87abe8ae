"""
Shared pytest fixtures for the Heritage Church CMS test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - parish / chancery / museum: one Actor per workflow role
    - church_raw: complete authoring-shape church record
    - make_church: factory that creates a profile and walks it to a status
"""

import copy

import pytest

from heritage_cms import create_app
from heritage_cms.models import db as _db
from heritage_cms.models.church import ROLE_CHANCERY, ROLE_MUSEUM, ROLE_PARISH
from heritage_cms.services import church_workflow
from heritage_cms.services.workflow_engine import Actor

# Authoring-shape record with every required section filled in.
CHURCH_RAW = {
    "churchName": "Our Lady of the Assumption Parish",
    "diocese": "tagbilaran",
    "locationDetails": {
        "streetAddress": "Poblacion Road",
        "barangay": "Poblacion",
        "municipality": "Dauis",
    },
    "historicalDetails": {
        "foundingYear": "1697",
        "historicalBackground": "Founded by Jesuit missionaries on Panglao island.",
        "architecturalStyle": "Baroque",
    },
    "currentParishPriest": "Fr. Juan Dela Cruz",
    "classification": "non-heritage",
    "consentPublicDisplay": True,
    "consentDataAccuracy": True,
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Actors ───────────────────────────────────────────────────────────────


@pytest.fixture()
def parish():
    return Actor("parish-dauis", ROLE_PARISH, "Dauis Parish Secretary")


@pytest.fixture()
def chancery():
    return Actor("chancery-tag", ROLE_CHANCERY, "Tagbilaran Chancery")


@pytest.fixture()
def museum():
    return Actor("museum-bohol", ROLE_MUSEUM, "Bohol Museum Researcher")


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def church_raw():
    """Fresh copy of the complete church record (safe to mutate)."""
    return copy.deepcopy(CHURCH_RAW)


@pytest.fixture()
def make_church(parish, chancery, museum):
    """Create a church and walk it through the workflow to *status*.

    Usage:
        pid = make_church()                                   # draft, non-heritage
        pid = make_church("approved", classification="NCT")   # via museum review

    Returns the profile id.
    """

    def _make(status="draft", classification="non-heritage", **overrides):
        raw = copy.deepcopy(CHURCH_RAW)
        raw["classification"] = classification
        raw.update(overrides)
        profile, err = church_workflow.create_profile(raw, parish)
        assert err is None, err
        pid = profile.id
        if status == "draft":
            return pid

        _ok(church_workflow.submit_for_review(pid, parish))
        if status == "pending":
            return pid
        if status == "revisions":
            _ok(church_workflow.request_revisions(pid, chancery, "Please add photos"))
            return pid

        if profile.is_heritage:
            _ok(church_workflow.forward_to_museum(pid, chancery))
            if status == "heritage_review":
                return pid
            _ok(church_workflow.museum_approve(pid, museum))
        else:
            assert status != "heritage_review", "heritage_review needs a heritage classification"
            _ok(church_workflow.approve(pid, chancery))
        assert status == "approved", f"unsupported status {status}"
        return pid

    return _make


def _ok(result):
    profile, err = result
    assert err is None, err
    return profile
