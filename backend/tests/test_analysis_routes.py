"""Analysis API tests — analyze, stream, refresh, rescore, session, error mapping.

The orchestrator dependency is overridden with one backed by ``FakeBackend``
so no request leaves the process.
"""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.agents.signal_aggregation.orchestrator import SourceOrchestrator
from app.constants import SOURCES
from app.database import Base, get_db
from app.main import app
from app.routes.analysis import get_orchestrator

from fakes import FakeBackend

# ---------------------------------------------------------------------------
# Test database setup (file-based SQLite for compatibility)
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite:///./test_analysis.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

IDEA = "A meal-planning app for busy parents that builds a weekly grocery list"

# Default refinements over the fake bodies:
#   demand 72*0.9, pain 55, gap 50, diff 65*0.95, dist 40*1.05 -> 55.85
EXPECTED_SCORE = 56


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


client = TestClient(app)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture(autouse=True)
def setup_app(backend):
    """Fresh tables and a fresh orchestrator for every test."""
    orchestrator = SourceOrchestrator(backend)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_orchestrator, None)


def _analyze(**overrides):
    payload = {"idea": IDEA}
    payload.update(overrides)
    return client.post("/analysis", json=payload)


def _sse_events(text):
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


# ===================================================================== #
#  POST /analysis                                                         #
# ===================================================================== #

class TestAnalyze:
    def test_full_report(self):
        res = _analyze()
        assert res.status_code == 200
        data = res.json()

        assert data["idea"] == IDEA
        assert data["composite"]["pm_fit_score"] == EXPECTED_SCORE
        assert set(data["source_status"]) == set(SOURCES)
        assert set(data["source_status"].values()) == {"ok"}
        assert data["low_confidence"] is False
        assert data["stale"] is False
        assert data["sources"]["trends"]["fetchedAtISO"] == "2026-01-05T12:00:00+00:00"
        assert data["citations"]["demand"][0]["url"] == "https://trends.example.com/meal-planning"
        assert "total" in data["timings_ms"]

    def test_improvements_are_ranked(self):
        deltas = [imp["est_delta"] for imp in _analyze().json()["improvements"]]
        assert deltas
        assert deltas == sorted(deltas, reverse=True)

    def test_subset_with_aliases(self, backend):
        res = _analyze(sources=["google_trends", "forums"])
        assert res.status_code == 200
        assert set(res.json()["source_status"]) == {"trends", "reddit"}
        assert len(backend.calls) == 2

    def test_failed_source_is_reported_not_raised(self, backend):
        backend.respond("commerce", RuntimeError("upstream exploded"))
        data = _analyze().json()
        assert data["source_status"]["commerce"] == "unavailable"
        assert "upstream exploded" in data["sources"]["commerce"]["reason"]

    def test_total_outage_is_low_confidence(self, backend):
        backend.fail_all()
        res = _analyze()
        assert res.status_code == 200
        assert res.json()["low_confidence"] is True
        assert res.json()["composite"]["defaulted"] == [
            "demand",
            "pain_intensity",
            "competition_gap",
            "differentiation",
            "distribution",
        ]

    def test_empty_idea(self, backend):
        assert _analyze(idea="").status_code == 422
        assert _analyze(idea="    ").status_code == 422
        assert backend.calls == []

    def test_unknown_source(self, backend):
        res = _analyze(sources=["trends", "myspace"])
        assert res.status_code == 400
        assert "myspace" in res.json()["detail"]
        assert backend.calls == []

    def test_invalid_refinements(self):
        res = _analyze(refinements={"channel_weights": {"myspace": 1.0}})
        assert res.status_code == 422

    def test_request_refinements_are_applied(self):
        data = _analyze(refinements={"niche": False, "premium": True}).json()
        assert data["refinements"]["premium"] is True
        assert data["composite"]["adjusted"]["demand"] == pytest.approx(79.2)


# ===================================================================== #
#  POST /analysis/stream                                                  #
# ===================================================================== #

class TestStream:
    def test_status_events_then_report(self):
        res = client.post("/analysis/stream", json={"idea": IDEA, "sources": ["trends", "reddit"]})
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/event-stream")

        events = _sse_events(res.text)
        kinds = [kind for kind, _ in events]
        assert kinds[-1] == "report"
        assert kinds.count("report") == 1

        statuses = [(data["source"], data["status"]) for kind, data in events if kind == "status"]
        assert sorted(statuses) == sorted(
            [("trends", "fetching"), ("trends", "ok"), ("reddit", "fetching"), ("reddit", "ok")]
        )
        report = events[-1][1]
        assert set(report["source_status"]) == {"trends", "reddit"}

    def test_stream_validates_up_front(self, backend):
        assert client.post("/analysis/stream", json={"idea": "   "}).status_code == 422
        assert client.post("/analysis/stream", json={"idea": IDEA, "sources": ["nope"]}).status_code == 400
        assert backend.calls == []

    def test_stream_remembers_session(self):
        client.post("/analysis/stream", json={"idea": IDEA, "sources": ["trends"]})
        assert client.get("/analysis/session").json()["idea"] == IDEA


# ===================================================================== #
#  POST /analysis/sources/{source}/refresh                                #
# ===================================================================== #

class TestRefresh:
    def test_refresh_before_analysis(self):
        assert client.post("/analysis/sources/trends/refresh").status_code == 409

    def test_refresh_unknown_source(self):
        _analyze()
        assert client.post("/analysis/sources/myspace/refresh").status_code == 400

    def test_refresh_rescoring(self, backend):
        _analyze()
        backend.respond("trends", {"status": "ok", "normalized": {"interestScore": 10}})

        res = client.post("/analysis/sources/trends/refresh")
        assert res.status_code == 200
        data = res.json()
        assert data["composite"]["sub_scores"]["demand"] == 10
        assert data["composite"]["pm_fit_score"] < EXPECTED_SCORE
        assert len(backend.calls_for("trends")) == 2
        assert len(backend.calls_for("reddit")) == 1


# ===================================================================== #
#  POST /analysis/rescore                                                 #
# ===================================================================== #

class TestRescore:
    def test_rescore_before_analysis(self):
        res = client.post("/analysis/rescore", json={"refinements": {}})
        assert res.status_code == 409

    def test_rescore_is_offline(self, backend):
        _analyze()
        calls_before = len(backend.calls)

        res = client.post("/analysis/rescore", json={"refinements": {"premium": True}})
        assert res.status_code == 200
        # diff 65 * 1.15 instead of * 0.95 -> +2.6 points
        assert res.json()["composite"]["pm_fit_score"] == 58
        assert len(backend.calls) == calls_before

    def test_rescore_persists_refinements(self):
        _analyze()
        client.post("/analysis/rescore", json={"refinements": {"b2b": True}})
        snapshot = client.get("/analysis/session").json()
        assert snapshot["refinements"]["b2b"] is True

        # The next analysis picks the saved refinements up
        assert _analyze().json()["refinements"]["b2b"] is True


# ===================================================================== #
#  Session + health                                                       #
# ===================================================================== #

class TestSessionAndHealth:
    def test_empty_session(self):
        data = client.get("/analysis/session").json()
        assert data["idea"] is None
        assert data["pm_fit_score"] is None

    def test_session_after_analysis(self):
        _analyze()
        data = client.get("/analysis/session").json()
        assert data["idea"] == IDEA
        assert data["pm_fit_score"] == EXPECTED_SCORE
        assert data["metadata"]["source_status"]["reddit"] == "ok"

    def test_health(self):
        assert client.get("/health").json()["status"] == "healthy"
        data = client.get("/analysis/health").json()
        assert data["status"] == "healthy"
        assert data["backend_configured"] is True
        assert data["sources"] == SOURCES

    def test_root(self):
        assert "analyze" in client.get("/").json()["endpoints"]

    def test_orchestrator_created_lazily(self):
        app.dependency_overrides.pop(get_orchestrator, None)
        if hasattr(app.state, "orchestrator"):
            del app.state.orchestrator

        with patch("app.routes.analysis.BackendClient") as fake_client:
            fake_client.return_value.configured = False
            data = client.get("/analysis/health").json()

        assert data["backend_configured"] is False
        assert isinstance(app.state.orchestrator, SourceOrchestrator)
        del app.state.orchestrator
