"""Shared pytest fixtures for match-sync-api tests."""
import os
import sys
from pathlib import Path
from datetime import timedelta
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

# Settings and the engine are built at import time; point them at SQLite first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

CRON_SECRET = os.environ["CRON_SECRET"]


@pytest.fixture(scope="function")
def db_engine():
    """Isolated in-memory database shared by every connection of one test."""
    from app.models import Base

    # StaticPool keeps a single connection so TestClient requests and the
    # test body see the same in-memory database
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create fresh test database session."""
    TestSessionLocal = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()
    yield session
    session.close()


def create_market_match(**kwargs):
    """Helper function to create a MarketMatch with all required fields.

    Usage:
        match = create_market_match(match_id="42", status="LIVE", synced_ago=120)

    `synced_ago` is the age in seconds of the last sync (default 0).
    """
    from app.models import MarketMatch, MatchStatus
    from app.utils.timezone import utc_now

    now = utc_now()
    synced_ago = kwargs.pop("synced_ago", 0)
    status = kwargs.pop("status", MatchStatus.UPCOMING)
    if isinstance(status, MatchStatus):
        status = status.value

    defaults = {
        "match_id": "1",
        "status": status,
        "kickoff_at": now + timedelta(hours=3),
        "league": "Premier League",
        "league_id": "39",
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "consensus_odds": {"home": 0.45, "draw": 0.27, "away": 0.28},
        "last_synced_at": now - timedelta(seconds=synced_ago),
        "sync_count": 1,
        "sync_errors": 0,
        "is_active": True,
        "is_archived": False,
        "created_at": now,
        "updated_at": now,
    }
    defaults.update(kwargs)
    return MarketMatch(**defaults)


@pytest.fixture
def make_match(db_session: Session):
    """Factory fixture that persists MarketMatch rows.

    Usage:
        def test_x(make_match):
            make_match(match_id="42", status=MatchStatus.LIVE, synced_ago=120)
    """
    def _make(**kwargs):
        match = create_market_match(**kwargs)
        db_session.add(match)
        db_session.commit()
        return match

    return _make


def upstream_item(match_id="1", status="upcoming", **overrides):
    """A full-mode provider item in the provider's JSON shape."""
    item = {
        "id": match_id,
        "status": status,
        "kickoff_at": "2026-11-01T15:00:00Z",
        "league": {"id": "39", "name": "Premier League", "country": "England"},
        "home": {"id": "42", "name": "Arsenal", "logo_url": "https://img.test/42.png"},
        "away": {"id": "49", "name": "Chelsea", "logo_url": "https://img.test/49.png"},
        "odds": {
            "novig_current": {"home": 0.5, "draw": 0.25, "away": 0.25},
            "books": {
                "pinnacle": {"home": 1.9, "draw": 3.6, "away": 4.1},
                "bet365": {"home": 1.85, "draw": 3.5, "away": 4.0},
            },
        },
        "models": {
            "v1_consensus": {"pick": "home", "confidence": 0.62, "probs": {"home": 0.62}},
        },
    }
    item.update(overrides)
    return item


@pytest.fixture
def fake_upstream():
    """Provider client double; set `fetch_market.return_value` or `side_effect`."""
    upstream = MagicMock()
    upstream.configured = True
    upstream.fetch_market = AsyncMock(return_value={"matches": [], "total_count": 0})
    upstream.ping = AsyncMock(return_value={"status": "connected", "response_time_ms": 3.0})
    upstream.close = AsyncMock()
    return upstream


@pytest.fixture
def orchestrator(db_session, fake_upstream):
    """Orchestrator over the test database and the provider double."""
    from app.core.config import settings
    from app.services.sync.orchestrator import MatchSyncOrchestrator

    return MatchSyncOrchestrator(db_session, fake_upstream, settings=settings)


# =============================================================================
# FASTAPI TEST CLIENT FIXTURE
# =============================================================================

@pytest.fixture(scope="function")
def test_client(db_session, db_engine, fake_upstream, monkeypatch):
    """
    Create FastAPI TestClient with a fresh database for each test.

    Note: We don't use context manager (with TestClient) because it conflicts
    with Prometheus middleware that's added during app module initialization.
    The lifespan therefore never runs; app.state is populated here instead.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/v1/market")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from app.main import app
    from app.core import database
    from app.core.database import get_db
    from app.api.routes.market import get_upstream_client

    test_db_session = db_session

    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_upstream_client] = lambda: fake_upstream
    app.state.upstream_client = fake_upstream
    app.state.single_flight = None
    app.state.quick_purchases = None

    # /api/health opens its own session
    monkeypatch.setattr(database, "SessionLocal", sessionmaker(bind=db_engine))

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
    app.state.upstream_client = None
