"""
Pytest Configuration and Shared Fixtures

Provides an in-memory database, signal factories, a scripted Claude client
and a FastAPI test client wired to all of them.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from viralhub.auth import DEV_USER, FixedWindowRateLimiter
from viralhub.cache import TTLCache
from viralhub.database import Client, Signal, ViralRepository, init_db
from viralhub.database.session import enable_sqlite_foreign_keys
from viralhub.llm import LLMClient
from viralhub.utils import get_settings

NOW = datetime(2026, 3, 10, 12, 0, 0)


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    """Single-connection in-memory SQLite shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def repository(db_session) -> ViralRepository:
    return ViralRepository(db_session)


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache()


# ============================================================================
# Signals
# ============================================================================

@dataclass
class FakeSignal:
    """Duck-typed signal for the pure pipeline stages."""
    title: str
    upvotes: int = 10
    comments: int = 2
    community: Optional[str] = "marketing"
    created_at_external: Optional[datetime] = None
    raw_excerpt: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))


@pytest.fixture
def make_fake_signal():
    return FakeSignal


@pytest.fixture
def add_signal(repository):
    """Factory storing a signal row and returning it."""

    def _add(
        title: str,
        upvotes: int = 50,
        comments: int = 10,
        industry: str = "marketing",
        community: str = "marketing",
        hours_old: float = 2,
        fetched_at: Optional[datetime] = None,
        raw_excerpt: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> Signal:
        signal = repository.add_signal(
            source_type="reddit",
            external_id=external_id or uuid4().hex[:8],
            url=f"https://reddit.com/r/{community}/comments/{uuid4().hex[:6]}",
            title=title,
            author="someone",
            community=community,
            created_at_external=NOW - timedelta(hours=hours_old),
            metrics={"upvotes": upvotes, "comments": comments, "upvote_ratio": 0.9, "velocity": 1.0},
            raw_excerpt=raw_excerpt,
            industry=industry,
            fetched_at=fetched_at or NOW - timedelta(hours=1),
        )
        repository.commit()
        return signal

    return _add


@pytest.fixture
def add_client(repository):
    def _add(name: str = "Acme", settings: Optional[Dict[str, Any]] = None) -> Client:
        client = Client(name=name, settings=settings or {})
        repository.session.add(client)
        repository.commit()
        return client

    return _add


# ============================================================================
# Claude
# ============================================================================

Reply = Union[str, Dict[str, Any], Exception]


def anthropic_response(text: str, model: str = "claude-test") -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=80),
        stop_reason="end_turn",
        model=model,
    )


def fake_anthropic(responder: Callable[[str, Optional[str]], Reply]) -> SimpleNamespace:
    """
    AsyncAnthropic stand-in.

    `responder(prompt, system)` returns a dict (sent as JSON), raw text, or
    an exception to raise.
    """

    async def create(**kwargs):
        prompt = kwargs["messages"][0]["content"]
        reply = responder(prompt, kwargs.get("system"))
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = f"```json\n{json.dumps(reply)}\n```"
        return anthropic_response(reply)

    return SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(side_effect=create)))


@pytest.fixture
def make_llm():
    def _make(responder: Callable[[str, Optional[str]], Reply], timeout: float = 5.0) -> LLMClient:
        return LLMClient(client=fake_anthropic(responder), model="claude-test", timeout=timeout)

    return _make


VALID_BRIEF = {
    "core_tension": "Marketers want reach but organic posts barely get seen",
    "our_angle": "Small accounts win by replying, not by posting more",
    "key_claim": "Reply-first accounts grow faster than post-first ones",
    "proof_points": [
        "Thread with 900 upvotes on reply strategies",
        "Users report doubled reach after a month of replies",
    ],
    "why_now": "Platforms are boosting conversation over broadcast posts",
    "no_go_claims": ["Guaranteed virality"],
}


@pytest.fixture
def brief_payload() -> Dict[str, Any]:
    return json.loads(json.dumps(VALID_BRIEF))


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter()


@pytest.fixture
def api_client(db_session, cache, rate_limiter, make_llm, brief_payload):
    """
    TestClient with the database, cache, limiter, user and Claude replaced.

    The default Claude stand-in answers every prompt with a valid brief;
    tests swap it through `app.dependency_overrides`.
    """
    from fastapi.testclient import TestClient

    from api.deps import get_llm, get_optional_llm, get_cache, get_repository
    from api.main import app
    from viralhub.auth import get_current_user, get_rate_limiter

    llm = make_llm(lambda prompt, system: brief_payload)

    app.dependency_overrides[get_repository] = lambda: ViralRepository(db_session)
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_current_user] = lambda: DEV_USER
    app.dependency_overrides[get_optional_llm] = lambda: llm
    app.dependency_overrides[get_llm] = lambda: llm

    yield TestClient(app)

    app.dependency_overrides.clear()
