"""Shared fixtures: settings and an in-memory job store."""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hookscout import db
from hookscout.config import Settings


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        exa_api_key="exa-test",
        llm_provider="anthropic",
        anthropic_api_key="anthropic-test",
        database_path=tmp_path / "hookscout.db",
        discovery_strategy="autoprompt",
        strict_attribution=False,
    )


@pytest.fixture()
def test_db():
    """In-memory SQLite bound as the process-wide session factory.

    Uses StaticPool so all connections share the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.bind_engine(engine)
    TestSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield TestSession
    engine.dispose()
