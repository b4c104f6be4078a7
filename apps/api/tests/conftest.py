"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database built from the ORM
metadata, so nothing leaks between tests and no server is needed.
"""
import os
import sys

# Settings are read at import time; configure the environment first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
from core.security import create_access_token
import models  # noqa: F401  registers tables on Base.metadata
from services.coach_catalog import seed_prebuilt_coaches
from services.model_gateway import Generation, HistoryTurn, ModelGatewayError


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    session = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def seeded_db(db_session):
    """Database with the prebuilt coach catalog."""
    seed_prebuilt_coaches(db_session)
    return db_session


@pytest.fixture
def user_id():
    return uuid4()


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


class StubGateway:
    """Records every call; replies with a fixed text or raises ModelGatewayError."""

    def __init__(self, reply: str = "Let's break that down together.", fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.calls: List[dict] = []

    def model_for(self, entitled: bool) -> str:
        return "pro-model" if entitled else "default-model"

    def generate(
        self,
        system_instruction: str,
        history: List[HistoryTurn],
        user_message: str,
        entitled: bool = False,
    ) -> Generation:
        self.calls.append({
            "system_instruction": system_instruction,
            "history": list(history),
            "user_message": user_message,
            "entitled": entitled,
            "model": self.model_for(entitled),
        })
        if self.fail:
            raise ModelGatewayError("timed out")
        return Generation(text=self.reply, model=self.model_for(entitled))


@pytest.fixture
def gateway():
    return StubGateway()
