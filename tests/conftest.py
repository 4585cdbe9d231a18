"""
Pytest fixtures for the dashboard API tests.

This module provides:
- An in-memory SQLite database, rebuilt for every test
- A fake Retell client injected in place of the real one
- Test client and authentication helpers
"""
import os

# Configure before any app module reads the environment
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["API_AUTH_KEY"] = "test-api-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("RETELL_API_KEY", None)
os.environ.pop("SUPERADMIN_EMAIL", None)
os.environ.pop("SUPERADMIN_PASSWORD", None)

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app import auth, crud, models
from app.database import Base, SessionLocal, engine
from app.main import app
from app.retell_client import RetellAPIError, get_retell_client

API_KEY_HEADERS = {"x-api-key": "test-api-key"}

# 2025-01-15T12:00:00Z
BASE_TS = 1736942400000


class FakeRetellClient:
    """Stands in for RetellClient; serves canned agents and calls"""

    def __init__(
        self,
        calls: Optional[List[Dict[str, Any]]] = None,
        agents: Optional[List[Dict[str, Any]]] = None,
        fail_agents: bool = False,
        fail_calls: bool = False,
    ):
        self.calls = calls or []
        self.agents = agents or []
        self.fail_agents = fail_agents
        self.fail_calls = fail_calls
        self.fetch_all_args = []

    async def list_agents(self):
        if self.fail_agents:
            raise RetellAPIError("Failed to fetch agents: HTTP 500", status_code=500)
        return list(self.agents)

    async def fetch_all(self, start_ms=None, end_ms=None, limit=100):
        self.fetch_all_args.append({"start_ms": start_ms, "end_ms": end_ms, "limit": limit})
        if self.fail_calls:
            raise RetellAPIError("Failed to fetch calls page after cursor 'call_100': HTTP 502",
                                 status_code=502, cursor="call_100")
        return [dict(call) for call in self.calls]


def retell_call(
    call_id: str,
    agent_id: str = "agent_a",
    start: int = BASE_TS,
    duration_ms: int = 60000,
    cost: Optional[float] = 12.5,
    successful: Optional[bool] = True,
    **extra,
) -> Dict[str, Any]:
    """Build a call record shaped like Retell's list-calls output"""
    record = {
        "call_id": call_id,
        "agent_id": agent_id,
        "start_timestamp": start,
        "end_timestamp": start + duration_ms,
        "call_status": "ended",
        "transcript": f"Agent: Hello from {call_id}",
        "disconnection_reason": "user_hangup",
        "recording_url": f"https://recordings.retellai.com/{call_id}.wav",
        "call_analysis": {},
    }
    if cost is not None:
        record["call_cost"] = {"combined_cost": cost}
    if successful is not None:
        record["call_analysis"]["call_successful"] = successful
    record.update(extra)
    return record


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def retell():
    fake = FakeRetellClient()
    app.dependency_overrides[get_retell_client] = lambda: fake
    return fake


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


def make_user(db, email: str, role: str = models.UserRole.USER.value, password: str = "password123"):
    return crud.create_user(
        db,
        email=email,
        password_hash=auth.get_password_hash(password),
        name=email.split("@")[0],
        role=role,
    )


def bearer(user) -> Dict[str, str]:
    return {"Authorization": f"Bearer {auth.create_access_token(user)}"}


def seed_call(db, call_id: str, agent_id: str = "agent_a", **kwargs):
    """Write a call (and its agent) through the same path the sync uses"""
    from app.sync import map_call

    if not crud.get_agent(db, agent_id):
        crud.upsert_agent(db, agent_id, f"Agent {agent_id}")
    return crud.upsert_call(db, map_call(retell_call(call_id, agent_id=agent_id, **kwargs)))
