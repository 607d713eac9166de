"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before ``app.core.config`` builds the settings, so
tests never depend on a local .env file or a running Redis server.
"""

import asyncio
import os
from typing import Callable
from unittest.mock import Mock

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.cache.in_memory import InMemoryCacheStore
from app.core.app_factory import create_app
from app.core.auth import Principal, create_access_token


@pytest.fixture
def clock() -> Mock:
    """Deterministic UNIX-seconds clock; set ``clock.return_value`` to move time."""
    return Mock(return_value=1_000.0)


@pytest.fixture
def memory_store(clock: Mock) -> InMemoryCacheStore:
    return InMemoryCacheStore(key_prefix="test:", default_ttl_seconds=60, clock=clock)


@pytest.fixture
def make_app(memory_store: InMemoryCacheStore, clock: Mock) -> Callable[..., FastAPI]:
    """Build an app on the shared in-memory store; limiting is on unless bypassed."""

    def _make(**overrides) -> FastAPI:
        overrides.setdefault("cache_store", memory_store)
        overrides.setdefault("clock", clock)
        overrides.setdefault("rate_limit_bypass", False)
        return create_app(**overrides)

    return _make


@pytest.fixture
def app(make_app: Callable[..., FastAPI]) -> FastAPI:
    return make_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_header() -> Callable[..., dict]:
    """Build an Authorization header carrying a freshly signed token."""

    def _header(user_id: int = 1, role: str = "admin", email: str = "admin@example.com") -> dict:
        token, _ = create_access_token(Principal(user_id=user_id, email=email, role=role))
        return {"Authorization": f"Bearer {token}"}

    return _header


@pytest.fixture
def verification_token(app: FastAPI) -> Callable[[str], str]:
    """Read the token that the e-mail transport would have delivered."""

    def _token(email: str) -> str:
        doc = asyncio.run(app.state.user_service.repository.find_by("email", email))
        return doc["email_verification_token"]

    return _token
