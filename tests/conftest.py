"""
Shared test fixtures for pytest.

Provides:
- clock: Controllable clock injected into the registry
- registry: Fresh DocumentAccessRegistry on the fake clock
- fake_settings: Test environment configuration
- make_token: Helper to create test JWT tokens
- app / client: FastAPI app wired to the test registry and an httpx client
- doctor_headers, patient_headers: Bearer headers for the demo actors
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta, timezone

import httpx
import jwt
import pytest
import pytest_asyncio
from fastapi import FastAPI

from medisync.access.models import Party
from medisync.access.registry import DocumentAccessRegistry
from medisync.config import Environment, Settings, get_settings

TEST_JWT_SECRET = "test-only-jwt-secret-with-enough-length"
TEST_JWT_AUDIENCE = "medisync-api"

DOCTOR = Party(id="D1", name="Dr. Rajesh Kumar")
OTHER_DOCTOR = Party(id="D2", name="Dr. Priya Sharma")
PATIENT = Party(id="P-MS-004", name="Sarah Johnson")
OTHER_PATIENT = Party(id="P-MS-007", name="Arjun Mehta")


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ------------------------------------------------------------------ #
# Registry fixtures
# ------------------------------------------------------------------ #

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> DocumentAccessRegistry:
    return DocumentAccessRegistry(clock=clock)


# ------------------------------------------------------------------ #
# Auth helpers
# ------------------------------------------------------------------ #

def make_token(
    sub: str,
    role: str,
    name: str = "Test User",
    audience: str = TEST_JWT_AUDIENCE,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
) -> str:
    """Create a test JWT token using HS256.

    Args:
        sub: Actor id (doctor or patient id)
        role: "doctor" or "patient"
        name: Display name claim
        audience: 'aud' claim
        secret: Signing secret
        expires_in: Seconds until expiry (negative for an expired token)

    Returns:
        Encoded JWT token string
    """
    now = int(datetime.now(timezone.utc).timestamp())
    payload = {
        "sub": sub,
        "name": name,
        "role": role,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def bearer(party: Party, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(party.id, role, name=party.name)}"}


# ------------------------------------------------------------------ #
# Settings & App Fixtures
# ------------------------------------------------------------------ #

@pytest.fixture
def fake_settings() -> Settings:
    """Test environment settings with safe defaults."""
    return Settings(
        environment=Environment.TEST,
        jwt_secret=TEST_JWT_SECRET,
        jwt_audience=TEST_JWT_AUDIENCE,
        expiry_sweep_interval_seconds=60.0,
        notification_webhook_url=None,
    )


@pytest.fixture
def app(fake_settings: Settings, registry: DocumentAccessRegistry) -> FastAPI:
    """FastAPI app with the test registry attached and settings overridden.

    ASGITransport does not run the lifespan, so the registry is attached
    to app.state directly.
    """
    from medisync.api.router import api_v1_router, public_router

    test_app = FastAPI()
    test_app.include_router(public_router)
    test_app.include_router(api_v1_router)
    test_app.state.access_registry = registry
    test_app.dependency_overrides[get_settings] = lambda: fake_settings
    return test_app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def doctor_headers() -> dict[str, str]:
    return bearer(DOCTOR, "doctor")


@pytest.fixture
def other_doctor_headers() -> dict[str, str]:
    return bearer(OTHER_DOCTOR, "doctor")


@pytest.fixture
def patient_headers() -> dict[str, str]:
    return bearer(PATIENT, "patient")


@pytest.fixture
def other_patient_headers() -> dict[str, str]:
    return bearer(OTHER_PATIENT, "patient")


@pytest.fixture
def doctor() -> Party:
    return DOCTOR


@pytest.fixture
def other_doctor() -> Party:
    return OTHER_DOCTOR


@pytest.fixture
def patient() -> Party:
    return PATIENT


@pytest.fixture
def other_patient() -> Party:
    return OTHER_PATIENT


@pytest.fixture
def token_factory():
    """Expose make_token to tests that need custom claims."""
    return make_token
