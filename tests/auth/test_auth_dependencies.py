"""Tests for JWT actor resolution."""

from __future__ import annotations

import jwt
import pytest

from medisync.auth.dependencies import ActorRole, TokenValidationError, decode_token


def _unexpiring_token(settings) -> str:
    """A correctly signed doctor token that never expires."""
    return jwt.encode(
        {"sub": "D1", "role": "doctor", "aud": settings.jwt_audience},
        settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )

class TestDecodeToken:
    def test_valid_doctor_token(self, fake_settings, token_factory):
        actor = decode_token(token_factory("D1", "doctor", name="Dr. Kumar"), fake_settings)

        assert actor.id == "D1"
        assert actor.name == "Dr. Kumar"
        assert actor.role == ActorRole.DOCTOR
        assert actor.as_party().id == "D1"

    def test_unknown_role(self, fake_settings, token_factory):
        with pytest.raises(TokenValidationError):
            decode_token(token_factory("X1", "admin"), fake_settings)

    def test_wrong_audience(self, fake_settings, token_factory):
        with pytest.raises(TokenValidationError):
            decode_token(token_factory("D1", "doctor", audience="other-api"), fake_settings)

    def test_wrong_secret(self, fake_settings, token_factory):
        token = token_factory("D1", "doctor", secret="another-secret-of-decent-length")
        with pytest.raises(TokenValidationError):
            decode_token(token, fake_settings)

    def test_expired_token(self, fake_settings, token_factory):
        with pytest.raises(TokenValidationError):
            decode_token(token_factory("D1", "doctor", expires_in=-60), fake_settings)

    def test_garbage_token(self, fake_settings):
        with pytest.raises(TokenValidationError):
            decode_token("not-a-jwt", fake_settings)

    def test_token_without_exp_is_rejected(self, fake_settings):
        token = _unexpiring_token(fake_settings)

        with pytest.raises(TokenValidationError):
            decode_token(token, fake_settings)


class TestHttpAuth:
    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, client):
        response = await client.get(
            "/api/v1/access-requests",
            headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_token_without_exp_is_401(self, client, fake_settings):
        response = await client.get(
            "/api/v1/access-requests",
            headers={"Authorization": f"Bearer {_unexpiring_token(fake_settings)}"},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_bearer_scheme_is_401(self, client):
        response = await client.get(
            "/api/v1/access-requests",
            headers={"Authorization": "Basic abc"},
        )
        assert response.status_code == 401
