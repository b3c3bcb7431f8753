"""FastAPI dependencies for identifying the calling doctor or patient.

Portals authenticate users upstream and forward an HS256 JWT carrying:
- sub: the actor id (doctor id or patient id)
- name: display name
- role: "doctor" or "patient"

This service trusts a valid token's claims; it does not verify that the
actor really is who the identity provider says.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

import jwt
import structlog
from fastapi import Depends, HTTPException, Request, status

from medisync.access.models import Party
from medisync.config import Settings, get_settings
from medisync.telemetry.logging import bind_actor_context

log = structlog.get_logger(__name__)


class ActorRole(StrEnum):
    DOCTOR = "doctor"
    PATIENT = "patient"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller."""

    id: str
    name: str
    role: ActorRole

    def as_party(self) -> Party:
        return Party(id=self.id, name=self.name)


class TokenValidationError(Exception):
    """Raised when a bearer token cannot be trusted."""


def decode_token(token: str, settings: Settings) -> Actor:
    """Validate a JWT and build the Actor it describes.

    Raises:
        TokenValidationError: On a bad signature, expiry, audience or claims
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"require": ["sub", "role", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise TokenValidationError(str(exc)) from exc

    try:
        role = ActorRole(claims["role"])
    except ValueError as exc:
        raise TokenValidationError(f"Unknown role: {claims['role']!r}") from exc

    actor_id = str(claims["sub"]).strip()
    if not actor_id:
        raise TokenValidationError("Empty subject claim")
    name = str(claims.get("name") or actor_id)
    return Actor(id=actor_id, name=name, role=role)


async def get_current_actor(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Actor:
    """Resolve the Bearer token on the request to an Actor. 401 on failure."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.removeprefix("Bearer ").strip()
    try:
        actor = decode_token(token, settings)
    except TokenValidationError as exc:
        log.warning("auth.token_rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    bind_actor_context(actor.id, actor.role)
    return actor


def require_role(*allowed_roles: ActorRole) -> Callable:
    """Dependency factory that asserts the caller has one of the allowed roles.

    Usage:
        @router.post("/access-requests")
        async def create(actor: Actor = Depends(require_role(ActorRole.DOCTOR))):
            ...
    """

    async def _check_role(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this action",
            )
        return actor

    return _check_role
