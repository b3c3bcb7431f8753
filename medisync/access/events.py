"""Events emitted by the access registry after each state change."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from medisync.access.models import AccessRequest


class AccessEventType(StrEnum):
    CREATED = "access_request.created"
    APPROVED = "access_request.approved"
    DENIED = "access_request.denied"
    EXPIRED = "access_request.expired"


@dataclass(frozen=True)
class AccessEvent:
    """A state change on one access request."""

    type: AccessEventType
    request: AccessRequest
    occurred_at: datetime
    # Registry-wide, strictly increasing; reflects transition order
    sequence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": str(self.type),
            "sequence": self.sequence,
            "occurred_at": self.occurred_at.isoformat(),
            "request": self.request.to_dict(),
        }


AccessEventListener = Callable[[AccessEvent], None]
