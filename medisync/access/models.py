"""Access request records and their status values.

Records are immutable snapshots. The registry swaps in a new record on every
status transition, so a reference held by a caller never changes under it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

# Approved grants are valid for exactly this long after approval.
ACCESS_GRANT_TTL = timedelta(hours=24)


class AccessStatus(StrEnum):
    """Lifecycle status of an access request."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (AccessStatus.DENIED, AccessStatus.EXPIRED)


@dataclass(frozen=True)
class Party:
    """A doctor or patient taking part in an access request."""

    id: str
    name: str


@dataclass(frozen=True)
class AccessRequest:
    """One doctor's request to view one patient's documents."""

    id: str
    doctor_id: str
    doctor_name: str
    patient_id: str
    patient_name: str
    request_date: datetime
    reason: str
    documents: tuple[str, ...] = ()
    status: AccessStatus = AccessStatus.PENDING
    approval_date: datetime | None = None
    expiry_date: datetime | None = None

    def is_live(self, now: datetime) -> bool:
        """Return True while an approved grant is inside its validity window.

        Checks the expiry timestamp directly; the status label may lag behind
        until the next sweep.
        """
        return (
            self.status == AccessStatus.APPROVED
            and self.expiry_date is not None
            and self.expiry_date > now
        )

    def time_remaining(self, now: datetime) -> timedelta | None:
        """Time left on an approved grant, clamped at zero. None otherwise."""
        if self.status != AccessStatus.APPROVED or self.expiry_date is None:
            return None
        return max(self.expiry_date - now, timedelta(0))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "doctor_id": self.doctor_id,
            "doctor_name": self.doctor_name,
            "patient_id": self.patient_id,
            "patient_name": self.patient_name,
            "request_date": self.request_date.isoformat(),
            "status": str(self.status),
            "approval_date": self.approval_date.isoformat() if self.approval_date else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "reason": self.reason,
            "documents": list(self.documents),
        }


def format_time_remaining(remaining: timedelta) -> str:
    """Render a grant's remaining time the way the portals display it."""
    if remaining <= timedelta(0):
        return "Expired"
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    return f"{minutes}m remaining"
