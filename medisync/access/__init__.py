"""Doctor/patient document access requests.

Modules:
- models: AccessRequest records and AccessStatus values
- registry: DocumentAccessRegistry, the state machine and access check
- sweeper: periodic relabelling of lapsed grants
- events: change events for notification listeners
- errors: caller errors raised by the registry
"""

from __future__ import annotations

from medisync.access.errors import (
    AccessRequestError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from medisync.access.events import AccessEvent, AccessEventType
from medisync.access.models import (
    ACCESS_GRANT_TTL,
    AccessRequest,
    AccessStatus,
    Party,
    format_time_remaining,
)
from medisync.access.registry import DocumentAccessRegistry
from medisync.access.sweeper import ExpirySweeper

__all__ = [
    "ACCESS_GRANT_TTL",
    "AccessEvent",
    "AccessEventType",
    "AccessRequest",
    "AccessRequestError",
    "AccessStatus",
    "DocumentAccessRegistry",
    "ExpirySweeper",
    "InvalidStateError",
    "NotFoundError",
    "Party",
    "ValidationError",
    "format_time_remaining",
]
