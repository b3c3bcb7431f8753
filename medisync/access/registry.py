"""Document access registry: doctor requests, patient consent, 24h grants.

Workflow:
1. Doctor creates a request for a patient's documents (status PENDING)
2. Patient approves (APPROVED, valid for 24 hours) or denies (DENIED)
3. Approved grants lapse on their own; the periodic sweep relabels them
   EXPIRED for display

DENIED and EXPIRED are terminal. Access decisions must go through
has_active_access(), which compares expiry_date with the clock on every call
instead of trusting the status label.

Current: In-memory store (single process, non-persistent). Create one
registry at startup and hand it to every consumer.
"""

from __future__ import annotations

import itertools
import random
import string
import threading
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime

import structlog

from medisync.access.errors import InvalidStateError, NotFoundError, ValidationError
from medisync.access.events import AccessEvent, AccessEventListener, AccessEventType
from medisync.access.models import ACCESS_GRANT_TTL, AccessRequest, AccessStatus, Party

log = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def utc_now() -> datetime:
    return datetime.now(UTC)


def generate_request_id(now: datetime) -> str:
    """Build a request id of the form ``req_<epoch-ms>_<9 base-36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"req_{int(now.timestamp() * 1000)}_{suffix}"


def _require(value: str, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field)
    return cleaned


class DocumentAccessRegistry:
    """Owns all access requests and enforces their state machine.

    Every mutation, and the expiry sweep, runs under one lock, so callers
    observe operations in call order. Each transition is recorded as an
    AccessEvent with a sequence number taken under that lock. Listeners are
    called after the lock is released, in sequence order, even when several
    threads mutate the registry.
    """

    def __init__(
        self,
        *,
        clock: Clock = utc_now,
        id_factory: Callable[[datetime], str] = generate_request_id,
    ) -> None:
        """Initialize an empty registry.

        Args:
            clock: Returns the current tz-aware time
            id_factory: Builds a request id from the creation time
        """
        self._clock = clock
        self._id_factory = id_factory
        # request_id -> AccessRequest, in insertion order
        self._requests: dict[str, AccessRequest] = {}
        self._lock = threading.Lock()
        self._sweep_guard = threading.Lock()
        self._listeners: list[AccessEventListener] = []
        # Events recorded under _lock, delivered in order by _flush()
        self._outbox: deque[AccessEvent] = deque()
        self._sequence = itertools.count(1)
        self._delivery_lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    # ------------------------------------------------------------------ #
    # Listeners
    # ------------------------------------------------------------------ #

    def add_listener(self, listener: AccessEventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: AccessEventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _record(
        self,
        event_type: AccessEventType,
        requests: Iterable[AccessRequest],
        now: datetime,
    ) -> None:
        # Caller holds self._lock
        for request in requests:
            self._outbox.append(
                AccessEvent(
                    type=event_type,
                    request=request,
                    occurred_at=now,
                    sequence=next(self._sequence),
                )
            )

    def _flush(self) -> None:
        """Deliver recorded events to listeners in sequence order.

        Whichever thread holds the delivery lock drains events recorded by
        other threads too, so no listener sees a later transition before an
        earlier one.
        """
        with self._delivery_lock:
            while True:
                with self._lock:
                    if not self._outbox:
                        return
                    event = self._outbox.popleft()
                    listeners = list(self._listeners)

                for listener in listeners:
                    try:
                        listener(event)
                    except Exception:
                        # Notifications are fire-and-forget
                        log.exception(
                            "access_registry.listener_failed",
                            event_type=str(event.type),
                            request_id=event.request.id,
                            sequence=event.sequence,
                        )

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def create_request(
        self,
        doctor: Party,
        patient: Party,
        reason: str,
        documents: Iterable[str] = (),
    ) -> AccessRequest:
        """Record a new PENDING request from a doctor for a patient's documents.

        Args:
            doctor: Requesting doctor (id and name required)
            patient: Patient whose documents are requested (id and name required)
            reason: Free-text justification shown to the patient
            documents: Document labels requested; may be empty

        Returns:
            The new request

        Raises:
            ValidationError: If an identity field is empty
        """
        doctor_id = _require(doctor.id, "doctor.id")
        doctor_name = _require(doctor.name, "doctor.name")
        patient_id = _require(patient.id, "patient.id")
        patient_name = _require(patient.name, "patient.name")
        # Keep first-seen order, drop duplicates
        docs = tuple(dict.fromkeys(documents))

        with self._lock:
            now = self._clock()
            request_id = self._id_factory(now)
            while request_id in self._requests:
                request_id = self._id_factory(now)

            request = AccessRequest(
                id=request_id,
                doctor_id=doctor_id,
                doctor_name=doctor_name,
                patient_id=patient_id,
                patient_name=patient_name,
                request_date=now,
                reason=reason,
                documents=docs,
            )
            self._requests[request_id] = request
            self._record(AccessEventType.CREATED, [request], now)

        log.info(
            "access_registry.request_created",
            request_id=request_id,
            doctor_id=doctor_id,
            patient_id=patient_id,
            document_count=len(docs),
        )
        self._flush()
        return request

    def approve_request(self, request_id: str) -> AccessRequest:
        """Approve a PENDING request, opening a 24 hour access window.

        Raises:
            NotFoundError: If no request has this id
            InvalidStateError: If the request is not PENDING
        """
        with self._lock:
            request = self._get_pending(request_id, attempted="approve")
            now = self._clock()
            updated = replace(
                request,
                status=AccessStatus.APPROVED,
                approval_date=now,
                expiry_date=now + ACCESS_GRANT_TTL,
            )
            self._requests[request_id] = updated
            self._record(AccessEventType.APPROVED, [updated], now)

        log.info(
            "access_registry.request_approved",
            request_id=request_id,
            doctor_id=updated.doctor_id,
            patient_id=updated.patient_id,
            expiry_date=updated.expiry_date.isoformat(),
        )
        self._flush()
        return updated

    def deny_request(self, request_id: str) -> AccessRequest:
        """Deny a PENDING request. approval_date records when the patient responded.

        Raises:
            NotFoundError: If no request has this id
            InvalidStateError: If the request is not PENDING
        """
        with self._lock:
            request = self._get_pending(request_id, attempted="deny")
            now = self._clock()
            updated = replace(request, status=AccessStatus.DENIED, approval_date=now)
            self._requests[request_id] = updated
            self._record(AccessEventType.DENIED, [updated], now)

        log.info(
            "access_registry.request_denied",
            request_id=request_id,
            doctor_id=updated.doctor_id,
            patient_id=updated.patient_id,
        )
        self._flush()
        return updated

    def expire_stale(self) -> list[AccessRequest]:
        """Relabel APPROVED requests whose window has closed as EXPIRED.

        Idempotent. If another sweep is in progress this call does nothing.

        Returns:
            Requests expired by this call
        """
        if not self._sweep_guard.acquire(blocking=False):
            log.debug("access_registry.sweep_skipped", reason="already_running")
            return []

        try:
            expired: list[AccessRequest] = []
            with self._lock:
                now = self._clock()
                for request_id, request in self._requests.items():
                    if (
                        request.status == AccessStatus.APPROVED
                        and request.expiry_date is not None
                        and request.expiry_date <= now
                    ):
                        updated = replace(request, status=AccessStatus.EXPIRED)
                        self._requests[request_id] = updated
                        expired.append(updated)
                self._record(AccessEventType.EXPIRED, expired, now)
        finally:
            self._sweep_guard.release()

        if expired:
            log.info("access_registry.requests_expired", count=len(expired))
            self._flush()
        return expired

    def _get_pending(self, request_id: str, *, attempted: str) -> AccessRequest:
        # Caller holds self._lock
        request = self._requests.get(request_id)
        if request is None:
            log.warning(
                f"access_registry.{attempted}_failed",
                request_id=request_id,
                reason="not_found",
            )
            raise NotFoundError(request_id)
        if request.status != AccessStatus.PENDING:
            terminal = request.status.is_terminal
            log.warning(
                f"access_registry.{attempted}_failed",
                request_id=request_id,
                reason="terminal" if terminal else "not_pending",
                current_status=str(request.status),
            )
            raise InvalidStateError(
                request_id, str(request.status), attempted, terminal=terminal
            )
        return request

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_request(self, request_id: str) -> AccessRequest:
        """Return a request by id.

        Raises:
            NotFoundError: If no request has this id
        """
        with self._lock:
            request = self._requests.get(request_id)
        if request is None:
            raise NotFoundError(request_id)
        return request

    def list_requests_for_doctor(
        self,
        doctor_id: str,
        status: AccessStatus | None = None,
    ) -> list[AccessRequest]:
        """All requests made by a doctor, oldest first."""
        with self._lock:
            return [
                r
                for r in self._requests.values()
                if r.doctor_id == doctor_id and (status is None or r.status == status)
            ]

    def list_requests_for_patient(
        self,
        patient_id: str,
        status: AccessStatus | None = None,
    ) -> list[AccessRequest]:
        """All requests addressed to a patient, oldest first."""
        with self._lock:
            return [
                r
                for r in self._requests.values()
                if r.patient_id == patient_id and (status is None or r.status == status)
            ]

    def has_active_access(self, doctor_id: str, patient_id: str) -> bool:
        """Return True iff the doctor holds a live grant for the patient.

        This is the only authorization check document-serving code may rely on.
        """
        return self.active_grant(doctor_id, patient_id) is not None

    def active_grant(self, doctor_id: str, patient_id: str) -> AccessRequest | None:
        """Return the live grant with the latest expiry, if any."""
        with self._lock:
            now = self._clock()
            live = [
                r
                for r in self._requests.values()
                if r.doctor_id == doctor_id and r.patient_id == patient_id and r.is_live(now)
            ]
        if not live:
            return None
        return max(live, key=lambda r: r.expiry_date)

    def now(self) -> datetime:
        """Current time according to the registry's clock."""
        return self._clock()
