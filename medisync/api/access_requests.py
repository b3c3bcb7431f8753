"""Document access request endpoints.

POST   /api/v1/access-requests                 - Doctor asks for a patient's documents
GET    /api/v1/access-requests                 - Caller's requests (doctor or patient side)
GET    /api/v1/access-requests/{id}            - One request, visible to its two parties
POST   /api/v1/access-requests/{id}/approve    - Patient grants 24 hour access
POST   /api/v1/access-requests/{id}/deny       - Patient refuses access

Only the patient a request is addressed to may approve or deny it.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from medisync.access.errors import InvalidStateError, NotFoundError, ValidationError
from medisync.access.models import AccessRequest, AccessStatus, Party
from medisync.access.registry import DocumentAccessRegistry
from medisync.api.dependencies import get_registry
from medisync.api.schemas import AccessRequestResponse, CreateAccessRequest
from medisync.auth.dependencies import Actor, ActorRole, get_current_actor, require_role

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/access-requests", tags=["access-requests"])


def _not_found(request_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Access request {request_id} not found",
    )


def _load_for_party(
    registry: DocumentAccessRegistry,
    request_id: str,
    actor: Actor,
) -> AccessRequest:
    """Fetch a request the actor is party to. Others get 404, not 403."""
    try:
        request = registry.get_request(request_id)
    except NotFoundError:
        raise _not_found(request_id)

    if actor.id not in (request.doctor_id, request.patient_id):
        raise _not_found(request_id)
    return request


@router.post("", response_model=AccessRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_access_request(
    body: CreateAccessRequest,
    actor: Actor = Depends(require_role(ActorRole.DOCTOR)),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> AccessRequestResponse:
    """Create a pending request on behalf of the calling doctor."""
    try:
        request = registry.create_request(
            doctor=actor.as_party(),
            patient=Party(id=body.patient_id, name=body.patient_name),
            reason=body.reason,
            documents=body.documents,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )

    return AccessRequestResponse.from_request(request, registry.now())


@router.get("", response_model=list[AccessRequestResponse])
async def list_access_requests(
    status_filter: AccessStatus | None = Query(default=None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> list[AccessRequestResponse]:
    """List the caller's requests in creation order (oldest first).

    Doctors see requests they made; patients see requests addressed to them.
    """
    if actor.role == ActorRole.DOCTOR:
        requests = registry.list_requests_for_doctor(actor.id, status=status_filter)
    else:
        requests = registry.list_requests_for_patient(actor.id, status=status_filter)

    log.info("access_requests.list", count=len(requests), status=status_filter)

    now = registry.now()
    return [AccessRequestResponse.from_request(r, now) for r in requests]


@router.get("/{request_id}", response_model=AccessRequestResponse)
async def get_access_request(
    request_id: str,
    actor: Actor = Depends(get_current_actor),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> AccessRequestResponse:
    request = _load_for_party(registry, request_id, actor)
    return AccessRequestResponse.from_request(request, registry.now())


@router.post("/{request_id}/approve", response_model=AccessRequestResponse)
async def approve_access_request(
    request_id: str,
    actor: Actor = Depends(require_role(ActorRole.PATIENT)),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> AccessRequestResponse:
    """Approve a pending request addressed to the calling patient."""
    return _respond(registry, request_id, actor, approve=True)


@router.post("/{request_id}/deny", response_model=AccessRequestResponse)
async def deny_access_request(
    request_id: str,
    actor: Actor = Depends(require_role(ActorRole.PATIENT)),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> AccessRequestResponse:
    """Deny a pending request addressed to the calling patient."""
    return _respond(registry, request_id, actor, approve=False)


def _respond(
    registry: DocumentAccessRegistry,
    request_id: str,
    actor: Actor,
    *,
    approve: bool,
) -> AccessRequestResponse:
    request = _load_for_party(registry, request_id, actor)
    if request.patient_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the patient can respond to this request",
        )

    try:
        if approve:
            updated = registry.approve_request(request_id)
        else:
            updated = registry.deny_request(request_id)
    except NotFoundError:
        raise _not_found(request_id)
    except InvalidStateError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        )

    return AccessRequestResponse.from_request(updated, registry.now())
