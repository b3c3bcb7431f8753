"""Patient document access gate.

GET /api/v1/patients/{patient_id}/access    - Does the calling doctor hold a live grant?
GET /api/v1/patients/{patient_id}/documents - Labels the doctor may currently view

Document-serving routes must depend on require_document_access() before
returning any patient content:

    @router.get("/{patient_id}/documents/{label}")
    async def download(
        patient_id: str,
        label: str,
        doctor: Actor = Depends(require_document_access),
    ): ...
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from medisync.access.models import format_time_remaining
from medisync.access.registry import DocumentAccessRegistry
from medisync.api.dependencies import get_registry
from medisync.api.schemas import AccessCheckResponse
from medisync.auth.dependencies import Actor, ActorRole, require_role

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/patients", tags=["patients"])


async def require_document_access(
    patient_id: str,
    actor: Actor = Depends(require_role(ActorRole.DOCTOR)),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> Actor:
    """Allow the request through only while the doctor's grant is live."""
    if not registry.has_active_access(actor.id, patient_id):
        log.warning("documents.access_denied", patient_id=patient_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No active access grant for this patient",
        )
    return actor


@router.get("/{patient_id}/access", response_model=AccessCheckResponse)
async def check_access(
    patient_id: str,
    actor: Actor = Depends(require_role(ActorRole.DOCTOR)),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> AccessCheckResponse:
    grant = registry.active_grant(actor.id, patient_id)
    if grant is None:
        return AccessCheckResponse(doctor_id=actor.id, patient_id=patient_id, has_access=False)

    remaining = grant.time_remaining(registry.now())
    return AccessCheckResponse(
        doctor_id=actor.id,
        patient_id=patient_id,
        has_access=True,
        request_id=grant.id,
        expires_at=grant.expiry_date,
        time_remaining=format_time_remaining(remaining) if remaining is not None else None,
    )


@router.get("/{patient_id}/documents", response_model=list[str])
async def list_granted_documents(
    patient_id: str,
    actor: Actor = Depends(require_document_access),
    registry: DocumentAccessRegistry = Depends(get_registry),
) -> list[str]:
    """Document labels covered by the doctor's live grants for this patient."""
    now = registry.now()
    labels: dict[str, None] = {}
    for request in registry.list_requests_for_doctor(actor.id):
        if request.patient_id == patient_id and request.is_live(now):
            labels.update(dict.fromkeys(request.documents))
    return list(labels)
