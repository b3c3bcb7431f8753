"""Request / response schemas for the access API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from medisync.access.models import AccessRequest, AccessStatus, format_time_remaining


class CreateAccessRequest(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=128)
    patient_name: str = Field(..., min_length=1, max_length=256)
    reason: str = Field(
        ...,
        min_length=1,
        max_length=4096,
        description="Why the doctor needs the documents; shown to the patient",
    )
    documents: list[str] = Field(
        default_factory=list,
        description="Document labels requested. Empty means no specific documents.",
    )


class AccessRequestResponse(BaseModel):
    id: str
    doctor_id: str
    doctor_name: str
    patient_id: str
    patient_name: str
    request_date: datetime
    status: AccessStatus
    approval_date: datetime | None
    expiry_date: datetime | None
    reason: str
    documents: list[str]
    time_remaining: str | None = None

    @classmethod
    def from_request(cls, request: AccessRequest, now: datetime) -> AccessRequestResponse:
        remaining = request.time_remaining(now)
        return cls(
            id=request.id,
            doctor_id=request.doctor_id,
            doctor_name=request.doctor_name,
            patient_id=request.patient_id,
            patient_name=request.patient_name,
            request_date=request.request_date,
            status=request.status,
            approval_date=request.approval_date,
            expiry_date=request.expiry_date,
            reason=request.reason,
            documents=list(request.documents),
            time_remaining=format_time_remaining(remaining) if remaining is not None else None,
        )


class AccessCheckResponse(BaseModel):
    doctor_id: str
    patient_id: str
    has_access: bool
    request_id: str | None = None
    expires_at: datetime | None = None
    time_remaining: str | None = None
