"""Patient roster and history API routes."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_history.auth import verify_bearer_token
from clinic_history.database import get_session_maker
from clinic_history.exceptions import AccessDeniedError, PatientNotFoundError, UpstreamFetchError
from clinic_history.schemas import PatientHistoryResponse, PatientListResponse, QueueHistoryResponse
from clinic_history.services.history import PatientHistoryService

router = APIRouter(prefix="/patients", tags=["patients"])


def get_history_service(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> PatientHistoryService:
    return PatientHistoryService(session_maker)


def _upstream_error(e: UpstreamFetchError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Upstream source unavailable: {e.source}",
    )


def _access_denied() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="No encounter with this patient and no active access grant",
    )


@router.get("", response_model=PatientListResponse)
async def list_patients(
    service: PatientHistoryService = Depends(get_history_service),
    clinician_id: str = Depends(verify_bearer_token),
    page: int = Query(1, ge=1),
    per_page: int | None = Query(None, ge=1),
    q: str | None = None,
    gender: str | None = None,
    include_summary: bool = False,
) -> PatientListResponse:
    """List registered patients.

    Args:
        page: 1-based page number.
        per_page: Page size (capped by configuration).
        q: Search over name and identifier.
        gender: Exact gender filter.
        include_summary: Attach per-patient counters visible to the caller.

    Returns:
        Paginated patients with metadata.
    """
    try:
        return await service.list_patients(
            clinician_id,
            page=page,
            per_page=per_page,
            q=q,
            gender=gender,
            include_summary=include_summary,
        )
    except UpstreamFetchError as e:
        raise _upstream_error(e) from e


@router.get("/{patient_id}/history", response_model=PatientHistoryResponse)
async def get_patient_history(
    patient_id: uuid.UUID,
    service: PatientHistoryService = Depends(get_history_service),
    clinician_id: str = Depends(verify_bearer_token),
) -> PatientHistoryResponse:
    """Get the reconciled clinical history of a patient.

    Raises:
        HTTPException: 404 if the patient does not exist, 403 if the
            clinician has neither a grant nor an own encounter, 502 if a
            required source could not be read.
    """
    try:
        return await service.get_patient_history(patient_id, clinician_id)
    except PatientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found") from e
    except AccessDeniedError as e:
        raise _access_denied() from e
    except UpstreamFetchError as e:
        raise _upstream_error(e) from e


@router.get("/{patient_id}/queue-history", response_model=QueueHistoryResponse)
async def get_queue_history(
    patient_id: uuid.UUID,
    service: PatientHistoryService = Depends(get_history_service),
    clinician_id: str = Depends(verify_bearer_token),
) -> QueueHistoryResponse:
    """Get the latest attended nurse queue visits, one per day.

    Raises:
        HTTPException: 404, 403 or 502, as for the clinical history.
    """
    try:
        return await service.get_queue_history(patient_id, clinician_id)
    except PatientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found") from e
    except AccessDeniedError as e:
        raise _access_denied() from e
    except UpstreamFetchError as e:
        raise _upstream_error(e) from e
