"""Pydantic schemas for the patient roster."""

from datetime import date, datetime
from uuid import UUID

from clinic_history.schemas.base import CamelModel
from clinic_history.schemas.history import AggregateCounters


class PatientListItem(CamelModel):
    """Registered patient row, optionally with aggregate counters."""

    id: UUID
    first_name: str
    last_name: str
    identifier: str | None = None
    dob: date | None = None
    gender: str | None = None
    phone: str | None = None
    address: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    summary: AggregateCounters | None = None


class ListMeta(CamelModel):
    """Pagination metadata."""

    page: int
    per_page: int
    total: int


class PatientListResponse(CamelModel):
    """Paginated roster."""

    data: list[PatientListItem]
    meta: ListMeta
