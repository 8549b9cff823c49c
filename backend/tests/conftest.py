"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- A temporary SQLite database (aiosqlite) with the full schema
- Session makers and a seeding helper for the source tables
- HTTP client for API testing with stubbed authentication
- Row builders for the pure pipeline stages
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from clinic_history import models  # noqa: F401
from clinic_history.auth import verify_bearer_token
from clinic_history.database import Base, get_session_maker
from clinic_history.main import app
from clinic_history.models import (
    Appointment,
    Billing,
    Consultation,
    LabResult,
    MedicalAccessGrant,
    NurseQueueEntry,
    Patient,
    Prescription,
    PrescriptionItem,
    UnregisteredPatient,
    User,
)
from clinic_history.repositories.rows import AppointmentRow, ConsultationRow

DOCTOR_ID = "doctor-1"
OTHER_DOCTOR_ID = "doctor-2"
NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


async def stub_verify_bearer_token() -> str:
    """Stub auth dependency that returns a fixed clinician ID."""
    return DOCTOR_ID


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session maker bound to the test database."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """Session used for seeding."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def statement_log(test_engine) -> list[str]:
    """Record every SQL statement executed against the test engine."""
    statements: list[str] = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(test_engine.sync_engine, "before_cursor_execute", before_cursor_execute)
    yield statements
    event.remove(test_engine.sync_engine, "before_cursor_execute", before_cursor_execute)


class Seeder:
    """Inserts source rows with sensible defaults."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.commit()
        return obj

    async def doctor(self, doctor_id: str = DOCTOR_ID, name: str | None = "Dra. Ana Pérez") -> User:
        return await self._add(User(id=doctor_id, name=name, email=f"{doctor_id}@clinic.test"))

    async def unregistered(self, identification: str | None = None, **kwargs) -> UnregisteredPatient:
        kwargs.setdefault("first_name", "Walk")
        kwargs.setdefault("last_name", "In")
        return await self._add(UnregisteredPatient(identification=identification, **kwargs))

    async def patient(self, **kwargs) -> Patient:
        kwargs.setdefault("first_name", "Maria")
        kwargs.setdefault("last_name", "Lopez")
        return await self._add(Patient(**kwargs))

    async def appointment(self, patient_id=None, doctor_id: str = DOCTOR_ID, **kwargs) -> Appointment:
        return await self._add(Appointment(patient_id=patient_id, doctor_id=doctor_id, **kwargs))

    async def consultation(self, patient_id=None, doctor_id: str = DOCTOR_ID, **kwargs) -> Consultation:
        return await self._add(Consultation(patient_id=patient_id, doctor_id=doctor_id, **kwargs))

    async def prescription(self, patient_id=None, doctor_id: str = DOCTOR_ID, items=(), **kwargs) -> Prescription:
        prescription = Prescription(patient_id=patient_id, doctor_id=doctor_id, **kwargs)
        prescription.items = [PrescriptionItem(position=i, **item) for i, item in enumerate(items)]
        return await self._add(prescription)

    async def lab_result(self, patient_id=None, **kwargs) -> LabResult:
        return await self._add(LabResult(patient_id=patient_id, **kwargs))

    async def billing(self, appointment_id, **kwargs) -> Billing:
        kwargs.setdefault("total", Decimal("45.00"))
        kwargs.setdefault("currency", "USD")
        return await self._add(Billing(appointment_id=appointment_id, **kwargs))

    async def grant(self, patient_id, doctor_id: str = DOCTOR_ID, **kwargs) -> MedicalAccessGrant:
        kwargs.setdefault("expires_at", NOW + timedelta(hours=1))
        return await self._add(MedicalAccessGrant(patient_id=patient_id, doctor_id=doctor_id, **kwargs))

    async def queue_entry(self, queue_date: date, patient_id=None, **kwargs) -> NurseQueueEntry:
        return await self._add(NurseQueueEntry(queue_date=queue_date, patient_id=patient_id, **kwargs))


@pytest_asyncio.fixture
async def seed(db_session) -> Seeder:
    """Seeding helper bound to the test database."""
    return Seeder(db_session)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(session_maker):
    """Async test client for the app with test database and stubbed auth."""
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[verify_bearer_token] = stub_verify_bearer_token

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.pop(get_session_maker, None)
    app.dependency_overrides.pop(verify_bearer_token, None)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authentication headers for API requests."""
    return {"Authorization": "Bearer test-token"}


# =============================================================================
# Row Builders
# =============================================================================


@pytest.fixture
def make_appointment():
    """Build an AppointmentRow with defaults."""

    def _make(**overrides) -> AppointmentRow:
        values = dict(
            id=uuid.uuid4(),
            patient_id=None,
            unregistered_patient_id=None,
            doctor_id=DOCTOR_ID,
            organization_id=None,
            scheduled_at=None,
            duration_minutes=None,
            status=None,
            location=None,
            reason=None,
            notes=None,
            created_at=None,
        )
        values.update(overrides)
        return AppointmentRow(**values)

    return _make


@pytest.fixture
def make_consultation():
    """Build a ConsultationRow with defaults."""

    def _make(**overrides) -> ConsultationRow:
        values = dict(
            id=uuid.uuid4(),
            appointment_id=None,
            patient_id=None,
            unregistered_patient_id=None,
            doctor_id=DOCTOR_ID,
            organization_id=None,
            chief_complaint=None,
            diagnosis=None,
            icd11_code=None,
            icd11_title=None,
            notes=None,
            vitals=None,
            started_at=None,
            ended_at=None,
            created_at=None,
        )
        values.update(overrides)
        return ConsultationRow(**values)

    return _make
