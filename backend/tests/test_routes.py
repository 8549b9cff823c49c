"""Tests for the patient API routes."""

import uuid
from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from clinic_history.database import get_db, get_session_maker
from clinic_history.main import app
from clinic_history.repositories import EncounterRepository
from tests.conftest import DOCTOR_ID, OTHER_DOCTOR_ID

UTC = timezone.utc


@pytest.fixture
async def unauthenticated_client(session_maker):
    """Client with the real bearer-token dependency."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_session_maker, None)
    app.dependency_overrides.pop(get_db, None)


class TestHistoryEndpoint:
    """Tests for GET /api/patients/{id}/history."""

    @pytest.mark.asyncio
    async def test_returns_camel_case_history(self, client, auth_headers, seed):
        await seed.doctor(DOCTOR_ID, "Dra. Ana Pérez")
        patient = await seed.patient()
        appointment = await seed.appointment(
            patient.id, scheduled_at=datetime(2024, 1, 10, 9, 0, tzinfo=UTC), reason="control"
        )
        await seed.consultation(patient.id, appointment_id=appointment.id, diagnosis="flu", icd11_code="1E32")

        response = await client.get(f"/api/patients/{patient.id}/history", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["access"] == "owned_only"
        assert data["patient"] == {"kind": "registered", "id": str(patient.id), "linkedUnregisteredId": None}
        assert data["summary"]["consultationsCount"] == 1
        assert data["labResults"] == []

        [encounter] = data["consultations"]
        assert encounter["kind"] == "Merged"
        assert encounter["appointmentId"] == str(appointment.id)
        assert encounter["reasonOrComplaint"] == "control"
        assert encounter["diagnosis"] == "flu"
        assert encounter["icd11Code"] == "1E32"
        assert encounter["durationMinutes"] == 30
        assert encounter["doctor"] == {"id": DOCTOR_ID, "name": "Dra. Ana Pérez"}
        assert encounter["effectiveDate"].startswith("2024-01-10T09:00:00")

    @pytest.mark.asyncio
    async def test_unknown_patient_is_404(self, client, auth_headers):
        response = await client.get(f"/api/patients/{uuid.uuid4()}/history", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Patient not found"

    @pytest.mark.asyncio
    async def test_no_access_is_403(self, client, auth_headers, seed):
        patient = await seed.patient()
        await seed.consultation(patient.id, doctor_id=OTHER_DOCTOR_ID)

        response = await client.get(f"/api/patients/{patient.id}/history", headers=auth_headers)

        assert response.status_code == 403
        assert "access grant" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_grant_gives_full_access(self, client, auth_headers, seed):
        patient = await seed.patient()
        await seed.consultation(patient.id, doctor_id=OTHER_DOCTOR_ID)
        await seed.grant(patient.id, expires_at=None)

        response = await client.get(f"/api/patients/{patient.id}/history", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["access"] == "full_access"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(self, client, auth_headers, seed):
        patient = await seed.patient()
        await seed.consultation(patient.id)

        error = OperationalError("SELECT", {}, Exception("timeout"))
        with patch.object(EncounterRepository, "fetch_lab_results", side_effect=error):
            response = await client.get(f"/api/patients/{patient.id}/history", headers=auth_headers)

        assert response.status_code == 502
        assert "lab_results" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_invalid_uuid_is_422(self, client, auth_headers):
        response = await client.get("/api/patients/not-a-uuid/history", headers=auth_headers)
        assert response.status_code == 422


class TestListEndpoint:
    """Tests for GET /api/patients."""

    @pytest.mark.asyncio
    async def test_list_with_summary(self, client, auth_headers, seed):
        patient = await seed.patient(first_name="Lucia")
        await seed.consultation(patient.id)

        response = await client.get(
            "/api/patients",
            params={"include_summary": "true", "per_page": 10},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["meta"] == {"page": 1, "perPage": 10, "total": 1}
        [item] = data["data"]
        assert item["firstName"] == "Lucia"
        assert item["summary"]["consultationsCount"] == 1

    @pytest.mark.asyncio
    async def test_list_without_summary(self, client, auth_headers, seed):
        await seed.patient()

        response = await client.get("/api/patients", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"][0]["summary"] is None

    @pytest.mark.asyncio
    async def test_page_must_be_positive(self, client, auth_headers):
        response = await client.get("/api/patients", params={"page": 0}, headers=auth_headers)
        assert response.status_code == 422


class TestQueueHistoryEndpoint:
    """Tests for GET /api/patients/{id}/queue-history."""

    @pytest.mark.asyncio
    async def test_queue_history(self, client, auth_headers, seed):
        walk_in = await seed.unregistered("0101")
        await seed.consultation(unregistered_patient_id=walk_in.id)
        await seed.queue_entry(date(2024, 6, 1), unregistered_patient_id=walk_in.id, status="completed")

        response = await client.get(f"/api/patients/{walk_in.id}/queue-history", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["patient"]["kind"] == "unregistered"
        assert data["visits"][0]["queueDate"] == "2024-06-01"

    @pytest.mark.asyncio
    async def test_denied_like_history(self, client, auth_headers, seed):
        patient = await seed.patient()
        await seed.consultation(patient.id, doctor_id=OTHER_DOCTOR_ID)
        await seed.queue_entry(date(2024, 6, 1), patient.id, status="completed", nurse_notes="Sensitive note")

        history = await client.get(f"/api/patients/{patient.id}/history", headers=auth_headers)
        queue = await client.get(f"/api/patients/{patient.id}/queue-history", headers=auth_headers)

        assert history.status_code == 403
        assert queue.status_code == 403
        assert queue.json()["detail"] == history.json()["detail"]
        assert "Sensitive note" not in queue.text

    @pytest.mark.asyncio
    async def test_unknown_patient_is_404(self, client, auth_headers):
        response = await client.get(f"/api/patients/{uuid.uuid4()}/queue-history", headers=auth_headers)

        assert response.status_code == 404


class TestAuthRequired:
    """All patient routes require a bearer token."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        ["/api/patients", f"/api/patients/{uuid.uuid4()}/history", f"/api/patients/{uuid.uuid4()}/queue-history"],
    )
    async def test_missing_token_is_401(self, unauthenticated_client, path):
        response = await unauthenticated_client.get(path)

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authentication token"


class TestApp:
    """Tests for app-level endpoints and middleware."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["name"] == "Clinic History API"

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        response = await client.get("/health")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Cache-Control"] == "no-store"
