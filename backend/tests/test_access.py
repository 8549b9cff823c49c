"""Tests for access scope resolution and grant lookups."""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from clinic_history.repositories import AccessGrantRepository, EncounterRepository
from clinic_history.repositories.rows import LabResultRow
from clinic_history.schemas.history import RegisteredPatient, UnregisteredPatient
from clinic_history.services.access import (
    FullAccess,
    NoAccess,
    OwnedOnly,
    check_grant,
    resolve_access_scope,
    scope_label,
    visible_lab_results,
)
from clinic_history.services.identity import patient_keys
from tests.conftest import DOCTOR_ID, NOW, OTHER_DOCTOR_ID


def _lab(consultation_id=None) -> LabResultRow:
    return LabResultRow(
        id=uuid.uuid4(),
        patient_id=None,
        unregistered_patient_id=None,
        consultation_id=consultation_id,
        result_type=None,
        result=None,
        attachments=None,
        is_critical=False,
        reported_at=None,
        created_at=None,
    )


class TestScopes:
    """Tests for scope values."""

    def test_admits(self):
        assert FullAccess().admits("anyone")
        assert not NoAccess().admits(DOCTOR_ID)
        assert OwnedOnly(DOCTOR_ID).admits(DOCTOR_ID)
        assert not OwnedOnly(DOCTOR_ID).admits(OTHER_DOCTOR_ID)

    def test_owner_filter(self):
        assert OwnedOnly(DOCTOR_ID).owner_filter == DOCTOR_ID
        assert FullAccess().owner_filter is None

    def test_labels(self):
        assert scope_label(FullAccess()) == "full_access"
        assert scope_label(OwnedOnly(DOCTOR_ID)) == "owned_only"


class TestVisibleLabResults:
    """Tests for lab visibility under each scope."""

    def test_owned_only_hides_labs_of_invisible_consultations(self):
        mine, theirs = uuid.uuid4(), uuid.uuid4()
        labs = [_lab(mine), _lab(theirs), _lab(None)]

        visible = visible_lab_results(labs, OwnedOnly(DOCTOR_ID), {mine})

        assert [lab.consultation_id for lab in visible] == [mine, None]

    def test_full_and_no_access(self):
        labs = [_lab(uuid.uuid4()), _lab(None)]
        assert visible_lab_results(labs, FullAccess(), set()) == labs
        assert visible_lab_results(labs, NoAccess(), set()) == []


class TestResolveAccessScope:
    """Tests for resolve_access_scope with mocked repositories."""

    @pytest.fixture
    def grants(self):
        return AsyncMock(spec=AccessGrantRepository)

    @pytest.fixture
    def encounters(self):
        return AsyncMock(spec=EncounterRepository)

    @pytest.mark.asyncio
    async def test_grant_gives_full_access(self, grants, encounters):
        grants.check_full_access_grant.return_value = True
        patient = RegisteredPatient(id=uuid.uuid4())

        scope = await resolve_access_scope(grants, encounters, DOCTOR_ID, patient, NOW)

        assert scope == FullAccess()
        encounters.has_owned_encounter.assert_not_called()

    @pytest.mark.asyncio
    async def test_ownership_gives_owned_only(self, grants, encounters):
        grants.check_full_access_grant.return_value = False
        encounters.has_owned_encounter.return_value = True

        scope = await resolve_access_scope(grants, encounters, DOCTOR_ID, RegisteredPatient(id=uuid.uuid4()), NOW)

        assert scope == OwnedOnly(DOCTOR_ID)

    @pytest.mark.asyncio
    async def test_neither_gives_no_access(self, grants, encounters):
        grants.check_full_access_grant.return_value = False
        encounters.has_owned_encounter.return_value = False

        scope = await resolve_access_scope(grants, encounters, DOCTOR_ID, RegisteredPatient(id=uuid.uuid4()), NOW)

        assert scope == NoAccess()

    @pytest.mark.asyncio
    async def test_grant_check_failure_fails_closed(self, grants, encounters):
        grants.check_full_access_grant.side_effect = OperationalError("SELECT", {}, Exception("down"))
        encounters.has_owned_encounter.return_value = False

        scope = await resolve_access_scope(grants, encounters, DOCTOR_ID, RegisteredPatient(id=uuid.uuid4()), NOW)

        assert scope == NoAccess()

    @pytest.mark.asyncio
    async def test_unregistered_patient_skips_grant_check(self, grants, encounters):
        encounters.has_owned_encounter.return_value = True
        patient = UnregisteredPatient(id=uuid.uuid4())

        scope = await resolve_access_scope(grants, encounters, DOCTOR_ID, patient, NOW)

        assert scope == OwnedOnly(DOCTOR_ID)
        grants.check_full_access_grant.assert_not_called()
        encounters.has_owned_encounter.assert_awaited_once_with(patient_keys(patient), DOCTOR_ID)


class TestGrantRepository:
    """Tests for grant validity against the database."""

    @pytest.mark.asyncio
    async def test_valid_grant(self, seed, db_session):
        patient_id = uuid.uuid4()
        await seed.grant(patient_id)

        assert await check_grant(AccessGrantRepository(db_session), DOCTOR_ID, patient_id, NOW)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "grant_kwargs",
        [
            {"expires_at": NOW - timedelta(minutes=1)},
            {"is_active": False},
            {"revoked_at": NOW - timedelta(minutes=5)},
        ],
    )
    async def test_invalid_grants(self, seed, db_session, grant_kwargs):
        patient_id = uuid.uuid4()
        await seed.grant(patient_id, **grant_kwargs)

        assert not await check_grant(AccessGrantRepository(db_session), DOCTOR_ID, patient_id, NOW)

    @pytest.mark.asyncio
    async def test_grant_without_expiry_is_valid(self, seed, db_session):
        patient_id = uuid.uuid4()
        await seed.grant(patient_id, expires_at=None)

        assert await check_grant(AccessGrantRepository(db_session), DOCTOR_ID, patient_id, NOW)

    @pytest.mark.asyncio
    async def test_grant_is_per_clinician(self, seed, db_session):
        patient_id = uuid.uuid4()
        await seed.grant(patient_id, doctor_id=OTHER_DOCTOR_ID)

        assert not await check_grant(AccessGrantRepository(db_session), DOCTOR_ID, patient_id, NOW)

    @pytest.mark.asyncio
    async def test_granted_patient_ids_batched(self, seed, db_session):
        granted, expired, other = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        await seed.grant(granted)
        await seed.grant(expired, expires_at=NOW - timedelta(days=1))

        ids = await AccessGrantRepository(db_session).granted_patient_ids(
            DOCTOR_ID, [granted, expired, other], NOW
        )

        assert ids == {granted}
