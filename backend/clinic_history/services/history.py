"""Patient history projection service.

Orchestrates the pipeline for one patient and for a page of patients:

    identity -> access scope -> parallel fetches -> reconcile -> enrich
    -> order -> summarize

Each concurrent fetch opens its own session from the session maker, since an
``AsyncSession`` cannot be shared across tasks. Required fetches that fail
abort the request with ``UpstreamFetchError``; enrichment fetches (billing,
doctor names) degrade to empty results.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic_history.config import settings
from clinic_history.exceptions import AccessDeniedError, UpstreamFetchError
from clinic_history.repositories import (
    AccessGrantRepository,
    EncounterRepository,
    PatientRepository,
    QueueRepository,
)
from clinic_history.repositories.rows import (
    AppointmentRow,
    ConsultationRow,
    LabResultRow,
    PrescriptionRow,
)
from clinic_history.schemas.history import (
    AggregateCounters,
    BillingSnapshot,
    PatientHistoryResponse,
    PatientRef,
)
from clinic_history.schemas.patients import ListMeta, PatientListItem, PatientListResponse
from clinic_history.schemas.queue import QueueHistoryResponse
from clinic_history.services.access import (
    AccessScope,
    FullAccess,
    NoAccess,
    OwnedOnly,
    resolve_access_scope,
    scope_label,
    visible_lab_results,
)
from clinic_history.services.aggregator import PatientProjection, summarize, summarize_page
from clinic_history.services.enricher import (
    attach_billing,
    attach_doctor_names,
    build_billing_index,
    collect_doctor_ids,
    normalize_lab_result,
    normalize_prescription,
)
from clinic_history.services.identity import (
    PatientKeyIndex,
    normalize_patient_identity,
    patient_keys,
    resolve_roster_identities,
)
from clinic_history.services.ordering import order_encounters, order_lab_results, order_prescriptions
from clinic_history.services.queue_history import dedupe_queue_visits
from clinic_history.services.reconciler import reconcile

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionCall = Callable[[AsyncSession], Awaitable[T]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceRows:
    """Raw rows for one patient (or one page of patients) before reconciliation."""

    def __init__(
        self,
        appointments: list[AppointmentRow] | None = None,
        consultations: list[ConsultationRow] | None = None,
        prescriptions: list[PrescriptionRow] | None = None,
        lab_results: list[LabResultRow] | None = None,
    ):
        self.appointments = appointments or []
        self.consultations = consultations or []
        self.prescriptions = prescriptions or []
        self.lab_results = lab_results or []


class PatientHistoryService:
    """Builds access-scoped clinical timelines and summary counters.

    Example:
        service = PatientHistoryService(async_session_maker)
        history = await service.get_patient_history(patient_id, clinician_id)
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        unknown_doctor_name: str | None = None,
        default_duration: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the service.

        Args:
            session_maker: Factory for per-fetch sessions.
            unknown_doctor_name: Display name for clinicians missing from the directory.
            default_duration: Encounter duration when the appointment has none.
            clock: Source of "now" for grant validity.
        """
        self._session_maker = session_maker
        self._unknown_doctor_name = unknown_doctor_name or settings.unknown_doctor_name
        self._default_duration = default_duration or settings.default_duration_minutes
        self._clock = clock

    # =========================================================================
    # Fetch plumbing
    # =========================================================================

    async def _fetch(
        self,
        source: str,
        call: SessionCall[T],
        required: bool = True,
        default: Any = None,
    ) -> T:
        """Run one fetch in its own session.

        Raises:
            UpstreamFetchError: If a required fetch fails.
        """
        try:
            async with self._session_maker() as session:
                return await call(session)
        except SQLAlchemyError as e:
            if required:
                logger.error("Required fetch %s failed: %s", source, e)
                raise UpstreamFetchError(source) from e
            logger.warning("Enrichment fetch %s failed, continuing without it: %s", source, e)
            return default

    @staticmethod
    async def _gather(*fetches: Awaitable[Any]) -> list[Any]:
        """Run fetches concurrently; the first failure cancels the others.

        Raises:
            UpstreamFetchError: The first required fetch that failed.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(fetch) for fetch in fetches]
        except ExceptionGroup as eg:
            upstream, rest = eg.split(UpstreamFetchError)
            if upstream is None or rest is not None:
                raise
            raise upstream.exceptions[0]
        return [task.result() for task in tasks]

    async def _resolve_scope(self, clinician_id: str, patient: PatientRef) -> AccessScope:
        try:
            async with self._session_maker() as grant_session, self._session_maker() as encounter_session:
                return await resolve_access_scope(
                    AccessGrantRepository(grant_session),
                    EncounterRepository(encounter_session),
                    clinician_id,
                    patient,
                    self._clock(),
                )
        except SQLAlchemyError as e:
            logger.error("Ownership check failed for patient %s: %s", patient.id, e)
            raise UpstreamFetchError("access") from e

    async def _fetch_sources(self, patients: list[PatientRef], owner_id: str | None) -> SourceRows:
        """Fetch the four required sources concurrently, one batched query each."""
        keys = patient_keys(*patients)
        appointments, consultations, prescriptions, lab_results = await self._gather(
            self._fetch("appointments", lambda s: EncounterRepository(s).fetch_appointments(keys, owner_id)),
            self._fetch("consultations", lambda s: EncounterRepository(s).fetch_consultations(keys, owner_id)),
            self._fetch("prescriptions", lambda s: EncounterRepository(s).fetch_prescriptions(keys, owner_id)),
            self._fetch("lab_results", lambda s: EncounterRepository(s).fetch_lab_results(keys)),
        )
        return SourceRows(appointments, consultations, prescriptions, lab_results)

    async def _fetch_enrichment(self, rows: SourceRows) -> tuple[dict[uuid.UUID, BillingSnapshot], dict[str, str | None]]:
        """Fetch billing and doctor names concurrently; both degrade to empty maps."""
        appointment_ids = {a.id for a in rows.appointments}
        doctor_ids = collect_doctor_ids(rows.appointments, rows.consultations, rows.prescriptions)
        billing_rows, names = await self._gather(
            self._fetch(
                "billing",
                lambda s: EncounterRepository(s).fetch_billing(appointment_ids),
                required=False,
                default=[],
            ),
            self._fetch(
                "doctor_names",
                lambda s: EncounterRepository(s).resolve_doctor_names(doctor_ids),
                required=False,
                default={},
            ),
        )
        return build_billing_index(billing_rows), names

    # =========================================================================
    # Pipeline shared by single-patient and list mode
    # =========================================================================

    def _project(
        self,
        patient: PatientRef,
        scope: AccessScope,
        rows: SourceRows,
        billing: dict[uuid.UUID, BillingSnapshot],
        names: dict[str, str | None],
    ) -> PatientProjection:
        encounters = reconcile(
            rows.appointments,
            rows.consultations,
            patient,
            scope,
            default_duration=self._default_duration,
        )
        encounters = attach_billing(encounters, billing)
        encounters = attach_doctor_names(encounters, names, self._unknown_doctor_name)

        visible_consultation_ids = {e.consultation_id for e in encounters if e.consultation_id is not None}
        prescriptions = [
            normalize_prescription(p, names, self._unknown_doctor_name)
            for p in rows.prescriptions
            if scope.admits(p.doctor_id)
        ]
        lab_results = [
            normalize_lab_result(lab)
            for lab in visible_lab_results(rows.lab_results, scope, visible_consultation_ids)
        ]

        return PatientProjection(
            encounters=order_encounters(encounters),
            prescriptions=order_prescriptions(prescriptions),
            lab_results=order_lab_results(lab_results),
        )

    # =========================================================================
    # Single-patient mode
    # =========================================================================

    async def get_patient_history(self, patient_id: uuid.UUID, clinician_id: str) -> PatientHistoryResponse:
        """Project the clinical history of one patient as seen by a clinician.

        Raises:
            PatientNotFoundError: If the id matches no patient record.
            AccessDeniedError: If the clinician has no grant and no own encounter.
            UpstreamFetchError: If a required source cannot be read.
        """
        patient = await self._fetch(
            "patients",
            lambda s: normalize_patient_identity(PatientRepository(s), patient_id),
        )

        scope = await self._resolve_scope(clinician_id, patient)
        if isinstance(scope, NoAccess):
            logger.info("Denied history of patient %s to clinician %s", patient.id, clinician_id)
            raise AccessDeniedError(patient.id, clinician_id)

        rows = await self._fetch_sources([patient], scope.owner_filter)
        billing, names = await self._fetch_enrichment(rows)
        projection = self._project(patient, scope, rows, billing, names)

        logger.info(
            "History for patient %s (%s): %d encounters, %d prescriptions, %d lab results",
            patient.id,
            scope_label(scope),
            len(projection.encounters),
            len(projection.prescriptions),
            len(projection.lab_results),
        )
        return PatientHistoryResponse(
            patient=patient,
            access=scope_label(scope),
            summary=summarize(projection.encounters, projection.prescriptions, projection.lab_results),
            consultations=projection.encounters,
            prescriptions=projection.prescriptions,
            lab_results=projection.lab_results,
        )

    # =========================================================================
    # List mode
    # =========================================================================

    async def list_patients(
        self,
        clinician_id: str,
        page: int = 1,
        per_page: int | None = None,
        q: str | None = None,
        gender: str | None = None,
        include_summary: bool = False,
    ) -> PatientListResponse:
        """List registered patients, optionally with per-patient counters.

        Counters are computed with one batched fetch per source for the whole
        page, never one query per patient.
        """
        page = max(page, 1)
        per_page = min(max(per_page or settings.default_page_size, 1), settings.max_page_size)
        offset = (page - 1) * per_page

        patients, total = await self._fetch(
            "patients",
            lambda s: PatientRepository(s).list_patients(offset, per_page, q=q, gender=gender),
        )
        items = [
            PatientListItem(
                id=p.id,
                first_name=p.first_name,
                last_name=p.last_name,
                identifier=p.identifier,
                dob=p.dob,
                gender=p.gender,
                phone=p.phone,
                address=p.address,
                created_at=p.created_at,
                updated_at=p.updated_at,
            )
            for p in patients
        ]
        meta = ListMeta(page=page, per_page=per_page, total=total)

        if not include_summary or not patients:
            return PatientListResponse(data=items, meta=meta)

        summaries = await self._summarize_page(clinician_id, patients)
        items = [item.model_copy(update={"summary": summaries.get(item.id)}) for item in items]
        return PatientListResponse(data=items, meta=meta)

    async def _summarize_page(self, clinician_id: str, patients: list) -> dict[uuid.UUID, AggregateCounters]:
        identities = await self._fetch(
            "patients",
            lambda s: resolve_roster_identities(PatientRepository(s), patients),
        )
        patient_ids = list(identities)
        granted = await self._fetch(
            "access_grants",
            lambda s: AccessGrantRepository(s).granted_patient_ids(clinician_id, patient_ids, self._clock()),
            required=False,
            default=set(),
        )

        # With no grant on the page every row must be owned, so filter in SQL.
        owner_id = None if granted else clinician_id
        rows = await self._fetch_sources(list(identities.values()), owner_id)
        billing, names = await self._fetch_enrichment(rows)

        grouped: dict[uuid.UUID, SourceRows] = defaultdict(SourceRows)
        index = PatientKeyIndex(list(identities.values()))
        for attr in ("appointments", "consultations", "prescriptions", "lab_results"):
            for row in getattr(rows, attr):
                for owner in index.owners(row):
                    getattr(grouped[owner], attr).append(row)

        projections: dict[uuid.UUID, PatientProjection] = {}
        for patient_id, identity in identities.items():
            patient_rows = grouped.get(patient_id, SourceRows())
            scope = self._page_scope(clinician_id, patient_id in granted, patient_rows)
            if isinstance(scope, NoAccess):
                projections[patient_id] = PatientProjection()
                continue
            projections[patient_id] = self._project(identity, scope, patient_rows, billing, names)

        logger.info(
            "Summarized %d patients for clinician %s (%d via grant)",
            len(projections),
            clinician_id,
            len(granted),
        )
        return summarize_page(projections)

    @staticmethod
    def _page_scope(clinician_id: str, granted: bool, rows: SourceRows) -> AccessScope:
        """Per-patient scope from already fetched rows, matching ``resolve_access_scope``."""
        if granted:
            return FullAccess()
        owns = any(a.doctor_id == clinician_id for a in rows.appointments) or any(
            c.doctor_id == clinician_id for c in rows.consultations
        )
        return OwnedOnly(clinician_id) if owns else NoAccess()

    # =========================================================================
    # Queue history
    # =========================================================================

    async def get_queue_history(
        self,
        patient_id: uuid.UUID,
        clinician_id: str,
        limit: int | None = None,
    ) -> QueueHistoryResponse:
        """Latest attended queue visits for a patient, one per day.

        Queue entries carry nurse notes, so they follow the same access
        decision as the clinical history.

        Raises:
            PatientNotFoundError: If the id matches no patient record.
            AccessDeniedError: If the clinician has no grant and no own encounter.
            UpstreamFetchError: If the queue cannot be read.
        """
        limit = limit or settings.queue_history_limit
        patient = await self._fetch(
            "patients",
            lambda s: normalize_patient_identity(PatientRepository(s), patient_id),
        )

        scope = await self._resolve_scope(clinician_id, patient)
        if isinstance(scope, NoAccess):
            logger.info("Denied queue history of patient %s to clinician %s", patient.id, clinician_id)
            raise AccessDeniedError(patient.id, clinician_id)

        keys = patient_keys(patient)
        entries = await self._fetch("queue", lambda s: QueueRepository(s).fetch_queue_entries(keys))
        visits = dedupe_queue_visits(entries, limit)
        return QueueHistoryResponse(patient=patient, visits=visits, total=len(visits))
