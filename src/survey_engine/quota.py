"""RegionQuotaManager — per-region admission control.

Correctness rests on the repository's single-statement conditional
updates; there is no in-process lock.  ``available`` is advisory,
``reserve`` is authoritative, and a failed reservation after a positive
availability check is a normal outcome.

Admission runs the identity check before the quota so a duplicate
identity never consumes a slot::

    PENDING_IDENTITY_CHECK -> REJECTED_DUPLICATE_IDENTITY
                           -> PENDING_QUOTA -> ADMITTED
                                            -> REJECTED_QUOTA_FULL

Both terminal outcomes of the quota step are recorded per identity, so a
retried admission returns the recorded outcome instead of reserving again.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import AdmissionStatus
from survey_db.models.quota import ParticipantAdmission
from survey_db.repository import (
    AdmissionRepository,
    QuotaRepository,
    SessionRepository,
)

from survey_engine.models.quota import QuotaStatus
from survey_engine.models.session import AdmissionResult, AdmissionState

logger = logging.getLogger(__name__)


class RegionQuotaManager:
    """Reserve and release region slots and gate participant admission."""

    def __init__(self) -> None:
        self._quota_repo = QuotaRepository()
        self._admission_repo = AdmissionRepository()
        self._session_repo = SessionRepository()

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    async def initialize(self, db: AsyncSession, limits: dict[str, int]) -> None:
        """Upsert quota rows; live counts of existing rows are left untouched."""
        for region, limit in limits.items():
            if limit < 0:
                raise ValueError(f"Quota for {region!r} must be >= 0, got {limit}")
        await self._quota_repo.upsert_limits(db, limits)
        logger.info(
            "Region quotas initialized: %s",
            ", ".join(f"{r}={n}" for r, n in sorted(limits.items())),
        )

    async def status(self, db: AsyncSession, region: str) -> QuotaStatus | None:
        row = await self._quota_repo.get(db, region)
        if row is None:
            return None
        return QuotaStatus(
            region=row.region,
            current_count=row.current_count,
            max_quota=row.max_quota,
            last_updated=row.last_updated,
        )

    async def list_status(self, db: AsyncSession) -> list[QuotaStatus]:
        return [
            QuotaStatus(
                region=row.region,
                current_count=row.current_count,
                max_quota=row.max_quota,
                last_updated=row.last_updated,
            )
            for row in await self._quota_repo.list_all(db)
        ]

    async def available(self, db: AsyncSession, region: str) -> bool:
        """Advisory: ``current_count < max_quota``.  Not a reservation."""
        status = await self.status(db, region)
        return status is not None and status.available

    async def reserve(self, db: AsyncSession, region: str) -> bool:
        """Take one slot.  True iff the conditional increment applied."""
        reserved = await self._quota_repo.try_increment(db, region)
        if reserved:
            logger.info("Reserved slot in region %s", region)
        else:
            logger.warning("Region %s is full; reservation refused", region)
        return reserved

    async def release(self, db: AsyncSession, region: str) -> bool:
        """Return one slot.  A release at zero is a logged no-op."""
        released = await self._quota_repo.try_decrement(db, region)
        if released:
            logger.info("Released slot in region %s", region)
        else:
            logger.warning("Release ignored for region %s: count already zero", region)
        return released

    # ------------------------------------------------------------------
    # Admission gate
    # ------------------------------------------------------------------

    async def admit(
        self, db: AsyncSession, participant_id: str, region: str
    ) -> AdmissionResult:
        """Run an identity through the admission state machine.

        An identity that holds an admitted, not yet consumed reservation is
        admitted again without taking a second slot.
        """
        # PENDING_IDENTITY_CHECK
        if await self._session_repo.get_by_participant(db, participant_id) is not None:
            return self._duplicate(participant_id, region)

        existing = await self._admission_repo.get(db, participant_id)
        if existing is not None:
            return self._from_record(participant_id, existing)

        # PENDING_QUOTA
        if not await self.reserve(db, region):
            recorded = await self._admission_repo.record(
                db,
                participant_id=participant_id,
                region=region,
                status=AdmissionStatus.REJECTED_QUOTA_FULL,
                reason="region quota full",
            )
            if not recorded:
                # Same identity decided concurrently; report that outcome.
                existing = await self._admission_repo.get(db, participant_id)
                return self._from_record(participant_id, existing)
            return AdmissionResult(
                participant_id=participant_id,
                region=region,
                state=AdmissionState.REJECTED_QUOTA_FULL,
                message=f"The quota for region {region} is full",
            )

        recorded = await self._admission_repo.record(
            db,
            participant_id=participant_id,
            region=region,
            status=AdmissionStatus.ADMITTED,
        )
        if not recorded:
            # Lost an identity race after reserving: hand the slot back.
            await self.release(db, region)
            return self._duplicate(participant_id, region)

        logger.info("Admitted participant %s to region %s", participant_id, region)
        return AdmissionResult(
            participant_id=participant_id,
            region=region,
            state=AdmissionState.ADMITTED,
            message="Slot reserved",
        )

    async def consume(
        self, db: AsyncSession, participant_id: str, session_id: str
    ) -> bool:
        """Bind an admitted reservation to the session created from it."""
        return await self._admission_repo.attach_session(db, participant_id, session_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _duplicate(participant_id: str, region: str) -> AdmissionResult:
        logger.warning("Duplicate participant identity %s rejected", participant_id)
        return AdmissionResult(
            participant_id=participant_id,
            region=region,
            state=AdmissionState.REJECTED_DUPLICATE_IDENTITY,
            message="This participant ID has already been used",
        )

    def _from_record(
        self, participant_id: str, record: ParticipantAdmission
    ) -> AdmissionResult:
        region = record.region
        if record.status == AdmissionStatus.ADMITTED and record.session_id is None:
            return AdmissionResult(
                participant_id=participant_id,
                region=region,
                state=AdmissionState.ADMITTED,
                message="Slot already reserved",
            )
        if record.status == AdmissionStatus.REJECTED_QUOTA_FULL:
            return AdmissionResult(
                participant_id=participant_id,
                region=region,
                state=AdmissionState.REJECTED_QUOTA_FULL,
                message=f"The quota for region {region} is full",
            )
        return self._duplicate(participant_id, region)
