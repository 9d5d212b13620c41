"""Tests for RegionQuotaManager counters and the admission gate.

The mock quota repository yields to the event loop before every
compare-and-set, so ``asyncio.gather`` interleaves reservations the way
concurrent requests interleave against PostgreSQL.
"""

import asyncio

import pytest

from helpers.mocks import MockSessionRow, participant_id
from survey_db.models.enums import AdmissionStatus
from survey_engine.models.session import AdmissionState


# =====================================================================
# Counters
# =====================================================================


class TestReserveRelease:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit, attempts", [(5, 20), (3, 3), (0, 4), (8, 2)])
    async def test_concurrent_reservations_never_exceed_quota(
        self, quotas, store, mock_db, limit, attempts,
    ):
        await quotas.initialize(mock_db, {"north": limit})
        results = await asyncio.gather(
            *(quotas.reserve(mock_db, "north") for _ in range(attempts))
        )
        assert sum(results) == min(limit, attempts)
        assert store.quotas.quotas["north"].current_count == min(limit, attempts)

    @pytest.mark.asyncio
    async def test_release_at_zero_is_a_noop(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"south": 2})
        assert await quotas.release(mock_db, "south") is False
        assert store.quotas.quotas["south"].current_count == 0

    @pytest.mark.asyncio
    async def test_reserve_then_release_restores_count(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"east": 2})
        assert await quotas.reserve(mock_db, "east")
        assert await quotas.release(mock_db, "east")
        assert store.quotas.quotas["east"].current_count == 0

    @pytest.mark.asyncio
    async def test_unknown_region_cannot_reserve(self, quotas, mock_db):
        assert await quotas.reserve(mock_db, "west") is False

    @pytest.mark.asyncio
    async def test_available_is_advisory_snapshot(self, quotas, mock_db):
        await quotas.initialize(mock_db, {"central": 1})
        assert await quotas.available(mock_db, "central")
        await quotas.reserve(mock_db, "central")
        assert not await quotas.available(mock_db, "central")
        assert not await quotas.available(mock_db, "nowhere")


class TestInitialize:

    @pytest.mark.asyncio
    async def test_reinitialize_keeps_live_counts(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"north": 5})
        await quotas.reserve(mock_db, "north")
        await quotas.reserve(mock_db, "north")

        await quotas.initialize(mock_db, {"north": 12})
        row = store.quotas.quotas["north"]
        assert (row.current_count, row.max_quota) == (2, 12)

    @pytest.mark.asyncio
    async def test_lowered_limit_clamped_to_live_count(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"north": 5})
        for _ in range(3):
            await quotas.reserve(mock_db, "north")
        await quotas.initialize(mock_db, {"north": 1})
        assert store.quotas.quotas["north"].max_quota == 3

    @pytest.mark.asyncio
    async def test_negative_limit_rejected(self, quotas, mock_db):
        with pytest.raises(ValueError):
            await quotas.initialize(mock_db, {"north": -1})

    @pytest.mark.asyncio
    async def test_list_status(self, quotas, mock_db):
        await quotas.initialize(mock_db, {"west": 2, "east": 1})
        await quotas.reserve(mock_db, "west")
        statuses = await quotas.list_status(mock_db)
        assert [(s.region, s.current_count, s.remaining) for s in statuses] == [
            ("east", 0, 1),
            ("west", 1, 1),
        ]


# =====================================================================
# Admission gate
# =====================================================================


class TestAdmission:
    """Identity check first, quota second, outcome recorded."""

    @pytest.mark.asyncio
    async def test_admitted_takes_one_slot(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"north": 2})
        result = await quotas.admit(mock_db, participant_id(1), "north")
        assert result.state == AdmissionState.ADMITTED
        assert result.available
        assert store.quotas.quotas["north"].current_count == 1
        assert store.admissions.admissions[participant_id(1)].status == (
            AdmissionStatus.ADMITTED.value
        )

    @pytest.mark.asyncio
    async def test_repeat_admission_does_not_take_second_slot(
        self, quotas, store, mock_db,
    ):
        await quotas.initialize(mock_db, {"north": 2})
        await quotas.admit(mock_db, participant_id(1), "north")
        again = await quotas.admit(mock_db, participant_id(1), "north")
        assert again.state == AdmissionState.ADMITTED
        assert store.quotas.quotas["north"].current_count == 1

    @pytest.mark.asyncio
    async def test_full_region_rejected_and_recorded(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"south": 1})
        await quotas.admit(mock_db, participant_id(1), "south")
        result = await quotas.admit(mock_db, participant_id(2), "south")
        assert result.state == AdmissionState.REJECTED_QUOTA_FULL
        assert not result.available
        assert store.quotas.quotas["south"].current_count == 1
        assert store.admissions.admissions[participant_id(2)].status == (
            AdmissionStatus.REJECTED_QUOTA_FULL.value
        )

    @pytest.mark.asyncio
    async def test_rejection_is_sticky_after_a_slot_frees(self, quotas, mock_db):
        await quotas.initialize(mock_db, {"south": 1})
        await quotas.admit(mock_db, participant_id(1), "south")
        await quotas.admit(mock_db, participant_id(2), "south")
        await quotas.release(mock_db, "south")

        retry = await quotas.admit(mock_db, participant_id(2), "south")
        assert retry.state == AdmissionState.REJECTED_QUOTA_FULL

    @pytest.mark.asyncio
    async def test_identity_with_session_is_duplicate_without_slot(
        self, quotas, store, mock_db,
    ):
        await quotas.initialize(mock_db, {"east": 3})
        store.sessions.sessions["s1"] = MockSessionRow(
            session_id="s1", participant_id=participant_id(9), region="east",
        )
        result = await quotas.admit(mock_db, participant_id(9), "east")
        assert result.state == AdmissionState.REJECTED_DUPLICATE_IDENTITY
        assert store.quotas.quotas["east"].current_count == 0

    @pytest.mark.asyncio
    async def test_duplicate_checked_before_quota(self, quotas, store, mock_db):
        """A used identity is a duplicate even when the region is full."""
        await quotas.initialize(mock_db, {"east": 0})
        store.sessions.sessions["s1"] = MockSessionRow(
            session_id="s1", participant_id=participant_id(9), region="east",
        )
        result = await quotas.admit(mock_db, participant_id(9), "east")
        assert result.state == AdmissionState.REJECTED_DUPLICATE_IDENTITY

    @pytest.mark.asyncio
    async def test_consumed_admission_is_duplicate(self, quotas, mock_db):
        await quotas.initialize(mock_db, {"west": 3})
        await quotas.admit(mock_db, participant_id(4), "west")
        assert await quotas.consume(mock_db, participant_id(4), "s4")
        assert not await quotas.consume(mock_db, participant_id(4), "s5")

        result = await quotas.admit(mock_db, participant_id(4), "west")
        assert result.state == AdmissionState.REJECTED_DUPLICATE_IDENTITY

    @pytest.mark.asyncio
    async def test_concurrent_admissions_respect_quota(self, quotas, store, mock_db):
        await quotas.initialize(mock_db, {"central": 3})
        results = await asyncio.gather(
            *(quotas.admit(mock_db, participant_id(n), "central") for n in range(10))
        )
        admitted = [r for r in results if r.state == AdmissionState.ADMITTED]
        rejected = [r for r in results if r.state == AdmissionState.REJECTED_QUOTA_FULL]
        assert len(admitted) == 3
        assert len(rejected) == 7
        assert store.quotas.quotas["central"].current_count == 3

    @pytest.mark.asyncio
    async def test_same_identity_racing_takes_at_most_one_slot(
        self, quotas, store, mock_db,
    ):
        await quotas.initialize(mock_db, {"north": 5})
        results = await asyncio.gather(
            *(quotas.admit(mock_db, participant_id(1), "north") for _ in range(4))
        )
        assert store.quotas.quotas["north"].current_count == 1
        assert all(
            r.state in (AdmissionState.ADMITTED, AdmissionState.REJECTED_DUPLICATE_IDENTITY)
            for r in results
        )
