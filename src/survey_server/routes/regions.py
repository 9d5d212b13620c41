"""Region availability endpoints — advisory status, reserve, release.

``GET`` is advisory only.  ``reserve`` runs the full admission gate
(identity check before the quota) and records the outcome, so the
participant's later ``POST /sessions`` consumes the slot instead of
taking a second one.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.controller import SessionController
from survey_engine.errors import NotFoundError
from survey_engine.models.session import AdmissionState
from survey_engine.validation import normalize_region

from survey_server.dependencies import get_controller, get_db

router = APIRouter(prefix="/region-availability", tags=["regions"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class ReserveRequest(BaseModel):
    region: str
    participant_id: str


class ReserveResponse(BaseModel):
    available: bool
    state: AdmissionState
    message: str


class ReleaseRequest(BaseModel):
    region: str
    session_id: str | None = None


class ReleaseResponse(BaseModel):
    ok: bool


class AvailabilityResponse(BaseModel):
    region: str
    available: bool
    current_count: int
    max_quota: int
    remaining: int


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/{region}")
async def region_availability(
    region: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> AvailabilityResponse:
    """Advisory snapshot of a region's counter (not a reservation)."""
    region = normalize_region(region)
    status = await controller.quotas.status(db, region)
    if status is None:
        raise NotFoundError(f"No quota configured for region {region}")
    return AvailabilityResponse(
        region=status.region,
        available=status.available,
        current_count=status.current_count,
        max_quota=status.max_quota,
        remaining=status.remaining,
    )


@router.post("/reserve")
async def reserve(
    body: ReserveRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> ReserveResponse:
    """Run the admission gate; ``available`` is true only when admitted."""
    result = await controller.admit(
        db, participant_id=body.participant_id, region=body.region
    )
    return ReserveResponse(
        available=result.available,
        state=result.state,
        message=result.message,
    )


@router.post("/release")
async def release(
    body: ReleaseRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> ReleaseResponse:
    """Give a slot back.  With ``session_id`` this happens at most once per session."""
    ok = await controller.release_slot(db, region=body.region, session_id=body.session_id)
    return ReleaseResponse(ok=ok)
