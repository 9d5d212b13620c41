"""Admin endpoints — timing statistics, quota status, catalogue reload.

Protected by the ``ADMIN_API_KEY`` setting.  Every request must include an
``X-Admin-Key`` header whose value matches the configured key.  Returns
401 if missing, 403 if wrong or not configured.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.controller import SessionController
from survey_engine.models.quota import QuotaStatus
from survey_engine.models.session import TimingStats

from survey_server.dependencies import get_controller, get_db, require_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/timing-stats")
async def timing_stats(
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
    _admin: str = Depends(require_admin_key),
) -> TimingStats:
    """Duration statistics of finished sessions, overall and grouped."""
    return await controller.timing_stats(db)


@router.get("/quotas")
async def quota_status(
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
    _admin: str = Depends(require_admin_key),
) -> list[dict]:
    """Live counters of every region."""
    statuses: list[QuotaStatus] = await controller.quotas.list_status(db)
    return [
        {**s.model_dump(), "available": s.available, "remaining": s.remaining}
        for s in statuses
    ]


@router.post("/catalogue/reload")
def reload_catalogue(
    controller: SessionController = Depends(get_controller),
    _admin: str = Depends(require_admin_key),
) -> dict:
    """Re-read the question catalogue file.

    Existing question ids keep their meaning as long as the file was only
    appended to; sessions keep the total they were created with.
    """
    controller.tree.reload()
    logger.info("Catalogue reloaded by admin request")
    return controller.tree.summary()
