"""Region quota snapshot model."""

from datetime import datetime

from pydantic import BaseModel


class QuotaStatus(BaseModel):
    """Advisory view of one region's counter.

    May be stale the moment it is read; only a reservation is authoritative.
    """

    region: str
    current_count: int
    max_quota: int
    last_updated: datetime | None = None

    @property
    def available(self) -> bool:
        return self.current_count < self.max_quota

    @property
    def remaining(self) -> int:
        return max(self.max_quota - self.current_count, 0)
