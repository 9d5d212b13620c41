"""RegionQuota and ParticipantAdmission ORM models.

``region_quotas`` holds one counter row per region.  The invariant
``0 <= current_count <= max_quota`` is a table constraint as well as the
WHERE clause of every conditional update in the repository.

``participant_admissions`` records the terminal outcome of the admission
gate for an identity, so a reserved slot is consumed exactly once and a
rejected identity cannot silently retry.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base
from survey_db.models.enums import AdmissionStatus


class RegionQuota(Base):
    """Admission counter for one region."""

    __tablename__ = "region_quotas"

    region: Mapped[str] = mapped_column(String(20), primary_key=True)
    current_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_quota: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "current_count >= 0 AND current_count <= max_quota",
            name="ck_count_within_quota",
        ),
        CheckConstraint("max_quota >= 0", name="ck_max_quota_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<RegionQuota(region={self.region!r}, "
            f"count={self.current_count}/{self.max_quota})>"
        )


class ParticipantAdmission(Base):
    """Admission outcome for one participant identity."""

    __tablename__ = "participant_admissions"

    participant_id: Mapped[str] = mapped_column(Text, primary_key=True)
    region: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[AdmissionStatus] = mapped_column(String(30), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set when a session is created against this admission
    session_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return (
            f"<ParticipantAdmission(participant={self.participant_id!r}, "
            f"region={self.region!r}, status={self.status!r})>"
        )
