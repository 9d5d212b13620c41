"""Response-quality result models."""

from typing import Literal

from pydantic import BaseModel, Field

PatternIssue = Literal["none", "gibberish", "speed"]


class QualityScore(BaseModel):
    """Heuristic verdict for a single free-text answer."""

    score: int = Field(ge=0, le=100)
    issues: list[str] = Field(default_factory=list)
    is_none_response: bool = False
    is_gibberish: bool = False

    @property
    def is_low_quality(self) -> bool:
        return self.score < 30


class PatternAnalysis(BaseModel):
    """Per-session aggregate over all answers so far.

    Rates are percentages in [0, 100].
    """

    suspicious_pattern: bool = False
    warnings: list[str] = Field(default_factory=list)
    none_response_rate: float = 0.0
    gibberish_response_rate: float = 0.0
    fast_response_rate: float = 0.0
    issue_type: PatternIssue | None = None
