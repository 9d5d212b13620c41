"""Abstract interfaces for pluggable survey policies.

Response-quality scoring is advisory and its tuning changes between survey
waves, so the controller depends only on this contract.  The SDK ships a
heuristic implementation in :mod:`survey_engine.quality`.

Typical integration::

    analyzer: ResponseQualityPolicy = HeuristicQualityAnalyzer()
    controller = SessionController(tree, quotas, quality=analyzer)

    verdict = analyzer.score_response("Guests are usually offered tea ...")
    if verdict.is_low_quality:
        ...  # surface a warning; never block the save
"""

from abc import ABC, abstractmethod
from typing import Sequence

from survey_engine.models.quality import PatternAnalysis, QualityScore


class ResponseQualityPolicy(ABC):
    """Interface for free-text answer quality scoring."""

    @abstractmethod
    def score_response(self, text: str) -> QualityScore:
        """Score a single answer.

        Parameters
        ----------
        text:
            The raw answer as typed by the participant.

        Returns
        -------
        QualityScore
            Score in [0, 100] with ordered human-readable issues and the
            ``is_none_response`` / ``is_gibberish`` flags.
        """
        ...

    @abstractmethod
    def analyze_pattern(
        self, responses: Sequence[tuple[str, int]]
    ) -> PatternAnalysis:
        """Aggregate a session's answers into a pattern verdict.

        Parameters
        ----------
        responses:
            ``(answer, time_spent_seconds)`` pairs for every regular
            question answered so far.
        """
        ...
