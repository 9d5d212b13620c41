"""QuestionTree — the category → subcategory → topic → question catalogue.

The tree is loaded from a YAML (or JSON) file into typed models and is the
single source of question text at runtime.  It is an ordinary object:
construct it, call :meth:`load`, and hand it to whatever needs it.

Usage::

    tree = QuestionTree()          # defaults to the packaged catalogue
    tree.load()

    tree.total_question_count      # memoized, refreshed on every (re)load
    tree.question_at(QuestionPosition(category_index=0))

A missing or unparseable catalogue does not stop the service: the tree
falls back to a small built-in catalogue and logs a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import ValidationError as PydanticValidationError

from survey_engine.models.tree import (
    Category,
    QuestionContext,
    QuestionPosition,
    Topic,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE = Path(__file__).resolve().parent / "data" / "questions.yaml"

# Served when the configured catalogue cannot be read.
FALLBACK_CATALOGUE: list[dict[str, Any]] = [
    {
        "category": "Interpersonal Relations",
        "subcategories": [
            {
                "subcategory": "Visiting and hospitality",
                "topics": [
                    {
                        "topic": "Etiquette in the reception of visitors",
                        "questions": [
                            "In your region, what are the typical ways people prepare their homes for the arrival of guests?",
                            "In your region, what is the first most common thing a visitor does when they enter your house?",
                            "In your region, what are some traditional gifts given to guests during their visit?",
                            "In your region, what is the common proper etiquette for sending off a guest?",
                            "In your region, what specific rituals are followed when someone visits your home for the first time?",
                        ],
                    }
                ],
            }
        ],
    }
]


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def parse_catalogue(raw: Any) -> list[Category]:
    """Validate raw catalogue data into Category models.

    Raises:
        ValueError: if the data is not a non-empty list of categories.
    """
    if not isinstance(raw, list) or not raw:
        raise ValueError("Catalogue must be a non-empty list of categories")
    return [Category.model_validate(item) for item in raw]


class QuestionTree:
    """Loaded question catalogue with positional lookup.

    Attributes populated after :meth:`load`:

        categories        — list[Category] in catalogue order
        source            — path the catalogue was read from
        is_fallback       — True when the built-in catalogue is in use
    """

    def __init__(self, catalogue_path: str | Path | None = None) -> None:
        self._path = Path(catalogue_path) if catalogue_path else DEFAULT_CATALOGUE
        self.categories: list[Category] = []
        self.is_fallback = False
        self._total: int = 0

    @classmethod
    def from_data(cls, raw: Any) -> QuestionTree:
        """Build a tree directly from in-memory catalogue data."""
        tree = cls()
        tree._install(parse_catalogue(raw), fallback=False)
        return tree

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def source(self) -> Path:
        return self._path

    def load(self) -> None:
        """Read the catalogue file, or fall back to the built-in catalogue."""
        try:
            categories = parse_catalogue(load_yaml(self._path))
        except (OSError, yaml.YAMLError, PydanticValidationError, ValueError) as exc:
            logger.warning(
                "Question catalogue %s unusable (%s); serving built-in fallback",
                self._path,
                exc,
            )
            self._install(parse_catalogue(FALLBACK_CATALOGUE), fallback=True)
            return
        self._install(categories, fallback=False)
        logger.info(
            "QuestionTree loaded: %d categories, %d questions from %s",
            len(self.categories),
            self._total,
            self._path,
        )

    def reload(self) -> None:
        """Re-read the catalogue.  Question ids already handed out stay valid
        as long as the file only grows at the end of each container."""
        logger.info("Reloading question catalogue from %s", self._path)
        self.load()

    def _install(self, categories: list[Category], *, fallback: bool) -> None:
        self.categories = categories
        self.is_fallback = fallback
        self._total = sum(
            len(topic.questions)
            for category in categories
            for sub in category.subcategories
            for topic in sub.topics
        )

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    @property
    def total_question_count(self) -> int:
        return self._total

    def summary(self) -> dict[str, int]:
        """Container counts for the catalogue info endpoint."""
        return {
            "total_questions": self._total,
            "total_categories": len(self.categories),
            "total_subcategories": sum(len(c.subcategories) for c in self.categories),
            "total_topics": sum(
                len(sub.topics) for c in self.categories for sub in c.subcategories
            ),
        }

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def subcategory_count(self, category_index: int) -> int:
        return len(self.categories[category_index].subcategories)

    def topic_count(self, category_index: int, subcategory_index: int) -> int:
        return len(self.categories[category_index].subcategories[subcategory_index].topics)

    def question_count(
        self, category_index: int, subcategory_index: int, topic_index: int
    ) -> int:
        return len(self.topic_at(category_index, subcategory_index, topic_index).questions)

    def topic_at(
        self, category_index: int, subcategory_index: int, topic_index: int
    ) -> Topic:
        return (
            self.categories[category_index]
            .subcategories[subcategory_index]
            .topics[topic_index]
        )

    def question_at(self, position: QuestionPosition) -> str | None:
        """Return the question text, or None if the position is not in the tree."""
        c, s, t, q = position.as_tuple()
        try:
            return self.categories[c].subcategories[s].topics[t].questions[q]
        except IndexError:
            return None

    def is_valid_position(self, position: QuestionPosition) -> bool:
        return self.question_at(position) is not None

    def context_at(self, position: QuestionPosition) -> QuestionContext | None:
        """Return the full text snapshot for a position, or None."""
        question = self.question_at(position)
        if question is None:
            return None
        category = self.categories[position.category_index]
        sub = category.subcategories[position.subcategory_index]
        topic = sub.topics[position.topic_index]
        return QuestionContext(
            question_id=position.question_id,
            position=position,
            category=category.name,
            subcategory=sub.name,
            topic=topic.name,
            question=question,
        )

    def iter_positions(self) -> Iterator[QuestionPosition]:
        """Yield every leaf position in canonical order."""
        for c, category in enumerate(self.categories):
            for s, sub in enumerate(category.subcategories):
                for t, topic in enumerate(sub.topics):
                    for q in range(len(topic.questions)):
                        yield QuestionPosition.from_tuple((c, s, t, q))

    def first_position(self) -> QuestionPosition | None:
        return next(self.iter_positions(), None)

    def last_position(self) -> QuestionPosition | None:
        last = None
        for last in self.iter_positions():
            pass
        return last

    def to_data(self) -> list[dict[str, Any]]:
        """Serialise back to the catalogue file shape."""
        return [category.model_dump(by_alias=True) for category in self.categories]
