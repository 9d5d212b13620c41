import random
from unittest.mock import AsyncMock

import pytest

from helpers.mocks import MockStore, wire_controller, wire_quota_manager
from survey_engine.controller import SessionController
from survey_engine.quota import RegionQuotaManager
from survey_engine.tree import QuestionTree

# Uneven tree used by the navigation tests: 2 + 1 + 3 + 1 questions,
# with an empty topic and an empty subcategory to step over.
SMALL_CATALOGUE = [
    {
        "category": "Food",
        "subcategories": [
            {
                "subcategory": "Meals",
                "topics": [
                    {"topic": "Breakfast", "questions": ["Q-a", "Q-b"]},
                    {"topic": "Empty", "questions": []},
                    {"topic": "Dinner", "questions": ["Q-c"]},
                ],
            },
            {"subcategory": "Nothing here", "topics": []},
        ],
    },
    {
        "category": "Rituals",
        "subcategories": [
            {
                "subcategory": "Weddings",
                "topics": [
                    {"topic": "Ceremony", "questions": ["Q-d", "Q-e", "Q-f"]},
                ],
            },
            {
                "subcategory": "Funerals",
                "topics": [{"topic": "Mourning", "questions": ["Q-g"]}],
            },
        ],
    },
]


@pytest.fixture(scope="session")
def tree():
    """The packaged 30-question catalogue, loaded once."""
    t = QuestionTree()
    t.load()
    return t


@pytest.fixture
def small_tree():
    return QuestionTree.from_data(SMALL_CATALOGUE)


@pytest.fixture
def store():
    """Fresh set of in-memory repositories for each test."""
    return MockStore()


@pytest.fixture
def mock_db():
    """AsyncMock standing in for AsyncSession — flush/commit are no-ops."""
    return AsyncMock()


@pytest.fixture
def quotas(store):
    return wire_quota_manager(RegionQuotaManager(), store)


@pytest.fixture
def controller(tree, store):
    """SessionController over the packaged tree, backed by the mocks."""
    ctl = SessionController(
        tree, RegionQuotaManager(), attention_interval=7, rng=random.Random(7),
    )
    return wire_controller(ctl, store)
