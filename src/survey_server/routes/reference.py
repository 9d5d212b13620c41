"""Reference data endpoints — question catalogue and region taxonomy.

Read-only, unauthenticated: the catalogue is what every participant sees.
"""

from fastapi import APIRouter, Depends

from survey_engine.constants import REGION_STATES
from survey_engine.tree import QuestionTree

from survey_server.dependencies import get_tree

router = APIRouter(prefix="/reference", tags=["reference"])


@router.get("/questions/info")
def questions_info(
    tree: QuestionTree = Depends(get_tree),
) -> dict:
    """Container and question totals of the loaded catalogue."""
    return {**tree.summary(), "fallback": tree.is_fallback}


@router.get("/questions")
def list_questions(
    tree: QuestionTree = Depends(get_tree),
) -> list[dict]:
    """The full catalogue in file shape (category/subcategory/topic keys)."""
    return tree.to_data()


@router.get("/regions")
def list_regions() -> dict[str, list[str]]:
    """Region → states taxonomy used at intake."""
    return {region: list(states) for region, states in REGION_STATES.items()}
