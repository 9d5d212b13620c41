"""Response endpoints — upsert answers and read them back in tree order.

Saves are keyed by (session_id, question_id): saving the same question
again overwrites the stored answer, so a client may resubmit after a lost
acknowledgement.  A single save answers 201 when it created the row and
200 when it updated one.
"""

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.controller import SessionController
from survey_engine.models.session import (
    BatchSaveResult,
    ResponseRecord,
    ResponseSubmission,
    SaveResult,
)

from survey_server.dependencies import get_controller, get_db

router = APIRouter(tags=["responses"])


class BatchSaveRequest(BaseModel):
    """Body for POST /responses/batch."""
    session_id: str
    responses: list[ResponseSubmission] = Field(min_length=1)


@router.post("/responses", status_code=201)
async def save_response(
    body: ResponseSubmission,
    response: Response,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> SaveResult:
    """Upsert one answer.  The result may carry an attention check to show."""
    result = await controller.save_response(db, body)
    if not result.inserted:
        response.status_code = 200
    return result


@router.post("/responses/batch")
async def save_batch(
    body: BatchSaveRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> BatchSaveResult:
    """Upsert several answers of one session in a single transaction."""
    return await controller.save_batch(db, body.session_id, body.responses)


@router.get("/responses/{session_id}")
async def list_responses(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> list[ResponseRecord]:
    """All stored answers of a session sorted by tree position."""
    return await controller.list_responses(db, session_id)
