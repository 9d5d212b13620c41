"""Session endpoints — create, read, move, complete, attention checks.

A participant identity can own exactly one session, ever.  Creating a
session runs the admission gate (identity check, then quota reservation)
unless the identity already holds a reservation from
``POST /region-availability/reserve``.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import CompletionReason
from survey_engine.controller import SessionController
from survey_engine.errors import QuotaFullError
from survey_engine.models.attention import (
    AttentionCheckResult,
    AttentionCheckSubmission,
)
from survey_engine.models.quality import PatternAnalysis
from survey_engine.models.session import (
    CompletionResult,
    CreatedSession,
    Demographics,
    SessionInfo,
)
from survey_engine.models.tree import QuestionPosition

from survey_server.dependencies import get_controller, get_db

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    """Body for POST /sessions."""
    participant_id: str
    region: str
    demographics: Demographics = Demographics()


class UpdatePositionRequest(BaseModel):
    """Body for PUT /sessions/{session_id}/position."""
    position: QuestionPosition


class CompleteSessionRequest(BaseModel):
    """Body for PUT /sessions/{session_id}/complete."""
    reason: CompletionReason = CompletionReason.COMPLETED


class ResumeResponse(BaseModel):
    position: QuestionPosition | None
    question: str | None


class ParticipantExistsResponse(BaseModel):
    participant_id: str
    exists: bool


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> CreatedSession:
    """Admit the participant and create their session.

    Returns 201 on success, 400 if the identity was already used and 409
    with ``quota_full: true`` if the region is full.  The quota rejection
    is returned rather than raised so that it is recorded.
    """
    try:
        return await controller.create_session(
            db,
            participant_id=body.participant_id,
            region=body.region,
            demographics=body.demographics,
        )
    except QuotaFullError as exc:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "quota_full": True},
        )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> SessionInfo:
    """Session snapshot: position, progress counters and status."""
    return await controller.get_session(db, session_id)


@router.put("/sessions/{session_id}/position")
async def update_position(
    session_id: str,
    body: UpdatePositionRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> SessionInfo:
    """Store the participant's cursor (idempotent)."""
    return await controller.update_position(db, session_id, body.position)


@router.get("/sessions/{session_id}/resume")
async def resume_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> ResumeResponse:
    """First unanswered question, computed from the stored responses."""
    position = await controller.resume_position(db, session_id)
    question = controller.tree.question_at(position) if position else None
    return ResumeResponse(position=position, question=question)


@router.put("/sessions/{session_id}/complete")
async def complete_session(
    session_id: str,
    body: CompleteSessionRequest,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> CompletionResult:
    """Finalise the session, compute its duration and release the slot."""
    return await controller.complete_session(db, session_id, body.reason)


@router.post("/sessions/{session_id}/attention-checks")
async def submit_attention_check(
    session_id: str,
    body: AttentionCheckSubmission,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> AttentionCheckResult:
    """Validate an attention-check answer; a failure ends the session."""
    if body.session_id != session_id:
        body = body.model_copy(update={"session_id": session_id})
    return await controller.submit_attention_check(db, body)


@router.get("/sessions/{session_id}/quality")
async def session_quality(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> PatternAnalysis:
    """Aggregate answer-pattern verdict for the session (advisory)."""
    return await controller.analyze_session(db, session_id)


@router.get("/participants/{participant_id}/exists")
async def participant_exists(
    participant_id: str,
    db: AsyncSession = Depends(get_db),
    controller: SessionController = Depends(get_controller),
) -> ParticipantExistsResponse:
    """Advisory duplicate-identity probe; 400 on a malformed identity."""
    exists = await controller.participant_exists(db, participant_id)
    return ParticipantExistsResponse(participant_id=participant_id, exists=exists)
