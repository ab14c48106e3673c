"""Pydantic schemas for Game API."""

from pydantic import BaseModel, ConfigDict

from domain.entities.guess_session import (
    CursorState,
    FeedbackTier,
    GuessOutcome,
    NoticeVariant,
    SessionSnapshot,
)


class GuessSubmit(BaseModel):
    """Schema for submitting a guess. Omit ``value`` to submit the current selector."""

    value: int | None = None


class GuessValueUpdate(BaseModel):
    """Schema for moving the guess selector."""

    value: int


class CandidateResponse(BaseModel):
    """Schema for the candidate being guessed. The actual age is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    photo: str


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier: FeedbackTier
    diff: int
    points: int
    stage: str
    stage_index: int
    phrase: str | None = None


class NoticeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    variant: NoticeVariant
    phrase: str
    label: str | None = None


class SessionResponse(BaseModel):
    """Schema for a guess session."""

    cursor_state: CursorState
    candidate: CandidateResponse | None
    cursor: int
    pool_size: int
    current_guess_value: int
    submission_in_flight: bool
    feedback_tier: FeedbackTier | None
    feedback: FeedbackResponse | None
    last_notice: NoticeResponse | None

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> "SessionResponse":
        return cls(
            cursor_state=snapshot.cursor_state,
            candidate=(
                CandidateResponse.model_validate(snapshot.candidate)
                if snapshot.candidate
                else None
            ),
            cursor=snapshot.cursor,
            pool_size=snapshot.pool_size,
            current_guess_value=snapshot.current_guess_value,
            submission_in_flight=snapshot.submission_in_flight,
            feedback_tier=snapshot.feedback_tier,
            feedback=(
                FeedbackResponse.model_validate(snapshot.feedback)
                if snapshot.feedback
                else None
            ),
            last_notice=(
                NoticeResponse.model_validate(snapshot.last_notice)
                if snapshot.last_notice
                else None
            ),
        )


class SessionDetailResponse(BaseModel):
    """Schema for single session."""

    data: SessionResponse


class GuessOutcomeResponse(BaseModel):
    """Schema for a scored guess."""

    target_id: str
    guessed_value: int
    actual_age: int
    diff: int
    points: int
    tier: FeedbackTier
    phrase: str | None = None

    @classmethod
    def from_outcome(cls, outcome: GuessOutcome) -> "GuessOutcomeResponse":
        return cls(
            target_id=outcome.record.target_id,
            guessed_value=outcome.record.guessed_value,
            actual_age=outcome.record.target_actual_age,
            diff=outcome.diff,
            points=outcome.points,
            tier=outcome.tier,
            phrase=outcome.phrase,
        )


class GuessSubmitResponse(BaseModel):
    """Schema for the result of a guess submission.

    ``accepted`` is false when the guess was ignored because another guess
    was still being presented or no candidate was loaded.
    """

    accepted: bool
    outcome: GuessOutcomeResponse | None
    session: SessionResponse
