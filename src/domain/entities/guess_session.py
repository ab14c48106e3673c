"""Guess session domain entities."""

from dataclasses import dataclass
from enum import StrEnum

from domain.entities.profile import CandidateProfile, GuessRecord


class CursorState(StrEnum):
    """Where a guess session currently sits in its play loop."""

    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    FEEDBACK = "feedback"
    EMPTY = "empty"
    CLOSED = "closed"


class FeedbackTier(StrEnum):
    """Presentation grouping for a guess, chosen from the absolute difference."""

    PERFECT = "perfect"
    CLOSE = "close"
    WAY_OFF = "way_off"


class NoticeVariant(StrEnum):
    """How loudly a way-off notice is presented."""

    FIRST_TIME = "first_time"
    SUBTLE = "subtle"


@dataclass(frozen=True)
class FeedbackStage:
    """One timed step of a feedback sequence."""

    name: str
    duration: float


@dataclass(frozen=True)
class FeedbackState:
    """Feedback currently being presented for the last guess."""

    tier: FeedbackTier
    diff: int
    points: int
    stage: str
    stage_index: int
    entered_at: float
    stage_entered_at: float
    phrase: str | None = None


@dataclass(frozen=True)
class WayOffNotice:
    """Payload handed to the way-off notification hook."""

    variant: NoticeVariant
    phrase: str
    label: str | None = None


@dataclass(frozen=True)
class GuessOutcome:
    """Result of an accepted guess."""

    record: GuessRecord
    diff: int
    points: int
    tier: FeedbackTier
    phrase: str | None = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of a guess session."""

    cursor_state: CursorState
    candidate: CandidateProfile | None
    cursor: int
    pool_size: int
    current_guess_value: int
    submission_in_flight: bool
    feedback: FeedbackState | None
    last_notice: WayOffNotice | None

    @property
    def feedback_tier(self) -> FeedbackTier | None:
        return self.feedback.tier if self.feedback else None
