"""Guess scoring, feedback tiers and feedback timing plans.

Score and tier are computed independently from the absolute difference
between the guess and the actual age. The score table rewards precision in
fine steps; the tier only groups outcomes for presentation.
"""

from domain.entities.guess_session import FeedbackStage, FeedbackTier

# Absolute difference -> points. Anything past the table earns nothing.
SCORE_TABLE: dict[int, int] = {
    0: 10,
    1: 9,
    2: 7,
    3: 5,
    4: 3,
    5: 2,
    6: 1,
    7: 1,
}
MAX_POINTS = SCORE_TABLE[0]

CLOSE_TIER_MAX_DIFF = 4

FEEDBACK_PLANS: dict[FeedbackTier, tuple[FeedbackStage, ...]] = {
    FeedbackTier.PERFECT: (
        FeedbackStage("emphasis", 0.4),
        FeedbackStage("pulse", 0.5),
        FeedbackStage("pulse", 0.5),
        FeedbackStage("exact", 2.0),
    ),
    FeedbackTier.CLOSE: (
        FeedbackStage("pulse", 0.45),
        FeedbackStage("difference", 1.0),
    ),
    FeedbackTier.WAY_OFF: (
        FeedbackStage("pulse", 0.4),
        FeedbackStage("pulse", 0.4),
        FeedbackStage("phrase", 1.5),
    ),
}

WAY_OFF_PHRASES: tuple[str, ...] = (
    "Not even close!",
    "Way off!",
    "Look again...",
    "Ouch, that's a stretch.",
    "Nope, try the next one.",
)

WAY_OFF_FIRST_TIME_LABEL = "Way off! Guesses more than 4 years out land here."


def score(diff: int) -> int:
    """Points earned for a guess ``diff`` years away from the actual age."""
    return SCORE_TABLE.get(abs(diff), 0)


def feedback_tier(diff: int) -> FeedbackTier:
    diff = abs(diff)
    if diff == 0:
        return FeedbackTier.PERFECT
    if diff <= CLOSE_TIER_MAX_DIFF:
        return FeedbackTier.CLOSE
    return FeedbackTier.WAY_OFF


def feedback_duration(tier: FeedbackTier) -> float:
    """Total seconds the feedback for ``tier`` holds the submission lock."""
    return round(sum(stage.duration for stage in FEEDBACK_PLANS[tier]), 3)


class PhraseRotation:
    """Round-robin over a fixed phrase list."""

    def __init__(self, phrases: tuple[str, ...] = WAY_OFF_PHRASES) -> None:
        if not phrases:
            raise ValueError("PhraseRotation needs at least one phrase")
        self._phrases = phrases
        self._index = 0

    def next(self) -> str:
        phrase = self._phrases[self._index]
        self._index = (self._index + 1) % len(self._phrases)
        return phrase

    def reset(self) -> None:
        self._index = 0
