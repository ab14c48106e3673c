"""Guess session engine: one playthrough over a shuffled candidate pool."""

import asyncio
import contextlib
import random
import time
from collections.abc import Awaitable, Callable, Coroutine
from datetime import date
from typing import Any

import structlog

from core.exceptions import InvalidGuessRangeError, ProfileNotLoadedError, RemoteUnavailableError
from domain.entities.guess_session import (
    CursorState,
    FeedbackState,
    FeedbackTier,
    GuessOutcome,
    NoticeVariant,
    SessionSnapshot,
    WayOffNotice,
)
from domain.entities.profile import CandidateProfile, GuessRecord
from domain.repositories.profile_store import IRemoteProfileStore, StoredDocument
from domain.services.age import calculate_age, parse_date_of_birth
from domain.services.profile_service import ProfileService
from domain.services.scoring import (
    FEEDBACK_PLANS,
    WAY_OFF_FIRST_TIME_LABEL,
    WAY_OFF_PHRASES,
    PhraseRotation,
    feedback_tier,
    score,
)

logger = structlog.get_logger()

WayOffHook = Callable[[WayOffNotice], None]


class GuessSession:
    """Drives the guess loop for one identity.

    State machine::

        LOADING -> READY -> SUBMITTING -> FEEDBACK -> READY (next candidate)
                -> EMPTY (no eligible candidates; left only via ``start``)

    A single boolean lock admits one guess at a time. It is taken before any
    await in ``submit_guess`` and released only when the feedback sequence for
    that guess has finished, which is also when the cursor advances.
    """

    def __init__(
        self,
        identity_id: str,
        profiles: ProfileService,
        store: IRemoteProfileStore,
        min_guess: int = 16,
        max_guess: int = 100,
        default_name: str = "Gage User",
        phrases: tuple[str, ...] = WAY_OFF_PHRASES,
        on_way_off: WayOffHook | None = None,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._identity_id = identity_id
        self._profiles = profiles
        self._store = store
        self._min_guess = min_guess
        self._max_guess = max_guess
        self._default_name = default_name
        self._phrases = PhraseRotation(phrases)
        self._on_way_off = on_way_off
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self._today = today

        self._pool: list[CandidateProfile] = []
        self._cursor = 0
        self._current_guess_value = min_guess
        self._submission_in_flight = False
        self._state = CursorState.LOADING
        self._feedback: FeedbackState | None = None
        self._feedback_task: asyncio.Task[None] | None = None
        self._way_off_seen = False
        self._last_notice: WayOffNotice | None = None
        self._pending: set[asyncio.Task[None]] = set()

    # --- Read side ---

    @property
    def identity_id(self) -> str:
        return self._identity_id

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def candidate(self) -> CandidateProfile | None:
        if not self._pool or self._state in (
            CursorState.LOADING,
            CursorState.EMPTY,
            CursorState.CLOSED,
        ):
            return None
        return self._pool[self._cursor]

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            cursor_state=self._state,
            candidate=self.candidate,
            cursor=self._cursor,
            pool_size=len(self._pool),
            current_guess_value=self._current_guess_value,
            submission_in_flight=self._submission_in_flight,
            feedback=self._feedback,
            last_notice=self._last_notice,
        )

    # --- Lifecycle ---

    async def start(self) -> SessionSnapshot:
        """Fetch and shuffle the candidate pool, resetting session-scoped state.

        A store failure is treated like an empty pool; callers may call
        ``start`` again to retry.
        """
        if self._state == CursorState.CLOSED:
            return self.snapshot()

        await self._cancel_feedback()
        self._state = CursorState.LOADING
        self._submission_in_flight = False
        self._feedback = None
        self._way_off_seen = False
        self._last_notice = None
        self._phrases.reset()

        try:
            documents = await self._store.list_documents()
        except RemoteUnavailableError:
            logger.warning("candidate_fetch_failed", user_id=self._identity_id)
            documents = []

        if self._state == CursorState.CLOSED:
            return self.snapshot()

        pool = [c for c in (self._to_candidate(doc) for doc in documents) if c is not None]
        self._rng.shuffle(pool)
        self._pool = pool
        self._cursor = 0
        self._current_guess_value = self._min_guess
        self._state = CursorState.READY if pool else CursorState.EMPTY

        logger.info(
            "guess_session_started",
            user_id=self._identity_id,
            pool_size=len(pool),
        )
        return self.snapshot()

    async def close(self) -> None:
        """Tear the session down, cancelling any pending feedback timer."""
        self._state = CursorState.CLOSED
        await self._cancel_feedback()
        self._submission_in_flight = False
        self._feedback = None
        logger.info("guess_session_closed", user_id=self._identity_id)

    async def wait_for_feedback(self) -> None:
        """Wait until the running feedback sequence (if any) has finished."""
        task = self._feedback_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def drain(self) -> None:
        """Wait for fire-and-forget community updates to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # --- Play ---

    def set_guess_value(self, value: int) -> int:
        """Move the guess selector, clamped to the accepted range."""
        self._current_guess_value = max(self._min_guess, min(self._max_guess, int(value)))
        return self._current_guess_value

    async def submit_guess(self, value: int | None = None) -> GuessOutcome | None:
        """Score one guess against the current candidate.

        Returns None without side effects when a guess is already in flight,
        no candidate is loaded, or the session is closed.

        Raises:
            InvalidGuessRangeError: If ``value`` is outside the accepted range.
        """
        if self._submission_in_flight or self._state != CursorState.READY:
            logger.debug(
                "guess_submission_ignored",
                user_id=self._identity_id,
                state=self._state.value,
                in_flight=self._submission_in_flight,
            )
            return None

        guess = self._current_guess_value if value is None else int(value)
        if not self._min_guess <= guess <= self._max_guess:
            raise InvalidGuessRangeError(guess, self._min_guess, self._max_guess)

        candidate = self._pool[self._cursor]
        self._submission_in_flight = True
        self._state = CursorState.SUBMITTING

        diff = abs(guess - candidate.actual_age)
        points = score(diff)
        record = GuessRecord(
            target_id=candidate.id,
            target_name=candidate.name,
            target_photo=candidate.photo,
            target_actual_age=candidate.actual_age,
            guessed_value=guess,
            points_earned=points,
        )

        try:
            self._profiles.record_self_guess(self._identity_id, record)
        except ProfileNotLoadedError:
            self._submission_in_flight = False
            self._state = CursorState.READY
            raise

        self._spawn(self._publish_community_guess(candidate.id, guess))

        tier = feedback_tier(diff)
        phrase = self._phrases.next() if tier == FeedbackTier.WAY_OFF else None
        if phrase is not None:
            self._notify_way_off(phrase)

        self._enter_feedback(tier, diff, points, phrase)
        logger.info(
            "guess_scored",
            user_id=self._identity_id,
            target_id=candidate.id,
            diff=diff,
            points=points,
            tier=tier.value,
        )
        return GuessOutcome(record=record, diff=diff, points=points, tier=tier, phrase=phrase)

    # --- Internals ---

    def _to_candidate(self, document: StoredDocument) -> CandidateProfile | None:
        fields = document.fields
        if document.id == self._identity_id:
            return None
        if not fields.get("has_provided_date_of_birth"):
            return None
        if not fields.get("date_of_birth") or not fields.get("photo"):
            return None
        try:
            parse_date_of_birth(fields["date_of_birth"])
        except (AttributeError, ValueError):
            logger.warning("candidate_date_of_birth_invalid", target_id=document.id)
            return None
        return CandidateProfile(
            id=document.id,
            actual_age=calculate_age(fields["date_of_birth"], self._today()),
            photo=fields["photo"],
            name=fields.get("name") or self._default_name,
        )

    def _notify_way_off(self, phrase: str) -> None:
        if self._way_off_seen:
            notice = WayOffNotice(variant=NoticeVariant.SUBTLE, phrase=phrase)
        else:
            notice = WayOffNotice(
                variant=NoticeVariant.FIRST_TIME,
                phrase=phrase,
                label=WAY_OFF_FIRST_TIME_LABEL,
            )
            self._way_off_seen = True
        self._last_notice = notice
        if self._on_way_off is None:
            return
        try:
            self._on_way_off(notice)
        except Exception:
            logger.exception("way_off_hook_failed", user_id=self._identity_id)

    def _enter_feedback(
        self,
        tier: FeedbackTier,
        diff: int,
        points: int,
        phrase: str | None,
    ) -> None:
        now = self._clock()
        first = FEEDBACK_PLANS[tier][0]
        self._feedback = FeedbackState(
            tier=tier,
            diff=diff,
            points=points,
            stage=first.name,
            stage_index=0,
            entered_at=now,
            stage_entered_at=now,
            phrase=phrase,
        )
        self._state = CursorState.FEEDBACK
        self._feedback_task = asyncio.create_task(self._run_feedback())

    async def _run_feedback(self) -> None:
        feedback = self._feedback
        assert feedback is not None
        try:
            for index, stage in enumerate(FEEDBACK_PLANS[feedback.tier]):
                if index > 0:
                    feedback = FeedbackState(
                        tier=feedback.tier,
                        diff=feedback.diff,
                        points=feedback.points,
                        stage=stage.name,
                        stage_index=index,
                        entered_at=feedback.entered_at,
                        stage_entered_at=self._clock(),
                        phrase=feedback.phrase,
                    )
                    self._feedback = feedback
                await self._sleep(stage.duration)
        except Exception:
            logger.exception("guess_feedback_failed", user_id=self._identity_id)
        if self._state == CursorState.FEEDBACK:
            self._advance()

    def _advance(self) -> None:
        self._cursor = (self._cursor + 1) % len(self._pool)
        self._current_guess_value = self._min_guess
        self._feedback = None
        self._state = CursorState.READY
        self._submission_in_flight = False

    async def _cancel_feedback(self) -> None:
        task = self._feedback_task
        self._feedback_task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _publish_community_guess(self, target_id: str, value: int) -> None:
        try:
            await self._store.increment_field(target_id, "community_guess_total", value)
            await self._store.increment_field(target_id, "community_guess_count", 1)
            await self._store.append_to_list(
                target_id,
                "guess_history",
                {"guesser_id": self._identity_id, "value": value},
            )
        except RemoteUnavailableError:
            logger.warning(
                "community_guess_update_failed",
                user_id=self._identity_id,
                target_id=target_id,
            )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
