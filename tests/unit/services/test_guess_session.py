"""Unit tests for GuessSession."""

import asyncio
import random
from datetime import date

import pytest

from core.exceptions import InvalidGuessRangeError, ProfileNotLoadedError
from domain.entities.guess_session import CursorState, FeedbackTier, NoticeVariant
from domain.entities.identity import Identity
from domain.services.guess_session import GuessSession
from domain.services.profile_service import ProfileService
from domain.services.scoring import WAY_OFF_FIRST_TIME_LABEL, WAY_OFF_PHRASES

TODAY = date(2024, 6, 1)
USER_ID = "player"
PHOTO = "data:image/png;base64,AAAA"


class KeepOrder(random.Random):
    """Random source whose shuffle leaves the pool in store order."""

    def shuffle(self, x, *args, **kwargs) -> None:
        return None


class InstantSleep:
    def __init__(self) -> None:
        self.durations: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)


class GatedSleep:
    """Sleep replacement that blocks until released."""

    def __init__(self) -> None:
        self.durations: list[float] = []
        self._gate = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)
        await self._gate.wait()

    def release(self) -> None:
        self._gate.set()


def _seed_candidates(store) -> None:
    # alice is 30 and bob is 35 on TODAY
    store.seed(
        "alice",
        name="Alice",
        date_of_birth="1994-01-01",
        has_provided_date_of_birth=True,
        photo=PHOTO,
    )
    store.seed(
        "bob",
        name="Bob",
        date_of_birth="1989-01-01",
        has_provided_date_of_birth=True,
        photo=PHOTO,
    )


@pytest.fixture
async def profiles(store, cache) -> ProfileService:
    service = ProfileService(store=store, cache=cache, today=lambda: TODAY)
    await service.load(Identity(id=USER_ID, name="Player"))
    return service


def _session(profiles, store, sleep=None, on_way_off=None, clock=None) -> GuessSession:
    return GuessSession(
        identity_id=USER_ID,
        profiles=profiles,
        store=store,
        on_way_off=on_way_off,
        rng=KeepOrder(),
        sleep=sleep or InstantSleep(),
        clock=clock or (lambda: 0.0),
        today=lambda: TODAY,
    )


# --- start ---


class TestStart:
    @pytest.mark.asyncio
    async def test_only_eligible_candidates_are_pooled(self, profiles, store):
        _seed_candidates(store)
        store.seed("carol", name="Carol", date_of_birth="1990-01-01", has_provided_date_of_birth=True)
        store.seed("dave", name="Dave", date_of_birth="1990-01-01", photo=PHOTO)
        store.seed("erin", name="Erin", has_provided_date_of_birth=True, photo=PHOTO)
        session = _session(profiles, store)

        snapshot = await session.start()

        assert snapshot.cursor_state == CursorState.READY
        assert snapshot.pool_size == 2
        assert snapshot.candidate.id == "alice"
        assert snapshot.candidate.actual_age == 30
        assert snapshot.current_guess_value == 16

    @pytest.mark.asyncio
    async def test_excludes_own_profile(self, profiles, store):
        store.seed(
            USER_ID,
            name="Player",
            date_of_birth="1990-01-01",
            has_provided_date_of_birth=True,
            photo=PHOTO,
        )
        session = _session(profiles, store)

        snapshot = await session.start()

        assert snapshot.cursor_state == CursorState.EMPTY
        assert snapshot.candidate is None

    @pytest.mark.asyncio
    async def test_skips_unparsable_date_of_birth(self, profiles, store):
        _seed_candidates(store)
        store.seed(
            "frank",
            name="Frank",
            date_of_birth="not-a-date",
            has_provided_date_of_birth=True,
            photo=PHOTO,
        )
        session = _session(profiles, store)

        snapshot = await session.start()

        assert snapshot.pool_size == 2

    @pytest.mark.asyncio
    async def test_missing_name_uses_default(self, profiles, store):
        store.seed("anon", date_of_birth="1990-01-01", has_provided_date_of_birth=True, photo=PHOTO)
        session = _session(profiles, store)

        snapshot = await session.start()

        assert snapshot.candidate.name == "Gage User"

    @pytest.mark.asyncio
    async def test_unreachable_store_gives_empty_pool(self, profiles, store):
        _seed_candidates(store)
        store.failing = {"list_documents"}
        session = _session(profiles, store)

        snapshot = await session.start()

        assert snapshot.cursor_state == CursorState.EMPTY

    @pytest.mark.asyncio
    async def test_restart_after_empty_picks_up_new_candidates(self, profiles, store):
        session = _session(profiles, store)
        await session.start()

        _seed_candidates(store)
        snapshot = await session.start()

        assert snapshot.cursor_state == CursorState.READY

    @pytest.mark.asyncio
    async def test_shuffles_with_session_rng(self, profiles, store):
        _seed_candidates(store)

        class Reverse(random.Random):
            def shuffle(self, x, *args, **kwargs) -> None:
                x.reverse()

        session = GuessSession(
            identity_id=USER_ID, profiles=profiles, store=store, rng=Reverse(), today=lambda: TODAY
        )

        snapshot = await session.start()

        assert snapshot.candidate.id == "bob"


# --- set_guess_value ---


class TestSetGuessValue:
    @pytest.mark.asyncio
    async def test_clamps_to_range(self, profiles, store):
        session = _session(profiles, store)

        assert session.set_guess_value(5) == 16
        assert session.set_guess_value(150) == 100
        assert session.set_guess_value(42) == 42
        assert session.snapshot().current_guess_value == 42


# --- submit_guess ---


class TestSubmitGuess:
    @pytest.mark.asyncio
    async def test_no_candidate_is_a_no_op(self, profiles, store):
        session = _session(profiles, store)
        await session.start()

        assert await session.submit_guess(30) is None
        assert profiles.get(USER_ID).self_guess_count == 0

    @pytest.mark.asyncio
    async def test_exact_guess_scores_ten_and_advances(self, profiles, store):
        _seed_candidates(store)
        sleep = InstantSleep()
        session = _session(profiles, store, sleep=sleep)
        await session.start()

        outcome = await session.submit_guess(30)

        assert outcome.points == 10
        assert outcome.diff == 0
        assert outcome.tier == FeedbackTier.PERFECT
        assert outcome.phrase is None
        assert session.state == CursorState.FEEDBACK

        await session.wait_for_feedback()
        await session.drain()

        snapshot = session.snapshot()
        assert snapshot.cursor_state == CursorState.READY
        assert snapshot.cursor == 1
        assert snapshot.candidate.id == "bob"
        assert snapshot.current_guess_value == 16
        assert snapshot.feedback is None
        assert sleep.durations == [0.4, 0.5, 0.5, 2.0]

        profile = profiles.get(USER_ID)
        assert profile.self_guess_count == 1
        assert profile.self_guess_total_points == 10
        assert profile.recent_guesses[0].target_id == "alice"
        assert profile.recent_guesses[0].target_actual_age == 30

        alice = store.documents["alice"]
        assert alice["community_guess_total"] == 30
        assert alice["community_guess_count"] == 1
        assert alice["guess_history"] == [{"guesser_id": USER_ID, "value": 30}]

    @pytest.mark.asyncio
    async def test_submits_current_selector_value_when_omitted(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store)
        await session.start()
        session.set_guess_value(28)

        outcome = await session.submit_guess()

        assert outcome.record.guessed_value == 28
        assert outcome.points == 7
        assert outcome.tier == FeedbackTier.CLOSE

    @pytest.mark.asyncio
    async def test_five_years_off_is_way_off_with_two_points(self, profiles, store):
        _seed_candidates(store)
        sleep = InstantSleep()
        session = _session(profiles, store, sleep=sleep)
        await session.start()

        outcome = await session.submit_guess(25)

        assert outcome.diff == 5
        assert outcome.points == 2
        assert outcome.tier == FeedbackTier.WAY_OFF
        assert outcome.phrase == WAY_OFF_PHRASES[0]

        await session.wait_for_feedback()
        assert sleep.durations == [0.4, 0.4, 1.5]

    @pytest.mark.asyncio
    async def test_second_guess_ignored_while_feedback_runs(self, profiles, store):
        _seed_candidates(store)
        sleep = GatedSleep()
        session = _session(profiles, store, sleep=sleep)
        await session.start()

        first = await session.submit_guess(30)
        second = await session.submit_guess(31)

        assert first is not None
        assert second is None
        snapshot = session.snapshot()
        assert snapshot.submission_in_flight is True
        assert snapshot.cursor == 0
        assert profiles.get(USER_ID).self_guess_count == 1

        sleep.release()
        await session.wait_for_feedback()
        await session.drain()

        assert session.snapshot().submission_in_flight is False
        assert session.snapshot().cursor == 1
        assert store.documents["alice"]["community_guess_count"] == 1
        assert store.documents["alice"]["community_guess_total"] == 30
        assert store.calls.count(("increment_field", "alice")) == 2
        assert store.calls.count(("append_to_list", "alice")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_submissions_score_once(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store, sleep=GatedSleep())
        await session.start()

        results = await asyncio.gather(session.submit_guess(30), session.submit_guess(30))
        await session.drain()

        assert sum(result is not None for result in results) == 1
        assert profiles.get(USER_ID).self_guess_count == 1
        assert store.documents["alice"]["community_guess_count"] == 1
        assert store.documents["alice"]["guess_history"] == [{"guesser_id": USER_ID, "value": 30}]

    @pytest.mark.asyncio
    async def test_failing_feedback_timer_releases_lock(self, profiles, store):
        _seed_candidates(store)

        async def broken_sleep(seconds: float) -> None:
            raise RuntimeError("timer failed")

        session = _session(profiles, store, sleep=broken_sleep)
        await session.start()

        await session.submit_guess(30)
        await session.wait_for_feedback()

        snapshot = session.snapshot()
        assert snapshot.cursor_state == CursorState.READY
        assert snapshot.submission_in_flight is False
        assert snapshot.cursor == 1
        assert await session.submit_guess(35) is not None

    @pytest.mark.asyncio
    async def test_feedback_state_exposed_while_running(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store, sleep=GatedSleep(), clock=lambda: 12.5)
        await session.start()

        await session.submit_guess(32)
        await asyncio.sleep(0)

        snapshot = session.snapshot()
        assert snapshot.cursor_state == CursorState.FEEDBACK
        assert snapshot.feedback_tier == FeedbackTier.CLOSE
        assert snapshot.feedback.stage == "pulse"
        assert snapshot.feedback.stage_index == 0
        assert snapshot.feedback.points == 7
        assert snapshot.feedback.entered_at == 12.5

    @pytest.mark.asyncio
    async def test_out_of_range_guess_changes_nothing(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store)
        await session.start()

        with pytest.raises(InvalidGuessRangeError):
            await session.submit_guess(10)
        with pytest.raises(InvalidGuessRangeError):
            await session.submit_guess(101)

        snapshot = session.snapshot()
        assert snapshot.cursor_state == CursorState.READY
        assert snapshot.submission_in_flight is False
        assert profiles.get(USER_ID).self_guess_count == 0
        assert store.documents["alice"]["community_guess_count"] == 0

    @pytest.mark.asyncio
    async def test_remote_failure_does_not_block_the_loop(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store)
        await session.start()
        store.failing = {"increment_field", "append_to_list"}

        outcome = await session.submit_guess(30)
        await session.wait_for_feedback()
        await session.drain()

        assert outcome.points == 10
        assert session.snapshot().cursor_state == CursorState.READY
        assert session.snapshot().cursor == 1
        assert profiles.get(USER_ID).self_guess_count == 1
        assert store.documents["alice"]["community_guess_count"] == 0

    @pytest.mark.asyncio
    async def test_profile_not_loaded_releases_lock(self, store, cache):
        _seed_candidates(store)
        unloaded = ProfileService(store=store, cache=cache, today=lambda: TODAY)
        session = _session(unloaded, store)
        await session.start()

        with pytest.raises(ProfileNotLoadedError):
            await session.submit_guess(30)

        assert session.snapshot().submission_in_flight is False
        assert session.state == CursorState.READY

    @pytest.mark.asyncio
    async def test_cursor_wraps_around_pool(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store)
        await session.start()

        for _ in range(2):
            await session.submit_guess(30)
            await session.wait_for_feedback()

        assert session.snapshot().cursor == 0
        assert session.candidate.id == "alice"


# --- way-off notices ---


class TestWayOffNotices:
    @pytest.mark.asyncio
    async def test_phrases_rotate_and_first_notice_is_loud(self, profiles, store):
        _seed_candidates(store)
        notices = []
        session = _session(profiles, store, on_way_off=notices.append)
        await session.start()

        phrases = []
        for _ in range(3):
            outcome = await session.submit_guess(80)
            phrases.append(outcome.phrase)
            await session.wait_for_feedback()

        assert phrases == list(WAY_OFF_PHRASES[:3])
        assert len(set(phrases)) == 3
        assert [n.variant for n in notices] == [
            NoticeVariant.FIRST_TIME,
            NoticeVariant.SUBTLE,
            NoticeVariant.SUBTLE,
        ]
        assert notices[0].label == WAY_OFF_FIRST_TIME_LABEL
        assert notices[1].label is None
        assert session.snapshot().last_notice == notices[-1]

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_block_the_loop(self, profiles, store):
        _seed_candidates(store)

        def broken_hook(notice) -> None:
            raise RuntimeError("listener failed")

        session = _session(profiles, store, on_way_off=broken_hook)
        await session.start()

        outcome = await session.submit_guess(90)
        await session.wait_for_feedback()

        assert outcome.tier == FeedbackTier.WAY_OFF
        assert session.snapshot().last_notice.variant == NoticeVariant.FIRST_TIME
        assert session.state == CursorState.READY
        assert session.snapshot().submission_in_flight is False

        retry = await session.submit_guess(35)

        assert retry is not None
        assert retry.points == 10
        assert profiles.get(USER_ID).self_guess_count == 2

    @pytest.mark.asyncio
    async def test_close_guesses_do_not_notify(self, profiles, store):
        _seed_candidates(store)
        notices = []
        session = _session(profiles, store, on_way_off=notices.append)
        await session.start()

        await session.submit_guess(31)

        assert notices == []

    @pytest.mark.asyncio
    async def test_restart_resets_rotation_and_first_time_notice(self, profiles, store):
        _seed_candidates(store)
        notices = []
        session = _session(profiles, store, on_way_off=notices.append)
        await session.start()
        await session.submit_guess(80)
        await session.wait_for_feedback()

        await session.start()
        outcome = await session.submit_guess(80)

        assert outcome.phrase == WAY_OFF_PHRASES[0]
        assert notices[-1].variant == NoticeVariant.FIRST_TIME


# --- close ---


class TestClose:
    @pytest.mark.asyncio
    async def test_cancels_pending_feedback(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store, sleep=GatedSleep())
        await session.start()
        await session.submit_guess(30)
        await asyncio.sleep(0)

        await session.close()

        snapshot = session.snapshot()
        assert snapshot.cursor_state == CursorState.CLOSED
        assert snapshot.feedback is None
        assert snapshot.candidate is None
        assert snapshot.cursor == 0
        assert await session.submit_guess(30) is None

    @pytest.mark.asyncio
    async def test_start_after_close_is_a_no_op(self, profiles, store):
        _seed_candidates(store)
        session = _session(profiles, store)
        await session.close()

        snapshot = await session.start()

        assert snapshot.cursor_state == CursorState.CLOSED
