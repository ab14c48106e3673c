"""Game service: keeps one live guess session per identity."""

import random
from collections.abc import Callable

import structlog

from core.exceptions import GameSessionNotFoundError
from domain.entities.guess_session import WayOffNotice
from domain.entities.identity import Identity
from domain.repositories.profile_store import IRemoteProfileStore
from domain.services.guess_session import GuessSession
from domain.services.profile_service import ProfileService

logger = structlog.get_logger()


class GameService:
    """Service layer creating, looking up and disposing of guess sessions."""

    def __init__(
        self,
        profiles: ProfileService,
        store: IRemoteProfileStore,
        min_guess: int = 16,
        max_guess: int = 100,
        default_name: str = "Gage User",
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self._profiles = profiles
        self._store = store
        self._min_guess = min_guess
        self._max_guess = max_guess
        self._default_name = default_name
        self._rng_factory = rng_factory
        self._sessions: dict[str, GuessSession] = {}

    async def start_session(self, identity: Identity | None) -> GuessSession:
        """Start a fresh session, replacing any session the identity already had."""
        snapshot = await self._profiles.ensure_loaded(identity)
        await self.end_session(snapshot.id)

        session = GuessSession(
            identity_id=snapshot.id,
            profiles=self._profiles,
            store=self._store,
            min_guess=self._min_guess,
            max_guess=self._max_guess,
            default_name=self._default_name,
            on_way_off=self._log_way_off(snapshot.id),
            rng=self._rng_factory(),
        )
        self._sessions[snapshot.id] = session
        await session.start()
        return session

    def get_session(self, user_id: str) -> GuessSession:
        session = self._sessions.get(user_id)
        if session is None:
            raise GameSessionNotFoundError(user_id)
        return session

    async def end_session(self, user_id: str) -> bool:
        """Close and forget the identity's session. Returns False if none existed."""
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        await session.close()
        await session.drain()
        return True

    async def close_all(self) -> None:
        """Close every live session (application shutdown)."""
        for user_id in list(self._sessions):
            await self.end_session(user_id)

    @staticmethod
    def _log_way_off(user_id: str) -> Callable[[WayOffNotice], None]:
        def hook(notice: WayOffNotice) -> None:
            logger.info(
                "way_off_notice",
                user_id=user_id,
                variant=notice.variant.value,
                phrase=notice.phrase,
            )

        return hook
