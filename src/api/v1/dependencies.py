"""Dependency injection factories for API v1."""

from functools import lru_cache

from core.config import settings
from domain.repositories.local_cache import ILocalCache
from domain.services.game_service import GameService
from domain.services.profile_service import ProfileService
from infrastructure.cache.local_cache import FileLocalCache, InMemoryLocalCache
from infrastructure.database.profile_store import SQLAlchemyRemoteProfileStore
from infrastructure.database.session import async_session_factory
from infrastructure.identity.photo_fetcher import HttpPhotoFetcher


@lru_cache
def get_local_cache() -> ILocalCache:
    """Get the profile cache (file-backed when a directory is configured)."""
    if settings.local_cache_dir:
        return FileLocalCache(settings.local_cache_dir)
    return InMemoryLocalCache()


@lru_cache
def get_profile_store() -> SQLAlchemyRemoteProfileStore:
    """Get the remote profile store."""
    return SQLAlchemyRemoteProfileStore(async_session_factory)


@lru_cache
def get_profile_service() -> ProfileService:
    """Get Profile service instance."""
    return ProfileService(
        store=get_profile_store(),
        cache=get_local_cache(),
        photo_fetcher=HttpPhotoFetcher(),
        min_age=settings.min_guess_age,
        max_age=settings.max_guess_age,
        recent_guesses_limit=settings.recent_guesses_limit,
        default_name=settings.default_display_name,
    )


@lru_cache
def get_game_service() -> GameService:
    """Get Game service instance."""
    return GameService(
        profiles=get_profile_service(),
        store=get_profile_store(),
        min_guess=settings.min_guess_age,
        max_guess=settings.max_guess_age,
        default_name=settings.default_display_name,
    )
