"""Profile service: reconciles the local profile cache with the remote store."""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from datetime import date, datetime
from typing import Any

import orjson
import structlog

from core.exceptions import (
    InvalidDateOfBirthError,
    InvalidProfileFieldError,
    NotAuthenticatedError,
    ProfileNotLoadedError,
    RemoteUnavailableError,
)
from domain.entities.identity import Identity
from domain.entities.profile import GuessRecord, Profile, ProfileSnapshot
from domain.repositories.local_cache import ILocalCache
from domain.repositories.profile_store import IRemoteProfileStore
from domain.services.age import calculate_age, parse_date_of_birth

logger = structlog.get_logger()

PROFILE_CACHE_PREFIX = "gage_profile_v1_"
UNSYNCED_FIELDS_PREFIX = "gage_profile_unsynced_v1_"
ACTIVE_IDENTITY_KEY = "gage_active_identity_v1"

EDITABLE_FIELDS = frozenset({"name", "date_of_birth", "photo", "photo_sourced_externally"})
# Editable fields mirrored to the remote document.
REMOTE_EDITABLE_FIELDS = ("name", "date_of_birth", "photo")

ProfileListener = Callable[[str, ProfileSnapshot | None], None]
PhotoFetcher = Callable[[str], Awaitable[str | None]]


def cache_key(user_id: str) -> str:
    return f"{PROFILE_CACHE_PREFIX}{user_id}"


def unsynced_key(user_id: str) -> str:
    return f"{UNSYNCED_FIELDS_PREFIX}{user_id}"


def merge_profile(
    seed: Profile,
    cached: Profile | None,
    remote: dict[str, Any] | None,
    unsynced: frozenset[str] = frozenset(),
) -> Profile:
    """Merge cached and remote state into one profile.

    Field ownership:
        * community aggregates come from the remote document whenever it
          could be read, otherwise the cached values are kept;
        * name, date of birth and photo prefer the remote value, then the
          cached value, then the identity-provider seed. Fields edited
          locally whose remote write never succeeded (``unsynced``) keep
          the cached value, since it is the most recent one;
        * the owner's own guess statistics only live in the cache.

    Args:
        seed: Profile built from identity-provider attributes.
        cached: Profile read from the local cache, if any.
        remote: Remote document fields, or None when the store was unreachable.
        unsynced: Editable fields with a pending or failed remote write.

    Returns:
        A new merged Profile. Inputs are not mutated.
    """
    base = cached or seed
    fields = remote or {}

    def pick(name: str) -> Any:
        if cached is not None and name in unsynced:
            return getattr(cached, name)
        value = fields.get(name)
        if value:
            return value
        if cached is not None and getattr(cached, name):
            return getattr(cached, name)
        return getattr(seed, name)

    photo = pick("photo")
    if cached is not None and photo == cached.photo:
        photo_sourced_externally = cached.photo_sourced_externally
    elif photo and photo == seed.photo:
        photo_sourced_externally = seed.photo_sourced_externally
    else:
        photo_sourced_externally = False

    if remote is not None:
        community_total = int(fields.get("community_guess_total") or 0)
        community_count = int(fields.get("community_guess_count") or 0)
    else:
        community_total = base.community_guess_total
        community_count = base.community_guess_count

    return Profile(
        id=seed.id,
        email=seed.email or base.email,
        name=pick("name"),
        date_of_birth=pick("date_of_birth"),
        photo=photo,
        photo_sourced_externally=photo_sourced_externally,
        community_guess_total=community_total,
        community_guess_count=community_count,
        self_guess_total_points=base.self_guess_total_points,
        self_guess_count=base.self_guess_count,
        recent_guesses=list(base.recent_guesses),
    )


class ProfileService:
    """Owns the canonical in-memory profile of each signed-in identity.

    The local cache is the durable source of truth for self-owned fields;
    the remote store owns the community aggregates. Remote writes issued by
    ``update`` run in the background and never roll back local state.
    """

    def __init__(
        self,
        store: IRemoteProfileStore,
        cache: ILocalCache,
        photo_fetcher: PhotoFetcher | None = None,
        min_age: int = 16,
        max_age: int = 100,
        recent_guesses_limit: int = 3,
        default_name: str = "Gage User",
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._cache = cache
        self._photo_fetcher = photo_fetcher
        self._min_age = min_age
        self._max_age = max_age
        self._recent_guesses_limit = recent_guesses_limit
        self._default_name = default_name
        self._today = today
        self._profiles: dict[str, Profile] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[ProfileListener] = []
        self._pending: set[asyncio.Task[None]] = set()

    # --- Consumers ---

    def subscribe(self, listener: ProfileListener) -> None:
        """Register a callback receiving every published snapshot."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: ProfileListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get(self, user_id: str) -> ProfileSnapshot | None:
        """Current snapshot for a loaded identity, or None."""
        profile = self._profiles.get(user_id)
        return self._enrich(profile) if profile else None

    # --- Lifecycle ---

    async def load(self, identity: Identity | None) -> ProfileSnapshot:
        """Load, reconcile and publish the profile for ``identity``.

        Loads for the same identity are serialized so that concurrent calls
        converge on the same merged result.

        Raises:
            NotAuthenticatedError: If no identity is available.
        """
        if identity is None or not identity.id:
            raise NotAuthenticatedError()

        lock = self._locks.setdefault(identity.id, asyncio.Lock())
        async with lock:
            cached = self._read_cache(identity.id)
            remote = await self._read_or_create_remote(identity.id)

            # Only a first-ever load seeds the identity-provider photo.
            seed_photo: str | None = None
            has_photo = bool((remote or {}).get("photo"))
            if cached is None and not has_photo and identity.photo_url and self._photo_fetcher:
                seed_photo = await self._photo_fetcher(identity.photo_url)

            seed = Profile(
                id=identity.id,
                email=identity.email or "",
                name=identity.name or self._default_name,
                photo=seed_photo,
                photo_sourced_externally=seed_photo is not None,
            )
            unsynced = self._read_unsynced(identity.id) if cached is not None else frozenset()
            merged = merge_profile(seed, cached, remote, unsynced)

            self._profiles[identity.id] = merged
            self._write_cache(merged)
            self._cache.set(ACTIVE_IDENTITY_KEY, identity.id)

            if remote is not None:
                await self._heal_remote(merged, remote, unsynced)

            logger.info(
                "profile_loaded",
                user_id=identity.id,
                from_cache=cached is not None,
                remote_available=remote is not None,
            )
            return self._publish(merged)

    async def ensure_loaded(self, identity: Identity | None) -> ProfileSnapshot:
        """Return the in-memory snapshot, loading it first if needed."""
        if identity is not None and identity.id in self._profiles:
            return self._enrich(self._profiles[identity.id])
        return await self.load(identity)

    def clear(self, user_id: str) -> None:
        """Forget the in-memory profile on sign-out.

        The cached profile entry and the remote document are kept so that
        self-owned statistics survive the next sign-in.
        """
        self._profiles.pop(user_id, None)
        if self._cache.get(ACTIVE_IDENTITY_KEY) == user_id:
            self._cache.remove(ACTIVE_IDENTITY_KEY)
        logger.info("profile_cleared", user_id=user_id)
        for listener in list(self._listeners):
            self._notify(listener, user_id, None)

    # --- Mutations ---

    async def update(self, user_id: str, changes: dict[str, Any]) -> ProfileSnapshot:
        """Apply a sparse update to the editable fields.

        Setting a non-empty ``date_of_birth`` marks the date of birth as
        provided in the same write. The change is applied in memory and to
        the cache immediately; the remote merge-write runs in the background.

        Raises:
            ProfileNotLoadedError: If the identity has no loaded profile.
            InvalidProfileFieldError: For unknown fields or a blank name.
            InvalidDateOfBirthError: For malformed or out-of-range dates.
        """
        profile = self._require(user_id)
        clean = self._validate_changes(changes)

        if "name" in clean:
            profile.name = clean["name"]
        if "date_of_birth" in clean:
            profile.date_of_birth = clean["date_of_birth"]
            profile.has_provided_date_of_birth = bool(clean["date_of_birth"])
        if "photo" in clean:
            profile.photo = clean["photo"]
            profile.photo_sourced_externally = bool(
                clean.get("photo_sourced_externally", False)
            )
        elif "photo_sourced_externally" in clean:
            profile.photo_sourced_externally = bool(clean["photo_sourced_externally"])

        self._write_cache(profile)

        remote_fields = {k: clean[k] for k in REMOTE_EDITABLE_FIELDS if k in clean}
        if "date_of_birth" in remote_fields:
            remote_fields["has_provided_date_of_birth"] = profile.has_provided_date_of_birth
        if remote_fields:
            self._mark_unsynced(user_id, remote_fields)
            self._spawn(self._write_remote(user_id, remote_fields))

        logger.info("profile_updated", user_id=user_id, fields=sorted(clean))
        return self._publish(profile)

    def record_self_guess(self, user_id: str, record: GuessRecord) -> ProfileSnapshot:
        """Add a guess the owner made to their own statistics (local only)."""
        profile = self._require(user_id)
        profile.record_guess(record, limit=self._recent_guesses_limit)
        self._write_cache(profile)
        return self._publish(profile)

    async def drain(self) -> None:
        """Wait for background remote writes to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # --- Internals ---

    def _require(self, user_id: str) -> Profile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise ProfileNotLoadedError(user_id)
        return profile

    def _validate_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise InvalidProfileFieldError(field, f"Field cannot be edited: {field}")

        clean = dict(changes)
        if "name" in clean:
            name = (clean["name"] or "").strip()
            if not name:
                raise InvalidProfileFieldError("name", "Name is required")
            clean["name"] = name

        if "date_of_birth" in clean:
            raw = (clean["date_of_birth"] or "").strip()
            if raw:
                self._check_date_of_birth(raw)
            clean["date_of_birth"] = raw or None

        if "photo" in clean:
            clean["photo"] = clean["photo"] or None

        return clean

    def _check_date_of_birth(self, value: str) -> None:
        try:
            parse_date_of_birth(value)
        except ValueError:
            raise InvalidDateOfBirthError(value, "Date of birth must be YYYY-MM-DD") from None

        age = calculate_age(value, self._today())
        if age < self._min_age:
            raise InvalidDateOfBirthError(
                value, f"You must be at least {self._min_age} years old"
            )
        if age > self._max_age:
            raise InvalidDateOfBirthError(
                value, f"Please enter a valid date of birth (max {self._max_age} years old)"
            )

    def _read_cache(self, user_id: str) -> Profile | None:
        raw = self._cache.get(cache_key(user_id))
        if raw is None:
            return None
        try:
            return Profile.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("cached_profile_unreadable", user_id=user_id)
            return None

    def _write_cache(self, profile: Profile) -> None:
        payload = orjson.dumps(profile.to_dict(), option=orjson.OPT_SORT_KEYS)
        self._cache.set(cache_key(profile.id), payload.decode())

    async def _read_or_create_remote(self, user_id: str) -> dict[str, Any] | None:
        try:
            document = await self._store.get_document(user_id)
            if document is None:
                document = {
                    "community_guess_total": 0,
                    "community_guess_count": 0,
                    "guess_history": [],
                    "created_at": datetime.utcnow().isoformat(),
                }
                await self._store.create_or_merge_document(user_id, document)
                logger.info("remote_profile_created", user_id=user_id)
            return document
        except RemoteUnavailableError as exc:
            logger.warning(
                "remote_profile_unavailable",
                user_id=user_id,
                operation=exc.details.get("operation") if exc.details else None,
            )
            return None

    def _read_unsynced(self, user_id: str) -> frozenset[str]:
        raw = self._cache.get(unsynced_key(user_id))
        if not raw:
            return frozenset()
        try:
            return frozenset(orjson.loads(raw)) & EDITABLE_FIELDS
        except (orjson.JSONDecodeError, TypeError):
            return frozenset()

    def _store_unsynced(self, user_id: str, fields: frozenset[str]) -> None:
        if fields:
            self._cache.set(unsynced_key(user_id), orjson.dumps(sorted(fields)).decode())
        else:
            self._cache.remove(unsynced_key(user_id))

    def _mark_unsynced(self, user_id: str, fields: dict[str, Any]) -> None:
        names = frozenset(fields) & EDITABLE_FIELDS
        self._store_unsynced(user_id, self._read_unsynced(user_id) | names)

    async def _heal_remote(
        self,
        merged: Profile,
        remote: dict[str, Any],
        unsynced: frozenset[str],
    ) -> None:
        """Push self-owned fields the remote document is missing or behind on."""
        stale = {
            name: getattr(merged, name)
            for name in REMOTE_EDITABLE_FIELDS
            if name in unsynced or (getattr(merged, name) and not remote.get(name))
        }
        if merged.has_provided_date_of_birth != bool(remote.get("has_provided_date_of_birth")):
            stale["has_provided_date_of_birth"] = merged.has_provided_date_of_birth
        if stale:
            await self._write_remote(merged.id, stale)

    async def _write_remote(self, user_id: str, fields: dict[str, Any]) -> None:
        try:
            await self._store.create_or_merge_document(user_id, fields)
        except RemoteUnavailableError:
            logger.warning(
                "remote_profile_write_failed",
                user_id=user_id,
                fields=sorted(fields),
            )
            return

        # A newer local edit may have landed while this write was in flight.
        profile = self._profiles.get(user_id)
        synced = frozenset(
            name
            for name, value in fields.items()
            if profile is None or getattr(profile, name, value) == value
        )
        remaining = self._read_unsynced(user_id) - synced
        self._store_unsynced(user_id, remaining)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _enrich(self, profile: Profile) -> ProfileSnapshot:
        return ProfileSnapshot(
            id=profile.id,
            email=profile.email,
            name=profile.name,
            date_of_birth=profile.date_of_birth,
            has_provided_date_of_birth=profile.has_provided_date_of_birth,
            photo=profile.photo,
            photo_sourced_externally=profile.photo_sourced_externally,
            community_guess_total=profile.community_guess_total,
            community_guess_count=profile.community_guess_count,
            community_average_guess=profile.community_average_guess,
            self_guess_total_points=profile.self_guess_total_points,
            self_guess_count=profile.self_guess_count,
            self_guess_accuracy=profile.self_guess_accuracy,
            recent_guesses=tuple(profile.recent_guesses),
            age=calculate_age(profile.date_of_birth, self._today()),
            is_complete=profile.is_complete,
        )

    def _publish(self, profile: Profile) -> ProfileSnapshot:
        snapshot = self._enrich(profile)
        for listener in list(self._listeners):
            self._notify(listener, profile.id, snapshot)
        return snapshot

    def _notify(
        self,
        listener: ProfileListener,
        user_id: str,
        snapshot: ProfileSnapshot | None,
    ) -> None:
        try:
            listener(user_id, snapshot)
        except Exception:
            logger.exception("profile_listener_failed", user_id=user_id)
