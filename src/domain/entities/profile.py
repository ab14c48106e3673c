"""Profile domain entities."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class GuessRecord:
    """One guess the profile owner made about somebody else's age."""

    target_id: str
    target_name: str | None
    target_photo: str | None
    target_actual_age: int
    guessed_value: int
    points_earned: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GuessRecord":
        return cls(
            target_id=str(data["target_id"]),
            target_name=data.get("target_name"),
            target_photo=data.get("target_photo"),
            target_actual_age=int(data.get("target_actual_age", 0)),
            guessed_value=int(data.get("guessed_value", 0)),
            points_earned=int(data.get("points_earned", 0)),
        )


@dataclass(frozen=True)
class CandidateProfile:
    """Public projection of another participant used during play."""

    id: str
    actual_age: int
    photo: str
    name: str


@dataclass
class Profile:
    """Domain entity for a participant profile.

    Remote-owned fields: ``community_guess_total`` and ``community_guess_count``.
    Self-owned fields: everything the owner edits or accumulates by playing.
    """

    id: str
    email: str = ""
    name: str = ""
    date_of_birth: str | None = None
    has_provided_date_of_birth: bool = False
    photo: str | None = None
    photo_sourced_externally: bool = False
    community_guess_total: int = 0
    community_guess_count: int = 0
    self_guess_total_points: int = 0
    self_guess_count: int = 0
    recent_guesses: list[GuessRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Keep the provided-DOB flag in step with the stored date."""
        self.has_provided_date_of_birth = bool(self.date_of_birth)

    @property
    def is_complete(self) -> bool:
        """A profile is playable once it has both a date of birth and a photo."""
        return bool(self.date_of_birth) and bool(self.photo)

    @property
    def community_average_guess(self) -> float | None:
        if self.community_guess_count > 0:
            return self.community_guess_total / self.community_guess_count
        return None

    @property
    def self_guess_accuracy(self) -> int | None:
        """Points earned as a percentage of the maximum possible points."""
        if self.self_guess_count == 0:
            return None
        return round(self.self_guess_total_points / (self.self_guess_count * 10) * 100)

    def record_guess(self, record: GuessRecord, limit: int = 3) -> None:
        """Prepend a guess and bump the owner's own accumulators."""
        self.recent_guesses = [record, *self.recent_guesses][:limit]
        self.self_guess_total_points += record.points_earned
        self.self_guess_count += 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        return cls(
            id=str(data["id"]),
            email=data.get("email") or "",
            name=data.get("name") or "",
            date_of_birth=data.get("date_of_birth") or None,
            photo=data.get("photo") or None,
            photo_sourced_externally=bool(data.get("photo_sourced_externally", False)),
            community_guess_total=int(data.get("community_guess_total") or 0),
            community_guess_count=int(data.get("community_guess_count") or 0),
            self_guess_total_points=int(data.get("self_guess_total_points") or 0),
            self_guess_count=int(data.get("self_guess_count") or 0),
            recent_guesses=[
                GuessRecord.from_dict(item) for item in data.get("recent_guesses") or []
            ],
        )


@dataclass(frozen=True)
class ProfileSnapshot:
    """Immutable, enriched view of a profile handed to consumers."""

    id: str
    email: str
    name: str
    date_of_birth: str | None
    has_provided_date_of_birth: bool
    photo: str | None
    photo_sourced_externally: bool
    community_guess_total: int
    community_guess_count: int
    community_average_guess: float | None
    self_guess_total_points: int
    self_guess_count: int
    self_guess_accuracy: int | None
    recent_guesses: tuple[GuessRecord, ...]
    age: int
    is_complete: bool
