"""Pydantic schemas for Profile API."""

from pydantic import BaseModel, ConfigDict, Field

from domain.entities.profile import ProfileSnapshot
from domain.services.onboarding import NextStep, resolve_next_step


class ProfileUpdate(BaseModel):
    """Schema for a sparse profile update. Omitted fields are left unchanged."""

    name: str | None = Field(None, max_length=100)
    date_of_birth: str | None = Field(
        None,
        description="ISO date (YYYY-MM-DD); empty string clears it",
        examples=["1994-06-01"],
    )
    photo: str | None = Field(None, description="Base64 data URL; null removes the photo")
    photo_sourced_externally: bool | None = None


class GuessRecordResponse(BaseModel):
    """Schema for one of the owner's recent guesses."""

    model_config = ConfigDict(from_attributes=True)

    target_id: str
    target_name: str | None
    target_photo: str | None
    target_actual_age: int
    guessed_value: int
    points_earned: int


class ProfileResponse(BaseModel):
    """Schema for the enriched profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    date_of_birth: str | None
    has_provided_date_of_birth: bool
    photo: str | None
    photo_sourced_externally: bool
    age: int
    is_complete: bool
    community_guess_count: int
    community_average_guess: float | None
    self_guess_total_points: int
    self_guess_count: int
    self_guess_accuracy: int | None
    recent_guesses: list[GuessRecordResponse]
    next_step: NextStep

    @classmethod
    def from_snapshot(cls, snapshot: ProfileSnapshot) -> "ProfileResponse":
        return cls(
            id=snapshot.id,
            email=snapshot.email,
            name=snapshot.name,
            date_of_birth=snapshot.date_of_birth,
            has_provided_date_of_birth=snapshot.has_provided_date_of_birth,
            photo=snapshot.photo,
            photo_sourced_externally=snapshot.photo_sourced_externally,
            age=snapshot.age,
            is_complete=snapshot.is_complete,
            community_guess_count=snapshot.community_guess_count,
            community_average_guess=snapshot.community_average_guess,
            self_guess_total_points=snapshot.self_guess_total_points,
            self_guess_count=snapshot.self_guess_count,
            self_guess_accuracy=snapshot.self_guess_accuracy,
            recent_guesses=[
                GuessRecordResponse.model_validate(record)
                for record in snapshot.recent_guesses
            ],
            next_step=resolve_next_step(snapshot),
        )


class ProfileDetailResponse(BaseModel):
    """Schema for single Profile."""

    data: ProfileResponse
