"""Onboarding gate: where a signed-in participant should go next."""

from enum import StrEnum

from domain.entities.profile import ProfileSnapshot


class NextStep(StrEnum):
    LOGIN = "login"
    ACCOUNT = "account"
    UPLOAD_PHOTO = "upload_photo"
    GAME = "game"


def resolve_next_step(profile: ProfileSnapshot | None) -> NextStep:
    """Date of birth first, then a photo, then the game."""
    if profile is None:
        return NextStep.LOGIN
    if not profile.has_provided_date_of_birth:
        return NextStep.ACCOUNT
    if not profile.photo:
        return NextStep.UPLOAD_PHOTO
    return NextStep.GAME
