"""Profile API routes."""

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentIdentity
from api.v1.dependencies import get_game_service, get_profile_service
from api.v1.schemas.profile import ProfileDetailResponse, ProfileResponse, ProfileUpdate
from core.rate_limit import READ_RATE_LIMIT, WRITE_RATE_LIMIT, limiter
from domain.services.game_service import GameService
from domain.services.profile_service import ProfileService

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get(
    "",
    response_model=ProfileDetailResponse,
    summary="Load the signed-in profile",
)
@limiter.limit(READ_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def get_profile(
    request: Request,
    identity: CurrentIdentity,
    service: ProfileService = Depends(get_profile_service),
) -> ProfileDetailResponse:
    """Reconcile the cached profile with the remote store and return it.

    The first call for an identity creates the profile from identity-provider
    attributes.
    """
    snapshot = await service.load(identity)
    return ProfileDetailResponse(data=ProfileResponse.from_snapshot(snapshot))


@router.patch(
    "",
    response_model=ProfileDetailResponse,
    summary="Update editable profile fields",
    responses={
        200: {"description": "Profile updated"},
        400: {"description": "Invalid date of birth or field value"},
    },
)
@limiter.limit(WRITE_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: CurrentIdentity,
    service: ProfileService = Depends(get_profile_service),
) -> ProfileDetailResponse:
    """Apply a sparse update. Setting a date of birth marks it as provided."""
    await service.ensure_loaded(identity)
    snapshot = await service.update(identity.id, body.model_dump(exclude_unset=True))
    return ProfileDetailResponse(data=ProfileResponse.from_snapshot(snapshot))


@router.delete(
    "/session",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out",
)
@limiter.limit(WRITE_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def sign_out(
    request: Request,
    identity: CurrentIdentity,
    service: ProfileService = Depends(get_profile_service),
    games: GameService = Depends(get_game_service),
) -> None:
    """Drop the in-memory profile and any running game session."""
    await games.end_session(identity.id)
    service.clear(identity.id)
    return None
