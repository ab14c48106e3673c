"""Game API routes."""

from fastapi import APIRouter, Depends, Request, status

from api.dependencies.auth import CurrentIdentity
from api.v1.dependencies import get_game_service
from api.v1.schemas.game import (
    GuessOutcomeResponse,
    GuessSubmit,
    GuessSubmitResponse,
    GuessValueUpdate,
    SessionDetailResponse,
    SessionResponse,
)
from core.rate_limit import GUESS_RATE_LIMIT, READ_RATE_LIMIT, WRITE_RATE_LIMIT, limiter
from domain.services.game_service import GameService

router = APIRouter(prefix="/game/session", tags=["game"])


@router.post(
    "",
    response_model=SessionDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a guess session",
)
@limiter.limit(WRITE_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def start_session(
    request: Request,
    identity: CurrentIdentity,
    service: GameService = Depends(get_game_service),
) -> SessionDetailResponse:
    """Fetch and shuffle eligible candidates, replacing any previous session.

    An empty pool is not an error: the session reports ``cursor_state=empty``.
    """
    session = await service.start_session(identity)
    return SessionDetailResponse(data=SessionResponse.from_snapshot(session.snapshot()))


@router.get(
    "",
    response_model=SessionDetailResponse,
    summary="Get the current guess session",
    responses={404: {"description": "No active session"}},
)
@limiter.limit(READ_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def get_session(
    request: Request,
    identity: CurrentIdentity,
    service: GameService = Depends(get_game_service),
) -> SessionDetailResponse:
    """Current candidate, cursor state and feedback in progress."""
    session = service.get_session(identity.id)
    return SessionDetailResponse(data=SessionResponse.from_snapshot(session.snapshot()))


@router.put(
    "/guess-value",
    response_model=SessionDetailResponse,
    summary="Move the guess selector",
    responses={404: {"description": "No active session"}},
)
@limiter.limit(GUESS_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def set_guess_value(
    request: Request,
    body: GuessValueUpdate,
    identity: CurrentIdentity,
    service: GameService = Depends(get_game_service),
) -> SessionDetailResponse:
    """Set the selector value; it is clamped to the accepted guess range."""
    session = service.get_session(identity.id)
    session.set_guess_value(body.value)
    return SessionDetailResponse(data=SessionResponse.from_snapshot(session.snapshot()))


@router.post(
    "/guesses",
    response_model=GuessSubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a guess",
    responses={
        202: {"description": "Guess scored, or ignored while feedback is running"},
        400: {"description": "Guess outside the accepted range"},
        404: {"description": "No active session"},
    },
)
@limiter.limit(GUESS_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def submit_guess(
    request: Request,
    body: GuessSubmit,
    identity: CurrentIdentity,
    service: GameService = Depends(get_game_service),
) -> GuessSubmitResponse:
    """Score a guess for the current candidate.

    Feedback runs in the background; the next candidate becomes available
    once it completes.
    """
    session = service.get_session(identity.id)
    outcome = await session.submit_guess(body.value)
    return GuessSubmitResponse(
        accepted=outcome is not None,
        outcome=GuessOutcomeResponse.from_outcome(outcome) if outcome else None,
        session=SessionResponse.from_snapshot(session.snapshot()),
    )


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End the guess session",
)
@limiter.limit(WRITE_RATE_LIMIT)  # type: ignore[untyped-decorator]
async def end_session(
    request: Request,
    identity: CurrentIdentity,
    service: GameService = Depends(get_game_service),
) -> None:
    """Close the session and cancel any pending feedback."""
    await service.end_session(identity.id)
    return None
