"""Authentication dependencies for FastAPI."""

from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.exceptions import AuthenticationError, ErrorCode, NotAuthenticatedError
from domain.entities.identity import Identity
from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import IAuthProvider

# Security scheme for OpenAPI docs
security = HTTPBearer(auto_error=False)

# Singleton auth provider
_auth_provider: IAuthProvider | None = None


def get_auth_provider() -> IAuthProvider:
    """Get or create the auth provider singleton."""
    global _auth_provider
    if _auth_provider is None:
        _auth_provider = JWTAuthProvider()
    return _auth_provider


async def get_current_identity(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None,
        Depends(security),
    ],
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> Identity:
    """
    Dependency to get the signed-in identity.

    Raises:
        NotAuthenticatedError: If no token is provided
        AuthenticationError: If the token is invalid or expired
    """
    if not credentials:
        raise NotAuthenticatedError()

    identity = await auth_provider.validate_token(credentials.credentials)

    if not identity:
        raise AuthenticationError(
            message="Invalid or expired token",
            error_code=ErrorCode.INVALID_TOKEN,
        )

    structlog.contextvars.bind_contextvars(user_id=identity.id)
    return identity


# Type alias for convenience in route handlers
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
