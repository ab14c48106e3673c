"""JWT authentication provider implementation.

Tokens are HS256-signed and carry the identity-provider attributes the
profile is seeded from:
    {
        "sub": "identity-id",
        "email": "user@example.com",
        "name": "Jane",
        "picture": "https://example.com/jane.jpg",
        "exp": 1234567890
    }
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from core.config import settings
from domain.entities.identity import Identity

logger = logging.getLogger(__name__)


class JWTAuthProvider:
    """JWT-based identity provider."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    async def validate_token(self, token: str) -> Optional[Identity]:
        """
        Validate a JWT token and extract the identity.

        Args:
            token: The JWT to validate

        Returns:
            Identity if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_aud": False},
            )
        except JWTError:
            logger.debug("Rejected bearer token")
            return None

        identity_id = payload.get("sub")
        if not identity_id:
            return None

        # Some providers nest profile attributes under user_metadata
        metadata = payload.get("user_metadata") or {}
        name = payload.get("name") or metadata.get("full_name") or metadata.get("name")
        photo_url = payload.get("picture") or metadata.get("avatar_url")

        return Identity(
            id=str(identity_id),
            email=payload.get("email"),
            name=name,
            photo_url=photo_url,
        )

    def create_token(self, identity: Identity) -> str:
        """
        Create a JWT token for an identity (used for tests and local tooling).

        Args:
            identity: The identity to create a token for

        Returns:
            The generated JWT string
        """
        expire = datetime.utcnow() + timedelta(minutes=self._expire_minutes)

        payload: dict = {
            "sub": identity.id,
            "email": identity.email,
            "name": identity.name,
            "picture": identity.photo_url,
            "exp": expire,
        }

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
