"""Identity domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """A signed-in identity as reported by the identity provider."""

    id: str
    email: str | None = None
    name: str | None = None
    photo_url: str | None = None
