"""Local key-value cache protocol."""

from typing import Protocol


class ILocalCache(Protocol):
    """Synchronous string key-value persistence on the client side."""

    def get(self, key: str) -> str | None:
        """Get the stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value under ``key``."""
        ...

    def remove(self, key: str) -> None:
        """Delete ``key``; missing keys are ignored."""
        ...
