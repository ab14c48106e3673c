"""Remote profile store protocol."""

from dataclasses import dataclass
from typing import Any, Protocol

# Fields a remote profile document may carry.
DOCUMENT_FIELDS = frozenset(
    {
        "name",
        "date_of_birth",
        "has_provided_date_of_birth",
        "photo",
        "community_guess_total",
        "community_guess_count",
        "guess_history",
        "created_at",
    }
)
COUNTER_FIELDS = frozenset({"community_guess_total", "community_guess_count"})
LIST_FIELDS = frozenset({"guess_history"})


@dataclass(frozen=True)
class StoredDocument:
    """A remote document together with its key."""

    id: str
    fields: dict[str, Any]


class IRemoteProfileStore(Protocol):
    """Per-identity document store with merge-write and atomic counters.

    Implementations raise ``RemoteUnavailableError`` for transport or storage
    failures and ``ValueError`` for fields outside ``DOCUMENT_FIELDS``.
    """

    async def get_document(self, id: str) -> dict[str, Any] | None:
        """Get a document's fields, or None if it does not exist."""
        ...

    async def create_or_merge_document(self, id: str, fields: dict[str, Any]) -> None:
        """Create the document or overwrite only the given fields."""
        ...

    async def update_fields(self, id: str, partial: dict[str, Any]) -> None:
        """Overwrite fields on an existing document."""
        ...

    async def increment_field(self, id: str, field: str, amount: int) -> None:
        """Atomically add ``amount`` to a counter field."""
        ...

    async def append_to_list(self, id: str, field: str, item: dict[str, Any]) -> None:
        """Append ``item`` to a list field."""
        ...

    async def list_documents(self) -> list[StoredDocument]:
        """List every profile document."""
        ...
