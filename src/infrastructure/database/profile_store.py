"""SQLAlchemy implementation of the remote profile store."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import RemoteUnavailableError
from domain.repositories.profile_store import (
    COUNTER_FIELDS,
    DOCUMENT_FIELDS,
    LIST_FIELDS,
    StoredDocument,
)
from infrastructure.database.models import ProfileDocumentModel

logger = structlog.get_logger()


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - DOCUMENT_FIELDS
    if unknown:
        raise ValueError(f"Unknown profile document fields: {sorted(unknown)}")


class SQLAlchemyRemoteProfileStore:
    """SQLAlchemy implementation of IRemoteProfileStore.

    Every call runs in its own short transaction. Storage and connection
    failures surface as ``RemoteUnavailableError``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(
        self, operation: str, document_id: str | None = None
    ) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except (SQLAlchemyError, OSError) as exc:
                await session.rollback()
                logger.warning(
                    "remote_store_error",
                    operation=operation,
                    document_id=document_id,
                    error=str(exc),
                )
                raise RemoteUnavailableError(operation, document_id) from exc

    async def get_document(self, id: str) -> dict[str, Any] | None:
        """Get a document's fields, or None if it does not exist."""
        async with self._transaction("get_document", id) as session:
            model = await session.get(ProfileDocumentModel, id)
            return self._to_fields(model) if model else None

    async def create_or_merge_document(self, id: str, fields: dict[str, Any]) -> None:
        """Create the document or overwrite only the given fields."""
        _check_fields(fields)
        async with self._transaction("create_or_merge_document", id) as session:
            model = await session.get(ProfileDocumentModel, id)
            if model is None:
                model = self._new_model(id)
                session.add(model)
            self._apply(model, fields)

    async def update_fields(self, id: str, partial: dict[str, Any]) -> None:
        """Overwrite fields on an existing document.

        Raises:
            LookupError: If the document does not exist.
        """
        _check_fields(partial)
        async with self._transaction("update_fields", id) as session:
            model = await session.get(ProfileDocumentModel, id)
            if model is None:
                raise LookupError(f"Profile document not found: {id}")
            self._apply(model, partial)

    async def increment_field(self, id: str, field: str, amount: int) -> None:
        """Atomically add ``amount`` to a counter, creating the document if needed."""
        if field not in COUNTER_FIELDS:
            raise ValueError(f"Not a counter field: {field}")
        column = getattr(ProfileDocumentModel, field)
        async with self._transaction("increment_field", id) as session:
            stmt = (
                update(ProfileDocumentModel)
                .where(ProfileDocumentModel.id == id)
                .values(
                    {
                        column: column + amount,
                        ProfileDocumentModel.updated_at: datetime.utcnow(),
                    }
                )
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                model = self._new_model(id)
                setattr(model, field, amount)
                session.add(model)

    async def append_to_list(self, id: str, field: str, item: dict[str, Any]) -> None:
        """Append ``item`` to a list field, creating the document if needed."""
        if field not in LIST_FIELDS:
            raise ValueError(f"Not a list field: {field}")
        async with self._transaction("append_to_list", id) as session:
            stmt = (
                select(ProfileDocumentModel)
                .where(ProfileDocumentModel.id == id)
                .with_for_update()
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                model = self._new_model(id)
                session.add(model)
            # Reassign so the JSON column is flagged as modified.
            setattr(model, field, [*(getattr(model, field) or []), dict(item)])

    async def list_documents(self) -> list[StoredDocument]:
        """List every profile document."""
        async with self._transaction("list_documents") as session:
            stmt = select(ProfileDocumentModel).order_by(ProfileDocumentModel.id)
            result = await session.execute(stmt)
            return [
                StoredDocument(id=model.id, fields=self._to_fields(model))
                for model in result.scalars()
            ]

    @staticmethod
    def _new_model(id: str) -> ProfileDocumentModel:
        return ProfileDocumentModel(
            id=id,
            has_provided_date_of_birth=False,
            community_guess_total=0,
            community_guess_count=0,
            guess_history=[],
            created_at=datetime.utcnow(),
        )

    @staticmethod
    def _apply(model: ProfileDocumentModel, fields: dict[str, Any]) -> None:
        for name, value in fields.items():
            if name == "created_at" and isinstance(value, str):
                value = datetime.fromisoformat(value)
            elif name == "guess_history":
                value = [dict(entry) for entry in value or []]
            setattr(model, name, value)

    @staticmethod
    def _to_fields(model: ProfileDocumentModel) -> dict[str, Any]:
        """Convert ORM model to document fields."""
        return {
            "name": model.name,
            "date_of_birth": model.date_of_birth,
            "has_provided_date_of_birth": bool(model.has_provided_date_of_birth),
            "photo": model.photo,
            "community_guess_total": model.community_guess_total or 0,
            "community_guess_count": model.community_guess_count or 0,
            "guess_history": list(model.guess_history or []),
            "created_at": model.created_at.isoformat() if model.created_at else None,
        }
