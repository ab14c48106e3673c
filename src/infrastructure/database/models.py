"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProfileDocumentModel(Base):
    """Remote profile document, one row per identity."""

    __tablename__ = "profile_documents"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(100))
    date_of_birth: Mapped[str | None] = mapped_column(String(10))
    has_provided_date_of_birth: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    photo: Mapped[str | None] = mapped_column(Text)
    community_guess_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    community_guess_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    guess_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
