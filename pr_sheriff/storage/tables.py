"""ORM tables for the durable store."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Installation(Base):
    """A GitHub App installation on an organization or user account."""

    __tablename__ = "installations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_login: Mapped[str] = mapped_column(String(255), default="")
    account_type: Mapped[str] = mapped_column(String(32), default="Organization")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Repository(Base):
    """A repository reachable through an installation."""

    __tablename__ = "repositories"

    # `{installationId}/{owner}/{repo}`
    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    installation_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("installations.id", ondelete="CASCADE"), index=True
    )
    owner: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255))
    full_name: Mapped[str] = mapped_column(String(512))
    default_branch: Mapped[str] = mapped_column(String(255), default="main")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Notification(Base):
    """An outbound notification that has been sent."""

    __tablename__ = "notifications"

    # `{type}/{deliveryId}` or `{type}/{logicalId}/{recipient}`
    id: Mapped[str] = mapped_column(String(768), primary_key=True)
    type: Mapped[str] = mapped_column(String(32), index=True)
    delivery_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    logical_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recipient: Mapped[str] = mapped_column(String(255))
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    # "metadata" is reserved on declarative classes
    meta: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)


class AssignmentHistory(Base):
    """Last reviewer assigned per (repository, strategy)."""

    __tablename__ = "assignment_history"

    # `{repositoryId}/{strategy}`
    id: Mapped[str] = mapped_column(String(600), primary_key=True)
    repository_id: Mapped[str] = mapped_column(String(512), index=True)
    strategy: Mapped[str] = mapped_column(String(64))
    last_assigned_reviewer: Mapped[str] = mapped_column(String(255))
    last_assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
