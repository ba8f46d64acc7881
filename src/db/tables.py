"""SQLAlchemy ORM table models for Actorgate.

All tables defined in a single file. Uses FlexJSON (JSONB on Postgres,
JSON on SQLite) for plan limits.

Categories:
- TENANT: Account, AuthProvider
- DIRECTORY: ActorGroup, Actor, ActorMembership (actors are created by the
  provisioning workflow and never updated by it)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


# ---------------------------------------------------------------------------
# Tenant
# ---------------------------------------------------------------------------


class AccountRow(Base):
    """Tenant. Row-locked while a quota-bound creation is in flight."""

    __tablename__ = "accounts"

    account_id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    limits = mapped_column(FlexJSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AuthProviderRow(Base):
    __tablename__ = "auth_providers"

    provider_id: Mapped[UUID] = mapped_column(primary_key=True)
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.account_id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    adapter: Mapped[str] = mapped_column(String(50), nullable=False)
    disabled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------


class ActorGroupRow(Base):
    __tablename__ = "actor_groups"

    group_id: Mapped[UUID] = mapped_column(primary_key=True)
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.account_id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ActorRow(Base):
    """Actor. Names are unique per account; the store reports clashes as
    a constraint violation on the name field."""

    __tablename__ = "actors"
    __table_args__ = (
        UniqueConstraint("account_id", "name", name="uq_actors_account_name"),
        Index("ix_actors_account_type", "account_id", "type"),
    )

    actor_id: Mapped[UUID] = mapped_column(primary_key=True)
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.account_id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ActorMembershipRow(Base):
    __tablename__ = "actor_memberships"

    actor_id: Mapped[UUID] = mapped_column(
        ForeignKey("actors.actor_id", name="fk_actor_memberships_actor"),
        primary_key=True,
    )
    group_id: Mapped[UUID] = mapped_column(
        ForeignKey("actor_groups.group_id", name="fk_actor_memberships_group"),
        primary_key=True,
    )
    account_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
