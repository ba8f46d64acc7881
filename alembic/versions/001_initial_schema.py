"""Initial schema — accounts, auth providers, groups, actors, memberships.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Tenant --
    op.create_table(
        "accounts",
        sa.Column("account_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("limits", JSONB, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "auth_providers",
        sa.Column("provider_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.account_id"), nullable=False, index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("adapter", sa.String(50), nullable=False),
        sa.Column("disabled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # -- Directory --
    op.create_table(
        "actor_groups",
        sa.Column("group_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.account_id"), nullable=False, index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "actors",
        sa.Column("actor_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id", UUID(as_uuid=True),
            sa.ForeignKey("accounts.account_id"), nullable=False,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("account_id", "name", name="uq_actors_account_name"),
    )
    op.create_index("ix_actors_account_type", "actors", ["account_id", "type"])

    op.create_table(
        "actor_memberships",
        sa.Column(
            "actor_id", UUID(as_uuid=True),
            sa.ForeignKey("actors.actor_id", name="fk_actor_memberships_actor"),
            primary_key=True,
        ),
        sa.Column(
            "group_id", UUID(as_uuid=True),
            sa.ForeignKey("actor_groups.group_id", name="fk_actor_memberships_group"),
            primary_key=True,
        ),
        sa.Column("account_id", UUID(as_uuid=True), nullable=False, index=True),
    )


def downgrade() -> None:
    op.drop_table("actor_memberships")
    op.drop_index("ix_actors_account_type", table_name="actors")
    op.drop_table("actors")
    op.drop_table("actor_groups")
    op.drop_table("auth_providers")
    op.drop_table("accounts")
