"""Tests for SQLAlchemy ORM models — src/db/tables.py.

Tests verify:
- All tenant and actor tables are created
- FlexJSON limits round-trip (JSONB with SQLite variant)
- UNIQUE(account_id, name) on actors, composite PK on memberships
- Foreign keys enforced on SQLite
"""

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.db.session import Base, enable_sqlite_foreign_keys
from src.db.tables import (
    AccountRow,
    ActorGroupRow,
    ActorMembershipRow,
    ActorRow,
    AuthProviderRow,
)
from src.models.common import ActorType, ProviderAdapter, new_uuid7, utc_now


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    async with async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)() as s:
        yield s


async def _account(session: AsyncSession, **limits) -> AccountRow:
    account_id = new_uuid7()
    row = AccountRow(
        account_id=account_id,
        name="Acme",
        slug=f"acme-{account_id.hex}",
        limits=limits,
        created_at=utc_now(),
    )
    session.add(row)
    await session.flush()
    return row


def _actor(account_id, name: str) -> ActorRow:
    return ActorRow(
        actor_id=new_uuid7(),
        account_id=account_id,
        type=ActorType.SERVICE_ACCOUNT.value,
        name=name,
        created_at=utc_now(),
    )


class TestTableCreation:

    EXPECTED_TABLES = {
        "accounts",
        "auth_providers",
        "actor_groups",
        "actors",
        "actor_memberships",
    }

    @pytest.mark.anyio
    async def test_all_tables_exist(self, engine):
        async with engine.connect() as conn:
            table_names = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        assert self.EXPECTED_TABLES.issubset(set(table_names)), (
            f"Missing tables: {self.EXPECTED_TABLES - set(table_names)}"
        )


class TestAccountRow:

    @pytest.mark.anyio
    async def test_limits_round_trip(self, session: AsyncSession):
        account = await _account(session, service_accounts_count=3)
        result = await session.get(AccountRow, account.account_id)
        assert result.limits == {"service_accounts_count": 3}

    @pytest.mark.anyio
    async def test_auth_provider_defaults_enabled(self, session: AsyncSession):
        account = await _account(session)
        provider = AuthProviderRow(
            provider_id=new_uuid7(),
            account_id=account.account_id,
            name="Tokens",
            adapter=ProviderAdapter.TOKEN.value,
            created_at=utc_now(),
        )
        session.add(provider)
        await session.flush()
        result = await session.get(AuthProviderRow, provider.provider_id)
        assert result.disabled_at is None


class TestActorRow:

    @pytest.mark.anyio
    async def test_name_unique_per_account(self, session: AsyncSession):
        account = await _account(session)
        session.add(_actor(account.account_id, "svc"))
        await session.flush()

        session.add(_actor(account.account_id, "svc"))
        with pytest.raises(IntegrityError):
            await session.flush()

    @pytest.mark.anyio
    async def test_same_name_in_other_account(self, session: AsyncSession):
        first = await _account(session)
        second = await _account(session)
        session.add_all([_actor(first.account_id, "svc"), _actor(second.account_id, "svc")])
        await session.flush()

        rows = (await session.execute(select(ActorRow).where(ActorRow.name == "svc"))).scalars().all()
        assert len(rows) == 2


class TestActorMembershipRow:

    @pytest.mark.anyio
    async def test_membership_links_actor_and_group(self, session: AsyncSession):
        account = await _account(session)
        group = ActorGroupRow(
            group_id=new_uuid7(),
            account_id=account.account_id,
            name="Engineering",
            created_at=utc_now(),
        )
        actor = _actor(account.account_id, "svc")
        session.add_all([group, actor])
        await session.flush()

        session.add(ActorMembershipRow(
            actor_id=actor.actor_id,
            group_id=group.group_id,
            account_id=account.account_id,
        ))
        await session.flush()

        result = await session.get(ActorMembershipRow, (actor.actor_id, group.group_id))
        assert result is not None
        assert result.account_id == account.account_id

    @pytest.mark.anyio
    async def test_membership_to_missing_group_rejected(self, session: AsyncSession):
        account = await _account(session)
        actor = _actor(account.account_id, "svc")
        session.add(actor)
        await session.flush()

        session.add(ActorMembershipRow(
            actor_id=actor.actor_id,
            group_id=new_uuid7(),
            account_id=account.account_id,
        ))
        with pytest.raises(IntegrityError):
            await session.flush()
