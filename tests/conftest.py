"""Shared pytest fixtures for Actorgate test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables and foreign keys on
- db_session: SAVEPOINT-isolated async session (app commits don't leak)
- session_factory: session maker on db_engine for code that commits itself
- client: AsyncClient with session dependencies overridden to db_engine
- make_account / make_group: seed helpers committing through session_factory
"""

from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_extensions import uuid7

from src.db.session import Base, enable_sqlite_foreign_keys, get_async_session, get_session_factory
import src.db.tables  # noqa: F401 (registers ORM models on Base.metadata)
from src.models.common import ProviderAdapter
from src.repositories.accounts import AccountRepository, AuthProviderRepository
from src.repositories.actors import ActorGroupRepository


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables."""
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
async def db_session(db_engine):
    """Provide a SAVEPOINT-isolated session.

    The outer transaction is never committed; it rolls back at teardown.
    Application code calling session.commit() triggers a SAVEPOINT release,
    which is then restarted so subsequent operations stay in the same
    outer transaction. This ensures full test isolation.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        # Start a nested SAVEPOINT
        nested = await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(sync_session, transaction):  # noqa: ARG001
            nonlocal nested
            if transaction.nested and not transaction._parent.nested:
                nested = conn.sync_connection.begin_nested()

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session maker for workflow code that opens and commits its own transactions.

    Each test gets a fresh in-memory engine, so commits cannot leak.
    """
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def make_account(session_factory):
    """Return an async helper creating a committed account."""

    async def _make(*, limit: int | None = None, token_provider: bool = True) -> UUID:
        account_id = uuid7()
        limits = {} if limit is None else {"service_accounts_count": limit}
        async with session_factory() as session, session.begin():
            await AccountRepository(session).create(
                account_id=account_id,
                name=f"Account {account_id.hex[:8]}",
                slug=f"acct-{account_id.hex}",
                limits=limits,
            )
            if token_provider:
                await AuthProviderRepository(session).create(
                    provider_id=uuid7(),
                    account_id=account_id,
                    name="API Tokens",
                    adapter=ProviderAdapter.TOKEN.value,
                )
        return account_id

    return _make


@pytest.fixture
def make_group(session_factory):
    """Return an async helper creating a committed group in an account."""

    async def _make(account_id: UUID, name: str = "Engineering") -> UUID:
        group_id = uuid7()
        async with session_factory() as session, session.begin():
            await ActorGroupRepository(session).create(
                group_id=group_id, account_id=account_id, name=name,
            )
        return group_id

    return _make


@pytest.fixture
async def client(session_factory):
    """AsyncClient with session dependencies overridden to the test engine."""
    from src.api.main import app

    async def _override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
