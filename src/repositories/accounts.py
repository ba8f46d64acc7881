"""Account and auth provider repositories."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import AccountRow, AuthProviderRow
from src.models.account import Account, AccountLimits
from src.models.common import utc_now


class AccountRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, account_id: UUID, name: str, slug: str,
                     limits: dict | None = None) -> AccountRow:
        row = AccountRow(
            account_id=account_id, name=name, slug=slug,
            limits=limits or {}, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, account_id: UUID) -> AccountRow | None:
        return await self._session.get(AccountRow, account_id)

    async def get_for_update(self, account_id: UUID) -> AccountRow | None:
        """Load the account and hold a row lock until the transaction ends.

        Serializes quota-bound creations per tenant on Postgres. SQLite
        ignores FOR UPDATE; callers pair this with TenantLocks.
        """
        result = await self._session.execute(
            select(AccountRow)
            .where(AccountRow.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_limits(self, account_id: UUID, limits: dict) -> AccountRow | None:
        row = await self.get(account_id)
        if row is not None:
            row.limits = dict(limits)
            await self._session.flush()
        return row

    async def list_all(self) -> list[AccountRow]:
        result = await self._session.execute(select(AccountRow))
        return list(result.scalars().all())

    @staticmethod
    def to_model(row: AccountRow) -> Account:
        return Account(
            id=row.account_id,
            name=row.name,
            slug=row.slug,
            limits=AccountLimits.model_validate(row.limits or {}),
            created_at=row.created_at,
        )


class AuthProviderRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, provider_id: UUID, account_id: UUID, name: str,
                     adapter: str) -> AuthProviderRow:
        row = AuthProviderRow(
            provider_id=provider_id, account_id=account_id, name=name,
            adapter=adapter, disabled_at=None, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_enabled_by_adapter(self, account_id: UUID,
                                      adapter: str) -> list[AuthProviderRow]:
        result = await self._session.execute(
            select(AuthProviderRow).where(
                AuthProviderRow.account_id == account_id,
                AuthProviderRow.adapter == adapter,
                AuthProviderRow.disabled_at.is_(None),
            )
        )
        return list(result.scalars().all())

    async def disable(self, provider_id: UUID) -> AuthProviderRow | None:
        row = await self._session.get(AuthProviderRow, provider_id)
        if row is not None:
            row.disabled_at = utc_now()
            await self._session.flush()
        return row
