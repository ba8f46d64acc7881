"""Tests for AccountRepository and AuthProviderRepository."""

import pytest
from uuid_extensions import uuid7

from src.models.account import AccountLimits
from src.models.common import ActorType, ProviderAdapter
from src.repositories.accounts import AccountRepository, AuthProviderRepository


@pytest.fixture
def repo(db_session) -> AccountRepository:
    return AccountRepository(db_session)


class TestAccountRepository:

    @pytest.mark.anyio
    async def test_create_and_get(self, repo: AccountRepository) -> None:
        account_id = uuid7()
        await repo.create(account_id=account_id, name="Acme", slug="acme",
                          limits={"service_accounts_count": 3})
        row = await repo.get(account_id)
        assert row is not None
        assert row.limits == {"service_accounts_count": 3}

        account = AccountRepository.to_model(row)
        assert account.limits.limit_for(ActorType.SERVICE_ACCOUNT) == 3
        assert account.limits.limit_for(ActorType.ACCOUNT_USER) is None

    @pytest.mark.anyio
    async def test_get_for_update(self, repo: AccountRepository) -> None:
        account_id = uuid7()
        await repo.create(account_id=account_id, name="Acme", slug="acme")
        row = await repo.get_for_update(account_id)
        assert row is not None
        assert row.account_id == account_id
        assert await repo.get_for_update(uuid7()) is None

    @pytest.mark.anyio
    async def test_update_limits(self, repo: AccountRepository) -> None:
        account_id = uuid7()
        await repo.create(account_id=account_id, name="Acme", slug="acme")
        await repo.update_limits(account_id, {"service_accounts_count": 10})
        row = await repo.get_for_update(account_id)
        assert AccountLimits.model_validate(row.limits).service_accounts_count == 10

    @pytest.mark.anyio
    async def test_list_all(self, repo: AccountRepository) -> None:
        await repo.create(account_id=uuid7(), name="A", slug="a")
        await repo.create(account_id=uuid7(), name="B", slug="b")
        assert len(await repo.list_all()) == 2


class TestAuthProviderRepository:

    @pytest.mark.anyio
    async def test_list_enabled_excludes_disabled(self, db_session) -> None:
        account_id = uuid7()
        await AccountRepository(db_session).create(account_id=account_id, name="Acme", slug="acme")
        providers = AuthProviderRepository(db_session)

        enabled = await providers.create(
            provider_id=uuid7(), account_id=account_id, name="Tokens",
            adapter=ProviderAdapter.TOKEN.value,
        )
        disabled = await providers.create(
            provider_id=uuid7(), account_id=account_id, name="Old Tokens",
            adapter=ProviderAdapter.TOKEN.value,
        )
        await providers.create(
            provider_id=uuid7(), account_id=account_id, name="Email",
            adapter=ProviderAdapter.EMAIL.value,
        )
        await providers.disable(disabled.provider_id)

        rows = await providers.list_enabled_by_adapter(account_id, ProviderAdapter.TOKEN.value)
        assert [r.provider_id for r in rows] == [enabled.provider_id]
