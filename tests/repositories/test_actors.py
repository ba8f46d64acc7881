"""Tests for ActorRepository and ActorGroupRepository."""

import pytest
from uuid_extensions import uuid7

from src.models.common import ActorType
from src.provisioning.errors import ConstraintViolation
from src.repositories.accounts import AccountRepository
from src.repositories.actors import ActorGroupRepository, ActorRepository


@pytest.fixture
def actor_repo(db_session) -> ActorRepository:
    return ActorRepository(db_session)


@pytest.fixture
def group_repo(db_session) -> ActorGroupRepository:
    return ActorGroupRepository(db_session)


@pytest.fixture
async def account_id(db_session):
    row = await AccountRepository(db_session).create(
        account_id=uuid7(), name="Acme", slug=f"acme-{uuid7().hex}",
    )
    return row.account_id


@pytest.fixture
async def other_account_id(db_session):
    row = await AccountRepository(db_session).create(
        account_id=uuid7(), name="Other", slug=f"other-{uuid7().hex}",
    )
    return row.account_id


class TestActorGroupRepository:

    @pytest.mark.anyio
    async def test_groups_exist_returns_known_subset(self, group_repo, account_id) -> None:
        g1 = await group_repo.create(group_id=uuid7(), account_id=account_id, name="One")
        missing = uuid7()
        found = await group_repo.groups_exist(account_id, {g1.group_id, missing})
        assert found == {g1.group_id}

    @pytest.mark.anyio
    async def test_groups_exist_is_tenant_scoped(
        self, group_repo, account_id, other_account_id,
    ) -> None:
        foreign = await group_repo.create(group_id=uuid7(), account_id=other_account_id, name="X")
        assert await group_repo.groups_exist(account_id, {foreign.group_id}) == set()

    @pytest.mark.anyio
    async def test_groups_exist_with_no_ids(self, group_repo, account_id) -> None:
        assert await group_repo.groups_exist(account_id, set()) == set()

    @pytest.mark.anyio
    async def test_list_by_account_sorted_by_name(self, group_repo, account_id) -> None:
        await group_repo.create(group_id=uuid7(), account_id=account_id, name="Zeta")
        await group_repo.create(group_id=uuid7(), account_id=account_id, name="Alpha")
        rows = await group_repo.list_by_account(account_id)
        assert [r.name for r in rows] == ["Alpha", "Zeta"]


class TestActorRepository:

    @pytest.mark.anyio
    async def test_create_with_memberships(self, actor_repo, group_repo, account_id) -> None:
        group = await group_repo.create(group_id=uuid7(), account_id=account_id, name="One")
        actor_id = uuid7()
        row = await actor_repo.create(
            actor_id=actor_id, account_id=account_id,
            type=ActorType.SERVICE_ACCOUNT.value, name="svc",
            membership_refs=[group.group_id],
        )
        assert row.actor_id == actor_id
        assert await actor_repo.membership_refs(actor_id) == frozenset({group.group_id})

        actor = await actor_repo.get_in_account(account_id, actor_id)
        assert actor is not None
        assert actor.type == ActorType.SERVICE_ACCOUNT
        assert actor.membership_refs == frozenset({group.group_id})

    @pytest.mark.anyio
    async def test_duplicate_name_is_constraint_violation(self, actor_repo, account_id) -> None:
        await actor_repo.create(
            actor_id=uuid7(), account_id=account_id,
            type=ActorType.SERVICE_ACCOUNT.value, name="svc",
        )
        with pytest.raises(ConstraintViolation) as exc_info:
            await actor_repo.create(
                actor_id=uuid7(), account_id=account_id,
                type=ActorType.SERVICE_ACCOUNT.value, name="svc",
            )
        assert exc_info.value.field == "name"

    @pytest.mark.anyio
    async def test_missing_group_is_membership_violation(self, actor_repo, account_id) -> None:
        with pytest.raises(ConstraintViolation) as exc_info:
            await actor_repo.create(
                actor_id=uuid7(), account_id=account_id,
                type=ActorType.SERVICE_ACCOUNT.value, name="svc",
                membership_refs=[uuid7()],
            )
        assert exc_info.value.field == "memberships"

    @pytest.mark.anyio
    async def test_get_in_account_checks_tenant(
        self, actor_repo, account_id, other_account_id,
    ) -> None:
        actor_id = uuid7()
        await actor_repo.create(
            actor_id=actor_id, account_id=account_id,
            type=ActorType.SERVICE_ACCOUNT.value, name="svc",
        )
        assert await actor_repo.get_in_account(other_account_id, actor_id) is None
        assert await actor_repo.get_in_account(account_id, uuid7()) is None

    @pytest.mark.anyio
    async def test_count_by_type(self, actor_repo, account_id, other_account_id) -> None:
        for name in ("a", "b"):
            await actor_repo.create(
                actor_id=uuid7(), account_id=account_id,
                type=ActorType.SERVICE_ACCOUNT.value, name=name,
            )
        await actor_repo.create(
            actor_id=uuid7(), account_id=account_id,
            type=ActorType.ACCOUNT_USER.value, name="user",
        )
        await actor_repo.create(
            actor_id=uuid7(), account_id=other_account_id,
            type=ActorType.SERVICE_ACCOUNT.value, name="a",
        )

        assert await actor_repo.count_by_type(account_id, ActorType.SERVICE_ACCOUNT.value) == 2
        assert await actor_repo.count_by_type(account_id, ActorType.ACCOUNT_USER.value) == 1
        assert len(await actor_repo.list_by_account(account_id)) == 3
