"""Seed script — load a demo tenant into the Actorgate database.

Creates:
1. A demo account with a service account limit
2. An enabled token provider (required by the new-service-account page)
3. A few actor groups service accounts can join

Idempotent: safe to run multiple times, skips if the demo account already exists.

Usage:
    python -m scripts.seed          # against DATABASE_URL from .env
    pytest tests/scripts/test_seed.py  # against aiosqlite in-memory
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_extensions import uuid7

from src.db.tables import AccountRow, ActorGroupRow
from src.models.common import ProviderAdapter
from src.repositories.accounts import AccountRepository, AuthProviderRepository
from src.repositories.actors import ActorGroupRepository

DEMO_ACCOUNT_SLUG = "demo"
DEMO_ACCOUNT_NAME = "Demo Account"
DEMO_SERVICE_ACCOUNTS_LIMIT = 5
DEMO_GROUP_NAMES = ["Engineering", "Deploy Bots", "Monitoring"]


async def seed_account(session: AsyncSession) -> AccountRow:
    """Create the demo account with its plan limits."""
    return await AccountRepository(session).create(
        account_id=uuid7(),
        name=DEMO_ACCOUNT_NAME,
        slug=DEMO_ACCOUNT_SLUG,
        limits={"service_accounts_count": DEMO_SERVICE_ACCOUNTS_LIMIT},
    )


async def seed_groups(session: AsyncSession, account: AccountRow) -> list[ActorGroupRow]:
    repo = ActorGroupRepository(session)
    return [
        await repo.create(group_id=uuid7(), account_id=account.account_id, name=name)
        for name in DEMO_GROUP_NAMES
    ]


async def seed_demo(session: AsyncSession) -> dict:
    """Idempotent demo seed: account + token provider + groups.

    Returns dict with keys: created (bool), account_id, group_count.
    If the account already exists, returns created=False and skips.
    """
    result = await session.execute(
        select(AccountRow).where(AccountRow.slug == DEMO_ACCOUNT_SLUG),
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return {"created": False, "account_id": existing.account_id, "group_count": None}

    account = await seed_account(session)
    await AuthProviderRepository(session).create(
        provider_id=uuid7(),
        account_id=account.account_id,
        name="API Tokens",
        adapter=ProviderAdapter.TOKEN.value,
    )
    groups = await seed_groups(session, account)

    return {
        "created": True,
        "account_id": account.account_id,
        "group_count": len(groups),
    }


# ---------------------------------------------------------------------------
# CLI entry point: python -m scripts.seed
# ---------------------------------------------------------------------------


async def _run_seed() -> None:
    """Run the seed against the real database (idempotent)."""
    from src.db.session import async_session_factory

    async with async_session_factory() as session:
        result = await seed_demo(session)

        if not result["created"]:
            print(f"Demo data already seeded (account {DEMO_ACCOUNT_SLUG!r} exists). Skipping.")
            print(f"  Account: {result['account_id']}")
            return

        await session.commit()

        print("Seed complete.")
        print(f"  Account:  {result['account_id']}")
        print(f"  Limit:    {DEMO_SERVICE_ACCOUNTS_LIMIT} service accounts")
        print(f"  Groups:   {result['group_count']}")
        print(f"  Live form: /v1/accounts/{result['account_id']}/actors/service_accounts/new/live")


if __name__ == "__main__":
    asyncio.run(_run_seed())

