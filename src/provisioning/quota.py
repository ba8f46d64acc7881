"""Per-tenant actor quotas.

reserve_slot() must run on the session of the transaction that performs
the insert. It locks the tenant row, reads the plan limit (never cached)
and counts existing actors of the kind, so check and insert commit
together. TenantLocks adds single-writer arbitration inside one process,
which keeps engines without row locks (SQLite) linearizable too.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.account import AccountLimits
from src.models.common import ActorType
from src.provisioning.errors import AccountNotFoundError
from src.repositories.accounts import AccountRepository
from src.repositories.actors import ActorRepository

logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_NOTICE = (
    "You have reached the maximum number of service accounts "
    "allowed by your subscription plan."
)


@dataclass(frozen=True)
class SlotReserved:
    """One more actor of the kind fits. Valid only inside its transaction."""

    account_id: UUID
    kind: ActorType
    current_count: int
    limit: int | None


@dataclass(frozen=True)
class QuotaExceeded:
    """The tenant is at its limit; nothing was created or consumed."""

    account_id: UUID
    kind: ActorType
    current_count: int
    limit: int

    @property
    def notice(self) -> str:
        return QUOTA_EXCEEDED_NOTICE


class TenantLocks:
    """asyncio locks keyed by (tenant, kind), dropped when nobody holds them."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[UUID, ActorType], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, account_id: UUID, kind: ActorType) -> asyncio.Lock:
        key = (account_id, kind)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


class QuotaGuard:
    """Answers whether one more actor of a kind may be created for a tenant."""

    async def reserve_slot(
        self,
        session: AsyncSession,
        account_id: UUID,
        kind: ActorType,
    ) -> SlotReserved | QuotaExceeded:
        """Check the quota inside the caller's transaction.

        Raises:
            AccountNotFoundError: The tenant does not exist.
        """
        account = await AccountRepository(session).get_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        limit = AccountLimits.model_validate(account.limits or {}).limit_for(kind)
        count = await ActorRepository(session).count_by_type(account_id, kind.value)

        if limit is not None and count >= limit:
            logger.info(
                "Quota exceeded for account %s: %d/%d %s",
                account_id, count, limit, kind.value,
            )
            return QuotaExceeded(
                account_id=account_id, kind=kind, current_count=count, limit=limit,
            )
        return SlotReserved(
            account_id=account_id, kind=kind, current_count=count, limit=limit,
        )
