"""Account model — the tenant: isolation boundary for actors, groups and quotas."""

from pydantic import Field

from src.models.common import (
    ActorgateBase,
    ActorType,
    UTCTimestamp,
    UUIDv7,
    new_uuid7,
    utc_now,
)


class AccountLimits(ActorgateBase):
    """Plan limits for an account. None means unlimited."""

    service_accounts_count: int | None = Field(default=None, ge=0)

    def limit_for(self, kind: ActorType) -> int | None:
        """Return the configured limit for an actor kind (None = unlimited)."""
        if kind == ActorType.SERVICE_ACCOUNT:
            return self.service_accounts_count
        return None


class Account(ActorgateBase):
    """Account is the top-level tenant.

    Limits are plan data and may change at any time, so they are read at
    check time rather than carried around in a session.
    """

    id: UUIDv7 = Field(default_factory=new_uuid7)
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)
    limits: AccountLimits = Field(default_factory=AccountLimits)
    created_at: UTCTimestamp = Field(default_factory=utc_now)
