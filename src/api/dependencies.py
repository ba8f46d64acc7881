"""FastAPI dependency injection factories.

Repository factories take AsyncSession via Depends(get_async_session).
The workflow controller takes the session factory instead, because it
owns its own transaction boundaries.
"""

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.settings import Settings, get_settings
from src.db.session import get_async_session, get_session_factory
from src.provisioning.quota import TenantLocks
from src.provisioning.workflow import WorkflowController
from src.repositories.actors import ActorRepository

# One arbitration registry per process, shared by every session.
_tenant_locks = TenantLocks()


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


def next_stage_path(account_id: UUID, actor_id: UUID) -> str:
    """Locator of the credential issuance page for a new service account."""
    return f"/v1/accounts/{account_id}/actors/service_accounts/{actor_id}/new_identity"


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


async def get_actor_repo(
    session: AsyncSession = Depends(get_async_session),
) -> ActorRepository:
    return ActorRepository(session)


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------


def get_tenant_locks() -> TenantLocks:
    return _tenant_locks


def get_workflow_controller(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    tenant_locks: TenantLocks = Depends(get_tenant_locks),
    settings: Settings = Depends(get_settings),
) -> WorkflowController:
    return WorkflowController(
        session_factory=session_factory,
        next_stage_url=next_stage_path,
        tenant_locks=tenant_locks,
        lock_timeout=settings.PROVISIONING_LOCK_TIMEOUT_SECONDS,
    )
