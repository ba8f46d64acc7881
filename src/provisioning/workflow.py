"""Service account provisioning workflow.

States: EDITING → COMMITTING → CREATED, with REJECTED_VALIDATION and
REJECTED_QUOTA as transient detours back to EDITING.

change events only merge and validate. submit events validate, then run
the quota check and the insert in ONE transaction under the tenant lock.
CREATED is terminal: later events raise WorkflowCompletedError and never
reach the store, so a session creates at most one actor.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.actor import (
    FIELD_MEMBERSHIPS,
    FIELD_NAME,
    Actor,
    ActorDraft,
    ActorGroup,
    FieldErrors,
    ValidatedActor,
)
from src.models.common import ProviderAdapter, new_uuid7, utc_now
from src.provisioning.errors import (
    AccountNotFoundError,
    ConstraintViolation,
    InvalidTransitionError,
    ProvisioningUnavailableError,
    StorageUnavailableError,
    WorkflowCompletedError,
)
from src.provisioning.quota import QuotaExceeded, QuotaGuard, TenantLocks
from src.provisioning.validation import (
    MSG_INVALID,
    MSG_NOT_FOUND,
    MSG_TAKEN,
    GroupLookup,
    ValidationContext,
    ValidationEngine,
    ValidationOutcome,
)
from src.repositories.accounts import AccountRepository, AuthProviderRepository
from src.repositories.actors import ActorGroupRepository, ActorRepository

logger = logging.getLogger(__name__)

PAGE_TITLE = "New Service Account"
SUBMIT_LABEL = "Next: Create Token"

_CONSTRAINT_MESSAGES: dict[str, str] = {
    FIELD_NAME: MSG_TAKEN,
    FIELD_MEMBERSHIPS: MSG_NOT_FOUND,
}


class WorkflowState(StrEnum):
    """Provisioning workflow states."""

    EDITING = "EDITING"
    COMMITTING = "COMMITTING"
    CREATED = "CREATED"
    REJECTED_VALIDATION = "REJECTED_VALIDATION"
    REJECTED_QUOTA = "REJECTED_QUOTA"


VALID_WORKFLOW_TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.EDITING: frozenset({
        WorkflowState.EDITING,
        WorkflowState.COMMITTING,
        WorkflowState.REJECTED_VALIDATION,
    }),
    WorkflowState.COMMITTING: frozenset({
        WorkflowState.CREATED,
        WorkflowState.REJECTED_VALIDATION,
        WorkflowState.REJECTED_QUOTA,
        WorkflowState.EDITING,
    }),
    WorkflowState.REJECTED_VALIDATION: frozenset({WorkflowState.EDITING}),
    WorkflowState.REJECTED_QUOTA: frozenset({WorkflowState.EDITING}),
    WorkflowState.CREATED: frozenset(),
}


@dataclass(frozen=True)
class TransitionLog:
    """Immutable record of a workflow state change."""

    from_state: WorkflowState
    to_state: WorkflowState
    event: str
    timestamp: datetime


class WorkflowSession:
    """State owned by one user session: the draft and the workflow state.

    Never shared between sessions. Mutated only by WorkflowController.
    """

    def __init__(self, *, account_id: UUID, session_id: UUID | None = None) -> None:
        self.account_id = account_id
        self.session_id = session_id or new_uuid7()
        self.draft = ActorDraft()
        self.submit_attempted = False
        self.created_actor_id: UUID | None = None
        self._state = WorkflowState.EDITING
        self._history: list[TransitionLog] = []

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def history(self) -> list[TransitionLog]:
        return list(self._history)

    def transition(self, to_state: WorkflowState, *, event: str) -> None:
        """Move to to_state.

        Raises:
            InvalidTransitionError: The transition table does not allow it.
        """
        allowed = VALID_WORKFLOW_TRANSITIONS.get(self._state, frozenset())
        if to_state not in allowed:
            msg = (
                f"Cannot transition from {self._state} to {to_state} on {event!r}. "
                f"Allowed: {sorted(s.value for s in allowed)}."
            )
            raise InvalidTransitionError(msg)

        self._history.append(TransitionLog(
            from_state=self._state,
            to_state=to_state,
            event=event,
            timestamp=utc_now(),
        ))
        self._state = to_state


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldErrorsResponse:
    field_errors: FieldErrors = field(default_factory=dict)

    def to_frame(self) -> dict[str, Any]:
        return {"field_errors": self.field_errors}


@dataclass(frozen=True)
class TenantNoticeResponse:
    """Account-level blocking condition, kept apart from field errors."""

    tenant_notice: str
    field_errors: FieldErrors = field(default_factory=dict)

    def to_frame(self) -> dict[str, Any]:
        return {"field_errors": self.field_errors, "tenant_notice": self.tenant_notice}


@dataclass(frozen=True)
class NavigateResponse:
    """Hand-off to the next stage. The actor id is the hand-off token."""

    navigate: str
    actor_id: UUID

    def to_frame(self) -> dict[str, Any]:
        return {"navigate": self.navigate}


WorkflowResponse = FieldErrorsResponse | TenantNoticeResponse | NavigateResponse


@dataclass(frozen=True)
class NewServiceAccountForm:
    """What the client needs to render the form on mount."""

    groups: list[ActorGroup] = field(default_factory=list)
    title: str = PAGE_TITLE
    submit_label: str = SUBMIT_LABEL

    @property
    def fields(self) -> list[str]:
        if self.groups:
            return [FIELD_MEMBERSHIPS, FIELD_NAME]
        return [FIELD_NAME]

    def to_frame(self) -> dict[str, Any]:
        return {"form": {
            "title": self.title,
            "submit_label": self.submit_label,
            "fields": self.fields,
            "groups": [{"id": str(g.id), "name": g.name} for g in self.groups],
        }}


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


def session_group_lookup(session_factory: async_sessionmaker[AsyncSession]) -> GroupLookup:
    """Build a group existence lookup that opens a short read-only session."""

    async def groups_exist(account_id: UUID, group_ids: frozenset[UUID]) -> set[UUID]:
        async with session_factory() as db:
            return await ActorGroupRepository(db).groups_exist(account_id, group_ids)

    return groups_exist


class WorkflowController:
    """Orchestrates validation, quota, storage and the next-stage hand-off."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        next_stage_url: Callable[[UUID, UUID], str],
        tenant_locks: TenantLocks,
        validator: ValidationEngine | None = None,
        quota_guard: QuotaGuard | None = None,
        lock_timeout: float = 10.0,
    ) -> None:
        self._session_factory = session_factory
        self._next_stage_url = next_stage_url
        self._tenant_locks = tenant_locks
        self._validator = validator or ValidationEngine(session_group_lookup(session_factory))
        self._quota_guard = quota_guard or QuotaGuard()
        self._lock_timeout = lock_timeout

    async def open_session(
        self, account_id: UUID,
    ) -> tuple[WorkflowSession, NewServiceAccountForm]:
        """Check page preconditions and start a session in EDITING.

        Raises:
            AccountNotFoundError: Unknown tenant.
            ProvisioningUnavailableError: No enabled token provider.
        """
        async with self._session_factory() as db:
            account = await AccountRepository(db).get(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            providers = await AuthProviderRepository(db).list_enabled_by_adapter(
                account_id, ProviderAdapter.TOKEN.value,
            )
            if not providers:
                raise ProvisioningUnavailableError(account_id)
            groups = await ActorGroupRepository(db).list_by_account(account_id)

        form = NewServiceAccountForm(groups=[ActorGroupRepository.to_model(g) for g in groups])
        return WorkflowSession(account_id=account_id), form

    async def change(
        self, session: WorkflowSession, params: Mapping[str, Any],
    ) -> FieldErrorsResponse:
        """Merge params and return the errors to show while typing."""
        self._ensure_open(session)
        session.draft = session.draft.merge(params)
        outcome = await self._validate(session)
        session.transition(WorkflowState.EDITING, event="change")
        return FieldErrorsResponse(self._present(session, outcome, ValidationContext.ON_CHANGE))

    async def submit(
        self, session: WorkflowSession, params: Mapping[str, Any],
    ) -> WorkflowResponse:
        """Merge params, validate and, when valid, create the actor.

        Raises:
            WorkflowCompletedError: The session already created its actor.
            StorageUnavailableError: Unclassified storage failure. The
                session is back in EDITING and may resubmit.
        """
        self._ensure_open(session)
        session.draft = session.draft.merge(params)
        session.submit_attempted = True

        outcome = await self._validate(session)
        if outcome.entity is None:
            logger.debug("Submit rejected by validation: %s", sorted(outcome.errors))
            session.transition(WorkflowState.REJECTED_VALIDATION, event="submit")
            session.transition(WorkflowState.EDITING, event="show_errors")
            return FieldErrorsResponse(self._present(session, outcome, ValidationContext.ON_SUBMIT))

        session.transition(WorkflowState.COMMITTING, event="submit")
        try:
            result = await self._commit(session.account_id, outcome.entity)
        except ConstraintViolation as exc:
            logger.info("Store rejected actor on %s for account %s", exc.field, session.account_id)
            session.transition(WorkflowState.REJECTED_VALIDATION, event="constraint_violation")
            session.transition(WorkflowState.EDITING, event="show_errors")
            return FieldErrorsResponse({
                exc.field: [_CONSTRAINT_MESSAGES.get(exc.field, MSG_INVALID)],
            })
        except (SQLAlchemyError, TimeoutError) as exc:
            logger.exception("Storage failure while creating actor for account %s", session.account_id)
            session.transition(WorkflowState.EDITING, event="storage_failure")
            raise StorageUnavailableError("Could not create the service account.") from exc
        except Exception:
            session.transition(WorkflowState.EDITING, event="failure")
            raise

        if isinstance(result, QuotaExceeded):
            session.transition(WorkflowState.REJECTED_QUOTA, event="quota_exceeded")
            session.transition(WorkflowState.EDITING, event="show_notice")
            revalidated = await self._validate(session)
            return TenantNoticeResponse(
                tenant_notice=result.notice,
                field_errors=self._present(session, revalidated, ValidationContext.ON_SUBMIT),
            )

        session.created_actor_id = result.id
        session.transition(WorkflowState.CREATED, event="created")
        logger.info("Created %s actor %s in account %s", result.type, result.id, result.account_id)
        return NavigateResponse(
            navigate=self._next_stage_url(result.account_id, result.id),
            actor_id=result.id,
        )

    def navigation_for(self, session: WorkflowSession) -> NavigateResponse:
        """Repeat the hand-off of a completed session."""
        if session.created_actor_id is None:
            msg = f"Session {session.session_id} has not created an actor."
            raise InvalidTransitionError(msg)
        return NavigateResponse(
            navigate=self._next_stage_url(session.account_id, session.created_actor_id),
            actor_id=session.created_actor_id,
        )

    # --- internals ---

    @staticmethod
    def _ensure_open(session: WorkflowSession) -> None:
        if session.state == WorkflowState.CREATED:
            assert session.created_actor_id is not None
            raise WorkflowCompletedError(session.created_actor_id)

    @staticmethod
    def _present(
        session: WorkflowSession, outcome: ValidationOutcome, context: ValidationContext,
    ) -> FieldErrors:
        return outcome.presented(
            context,
            touched=session.draft.touched,
            submit_attempted=session.submit_attempted,
        )

    async def _validate(self, session: WorkflowSession) -> ValidationOutcome:
        try:
            return await self._validator.validate(session.account_id, session.draft)
        except SQLAlchemyError as exc:
            logger.exception("Group lookup failed for account %s", session.account_id)
            raise StorageUnavailableError("Could not validate the service account.") from exc

    async def _commit(self, account_id: UUID, entity: ValidatedActor) -> Actor | QuotaExceeded:
        """Quota check and insert in one transaction under the tenant lock."""
        lock = self._tenant_locks.lock_for(account_id, entity.type)
        async with asyncio.timeout(self._lock_timeout):
            await lock.acquire()
        try:
            async with self._session_factory() as db, db.begin():
                reservation = await self._quota_guard.reserve_slot(db, account_id, entity.type)
                if isinstance(reservation, QuotaExceeded):
                    return reservation

                row = await ActorRepository(db).create(
                    actor_id=new_uuid7(),
                    account_id=account_id,
                    type=entity.type.value,
                    name=entity.name,
                    membership_refs=entity.membership_refs,
                )
                actor = ActorRepository.to_model(row, entity.membership_refs)
            return actor
        finally:
            lock.release()
