"""Provisioning exceptions.

Expected validation failures and quota rejections are result values, not
exceptions. The classes here cover storage clashes, preconditions and
faults that must leave the workflow.
"""

from uuid import UUID


class ProvisioningError(Exception):
    """Base class for provisioning errors."""


class ConstraintViolation(ProvisioningError):
    """The store rejected an insert because of a constraint tied to a form field."""

    def __init__(self, *, field: str, detail: str = "") -> None:
        self.field = field
        self.detail = detail
        super().__init__(f"Constraint violated on field {field!r}: {detail}")


class AccountNotFoundError(ProvisioningError):
    """The tenant does not exist."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found.")


class ProvisioningUnavailableError(ProvisioningError):
    """The tenant cannot create service accounts (no enabled token provider)."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} has no enabled token provider.")


class StorageUnavailableError(ProvisioningError):
    """An unclassified storage failure ended the current attempt.

    Not retried. The workflow session stays usable.
    """


class InvalidTransitionError(ProvisioningError, ValueError):
    """A workflow state change not present in the transition table."""


class WorkflowCompletedError(ProvisioningError):
    """An event arrived after the workflow created its actor."""

    def __init__(self, actor_id: UUID) -> None:
        self.actor_id = actor_id
        super().__init__(f"Workflow already created actor {actor_id}.")
