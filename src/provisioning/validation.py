"""Actor draft validation.

One rule set, evaluated in a fixed order per field and exhaustively (every
violated rule of a field is reported). Evaluation is pure: the only I/O,
the group existence lookup, is injected and runs before the rules.

Strictness contexts share the rules. They differ only in which errors are
presented: before the first submit attempt, per-keystroke validation hides
"can't be blank" on fields the user has not touched yet.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

from src.models.actor import (
    FIELD_MEMBERSHIPS,
    FIELD_NAME,
    FIELD_TYPE,
    ActorDraft,
    FieldErrors,
    ValidatedActor,
)
from src.models.common import ActorType

NAME_MAX_LENGTH = 512

MSG_BLANK = "can't be blank"
MSG_TOO_LONG = f"should be at most {NAME_MAX_LENGTH} character(s)"
MSG_INVALID = "is invalid"
MSG_NOT_FOUND = "does not exist"
MSG_TAKEN = "has already been taken"

GroupLookup = Callable[[UUID, frozenset[UUID]], Awaitable[set[UUID]]]


class ValidationContext(StrEnum):
    """Presentation policy applied to a validation outcome."""

    ON_CHANGE = "ON_CHANGE"
    ON_SUBMIT = "ON_SUBMIT"


@dataclass(frozen=True)
class ValidationOutcome:
    """Either a validated actor or the full map of field errors."""

    errors: FieldErrors = field(default_factory=dict)
    entity: ValidatedActor | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def presented(
        self,
        context: ValidationContext,
        *,
        touched: frozenset[str],
        submit_attempted: bool,
    ) -> FieldErrors:
        """Errors to show the user under the given context."""
        if context == ValidationContext.ON_SUBMIT or submit_attempted:
            return {name: list(msgs) for name, msgs in self.errors.items()}

        shown: FieldErrors = {}
        for name, msgs in self.errors.items():
            if name not in touched:
                msgs = [m for m in msgs if m != MSG_BLANK]
            if msgs:
                shown[name] = list(msgs)
        return shown


def evaluate_rules(draft: ActorDraft, known_group_ids: set[UUID]) -> ValidationOutcome:
    """Evaluate every rule against a draft.

    Args:
        draft: Candidate actor.
        known_group_ids: Ids among draft.membership_refs that exist in the
            draft's tenant.
    """
    errors: FieldErrors = {}

    name_errors: list[str] = []
    trimmed = (draft.name or "").strip()
    if FIELD_NAME in draft.invalid_fields:
        name_errors.append(MSG_INVALID)
    elif not trimmed:
        name_errors.append(MSG_BLANK)
    if len(trimmed) > NAME_MAX_LENGTH:
        name_errors.append(MSG_TOO_LONG)
    if name_errors:
        errors[FIELD_NAME] = name_errors

    membership_errors: list[str] = []
    if FIELD_MEMBERSHIPS in draft.invalid_fields or draft.invalid_membership_refs:
        membership_errors.append(MSG_INVALID)
    if draft.membership_refs - known_group_ids:
        membership_errors.append(MSG_NOT_FOUND)
    if membership_errors:
        errors[FIELD_MEMBERSHIPS] = membership_errors

    if draft.type != ActorType.SERVICE_ACCOUNT:
        errors[FIELD_TYPE] = [MSG_INVALID]

    if errors:
        return ValidationOutcome(errors=errors)

    return ValidationOutcome(entity=ValidatedActor(
        name=trimmed,
        membership_refs=draft.membership_refs,
        type=draft.type,
    ))


class ValidationEngine:
    """Validates drafts for one tenant-aware group lookup."""

    def __init__(self, groups_exist: GroupLookup) -> None:
        self._groups_exist = groups_exist

    async def validate(self, account_id: UUID, draft: ActorDraft) -> ValidationOutcome:
        known: set[UUID] = set()
        if draft.membership_refs:
            known = set(await self._groups_exist(account_id, draft.membership_refs))
        return evaluate_rules(draft, known)
