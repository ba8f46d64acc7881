"""Actor models — drafts typed at the transport boundary, validated actors, persisted actors.

An ActorDraft is the only shape untyped client params are converted into.
Values that cannot be cast are remembered per field so the rule evaluator
can report them instead of silently dropping input.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from pydantic import Field

from src.models.common import (
    ActorgateBase,
    ActorType,
    UTCTimestamp,
    UUIDv7,
    new_uuid7,
    utc_now,
)

# Field keys, shared by params, drafts and FieldErrors.
FIELD_NAME = "name"
FIELD_MEMBERSHIPS = "memberships"
FIELD_TYPE = "type"

FieldErrors = dict[str, list[str]]


class ActorDraft(ActorgateBase):
    """Unsaved, session-owned candidate actor.

    Immutable: every merge returns a new draft so a failed submit can never
    leave a half-applied change behind.
    """

    model_config = {**ActorgateBase.model_config, "frozen": True}

    name: str | None = None
    membership_refs: frozenset[UUID] = Field(default_factory=frozenset)
    invalid_membership_refs: tuple[str, ...] = ()
    type: ActorType = ActorType.SERVICE_ACCOUNT
    invalid_fields: frozenset[str] = Field(default_factory=frozenset)
    touched: frozenset[str] = Field(default_factory=frozenset)

    def merge(self, params: Mapping[str, Any]) -> "ActorDraft":
        """Merge raw form params into a new draft.

        Only known form fields are read; the actor type is owned by the
        flow and never taken from params.
        """
        updates: dict[str, Any] = {}
        invalid = set(self.invalid_fields)
        touched = set(self.touched)

        if FIELD_NAME in params:
            touched.add(FIELD_NAME)
            invalid.discard(FIELD_NAME)
            raw_name = params[FIELD_NAME]
            if raw_name is None or isinstance(raw_name, str):
                updates["name"] = raw_name
            elif isinstance(raw_name, (int, float)) and not isinstance(raw_name, bool):
                updates["name"] = str(raw_name)
            else:
                updates["name"] = None
                invalid.add(FIELD_NAME)

        if FIELD_MEMBERSHIPS in params:
            touched.add(FIELD_MEMBERSHIPS)
            invalid.discard(FIELD_MEMBERSHIPS)
            refs, bad_refs, malformed = _cast_membership_refs(params[FIELD_MEMBERSHIPS])
            updates["membership_refs"] = refs
            updates["invalid_membership_refs"] = bad_refs
            if malformed:
                invalid.add(FIELD_MEMBERSHIPS)

        updates["invalid_fields"] = frozenset(invalid)
        updates["touched"] = frozenset(touched)
        return self.model_copy(update=updates)


def _cast_membership_refs(raw: Any) -> tuple[frozenset[UUID], tuple[str, ...], bool]:
    """Cast a raw memberships param into (valid refs, unparseable refs, malformed)."""
    if raw is None:
        return frozenset(), (), False
    if isinstance(raw, (str, UUID)):
        raw = [raw]
    if not isinstance(raw, Iterable) or isinstance(raw, Mapping):
        return frozenset(), (), True

    refs: set[UUID] = set()
    bad: list[str] = []
    for item in raw:
        if isinstance(item, UUID):
            refs.add(item)
            continue
        if isinstance(item, str):
            # Multi-selects post an empty string when nothing is selected
            if item.strip() == "":
                continue
            try:
                refs.add(UUID(item.strip()))
            except ValueError:
                bad.append(item)
            continue
        bad.append(repr(item))
    return frozenset(refs), tuple(bad), False


class ValidatedActor(ActorgateBase):
    """A draft that passed every rule. Argument to commit, never persisted directly."""

    model_config = {**ActorgateBase.model_config, "frozen": True}

    name: str = Field(..., min_length=1)
    membership_refs: frozenset[UUID] = Field(default_factory=frozenset)
    type: ActorType = ActorType.SERVICE_ACCOUNT


class Actor(ActorgateBase):
    """Persisted actor, created exactly once by the provisioning workflow."""

    id: UUIDv7 = Field(default_factory=new_uuid7)
    account_id: UUID
    type: ActorType
    name: str
    membership_refs: frozenset[UUID] = Field(default_factory=frozenset)
    created_at: UTCTimestamp = Field(default_factory=utc_now)


class ActorGroup(ActorgateBase):
    """Tenant-scoped group an actor can be a member of."""

    id: UUIDv7 = Field(default_factory=new_uuid7)
    account_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    created_at: UTCTimestamp = Field(default_factory=utc_now)
