"""Actor, group and membership repositories.

ActorRepository is the durable store behind provisioning: it inserts the
actor and its memberships in the caller's transaction and reports unique
or foreign key clashes as ConstraintViolation naming the form field.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import ActorGroupRow, ActorMembershipRow, ActorRow
from src.models.actor import FIELD_MEMBERSHIPS, FIELD_NAME, Actor, ActorGroup
from src.models.common import ActorType, utc_now
from src.provisioning.errors import ConstraintViolation

# Constraint / column markers as they appear in Postgres and SQLite messages.
_FIELD_MARKERS: tuple[tuple[str, str], ...] = (
    ("uq_actors_account_name", FIELD_NAME),
    ("actors.name", FIELD_NAME),
    ("fk_actor_memberships_group", FIELD_MEMBERSHIPS),
    ("actor_memberships", FIELD_MEMBERSHIPS),
)


def _violated_field(exc: IntegrityError) -> str | None:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for marker, field in _FIELD_MARKERS:
        if marker in message:
            return field
    return None


class ActorGroupRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, group_id: UUID, account_id: UUID, name: str) -> ActorGroupRow:
        row = ActorGroupRow(
            group_id=group_id, account_id=account_id, name=name,
            created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_by_account(self, account_id: UUID) -> list[ActorGroupRow]:
        result = await self._session.execute(
            select(ActorGroupRow)
            .where(ActorGroupRow.account_id == account_id)
            .order_by(ActorGroupRow.name)
        )
        return list(result.scalars().all())

    async def groups_exist(self, account_id: UUID, group_ids: Iterable[UUID]) -> set[UUID]:
        """Return the subset of group_ids that exist in the account."""
        ids = set(group_ids)
        if not ids:
            return set()
        result = await self._session.execute(
            select(ActorGroupRow.group_id).where(
                ActorGroupRow.account_id == account_id,
                ActorGroupRow.group_id.in_(ids),
            )
        )
        return set(result.scalars().all())

    @staticmethod
    def to_model(row: ActorGroupRow) -> ActorGroup:
        return ActorGroup(
            id=row.group_id, account_id=row.account_id, name=row.name,
            created_at=row.created_at,
        )


class ActorRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, actor_id: UUID, account_id: UUID, type: str,
                     name: str, membership_refs: Iterable[UUID] = ()) -> ActorRow:
        """Insert an actor and its memberships.

        Raises:
            ConstraintViolation: a unique or foreign key constraint tied to
                a form field rejected the insert.
            IntegrityError: any other constraint rejected it.
        """
        row = ActorRow(
            actor_id=actor_id, account_id=account_id, type=type,
            name=name, created_at=utc_now(),
        )
        self._session.add(row)
        await self._flush_or_translate()

        for group_id in sorted(set(membership_refs)):
            self._session.add(ActorMembershipRow(
                actor_id=actor_id, group_id=group_id, account_id=account_id,
            ))
        # SQLite reports a missing group only as "FOREIGN KEY constraint failed"
        await self._flush_or_translate(fallback_field=FIELD_MEMBERSHIPS)
        return row

    async def _flush_or_translate(self, fallback_field: str | None = None) -> None:
        try:
            await self._session.flush()
        except IntegrityError as exc:
            field = _violated_field(exc) or fallback_field
            if field is None:
                raise
            raise ConstraintViolation(field=field, detail=str(exc.orig)) from exc

    async def get(self, actor_id: UUID) -> ActorRow | None:
        return await self._session.get(ActorRow, actor_id)

    async def get_in_account(self, account_id: UUID, actor_id: UUID) -> Actor | None:
        row = await self.get(actor_id)
        if row is None or row.account_id != account_id:
            return None
        return self.to_model(row, await self.membership_refs(actor_id))

    async def membership_refs(self, actor_id: UUID) -> frozenset[UUID]:
        result = await self._session.execute(
            select(ActorMembershipRow.group_id).where(
                ActorMembershipRow.actor_id == actor_id
            )
        )
        return frozenset(result.scalars().all())

    async def count_by_type(self, account_id: UUID, type: str) -> int:
        result = await self._session.execute(
            select(func.count())
            .select_from(ActorRow)
            .where(ActorRow.account_id == account_id, ActorRow.type == type)
        )
        return int(result.scalar_one())

    async def list_by_account(self, account_id: UUID) -> list[ActorRow]:
        result = await self._session.execute(
            select(ActorRow).where(ActorRow.account_id == account_id)
        )
        return list(result.scalars().all())

    @staticmethod
    def to_model(row: ActorRow, membership_refs: frozenset[UUID] = frozenset()) -> Actor:
        return Actor(
            id=row.actor_id,
            account_id=row.account_id,
            type=ActorType(row.type),
            name=row.name,
            membership_refs=membership_refs,
            created_at=row.created_at,
        )
