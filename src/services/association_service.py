"""
Service layer for game association (join row) synchronization.

A game is linked to genres and publishers through junction tables. Every
create or edit of a game replaces the whole set of links for a relation:
existing rows for (relation, game) are deleted and one row per desired id is
inserted, inside a single unit of work. Nothing is diffed, so applying the
same desired set twice leaves the same rows behind.

Two entry points share the same core:

- ``replace_associations`` works inside a caller's session (request-scoped
  unit of work) and isolates itself with a SAVEPOINT.
- ``AssociationSynchronizer`` owns its transaction, serializes work per
  (relation, owner) and bounds how long it waits for locks and commit.
"""
import asyncio
import logging
import re
from collections.abc import AsyncIterator, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import Table, delete, insert, select
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.base import MAX_ID
from models.game import Game
from models.genre import Genre, game_genres
from models.publisher import Publisher, game_publishers
from services.exceptions import (
    AssociationConflictError,
    AssociationStorageError,
    AssociationValidationError,
    OwnerNotFoundError,
    RelatedNotFoundError,
)

logger = logging.getLogger(__name__)

_ID_PATTERN = re.compile(r"^\d+$", re.ASCII)


class Relation(StrEnum):
    """Names of the many-to-many relations a game owns."""

    GENRE_LINK = "genre-link"
    PUBLISHER_LINK = "publisher-link"


@dataclass(frozen=True)
class RelationSpec:
    """Storage layout of one relation: junction table plus both endpoints."""

    table: Table
    owner_column: str
    related_column: str
    owner_model: type[Game]
    related_model: type[Genre] | type[Publisher]


RELATIONS: dict[Relation, RelationSpec] = {
    Relation.GENRE_LINK: RelationSpec(
        table=game_genres,
        owner_column="game_id",
        related_column="genre_id",
        owner_model=Game,
        related_model=Genre,
    ),
    Relation.PUBLISHER_LINK: RelationSpec(
        table=game_publishers,
        owner_column="game_id",
        related_column="publisher_id",
        owner_model=Game,
        related_model=Publisher,
    ),
}


def resolve_relation(relation: str | Relation) -> Relation:
    """
    Resolve a relation name to a Relation.

    Raises:
        AssociationValidationError: If the name is not a known relation.
    """
    try:
        return Relation(relation)
    except ValueError as e:
        valid = ", ".join(r.value for r in Relation)
        raise AssociationValidationError(
            f"Unknown relation '{relation}'. Valid relations: {valid}",
            value=relation,
        ) from e


def _coerce_id(value: object) -> int:
    """Coerce a single form or API value into an id within the key column range."""
    if isinstance(value, bool):
        raise AssociationValidationError(f"Invalid id: {value!r}", value=value)
    if isinstance(value, int):
        result = value
    elif isinstance(value, float) and value.is_integer():
        result = int(value)
    elif isinstance(value, str) and _ID_PATTERN.match(value.strip()):
        result = int(value.strip())
    else:
        raise AssociationValidationError(f"Invalid id: {value!r}", value=value)
    if not 0 < result <= MAX_ID:
        raise AssociationValidationError(f"Id out of range: {value!r}", value=value)
    return result


def normalize_related_ids(values: object) -> list[int]:
    """
    Normalize a desired set of related ids.

    Accepts None, a single scalar, or any iterable of ints / numeric strings
    (form submissions send one value or a list). Duplicates collapse.

    Returns:
        Sorted list of unique ids, each within the Integer key range.

    Raises:
        AssociationValidationError: If any entry is not an id in that range.
    """
    if values is None:
        return []
    if isinstance(values, (str, bytes, int, float)) or not isinstance(values, Iterable):
        values = [values]
    return sorted({_coerce_id(value) for value in values})


def _validate_owner_id(relation: Relation, owner_id: object) -> int:
    if isinstance(owner_id, bool) or not isinstance(owner_id, int) or not 0 < owner_id <= MAX_ID:
        raise AssociationValidationError(
            f"Invalid owner id for relation '{relation}': {owner_id!r}",
            value=owner_id,
        )
    return owner_id


@contextmanager
def _storage_errors(relation: Relation, owner_id: int) -> Iterator[None]:
    """Translate SQLAlchemy failures into association errors."""
    try:
        yield
    except IntegrityError as e:
        # Owner and related ids were verified under the owner row lock, so an
        # integrity failure means a concurrent writer removed one of them.
        logger.warning(
            "Integrity failure synchronizing %s for owner %s: %s", relation, owner_id, e.orig,
        )
        raise AssociationConflictError(
            relation, owner_id, "a referenced record changed concurrently",
        ) from e
    except (DBAPIError, SQLAlchemyError) as e:
        logger.exception("Storage failure synchronizing %s for owner %s", relation, owner_id)
        raise AssociationStorageError(relation, owner_id) from e


async def _apply(
    db: AsyncSession,
    relation: Relation,
    owner_id: int,
    related_ids: list[int],
) -> None:
    """Delete all links for (relation, owner) and insert the desired ones."""
    spec = RELATIONS[relation]
    owner_model = spec.owner_model
    related_model = spec.related_model
    table = spec.table

    # Row lock serializes writers of the same owner (no-op on SQLite)
    owner_exists = await db.scalar(
        select(owner_model.id).where(owner_model.id == owner_id).with_for_update(),
    )
    if owner_exists is None:
        raise OwnerNotFoundError(relation, owner_id)

    if related_ids:
        found = set(
            await db.scalars(
                select(related_model.id).where(related_model.id.in_(related_ids)),
            ),
        )
        missing = set(related_ids) - found
        if missing:
            raise RelatedNotFoundError(relation, missing)

    await db.execute(
        delete(table).where(table.c[spec.owner_column] == owner_id),
    )
    if related_ids:
        await db.execute(
            insert(table),
            [
                {spec.owner_column: owner_id, spec.related_column: related_id}
                for related_id in related_ids
            ],
        )


async def replace_associations(
    db: AsyncSession,
    relation: str | Relation,
    owner_id: int,
    related_ids: object,
) -> list[int]:
    """
    Replace the links of a relation for one owner within the caller's session.

    Runs in a SAVEPOINT: on any failure the savepoint is rolled back and the
    previous links are untouched, while the outer transaction stays usable.
    Durability is the caller's commit (see ``db.session.get_async_session``).

    Args:
        db: Database session.
        relation: Relation name ("genre-link" or "publisher-link").
        owner_id: ID of the game owning the links.
        related_ids: Desired related ids (scalar, list, or None).

    Returns:
        The normalized ids now linked.

    Raises:
        AssociationValidationError: Unknown relation or malformed id.
        OwnerNotFoundError: The owner does not exist.
        RelatedNotFoundError: One or more related ids do not exist.
        AssociationConflictError: A concurrent mutation broke integrity.
        AssociationStorageError: Any other persistence failure.
    """
    relation = resolve_relation(relation)
    owner_id = _validate_owner_id(relation, owner_id)
    ids = normalize_related_ids(related_ids)

    with _storage_errors(relation, owner_id):
        async with db.begin_nested():  # Creates savepoint
            await _apply(db, relation, owner_id, ids)

    logger.info(
        "Replaced %s for owner %s with %d association(s)", relation, owner_id, len(ids),
    )
    return ids


async def get_related_ids(
    db: AsyncSession,
    relation: str | Relation,
    owner_id: int,
) -> list[int]:
    """Return the sorted related ids currently linked to an owner."""
    relation = resolve_relation(relation)
    spec = RELATIONS[relation]
    table = spec.table
    result = await db.scalars(
        select(table.c[spec.related_column])
        .where(table.c[spec.owner_column] == owner_id)
        .order_by(table.c[spec.related_column]),
    )
    return list(result)


class AssociationSynchronizer:
    """
    Synchronize association sets in self-contained transactions.

    Each call opens a session from the injected factory, applies the
    replacement and commits. Calls for the same (relation, owner) are
    serialized by an in-process lock so the last one issued is the last one
    committed; calls for other keys do not wait on each other. The combined
    wait for the lock, the storage work and the commit is bounded by
    ``lock_timeout``; on timeout or cancellation the transaction is rolled back.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock_timeout: float = 10.0,
    ) -> None:
        if lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")
        self._session_factory = session_factory
        self._lock_timeout = lock_timeout
        self._locks: dict[tuple[Relation, int], asyncio.Lock] = {}
        self._lock_users: dict[tuple[Relation, int], int] = {}

    @asynccontextmanager
    async def _hold(self, key: tuple[Relation, int]) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def is_locked(self, relation: str | Relation, owner_id: int) -> bool:
        """Whether a synchronization for (relation, owner) is in flight."""
        lock = self._locks.get((resolve_relation(relation), owner_id))
        return lock is not None and lock.locked()

    async def synchronize(
        self,
        relation: str | Relation,
        owner_id: int,
        desired_related_ids: object,
    ) -> list[int]:
        """
        Make the persisted links of (relation, owner) equal the desired set.

        Input is validated before any lock is taken or any storage call made.

        Returns:
            The normalized ids now linked (committed).

        Raises:
            AssociationValidationError: Unknown relation or malformed id.
            OwnerNotFoundError: The owner does not exist.
            RelatedNotFoundError: One or more related ids do not exist.
            AssociationConflictError: Concurrent mutation, or the lock/commit
                did not complete within ``lock_timeout``.
            AssociationStorageError: Any other persistence failure.
        """
        relation = resolve_relation(relation)
        owner_id = _validate_owner_id(relation, owner_id)
        ids = normalize_related_ids(desired_related_ids)

        try:
            async with asyncio.timeout(self._lock_timeout):
                async with self._hold((relation, owner_id)):
                    with _storage_errors(relation, owner_id):
                        async with self._session_factory() as session, session.begin():
                            await _apply(session, relation, owner_id, ids)
        except TimeoutError as e:
            logger.warning(
                "Timed out after %ss synchronizing %s for owner %s",
                self._lock_timeout,
                relation,
                owner_id,
            )
            raise AssociationConflictError(
                relation, owner_id, f"timed out after {self._lock_timeout}s",
            ) from e

        logger.info(
            "Synchronized %s for owner %s with %d association(s)", relation, owner_id, len(ids),
        )
        return ids
