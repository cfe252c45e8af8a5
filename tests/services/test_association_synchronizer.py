"""Tests for AssociationSynchronizer (self-committing, serialized per key)."""
import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import date

import pytest
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.game import Game
from models.genre import Genre
from models.publisher import Publisher
from services.association_service import (
    AssociationSynchronizer,
    Relation,
    get_related_ids,
)
from services.exceptions import (
    AssociationConflictError,
    AssociationValidationError,
    OwnerNotFoundError,
    RelatedNotFoundError,
)


@dataclass
class Catalog:
    """Ids of the committed test records."""

    game_ids: list[int]
    genre_ids: list[int]
    publisher_ids: list[int]


class GatedSessionFactory:
    """Session factory that can hold the next session until a gate opens."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.hold_next = False

    def __call__(self) -> AbstractAsyncContextManager[AsyncSession]:
        gate = self.gate if self.hold_next else None
        self.hold_next = False
        return self._session(gate)

    @asynccontextmanager
    async def _session(self, gate: asyncio.Event | None) -> AsyncIterator[AsyncSession]:
        if gate is not None:
            self.entered.set()
            await gate.wait()
        async with self._factory() as session:
            yield session


@pytest.fixture
async def catalog(session_factory: async_sessionmaker[AsyncSession]) -> Catalog:
    """Commit two games, four genres and two publishers."""
    async with session_factory() as session, session.begin():
        games = [
            Game(title="Hades", release_date=date(2020, 9, 17)),
            Game(title="Stardew Valley", release_date=date(2016, 2, 26)),
        ]
        genres = [Genre(name=name) for name in ("Action", "RPG", "Simulation", "Sport")]
        publishers = [Publisher(name="Supergiant"), Publisher(name="ConcernedApe")]
        session.add_all([*games, *genres, *publishers])
        await session.flush()
        return Catalog(
            game_ids=[g.id for g in games],
            genre_ids=[g.id for g in genres],
            publisher_ids=[p.id for p in publishers],
        )


async def linked(
    session_factory: async_sessionmaker[AsyncSession],
    relation: Relation,
    owner_id: int,
) -> list[int]:
    """Read committed links in a fresh session."""
    async with session_factory() as session:
        return await get_related_ids(session, relation, owner_id)


async def test__synchronize__commits_links(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """Links are visible to other sessions once synchronize returns."""
    sync = AssociationSynchronizer(session_factory)
    game_id = catalog.game_ids[0]
    wanted = [str(catalog.genre_ids[1]), catalog.genre_ids[0], catalog.genre_ids[0]]

    result = await sync.synchronize("genre-link", game_id, wanted)

    assert result == sorted(catalog.genre_ids[:2])
    assert await linked(session_factory, Relation.GENRE_LINK, game_id) == result


async def test__synchronize__last_write_wins(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """Sequential synchronizations replace, never merge."""
    sync = AssociationSynchronizer(session_factory)
    game_id = catalog.game_ids[0]
    g1, g2, g3 = catalog.genre_ids[:3]

    await sync.synchronize(Relation.GENRE_LINK, game_id, [g1, g2])
    await sync.synchronize(Relation.GENRE_LINK, game_id, [g2, g3])

    assert await linked(session_factory, Relation.GENRE_LINK, game_id) == sorted([g2, g3])


async def test__synchronize__failure_rolls_back(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """An unknown related id leaves the committed set untouched."""
    sync = AssociationSynchronizer(session_factory)
    game_id = catalog.game_ids[0]
    prior = catalog.publisher_ids[:1]
    await sync.synchronize(Relation.PUBLISHER_LINK, game_id, prior)

    with pytest.raises(RelatedNotFoundError):
        await sync.synchronize(
            Relation.PUBLISHER_LINK, game_id, [*catalog.publisher_ids, 98765],
        )

    assert await linked(session_factory, Relation.PUBLISHER_LINK, game_id) == prior


async def test__synchronize__unknown_owner(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """A missing owner fails with a reference error and persists nothing."""
    sync = AssociationSynchronizer(session_factory)

    with pytest.raises(OwnerNotFoundError):
        await sync.synchronize(Relation.GENRE_LINK, 55555, catalog.genre_ids)

    assert await linked(session_factory, Relation.GENRE_LINK, 55555) == []
    assert not sync.is_locked(Relation.GENRE_LINK, 55555)


async def test__synchronize__validates_before_touching_storage(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Malformed input is rejected without opening a session."""
    opened = []

    def factory() -> AsyncSession:
        opened.append(True)
        return session_factory()

    sync = AssociationSynchronizer(factory)

    with pytest.raises(AssociationValidationError):
        await sync.synchronize(Relation.GENRE_LINK, 1, ["1", "two"])
    with pytest.raises(AssociationValidationError):
        await sync.synchronize("studio-link", 1, [1])
    with pytest.raises(AssociationValidationError):
        await sync.synchronize(Relation.GENRE_LINK, 2**40, [1])

    assert opened == []


async def test__synchronize__same_key_serialized_other_keys_proceed(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """A second call for a busy key waits; calls for other owners do not."""
    gated = GatedSessionFactory(session_factory)
    sync = AssociationSynchronizer(gated)
    first_game, second_game = catalog.game_ids
    g1, g2, g3, _ = catalog.genre_ids

    gated.hold_next = True
    first = asyncio.create_task(sync.synchronize(Relation.GENRE_LINK, first_game, [g1]))
    await gated.entered.wait()
    assert sync.is_locked(Relation.GENRE_LINK, first_game)

    # Another owner, and another relation of the same owner, are not blocked
    await sync.synchronize(Relation.GENRE_LINK, second_game, [g3])
    await sync.synchronize(Relation.PUBLISHER_LINK, first_game, catalog.publisher_ids)

    second = asyncio.create_task(sync.synchronize(Relation.GENRE_LINK, first_game, [g2]))
    await asyncio.sleep(0.05)
    assert not second.done()

    gated.gate.set()
    await asyncio.gather(first, second)

    assert await linked(session_factory, Relation.GENRE_LINK, first_game) == [g2]
    assert await linked(session_factory, Relation.GENRE_LINK, second_game) == [g3]
    assert not sync.is_locked(Relation.GENRE_LINK, first_game)


async def test__synchronize__timeout_is_conflict(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """A synchronization that cannot finish in time fails and persists nothing."""
    gated = GatedSessionFactory(session_factory)
    sync = AssociationSynchronizer(gated, lock_timeout=0.1)
    game_id = catalog.game_ids[0]

    gated.hold_next = True
    with pytest.raises(AssociationConflictError, match="timed out"):
        await sync.synchronize(Relation.GENRE_LINK, game_id, catalog.genre_ids)

    assert await linked(session_factory, Relation.GENRE_LINK, game_id) == []
    assert not sync.is_locked(Relation.GENRE_LINK, game_id)


async def test__synchronize__cancellation_releases_lock(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """An abandoned call leaves no links and no held lock."""
    gated = GatedSessionFactory(session_factory)
    sync = AssociationSynchronizer(gated)
    game_id = catalog.game_ids[1]

    gated.hold_next = True
    task = asyncio.create_task(sync.synchronize(Relation.GENRE_LINK, game_id, catalog.genre_ids))
    await gated.entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not sync.is_locked(Relation.GENRE_LINK, game_id)
    assert await linked(session_factory, Relation.GENRE_LINK, game_id) == []


async def test__synchronize__owner_deleted_is_reference_error(
    session_factory: async_sessionmaker[AsyncSession],
    catalog: Catalog,
) -> None:
    """Once the owner is gone, further synchronizations fail."""
    sync = AssociationSynchronizer(session_factory)
    game_id = catalog.game_ids[0]
    await sync.synchronize(Relation.GENRE_LINK, game_id, catalog.genre_ids[:1])

    async with session_factory() as session, session.begin():
        await session.execute(delete(Game).where(Game.id == game_id))

    with pytest.raises(OwnerNotFoundError):
        await sync.synchronize(Relation.GENRE_LINK, game_id, catalog.genre_ids[:2])
    assert await linked(session_factory, Relation.GENRE_LINK, game_id) == []


def test__synchronizer__rejects_non_positive_timeout(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """The lock timeout must be positive."""
    with pytest.raises(ValueError, match="lock_timeout"):
        AssociationSynchronizer(session_factory, lock_timeout=0)
