"""Shared repository primitives.

``DuplicateKeyError`` is the one failure every repository implementation
raises for a unique-constraint violation.  The in-memory pieces below give
the dict-backed repositories the same guarantees the database gives the
Pg repositories: unique keys, transactions with savepoints, and rollback
that undoes exactly the writes made inside the failed block.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator, Callable, Hashable, Iterator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, Generic, TypeVar
from uuid import UUID

T = TypeVar("T")

_MISSING = object()


class DuplicateKeyError(ValueError):
    def __init__(self, table: str, constraint: str):
        super().__init__(f"duplicate key on {table}.{constraint}")
        self.table = table
        self.constraint = constraint


class MemoryJournal:
    """Undo journal for the in-memory store.

    Each open transaction is a frame (list of undo entries).  The stack of
    frames lives in a ContextVar, so concurrent tasks keep separate
    transactions and a rollback in one task never touches another task's
    writes.  Writes made with no open frame are committed immediately.
    """

    def __init__(self) -> None:
        self._frames: ContextVar[tuple[list, ...]] = ContextVar(
            f"memory_journal_{id(self)}", default=()
        )

    def record(self, table: MemoryTable, key: UUID) -> None:
        frames = self._frames.get()
        if frames:
            frames[-1].append((table, key, table._rows.get(key, _MISSING)))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        frames = self._frames.get()
        frame: list = []
        token = self._frames.set(frames + (frame,))
        try:
            yield
        except BaseException:
            for table, key, old in reversed(frame):
                table._restore(key, old)
            raise
        else:
            if frames:
                frames[-1].extend(frame)
        finally:
            self._frames.reset(token)


class MemoryTable(Generic[T]):
    """Dict of entities keyed by ``entity.id`` with unique indexes.

    ``uniques`` maps a constraint name to a key function; a key function
    returning None exempts the row (partial unique index).
    """

    def __init__(
        self,
        journal: MemoryJournal,
        name: str,
        uniques: dict[str, Callable[[T], Hashable | None]] | None = None,
    ) -> None:
        self._journal = journal
        self.name = name
        self._uniques = uniques or {}
        self._rows: dict[UUID, T] = {}

    def get(self, key: UUID) -> T | None:
        return self._rows.get(key)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._rows.values()))

    def find(self, **where: Any) -> list[T]:
        return [
            row
            for row in self._rows.values()
            if all(getattr(row, field) == value for field, value in where.items())
        ]

    def find_one(self, **where: Any) -> T | None:
        rows = self.find(**where)
        return rows[0] if rows else None

    def insert(self, row: T) -> None:
        key = row.id  # type: ignore[attr-defined]
        if key in self._rows:
            raise DuplicateKeyError(self.name, "pkey")
        self._check_uniques(row)
        self._journal.record(self, key)
        self._rows[key] = row

    def update(self, row: T) -> None:
        key = row.id  # type: ignore[attr-defined]
        if key not in self._rows:
            raise KeyError(f"{self.name} row {key} not found")
        self._check_uniques(row)
        self._journal.record(self, key)
        self._rows[key] = row

    def _check_uniques(self, row: T) -> None:
        for constraint, key_fn in self._uniques.items():
            value = key_fn(row)
            if value is None:
                continue
            for other in self._rows.values():
                if other.id != row.id and key_fn(other) == value:  # type: ignore[attr-defined]
                    raise DuplicateKeyError(self.name, constraint)

    def _restore(self, key: UUID, old: object) -> None:
        if old is _MISSING:
            self._rows.pop(key, None)
        else:
            self._rows[key] = old  # type: ignore[assignment]


class _TaskLock:
    """asyncio.Lock that the owning task may re-acquire."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._depth = 0

    async def acquire(self) -> None:
        task = asyncio.current_task()
        if self._owner is task:
            self._depth += 1
            return
        await self._lock.acquire()
        self._owner = task
        self._depth = 1

    def release(self) -> None:
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
            self._lock.release()


class MemoryLocks:
    """Named per-key locks, kept per event loop."""

    def __init__(self) -> None:
        self._by_loop: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, _TaskLock]
        ] = weakref.WeakKeyDictionary()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        loop = asyncio.get_running_loop()
        locks = self._by_loop.setdefault(loop, {})
        lock = locks.setdefault(key, _TaskLock())
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
