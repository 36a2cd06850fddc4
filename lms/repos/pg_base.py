"""Helpers shared by the PostgreSQL repositories."""

from __future__ import annotations

from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms.repos.base import DuplicateKeyError


def _constraint_name(exc: IntegrityError) -> str:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "constraint_name", None) or "unique"


async def insert_row(session: AsyncSession, row: Any) -> None:
    """Insert inside a savepoint so a unique violation leaves the session usable."""
    try:
        async with session.begin_nested():
            session.add(row)
            await session.flush()
    except IntegrityError as exc:
        raise DuplicateKeyError(row.__tablename__, _constraint_name(exc)) from exc


async def update_row(session: AsyncSession, row_cls: Any, row_id: Any, **values: Any) -> None:
    stmt = update(row_cls).where(row_cls.id == row_id).values(**values)
    try:
        async with session.begin_nested():
            await session.execute(stmt)
    except IntegrityError as exc:
        raise DuplicateKeyError(row_cls.__tablename__, _constraint_name(exc)) from exc
