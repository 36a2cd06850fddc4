"""PostgreSQL unit of work: one AsyncSession shared by every repository."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from lms.repos.pg_course_repo import PgCourseRepo
from lms.repos.pg_credential_repo import PgCredentialRepo
from lms.repos.pg_enrollment_repo import PgEnrollmentRepo
from lms.repos.pg_learning_path_repo import PgLearningPathRepo
from lms.repos.pg_quiz_repo import PgQuizRepo


class PgStore:
    """Satisfies the Store Protocol.

    The request-scoped session owns the outer transaction (committed or
    rolled back by ``session_scope``); ``transaction()`` opens a
    savepoint when one is already in progress.  Locks are transaction-level
    advisory locks, released on commit or rollback.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.courses = PgCourseRepo(session)
        self.enrollments = PgEnrollmentRepo(session)
        self.quizzes = PgQuizRepo(session)
        self.credentials = PgCredentialRepo(session)
        self.paths = PgLearningPathRepo(session)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._session.in_transaction():
            async with self._session.begin_nested():
                yield
        else:
            async with self._session.begin():
                yield

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        await self._session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key}
        )
        yield
