"""Unit of work bundling the repositories the services share.

Services receive a ``Store`` explicitly; there is no module-level storage.
``transaction()`` nests as a savepoint and rolls back exactly the writes
made inside the failing block.  ``lock(key)`` serialises check-then-act
sections such as certificate issuance or attempt numbering.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from lms.repos.base import MemoryJournal, MemoryLocks
from lms.repos.course_repo import CourseRepo, InMemoryCourseRepo
from lms.repos.credential_repo import CredentialRepo, InMemoryCredentialRepo
from lms.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from lms.repos.learning_path_repo import InMemoryLearningPathRepo, LearningPathRepo
from lms.repos.quiz_repo import InMemoryQuizRepo, QuizRepo


class Store(Protocol):
    courses: CourseRepo
    enrollments: EnrollmentRepo
    quizzes: QuizRepo
    credentials: CredentialRepo
    paths: LearningPathRepo

    def transaction(self) -> AbstractAsyncContextManager[None]: ...
    def lock(self, key: str) -> AbstractAsyncContextManager[None]: ...


class InMemoryStore:
    def __init__(self) -> None:
        self._journal = MemoryJournal()
        self._locks = MemoryLocks()
        self.courses = InMemoryCourseRepo(self._journal)
        self.enrollments = InMemoryEnrollmentRepo(self._journal)
        self.quizzes = InMemoryQuizRepo(self._journal)
        self.credentials = InMemoryCredentialRepo(self._journal)
        self.paths = InMemoryLearningPathRepo(self._journal)

    def transaction(self) -> AbstractAsyncContextManager[None]:
        return self._journal.transaction()

    def lock(self, key: str) -> AbstractAsyncContextManager[None]:
        return self._locks.hold(key)
