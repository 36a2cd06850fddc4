from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.assessment import Quiz, QuizAttempt, QuizQuestion
from lms.repos.base import MemoryJournal, MemoryTable


class QuizRepo(Protocol):
    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def add_quiz(self, quiz: Quiz) -> None: ...
    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]: ...
    async def add_question(self, question: QuizQuestion) -> None: ...
    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None: ...
    async def max_attempt_number(self, quiz_id: UUID, user_id: UUID) -> int: ...
    async def add_attempt(self, attempt: QuizAttempt) -> None: ...
    async def update_attempt(self, attempt: QuizAttempt) -> None: ...


class InMemoryQuizRepo:
    def __init__(self, journal: MemoryJournal) -> None:
        self._quizzes: MemoryTable[Quiz] = MemoryTable(journal, "quizzes")
        self._questions: MemoryTable[QuizQuestion] = MemoryTable(journal, "quiz_questions")
        self._attempts: MemoryTable[QuizAttempt] = MemoryTable(
            journal,
            "quiz_attempts",
            {"quiz_user_number": lambda a: (a.quiz_id, a.user_id, a.attempt_number)},
        )

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def add_quiz(self, quiz: Quiz) -> None:
        self._quizzes.insert(quiz)

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        return sorted(self._questions.find(quiz_id=quiz_id), key=lambda q: q.position)

    async def add_question(self, question: QuizQuestion) -> None:
        self._questions.insert(question)

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        return self._attempts.get(attempt_id)

    async def max_attempt_number(self, quiz_id: UUID, user_id: UUID) -> int:
        attempts = self._attempts.find(quiz_id=quiz_id, user_id=user_id)
        return max((a.attempt_number for a in attempts), default=0)

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._attempts.insert(attempt)

    async def update_attempt(self, attempt: QuizAttempt) -> None:
        self._attempts.update(attempt)
