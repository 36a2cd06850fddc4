"""PostgreSQL implementation of QuizRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.tables import QuizAttemptRow, QuizQuestionRow, QuizRow
from lms.models.assessment import (
    Quiz,
    QuizAttempt,
    QuizQuestion,
    answer_from_json,
    answer_to_json,
)
from lms.repos.pg_base import insert_row, update_row


class PgQuizRepo:
    """Satisfies the QuizRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        if row is None:
            return None
        return Quiz(
            id=row.id,
            lesson_id=row.lesson_id,
            title=row.title,
            passing_score=row.passing_score,
            max_attempts=row.max_attempts,
        )

    async def add_quiz(self, quiz: Quiz) -> None:
        await insert_row(
            self._session,
            QuizRow(
                id=quiz.id,
                lesson_id=quiz.lesson_id,
                title=quiz.title,
                passing_score=quiz.passing_score,
                max_attempts=quiz.max_attempts,
            ),
        )

    async def list_questions(self, quiz_id: UUID) -> list[QuizQuestion]:
        stmt = (
            select(QuizQuestionRow)
            .where(QuizQuestionRow.quiz_id == quiz_id)
            .order_by(QuizQuestionRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizQuestion(
                id=r.id,
                quiz_id=r.quiz_id,
                position=r.position,
                prompt=r.prompt,
                correct=answer_from_json(r.correct_answer),
                option_count=r.option_count,
            )
            for r in rows
        ]

    async def add_question(self, question: QuizQuestion) -> None:
        await insert_row(
            self._session,
            QuizQuestionRow(
                id=question.id,
                quiz_id=question.quiz_id,
                position=question.position,
                prompt=question.prompt,
                kind=question.kind,
                correct_answer=answer_to_json(question.correct),
                option_count=question.option_count,
            ),
        )

    async def get_attempt(self, attempt_id: UUID) -> QuizAttempt | None:
        row = await self._session.get(QuizAttemptRow, attempt_id)
        if row is None:
            return None
        return _row_to_attempt(row)

    async def max_attempt_number(self, quiz_id: UUID, user_id: UUID) -> int:
        stmt = select(func.coalesce(func.max(QuizAttemptRow.attempt_number), 0)).where(
            QuizAttemptRow.quiz_id == quiz_id, QuizAttemptRow.user_id == user_id
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        await insert_row(
            self._session,
            QuizAttemptRow(
                id=attempt.id,
                quiz_id=attempt.quiz_id,
                user_id=attempt.user_id,
                enrollment_id=attempt.enrollment_id,
                attempt_number=attempt.attempt_number,
                started_at=attempt.started_at,
                completed_at=attempt.completed_at,
                score=attempt.score,
                passed=attempt.passed,
                answers=_answers_to_json(attempt),
                time_spent_seconds=attempt.time_spent_seconds,
            ),
        )

    async def update_attempt(self, attempt: QuizAttempt) -> None:
        await update_row(
            self._session,
            QuizAttemptRow,
            attempt.id,
            completed_at=attempt.completed_at,
            score=attempt.score,
            passed=attempt.passed,
            answers=_answers_to_json(attempt),
            time_spent_seconds=attempt.time_spent_seconds,
        )


def _answers_to_json(attempt: QuizAttempt) -> list[dict]:
    return [
        {"question_id": str(qid), "answer": answer_to_json(answer)}
        for qid, answer in attempt.answers
    ]


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id,
        user_id=row.user_id,
        attempt_number=row.attempt_number,
        started_at=row.started_at,
        enrollment_id=row.enrollment_id,
        completed_at=row.completed_at,
        score=row.score,
        passed=row.passed,
        answers=tuple(
            (UUID(item["question_id"]), answer_from_json(item["answer"]))
            for item in (row.answers or [])
        ),
        time_spent_seconds=row.time_spent_seconds,
    )
