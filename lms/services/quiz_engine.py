"""Quiz attempts and scoring.

Attempt numbers grow by one per (user, quiz).  The next number is read and
inserted under a per-(user, quiz) lock, and the unique constraint on
(quiz, user, attempt_number) catches anything that slips past the lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from uuid import UUID

from lms.core.clock import now_ts, percent
from lms.core.config import SETTINGS, Settings
from lms.core.metrics import CONCURRENCY_CONFLICTS, QUIZ_SUBMISSIONS
from lms.models.assessment import Answer, Quiz, QuizAttempt, QuizQuestion
from lms.models.progress import METHOD_QUIZ
from lms.repos.base import DuplicateKeyError
from lms.repos.store import Store
from lms.services.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from lms.services.ownership import owned_attempt, owned_enrollment
from lms.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)


def score_answers(
    questions: list[QuizQuestion], answers: Mapping[UUID, Answer]
) -> tuple[int, int]:
    """Return (correct, total).

    A question counts when the submitted answer has the question's kind and
    equals the stored correct answer.  Multi-select answers are sets.
    Unanswered questions count as wrong.
    """
    correct = 0
    for question in questions:
        submitted = answers.get(question.id)
        if submitted is not None and submitted == question.correct:
            correct += 1
    return correct, len(questions)


def _validate_answer(question: QuizQuestion, answer: Answer) -> None:
    if answer.kind != question.kind:
        return  # wrong kind is simply an incorrect answer
    count = question.option_count
    if count is None:
        return
    indices: frozenset[int] | tuple[int, ...] = ()
    if answer.kind == "single_choice":
        indices = (answer.index,)  # type: ignore[union-attr]
    elif answer.kind == "multi_select":
        indices = answer.indices  # type: ignore[union-attr]
    for i in indices:
        if not 0 <= i < count:
            raise ValidationError(
                "answer option out of range",
                question_id=str(question.id),
                option=i,
            )


class QuizEngine:
    def __init__(
        self,
        store: Store,
        tracker: ProgressTracker,
        *,
        settings: Settings = SETTINGS,
        clock: Callable[[], int] = now_ts,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._settings = settings
        self._clock = clock

    # --- authoring ---

    async def create_quiz(
        self,
        lesson_id: UUID,
        title: str,
        passing_score: int | None = None,
        max_attempts: int | None = None,
    ) -> Quiz:
        if await self._store.courses.get_lesson(lesson_id) is None:
            raise NotFoundError("lesson", lesson_id)
        if passing_score is None:
            passing_score = self._settings.default_passing_score
        if not 0 <= passing_score <= 100:
            raise ValidationError("passing_score must be between 0 and 100")
        if max_attempts is not None and max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        quiz = Quiz.new(
            lesson_id=lesson_id,
            title=title,
            passing_score=passing_score,
            max_attempts=max_attempts,
        )
        await self._store.quizzes.add_quiz(quiz)
        return quiz

    async def add_question(
        self,
        quiz_id: UUID,
        prompt: str,
        correct: Answer,
        option_count: int | None = None,
    ) -> QuizQuestion:
        if await self._store.quizzes.get_quiz(quiz_id) is None:
            raise NotFoundError("quiz", quiz_id)
        existing = await self._store.quizzes.list_questions(quiz_id)
        question = QuizQuestion.new(
            quiz_id=quiz_id,
            position=max((q.position for q in existing), default=0) + 1,
            prompt=prompt,
            correct=correct,
            option_count=option_count,
        )
        _validate_answer(question, correct)
        await self._store.quizzes.add_question(question)
        return question

    # --- attempts ---

    async def start_attempt(
        self,
        user_id: UUID,
        quiz_id: UUID,
        enrollment_id: UUID | None = None,
        attempt_number: int | None = None,
    ) -> QuizAttempt:
        quiz = await self._store.quizzes.get_quiz(quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", quiz_id)
        if enrollment_id is not None:
            enrollment = await owned_enrollment(self._store, user_id, enrollment_id)
            await self._tracker.lesson_in_enrollment(enrollment, quiz.lesson_id)

        async with self._store.lock(f"quiz-attempt:{user_id}:{quiz_id}"):
            async with self._store.transaction():
                current = await self._store.quizzes.max_attempt_number(quiz_id, user_id)
                expected = current + 1
                if attempt_number is not None and attempt_number != expected:
                    CONCURRENCY_CONFLICTS.labels(operation="quiz_attempt").inc()
                    logger.warning(
                        "Attempt number mismatch quiz=%s user=%s got=%d expected=%d",
                        quiz_id,
                        user_id,
                        attempt_number,
                        expected,
                    )
                    raise ConcurrencyConflictError(
                        "attempt number is not the next in sequence",
                        expected=expected,
                        received=attempt_number,
                    )
                if quiz.max_attempts is not None and expected > quiz.max_attempts:
                    raise ValidationError(
                        "maximum number of attempts reached",
                        max_attempts=quiz.max_attempts,
                    )

                attempt = QuizAttempt.new(
                    quiz_id=quiz_id,
                    user_id=user_id,
                    attempt_number=expected,
                    started_at=self._clock(),
                    enrollment_id=enrollment_id,
                )
                try:
                    await self._store.quizzes.add_attempt(attempt)
                except DuplicateKeyError as exc:
                    CONCURRENCY_CONFLICTS.labels(operation="quiz_attempt").inc()
                    raise ConcurrencyConflictError(
                        "attempt number already taken", expected=expected
                    ) from exc

        logger.info(
            "Quiz attempt started quiz=%s user=%s number=%d",
            quiz_id,
            user_id,
            attempt.attempt_number,
        )
        return attempt

    async def submit_attempt(
        self,
        user_id: UUID,
        attempt_id: UUID,
        answers: Mapping[UUID, Answer],
        time_spent: int = 0,
    ) -> QuizAttempt:
        if isinstance(time_spent, bool) or not isinstance(time_spent, int) or time_spent < 0:
            raise ValidationError("time_spent must be a non-negative integer")

        attempt = await owned_attempt(self._store, user_id, attempt_id)
        quiz = await self._store.quizzes.get_quiz(attempt.quiz_id)
        if quiz is None:
            raise NotFoundError("quiz", attempt.quiz_id)
        questions = await self._store.quizzes.list_questions(quiz.id)
        by_id = {q.id: q for q in questions}
        for question_id, answer in answers.items():
            question = by_id.get(question_id)
            if question is None:
                raise ValidationError(
                    "answer for a question not in this quiz",
                    question_id=str(question_id),
                )
            _validate_answer(question, answer)

        async with self._store.lock(f"quiz-submit:{attempt_id}"):
            async with self._store.transaction():
                current = await self._store.quizzes.get_attempt(attempt_id)
                if current is None:
                    raise NotFoundError("quiz attempt", attempt_id)
                if current.is_submitted:
                    raise ValidationError("attempt already submitted")

                correct, total = score_answers(questions, answers)
                score = percent(correct, total)
                passed = score >= quiz.passing_score
                submitted = replace(
                    current,
                    completed_at=self._clock(),
                    score=score,
                    passed=passed,
                    answers=tuple(answers.items()),
                    time_spent_seconds=time_spent,
                )
                await self._store.quizzes.update_attempt(submitted)

                if passed and submitted.enrollment_id is not None:
                    await self._tracker.mark_completed(
                        submitted.enrollment_id, quiz.lesson_id, METHOD_QUIZ
                    )

        QUIZ_SUBMISSIONS.labels(outcome="passed" if passed else "failed").inc()
        logger.info(
            "Quiz attempt submitted attempt=%s score=%d passed=%s (%d/%d)",
            attempt_id,
            score,
            passed,
            correct,
            total,
        )
        return submitted
