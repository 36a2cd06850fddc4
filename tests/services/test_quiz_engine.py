"""Quiz scoring, attempt numbering and quiz-driven lesson completion."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from lms.core.clock import percent
from lms.models.assessment import (
    MultiSelectAnswer,
    QuizQuestion,
    SingleChoiceAnswer,
    TrueFalseAnswer,
)
from lms.models.progress import COMPLETED, METHOD_QUIZ
from lms.services.errors import (
    ConcurrencyConflictError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from lms.services.quiz_engine import score_answers
from lms.services.wiring import LearningServices
from tests.conftest import LEARNER_ID, OTHER_LEARNER_ID, build_course

QUIZ_LESSONS = (("Intro", "rich_text", None), ("Check", "quiz", None))


async def _quiz(services: LearningServices, passing_score: int = 70, max_attempts=None):
    built = await build_course(services, lessons=QUIZ_LESSONS)
    lesson = built.lessons[1]
    quiz = await services.quizzes.create_quiz(
        lesson.id, "Checkpoint", passing_score=passing_score, max_attempts=max_attempts
    )
    q1 = await services.quizzes.add_question(
        quiz.id, "Pick B", SingleChoiceAnswer(index=1), option_count=3
    )
    q2 = await services.quizzes.add_question(quiz.id, "Sky is blue", TrueFalseAnswer(value=True))
    q3 = await services.quizzes.add_question(
        quiz.id, "Pick A and C", MultiSelectAnswer(indices=frozenset({0, 2})), option_count=4
    )
    return built, quiz, (q1, q2, q3)


# ---- pure scoring ----


def _question(correct) -> QuizQuestion:
    return QuizQuestion.new(quiz_id=uuid4(), position=1, prompt="?", correct=correct)


def test_multi_select_compares_as_a_set() -> None:
    q = _question(MultiSelectAnswer(indices=frozenset({2, 0})))
    assert score_answers([q], {q.id: MultiSelectAnswer(indices=frozenset({0, 2}))}) == (1, 1)


def test_wrong_kind_counts_as_incorrect() -> None:
    q = _question(SingleChoiceAnswer(index=1))
    assert score_answers([q], {q.id: TrueFalseAnswer(value=True)}) == (0, 1)


def test_unanswered_questions_count_as_wrong() -> None:
    q1 = _question(TrueFalseAnswer(value=True))
    q2 = _question(TrueFalseAnswer(value=False))
    assert score_answers([q1, q2], {q1.id: TrueFalseAnswer(value=True)}) == (1, 2)


def test_zero_questions_scores_zero() -> None:
    correct, total = score_answers([], {})
    assert percent(correct, total) == 0


def test_percent_rounds_half_up() -> None:
    assert percent(1, 8) == 13
    assert percent(2, 3) == 67
    assert percent(1, 3) == 33


# ---- attempts ----


def test_attempt_numbers_increase_per_user(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        a1 = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        a2 = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        other = await services.quizzes.start_attempt(OTHER_LEARNER_ID, quiz.id)
        return a1, a2, other

    a1, a2, other = asyncio.run(scenario())
    assert (a1.attempt_number, a2.attempt_number) == (1, 2)
    assert other.attempt_number == 1


def test_concurrent_attempt_starts_get_distinct_numbers(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        return await asyncio.gather(
            *(services.quizzes.start_attempt(LEARNER_ID, quiz.id) for _ in range(5))
        )

    attempts = asyncio.run(scenario())
    assert sorted(a.attempt_number for a in attempts) == [1, 2, 3, 4, 5]


def test_stale_attempt_number_is_a_conflict(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.start_attempt(LEARNER_ID, quiz.id, attempt_number=1)

    with pytest.raises(ConcurrencyConflictError):
        asyncio.run(scenario())


def test_max_attempts_is_enforced(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services, max_attempts=1)
        await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.start_attempt(LEARNER_ID, quiz.id)

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_unknown_quiz_is_not_found(services: LearningServices) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(services.quizzes.start_attempt(LEARNER_ID, uuid4()))


# ---- submission ----


def test_score_and_passed_rule(services: LearningServices) -> None:
    # 2 of 3 correct = 67, below the 70 passing score.
    async def scenario():
        _, quiz, (q1, q2, q3) = await _quiz(services)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        return await services.quizzes.submit_attempt(
            LEARNER_ID,
            attempt.id,
            {
                q1.id: SingleChoiceAnswer(index=1),
                q2.id: TrueFalseAnswer(value=True),
                q3.id: MultiSelectAnswer(indices=frozenset({0})),
            },
            time_spent=45,
        )

    submitted = asyncio.run(scenario())
    assert submitted.score == 67
    assert submitted.passed is False
    assert submitted.completed_at is not None
    assert submitted.time_spent_seconds == 45


def test_score_exactly_at_passing_score_passes(services: LearningServices) -> None:
    async def scenario():
        _, quiz, (q1, q2, q3) = await _quiz(services, passing_score=67)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        return await services.quizzes.submit_attempt(
            LEARNER_ID,
            attempt.id,
            {q1.id: SingleChoiceAnswer(index=1), q2.id: TrueFalseAnswer(value=True)},
        )

    submitted = asyncio.run(scenario())
    assert submitted.score == 67
    assert submitted.passed is True


def test_passing_attempt_completes_the_quiz_lesson(services: LearningServices) -> None:
    async def scenario():
        built, quiz, (q1, q2, q3) = await _quiz(services)
        enrollment = await services.enrollments.enroll(LEARNER_ID, built.version.id)
        attempt = await services.quizzes.start_attempt(
            LEARNER_ID, quiz.id, enrollment_id=enrollment.id
        )
        await services.quizzes.submit_attempt(
            LEARNER_ID,
            attempt.id,
            {
                q1.id: SingleChoiceAnswer(index=1),
                q2.id: TrueFalseAnswer(value=True),
                q3.id: MultiSelectAnswer(indices=frozenset({2, 0})),
            },
        )
        return await services.store.enrollments.get_lesson_progress(
            enrollment.id, built.lessons[1].id
        )

    row = asyncio.run(scenario())
    assert row is not None
    assert row.status == COMPLETED
    assert row.completion_method == METHOD_QUIZ


def test_submitting_twice_is_rejected(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.submit_attempt(LEARNER_ID, attempt.id, {})
        await services.quizzes.submit_attempt(LEARNER_ID, attempt.id, {})

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_answer_for_foreign_question_is_rejected(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.submit_attempt(
            LEARNER_ID, attempt.id, {uuid4(): TrueFalseAnswer(value=True)}
        )

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_option_index_out_of_range_is_rejected(services: LearningServices) -> None:
    async def scenario():
        _, quiz, (q1, _, _) = await _quiz(services)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.submit_attempt(
            LEARNER_ID, attempt.id, {q1.id: SingleChoiceAnswer(index=7)}
        )

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_other_user_cannot_submit_attempt(services: LearningServices) -> None:
    async def scenario():
        _, quiz, _ = await _quiz(services)
        attempt = await services.quizzes.start_attempt(LEARNER_ID, quiz.id)
        await services.quizzes.submit_attempt(OTHER_LEARNER_ID, attempt.id, {})

    with pytest.raises(OwnershipError):
        asyncio.run(scenario())
