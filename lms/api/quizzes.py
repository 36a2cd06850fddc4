"""Quiz authoring, attempts and submission.

Answers are tagged by ``kind`` on the wire, e.g.
``{"kind": "multi_select", "indices": [0, 2]}``.
"""

from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from lms.api.dependencies import current_user_id, get_services, require_author
from lms.models.assessment import (
    Answer,
    MultiSelectAnswer,
    Quiz,
    QuizAttempt,
    QuizQuestion,
    SingleChoiceAnswer,
    TrueFalseAnswer,
    answer_to_json,
)
from lms.models.principal import Principal
from lms.services.wiring import LearningServices

router = APIRouter(tags=["quizzes"])

UserId = Annotated[UUID, Depends(current_user_id)]
Services = Annotated[LearningServices, Depends(get_services)]
Author = Annotated[Principal, Depends(require_author)]


class SingleChoiceIn(BaseModel):
    kind: Literal["single_choice"]
    index: int


class TrueFalseIn(BaseModel):
    kind: Literal["true_false"]
    value: bool


class MultiSelectIn(BaseModel):
    kind: Literal["multi_select"]
    indices: list[int]


AnswerIn = Annotated[
    SingleChoiceIn | TrueFalseIn | MultiSelectIn, Field(discriminator="kind")
]


def to_answer(payload: SingleChoiceIn | TrueFalseIn | MultiSelectIn) -> Answer:
    if isinstance(payload, SingleChoiceIn):
        return SingleChoiceAnswer(index=payload.index)
    if isinstance(payload, TrueFalseIn):
        return TrueFalseAnswer(value=payload.value)
    return MultiSelectAnswer(indices=frozenset(payload.indices))


class QuizIn(BaseModel):
    lesson_id: UUID
    title: str
    passing_score: int | None = None
    max_attempts: int | None = None


class QuizOut(BaseModel):
    id: UUID
    lesson_id: UUID
    title: str
    passing_score: int
    max_attempts: int | None


class QuestionIn(BaseModel):
    prompt: str
    correct: AnswerIn
    option_count: int | None = None


class QuestionOut(BaseModel):
    id: UUID
    quiz_id: UUID
    position: int
    prompt: str
    kind: str
    option_count: int | None


class AttemptIn(BaseModel):
    enrollment_id: UUID | None = None


class SubmittedAnswerIn(BaseModel):
    question_id: UUID
    answer: AnswerIn


class SubmitIn(BaseModel):
    answers: list[SubmittedAnswerIn]
    time_spent: int = 0


class AttemptOut(BaseModel):
    id: UUID
    quiz_id: UUID
    user_id: UUID
    enrollment_id: UUID | None
    attempt_number: int
    started_at: int
    completed_at: int | None
    score: int | None
    passed: bool | None
    time_spent_seconds: int
    answers: dict[str, dict]


def quiz_out(q: Quiz) -> QuizOut:
    return QuizOut(
        id=q.id,
        lesson_id=q.lesson_id,
        title=q.title,
        passing_score=q.passing_score,
        max_attempts=q.max_attempts,
    )


def question_out(q: QuizQuestion) -> QuestionOut:
    return QuestionOut(
        id=q.id,
        quiz_id=q.quiz_id,
        position=q.position,
        prompt=q.prompt,
        kind=q.kind,
        option_count=q.option_count,
    )


def attempt_out(a: QuizAttempt) -> AttemptOut:
    return AttemptOut(
        id=a.id,
        quiz_id=a.quiz_id,
        user_id=a.user_id,
        enrollment_id=a.enrollment_id,
        attempt_number=a.attempt_number,
        started_at=a.started_at,
        completed_at=a.completed_at,
        score=a.score,
        passed=a.passed,
        time_spent_seconds=a.time_spent_seconds,
        answers={str(qid): answer_to_json(ans) for qid, ans in a.answers},
    )


@router.post("/v1/quizzes", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
async def create_quiz(payload: QuizIn, _author: Author, services: Services) -> QuizOut:
    quiz = await services.quizzes.create_quiz(
        payload.lesson_id,
        payload.title,
        passing_score=payload.passing_score,
        max_attempts=payload.max_attempts,
    )
    return quiz_out(quiz)


@router.post(
    "/v1/quizzes/{quiz_id}/questions",
    response_model=QuestionOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    quiz_id: UUID, payload: QuestionIn, _author: Author, services: Services
) -> QuestionOut:
    question = await services.quizzes.add_question(
        quiz_id,
        payload.prompt,
        to_answer(payload.correct),
        option_count=payload.option_count,
    )
    return question_out(question)


@router.post(
    "/v1/quizzes/{quiz_id}/attempts",
    response_model=AttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def start_attempt(
    quiz_id: UUID,
    user_id: UserId,
    services: Services,
    payload: AttemptIn | None = None,
) -> AttemptOut:
    attempt = await services.quizzes.start_attempt(
        user_id, quiz_id, enrollment_id=payload.enrollment_id if payload else None
    )
    return attempt_out(attempt)


@router.post("/v1/quiz-attempts/{attempt_id}/submit", response_model=AttemptOut)
async def submit_attempt(
    attempt_id: UUID, payload: SubmitIn, user_id: UserId, services: Services
) -> AttemptOut:
    answers = {item.question_id: to_answer(item.answer) for item in payload.answers}
    attempt = await services.quizzes.submit_attempt(
        user_id, attempt_id, answers, time_spent=payload.time_spent
    )
    return attempt_out(attempt)
