from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Union
from uuid import UUID, uuid4

# ---------------------------------------------------------------------------
# Answers: one tagged value per question kind
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SingleChoiceAnswer:
    kind: ClassVar[str] = "single_choice"
    index: int


@dataclass(frozen=True, slots=True)
class TrueFalseAnswer:
    kind: ClassVar[str] = "true_false"
    value: bool


@dataclass(frozen=True, slots=True)
class MultiSelectAnswer:
    """Selected option indices.  A set: selection order is not significant."""

    kind: ClassVar[str] = "multi_select"
    indices: frozenset[int] = field(default_factory=frozenset)


Answer = Union[SingleChoiceAnswer, TrueFalseAnswer, MultiSelectAnswer]

QUESTION_KINDS = (
    SingleChoiceAnswer.kind,
    TrueFalseAnswer.kind,
    MultiSelectAnswer.kind,
)


def answer_to_json(answer: Answer) -> dict:
    if isinstance(answer, SingleChoiceAnswer):
        return {"kind": answer.kind, "index": answer.index}
    if isinstance(answer, TrueFalseAnswer):
        return {"kind": answer.kind, "value": answer.value}
    return {"kind": answer.kind, "indices": sorted(answer.indices)}


def answer_from_json(data: dict) -> Answer:
    kind = data.get("kind")
    if kind == SingleChoiceAnswer.kind:
        return SingleChoiceAnswer(index=int(data["index"]))
    if kind == TrueFalseAnswer.kind:
        return TrueFalseAnswer(value=bool(data["value"]))
    if kind == MultiSelectAnswer.kind:
        return MultiSelectAnswer(indices=frozenset(int(i) for i in data["indices"]))
    raise ValueError(f"unknown answer kind {kind!r}")


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    lesson_id: UUID
    title: str
    passing_score: int = 70
    max_attempts: int | None = None

    @staticmethod
    def new(
        *,
        lesson_id: UUID,
        title: str,
        passing_score: int = 70,
        max_attempts: int | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            lesson_id=lesson_id,
            title=title,
            passing_score=passing_score,
            max_attempts=max_attempts,
        )


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    id: UUID
    quiz_id: UUID
    position: int
    prompt: str
    correct: Answer
    option_count: int | None = None

    @property
    def kind(self) -> str:
        return self.correct.kind

    @staticmethod
    def new(
        *,
        quiz_id: UUID,
        position: int,
        prompt: str,
        correct: Answer,
        option_count: int | None = None,
    ) -> QuizQuestion:
        return QuizQuestion(
            id=uuid4(),
            quiz_id=quiz_id,
            position=position,
            prompt=prompt,
            correct=correct,
            option_count=option_count,
        )


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One attempt at a quiz.  Append-only; completed_at is set once."""

    id: UUID
    quiz_id: UUID
    user_id: UUID
    attempt_number: int
    started_at: int
    enrollment_id: UUID | None = None
    completed_at: int | None = None
    score: int | None = None
    passed: bool | None = None
    answers: tuple[tuple[UUID, Answer], ...] = ()
    time_spent_seconds: int = 0

    @property
    def is_submitted(self) -> bool:
        return self.completed_at is not None

    @staticmethod
    def new(
        *,
        quiz_id: UUID,
        user_id: UUID,
        attempt_number: int,
        started_at: int,
        enrollment_id: UUID | None = None,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            quiz_id=quiz_id,
            user_id=user_id,
            attempt_number=attempt_number,
            started_at=started_at,
            enrollment_id=enrollment_id,
        )
