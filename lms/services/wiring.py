"""Builds the service graph against one Store."""

from __future__ import annotations

from dataclasses import dataclass

from lms.repos.store import Store
from lms.services.badge_evaluator import BadgeEligibilityEvaluator
from lms.services.completion_cascade import (
    CompletionCascade,
    NumberGenerator,
    generate_certificate_number,
)
from lms.services.course_catalog import CourseCatalog
from lms.services.enrollment_manager import EnrollmentManager
from lms.services.learning_path_engine import LearningPathEngine
from lms.services.progress_tracker import ProgressTracker
from lms.services.quiz_engine import QuizEngine
from lms.services.step_reorderer import StepReorderer


@dataclass(frozen=True)
class LearningServices:
    store: Store
    catalog: CourseCatalog
    tracker: ProgressTracker
    quizzes: QuizEngine
    badges: BadgeEligibilityEvaluator
    cascade: CompletionCascade
    reorderer: StepReorderer
    paths: LearningPathEngine
    enrollments: EnrollmentManager


def build_services(
    store: Store, *, number_generator: NumberGenerator = generate_certificate_number
) -> LearningServices:
    tracker = ProgressTracker(store)
    badges = BadgeEligibilityEvaluator(store)
    cascade = CompletionCascade(store, badges, number_generator=number_generator)
    reorderer = StepReorderer(store)
    paths = LearningPathEngine(store, cascade, reorderer)
    return LearningServices(
        store=store,
        catalog=CourseCatalog(store),
        tracker=tracker,
        quizzes=QuizEngine(store, tracker),
        badges=badges,
        cascade=cascade,
        reorderer=reorderer,
        paths=paths,
        enrollments=EnrollmentManager(store, cascade, paths),
    )
