from __future__ import annotations

import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import lms` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lms.api.dependencies import get_store, reset_memory_store  # noqa: E402
from lms.main import app  # noqa: E402
from lms.models.course import Course, CourseModule, CourseVersion, Lesson  # noqa: E402
from lms.models.learning_path import LearningPath, LearningPathStep  # noqa: E402
from lms.repos.store import InMemoryStore  # noqa: E402
from lms.services import token_service  # noqa: E402
from lms.services.wiring import LearningServices, build_services  # noqa: E402

LEARNER_ID = UUID("00000000-0000-0000-0000-00000000000a")
OTHER_LEARNER_ID = UUID("00000000-0000-0000-0000-00000000000b")
AUTHOR_ID = UUID("00000000-0000-0000-0000-0000000000ad")


@pytest.fixture(autouse=True)
def reset_app_state() -> Iterator[None]:
    """Fresh process-wide store and no leftover dependency overrides."""
    reset_memory_store()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def services(store: InMemoryStore) -> LearningServices:
    return build_services(store)


@pytest.fixture
def client(store: InMemoryStore) -> TestClient:
    """API client backed by the same in-memory store as the `services` fixture."""
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)


def mint_token(
    user_id: UUID | str = LEARNER_ID,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id), roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Learner token for LEARNER_ID."""
    return mint_token()


@pytest.fixture
def author_token() -> str:
    return mint_token(AUTHOR_ID, roles=["instructor"])


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@dataclass
class BuiltCourse:
    course: Course
    version: CourseVersion
    module: CourseModule
    lessons: list[Lesson]


# (title, content_type, duration_seconds)
DEFAULT_LESSONS: Sequence[tuple[str, str, int | None]] = (
    ("L1", "video", 600),
    ("L2", "rich_text", None),
)


async def build_course(
    services: LearningServices,
    title: str = "Course A",
    lessons: Sequence[tuple[str, str, int | None]] = DEFAULT_LESSONS,
    status: str = "published",
) -> BuiltCourse:
    course = await services.catalog.create_course(title)
    version = await services.catalog.add_version(course.id, "1.0", status=status)
    module = await services.catalog.add_module(version.id, "Module 1")
    built = [
        await services.catalog.add_lesson(
            module.id, name, content_type=kind, duration_seconds=duration
        )
        for name, kind, duration in lessons
    ]
    return BuiltCourse(course=course, version=version, module=module, lessons=built)


async def build_path(
    services: LearningServices,
    step_titles: Sequence[str] = ("S1", "S2", "S3"),
    path_type: str = "linear",
    publish: bool = True,
    issues_certificate: bool = True,
) -> tuple[LearningPath, list[LearningPathStep]]:
    path = await services.paths.create_path(
        "Path P", path_type=path_type, issues_certificate=issues_certificate
    )
    steps = [
        await services.paths.add_step(path.id, title, step_type="external")
        for title in step_titles
    ]
    if publish:
        path = await services.paths.publish(path.id)
    return path, steps


def new_user() -> UUID:
    return uuid4()


async def finish_course(
    services: LearningServices, user_id: UUID, built: BuiltCourse | None = None
):
    """Enroll in a one-lesson course (or `built`), complete it, return the CompletionResult."""
    if built is None:
        built = await build_course(services, lessons=[("Only", "rich_text", None)])
    enrollment = await services.enrollments.enroll(user_id, built.version.id)
    for lesson in built.lessons:
        if lesson.is_video:
            await services.tracker.update_progress(user_id, enrollment.id, lesson.id, 100)
        await services.tracker.complete_manually(user_id, enrollment.id, lesson.id)
    return await services.enrollments.complete_enrollment(user_id, enrollment.id)
