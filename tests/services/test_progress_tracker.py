"""Lesson progress: clamping, high-water mark, thresholds and anti-cheat."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from uuid import UUID

import pytest

from lms.models.progress import COMPLETED, EXPIRED, IN_PROGRESS, METHOD_MANUAL
from lms.services.errors import (
    IneligibleCompletionError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from lms.services.progress_tracker import CompletionClaim
from lms.services.wiring import LearningServices
from tests.conftest import LEARNER_ID, OTHER_LEARNER_ID, build_course


async def _enrolled(services: LearningServices):
    built = await build_course(services)
    enrollment = await services.enrollments.enroll(LEARNER_ID, built.version.id)
    return built, enrollment


# ---- clamping ----


@pytest.mark.parametrize(
    ("reported", "stored"),
    [(150, 100), (-5, 0), (42.9, 42), (0, 0), (100, 100)],
)
def test_update_progress_clamps_to_0_100(
    services: LearningServices, reported: float, stored: int
) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        return await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, built.lessons[0].id, reported
        )

    row = asyncio.run(scenario())
    assert row.progress_percentage == stored


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "50", True])
def test_update_progress_rejects_non_numeric_percentage(
    services: LearningServices, bad: object
) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, built.lessons[0].id, bad  # type: ignore[arg-type]
        )

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_update_progress_rejects_negative_time_spent(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, built.lessons[0].id, 10, time_spent=-1
        )

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


# ---- stored progress ----


def test_progress_is_a_high_water_mark(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        lesson = built.lessons[0].id
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, lesson, 70, position=420, time_spent=400
        )
        return await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, lesson, 30, position=180, time_spent=100
        )

    row = asyncio.run(scenario())
    assert row.progress_percentage == 70
    assert row.last_position == 180
    assert row.time_spent_seconds == 400
    assert row.status == IN_PROGRESS


def test_first_progress_starts_the_enrollment(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, built.lessons[1].id, 5
        )
        return await services.enrollments.get_enrollment(LEARNER_ID, enrollment.id)

    enrollment = asyncio.run(scenario())
    assert enrollment.status == IN_PROGRESS
    assert enrollment.started_at is not None


def test_first_progress_keeps_concurrently_stored_course_progress(
    services: LearningServices, monkeypatch
) -> None:
    store = services.store
    original_lock = store.lock

    @asynccontextmanager
    async def lock_after_aggregate(key: str):
        if key.startswith("lesson-progress:"):
            # compute_course_progress lands between the ownership read and the lock
            _, enrollment_id, _ = key.split(":")
            current = await store.enrollments.get(UUID(enrollment_id))
            await store.enrollments.update(replace(current, progress=42))
        async with original_lock(key):
            yield

    async def scenario():
        built, enrollment = await _enrolled(services)
        monkeypatch.setattr(store, "lock", lock_after_aggregate)
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, built.lessons[1].id, 5
        )
        return await services.enrollments.get_enrollment(LEARNER_ID, enrollment.id)

    enrollment = asyncio.run(scenario())
    assert enrollment.status == IN_PROGRESS
    assert enrollment.progress == 42


def test_progress_after_completion_leaves_row_unchanged(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        lesson = built.lessons[1].id
        done = await services.tracker.complete_manually(LEARNER_ID, enrollment.id, lesson)
        after = await services.tracker.update_progress(LEARNER_ID, enrollment.id, lesson, 10)
        return done, after

    done, after = asyncio.run(scenario())
    assert after == done
    assert after.status == COMPLETED
    assert after.progress_percentage == 100


# ---- manual completion threshold ----


def test_video_at_89_percent_cannot_be_completed(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        video = built.lessons[0].id
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, video, 89)
        await services.tracker.complete_manually(LEARNER_ID, enrollment.id, video)

    with pytest.raises(IneligibleCompletionError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.current_percentage == 89
    assert exc_info.value.details["current_percentage"] == 89


def test_video_at_90_percent_completes_manually(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        video = built.lessons[0].id
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, video, 90)
        return await services.tracker.complete_manually(LEARNER_ID, enrollment.id, video)

    row = asyncio.run(scenario())
    assert row.status == COMPLETED
    assert row.progress_percentage == 100
    assert row.completion_method == METHOD_MANUAL
    assert row.completed_at is not None


def test_non_video_lesson_completes_without_progress(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        return await services.tracker.complete_manually(
            LEARNER_ID, enrollment.id, built.lessons[1].id
        )

    assert asyncio.run(scenario()).status == COMPLETED


def test_completing_twice_returns_the_same_row(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        lesson = built.lessons[1].id
        first = await services.tracker.complete_manually(LEARNER_ID, enrollment.id, lesson)
        second = await services.tracker.complete_manually(LEARNER_ID, enrollment.id, lesson)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.id == second.id
    assert first.completed_at == second.completed_at


# ---- eligibility (anti-cheat) ----


def test_eligibility_uses_stored_progress_not_claim(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        video = built.lessons[0].id
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, video, 89)
        await services.tracker.validate_completion_eligibility(
            LEARNER_ID,
            enrollment.id,
            video,
            CompletionClaim(percentage=100, time_spent=600),
        )

    with pytest.raises(IneligibleCompletionError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.reason == "insufficient_progress"
    assert exc_info.value.current_percentage == 89


def test_eligibility_at_90_with_enough_watch_time(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        video = built.lessons[0].id
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, video, 90)
        return await services.tracker.validate_completion_eligibility(
            LEARNER_ID, enrollment.id, video, CompletionClaim(time_spent=300)
        )

    stored = asyncio.run(scenario())
    assert stored is not None
    assert stored.progress_percentage == 90


def test_eligibility_rejects_implausible_watch_time(services: LearningServices) -> None:
    # 600s video, 50% minimum watch ratio: 299s is too fast.
    async def scenario():
        built, enrollment = await _enrolled(services)
        video = built.lessons[0].id
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, video, 95)
        await services.tracker.validate_completion_eligibility(
            LEARNER_ID, enrollment.id, video, CompletionClaim(time_spent=299)
        )

    with pytest.raises(IneligibleCompletionError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.reason == "insufficient_watch_time"
    assert exc_info.value.details["required_time"] == 300


# ---- ownership and membership ----


def test_other_users_enrollment_is_forbidden(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _enrolled(services)
        await services.tracker.update_progress(
            OTHER_LEARNER_ID, enrollment.id, built.lessons[0].id, 50
        )

    with pytest.raises(OwnershipError):
        asyncio.run(scenario())


def test_lesson_from_another_course_is_not_found(services: LearningServices) -> None:
    async def scenario():
        _, enrollment = await _enrolled(services)
        other = await build_course(services, title="Course B")
        await services.tracker.update_progress(
            LEARNER_ID, enrollment.id, other.lessons[0].id, 50
        )

    with pytest.raises(NotFoundError):
        asyncio.run(scenario())


# ---- closed enrollments ----


async def _closed(services: LearningServices, status: str):
    built, enrollment = await _enrolled(services)
    await services.store.enrollments.update(replace(enrollment, status=status))
    return built, enrollment


@pytest.mark.parametrize("status", [EXPIRED, COMPLETED])
def test_closed_enrollment_rejects_manual_completion(
    services: LearningServices, status: str
) -> None:
    async def scenario():
        built, enrollment = await _closed(services, status)
        with pytest.raises(ValidationError) as exc_info:
            await services.tracker.complete_manually(
                LEARNER_ID, enrollment.id, built.lessons[1].id
            )
        rows = await services.store.enrollments.list_lesson_progress(enrollment.id)
        return exc_info.value, rows

    error, rows = asyncio.run(scenario())
    assert error.details["status"] == status
    assert rows == []


def test_expired_enrollment_rejects_quiz_style_completion(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _closed(services, EXPIRED)
        with pytest.raises(ValidationError):
            await services.tracker.mark_completed(enrollment.id, built.lessons[1].id, "quiz")
        return await services.store.enrollments.list_lesson_progress(enrollment.id)

    assert asyncio.run(scenario()) == []


def test_expired_enrollment_rejects_progress(services: LearningServices) -> None:
    async def scenario():
        built, enrollment = await _closed(services, EXPIRED)
        await services.tracker.update_progress(LEARNER_ID, enrollment.id, built.lessons[0].id, 10)

    with pytest.raises(ValidationError):
        asyncio.run(scenario())
