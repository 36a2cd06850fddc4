"""Tests for course structure authoring endpoints."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import auth


def test_build_course_structure(client: TestClient, author_token: str, token: str) -> None:
    headers = auth(author_token)
    course = client.post("/v1/courses", json={"title": "Course A"}, headers=headers)
    assert course.status_code == 201
    course_id = course.json()["id"]

    version = client.post(
        f"/v1/courses/{course_id}/versions", json={"version": "1.0"}, headers=headers
    )
    assert version.status_code == 201
    version_id = version.json()["id"]

    m1 = client.post(
        f"/v1/courses/versions/{version_id}/modules", json={"title": "M1"}, headers=headers
    )
    m2 = client.post(
        f"/v1/courses/versions/{version_id}/modules", json={"title": "M2"}, headers=headers
    )
    assert [m1.json()["position"], m2.json()["position"]] == [1, 2]

    lessons_url = f"/v1/courses/modules/{m1.json()['id']}/lessons"
    video = client.post(
        lessons_url,
        json={"title": "Intro", "content_type": "video", "duration_seconds": 300},
        headers=headers,
    )
    text = client.post(lessons_url, json={"title": "Notes"}, headers=headers)
    assert video.status_code == 201
    assert [video.json()["position"], text.json()["position"]] == [1, 2]
    assert text.json()["content_type"] == "rich_text"

    # A learner can enroll in the authored version straight away.
    resp = client.post(
        "/v1/enrollments", json={"course_version_id": version_id}, headers=auth(token)
    )
    assert resp.status_code == 201


def test_blank_course_title_returns_422(client: TestClient, author_token: str) -> None:
    resp = client.post("/v1/courses", json={"title": "  "}, headers=auth(author_token))
    assert resp.status_code == 422
    assert resp.json()["details"]["field"] == "title"


def test_version_for_unknown_course_returns_404(client: TestClient, author_token: str) -> None:
    resp = client.post(
        f"/v1/courses/{uuid4()}/versions", json={"version": "1.0"}, headers=auth(author_token)
    )
    assert resp.status_code == 404


def test_unknown_content_type_returns_422(client: TestClient, author_token: str) -> None:
    headers = auth(author_token)
    course_id = client.post("/v1/courses", json={"title": "C"}, headers=headers).json()["id"]
    version_id = client.post(
        f"/v1/courses/{course_id}/versions", json={"version": "1"}, headers=headers
    ).json()["id"]
    module_id = client.post(
        f"/v1/courses/versions/{version_id}/modules", json={"title": "M"}, headers=headers
    ).json()["id"]

    resp = client.post(
        f"/v1/courses/modules/{module_id}/lessons",
        json={"title": "L", "content_type": "hologram"},
        headers=headers,
    )
    assert resp.status_code == 422
