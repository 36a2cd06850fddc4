"""Tests for learning path authoring and learner step endpoints."""

from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import OTHER_LEARNER_ID, auth, mint_token


def _create_path(client: TestClient, author_token: str, titles=("S1", "S2", "S3")) -> dict:
    path = client.post(
        "/v1/learning-paths",
        json={"title": "Onboarding", "path_type": "linear"},
        headers=auth(author_token),
    )
    assert path.status_code == 201
    path_id = path.json()["id"]
    steps = []
    for title in titles:
        resp = client.post(
            f"/v1/learning-paths/{path_id}/steps",
            json={"title": title, "step_type": "external"},
            headers=auth(author_token),
        )
        assert resp.status_code == 201
        steps.append(resp.json())
    return {"id": path_id, "steps": steps}


def _publish(client: TestClient, author_token: str, path_id: str) -> None:
    resp = client.post(f"/v1/learning-paths/{path_id}/publish", headers=auth(author_token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "published"


def _enroll(client: TestClient, token: str, path_id: str) -> dict:
    resp = client.post(f"/v1/learning-paths/{path_id}/enroll", headers=auth(token))
    assert resp.status_code == 201
    return resp.json()


def _step_url(enrollment: dict, step: dict, action: str) -> str:
    return f"/v1/path-enrollments/{enrollment['id']}/steps/{step['id']}/{action}"


# ---- authoring ----


def test_created_path_is_draft(client: TestClient, author_token: str) -> None:
    path = _create_path(client, author_token)
    resp = client.get(f"/v1/learning-paths/{path['id']}", headers=auth(author_token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "draft"
    assert [s["step_order"] for s in path["steps"]] == [1, 2, 3]


def test_publishing_empty_path_returns_422(client: TestClient, author_token: str) -> None:
    path = _create_path(client, author_token, titles=())
    resp = client.post(f"/v1/learning-paths/{path['id']}/publish", headers=auth(author_token))
    assert resp.status_code == 422
    assert resp.json()["error"] == "cannot_publish_empty_path"


def test_unknown_path_type_returns_422(client: TestClient, author_token: str) -> None:
    resp = client.post(
        "/v1/learning-paths",
        json={"title": "P", "path_type": "spiral"},
        headers=auth(author_token),
    )
    assert resp.status_code == 422


def test_reorder_steps(client: TestClient, author_token: str, token: str) -> None:
    path = _create_path(client, author_token)
    s1, s2, s3 = path["steps"]

    resp = client.put(
        f"/v1/learning-paths/{path['id']}/steps/order",
        json={"step_ids": [s3["id"], s1["id"], s2["id"]]},
        headers=auth(author_token),
    )
    assert resp.status_code == 200
    assert [(s["title"], s["step_order"]) for s in resp.json()] == [
        ("S3", 1),
        ("S1", 2),
        ("S2", 3),
    ]

    listed = client.get(f"/v1/learning-paths/{path['id']}/steps", headers=auth(token))
    assert [s["title"] for s in listed.json()] == ["S3", "S1", "S2"]


def test_incomplete_reorder_returns_422(client: TestClient, author_token: str) -> None:
    path = _create_path(client, author_token)
    s1, s2, s3 = path["steps"]

    resp = client.put(
        f"/v1/learning-paths/{path['id']}/steps/order",
        json={"step_ids": [s3["id"], s1["id"]]},
        headers=auth(author_token),
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"] == "rejected_incomplete_reorder"
    assert body["details"]["missing"] == [s2["id"]]


def test_remove_step_closes_gap(client: TestClient, author_token: str) -> None:
    path = _create_path(client, author_token)
    s1, s2, s3 = path["steps"]

    resp = client.delete(
        f"/v1/learning-paths/{path['id']}/steps/{s2['id']}", headers=auth(author_token)
    )
    assert resp.status_code == 200
    assert [(s["id"], s["step_order"]) for s in resp.json()] == [
        (s1["id"], 1),
        (s3["id"], 2),
    ]


# ---- learner ----


def test_enroll_in_draft_path_returns_422(
    client: TestClient, author_token: str, token: str
) -> None:
    path = _create_path(client, author_token)
    resp = client.post(f"/v1/learning-paths/{path['id']}/enroll", headers=auth(token))
    assert resp.status_code == 422


def test_duplicate_path_enroll_returns_409(
    client: TestClient, author_token: str, token: str
) -> None:
    path = _create_path(client, author_token)
    _publish(client, author_token, path["id"])
    _enroll(client, token, path["id"])

    resp = client.post(f"/v1/learning-paths/{path['id']}/enroll", headers=auth(token))
    assert resp.status_code == 409


def test_walk_path_to_completion(client: TestClient, author_token: str, token: str) -> None:
    path = _create_path(client, author_token)
    _publish(client, author_token, path["id"])
    enrollment = _enroll(client, token, path["id"])
    s1, s2, s3 = path["steps"]

    steps = client.get(f"/v1/path-enrollments/{enrollment['id']}/steps", headers=auth(token))
    assert [s["status"] for s in steps.json()] == ["not_started"] * 3

    locked = client.post(_step_url(enrollment, s2, "complete"), headers=auth(token))
    assert locked.status_code == 422

    started = client.put(
        _step_url(enrollment, s1, "progress"), json={"progress": 40}, headers=auth(token)
    )
    assert started.json()["step"]["status"] == "in_progress"

    one = client.post(_step_url(enrollment, s1, "complete"), headers=auth(token))
    assert one.json()["enrollment"]["progress"] == 33

    two = client.post(_step_url(enrollment, s2, "skip"), headers=auth(token))
    assert two.json()["step"]["status"] == "skipped"
    assert two.json()["enrollment"]["progress"] == 67

    three = client.post(
        _step_url(enrollment, s3, "complete"), json={"score": 88}, headers=auth(token)
    )
    assert three.status_code == 200
    body = three.json()
    assert body["step"]["score"] == 88
    assert body["enrollment"]["status"] == "completed"
    assert body["enrollment"]["progress"] == 100
    assert body["certificate"]["kind"] == "path"

    certs = client.get("/v1/me/certificates", headers=auth(token))
    assert [c["certificate_number"] for c in certs.json()] == [
        body["certificate"]["certificate_number"]
    ]


def test_terminal_step_returns_422(client: TestClient, author_token: str, token: str) -> None:
    path = _create_path(client, author_token)
    _publish(client, author_token, path["id"])
    enrollment = _enroll(client, token, path["id"])
    s1 = path["steps"][0]

    assert client.post(_step_url(enrollment, s1, "fail"), headers=auth(token)).status_code == 200
    resp = client.post(_step_url(enrollment, s1, "complete"), headers=auth(token))
    assert resp.status_code == 422


def test_suspend_and_resume(client: TestClient, author_token: str, token: str) -> None:
    path = _create_path(client, author_token)
    _publish(client, author_token, path["id"])
    enrollment = _enroll(client, token, path["id"])
    base = f"/v1/path-enrollments/{enrollment['id']}"

    suspended = client.post(f"{base}/suspend", json={"reason": "leave"}, headers=auth(token))
    assert suspended.status_code == 200
    assert suspended.json()["status"] == "suspended"
    assert suspended.json()["suspension_reason"] == "leave"

    blocked = client.post(_step_url(enrollment, path["steps"][0], "skip"), headers=auth(token))
    assert blocked.status_code == 422

    resumed = client.post(f"{base}/resume", headers=auth(token))
    assert resumed.json()["status"] == "active"
    assert resumed.json()["suspension_reason"] is None


def test_other_user_cannot_see_path_enrollment(
    client: TestClient, author_token: str, token: str
) -> None:
    path = _create_path(client, author_token)
    _publish(client, author_token, path["id"])
    enrollment = _enroll(client, token, path["id"])

    resp = client.get(
        f"/v1/path-enrollments/{enrollment['id']}",
        headers=auth(mint_token(OTHER_LEARNER_ID)),
    )
    assert resp.status_code == 403
