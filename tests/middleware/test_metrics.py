"""Tests for Prometheus metrics middleware.

prometheus-client keeps one global registry and counters cannot be reset
between tests, so every assertion is on a delta: read, act, read again.
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from lms.services.wiring import LearningServices
from tests.conftest import build_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    """Each HTTP request should increment the request counter."""
    before = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/health", "status_code": "200"},
    )
    client.get("/health")
    after = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/health", "status_code": "200"},
    )
    assert after - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    """Each request should add an observation to the duration histogram."""
    before = _get_sample(
        "http_request_duration_seconds_count",
        {"method": "GET", "endpoint": "/health"},
    )
    client.get("/health")
    after = _get_sample(
        "http_request_duration_seconds_count",
        {"method": "GET", "endpoint": "/health"},
    )
    assert after - before >= 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    """GET /metrics should return Prometheus text exposition format."""
    # Make a request first so there's data to report
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    # Prometheus text format contains HELP and TYPE lines
    assert "http_requests_total" in resp.text
    assert "http_request_duration_seconds" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    """Requests to /metrics itself should not be counted in metrics."""
    before = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/metrics", "status_code": "200"},
    )
    client.get("/metrics")
    client.get("/metrics")
    after = _get_sample(
        "http_requests_total",
        {"method": "GET", "endpoint": "/metrics", "status_code": "200"},
    )
    # Should not have incremented (we skip /metrics in the middleware)
    assert after == before


def test_endpoint_label_is_route_template(client: TestClient, token: str) -> None:
    """Ids in the URL collapse onto one series per route."""
    labels = {
        "method": "GET",
        "endpoint": "/v1/enrollments/{enrollment_id}",
        "status_code": "404",
    }
    before = _get_sample("http_requests_total", labels)
    headers = {"Authorization": f"Bearer {token}"}
    client.get(f"/v1/enrollments/{uuid4()}", headers=headers)
    client.get(f"/v1/enrollments/{uuid4()}", headers=headers)
    after = _get_sample("http_requests_total", labels)
    assert after - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get(f"/no-such-route/{uuid4()}")
    after = _get_sample("http_requests_total", labels)
    assert after - before == 1


def test_rejected_completion_is_counted(
    client: TestClient, services: LearningServices, token: str
) -> None:
    built = asyncio.run(build_course(services))
    headers = {"Authorization": f"Bearer {token}"}
    enrollment = client.post(
        "/v1/enrollments",
        json={"course_version_id": str(built.version.id)},
        headers=headers,
    ).json()

    labels = {"reason": "insufficient_progress"}
    before = _get_sample("completion_rejections_total", labels)
    client.post(
        f"/v1/enrollments/{enrollment['id']}/lessons/{built.lessons[0].id}/complete",
        headers=headers,
    )
    after = _get_sample("completion_rejections_total", labels)
    assert after - before == 1
