"""Prometheus scrape endpoint.

Plain text in Prometheus exposition format, e.g.:

  # TYPE course_completions_total counter
  course_completions_total 42.0
  completion_rejections_total{reason="insufficient_progress"} 7.0

Restrict access in production (internal port or scraper allow-list):
rejection counts and request rates describe how learners use the system.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
