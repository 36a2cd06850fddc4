from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    # Completion rules
    video_completion_threshold: int = 90
    min_watch_ratio: float = 0.5
    default_passing_score: int = 70
    certificate_prefix: str = "CERT"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_percent(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if not 0 <= value <= 100:
        raise ValueError(f"{name} must be between 0 and 100 (got {value})")
    return value


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    threshold = _parse_percent(
        "VIDEO_COMPLETION_THRESHOLD", _getenv("VIDEO_COMPLETION_THRESHOLD", "90")
    )
    passing = _parse_percent(
        "DEFAULT_PASSING_SCORE", _getenv("DEFAULT_PASSING_SCORE", "70")
    )

    ratio_raw = _getenv("MIN_WATCH_RATIO", "0.5")
    try:
        ratio = float(ratio_raw)
    except ValueError:
        raise ValueError(f"MIN_WATCH_RATIO must be a number (got {ratio_raw!r})") from None
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"MIN_WATCH_RATIO must be between 0 and 1 (got {ratio})")

    prefix = _getenv("CERTIFICATE_PREFIX", "CERT") or "CERT"

    database_url = _getenv("DATABASE_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        database_url=database_url,
        video_completion_threshold=threshold,
        min_watch_ratio=ratio,
        default_passing_score=passing,
        certificate_prefix=prefix,
    )


SETTINGS = load_settings()
