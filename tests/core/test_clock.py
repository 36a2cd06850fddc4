from __future__ import annotations

import time

import pytest

from lms.core.clock import now_ts, percent


@pytest.mark.parametrize(
    "part,whole,expected",
    [
        (0, 0, 0),
        (3, 0, 0),
        (0, 3, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),  # 12.5 rounds up
        (1, 200, 1),  # 0.5 rounds up
        (3, 3, 100),
    ],
)
def test_percent(part: int, whole: int, expected: int) -> None:
    assert percent(part, whole) == expected


def test_now_ts_is_unix_seconds() -> None:
    assert abs(now_ts() - int(time.time())) <= 1
