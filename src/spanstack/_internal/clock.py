# Copyright 2026 Spanstack Contributors
# SPDX-License-Identifier: Apache-2.0

"""Clock sources for span timing.

Spans store absolute millisecond timestamps, so the recorder reads the wall
clock. Both the recorder and the manager accept any zero-argument callable
returning milliseconds, which lets tests drive time deterministically.
"""

import time


def wall_clock_ms() -> int:
    """Return current wall-clock time in milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def clamp_interval(started_at_ms: int, ended_at_ms: int) -> tuple[int, int]:
    """Return ``(ended_at_ms, duration_ms)`` with the end never before the start.

    The wall clock can step backwards (NTP adjustments). Moving the end up to
    the start keeps ``duration_ms == ended_at_ms - started_at_ms >= 0``.
    """
    ended = max(ended_at_ms, started_at_ms)
    return ended, ended - started_at_ms
