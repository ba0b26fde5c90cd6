from __future__ import annotations

import time
from typing import Callable

SleepFn = Callable[[float], None]


def split_delay_ms(delay_ms: int) -> tuple[int, int]:
    """Split a millisecond delay into whole seconds and a millisecond remainder."""
    ms = int(delay_ms)
    if ms < 0:
        raise ValueError("delay_ms must be >= 0")
    seconds, remainder = divmod(ms, 1000)
    return seconds, remainder


def sleep_ms(delay_ms: int, sleep_fn: SleepFn | None = None) -> float:
    """
    Sleep for delay_ms milliseconds in a single call and return the seconds slept.

    A zero delay returns immediately without calling sleep_fn.
    """
    seconds, remainder = split_delay_ms(delay_ms)
    total = seconds + remainder / 1000.0
    if total <= 0:
        return 0.0

    sleeper = sleep_fn or time.sleep
    sleeper(total)
    return total
