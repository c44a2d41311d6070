# utils/clock.py
import time


def now_ms() -> int:
    """Wall-clock time as epoch milliseconds (timer deadlines are stored this way)."""
    return int(time.time() * 1000)
