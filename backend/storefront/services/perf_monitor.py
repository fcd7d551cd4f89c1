"""Performance and outcome counters for the crop and pricing engines."""
import time
import logging
import threading
import functools
from typing import Any, Callable, Dict

logger = logging.getLogger("storefront.perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures execution time of a synchronous function and
    records it on the module tracker under the function's qualified name.

    Usage::

        @timed
        def price_design(...):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            tracker.record_duration(func.__qualname__, duration_ms)
            logger.debug(
                "function timed",
                extra={"function": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


class PerformanceTracker:
    """
    Thread-safe in-memory tracker.

    Tracks:
    - Named event counters (geometry fallbacks, verification outcomes,
      parity checks)
    - Call count and average duration per timed function
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._durations: Dict[str, list] = {}   # qualname -> [duration_ms, ...]

    # ------------------------------------------------------------------
    # Public write API
    # ------------------------------------------------------------------

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] = self._counters.get(counter, 0) + amount

    def record_duration(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self._durations.setdefault(name, []).append(duration_ms)

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """
        Return a snapshot of all collected metrics.

        Returns
        -------
        dict with keys:
            counters           : dict  {counter_name: count}
            calls              : dict  {function: call_count}
            avg_durations_ms   : dict  {function: avg_ms}
        """
        with self._lock:
            avgs: Dict[str, float] = {}
            calls: Dict[str, int] = {}
            for name, durations in self._durations.items():
                calls[name] = len(durations)
                avgs[name] = round(sum(durations) / len(durations), 3) if durations else 0.0
            return {
                "counters": dict(self._counters),
                "calls": calls,
                "avg_durations_ms": avgs,
            }

    def reset(self) -> None:
        """Reset all counters (useful in tests)."""
        with self._lock:
            self._counters.clear()
            self._durations.clear()


# Process-wide metrics sink; holds counters only, never pricing or crop state.
tracker = PerformanceTracker()
