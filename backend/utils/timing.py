import time
import inspect
import functools
import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC wall clock; every recovery timestamp is written and compared with it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def timeit(label: str = None, slow_ms: float = 1000.0):
    """
    Decorator to log execution time for a function (sync or async).

    Calls slower than ``slow_ms`` are logged at WARNING, the rest at DEBUG.

    Usage:
        @timeit("verify_otp")
        async def verify_otp(...):
            ...
    """

    def _decorate(func):
        name = label or getattr(func, "__qualname__", getattr(func, "__name__", "function"))

        def _report(start: float) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            level = logging.WARNING if elapsed_ms >= slow_ms else logging.DEBUG
            logger.log(level, f"[timing] {name} took {elapsed_ms:.2f} ms")

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _report(start)

            return _aw

        @functools.wraps(func)
        def _w(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _report(start)

        return _w

    return _decorate
