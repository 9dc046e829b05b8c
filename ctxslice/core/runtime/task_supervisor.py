"""Run background tasks so that one failing task never affects the others."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Thread pool whose tasks log and contain their own exceptions.

    ``submit`` returns a future that resolves to the task's result, or to
    None if the task raised.
    """

    def __init__(self, max_workers: int = 4, name: str = "ctxslice-worker"):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._failures = 0

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failures

    def submit(
        self,
        fn: Callable[..., Any],
        *args: Any,
        on_error: Optional[Callable[[BaseException], None]] = None,
        **kwargs: Any,
    ) -> Future:
        def run() -> Any:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                with self._lock:
                    self._failures += 1
                logger.exception("Background task %s failed", getattr(fn, "__name__", fn))
                if on_error is not None:
                    try:
                        on_error(exc)
                    except Exception:
                        logger.exception("Error handler for %s failed", fn)
                return None

        return self._executor.submit(run)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "TaskSupervisor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()
