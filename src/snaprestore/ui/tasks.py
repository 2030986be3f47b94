"""Run a blocking call on a worker thread and poll it from the event loop."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

log = logging.getLogger(__name__)


class BackgroundTask:
    """A daemon thread with a non-blocking "finished" flag.

    The target receives ``report`` as its ``progress_callback`` keyword when
    ``with_progress`` is set; the last reported value is readable from the
    main thread as ``progress``.
    """

    def __init__(
        self,
        target: Callable[..., Any],
        *args: Any,
        name: str = "background-task",
        with_progress: bool = False,
    ) -> None:
        self._target = target
        self._args = args
        self._with_progress = with_progress
        self._done = threading.Event()
        self._result: Any = None
        self._error: BaseException | None = None
        self.progress = 0.0
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> BackgroundTask:
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            if self._with_progress:
                self._result = self._target(*self._args, progress_callback=self.report)
            else:
                self._result = self._target(*self._args)
        except Exception as e:
            log.debug("Task %s failed: %s", self._thread.name, e)
            self._error = e
        finally:
            self._done.set()

    def report(self, progress: float) -> None:
        self.progress = max(0.0, min(1.0, progress))

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def error(self) -> BaseException | None:
        return self._error

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def result(self) -> Any:
        """Return the target's result, re-raising its exception.

        Must only be called once ``done`` is true.
        """
        if not self.done:
            raise RuntimeError("task has not finished")
        if self._error is not None:
            raise self._error
        return self._result
