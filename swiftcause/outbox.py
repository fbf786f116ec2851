"""Fire-and-forget side effects with their own retry policy.

Work that must never fail the caller (Gift Aid declarations, receipt
bookkeeping) is submitted here instead of being awaited inline. Each task
runs in a background worker inside an application context, is retried a
bounded number of times, and a final failure is logged at ERROR level and
dropped.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Optional

from flask import Flask

from swiftcause.extensions import db, run_bg

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 0.5

    def delay(self, attempt: int) -> float:
        return max(0.0, float(self.backoff_seconds) * attempt)


class Outbox:
    def __init__(self, app: Optional[Flask] = None) -> None:
        self._app: Optional[Flask] = None
        self.policy = RetryPolicy()
        self.eager = False
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._app = app
        self.policy = RetryPolicy(
            max_attempts=max(1, int(app.config.get("OUTBOX_MAX_ATTEMPTS", 3))),
            backoff_seconds=float(app.config.get("OUTBOX_BACKOFF_SECONDS", 0.5)),
        )
        self.eager = bool(app.config.get("OUTBOX_EAGER", False))
        app.extensions["swiftcause.outbox"] = self

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule ``fn(*args, **kwargs)``. The returned future resolves to
        True on success and False after a permanent failure; it never raises."""
        if self._app is None:
            raise RuntimeError("Outbox used before init_app()")

        if self.eager:
            fut: Future = Future()
            fut.set_result(self._run(name, fn, args, kwargs))
            return fut
        return run_bg(self._run, name, fn, args, kwargs)

    def _run(self, name: str, fn: Callable[..., Any], args: tuple, kwargs: dict) -> bool:
        if self._app is None:
            raise RuntimeError("Outbox used before init_app()")
        attempt = 0
        while True:
            attempt += 1
            with self._app.app_context():
                try:
                    fn(*args, **kwargs)
                    return True
                except Exception as exc:
                    db.session.rollback()
                    if attempt >= self.policy.max_attempts:
                        log.error(
                            "outbox: %s permanently failed after %s attempt(s): %s",
                            name,
                            attempt,
                            exc,
                            exc_info=True,
                        )
                        return False
                    log.warning("outbox: %s failed (attempt %s/%s): %s", name, attempt, self.policy.max_attempts, exc)
            time.sleep(self.policy.delay(attempt))


outbox = Outbox()
