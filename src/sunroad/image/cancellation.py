"""Cancellation token threaded through every media pipeline stage."""

from __future__ import annotations

import threading
from typing import Optional

from sunroad.errors import PipelineCancelled


class CancellationToken:
    """Thread-safe abort signal.

    Stages run in worker threads, so the flag is backed by a
    ``threading.Event`` rather than asyncio primitives.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self, stage: str = "") -> None:
        """Raise ``PipelineCancelled`` if cancel() has been called."""
        if self._event.is_set():
            where = f" during {stage}" if stage else ""
            raise PipelineCancelled(f"Pipeline cancelled{where}: {self._reason}")


class _NeverCancelled(CancellationToken):
    def cancel(self, reason: str = "cancelled") -> None:
        raise RuntimeError("The shared no-op token cannot be cancelled")


NEVER_CANCELLED = _NeverCancelled()
