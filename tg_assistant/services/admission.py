"""Bounded concurrency for orchestration runs.

Excess requests are rejected immediately with :class:`Busy` rather than
queued.  The counter only moves through ``acquire()`` and
``AdmissionSlot.release()``.
"""

from __future__ import annotations

import logging
import threading

from tg_assistant.errors import Busy

logger = logging.getLogger(__name__)


class AdmissionSlot:
    """Release handle for one admitted run.  Releasing twice is a no-op."""

    def __init__(self, controller: AdmissionController):
        self._controller = controller
        self._released = False

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._controller._release()

    def __enter__(self) -> AdmissionSlot:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


class AdmissionController:
    def __init__(self, max_in_flight: int = 2):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self._max = max_in_flight
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def max_in_flight(self) -> int:
        return self._max

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def acquire(self) -> AdmissionSlot:
        """Take a slot or raise :class:`Busy` without waiting."""
        with self._lock:
            if self._in_flight >= self._max:
                logger.warning("Admission rejected: %d/%d runs in flight", self._in_flight, self._max)
                raise Busy(f"{self._in_flight} runs already in flight")
            self._in_flight += 1
        return AdmissionSlot(self)

    def _release(self) -> None:
        with self._lock:
            self._in_flight = max(0, self._in_flight - 1)
