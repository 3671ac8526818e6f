#!/usr/bin/env python3
"""
Frame Admission Control

Throttles the incoming camera stream so that at most one analysis pass runs
at a time, and no more often than once per admission interval.

"""

import logging
import threading
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_INTERVAL = 0.5  # seconds


class FrameAdmissionController:
    """
    Gate deciding whether an incoming frame starts a new analysis pass.

    Timestamps are monotonic seconds. Each admission opens a numbered pass;
    only the completion of the current pass re-opens admission.
    """

    def __init__(self, interval: float = DEFAULT_ANALYSIS_INTERVAL):
        self.interval = interval
        self._lock = threading.Lock()
        self._last_admitted = float('-inf')
        self._in_flight = False
        self._pass_id = 0

    def try_admit(self, frame: Any, now: float) -> bool:
        """
        Admit a frame if the interval has elapsed and no pass is running.

        Args:
            frame: Opaque frame handle (not inspected)
            now: Monotonic timestamp of the frame in seconds

        Returns:
            True if the frame was admitted
        """

        return self.admit(frame, now) is not None

    def admit(self, frame: Any, now: float) -> Optional[int]:
        """Same as try_admit, returning the new pass id or None if rejected."""

        with self._lock:
            if now - self._last_admitted < self.interval:
                return None

            if self._in_flight:
                return None

            self._last_admitted = now
            self._in_flight = True
            self._pass_id += 1

            logger.debug(f"Admitted frame for pass {self._pass_id} at t={now:.3f}")
            return self._pass_id

    @property
    def current_pass_id(self) -> int:
        with self._lock:
            return self._pass_id

    @property
    def is_in_flight(self) -> bool:
        with self._lock:
            return self._in_flight

    @property
    def last_admitted_timestamp(self) -> float:
        with self._lock:
            return self._last_admitted

    def release(self, pass_id: int) -> bool:
        """
        Close the given pass if it is still the one in flight.

        Returns:
            True if admission was re-opened by this call
        """

        with self._lock:
            if not self._in_flight or pass_id != self._pass_id:
                return False

            self._in_flight = False
            return True

    def force_release(self):
        """Re-open admission regardless of which pass is running."""

        with self._lock:
            self._in_flight = False

    def reset(self):
        """Return to the initial state: nothing admitted, nothing in flight."""

        with self._lock:
            self._last_admitted = float('-inf')
            self._in_flight = False
