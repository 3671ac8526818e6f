#!/usr/bin/env python3
"""
Recommendation Window

Bounded history of recent composition hypotheses. The current recommendation
is always derived from the window contents at the time of the query.

"""

import threading
from collections import deque
from typing import Iterable, Tuple

from .composition_types import CompositionHypothesis, DEFAULT_HYPOTHESIS

DEFAULT_CAPACITY = 20


class RecommendationWindow:
    """
    FIFO store of the most recent hypotheses.

    All mutations and reads take the same lock, so an append and the
    recomputation that follows it are observed as one step.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Window capacity must be positive, got {capacity}")

        self.capacity = capacity
        self._entries = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, hypotheses: Iterable[CompositionHypothesis]) -> CompositionHypothesis:
        """
        Append a batch in order, evicting the oldest entries past capacity.

        Args:
            hypotheses: One detector's hypothesis batch

        Returns:
            The best hypothesis after the append
        """

        with self._lock:
            self._entries.extend(hypotheses)
            return self._best()

    def current_best(self) -> CompositionHypothesis:
        """Highest-confidence entry; the earliest one wins ties."""

        with self._lock:
            return self._best()

    def reset(self):
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> Tuple[CompositionHypothesis, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _best(self) -> CompositionHypothesis:
        best = None

        for hypothesis in self._entries:
            if best is None or hypothesis.confidence > best.confidence:
                best = hypothesis

        return best if best is not None else DEFAULT_HYPOTHESIS
