#!/usr/bin/env python3
"""
Composition Analysis Engine

This module provides the CompositionAnalysisEngine, which turns a live camera
stream into a running composition recommendation. Admitted frames are fanned
out to all detector adapters on a worker pool, and each detector's hypotheses
are folded into the recommendation window as soon as that detector finishes.

"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .composition_types import (
    CompositionHypothesis,
    CompositionType,
    DetectorKind,
    RecommendationSnapshot
)
from .engine_config import EngineConfig
from .frame_admission import FrameAdmissionController
from .hypothesis_generators import generate_hypotheses
from .recommendation_window import RecommendationWindow

logger = logging.getLogger(__name__)

RecommendationListener = Callable[[RecommendationSnapshot], None]


@dataclass
class _AnalysisPass:
    """Completion accounting for one admitted frame."""
    pass_id: int
    remaining: int
    started_at: float
    timer: Optional[threading.Timer] = None


class CompositionAnalysisEngine:
    """

    Real-time composition recommendation orchestrator.

    Owns the recommendation window and admission state. Frames are submitted
    from the capture thread; detector work runs on an internal thread pool,
    and results are committed per detector without waiting for the rest of
    the frame.

    """

    def __init__(self, adapters: Optional[Iterable[Any]] = None,
                 config: Optional[Union[EngineConfig, Dict[str, Any]]] = None,
                 detector_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the engine.

        Args:
            adapters: Detector adapters to fan frames out to (reference
                OpenCV detectors if None)
            config: Engine configuration (EngineConfig or dictionary)
            detector_config: Per-detector configuration for the reference detectors
        """

        self.config = EngineConfig.load(config)

        if adapters is None:
            from detectors.adapters import create_default_adapters
            adapters = create_default_adapters(detector_config)
        self.adapters = list(adapters)

        self.window = RecommendationWindow(self.config.window_capacity)
        self.admission = FrameAdmissionController(self.config.analysis_interval)

        self._executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                            thread_name_prefix="detector")
        self._state_changed = threading.Condition()
        self._commit_lock = threading.RLock()
        self._passes: Dict[int, _AnalysisPass] = {}
        self._listeners: List[RecommendationListener] = []
        self._enabled = self.config.enabled
        self._closed = False

        logger.info(f"CompositionAnalysisEngine initialized with {len(self.adapters)} detectors "
                    f"(interval={self.config.analysis_interval}s, window={self.config.window_capacity})")

    # Frame intake

    def submit_frame(self, frame: Any, now: Optional[float] = None) -> bool:
        """
        Offer a frame for analysis.

        Returns immediately. Frames arriving within the admission interval or
        while a previous frame is still being analyzed are dropped.

        Args:
            frame: Opaque frame handle passed through to the detectors
            now: Monotonic timestamp in seconds (time.monotonic() if None)

        Returns:
            True if the frame was admitted and dispatched
        """

        if not self._enabled:
            return False

        now = time.monotonic() if now is None else now

        # Holding the condition keeps shutdown() from closing the pool mid-dispatch
        with self._state_changed:
            if self._closed:
                return False

            pass_id = self.admission.admit(frame, now)
            if pass_id is None:
                return False

            analysis_pass = _AnalysisPass(pass_id=pass_id, remaining=len(self.adapters), started_at=now)
            self._passes[pass_id] = analysis_pass

            if self.config.frame_deadline is not None and self.adapters:
                analysis_pass.timer = threading.Timer(self.config.frame_deadline,
                                                      self._expire_pass, args=(pass_id,))
                analysis_pass.timer.daemon = True
                analysis_pass.timer.start()

            for adapter in self.adapters:
                future = self._executor.submit(self._run_detector, adapter, frame, pass_id)
                future.add_done_callback(self._log_task_error)

        if not self.adapters:
            self._finish_pass(pass_id)
            return True

        logger.debug(f"Dispatched pass {pass_id} to {len(self.adapters)} detectors")
        return True

    def analyze_frame(self, frame: Any) -> Dict[DetectorKind, List[CompositionHypothesis]]:
        """
        Run every detector on one frame synchronously, without touching the window.

        Failed detectors contribute an empty list.
        """

        return {adapter.kind: self._evaluate(adapter, frame, pass_id=None)
                for adapter in self.adapters}

    # Detector work

    def _evaluate(self, adapter, frame, pass_id) -> List[CompositionHypothesis]:
        try:
            observations = adapter.analyze(frame)
            return generate_hypotheses(adapter.kind, observations)

        except Exception as e:
            logger.warning(f"Detector {adapter.kind.value} failed for pass {pass_id}: {str(e)}")
            return []

    def _run_detector(self, adapter, frame, pass_id: int):
        hypotheses = self._evaluate(adapter, frame, pass_id)

        # Commit, completion and publication happen as one step per detector
        with self._commit_lock:
            try:
                best = self.window.append(hypotheses)
                logger.debug(f"Pass {pass_id}: committed {len(hypotheses)} {adapter.kind.value} hypotheses, "
                             f"best={best.composition.value} ({best.confidence:.2f})")
            finally:
                self._complete_detector(pass_id)

            self._publish()

    def _log_task_error(self, future):
        if future.cancelled():
            return

        error = future.exception()
        if error is not None:
            logger.error(f"Detector task failed outside the detector: {error!r}")

    def _complete_detector(self, pass_id: int):
        with self._state_changed:
            analysis_pass = self._passes.get(pass_id)
            if analysis_pass is None:
                # Pass was abandoned by its deadline or a reset
                return

            analysis_pass.remaining -= 1
            if analysis_pass.remaining > 0:
                return

        self._finish_pass(pass_id)

    def _finish_pass(self, pass_id: int):
        with self._state_changed:
            analysis_pass = self._passes.pop(pass_id, None)
            if analysis_pass is not None and analysis_pass.timer is not None:
                analysis_pass.timer.cancel()

            if self.admission.release(pass_id):
                logger.debug(f"Pass {pass_id} complete, admission re-opened")

            self._state_changed.notify_all()

    def _expire_pass(self, pass_id: int):
        with self._state_changed:
            analysis_pass = self._passes.pop(pass_id, None)
            if analysis_pass is None:
                return

            released = self.admission.release(pass_id)
            self._state_changed.notify_all()

        if released:
            logger.warning(f"Pass {pass_id} exceeded {self.config.frame_deadline}s with "
                           f"{analysis_pass.remaining} detector(s) pending, re-opening admission")
            self._publish()

    # Read surface

    def current_best(self) -> CompositionHypothesis:
        return self.window.current_best()

    def current_recommendation(self) -> CompositionType:
        return self.window.current_best().composition

    def current_confidence(self) -> float:
        return self.window.current_best().confidence

    def is_analyzing(self) -> bool:
        return self.admission.is_in_flight

    def snapshot(self) -> RecommendationSnapshot:
        return RecommendationSnapshot.from_hypothesis(self.window.current_best(), self.is_analyzing())

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no analysis pass is in flight.

        Returns:
            False if the timeout elapsed first
        """

        with self._state_changed:
            return self._state_changed.wait_for(lambda: not self.admission.is_in_flight, timeout)

    # Subscribers

    def add_listener(self, callback: RecommendationListener):
        with self._state_changed:
            self._listeners.append(callback)

    def remove_listener(self, callback: RecommendationListener):
        with self._state_changed:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _publish(self):
        """Send the current state to listeners, one publication at a time."""

        with self._commit_lock:
            snapshot = self.snapshot()

            with self._state_changed:
                listeners = list(self._listeners)

            for callback in listeners:
                try:
                    callback(snapshot)
                except Exception as e:
                    logger.warning(f"Recommendation listener {callback!r} failed: {str(e)}")

    # Lifecycle

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool):
        """Turn analysis on or off; turning it off also resets the recommendation."""

        self._enabled = enabled
        logger.info(f"Composition analysis {'enabled' if enabled else 'disabled'}")

        if not enabled:
            self.reset()

    def reset(self):
        """
        Clear the recommendation history and re-open admission.

        Detectors still running for an earlier frame are not cancelled, and
        their results are committed when they finish.
        """

        with self._state_changed:
            for analysis_pass in self._passes.values():
                if analysis_pass.timer is not None:
                    analysis_pass.timer.cancel()
            self._passes.clear()

            self.window.reset()
            self.admission.force_release()
            self._state_changed.notify_all()

        logger.debug("Recommendation state reset")
        self._publish()

    def shutdown(self, wait: bool = True):
        """Stop accepting frames and release the worker pool."""

        with self._state_changed:
            if self._closed:
                return
            self._closed = True

            for analysis_pass in self._passes.values():
                if analysis_pass.timer is not None:
                    analysis_pass.timer.cancel()

        self._executor.shutdown(wait=wait)
        logger.info("CompositionAnalysisEngine shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()
