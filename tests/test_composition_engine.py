"""
Tests for the composition analysis engine orchestration.

Detector backends are replaced with stubs so every test controls exactly
which observations each detector reports, and when.
"""

import logging
import os
import sys
import threading
import time
import pytest
from pydantic import ValidationError

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analysis import CompositionAnalysisEngine, EngineConfig
from analysis.composition_types import CompositionType, DetectorKind, RecommendationSnapshot
from detectors.adapters import (
    SaliencyAdapter,
    HorizonAdapter,
    FeaturePrintAdapter,
    FaceAdapter,
    ObjectAdapter
)

FRAME = object()


class CountingBackend:
    """Backend stub that records calls and returns a fixed result."""

    def __init__(self, result=None, error=None, gate=None):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls = 0

    def __call__(self, frame):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


def make_adapters(saliency=None, horizon=None, feature_print=None, face=None, objects=None):
    """Five adapters over stub backends that report nothing by default."""
    return [
        SaliencyAdapter(saliency or CountingBackend([])),
        HorizonAdapter(horizon or CountingBackend(None)),
        FeaturePrintAdapter(feature_print or CountingBackend({'keypoints': 0})),
        FaceAdapter(face or CountingBackend([])),
        ObjectAdapter(objects or CountingBackend([]))
    ]


def saliency_region(cx, cy, w, h):
    return {'bbox': (cx - w / 2, cy - h / 2, w, h), 'score': 1.0}


@pytest.fixture
def engines():
    created = []

    def factory(adapters=None, **config):
        engine = CompositionAnalysisEngine(adapters if adapters is not None else make_adapters(),
                                           config=config)
        created.append(engine)
        return engine

    yield factory

    for engine in created:
        engine.shutdown(wait=False)


class TestEngineConfig:
    """Tests for engine configuration handling."""

    def test_defaults(self):
        config = EngineConfig.load()

        assert config.analysis_interval == 0.5
        assert config.window_capacity == 20
        assert config.max_workers == 5
        assert config.enabled

    def test_dict_config(self):
        config = EngineConfig.load({'analysis_interval': 1.0, 'frame_deadline': None})

        assert config.analysis_interval == 1.0
        assert config.frame_deadline is None

    @pytest.mark.parametrize("overrides", [
        {'analysis_interval': -1.0},
        {'window_capacity': 0},
        {'max_workers': 0},
        {'frame_deadline': 0.0}
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            EngineConfig(**overrides)


class TestFusion:
    """End-to-end fusion of detector batches into the recommendation."""

    def test_salient_subject_on_thirds(self, engines):
        saliency = CountingBackend([saliency_region(0.333, 0.333, 0.5, 0.5)])
        engine = engines(make_adapters(saliency=saliency))

        assert engine.submit_frame(FRAME, 0.0)
        assert engine.wait_until_idle(timeout=5.0)

        committed = {h.composition: h for h in engine.window.snapshot()}
        assert committed[CompositionType.RULE_OF_THIRDS].confidence >= 0.5
        assert committed[CompositionType.FRAMING].confidence == 0.7
        assert committed[CompositionType.LEADING_LINES].confidence == 0.5

        assert engine.current_recommendation() == CompositionType.RULE_OF_THIRDS
        assert engine.current_confidence() == 1.0

    def test_framing_wins_when_running_max(self, engines):
        saliency = CountingBackend([saliency_region(0.5, 1 / 3, 0.4, 0.4)])
        engine = engines(make_adapters(saliency=saliency))

        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)

        assert engine.current_recommendation() == CompositionType.FRAMING
        assert engine.current_confidence() == 0.7

    def test_batches_from_all_detectors_are_committed(self, engines):
        engine = engines(make_adapters(
            horizon=CountingBackend({'angle': 0.3}),
            face=CountingBackend([(0.6, 0.25, 0.1, 0.1)]),
            objects=CountingBackend([{'bbox': (0.1, 0.1, 0.1, 0.1)}, {'bbox': (0.5, 0.5, 0.1, 0.1)}])
        ))

        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)

        committed = [h.composition for h in engine.window.snapshot()]
        assert sorted(committed, key=lambda c: c.value) == sorted([
            CompositionType.DIAGONAL,
            CompositionType.LEADING_LINES,
            CompositionType.RULE_OF_THIRDS,
            CompositionType.GOLDEN_SPIRAL,
            CompositionType.L_SHAPE
        ], key=lambda c: c.value)

        # Face at (0.65, 0.3) sits on an intersection
        assert engine.current_recommendation() == CompositionType.RULE_OF_THIRDS

    def test_batch_order_is_preserved(self, engines):
        face = FaceAdapter(CountingBackend([(0.25, 0.25, 0.2, 0.2)]))
        engine = engines([face])

        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)

        assert [h.composition for h in engine.window.snapshot()] == [
            CompositionType.RULE_OF_THIRDS,
            CompositionType.GOLDEN_SPIRAL
        ]

    def test_window_bounded_across_frames(self, engines):
        objects = CountingBackend([{'bbox': (0.1 * i, 0.1, 0.05, 0.05)} for i in range(3)])
        engine = engines(make_adapters(objects=objects), window_capacity=4, analysis_interval=0.0)

        for t in range(5):
            assert engine.submit_frame(FRAME, float(t))
            assert engine.wait_until_idle(timeout=5.0)

        assert len(engine.window) == 4

    def test_analyze_frame_leaves_window_untouched(self, engines):
        engine = engines(make_adapters(horizon=CountingBackend({'angle': 0.0})))
        results = engine.analyze_frame(FRAME)

        assert set(results) == set(DetectorKind)
        assert [h.composition for h in results[DetectorKind.HORIZON]] == [CompositionType.RULE_OF_THIRDS]
        assert results[DetectorKind.FACE] == []
        assert len(engine.window) == 0


class TestAdmission:
    """Tests for frame throttling through the engine."""

    def test_frames_within_interval_are_dropped(self, engines):
        saliency = CountingBackend([saliency_region(0.333, 0.333, 0.5, 0.5)])
        engine = engines(make_adapters(saliency=saliency))

        assert engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)
        committed = engine.window.snapshot()

        assert not engine.submit_frame(FRAME, 0.1)
        assert saliency.calls == 1
        assert engine.window.snapshot() == committed

        assert engine.submit_frame(FRAME, 0.6)
        engine.wait_until_idle(timeout=5.0)
        assert saliency.calls == 2

    def test_frames_dropped_while_analyzing(self, engines):
        gate = threading.Event()
        horizon = CountingBackend({'angle': 0.0}, gate=gate)
        engine = engines(make_adapters(horizon=horizon), frame_deadline=None)

        try:
            assert engine.submit_frame(FRAME, 0.0)
            assert engine.is_analyzing()
            assert not engine.submit_frame(FRAME, 10.0)
        finally:
            gate.set()

        assert engine.wait_until_idle(timeout=5.0)
        assert not engine.is_analyzing()
        assert horizon.calls == 1
        assert engine.submit_frame(FRAME, 10.0)

    def test_no_adapters(self, engines):
        engine = engines([])

        assert engine.submit_frame(FRAME, 0.0)
        assert not engine.is_analyzing()

    def test_default_timestamp(self, engines):
        engine = engines()

        assert engine.submit_frame(FRAME)
        assert engine.wait_until_idle(timeout=5.0)


class TestFailures:
    """Tests for detector failure isolation and liveness."""

    def test_failing_detector_is_isolated(self, engines):
        engine = engines(make_adapters(
            saliency=CountingBackend(error=RuntimeError("saliency model crashed")),
            horizon=CountingBackend({'angle': 0.0})
        ))

        engine.submit_frame(FRAME, 0.0)

        assert engine.wait_until_idle(timeout=5.0)
        assert not engine.is_analyzing()
        assert engine.current_recommendation() == CompositionType.RULE_OF_THIRDS
        assert engine.current_confidence() == 0.8

    def test_malformed_result_counts_as_failure(self, engines):
        engine = engines(make_adapters(objects=CountingBackend([{'no_bbox': True}])))

        engine.submit_frame(FRAME, 0.0)

        assert engine.wait_until_idle(timeout=5.0)
        assert [h.composition for h in engine.window.snapshot()] == [CompositionType.LEADING_LINES]

    def test_deadline_reopens_admission(self, engines):
        gate = threading.Event()
        face = CountingBackend([(0.25, 0.25, 0.2, 0.2)], gate=gate)
        engine = engines(make_adapters(face=face), frame_deadline=0.05)

        try:
            assert engine.submit_frame(FRAME, 0.0)
            assert engine.wait_until_idle(timeout=5.0)
            assert not engine.is_analyzing()
            assert CompositionType.GOLDEN_SPIRAL not in [h.composition for h in engine.window.snapshot()]
        finally:
            gate.set()

        # Late results are still committed once the detector finishes
        engine.shutdown(wait=True)
        assert CompositionType.GOLDEN_SPIRAL in [h.composition for h in engine.window.snapshot()]

    def test_without_deadline_stuck_detector_blocks_admission(self, engines):
        gate = threading.Event()
        engine = engines(make_adapters(face=CountingBackend([], gate=gate)), frame_deadline=None)

        try:
            engine.submit_frame(FRAME, 0.0)
            assert not engine.wait_until_idle(timeout=0.1)
            assert not engine.submit_frame(FRAME, 5.0)
        finally:
            gate.set()

        assert engine.wait_until_idle(timeout=5.0)


class TestReadSurface:
    """Tests for reset, enable toggling and listeners."""

    def test_reset(self, engines):
        engine = engines(make_adapters(horizon=CountingBackend({'angle': 0.5})))
        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)
        assert engine.current_recommendation() == CompositionType.DIAGONAL

        engine.reset()

        assert engine.current_recommendation() == CompositionType.RULE_OF_THIRDS
        assert engine.current_confidence() == 0.0
        assert not engine.is_analyzing()
        assert len(engine.window) == 0

    def test_reset_clears_in_flight(self, engines):
        gate = threading.Event()
        engine = engines(make_adapters(face=CountingBackend([], gate=gate)), frame_deadline=None)

        try:
            engine.submit_frame(FRAME, 0.0)
            assert engine.is_analyzing()

            engine.reset()

            assert not engine.is_analyzing()
        finally:
            gate.set()

    def test_disable_drops_frames_and_resets(self, engines):
        engine = engines(make_adapters(horizon=CountingBackend({'angle': 0.0})))
        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)

        engine.set_enabled(False)

        assert not engine.enabled
        assert engine.current_confidence() == 0.0
        assert not engine.submit_frame(FRAME, 10.0)

        engine.set_enabled(True)
        assert engine.submit_frame(FRAME, 10.0)

    def test_disabled_by_config(self, engines):
        engine = engines(enabled=False)
        assert not engine.submit_frame(FRAME, 0.0)

    def test_listeners_receive_each_commit(self, engines):
        received = []
        engine = engines(make_adapters(horizon=CountingBackend({'angle': 0.05})))
        engine.add_listener(received.append)

        engine.submit_frame(FRAME, 0.0)
        engine.shutdown(wait=True)

        assert len(received) == 5
        assert all(isinstance(s, RecommendationSnapshot) for s in received)
        assert max(s.confidence for s in received) == 0.8

    def test_failing_listener_does_not_break_engine(self, engines):
        def broken(snapshot):
            raise ValueError("listener bug")

        received = []
        engine = engines()
        engine.add_listener(broken)
        engine.add_listener(received.append)

        engine.submit_frame(FRAME, 0.0)
        engine.shutdown(wait=True)

        assert len(received) == 5

    def test_remove_listener(self, engines):
        received = []
        engine = engines()
        engine.add_listener(received.append)
        engine.remove_listener(received.append)

        engine.submit_frame(FRAME, 0.0)
        engine.shutdown(wait=True)

        assert received == []

    def test_snapshot(self, engines):
        engine = engines(make_adapters(horizon=CountingBackend({'angle': 0.0})))
        engine.submit_frame(FRAME, 0.0)
        engine.wait_until_idle(timeout=5.0)

        snapshot = engine.snapshot()
        assert snapshot.composition == CompositionType.RULE_OF_THIRDS
        assert snapshot.is_actionable
        assert snapshot.confidence_level.name == 'HIGH'
        assert snapshot.to_dict()['display_name'] == "Rule of Thirds"

    def test_shutdown_stops_intake(self, engines):
        engine = engines()
        engine.shutdown()

        assert not engine.submit_frame(FRAME, 0.0)


class TestConcurrency:
    """Ordering of publications and teardown under concurrent detectors."""

    def test_last_publication_matches_window(self, engines):
        publishing = threading.Event()
        received = []

        class SlowFirstListener:
            def __call__(self, snapshot):
                if not publishing.is_set():
                    publishing.set()
                    time.sleep(0.3)
                received.append(snapshot)

        class FaceAfterFirstPublish:
            def __call__(self, frame):
                publishing.wait(timeout=5.0)
                return [(2 / 3 - 0.1, 1 / 3 - 0.1, 0.2, 0.2)]

        adapters = [
            HorizonAdapter(CountingBackend({'angle': 0.0})),
            FaceAdapter(FaceAfterFirstPublish())
        ]
        engine = engines(adapters)
        engine.add_listener(SlowFirstListener())

        assert engine.submit_frame(FRAME, 0.0)
        engine.shutdown(wait=True)

        assert [s.confidence for s in received] == [0.8, 1.0]
        assert received[-1].confidence == engine.current_confidence()
        assert not received[-1].is_analyzing

    def test_shutdown_during_submission(self, engines):
        errors = []
        engine = engines(analysis_interval=0.0)

        def produce():
            try:
                for i in range(500):
                    engine.submit_frame(FRAME, float(i))
            except Exception as e:
                errors.append(e)

        producer = threading.Thread(target=produce)
        producer.start()
        engine.shutdown(wait=True)
        producer.join()

        assert errors == []
        assert not engine.is_analyzing()
        assert not engine.submit_frame(FRAME, 1000.0)

    def test_commit_errors_are_logged(self, engines, monkeypatch, caplog):
        def broken_append(hypotheses):
            raise RuntimeError("window corrupted")

        engine = engines([HorizonAdapter(CountingBackend({'angle': 0.0}))])
        monkeypatch.setattr(engine.window, 'append', broken_append)

        with caplog.at_level(logging.ERROR, logger='analysis.composition_engine'):
            assert engine.submit_frame(FRAME, 0.0)
            engine.shutdown(wait=True)

        assert not engine.is_analyzing()
        assert any("window corrupted" in record.getMessage() for record in caplog.records)


if __name__ == '__main__':
    pytest.main([__file__])
