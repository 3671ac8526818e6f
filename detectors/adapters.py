#!/usr/bin/env python3
"""
Detector Adapters

Uniform interface between the engine and the five scene detectors. An
adapter wraps a detector backend (any callable taking a frame) and converts
its raw output into typed observations.

Raw formats expected from backends, all with normalized (x, y, w, h) boxes:
    saliency:       iterable of {'bbox': box, 'score': float}
    horizon:        {'angle': radians} or None
    feature print:  any value, only presence is reported
    face:           iterable of boxes
    object:         iterable of {'bbox': box, 'label': str, 'confidence': float}

"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Mapping

from analysis.composition_types import (
    DetectedObject,
    DetectorKind,
    Face,
    FeaturePrint,
    Horizon,
    NormalizedRect,
    Observation,
    SaliencyRegion
)
from .feature_detectors import create_reference_backends

logger = logging.getLogger(__name__)

DetectorBackend = Callable[[Any], Any]


class DetectorFailure(Exception):
    """A detector could not produce observations for a frame."""

    def __init__(self, kind: DetectorKind, message: str):
        super().__init__(f"{kind.value} detector failed: {message}")
        self.kind = kind


class DetectorAdapter(ABC):
    """
    Abstract base class for all detector adapters.

    Subclasses declare their detector kind and convert the backend's raw
    result into observations of that kind.
    """

    kind: DetectorKind

    def __init__(self, backend: DetectorBackend):
        """
        Args:
            backend: Callable running the detector on one frame
        """
        self.backend = backend

    def analyze(self, frame: Any) -> List[Observation]:
        """
        Run the backend on a frame and convert its result.

        Raises:
            DetectorFailure: If the raw result cannot be interpreted
        """

        raw = self.backend(frame)

        try:
            return self._convert(raw)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise DetectorFailure(self.kind, f"malformed result: {e}") from e

    @abstractmethod
    def _convert(self, raw: Any) -> List[Observation]:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(backend={self.backend!r})"


class SaliencyAdapter(DetectorAdapter):
    kind = DetectorKind.SALIENCY

    def _convert(self, raw):
        if raw is None:
            return []
        return [
            SaliencyRegion(NormalizedRect.from_bbox(region['bbox']),
                           float(region.get('score', 0.0)))
            for region in raw
        ]


class HorizonAdapter(DetectorAdapter):
    kind = DetectorKind.HORIZON

    def _convert(self, raw):
        if raw is None:
            return []
        if not isinstance(raw, Mapping):
            raise TypeError(f"expected a mapping, got {type(raw).__name__}")
        return [Horizon(float(raw['angle']))]


class FeaturePrintAdapter(DetectorAdapter):
    """The feature print itself is opaque; the detector always reports presence."""

    kind = DetectorKind.FEATURE_PRINT

    def _convert(self, raw):
        return [FeaturePrint(present=True)]


class FaceAdapter(DetectorAdapter):
    kind = DetectorKind.FACE

    def _convert(self, raw):
        if raw is None:
            return []
        return [Face(NormalizedRect.from_bbox(box)) for box in raw]


class ObjectAdapter(DetectorAdapter):
    kind = DetectorKind.OBJECT

    def _convert(self, raw):
        if raw is None:
            return []
        return [
            DetectedObject(
                NormalizedRect.from_bbox(obj['bbox']),
                label=obj.get('label'),
                confidence=float(obj.get('confidence', 0.0))
            )
            for obj in raw
        ]


ADAPTER_TYPES = {
    DetectorKind.SALIENCY: SaliencyAdapter,
    DetectorKind.HORIZON: HorizonAdapter,
    DetectorKind.FEATURE_PRINT: FeaturePrintAdapter,
    DetectorKind.FACE: FaceAdapter,
    DetectorKind.OBJECT: ObjectAdapter
}


def create_default_adapters(config=None) -> List[DetectorAdapter]:
    """
    Build one adapter per detector kind over the OpenCV reference backends.

    Args:
        config: Optional per-detector configuration, keyed by detector kind value

    Returns:
        List of the five adapters in detector-kind order
    """

    backends = create_reference_backends(config)
    adapters = [ADAPTER_TYPES[kind](backends[kind]) for kind in DetectorKind]

    logger.info(f"Created {len(adapters)} detector adapters with reference backends")
    return adapters
