#!/usr/bin/env python3
"""
Composition Data Model

This module defines the value types shared by the real-time recommendation
pipeline: composition grid types, normalized geometry, detector observations
and the scored composition hypotheses derived from them.

"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


class CompositionType(Enum):
    """The seven composition grids the assistant can recommend."""
    RULE_OF_THIRDS = "rule_of_thirds"
    GOLDEN_SPIRAL = "golden_spiral"
    DIAGONAL = "diagonal"
    S_CURVE = "s_curve"
    L_SHAPE = "l_shape"
    LEADING_LINES = "leading_lines"
    FRAMING = "framing"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DISPLAY_NAMES = {
    CompositionType.RULE_OF_THIRDS: "Rule of Thirds",
    CompositionType.GOLDEN_SPIRAL: "Golden Spiral",
    CompositionType.DIAGONAL: "Diagonal",
    CompositionType.S_CURVE: "S Curve",
    CompositionType.L_SHAPE: "L Shape",
    CompositionType.LEADING_LINES: "Leading Lines",
    CompositionType.FRAMING: "Framing",
}

_DESCRIPTIONS = {
    CompositionType.RULE_OF_THIRDS: "Divide the frame into thirds horizontally and vertically",
    CompositionType.GOLDEN_SPIRAL: "Follows the golden ratio spiral for natural composition",
    CompositionType.DIAGONAL: "Uses diagonal lines to create dynamic composition",
    CompositionType.S_CURVE: "Creates flowing S-shaped curves for elegant composition",
    CompositionType.L_SHAPE: "Uses L-shaped elements for strong structural composition",
    CompositionType.LEADING_LINES: "Lines that guide the eye toward the subject",
    CompositionType.FRAMING: "Natural frames within the scene to focus attention",
}


class DetectorKind(Enum):
    """Scene-understanding signals fused by the engine."""
    SALIENCY = "saliency"
    HORIZON = "horizon"
    FEATURE_PRINT = "feature_print"
    FACE = "face"
    OBJECT = "object"


class ConfidenceLevel(Enum):
    """Coarse confidence bands used when presenting a recommendation."""
    VERY_LOW = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_confidence(cls, confidence: float) -> 'ConfidenceLevel':
        if confidence >= 0.8:
            return cls.HIGH
        if confidence >= 0.5:
            return cls.MEDIUM
        if confidence >= 0.3:
            return cls.LOW
        return cls.VERY_LOW


@dataclass(frozen=True)
class NormalizedPoint:
    """Image-relative point, (0, 0) top-left and (1, 1) bottom-right."""
    x: float
    y: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class NormalizedRect:
    """Image-relative bounding box with a top-left origin."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> NormalizedPoint:
        return NormalizedPoint(self.x + self.width / 2.0, self.y + self.height / 2.0)

    @classmethod
    def from_bbox(cls, bbox) -> 'NormalizedRect':
        """
        Build a rect from an (x, y, w, h) sequence, clamped to the unit square.

        Raises:
            ValueError: If the box does not have four numeric components
        """

        if bbox is None or len(bbox) != 4:
            raise ValueError(f"Expected (x, y, w, h) bounding box, got {bbox!r}")

        x, y, w, h = (float(v) for v in bbox)
        x = min(max(x, 0.0), 1.0)
        y = min(max(y, 0.0), 1.0)
        w = min(max(w, 0.0), 1.0 - x)
        h = min(max(h, 0.0), 1.0 - y)

        return cls(x, y, w, h)


# Observations

@dataclass(frozen=True)
class SaliencyRegion:
    bounding_box: NormalizedRect
    relative_score: float = 0.0
    kind: ClassVar[DetectorKind] = DetectorKind.SALIENCY


@dataclass(frozen=True)
class Horizon:
    angle_radians: float
    kind: ClassVar[DetectorKind] = DetectorKind.HORIZON


@dataclass(frozen=True)
class FeaturePrint:
    present: bool = True
    kind: ClassVar[DetectorKind] = DetectorKind.FEATURE_PRINT


@dataclass(frozen=True)
class Face:
    bounding_box: NormalizedRect
    kind: ClassVar[DetectorKind] = DetectorKind.FACE


@dataclass(frozen=True)
class DetectedObject:
    bounding_box: NormalizedRect
    label: Optional[str] = None
    confidence: float = 0.0
    kind: ClassVar[DetectorKind] = DetectorKind.OBJECT


Observation = Union[SaliencyRegion, Horizon, FeaturePrint, Face, DetectedObject]


@dataclass(frozen=True)
class CompositionHypothesis:
    """
    A single scored suggestion that a composition grid fits the scene.

    Produced by the hypothesis generators from one detector's observations.
    """

    composition: CompositionType
    confidence: float
    features: Tuple[str, ...] = field(default_factory=tuple)
    focal_point: Optional[NormalizedPoint] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert hypothesis to dictionary format."""
        return {
            'composition': self.composition.value,
            'confidence': self.confidence,
            'features': list(self.features),
            'focal_point': self.focal_point.to_tuple() if self.focal_point else None
        }


DEFAULT_HYPOTHESIS = CompositionHypothesis(CompositionType.RULE_OF_THIRDS, 0.0)


@dataclass(frozen=True)
class RecommendationSnapshot:
    """
    Point-in-time view of the engine's recommendation.

    Published to listeners after every window mutation.
    """

    composition: CompositionType
    confidence: float
    is_analyzing: bool
    focal_point: Optional[NormalizedPoint] = None
    features: Tuple[str, ...] = ()

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_confidence(self.confidence)

    @property
    def is_actionable(self) -> bool:
        """Whether confidence is high enough to offer the grid to the user."""
        return self.confidence > 0.3

    @classmethod
    def from_hypothesis(cls, hypothesis: CompositionHypothesis,
                        is_analyzing: bool) -> 'RecommendationSnapshot':
        return cls(
            composition=hypothesis.composition,
            confidence=hypothesis.confidence,
            is_analyzing=is_analyzing,
            focal_point=hypothesis.focal_point,
            features=hypothesis.features
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'composition': self.composition.value,
            'display_name': self.composition.display_name,
            'confidence': self.confidence,
            'confidence_level': self.confidence_level.name.lower(),
            'is_actionable': self.is_actionable,
            'is_analyzing': self.is_analyzing,
            'focal_point': self.focal_point.to_tuple() if self.focal_point else None,
            'features': list(self.features)
        }
