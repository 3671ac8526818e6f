#!/usr/bin/env python3
"""
Hypothesis Generators for Composition Recommendation

This module converts the observations of each scene detector into weighted
composition hypotheses. Every generator is a pure function of one frame's
observations for a single detector kind, so each can be evaluated in
isolation.

"""

import logging
from typing import Callable, Dict, List, Sequence

import numpy as np

from .composition_types import (
    CompositionHypothesis,
    CompositionType,
    DetectedObject,
    DetectorKind,
    Face,
    Horizon,
    NormalizedPoint,
    Observation,
    SaliencyRegion
)

logger = logging.getLogger(__name__)

THIRD_LINES = np.array([1.0 / 3.0, 2.0 / 3.0])
THIRDS_TOLERANCE = 0.1

# Saliency
SALIENCY_THIRDS_THRESHOLD = 0.5
FRAMING_MAX_EXTENT = 0.8
FRAMING_CONFIDENCE = 0.7

# Horizon angle bands (radians)
LEVEL_HORIZON_MAX_ANGLE = 0.1
TILTED_HORIZON_MIN_ANGLE = 0.2
LEVEL_HORIZON_CONFIDENCE = 0.8
TILTED_HORIZON_CONFIDENCE = 0.6

LEADING_LINES_CONFIDENCE = 0.5
GOLDEN_SPIRAL_CONFIDENCE = 0.7

SINGLE_OBJECT_CONFIDENCE = 0.6
L_SHAPE_CONFIDENCE = 0.5
S_CURVE_CONFIDENCE = 0.4

HypothesisGenerator = Callable[[Sequence[Observation]], List[CompositionHypothesis]]


def rule_of_thirds_score(point: NormalizedPoint) -> float:
    """
    Score how closely a point sits on the rule of thirds grid.

    Each axis contributes 0.5 for every third-line within tolerance of the
    point's coordinate; the total is clamped to 1.0, which is reached at the
    four grid intersections.

    Args:
        point: Normalized image coordinate

    Returns:
        Score in [0, 1]
    """

    x_hits = np.count_nonzero(np.abs(point.x - THIRD_LINES) < THIRDS_TOLERANCE)
    y_hits = np.count_nonzero(np.abs(point.y - THIRD_LINES) < THIRDS_TOLERANCE)

    score = 0.5 * (x_hits + y_hits)

    return float(min(score, 1.0))


def saliency_hypotheses(observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """Suggest rule of thirds and framing from salient regions."""

    hypotheses = []

    for region in observations:
        if not isinstance(region, SaliencyRegion):
            continue

        box = region.bounding_box
        center = box.center
        thirds_score = rule_of_thirds_score(center)

        if thirds_score > SALIENCY_THIRDS_THRESHOLD:
            hypotheses.append(CompositionHypothesis(
                composition=CompositionType.RULE_OF_THIRDS,
                confidence=thirds_score,
                features=("Salient object at optimal position",),
                focal_point=center
            ))

        # Framing opportunities
        if box.width < FRAMING_MAX_EXTENT and box.height < FRAMING_MAX_EXTENT:
            hypotheses.append(CompositionHypothesis(
                composition=CompositionType.FRAMING,
                confidence=FRAMING_CONFIDENCE,
                features=("Centrally positioned subject suitable for framing",),
                focal_point=center
            ))

    return hypotheses


def horizon_hypotheses(observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """
    Suggest a grid from the tilt of the first detected horizon.

    A level horizon favours rule of thirds and a clearly tilted one favours a
    diagonal composition. Angles between the two bands produce nothing.
    """

    horizon = next((obs for obs in observations if isinstance(obs, Horizon)), None)
    if horizon is None:
        return []

    angle = abs(horizon.angle_radians)
    hypotheses = []

    if angle < LEVEL_HORIZON_MAX_ANGLE:
        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.RULE_OF_THIRDS,
            confidence=LEVEL_HORIZON_CONFIDENCE,
            features=("Horizontal horizon line detected",)
        ))

    if angle > TILTED_HORIZON_MIN_ANGLE:
        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.DIAGONAL,
            confidence=TILTED_HORIZON_CONFIDENCE,
            features=("Tilted horizon suggests diagonal composition",)
        ))

    return hypotheses


def feature_print_hypotheses(observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """Constant leading-lines signal; the feature print itself is not inspected."""

    # TODO: derive line geometry from the feature print instead of a fixed vote
    return [CompositionHypothesis(
        composition=CompositionType.LEADING_LINES,
        confidence=LEADING_LINES_CONFIDENCE,
        features=("Linear features detected",)
    )]


def face_hypotheses(observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """Portrait suggestions: thirds placement per face, golden spiral for a lone subject."""

    faces = [obs for obs in observations if isinstance(obs, Face)]
    hypotheses = []

    for face in faces:
        center = face.bounding_box.center

        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.RULE_OF_THIRDS,
            confidence=rule_of_thirds_score(center),
            features=("Face detected - portrait composition",),
            focal_point=center
        ))

        if len(faces) == 1:
            hypotheses.append(CompositionHypothesis(
                composition=CompositionType.GOLDEN_SPIRAL,
                confidence=GOLDEN_SPIRAL_CONFIDENCE,
                features=("Single portrait subject",),
                focal_point=center
            ))

    return hypotheses


def object_hypotheses(observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """Suggest grids from how many objects are in the scene."""

    objects = [obs for obs in observations if isinstance(obs, DetectedObject)]
    hypotheses = []

    if len(objects) == 1:
        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.RULE_OF_THIRDS,
            confidence=SINGLE_OBJECT_CONFIDENCE,
            features=("Single object composition",),
            focal_point=objects[0].bounding_box.center
        ))

    if len(objects) >= 2:
        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.L_SHAPE,
            confidence=L_SHAPE_CONFIDENCE,
            features=("Multiple objects suggest L-shape composition",)
        ))

    if len(objects) >= 3:
        hypotheses.append(CompositionHypothesis(
            composition=CompositionType.S_CURVE,
            confidence=S_CURVE_CONFIDENCE,
            features=("Multiple objects suggest flowing arrangement",)
        ))

    return hypotheses


HYPOTHESIS_GENERATORS: Dict[DetectorKind, HypothesisGenerator] = {
    DetectorKind.SALIENCY: saliency_hypotheses,
    DetectorKind.HORIZON: horizon_hypotheses,
    DetectorKind.FEATURE_PRINT: feature_print_hypotheses,
    DetectorKind.FACE: face_hypotheses,
    DetectorKind.OBJECT: object_hypotheses
}


def generate_hypotheses(kind: DetectorKind,
                        observations: Sequence[Observation]) -> List[CompositionHypothesis]:
    """
    Run the generator registered for a detector kind.

    Args:
        kind: Detector that produced the observations
        observations: That detector's observations for one frame

    Returns:
        Hypotheses in generation order (possibly empty)
    """

    hypotheses = HYPOTHESIS_GENERATORS[kind](observations)
    logger.debug(f"{kind.value}: {len(observations)} observations -> {len(hypotheses)} hypotheses")

    return hypotheses
