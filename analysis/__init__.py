"""
Composition Recommendation Module

This module contains the real-time composition recommender: hypothesis
generation from scene detectors, the rolling recommendation window, frame
admission control and the orchestrating analysis engine.
"""

from .composition_types import (
    CompositionType,
    CompositionHypothesis,
    ConfidenceLevel,
    DetectorKind,
    NormalizedPoint,
    NormalizedRect,
    SaliencyRegion,
    Horizon,
    FeaturePrint,
    Face,
    DetectedObject,
    RecommendationSnapshot
)
from .hypothesis_generators import (
    rule_of_thirds_score,
    saliency_hypotheses,
    horizon_hypotheses,
    feature_print_hypotheses,
    face_hypotheses,
    object_hypotheses,
    generate_hypotheses
)
from .recommendation_window import RecommendationWindow
from .frame_admission import FrameAdmissionController
from .engine_config import EngineConfig
from .composition_engine import CompositionAnalysisEngine

__all__ = [
    'CompositionType',
    'CompositionHypothesis',
    'ConfidenceLevel',
    'DetectorKind',
    'NormalizedPoint',
    'NormalizedRect',
    'SaliencyRegion',
    'Horizon',
    'FeaturePrint',
    'Face',
    'DetectedObject',
    'RecommendationSnapshot',
    'rule_of_thirds_score',
    'saliency_hypotheses',
    'horizon_hypotheses',
    'feature_print_hypotheses',
    'face_hypotheses',
    'object_hypotheses',
    'generate_hypotheses',
    'RecommendationWindow',
    'FrameAdmissionController',
    'EngineConfig',
    'CompositionAnalysisEngine'
]

__version__ = "1.0.0"
__author__ = "Willy Zuo"
