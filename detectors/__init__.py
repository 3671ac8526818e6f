"""
Detector Module

Adapters that present the five scene detectors to the analysis engine through
one interface, plus OpenCV reference implementations of the detectors.
"""

from .adapters import (
    DetectorAdapter,
    DetectorFailure,
    SaliencyAdapter,
    HorizonAdapter,
    FeaturePrintAdapter,
    FaceAdapter,
    ObjectAdapter,
    create_default_adapters
)
from .feature_detectors import (
    SaliencyDetector,
    HorizonDetector,
    FeaturePrintDetector,
    FaceDetector,
    ObjectDetector,
    create_reference_backends
)

__all__ = [
    'DetectorAdapter',
    'DetectorFailure',
    'SaliencyAdapter',
    'HorizonAdapter',
    'FeaturePrintAdapter',
    'FaceAdapter',
    'ObjectAdapter',
    'create_default_adapters',
    'SaliencyDetector',
    'HorizonDetector',
    'FeaturePrintDetector',
    'FaceDetector',
    'ObjectDetector',
    'create_reference_backends'
]
