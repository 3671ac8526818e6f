"""
Utilities Module for the Composition Recommender

Provides frame validation helpers shared by the detectors.
"""

from .validation import FrameValidator, ValidationError, to_grayscale

__all__ = [
    'FrameValidator',
    'ValidationError',
    'to_grayscale'
]
