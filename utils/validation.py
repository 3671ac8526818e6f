"""
Frame validation utilities for the composition recommender.

Provides the input checks the reference detectors run on every camera frame
before analysis.
"""

import cv2
import numpy as np
from typing import Tuple, List, Optional, Dict
import logging

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when a frame cannot be analyzed"""

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.errors = errors or []


class FrameValidator:
    """Validator for camera frames handed to the detectors."""

    def __init__(self,
                 min_size: Tuple[int, int] = (32, 32),
                 max_size: Tuple[int, int] = (8192, 8192)):
        """
        Initialize the frame validator.

        Args:
            min_size: Minimum allowed frame dimensions (width, height)
            max_size: Maximum allowed frame dimensions (width, height)
        """
        self.min_size = min_size
        self.max_size = max_size

    def check_frame(self, frame) -> Dict[str, bool]:
        """
        Check frame content and properties.

        Args:
            frame: Candidate frame

        Returns:
            Dictionary with validation results
        """
        results = {
            'is_array': False,
            'valid_shape': False,
            'valid_dtype': False,
            'size_in_range': False,
            'valid': False
        }

        if not isinstance(frame, np.ndarray) or frame.size == 0:
            return results
        results['is_array'] = True

        if frame.ndim not in [2, 3]:
            return results
        if frame.ndim == 3 and frame.shape[2] not in [1, 3, 4]:
            return results
        results['valid_shape'] = True

        if frame.dtype not in [np.uint8, np.float32, np.float64]:
            return results
        results['valid_dtype'] = True

        h, w = frame.shape[:2]
        if w < self.min_size[0] or h < self.min_size[1]:
            return results
        if w > self.max_size[0] or h > self.max_size[1]:
            return results
        results['size_in_range'] = True

        results['valid'] = True
        return results

    def validate(self, frame) -> np.ndarray:
        """
        Validate a frame, raising on failure.

        Returns:
            The frame, unchanged

        Raises:
            ValidationError: If any check fails
        """
        results = self.check_frame(frame)

        if not results['valid']:
            failed = [name for name, ok in results.items() if name != 'valid' and not ok]
            shape = getattr(frame, 'shape', None)
            raise ValidationError(f"Invalid frame (shape={shape}): failed {failed[0]}", failed)

        return frame


_default_validator = FrameValidator()


def to_grayscale(frame: np.ndarray, validator: Optional[FrameValidator] = None) -> np.ndarray:
    """
    Validate a BGR or grayscale frame and return it as 8-bit grayscale.

    Args:
        frame: Input frame (H, W), (H, W, 1), (H, W, 3) BGR or (H, W, 4) BGRA
        validator: Validator to use (module default if None)

    Returns:
        uint8 grayscale image
    """
    frame = (validator or _default_validator).validate(frame)

    if frame.dtype != np.uint8:
        # Float frames are expected in [0, 1]
        frame = (np.clip(frame, 0.0, 1.0) * 255).astype(np.uint8)

    if frame.ndim == 2:
        return frame

    channels = frame.shape[2]
    if channels == 1:
        return frame[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2GRAY)

    return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
