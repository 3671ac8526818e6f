"""
Reference Scene Detectors for Composition Recommendation

This module implements OpenCV-based detectors for the five scene signals the
recommendation engine fuses: salient regions, horizon, feature print, faces
and objects. Each detector is a callable taking a BGR frame and returning the
raw result format its adapter expects, with coordinates normalized to the
frame size.
"""

import logging

import cv2
import numpy as np
import torch
from scipy import ndimage

from analysis.composition_types import DetectorKind
from utils.validation import to_grayscale

logger = logging.getLogger(__name__)


def _normalized_box(x, y, w, h, width, height):
    return (x / width, y / height, w / width, h / height)


class SaliencyDetector:
    """
    Salient region detector using gradient-magnitude saliency or a learned model.
    """

    def __init__(self, config=None, model=None, device='cuda' if torch.cuda.is_available() else 'cpu'):
        """
        Initialize the saliency detector.

        Args:
            config: Detector configuration (defaults if None)
            model: Pre-trained model returning a saliency map (optional)
            device: Device to run the model on
        """
        self.config = {**self._get_default_config(), **(config or {})}
        self.model = model
        self.device = device

        if self.model is not None:
            self.model.to(self.device)
            self.model.eval()

    def _get_default_config(self):
        return {
            'threshold': 0.5,     # fraction of the peak saliency
            'blur_sigma': 0.03,   # fraction of the shorter frame side
            'min_area': 0.005,    # fraction of the frame
            'max_regions': 3
        }

    def __call__(self, frame):
        return self.detect(frame)

    def detect(self, frame):
        """
        Detect salient regions in a frame.

        Args:
            frame: Input frame (BGR numpy array)

        Returns:
            list: Regions as {'bbox': (x, y, w, h), 'score': float}, best first
        """
        gray = to_grayscale(frame)
        saliency = self._compute_saliency(frame, gray)

        peak = float(saliency.max())
        if peak <= 0:
            return []

        saliency = saliency / peak
        mask = saliency >= self.config['threshold']

        labeled, num_regions = ndimage.label(mask)
        if num_regions == 0:
            return []

        h, w = gray.shape
        min_pixels = self.config['min_area'] * h * w
        regions = []

        for index, region_slice in enumerate(ndimage.find_objects(labeled), start=1):
            if region_slice is None:
                continue

            region_mask = labeled[region_slice] == index
            if region_mask.sum() < min_pixels:
                continue

            ys, xs = region_slice
            score = float(saliency[region_slice][region_mask].mean())

            regions.append({
                'bbox': _normalized_box(xs.start, ys.start, xs.stop - xs.start, ys.stop - ys.start, w, h),
                'score': score
            })

        regions.sort(key=lambda r: r['score'], reverse=True)
        return regions[:self.config['max_regions']]

    def _compute_saliency(self, frame, gray):
        """Saliency map with the same height and width as the frame."""
        if self.model is not None:
            image = frame if frame.ndim == 3 else np.stack([gray] * 3, axis=-1)
            tensor = torch.from_numpy(np.ascontiguousarray(image[:, :, :3])).permute(2, 0, 1).unsqueeze(0)
            tensor = tensor.float() / 255.0

            with torch.no_grad():
                saliency = self.model(tensor.to(self.device)).squeeze().cpu().numpy()

            if saliency.shape != gray.shape:
                saliency = cv2.resize(saliency, (gray.shape[1], gray.shape[0]))

            return np.clip(saliency.astype(np.float64), 0.0, None)

        # Fallback saliency computation using gradient magnitude
        grad_x = cv2.Sobel(gray, cv2.CV_64F, 1, 0, ksize=3)
        grad_y = cv2.Sobel(gray, cv2.CV_64F, 0, 1, ksize=3)
        gradient_magnitude = np.sqrt(grad_x**2 + grad_y**2)

        # Spread edge energy so object outlines form filled blobs
        sigma = max(1.0, self.config['blur_sigma'] * min(gray.shape))
        return cv2.GaussianBlur(gradient_magnitude, (0, 0), sigma)


class HorizonDetector:
    """
    Horizon detector using Canny edges and the probabilistic Hough transform.
    """

    def __init__(self, config=None):
        self.config = {**self._get_default_config(), **(config or {})}

    def _get_default_config(self):
        return {
            'canny_low': 50,
            'canny_high': 150,
            'hough_threshold': 50,
            'min_line_fraction': 0.3,   # of the frame width
            'max_line_gap': 10,
            'max_tilt': np.pi / 4
        }

    def __call__(self, frame):
        return self.detect(frame)

    def detect(self, frame):
        """
        Detect the dominant near-horizontal line.

        Returns:
            dict: {'angle': radians, 'length': normalized length} or None
        """
        gray = to_grayscale(frame)
        h, w = gray.shape

        edges = cv2.Canny(gray, self.config['canny_low'], self.config['canny_high'], apertureSize=3)
        lines = cv2.HoughLinesP(
            edges, 1, np.pi / 180, self.config['hough_threshold'],
            minLineLength=int(self.config['min_line_fraction'] * w),
            maxLineGap=self.config['max_line_gap']
        )

        if lines is None:
            return None

        best = None
        for line in lines:
            x1, y1, x2, y2 = line[0]
            angle = np.arctan2(y2 - y1, x2 - x1)

            # Fold direction so angles lie in (-pi/2, pi/2]
            if angle > np.pi / 2:
                angle -= np.pi
            elif angle <= -np.pi / 2:
                angle += np.pi

            if abs(angle) > self.config['max_tilt']:
                continue

            length = np.hypot(x2 - x1, y2 - y1)
            if best is None or length > best[1]:
                best = (angle, length)

        if best is None:
            return None

        return {'angle': float(best[0]), 'length': float(best[1] / w)}


class FeaturePrintDetector:
    """
    Image feature print from ORB keypoint descriptors.
    """

    def __init__(self, config=None):
        self.config = {**self._get_default_config(), **(config or {})}
        self.orb = cv2.ORB_create(nfeatures=self.config['max_features'])

    def _get_default_config(self):
        return {'max_features': 500}

    def __call__(self, frame):
        return self.detect(frame)

    def detect(self, frame):
        gray = to_grayscale(frame)
        keypoints, descriptors = self.orb.detectAndCompute(gray, None)

        return {
            'keypoints': len(keypoints),
            'descriptors': descriptors
        }


class FaceDetector:
    """
    Frontal face detector using OpenCV's Haar cascade.
    """

    def __init__(self, config=None):
        self.config = {**self._get_default_config(), **(config or {})}
        self.classifier = cv2.CascadeClassifier(self.config['cascade_path'])

        if self.classifier.empty():
            raise RuntimeError(f"Could not load face cascade from {self.config['cascade_path']}")

    def _get_default_config(self):
        return {
            'cascade_path': cv2.data.haarcascades + 'haarcascade_frontalface_default.xml',
            'scale_factor': 1.1,
            'min_neighbors': 5,
            'min_size': 0.05   # fraction of the shorter frame side
        }

    def __call__(self, frame):
        return self.detect(frame)

    def detect(self, frame):
        """
        Detect faces in a frame.

        Returns:
            list: Normalized (x, y, w, h) face boxes
        """
        gray = to_grayscale(frame)
        h, w = gray.shape
        min_side = max(1, int(self.config['min_size'] * min(h, w)))

        faces = self.classifier.detectMultiScale(
            gray,
            scaleFactor=self.config['scale_factor'],
            minNeighbors=self.config['min_neighbors'],
            minSize=(min_side, min_side)
        )

        return [_normalized_box(x, y, fw, fh, w, h) for (x, y, fw, fh) in faces]


class ObjectDetector:
    """
    Class-agnostic object detector from external edge contours.
    """

    def __init__(self, config=None):
        self.config = {**self._get_default_config(), **(config or {})}

    def _get_default_config(self):
        return {
            'canny_low': 50,
            'canny_high': 150,
            'min_area': 0.01,   # fraction of the frame
            'max_area': 0.9,
            'max_objects': 10
        }

    def __call__(self, frame):
        return self.detect(frame)

    def detect(self, frame):
        """
        Detect distinct objects in a frame.

        Returns:
            list: {'bbox': (x, y, w, h), 'label': 'object', 'confidence': float}, largest first
        """
        gray = to_grayscale(frame)
        h, w = gray.shape
        frame_area = float(h * w)

        edges = cv2.Canny(gray, self.config['canny_low'], self.config['canny_high'])
        edges = cv2.dilate(edges, np.ones((3, 3), np.uint8), iterations=1)

        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        objects = []
        for contour in contours:
            x, y, bw, bh = cv2.boundingRect(contour)
            area = bw * bh / frame_area

            if area < self.config['min_area'] or area > self.config['max_area']:
                continue

            # Solidity of the contour within its box
            fill = cv2.contourArea(contour) / float(bw * bh)

            objects.append({
                'bbox': _normalized_box(x, y, bw, bh, w, h),
                'label': 'object',
                'confidence': float(min(1.0, fill)),
                '_area': area
            })

        objects.sort(key=lambda o: o['_area'], reverse=True)
        for obj in objects:
            del obj['_area']

        return objects[:self.config['max_objects']]


def create_reference_backends(config=None):
    """
    Build the five reference detectors.

    Args:
        config: Optional dictionary of per-detector configs keyed by
            'saliency', 'horizon', 'feature_print', 'face', 'object'

    Returns:
        dict mapping DetectorKind to detector callable
    """
    config = config or {}

    return {
        DetectorKind.SALIENCY: SaliencyDetector(config.get('saliency')),
        DetectorKind.HORIZON: HorizonDetector(config.get('horizon')),
        DetectorKind.FEATURE_PRINT: FeaturePrintDetector(config.get('feature_print')),
        DetectorKind.FACE: FaceDetector(config.get('face')),
        DetectorKind.OBJECT: ObjectDetector(config.get('object'))
    }
