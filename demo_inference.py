#!/usr/bin/env python3
"""
Composition Recommendation Demo Script

This script demonstrates the real-time composition recommender by:
1. Streaming frames from a video file or camera into the analysis engine
2. Logging the running recommendation whenever it changes
3. Optionally analyzing still images one by one

Usage:
    python demo_inference.py --video path/to/clip.mp4
    python demo_inference.py --video 0
    python demo_inference.py --image path/to/images/ --batch
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2

# Add project root to path
sys.path.append(str(Path(__file__).parent))

from analysis import CompositionAnalysisEngine, RecommendationSnapshot

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RecommendationPrinter:
    """Listener that logs the recommendation when it changes."""

    def __init__(self):
        self.last = None

    def __call__(self, snapshot: RecommendationSnapshot):
        key = (snapshot.composition, round(snapshot.confidence, 2))
        if key == self.last:
            return
        self.last = key

        if snapshot.is_actionable:
            logger.info(f"Suggestion: {snapshot.composition.display_name} "
                        f"({snapshot.confidence:.0%}, {snapshot.confidence_level.name.lower()})")
        else:
            logger.info("Analyzing scene...")


def stream_video(engine: CompositionAnalysisEngine, source, max_frames=None):
    """Feed a video source through the engine at its native frame rate."""
    capture = cv2.VideoCapture(source)
    if not capture.isOpened():
        logger.error(f"Could not open video source: {source}")
        return

    fps = capture.get(cv2.CAP_PROP_FPS) or 30.0
    frame_period = 1.0 / fps
    submitted = admitted = 0

    try:
        while max_frames is None or submitted < max_frames:
            ok, frame = capture.read()
            if not ok:
                break

            submitted += 1
            if engine.submit_frame(frame, time.monotonic()):
                admitted += 1

            time.sleep(frame_period)
    finally:
        capture.release()

    engine.wait_until_idle(timeout=5.0)
    logger.info(f"Streamed {submitted} frames, {admitted} admitted for analysis")


def analyze_images(engine: CompositionAnalysisEngine, image_files):
    """Analyze still images independently of the recommendation window."""
    for image_file in image_files:
        frame = cv2.imread(str(image_file))
        if frame is None:
            logger.error(f"Could not read image: {image_file}")
            continue

        results = engine.analyze_frame(frame)
        hypotheses = [h for batch in results.values() for h in batch]
        best = max(hypotheses, key=lambda h: h.confidence, default=None)

        print(f"\n{'='*50}")
        print(f"Composition hypotheses for: {image_file.name}")
        print(f"{'='*50}")

        for kind, batch in results.items():
            for hypothesis in batch:
                print(f"{kind.value:>14}: {hypothesis.composition.display_name:<15} "
                      f"{hypothesis.confidence:.2f}  {', '.join(hypothesis.features)}")

        if best is not None:
            print(f"Best: {best.composition.display_name} ({best.confidence:.2f})")


def main():
    """Main entry point for the demo script."""
    parser = argparse.ArgumentParser(description='Composition Recommendation Demo')
    parser.add_argument('--video', type=str, default=None,
                       help='Video file path or camera index')
    parser.add_argument('--image', type=str, default=None,
                       help='Path to input image or directory of images')
    parser.add_argument('--batch', action='store_true',
                       help='Process all images in directory (if --image is a directory)')
    parser.add_argument('--interval', type=float, default=0.5,
                       help='Minimum seconds between analyzed frames')
    parser.add_argument('--deadline', type=float, default=2.0,
                       help='Seconds before a stuck analysis pass is abandoned')
    parser.add_argument('--max-frames', type=int, default=None,
                       help='Stop after this many video frames')

    args = parser.parse_args()

    if args.video is None and args.image is None:
        parser.error('one of --video or --image is required')

    engine = CompositionAnalysisEngine(config={
        'analysis_interval': args.interval,
        'frame_deadline': args.deadline
    })
    engine.add_listener(RecommendationPrinter())

    with engine:
        if args.video is not None:
            source = int(args.video) if args.video.isdigit() else args.video
            stream_video(engine, source, args.max_frames)

            snapshot = engine.snapshot()
            print(f"\nFinal recommendation: {snapshot.composition.display_name} "
                  f"(confidence {snapshot.confidence:.2f})")

        if args.image is not None:
            input_path = Path(args.image)

            if input_path.is_file():
                image_files = [input_path]
            elif input_path.is_dir() and args.batch:
                extensions = ('.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif')
                image_files = sorted(f for f in input_path.glob('*')
                                     if f.suffix.lower() in extensions)
                logger.info(f"Found {len(image_files)} images in {input_path}")
            else:
                logger.error(f"Invalid input path: {input_path}")
                return

            analyze_images(engine, image_files)

    logger.info("Demo completed!")


if __name__ == '__main__':
    main()
