"""
Command line entry point for landmark detection on image files.

Usage:
    bgrlandmark frame.png                       # Detect and list landmarks
    bgrlandmark frames/*.png -o out --heatmap   # Also write heat maps
    bgrlandmark frames/*.png --calibrate        # Collect 4x3 grid snapshots
    bgrlandmark frame.png --verbose             # Enable debug logging
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

import cv2

from .calibration import CalibrationCollector, CalibrationGridValidator
from .detector import LandmarkDetector, LandmarkDetectorConfig
from .patterns import code_label
from .preprocess import draw_landmarks, response_to_frame
from .utils import create_directory, get_config, get_timestamp, setup_logging, validate_config

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Detect 2x2 BGR grid landmarks and decode their codes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Codes:
  0-5   positive orientation (colored corners upper-right / lower-left)
  6-11  negative orientation (colored corners upper-left / lower-right)
        """,
    )

    parser.add_argument("images", nargs="+", help="Image files to process")
    parser.add_argument("--config", "-c", help="JSON configuration file")
    parser.add_argument("--output-dir", "-o", help="Directory for heat maps and annotated images")
    parser.add_argument("--heatmap", action="store_true", help="Write the correlation response map")
    parser.add_argument("--annotate", action="store_true", help="Write images with detections drawn")
    parser.add_argument(
        "--calibrate",
        nargs="?",
        const="",
        default=None,
        metavar="RECORD",
        help="Validate the 4x3 code grid per image and save accepted snapshots to RECORD (JSON)",
    )
    parser.add_argument(
        "--verbose", "-V",
        action="store_true",
        help="Enable verbose/debug logging",
    )

    return parser.parse_args(argv)


def _write_outputs(args, path, frame, result, detector) -> None:
    stem = os.path.splitext(os.path.basename(path))[0]
    if args.heatmap:
        heat = response_to_frame(result.response, frame.shape, detector.template_offset)
        cv2.imwrite(os.path.join(args.output_dir, f"{stem}_heat.png"), heat)
    if args.annotate:
        cv2.imwrite(os.path.join(args.output_dir, f"{stem}_landmarks.png"), draw_landmarks(frame, result.landmarks))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(level=log_level)

    config = get_config(args.config)
    if not validate_config(config):
        return 1

    detector = LandmarkDetector(LandmarkDetectorConfig.from_dict(config["landmark"]))

    collector = None
    if args.calibrate is not None:
        calib = config["calibration"]
        validator = CalibrationGridValidator(
            cols=calib["grid_cols"],
            rows=calib["grid_rows"],
            row_major=calib["row_major"],
        )
        collector = CalibrationCollector(detector, validator, grid_spacing=calib["grid_spacing"])

    if (args.heatmap or args.annotate) and not args.output_dir:
        args.output_dir = "."
    if args.output_dir and not create_directory(args.output_dir):
        return 1

    status = 0
    for path in args.images:
        frame = cv2.imread(path, cv2.IMREAD_COLOR)
        if frame is None:
            LOGGER.error("Could not read image: %s", path)
            status = 1
            continue

        result = detector.detect(frame)
        LOGGER.info("%s: %d landmark(s)", path, len(result.landmarks))
        for info in sorted(result.landmarks, key=lambda lm: (lm.code, lm.center)):
            label = code_label(info.code) if info.is_classified else "?"
            print(f"{path}\t{info.center[0]}\t{info.center[1]}\t{info.code}\t{label}\t{info.diff:.3f}")

        if args.output_dir:
            _write_outputs(args, path, frame, result, detector)

        if collector is not None:
            collector.add_result(result, frame.shape, path)

    if collector is not None:
        if collector.record is None:
            LOGGER.warning("No image contained a valid calibration grid")
        else:
            record_path = args.calibrate or f"calibration_{get_timestamp()}.json"
            collector.record.save(record_path)

    return status


if __name__ == "__main__":
    sys.exit(main())
