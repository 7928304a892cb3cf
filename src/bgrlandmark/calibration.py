"""
Calibration grid validation and snapshot persistence.

A calibration target carries the 12 coded landmarks on a 4 x 3 grid. A frame
is only accepted as a calibration sample when all 12 codes are found and
their image positions are ordered consistently with the grid.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .detector import DetectionResult, LandmarkDetector
from .patterns import NUM_CODES
from .verification import LandmarkInfo

LOGGER = logging.getLogger(__name__)

GRID_COLS = 4
GRID_ROWS = 3


class CalibrationGridValidator:
    """Checks that a set of landmarks forms the expected code grid."""

    def __init__(self, cols: int = GRID_COLS, rows: int = GRID_ROWS, row_major: bool = True):
        self.cols = cols
        self.rows = rows
        self.row_major = row_major
        if self.count != NUM_CODES:
            LOGGER.warning("Grid %dx%d has %d cells but there are %d codes; no frame will validate",
                           cols, rows, self.count, NUM_CODES)

    @property
    def count(self) -> int:
        return self.cols * self.rows

    def grid_position(self, code: int) -> Tuple[int, int]:
        """(column, row) of a code on the grid."""
        if self.row_major:
            return code % self.cols, code // self.cols
        return code // self.rows, code % self.rows

    def _codes_complete(self, landmarks: Sequence[LandmarkInfo]) -> bool:
        codes = sorted(info.code for info in landmarks)
        return len(landmarks) == self.count and codes == list(range(self.count))

    def validate(self, landmarks: Sequence[LandmarkInfo]) -> bool:
        """Return True if the landmarks form a complete, correctly ordered grid."""
        if not self._codes_complete(landmarks):
            LOGGER.debug("Grid rejected: codes %s", sorted(info.code for info in landmarks))
            return False

        centers: Dict[Tuple[int, int], Tuple[int, int]] = {
            self.grid_position(info.code): info.center for info in landmarks
        }

        for row in range(self.rows):
            xs = [centers[(col, row)][0] for col in range(self.cols)]
            if any(b <= a for a, b in zip(xs, xs[1:])):
                LOGGER.debug("Grid rejected: row %d x order %s", row, xs)
                return False

        for col in range(self.cols):
            ys = [centers[(col, row)][1] for row in range(self.rows)]
            if any(b <= a for a, b in zip(ys, ys[1:])):
                LOGGER.debug("Grid rejected: column %d y order %s", col, ys)
                return False

        return True

    def image_points(self, landmarks: Sequence[LandmarkInfo]) -> np.ndarray:
        """Landmark centers ordered by code, shape (N, 2)."""
        ordered = sorted(landmarks, key=lambda info: info.code)
        return np.array([info.center for info in ordered], dtype=np.float32).reshape(-1, 2)

    def object_points(self, spacing: float) -> np.ndarray:
        """Planar grid reference points ordered by code, shape (N, 3)."""
        points = np.zeros((self.count, 3), dtype=np.float32)
        for code in range(self.count):
            col, row = self.grid_position(code)
            points[code] = (col * spacing, row * spacing, 0.0)
        return points


@dataclass
class CalibrationRecord:
    """Accepted calibration snapshots and the grid they were taken of."""

    image_size: Tuple[int, int]
    grid_size: Tuple[int, int] = (GRID_COLS, GRID_ROWS)
    grid_spacing: float = 1.0
    object_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    filenames: List[str] = field(default_factory=list)
    image_points: List[np.ndarray] = field(default_factory=list)

    @property
    def num_frames(self) -> int:
        return len(self.image_points)

    def add(self, filename: str, points: np.ndarray):
        self.filenames.append(filename)
        self.image_points.append(np.asarray(points, dtype=np.float32).reshape(-1, 2))

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dictionary."""
        return {
            "image_size": list(self.image_size),
            "grid_size": list(self.grid_size),
            "grid_spacing": self.grid_spacing,
            "object_points": np.asarray(self.object_points).tolist(),
            "filenames": list(self.filenames),
            "image_points": [pts.tolist() for pts in self.image_points],
        }

    def save(self, filepath: str):
        """Save record to a JSON file."""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        LOGGER.info("Calibration record with %d frames saved to %s", self.num_frames, filepath)

    @staticmethod
    def load(filepath: str) -> CalibrationRecord:
        """Load a record from a JSON file."""
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Calibration record not found: {filepath}")
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)

        return CalibrationRecord(
            image_size=tuple(data["image_size"]),
            grid_size=tuple(data.get("grid_size", (GRID_COLS, GRID_ROWS))),
            grid_spacing=float(data.get("grid_spacing", 1.0)),
            object_points=np.array(data.get("object_points", []), dtype=np.float32).reshape(-1, 3),
            filenames=list(data.get("filenames", [])),
            image_points=[np.array(p, dtype=np.float32).reshape(-1, 2) for p in data.get("image_points", [])],
        )


class CalibrationCollector:
    """Runs detection on frames and keeps those showing a valid grid."""

    def __init__(
        self,
        detector: LandmarkDetector,
        validator: Optional[CalibrationGridValidator] = None,
        grid_spacing: float = 1.0,
    ):
        if not detector.config.identify_colors:
            LOGGER.warning("Calibration needs coded landmarks but color identification is disabled")
        self.detector = detector
        self.validator = validator or CalibrationGridValidator()
        self.grid_spacing = grid_spacing
        self.record: Optional[CalibrationRecord] = None

    def reset(self):
        self.record = None

    def add_frame(self, bgr: np.ndarray, filename: str = "") -> bool:
        """Detect landmarks in a frame and record it if the grid is valid."""
        return self.add_result(self.detector.detect(bgr), bgr.shape, filename)

    def add_result(self, result: DetectionResult, frame_shape: Tuple[int, ...], filename: str = "") -> bool:
        """Record an existing detection result if its landmarks form a valid grid."""
        height, width = frame_shape[:2]
        if self.record is not None and tuple(self.record.image_size) != (width, height):
            LOGGER.warning("Skipping %s: size %dx%d differs from %dx%d",
                           filename, width, height, *self.record.image_size)
            return False

        landmarks = list(result.by_code().values())
        if not self.validator.validate(landmarks):
            LOGGER.info("Frame %s rejected: %d coded landmarks", filename or "<frame>", len(landmarks))
            return False

        if self.record is None:
            self.record = CalibrationRecord(
                image_size=(width, height),
                grid_size=(self.validator.cols, self.validator.rows),
                grid_spacing=self.grid_spacing,
                object_points=self.validator.object_points(self.grid_spacing),
            )
        self.record.add(filename, self.validator.image_points(landmarks))
        LOGGER.info("Frame %s accepted (%d total)", filename or "<frame>", self.record.num_frames)
        return True
