"""
Corner color classification.

The two colored corners of a landmark lie on one diagonal and the two black
corners on the other. Which diagonal is colored follows from the orientation
sign. Each colored corner resolves to yellow, magenta or cyan by finding the
single BGR component that is (near) zero.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from .patterns import MIN_COMPONENT_TO_HUE, UNKNOWN_CODE, Hue, encode_code
from .templates import LandmarkTemplate
from .verification import LandmarkCandidate, roi_bounds

LOGGER = logging.getLogger(__name__)

# Unit corner directions (dx, dy)
UPPER_LEFT = (-1, -1)
UPPER_RIGHT = (1, -1)
LOWER_RIGHT = (1, 1)
LOWER_LEFT = (-1, 1)


def corner_layout(sign: float) -> Tuple[Tuple[Tuple[int, int], Tuple[int, int]], Tuple[Tuple[int, int], Tuple[int, int]]]:
    """Return ((corner A, corner B), (black corner, black corner)) for an orientation sign."""
    if sign >= 0:
        return (UPPER_RIGHT, LOWER_LEFT), (UPPER_LEFT, LOWER_RIGHT)
    return (LOWER_RIGHT, UPPER_LEFT), (UPPER_RIGHT, LOWER_LEFT)


class ColorClassifier:
    """Decodes the 0-11 landmark code from the colored corners of a candidate."""

    def __init__(
        self,
        template: LandmarkTemplate,
        bgr_range_threshold: int = 64,
        hue_epsilon: float = 0.25,
        check_black_corners: bool = True,
    ):
        self.template = template
        self.bgr_range_threshold = bgr_range_threshold
        self.hue_epsilon = hue_epsilon
        self.check_black_corners = check_black_corners

    @property
    def sample_offset(self) -> int:
        """Distance from the landmark center to the middle of each quadrant."""
        return (self.template.offset + 1) // 2

    def identify_hue(self, pixel: np.ndarray) -> Optional[Hue]:
        """Resolve a BGR pixel to a hue, or None if it is not separable or ambiguous."""
        values = np.asarray(pixel, dtype=np.float64).reshape(3)
        vmin = values.min()
        vmax = values.max()
        if vmax - vmin <= self.bgr_range_threshold:
            return None

        normalized = (values - vmin) / (vmax - vmin)
        if np.count_nonzero(normalized <= self.hue_epsilon) != 1:
            return None
        return MIN_COMPONENT_TO_HUE[int(np.argmin(normalized))]

    def sample_corners(self, bgr: np.ndarray, center: Tuple[int, int]) -> Optional[dict]:
        """Median-smoothed BGR samples at the four quadrant centers, keyed by corner direction."""
        half = self.template.offset
        bounds = roi_bounds(center, half, bgr.shape)
        if bounds is None:
            return None
        x0, y0, x1, y1 = bounds
        roi = cv2.medianBlur(np.ascontiguousarray(bgr[y0:y1, x0:x1]), 3)

        d = self.sample_offset
        return {
            corner: roi[half + corner[1] * d, half + corner[0] * d]
            for corner in (UPPER_LEFT, UPPER_RIGHT, LOWER_RIGHT, LOWER_LEFT)
        }

    def _black_corners_ok(self, gray: np.ndarray, candidate: LandmarkCandidate, corners) -> bool:
        d = self.sample_offset
        limit = candidate.minval + candidate.rng / 3.0
        cx, cy = candidate.center
        for dx, dy in corners:
            x = cx + dx * d
            y = cy + dy * d
            if not (0 <= x < gray.shape[1] and 0 <= y < gray.shape[0]):
                return False
            if gray[y, x] >= limit:
                return False
        return True

    def classify(self, candidate: LandmarkCandidate, bgr: np.ndarray, gray: Optional[np.ndarray] = None) -> int:
        """Assign a code to a verified candidate.

        Args:
            candidate: Verified candidate with ROI statistics
            bgr: Color frame
            gray: Grayscale frame used for verification, needed for the
                black corner check

        Returns:
            Code in 0-11, or -1 if the corners cannot be identified
        """
        samples = self.sample_corners(bgr, candidate.center)
        if samples is None:
            LOGGER.debug("Unclassified %s: corners outside frame", candidate.center)
            return UNKNOWN_CODE

        (corner_a, corner_b), black = corner_layout(candidate.diff)

        if self.check_black_corners and gray is not None:
            if not self._black_corners_ok(gray, candidate, black):
                LOGGER.debug("Unclassified %s: black corners too bright", candidate.center)
                return UNKNOWN_CODE

        hue_a = self.identify_hue(samples[corner_a])
        hue_b = self.identify_hue(samples[corner_b])
        code = encode_code(candidate.diff, hue_a, hue_b)
        if code == UNKNOWN_CODE:
            LOGGER.debug("Unclassified %s: hues %s/%s", candidate.center, hue_a, hue_b)
        return code
