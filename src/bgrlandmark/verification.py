"""
Geometric verification of correlation maxima.

A genuine landmark region holds two near-black and two bright blocks, so the
pixel range in its region of interest is large and its minimum is dark. An
optional shape check compares the smoothed, equalized region against the
template of the candidate's orientation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .patterns import UNKNOWN_CODE
from .templates import LandmarkTemplate

LOGGER = logging.getLogger(__name__)


@dataclass
class LandmarkCandidate:
    """A correlation maximum that survived verification."""

    match_pt: Tuple[int, int]
    center: Tuple[int, int]
    diff: float
    rng: int
    minval: int
    residual: Optional[float] = None

    @property
    def sign(self) -> int:
        return 1 if self.diff >= 0 else -1


@dataclass
class LandmarkInfo:
    """Detected landmark: center point, scores and decoded code."""

    center: Tuple[int, int]
    diff: float
    rng: int
    minval: int
    code: int = UNKNOWN_CODE
    residual: Optional[float] = None

    @property
    def is_positive(self) -> bool:
        return self.diff >= 0

    @property
    def is_classified(self) -> bool:
        return self.code != UNKNOWN_CODE

    @classmethod
    def from_candidate(cls, candidate: LandmarkCandidate) -> LandmarkInfo:
        return cls(
            center=candidate.center,
            diff=candidate.diff,
            rng=candidate.rng,
            minval=candidate.minval,
            residual=candidate.residual,
        )


def roi_bounds(center: Tuple[int, int], half: int, shape: Tuple[int, ...]) -> Optional[Tuple[int, int, int, int]]:
    """Return (x0, y0, x1, y1) of a square region around center, or None if it leaves the frame."""
    x0 = center[0] - half
    y0 = center[1] - half
    x1 = center[0] + half + 1
    y1 = center[1] + half + 1
    if x0 < 0 or y0 < 0 or x1 > shape[1] or y1 > shape[0]:
        return None
    return x0, y0, x1, y1


class CandidateVerifier:
    """Applies the pixel range/darkness gate and the optional shape gate."""

    def __init__(
        self,
        template: LandmarkTemplate,
        pixel_range_threshold: int = 64,
        pixel_darkness_threshold: int = 128,
        shape_threshold: Optional[float] = None,
    ):
        self.template = template
        self.pixel_range_threshold = pixel_range_threshold
        self.pixel_darkness_threshold = pixel_darkness_threshold
        self.shape_threshold = shape_threshold

    def roi_stats(self, gray: np.ndarray, center: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        """Pixel (range, min) of the template-sized region at center, None if truncated."""
        bounds = roi_bounds(center, self.template.offset, gray.shape)
        if bounds is None:
            return None
        x0, y0, x1, y1 = bounds
        minval, maxval, _, _ = cv2.minMaxLoc(gray[y0:y1, x0:x1])
        return int(maxval - minval), int(minval)

    def passes_range(self, rng: int, minval: int) -> bool:
        return rng > self.pixel_range_threshold and minval < self.pixel_darkness_threshold

    def shape_residual(self, gray: np.ndarray, center: Tuple[int, int], sign: float) -> Optional[float]:
        """Normalized squared difference between the region and the oriented template."""
        bounds = roi_bounds(center, self.template.offset, gray.shape)
        if bounds is None:
            return None
        x0, y0, x1, y1 = bounds
        roi = cv2.medianBlur(np.ascontiguousarray(gray[y0:y1, x0:x1]), 3)
        roi = cv2.equalizeHist(roi)
        result = cv2.matchTemplate(roi, self.template.oriented(sign), cv2.TM_SQDIFF_NORMED)
        return float(result[0, 0])

    def verify(
        self,
        gray: np.ndarray,
        maxima: np.ndarray,
        diff: np.ndarray,
        use_shape: bool = True,
    ) -> List[LandmarkCandidate]:
        """Filter raw maxima down to verified candidates.

        Args:
            gray: Grayscale frame the maxima were found in
            maxima: (N, 2) array of (x, y) response-map locations
            diff: Signed positive-minus-negative correlation map
            use_shape: Apply the shape gate when a shape threshold is set

        Returns:
            Verified candidates, in no particular order
        """
        offset = self.template.offset
        accepted: List[LandmarkCandidate] = []

        for x, y in maxima:
            pt = (int(x), int(y))
            center = (pt[0] + offset, pt[1] + offset)

            stats = self.roi_stats(gray, center)
            if stats is None:
                LOGGER.debug("Rejected %s: region truncated by frame border", center)
                continue
            rng, minval = stats
            if not self.passes_range(rng, minval):
                LOGGER.debug("Rejected %s: range=%d min=%d", center, rng, minval)
                continue

            score = float(diff[pt[1], pt[0]])
            candidate = LandmarkCandidate(match_pt=pt, center=center, diff=score, rng=rng, minval=minval)

            if use_shape and self.shape_threshold is not None:
                residual = self.shape_residual(gray, center, score)
                if residual is None or residual > self.shape_threshold:
                    LOGGER.debug("Rejected %s: shape residual %s", center, residual)
                    continue
                candidate.residual = residual

            accepted.append(candidate)

        return accepted
