"""
Dual-template correlation matching.

The frame is correlated against the positive and negative grayscale
templates. Their difference is large in magnitude only where a checkerboard
corner of either diagonal layout sits, and its sign tells the layouts apart.
"""

from __future__ import annotations

import logging
from typing import Tuple

import cv2
import numpy as np

from .templates import LandmarkTemplate

LOGGER = logging.getLogger(__name__)


class CorrelationMatcher:
    """Finds candidate landmark centers in a grayscale frame."""

    def __init__(self, template: LandmarkTemplate, corr_threshold: float = 1.0, maxima_kernel: int = 3):
        self.template = template
        self.corr_threshold = corr_threshold
        self.maxima_kernel = maxima_kernel
        self._kernel = np.ones((maxima_kernel, maxima_kernel), dtype=np.uint8)

    def match(self, gray: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Correlate the frame against both templates.

        Args:
            gray: Single-channel 8-bit frame

        Returns:
            (response, diff) where diff = positive - negative correlation and
            response = |diff|. Both are float32 maps of the valid correlation
            region; empty when the frame is smaller than the template.
        """
        k = self.template.dim
        if gray.shape[0] < k or gray.shape[1] < k:
            LOGGER.debug("Frame %s smaller than %dx%d template", gray.shape, k, k)
            empty = np.zeros((0, 0), dtype=np.float32)
            return empty, empty.copy()

        tmatch_p = cv2.matchTemplate(gray, self.template.gray_p, cv2.TM_CCOEFF_NORMED)
        tmatch_n = cv2.matchTemplate(gray, self.template.gray_n, cv2.TM_CCOEFF_NORMED)
        diff = tmatch_p - tmatch_n
        return np.abs(diff), diff

    def find_maxima(self, response: np.ndarray) -> np.ndarray:
        """Return (x, y) response-map coordinates of thresholded local maxima."""
        if response.size == 0:
            return np.zeros((0, 2), dtype=np.int32)

        dilated = cv2.dilate(response, self._kernel)
        mask = (response == dilated) & (response > self.corr_threshold)
        ys, xs = np.nonzero(mask)
        LOGGER.debug("Found %d correlation maxima above %.3f", len(xs), self.corr_threshold)
        return np.stack([xs, ys], axis=1).astype(np.int32)

    def to_center(self, pt: Tuple[int, int]) -> Tuple[int, int]:
        """Convert a response-map location to the landmark center in the frame."""
        offset = self.template.offset
        return int(pt[0]) + offset, int(pt[1]) + offset
