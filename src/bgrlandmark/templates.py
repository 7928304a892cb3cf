"""
Template construction for 2x2 grid landmarks.

The BGR template is a small k x k rendering of a grid pattern whose seams
are blended like a blurred printed checkerboard corner. Matching is done on
the grayscale "positive" template and the "negative" template, which is the
positive one rotated 90 degrees clockwise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from .patterns import PATTERN_POSITIVE, BGRColor, GridColorPattern, bgr_value

LOGGER = logging.getLogger(__name__)

MIN_TEMPLATE_DIM = 7
MAX_TEMPLATE_DIM = 15
DEFAULT_TEMPLATE_DIM = 11


def clamp_template_dim(k: int) -> int:
    """Clamp a template dimension to the supported odd range."""
    xk = int(min(max(int(k), MIN_TEMPLATE_DIM), MAX_TEMPLATE_DIM))
    if xk % 2 == 0:
        xk += 1
    return xk


def fill_grid(img: np.ndarray, pattern: GridColorPattern) -> np.ndarray:
    """Paint a 2x2 grid pattern into a square odd-sized BGR image in place.

    The middle row and column are the seams. Each seam segment gets the
    average of its two neighboring quadrants and the center pixel gets the
    average of all four.
    """
    n = img.shape[0]
    h = n // 2
    c00, c01, c11, c10 = (np.array(bgr_value(c), dtype=np.int32) for c in pattern.colors())

    img[:h, :h] = c00
    img[:h, h + 1:] = c01
    img[h + 1:, h + 1:] = c11
    img[h + 1:, :h] = c10

    img[:h, h] = (c00 + c01) // 2
    img[h, h + 1:] = (c01 + c11) // 2
    img[h + 1:, h] = (c11 + c10) // 2
    img[h, :h] = (c10 + c00) // 2
    img[h, h] = (c00 + c01 + c11 + c10) // 4
    return img


def create_template_image(k: int, pattern: GridColorPattern) -> np.ndarray:
    """Render a k x k BGR template of a grid pattern (k clamped to [7, 15], odd)."""
    xk = clamp_template_dim(k)
    img = np.zeros((xk, xk, 3), dtype=np.uint8)
    return fill_grid(img, pattern)


@dataclass(frozen=True)
class LandmarkTemplate:
    """Immutable template set built once per detector."""

    bgr: np.ndarray
    gray_p: np.ndarray
    gray_n: np.ndarray
    dim: int

    @property
    def offset(self) -> int:
        """Half-width used to turn a top-left match location into a center."""
        return self.dim // 2

    def oriented(self, sign: float) -> np.ndarray:
        """Grayscale template for the given orientation sign."""
        return self.gray_p if sign >= 0 else self.gray_n


def build_template(pattern: GridColorPattern, k: int = DEFAULT_TEMPLATE_DIM) -> LandmarkTemplate:
    """Build the BGR, positive and negative templates for a pattern."""
    tmpl_bgr = create_template_image(k, pattern)
    gray_p = cv2.cvtColor(tmpl_bgr, cv2.COLOR_BGR2GRAY)
    gray_n = cv2.rotate(gray_p, cv2.ROTATE_90_CLOCKWISE)
    LOGGER.debug("Built %dx%d landmark template for %s", tmpl_bgr.shape[0], tmpl_bgr.shape[1], pattern)
    return LandmarkTemplate(bgr=tmpl_bgr, gray_p=gray_p, gray_n=gray_n, dim=tmpl_bgr.shape[0])


def orientation_sign(pattern: GridColorPattern) -> int:
    """Return 1 if the pattern has the BW+ diagonal layout, -1 for the rotated layout."""
    gray = build_template(pattern, MIN_TEMPLATE_DIM).gray_p
    reference = build_template(PATTERN_POSITIVE, MIN_TEMPLATE_DIM)
    score_p = cv2.matchTemplate(gray, reference.gray_p, cv2.TM_CCOEFF_NORMED)[0, 0]
    score_n = cv2.matchTemplate(gray, reference.gray_n, cv2.TM_CCOEFF_NORMED)[0, 0]
    return 1 if score_p >= score_n else -1


def render_landmark(
    size: int,
    pattern: GridColorPattern,
    border: int = 0,
    border_color: BGRColor = BGRColor.WHITE,
) -> np.ndarray:
    """Render a landmark image with an optional solid border.

    Args:
        size: Grid dimension in pixels, bumped to the next odd value
        pattern: Grid colors
        border: Border width in pixels on every side
        border_color: Border color

    Returns:
        BGR image of side size + 2 * border, grid center at its center pixel
    """
    xk = max(int(size), 3)
    if xk % 2 == 0:
        xk += 1
    xb = max(int(border), 0)

    img = np.zeros((xk + 2 * xb, xk + 2 * xb, 3), dtype=np.uint8)
    img[:, :] = bgr_value(border_color)
    fill_grid(img[xb:xb + xk, xb:xb + xk], pattern)
    return img
