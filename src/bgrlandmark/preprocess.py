"""
Frame preprocessing and heat map helpers.

Builds the grayscale frame fed to the correlation matcher (channel selection,
histogram equalization, Gaussian pre-blur) and turns response maps and
detections into viewable BGR images.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)

ALL_CHANNELS = None
MAX_PRE_BLUR = 35


@dataclass
class PreprocessConfig:
    """Settings used to derive the grayscale frame from a BGR frame."""

    channel: Optional[int] = ALL_CHANNELS  # 0, 1, 2 select B, G, R; None converts to gray
    equalize: bool = False
    pre_blur: int = 0  # Gaussian kernel size, applied when >= 3

    def __post_init__(self):
        if self.channel is not None and self.channel not in (0, 1, 2):
            LOGGER.warning("Invalid channel %s, using all channels", self.channel)
            self.channel = ALL_CHANNELS
        blur = int(min(max(int(self.pre_blur), 0), MAX_PRE_BLUR))
        if blur >= 3 and blur % 2 == 0:
            blur += 1
        self.pre_blur = blur


def preprocess_gray(bgr: np.ndarray, config: Optional[PreprocessConfig] = None) -> np.ndarray:
    """Convert a BGR frame into the single-channel frame used for matching."""
    config = config or PreprocessConfig()

    if bgr.ndim == 2:
        gray = bgr.copy()
    elif config.channel is ALL_CHANNELS:
        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
    else:
        gray = np.ascontiguousarray(bgr[:, :, config.channel])

    if config.equalize:
        gray = cv2.equalizeHist(gray)

    if config.pre_blur >= 3:
        gray = cv2.GaussianBlur(gray, (config.pre_blur, config.pre_blur), 0, 0)

    return gray


def response_to_frame(response: np.ndarray, frame_shape: Tuple[int, ...], offset: int) -> np.ndarray:
    """Place a response map onto a blank frame-sized image, normalized to 8 bits.

    The response map is smaller than the frame by the template size, so it is
    shifted by the template offset to line up with landmark centers.
    """
    full = np.zeros(frame_shape[:2], dtype=np.float32)
    h, w = response.shape[:2]
    if h and w:
        full[offset:offset + h, offset:offset + w] = response
    heat = cv2.normalize(full, None, 0, 255, cv2.NORM_MINMAX)
    return cv2.cvtColor(heat.astype(np.uint8), cv2.COLOR_GRAY2BGR)


def draw_landmarks(
    bgr: np.ndarray,
    landmarks: Iterable,
    radius: int = 4,
    color: Tuple[int, int, int] = (0, 255, 0),
) -> np.ndarray:
    """Return a copy of the frame with landmark centers and codes drawn on it."""
    canvas = bgr.copy()
    for info in landmarks:
        cx, cy = info.center
        cv2.circle(canvas, (int(cx), int(cy)), radius, color, 1)
        cv2.putText(
            canvas,
            str(info.code),
            (int(cx) + radius + 2, int(cy) - radius - 2),
            cv2.FONT_HERSHEY_PLAIN,
            1.0,
            color,
            1,
        )
    return canvas
