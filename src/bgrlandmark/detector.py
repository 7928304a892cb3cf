"""
Landmark detection pipeline.

One detector instance owns an immutable template built from its active
pattern and runs, per frame: correlation matching, local maxima extraction,
geometric verification and (optionally) corner color classification.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np

from .classification import ColorClassifier
from .matching import CorrelationMatcher
from .patterns import DEFAULT_CATALOG, UNKNOWN_CODE, PatternCatalog
from .preprocess import PreprocessConfig, preprocess_gray
from .templates import DEFAULT_TEMPLATE_DIM, build_template, clamp_template_dim, orientation_sign
from .verification import CandidateVerifier, LandmarkInfo, roi_bounds

LOGGER = logging.getLogger(__name__)

CONFIG_VERSION = 2

# Called once per accepted landmark with the landmark and its BGR region
LandmarkObserver = Callable[[LandmarkInfo, np.ndarray], None]


class VerificationStrategy(Enum):
    """Which verification and classification stages run."""
    RANGE_ONLY = "range"
    RANGE_SHAPE = "range_shape"
    RANGE_SHAPE_COLOR = "range_shape_color"

    @property
    def uses_shape(self) -> bool:
        return self is not VerificationStrategy.RANGE_ONLY

    @property
    def uses_color(self) -> bool:
        return self is VerificationStrategy.RANGE_SHAPE_COLOR


def _clamp(value, lo, hi):
    return min(max(value, lo), hi)


@dataclass
class LandmarkDetectorConfig:
    """Configuration for a landmark detector, fixed for its lifetime."""

    template_dim: int = DEFAULT_TEMPLATE_DIM
    corr_threshold: float = 1.0  # On |positive - negative|, range [0, 2]
    pixel_range_threshold: int = 64
    pixel_darkness_threshold: int = 128
    bgr_range_threshold: int = 64
    shape_threshold: Optional[float] = 0.4  # Max TM_SQDIFF_NORMED residual, None disables
    hue_epsilon: float = 0.25
    maxima_kernel: int = 3
    strategy: str = VerificationStrategy.RANGE_SHAPE_COLOR.value
    check_black_corners: bool = True
    keep_unclassified: bool = False  # Keep code -1 landmarks when colors are identified
    pattern: str = "BW+"
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    version: int = CONFIG_VERSION

    def __post_init__(self):
        original = asdict(self)

        self.template_dim = clamp_template_dim(self.template_dim)
        self.corr_threshold = float(_clamp(self.corr_threshold, 0.0, 2.0))
        self.pixel_range_threshold = int(_clamp(self.pixel_range_threshold, 0, 255))
        self.pixel_darkness_threshold = int(_clamp(self.pixel_darkness_threshold, 0, 255))
        self.bgr_range_threshold = int(_clamp(self.bgr_range_threshold, 0, 255))
        if self.shape_threshold is not None:
            self.shape_threshold = float(_clamp(self.shape_threshold, 0.0, 1.0))
        self.hue_epsilon = float(_clamp(self.hue_epsilon, 0.0, 1.0))
        self.maxima_kernel = int(_clamp(self.maxima_kernel, 3, 15)) | 1

        if isinstance(self.strategy, VerificationStrategy):
            self.strategy = self.strategy.value
        try:
            VerificationStrategy(self.strategy)
        except ValueError:
            LOGGER.warning("Unknown verification strategy %r, using %s",
                           self.strategy, VerificationStrategy.RANGE_SHAPE_COLOR.value)
            self.strategy = VerificationStrategy.RANGE_SHAPE_COLOR.value

        if isinstance(self.preprocess, dict):
            self.preprocess = PreprocessConfig(**self.preprocess)

        changed = {k: (original[k], v) for k, v in asdict(self).items() if original.get(k) != v}
        if changed:
            LOGGER.debug("Clamped detector configuration: %s", changed)

    @property
    def verification(self) -> VerificationStrategy:
        return VerificationStrategy(self.strategy)

    @property
    def identify_colors(self) -> bool:
        return self.verification.uses_color

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> LandmarkDetectorConfig:
        """Build a config from a dictionary, ignoring unknown keys."""
        data = dict(data or {})
        version = data.pop("version", CONFIG_VERSION)
        if version != CONFIG_VERSION:
            LOGGER.warning("Detector config version %s differs from %s", version, CONFIG_VERSION)
        known = set(cls.__dataclass_fields__) - {"version"}
        unknown = sorted(set(data) - known)
        if unknown:
            LOGGER.warning("Ignoring unknown detector config keys: %s", unknown)
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class DetectionResult:
    """Output of one detection call."""

    response: np.ndarray
    landmarks: List[LandmarkInfo] = field(default_factory=list)

    def by_code(self) -> Dict[int, LandmarkInfo]:
        """Classified landmarks keyed by code; with duplicates the strongest wins."""
        table: Dict[int, LandmarkInfo] = {}
        for info in self.landmarks:
            if info.code == UNKNOWN_CODE:
                continue
            best = table.get(info.code)
            if best is None or abs(info.diff) > abs(best.diff):
                table[info.code] = info
        return table


class LandmarkDetector:
    """
    Detects 2x2 BGR grid landmarks and decodes their codes.

    Usage:
        detector = LandmarkDetector(LandmarkDetectorConfig(template_dim=9))
        result = detector.perform_match(frame_bgr, frame_gray)
        for info in result.landmarks:
            print(info.center, info.code)
    """

    def __init__(
        self,
        config: Optional[LandmarkDetectorConfig] = None,
        catalog: PatternCatalog = DEFAULT_CATALOG,
        observer: Optional[LandmarkObserver] = None,
    ):
        if isinstance(config, dict):
            config = LandmarkDetectorConfig.from_dict(config)
        self.config = config or LandmarkDetectorConfig()
        self.catalog = catalog
        self.observer = observer
        self.pattern = catalog.get(self.config.pattern)

        # Scores and corner layout are defined for the BW+ diagonal layout
        matching_pattern = self.pattern
        if orientation_sign(self.pattern) < 0:
            matching_pattern = self.pattern.rotated_counterclockwise()
            LOGGER.debug("Pattern %s has the rotated layout, matching with %s",
                         self.config.pattern, matching_pattern)

        self.template = build_template(matching_pattern, self.config.template_dim)
        self.matcher = CorrelationMatcher(
            self.template,
            corr_threshold=self.config.corr_threshold,
            maxima_kernel=self.config.maxima_kernel,
        )
        self.verifier = CandidateVerifier(
            self.template,
            pixel_range_threshold=self.config.pixel_range_threshold,
            pixel_darkness_threshold=self.config.pixel_darkness_threshold,
            shape_threshold=self.config.shape_threshold,
        )
        self.classifier = ColorClassifier(
            self.template,
            bgr_range_threshold=self.config.bgr_range_threshold,
            hue_epsilon=self.config.hue_epsilon,
            check_black_corners=self.config.check_black_corners,
        )
        LOGGER.info(
            "Landmark detector initialized (k=%d, strategy=%s, pattern=%s)",
            self.template.dim, self.config.strategy, self.config.pattern,
        )

    @property
    def template_offset(self) -> int:
        return self.template.offset

    def perform_match(self, bgr: np.ndarray, gray: np.ndarray) -> DetectionResult:
        """Detect landmarks in one frame.

        Args:
            bgr: 3-channel BGR frame
            gray: Single-channel 8-bit frame of the same size, possibly
                blurred or equalized

        Returns:
            DetectionResult with the response map and an unordered list of
            landmarks
        """
        if gray.ndim != 2:
            raise ValueError("Grayscale frame must be single channel")
        if bgr.ndim != 3 or bgr.shape[:2] != gray.shape:
            raise ValueError(f"BGR frame {bgr.shape} does not match grayscale frame {gray.shape}")

        strategy = self.config.verification
        response, diff = self.matcher.match(gray)
        maxima = self.matcher.find_maxima(response)
        candidates = self.verifier.verify(gray, maxima, diff, use_shape=strategy.uses_shape)

        landmarks: List[LandmarkInfo] = []
        for candidate in candidates:
            info = LandmarkInfo.from_candidate(candidate)
            if strategy.uses_color:
                info.code = self.classifier.classify(candidate, bgr, gray)
                if info.code == UNKNOWN_CODE and not self.config.keep_unclassified:
                    continue
            landmarks.append(info)
            self._notify(info, bgr)

        LOGGER.debug("Frame: %d maxima, %d verified, %d landmarks",
                     len(maxima), len(candidates), len(landmarks))
        return DetectionResult(response=response, landmarks=landmarks)

    def detect(self, bgr: np.ndarray) -> DetectionResult:
        """Detect landmarks in a BGR frame using the configured preprocessing."""
        gray = preprocess_gray(bgr, self.config.preprocess)
        return self.perform_match(bgr, gray)

    def _notify(self, info: LandmarkInfo, bgr: np.ndarray):
        if self.observer is None:
            return
        bounds = roi_bounds(info.center, self.template.offset, bgr.shape)
        if bounds is None:
            return
        x0, y0, x1, y1 = bounds
        self.observer(info, bgr[y0:y1, x0:x1].copy())
