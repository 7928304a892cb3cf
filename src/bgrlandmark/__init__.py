"""
BGRLANDMARK - 2x2 color grid landmark detection.

This package provides functionality for:
- Landmark template construction
- Dual-template correlation matching
- Candidate verification and corner color decoding
- Calibration grid validation and snapshot persistence
"""

from .patterns import (
    DEFAULT_CATALOG,
    BGRColor,
    GridColorPattern,
    Hue,
    PatternCatalog,
    decode_code,
    encode_code,
)
from .templates import LandmarkTemplate, build_template, create_template_image, render_landmark
from .matching import CorrelationMatcher
from .verification import CandidateVerifier, LandmarkCandidate, LandmarkInfo
from .classification import ColorClassifier
from .preprocess import PreprocessConfig, preprocess_gray
from .detector import (
    DetectionResult,
    LandmarkDetector,
    LandmarkDetectorConfig,
    VerificationStrategy,
)
from .calibration import CalibrationCollector, CalibrationGridValidator, CalibrationRecord

__version__ = "0.1.0"

__all__ = [
    # Patterns
    "DEFAULT_CATALOG",
    "BGRColor",
    "GridColorPattern",
    "Hue",
    "PatternCatalog",
    "decode_code",
    "encode_code",
    # Templates
    "LandmarkTemplate",
    "build_template",
    "create_template_image",
    "render_landmark",
    # Pipeline stages
    "CorrelationMatcher",
    "CandidateVerifier",
    "LandmarkCandidate",
    "LandmarkInfo",
    "ColorClassifier",
    "PreprocessConfig",
    "preprocess_gray",
    # Detector
    "DetectionResult",
    "LandmarkDetector",
    "LandmarkDetectorConfig",
    "VerificationStrategy",
    # Calibration
    "CalibrationCollector",
    "CalibrationGridValidator",
    "CalibrationRecord",
]
