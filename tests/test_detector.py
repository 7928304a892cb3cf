"""
End-to-end tests for the landmark detector.
"""

import os
import sys
import unittest

import cv2
import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from bgrlandmark.detector import (  # type: ignore
    CONFIG_VERSION,
    DetectionResult,
    LandmarkDetector,
    LandmarkDetectorConfig,
    VerificationStrategy,
)
from bgrlandmark.patterns import PATTERN_POSITIVE, coded_pattern  # type: ignore
from bgrlandmark.preprocess import PreprocessConfig  # type: ignore
from bgrlandmark.templates import render_landmark  # type: ignore
from bgrlandmark.verification import LandmarkInfo  # type: ignore


def make_frame(pattern, center=(50, 50), size=31, border=6, shape=(101, 101)):
    frame = np.full((shape[0], shape[1], 3), 128, dtype=np.uint8)
    img = render_landmark(size, pattern, border=border)
    half = img.shape[0] // 2
    cx, cy = center
    frame[cy - half:cy + half + 1, cx - half:cx + half + 1] = img
    return frame


def near(landmarks, center, tol=1):
    return [
        info for info in landmarks
        if abs(info.center[0] - center[0]) <= tol and abs(info.center[1] - center[1]) <= tol
    ]


class TestDetectorRoundTrip(unittest.TestCase):
    """Rendered landmarks are found at their center with the right code."""

    def setUp(self):
        self.detector = LandmarkDetector()

    def test_every_code(self):
        for code in range(12):
            result = self.detector.detect(make_frame(coded_pattern(code)))
            found = near(result.landmarks, (50, 50))
            self.assertEqual(len(found), 1, f"code {code}")
            self.assertEqual(found[0].code, code)
            self.assertEqual({info.code for info in result.landmarks}, {code})

    def test_off_center_landmark(self):
        frame = make_frame(coded_pattern(4), center=(40, 61), shape=(120, 90))
        result = self.detector.detect(frame)
        found = near(result.landmarks, (40, 61))
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].code, 4)
        self.assertTrue(found[0].is_positive)

    def test_rotation_maps_to_negative_code(self):
        for code in range(6):
            frame = cv2.rotate(make_frame(coded_pattern(code)), cv2.ROTATE_90_CLOCKWISE)
            found = near(self.detector.detect(frame).landmarks, (50, 50))
            self.assertEqual(len(found), 1, f"code {code}")
            self.assertEqual(found[0].code, code + 6)
            self.assertLess(found[0].diff, 0)

    def test_black_white_landmark_needs_no_color(self):
        frame = make_frame(PATTERN_POSITIVE)
        self.assertEqual(near(self.detector.detect(frame).landmarks, (50, 50)), [])

        detector = LandmarkDetector(LandmarkDetectorConfig(strategy="range"))
        found = near(detector.detect(frame).landmarks, (50, 50))
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].code, -1)
        self.assertIsNone(found[0].residual)

    def test_keep_unclassified(self):
        frame = make_frame(PATTERN_POSITIVE)
        detector = LandmarkDetector(LandmarkDetectorConfig(keep_unclassified=True))
        found = near(detector.detect(frame).landmarks, (50, 50))
        self.assertEqual(len(found), 1)
        self.assertFalse(found[0].is_classified)
        self.assertIsNotNone(found[0].residual)

    def test_range_shape_strategy_leaves_codes_unset(self):
        detector = LandmarkDetector(LandmarkDetectorConfig(strategy=VerificationStrategy.RANGE_SHAPE))
        found = near(detector.detect(make_frame(coded_pattern(1))).landmarks, (50, 50))
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].code, -1)
        self.assertIsNotNone(found[0].residual)

    def test_pre_blur_keeps_detection(self):
        config = LandmarkDetectorConfig(preprocess=PreprocessConfig(pre_blur=3))
        detector = LandmarkDetector(config)
        found = near(detector.detect(make_frame(coded_pattern(2))).landmarks, (50, 50))
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].code, 2)

    def test_empty_frame(self):
        frame = np.full((80, 80, 3), 128, dtype=np.uint8)
        self.assertEqual(self.detector.detect(frame).landmarks, [])


class TestDetectorThresholds(unittest.TestCase):
    """Raising a gate threshold never adds detections."""

    def setUp(self):
        self.frame = make_frame(coded_pattern(0))
        self.gray = cv2.cvtColor(self.frame, cv2.COLOR_BGR2GRAY)

    def count(self, **kwargs):
        detector = LandmarkDetector(LandmarkDetectorConfig(**kwargs))
        return len(near(detector.perform_match(self.frame, self.gray).landmarks, (50, 50)))

    def test_pixel_range_threshold(self):
        # Yellow is the brightest block of a YM landmark, gray value 226
        self.assertEqual(self.count(pixel_range_threshold=225), 1)
        self.assertEqual(self.count(pixel_range_threshold=226), 0)

    def test_darkness_threshold(self):
        self.assertEqual(self.count(pixel_darkness_threshold=1), 1)
        self.assertEqual(self.count(pixel_darkness_threshold=0), 0)

    def test_correlation_threshold(self):
        self.assertEqual(self.count(corr_threshold=1.0), 1)
        self.assertEqual(self.count(corr_threshold=2.0), 0)

    def test_shape_threshold(self):
        self.assertEqual(self.count(shape_threshold=None), 1)
        self.assertEqual(self.count(shape_threshold=0.0), 0)

    def test_monotonic_in_range_threshold(self):
        counts = [self.count(pixel_range_threshold=t) for t in range(0, 256, 32)]
        self.assertEqual(counts, sorted(counts, reverse=True))


class TestDetectorInterface(unittest.TestCase):

    def test_shape_mismatch(self):
        detector = LandmarkDetector()
        bgr = np.zeros((40, 40, 3), dtype=np.uint8)
        with self.assertRaises(ValueError):
            detector.perform_match(bgr, np.zeros((40, 41), dtype=np.uint8))
        with self.assertRaises(ValueError):
            detector.perform_match(bgr, bgr)

    def test_observer_receives_region(self):
        seen = []
        detector = LandmarkDetector(observer=lambda info, roi: seen.append((info, roi)))
        result = detector.detect(make_frame(coded_pattern(5)))
        self.assertEqual(len(seen), len(result.landmarks))
        self.assertGreater(len(seen), 0)
        info, roi = seen[0]
        self.assertEqual(roi.shape, (11, 11, 3))
        self.assertEqual(info.code, 5)

    def test_dict_config_and_template_offset(self):
        detector = LandmarkDetector({"template_dim": 9})
        self.assertEqual(detector.template_offset, 4)
        self.assertEqual(detector.template.dim, 9)

    def test_rotated_layout_patterns_decode_all_codes(self):
        """Active patterns with the BW- diagonal decode the same codes as BW+."""
        for label in ("BW-", "YM-", "CY+"):
            detector = LandmarkDetector(LandmarkDetectorConfig(pattern=label))
            for code in range(12):
                found = near(detector.detect(make_frame(coded_pattern(code))).landmarks, (50, 50))
                self.assertEqual([info.code for info in found], [code], f"{label} code {code}")

    def test_rotated_layout_template_matches_positive(self):
        positive = LandmarkDetector(LandmarkDetectorConfig(pattern="BW+"))
        negative = LandmarkDetector(LandmarkDetectorConfig(pattern="BW-"))
        np.testing.assert_array_equal(negative.template.gray_p, positive.template.gray_p)

    def test_unknown_pattern(self):
        with self.assertRaises(KeyError):
            LandmarkDetector(LandmarkDetectorConfig(pattern="XX+"))

    def test_by_code_keeps_strongest(self):
        weak = LandmarkInfo(center=(1, 1), diff=1.2, rng=200, minval=0, code=3)
        strong = LandmarkInfo(center=(9, 9), diff=-1.8, rng=200, minval=0, code=3)
        other = LandmarkInfo(center=(5, 5), diff=1.5, rng=200, minval=0, code=7)
        unknown = LandmarkInfo(center=(2, 2), diff=1.9, rng=200, minval=0)
        result = DetectionResult(response=np.zeros((1, 1)), landmarks=[weak, strong, other, unknown])
        table = result.by_code()
        self.assertEqual(set(table), {3, 7})
        self.assertIs(table[3], strong)


class TestDetectorConfig(unittest.TestCase):
    """Configuration clamping and dictionary conversion."""

    def test_defaults(self):
        config = LandmarkDetectorConfig()
        self.assertEqual(config.template_dim, 11)
        self.assertEqual(config.verification, VerificationStrategy.RANGE_SHAPE_COLOR)
        self.assertTrue(config.identify_colors)
        self.assertEqual(config.version, CONFIG_VERSION)

    def test_clamping(self):
        config = LandmarkDetectorConfig(
            template_dim=4,
            corr_threshold=3.0,
            pixel_range_threshold=300,
            pixel_darkness_threshold=-5,
            shape_threshold=1.5,
            hue_epsilon=-0.1,
            maxima_kernel=4,
        )
        self.assertEqual(config.template_dim, 7)
        self.assertEqual(config.corr_threshold, 2.0)
        self.assertEqual(config.pixel_range_threshold, 255)
        self.assertEqual(config.pixel_darkness_threshold, 0)
        self.assertEqual(config.shape_threshold, 1.0)
        self.assertEqual(config.hue_epsilon, 0.0)
        self.assertEqual(config.maxima_kernel, 5)

    def test_unknown_strategy_falls_back(self):
        with self.assertLogs("bgrlandmark.detector", level="WARNING"):
            config = LandmarkDetectorConfig(strategy="everything")
        self.assertEqual(config.verification, VerificationStrategy.RANGE_SHAPE_COLOR)

    def test_strategy_flags(self):
        self.assertFalse(VerificationStrategy.RANGE_ONLY.uses_shape)
        self.assertTrue(VerificationStrategy.RANGE_SHAPE.uses_shape)
        self.assertFalse(VerificationStrategy.RANGE_SHAPE.uses_color)

    def test_dict_round_trip(self):
        config = LandmarkDetectorConfig(template_dim=13, preprocess=PreprocessConfig(channel=2, pre_blur=4))
        data = config.to_dict()
        self.assertEqual(data["preprocess"], {"channel": 2, "equalize": False, "pre_blur": 5})
        self.assertEqual(LandmarkDetectorConfig.from_dict(data), config)

    def test_from_dict_ignores_unknown_keys(self):
        with self.assertLogs("bgrlandmark.detector", level="WARNING") as logs:
            config = LandmarkDetectorConfig.from_dict({"corr_threshold": 1.2, "speed": "fast", "version": 1})
        self.assertEqual(config.corr_threshold, 1.2)
        self.assertEqual(len(logs.records), 2)

    def test_from_empty_dict(self):
        self.assertEqual(LandmarkDetectorConfig.from_dict(None), LandmarkDetectorConfig())


if __name__ == "__main__":
    unittest.main()
