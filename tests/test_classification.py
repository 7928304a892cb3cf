"""
Tests for corner color classification.
"""

import os
import sys
import unittest

import cv2
import numpy as np

sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from bgrlandmark.classification import ColorClassifier, corner_layout  # type: ignore
from bgrlandmark.patterns import (  # type: ignore
    DEFAULT_CATALOG,
    PATTERN_POSITIVE,
    BGRColor,
    GridColorPattern,
    Hue,
    bgr_value,
    coded_pattern,
)
from bgrlandmark.templates import build_template, render_landmark  # type: ignore
from bgrlandmark.verification import LandmarkCandidate  # type: ignore


def make_frames(pattern, center=(50, 50), size=31, shape=(100, 100)):
    bgr = np.full((shape[0], shape[1], 3), 128, dtype=np.uint8)
    img = render_landmark(size, pattern, border=6)
    half = img.shape[0] // 2
    cx, cy = center
    bgr[cy - half:cy + half + 1, cx - half:cx + half + 1] = img
    return bgr, cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)


def candidate_at(gray, center, diff, half=5):
    roi = gray[center[1] - half:center[1] + half + 1, center[0] - half:center[0] + half + 1]
    return LandmarkCandidate(
        match_pt=(center[0] - half, center[1] - half),
        center=center,
        diff=diff,
        rng=int(roi.max()) - int(roi.min()),
        minval=int(roi.min()),
    )


class TestIdentifyHue(unittest.TestCase):
    """Hue resolution from single BGR samples."""

    def setUp(self):
        self.classifier = ColorClassifier(build_template(PATTERN_POSITIVE, 11))

    def test_pure_hues(self):
        self.assertEqual(self.classifier.identify_hue(bgr_value(BGRColor.YELLOW)), Hue.YELLOW)
        self.assertEqual(self.classifier.identify_hue(bgr_value(BGRColor.MAGENTA)), Hue.MAGENTA)
        self.assertEqual(self.classifier.identify_hue(bgr_value(BGRColor.CYAN)), Hue.CYAN)

    def test_dim_hues(self):
        self.assertEqual(self.classifier.identify_hue((20, 150, 140)), Hue.YELLOW)
        self.assertEqual(self.classifier.identify_hue((160, 30, 170)), Hue.MAGENTA)
        self.assertEqual(self.classifier.identify_hue((170, 160, 25)), Hue.CYAN)

    def test_insufficient_separation(self):
        self.assertIsNone(self.classifier.identify_hue((200, 200, 200)))
        self.assertIsNone(self.classifier.identify_hue((0, 0, 0)))
        self.assertIsNone(self.classifier.identify_hue((100, 140, 150)))

    def test_ambiguous_minimum(self):
        """Primary colors have two components at the minimum."""
        self.assertIsNone(self.classifier.identify_hue(bgr_value(BGRColor.RED)))
        self.assertIsNone(self.classifier.identify_hue(bgr_value(BGRColor.GREEN)))
        self.assertIsNone(self.classifier.identify_hue(bgr_value(BGRColor.BLUE)))


class TestCornerLayout(unittest.TestCase):

    def test_colored_corners_are_diagonal(self):
        for sign in (1.0, -1.0):
            (a, b), (k0, k1) = corner_layout(sign)
            self.assertEqual((a[0] + b[0], a[1] + b[1]), (0, 0))
            self.assertEqual((k0[0] + k1[0], k0[1] + k1[1]), (0, 0))
            self.assertEqual(len({a, b, k0, k1}), 4)


class TestColorClassifier(unittest.TestCase):
    """Code assignment for rendered landmarks."""

    def setUp(self):
        self.classifier = ColorClassifier(build_template(PATTERN_POSITIVE, 11))

    def test_all_codes(self):
        for code in range(12):
            bgr, gray = make_frames(coded_pattern(code))
            diff = 1.7 if code < 6 else -1.7
            candidate = candidate_at(gray, (50, 50), diff)
            self.assertEqual(self.classifier.classify(candidate, bgr, gray), code, f"code {code}")

    def test_same_hue_pair_is_invalid(self):
        pattern = GridColorPattern(BGRColor.BLACK, BGRColor.YELLOW, BGRColor.BLACK, BGRColor.YELLOW)
        bgr, gray = make_frames(pattern)
        candidate = candidate_at(gray, (50, 50), 1.7)
        self.assertEqual(self.classifier.classify(candidate, bgr, gray), -1)

    def test_wrong_sign_is_unclassified(self):
        bgr, gray = make_frames(DEFAULT_CATALOG.get("YC+"))
        candidate = candidate_at(gray, (50, 50), -1.7)
        self.assertEqual(self.classifier.classify(candidate, bgr, gray), -1)

        unchecked = ColorClassifier(build_template(PATTERN_POSITIVE, 11), check_black_corners=False)
        self.assertEqual(unchecked.classify(candidate, bgr, gray), -1)

    def test_black_white_landmark_is_unclassified(self):
        bgr, gray = make_frames(PATTERN_POSITIVE)
        candidate = candidate_at(gray, (50, 50), 1.9)
        self.assertEqual(self.classifier.classify(candidate, bgr, gray), -1)

    def test_truncated_candidate(self):
        bgr, gray = make_frames(DEFAULT_CATALOG.get("YC+"))
        candidate = LandmarkCandidate(match_pt=(-2, 10), center=(3, 15), diff=1.7, rng=200, minval=0)
        self.assertEqual(self.classifier.classify(candidate, bgr, gray), -1)

    def test_separation_threshold(self):
        strict = ColorClassifier(build_template(PATTERN_POSITIVE, 11), bgr_range_threshold=255)
        bgr, gray = make_frames(DEFAULT_CATALOG.get("MC+"))
        candidate = candidate_at(gray, (50, 50), 1.7)
        self.assertEqual(self.classifier.classify(candidate, bgr, gray), 3)
        self.assertEqual(strict.classify(candidate, bgr, gray), -1)


if __name__ == "__main__":
    unittest.main()
