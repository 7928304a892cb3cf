"""
Landmark color patterns and code tables.

A landmark is a 2x2 grid of saturated BGR colors. The two black/white
orientation patterns drive template matching; the coded patterns put two of
the three "bright" hues (yellow, magenta, cyan) on one diagonal and black on
the other, which yields 12 distinct codes once orientation is included.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple


class BGRColor(IntEnum):
    """Colors whose BGR components are each either 0 or 255."""
    BLACK = 0
    RED = 1
    GREEN = 2
    YELLOW = 3
    BLUE = 4
    MAGENTA = 5
    CYAN = 6
    WHITE = 7


class Hue(IntEnum):
    """Hues that can appear on the colored corners of a coded landmark."""
    YELLOW = 0
    MAGENTA = 1
    CYAN = 2


BGR_COLORS: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 0),
    (0, 0, 255),
    (0, 255, 0),
    (0, 255, 255),
    (255, 0, 0),
    (255, 0, 255),
    (255, 255, 0),
    (255, 255, 255),
)

# Component-wise inverse of each color, indexed by BGRColor
INVERTED_COLORS: Tuple[BGRColor, ...] = (
    BGRColor.WHITE,
    BGRColor.CYAN,
    BGRColor.MAGENTA,
    BGRColor.BLUE,
    BGRColor.YELLOW,
    BGRColor.GREEN,
    BGRColor.RED,
    BGRColor.BLACK,
)

HUE_TO_COLOR: Tuple[BGRColor, ...] = (BGRColor.YELLOW, BGRColor.MAGENTA, BGRColor.CYAN)

# Index of the BGR component that is zero for each hue (B, G, R)
MIN_COMPONENT_TO_HUE: Tuple[Hue, ...] = (Hue.YELLOW, Hue.MAGENTA, Hue.CYAN)

# Ordered hue pair -> base code, negative orientation adds NEGATIVE_CODE_OFFSET
HUE_PAIR_CODES: Mapping[Tuple[int, int], int] = MappingProxyType({
    (0, 1): 0,
    (0, 2): 1,
    (1, 0): 2,
    (1, 2): 3,
    (2, 0): 4,
    (2, 1): 5,
})
CODE_HUE_PAIRS: Tuple[Tuple[int, int], ...] = tuple(
    pair for pair, _ in sorted(HUE_PAIR_CODES.items(), key=lambda item: item[1])
)

NEGATIVE_CODE_OFFSET = 6
NUM_CODES = 12
UNKNOWN_CODE = -1

HUE_LETTERS = "YMC"


def bgr_value(color: BGRColor) -> Tuple[int, int, int]:
    """Return the (b, g, r) triple for a color."""
    return BGR_COLORS[int(color)]


def invert_bgr(color: BGRColor) -> BGRColor:
    """Return the color with every BGR component inverted."""
    return INVERTED_COLORS[int(color)]


def encode_code(sign: float, hue_a: Optional[int], hue_b: Optional[int]) -> int:
    """Combine orientation sign and an ordered hue pair into a landmark code.

    Returns UNKNOWN_CODE if either hue is undetermined or both are the same.
    """
    if hue_a is None or hue_b is None:
        return UNKNOWN_CODE
    base = HUE_PAIR_CODES.get((int(hue_a), int(hue_b)))
    if base is None:
        return UNKNOWN_CODE
    if sign < 0:
        base += NEGATIVE_CODE_OFFSET
    return base


def decode_code(code: int) -> Tuple[bool, Hue, Hue]:
    """Split a code into (is_negative, hue_a, hue_b).

    Raises:
        ValueError: if code is not in [0, 11]
    """
    if not 0 <= code < NUM_CODES:
        raise ValueError(f"Landmark code out of range: {code}")
    negative = code >= NEGATIVE_CODE_OFFSET
    hue_a, hue_b = CODE_HUE_PAIRS[code % NEGATIVE_CODE_OFFSET]
    return negative, Hue(hue_a), Hue(hue_b)


@dataclass(frozen=True)
class GridColorPattern:
    """Colors of a 2x2 grid, clockwise from the upper-left cell."""

    c00: BGRColor
    c01: BGRColor
    c11: BGRColor
    c10: BGRColor

    def colors(self) -> Tuple[BGRColor, BGRColor, BGRColor, BGRColor]:
        return (self.c00, self.c01, self.c11, self.c10)

    def inverted(self) -> GridColorPattern:
        return GridColorPattern(*(invert_bgr(c) for c in self.colors()))

    def rotated_clockwise(self) -> GridColorPattern:
        # Upper-left moves to upper-right, and so on around the grid
        return GridColorPattern(self.c10, self.c00, self.c01, self.c11)

    def rotated_counterclockwise(self) -> GridColorPattern:
        return GridColorPattern(self.c01, self.c11, self.c10, self.c00)


def coded_pattern(code: int) -> GridColorPattern:
    """Build the grid pattern that decodes to the given code.

    Positive codes put hue A upper-right and hue B lower-left. Negative codes
    are the positive pattern rotated clockwise: hue A lower-right, hue B
    upper-left.
    """
    negative, hue_a, hue_b = decode_code(code)
    color_a = HUE_TO_COLOR[hue_a]
    color_b = HUE_TO_COLOR[hue_b]
    pattern = GridColorPattern(BGRColor.BLACK, color_a, BGRColor.BLACK, color_b)
    if negative:
        pattern = pattern.rotated_clockwise()
    return pattern


def code_label(code: int) -> str:
    """Short label such as "YM+" for a code."""
    negative, hue_a, hue_b = decode_code(code)
    return f"{HUE_LETTERS[hue_a]}{HUE_LETTERS[hue_b]}{'-' if negative else '+'}"


# Black/white orientation patterns used for the correlation templates
PATTERN_POSITIVE = GridColorPattern(BGRColor.BLACK, BGRColor.WHITE, BGRColor.BLACK, BGRColor.WHITE)
PATTERN_NEGATIVE = PATTERN_POSITIVE.rotated_clockwise()


class PatternCatalog:
    """Read-only table of labelled landmark patterns."""

    def __init__(self, patterns: Mapping[str, GridColorPattern], codes: Optional[Mapping[str, int]] = None):
        self._patterns: Mapping[str, GridColorPattern] = MappingProxyType(dict(patterns))
        self._codes: Mapping[str, int] = MappingProxyType(dict(codes or {}))
        self._labels_by_code: Dict[int, str] = {code: label for label, code in self._codes.items()}

    def __contains__(self, label: object) -> bool:
        return label in self._patterns

    def __iter__(self) -> Iterator[str]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def get(self, label: str) -> GridColorPattern:
        try:
            return self._patterns[label]
        except KeyError:
            raise KeyError(f"Unknown landmark pattern label: {label!r}") from None

    def labels(self) -> Tuple[str, ...]:
        return tuple(self._patterns)

    def code_of(self, label: str) -> int:
        """Code for a label, or UNKNOWN_CODE for uncoded patterns."""
        return self._codes.get(label, UNKNOWN_CODE)

    def for_code(self, code: int) -> GridColorPattern:
        if code not in self._labels_by_code:
            raise KeyError(f"No pattern with code {code}")
        return self._patterns[self._labels_by_code[code]]


def build_default_catalog() -> PatternCatalog:
    patterns: Dict[str, GridColorPattern] = {
        "BW+": PATTERN_POSITIVE,
        "BW-": PATTERN_NEGATIVE,
    }
    codes: Dict[str, int] = {}
    for code in range(NUM_CODES):
        label = code_label(code)
        patterns[label] = coded_pattern(code)
        codes[label] = code
    return PatternCatalog(patterns, codes)


DEFAULT_CATALOG = build_default_catalog()
