"""
Grade ladder: the fixed 30-tier ordinal axis and its usable sub-range.

Index 0 is the highest grade ("D30"), index 29 the lowest ("D1").
"""

from __future__ import annotations
from dataclasses import dataclass

import numpy as np

from .errors import InvalidInputError

TIER_COUNT = 30
TIER_LABELS = [f"D{TIER_COUNT - i}" for i in range(TIER_COUNT)]

DEFAULT_HIGH_GRADE = "D30"
DEFAULT_LOW_GRADE = "D1"


def parse_grade(label) -> int:
    """'D30' -> 0, 'D1' -> 29."""
    text = str(label).strip().upper()
    if not text.startswith("D") or not text[1:].isdigit():
        raise InvalidInputError(f"bad grade label {label!r} (expected D1..D{TIER_COUNT})")
    number = int(text[1:])
    if not 1 <= number <= TIER_COUNT:
        raise InvalidInputError(f"grade {label!r} out of range D1..D{TIER_COUNT}")
    return TIER_COUNT - number


@dataclass(frozen=True)
class GradeLadder:
    high_tier: int = 0
    low_tier: int = TIER_COUNT - 1

    def __post_init__(self):
        for name in ("high_tier", "low_tier"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidInputError(f"{name} must be an int, got {value!r}")
        if not 0 <= self.high_tier <= self.low_tier <= TIER_COUNT - 1:
            raise InvalidInputError(
                f"invalid ladder [{self.high_tier}, {self.low_tier}]: need 0 <= high <= low <= {TIER_COUNT - 1}")

    @classmethod
    def full(cls) -> "GradeLadder":
        return cls(0, TIER_COUNT - 1)

    @classmethod
    def from_grades(cls, high_grade=None, low_grade=None) -> "GradeLadder":
        """Build from labels such as ("D20", "D5"); blank labels mean the full-range default."""
        high = high_grade if high_grade is not None and str(high_grade).strip() else DEFAULT_HIGH_GRADE
        low = low_grade if low_grade is not None and str(low_grade).strip() else DEFAULT_LOW_GRADE
        return cls(parse_grade(high), parse_grade(low))

    @property
    def tiers(self) -> range:
        return range(self.high_tier, self.low_tier + 1)

    @property
    def labels(self) -> list:
        return TIER_LABELS[self.high_tier:self.low_tier + 1]

    def contains(self, tier: int) -> bool:
        return self.high_tier <= tier <= self.low_tier

    def mask(self) -> np.ndarray:
        m = np.zeros(TIER_COUNT, dtype=bool)
        m[self.high_tier:self.low_tier + 1] = True
        return m

    def narrow(self, low_tier: int) -> "GradeLadder":
        """Same high tier, shallower low tier."""
        if not self.contains(low_tier):
            raise InvalidInputError(f"tier {low_tier} outside ladder [{self.high_tier}, {self.low_tier}]")
        return GradeLadder(self.high_tier, low_tier)

    def __str__(self):
        return f"{TIER_LABELS[self.high_tier]}-{TIER_LABELS[self.low_tier]}"
