"""
Demographic bucketing for completed quiz sessions.

Gender collapses into a closed set (male/female/other) and ages fall into
one of two fixed range schemes:

- CHANNEL_AGE_SCHEME: six ranges used by per-channel cards. The open-ended
  ranges are labelled `~19` and `60~` (under 20, 60 and over), the exact
  labels the channel cards key on.
- DETAILED_AGE_SCHEME: nine ten-year ranges used by cross-channel and
  location views

Both schemes always expose their full label set, so consumers read values
without checking for keys.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Dict, Iterator

from core.config import config


class Gender(str, Enum):
    """Closed gender category set."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Gender":
        """Map a raw value onto the closed set; anything unrecognized is OTHER."""
        if raw is None:
            return cls.OTHER
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class GenderBreakdown:
    """Counts per gender; all three keys always present."""
    male: int = 0
    female: int = 0
    other: int = 0

    def add(self, raw: Optional[str], count: int = 1) -> None:
        gender = Gender.parse(raw)
        setattr(self, gender.value, getattr(self, gender.value) + count)

    @property
    def total(self) -> int:
        return self.male + self.female + self.other

    def to_dict(self) -> Dict[str, int]:
        return {"male": self.male, "female": self.female, "other": self.other}


@dataclass(frozen=True)
class AgeBucket:
    """Inclusive lower bound, exclusive upper bound (None = open-ended)."""
    label: str
    lower: int
    upper: Optional[int] = None

    def contains(self, age: int) -> bool:
        if age < self.lower:
            return False
        return self.upper is None or age < self.upper


class AgeScheme:
    """An ordered, gap-free set of age buckets."""

    def __init__(self, name: str, buckets: Sequence[AgeBucket]):
        self.name = name
        self.buckets: Tuple[AgeBucket, ...] = tuple(buckets)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(b.label for b in self.buckets)

    def bucket_for(self, age: Optional[int]) -> Optional[str]:
        """
        Label of the bucket holding ``age``.

        Returns None for missing ages and ages outside the valid range;
        those sessions still count everywhere else.
        """
        if age is None:
            return None
        try:
            age = int(age)
        except (TypeError, ValueError):
            return None
        if not config.stats.min_age <= age <= config.stats.max_age:
            return None
        for bucket in self.buckets:
            if bucket.contains(age):
                return bucket.label
        return None

    def __repr__(self) -> str:
        return f"AgeScheme({self.name!r}, {list(self.labels)})"


# "~19" is under 20 and "60~" is 60 and over; cards key on these labels
CHANNEL_AGE_SCHEME = AgeScheme("channel", [
    AgeBucket("~19", 0, 20),
    AgeBucket("20-29", 20, 30),
    AgeBucket("30-39", 30, 40),
    AgeBucket("40-49", 40, 50),
    AgeBucket("50-59", 50, 60),
    AgeBucket("60~", 60),
])

DETAILED_AGE_SCHEME = AgeScheme("detailed", [
    AgeBucket("0-9", 0, 10),
    AgeBucket("10-19", 10, 20),
    AgeBucket("20-29", 20, 30),
    AgeBucket("30-39", 30, 40),
    AgeBucket("40-49", 40, 50),
    AgeBucket("50-59", 50, 60),
    AgeBucket("60-69", 60, 70),
    AgeBucket("70-79", 70, 80),
    AgeBucket("80+", 80),
])


class AgeRanges:
    """Age counts over a scheme's fixed label set (default 0)."""

    def __init__(self, scheme: AgeScheme):
        self.scheme = scheme
        self._counts: Dict[str, int] = dict.fromkeys(scheme.labels, 0)

    def add(self, age: Optional[int], count: int = 1) -> bool:
        """Count ``age``; returns False when the age is not bucketable."""
        label = self.scheme.bucket_for(age)
        if label is None:
            return False
        self._counts[label] += count
        return True

    def __getitem__(self, label: str) -> int:
        return self._counts[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def to_dict(self) -> Dict[str, int]:
        return dict(self._counts)
