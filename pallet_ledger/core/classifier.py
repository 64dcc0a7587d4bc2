"""
Pallet type classification.

Derives the billing geometry and the frozen flag of an entry record from
its stored pallet type label and free-text note.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class Geometry(Enum):
    """Billable pallet footprints."""
    A = "A"  # 100x120, packing-table equivalence
    B = "B"  # 80x120 and anything unrecognised, 1:1


class BillingBucket(Enum):
    """Exclusive billing buckets an entry record contributes to."""
    NORMAL_A = "normal_a"
    NORMAL_B = "normal_b"
    FROZEN_A = "frozen_a"
    FROZEN_B = "frozen_b"


@dataclass(frozen=True)
class UnitClass:
    """Classification of one entry record."""
    geometry: Geometry
    frozen: bool

    @property
    def bucket(self) -> BillingBucket:
        """The single bucket this record bills into.

        A frozen record bills only as frozen, never also as normal of its
        geometry.
        """
        if self.frozen:
            return BillingBucket.FROZEN_A if self.geometry is Geometry.A else BillingBucket.FROZEN_B
        return BillingBucket.NORMAL_A if self.geometry is Geometry.A else BillingBucket.NORMAL_B


@dataclass(frozen=True)
class ClassificationRules:
    """Tokens recognised by the classifier."""
    geometry_a_tokens: Tuple[str, ...] = ("100X120",)
    frozen_markers: Tuple[str, ...] = ("CONGELATO", "FROZEN")

    def __post_init__(self):
        """Normalise tokens so matching is case and whitespace insensitive."""
        if not self.geometry_a_tokens:
            raise ValueError("geometry_a_tokens cannot be empty")
        if not self.frozen_markers:
            raise ValueError("frozen_markers cannot be empty")
        if any(not marker.strip() for marker in self.frozen_markers):
            raise ValueError("frozen_markers cannot contain blank markers")
        object.__setattr__(
            self, "geometry_a_tokens", tuple(normalize_label(t) for t in self.geometry_a_tokens)
        )
        object.__setattr__(
            self, "frozen_markers", tuple(m.strip().upper() for m in self.frozen_markers)
        )


_WHITESPACE = re.compile(r"\s+")


def normalize_label(label: Optional[str]) -> str:
    """Upper-case a pallet type label and drop all whitespace."""
    if not label:
        return ""
    return _WHITESPACE.sub("", str(label)).upper().replace("×", "X")


DEFAULT_RULES = ClassificationRules()


def classify(
    label: Optional[str],
    note: Optional[str],
    rules: ClassificationRules = DEFAULT_RULES
) -> UnitClass:
    """Classify an entry record by its pallet type label and note.

    Args:
        label: Stored pallet type label, e.g. "100x120" or "80 X 120"
        note: Free-text note of the record
        rules: Recognised geometry tokens and frozen markers

    Returns:
        UnitClass with geometry A iff the label matches a geometry A token
        (anything else, including an empty label, is B) and frozen iff the
        note contains a frozen marker
    """
    geometry = Geometry.A if normalize_label(label) in rules.geometry_a_tokens else Geometry.B
    note_upper = (note or "").upper()
    frozen = any(marker in note_upper for marker in rules.frozen_markers)
    return UnitClass(geometry=geometry, frozen=frozen)
