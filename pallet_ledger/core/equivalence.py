"""
Pallet equivalence conversion.

Converts physical pallet counts into billable equivalent pallets.
"""

from typing import Tuple

from .classifier import Geometry


# Physical pallets per full block and the equivalent pallets a full block bills as
BLOCK_SIZE = 26
BLOCK_EQUIVALENT = 33

# Equivalent pallets for the remainder of a partial block, indexed by remainder.
# Packing discount agreed with the warehouse - not derivable from a formula.
REMAINDER_TABLE: Tuple[int, ...] = (
    0, 2, 3, 4, 5, 7, 8, 9, 10, 12, 13, 14, 15,
    17, 18, 19, 20, 22, 23, 24, 25, 27, 28, 29, 30, 32,
)


def equivalent_units(physical_count: int) -> int:
    """Convert a physical 100x120 pallet count to equivalent pallets.

    Args:
        physical_count: Number of physical pallets (whole, non-negative)

    Returns:
        33 equivalent pallets per full block of 26, plus the table value
        for the remainder

    Raises:
        ValueError: If the count is negative or not a whole number
    """
    if isinstance(physical_count, bool) or not isinstance(physical_count, int):
        raise ValueError(f"physical_count must be an integer, got {physical_count!r}")
    if physical_count < 0:
        raise ValueError("physical_count cannot be negative")

    blocks, remainder = divmod(physical_count, BLOCK_SIZE)
    return blocks * BLOCK_EQUIVALENT + REMAINDER_TABLE[remainder]


def equivalent_for(geometry: Geometry, physical_count: int) -> int:
    """Equivalent pallets for a count of the given geometry.

    Geometry A uses the packing table; geometry B bills 1:1.
    """
    if geometry is Geometry.A:
        return equivalent_units(physical_count)
    if physical_count < 0:
        raise ValueError("physical_count cannot be negative")
    return physical_count


def equivalence_delta(geometry: Geometry, before: int, after: int) -> int:
    """Equivalent pallets released when stock drops from ``before`` to ``after``."""
    return equivalent_for(geometry, before) - equivalent_for(geometry, after)
