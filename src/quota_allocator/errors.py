"""
Error taxonomy for the allocation engine.

Every error is terminal for the call that raised it; the engine never retries.
"""

from __future__ import annotations


class AllocationError(Exception):
    """Base class for every failure raised by the allocation engine."""


class InvalidInputError(AllocationError, ValueError):
    """Malformed or missing target, or a customer matrix of the wrong shape."""


class NoCustomerDataError(AllocationError, RuntimeError):
    """A segment has zero customers across the usable ladder range."""

    def __init__(self, segment, ladder=None):
        self.segment = segment
        self.ladder = ladder
        where = f" in tiers {ladder.high_tier}..{ladder.low_tier}" if ladder is not None else ""
        who = f"segment {segment!r} has no" if segment is not None else "no segment has any"
        super().__init__(f"{who} customers{where}; cannot assign a per-tier quota")


class AllocationInfeasibleError(AllocationError, RuntimeError):
    """Every fine-tune candidate violated the non-increasing invariant."""


class InvalidGroupRatioError(AllocationError, ValueError):
    """The group ratio table is empty once non-positive entries are dropped."""


class UnmappedGroupError(AllocationError, ValueError):
    """A segment resolved to a group that has no ratio entry."""

    def __init__(self, segment, group):
        self.segment = segment
        self.group = group
        super().__init__(f"segment {segment!r} maps to group {group!r}, which has no ratio entry")


class DegenerateAllocationError(AllocationError, RuntimeError):
    """One or more entities ended up with an all-zero allocation after truncation."""

    def __init__(self, entities, bands=None):
        self.entities = list(entities)
        self.bands = list(bands) if bands is not None else []
        names = ", ".join(str(e) for e in self.entities)
        msg = f"{len(self.entities)} entit{'y' if len(self.entities) == 1 else 'ies'} degenerate after truncation: {names}"
        if self.bands:
            msg += f" (bands: {', '.join(str(b) for b in self.bands)})"
        super().__init__(msg)
