"""
Weighted group allocation.

Segments are partitioned into named groups, each group receives
target * normalized_ratio, and the group is allocated on its own (single-level
for one segment, column-wise otherwise). Rows come back in input order.
"""

from __future__ import annotations
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .errors import InvalidGroupRatioError, InvalidInputError, UnmappedGroupError
from .ladder import GradeLadder
from .matrix import (
    DEFAULT_PRECISION, as_customer_frame, empty_allocation, validate_precision, validate_target,
)
from .multi_segment import distribute_multi_segment
from .single_level import distribute_single_level

logger = logging.getLogger(__name__)

URBAN = "urban"
RURAL = "rural"
DEFAULT_MARKET_RATIOS = {URBAN: 0.4, RURAL: 0.6}
_URBAN_MARKERS = ("城网", "城区", "urban")
_RURAL_MARKERS = ("农网", "农村", "rural")


class RatioStrategy(str, Enum):
    FIXED = "fixed"
    DEFAULT_MARKET = "default_market"
    CUSTOMER_PROPORTIONAL = "customer_proportional"


def market_type_of(segment: str) -> str:
    """Urban/rural bucket from a segment name; unmarked segments count as urban."""
    name = str(segment).lower()
    if any(m in name for m in _URBAN_MARKERS):
        return URBAN
    if any(m in name for m in _RURAL_MARKERS):
        return RURAL
    return URBAN


def group_lookup(grouping):
    """Mapping or callable -> callable(segment) returning a group name or None."""
    if grouping is None:
        raise InvalidInputError("a grouping (mapping or callable) is required")
    if isinstance(grouping, Mapping):
        return grouping.get
    if callable(grouping):
        return grouping
    raise InvalidInputError(f"grouping must be a mapping or callable, got {type(grouping).__name__}")


def partition_segments(segments, grouping) -> Dict[str, list]:
    """group -> [row positions], groups in order of first appearance."""
    lookup = group_lookup(grouping)
    groups: Dict[str, list] = {}
    for pos, segment in enumerate(segments):
        group = lookup(segment)
        if group is None or not str(group).strip():
            raise UnmappedGroupError(segment, group)
        groups.setdefault(str(group), []).append(pos)
    return groups


def normalize_group_ratios(ratios) -> Dict[str, float]:
    """Drop non-positive entries and scale the rest to sum to 1."""
    if not ratios:
        raise InvalidGroupRatioError("group ratio table is empty")
    positive = {}
    for group, raw in ratios.items():
        try:
            value = float(raw)
        except (TypeError, ValueError) as exc:
            raise InvalidGroupRatioError(f"ratio for group {group!r} is not numeric: {raw!r}") from exc
        if np.isfinite(value) and value > 0:
            positive[str(group)] = value
    if not positive:
        raise InvalidGroupRatioError("no group has a positive ratio")
    total = sum(positive.values())
    return {g: v / total for g, v in positive.items()}


def resolve_group_ratios(strategy, customers: pd.DataFrame, ladder: GradeLadder,
                         grouping, ratios=None) -> Dict[str, float]:
    """Raw (un-normalized) ratio table for the chosen strategy."""
    strategy = RatioStrategy(strategy)
    if strategy is RatioStrategy.FIXED:
        if not ratios:
            raise InvalidGroupRatioError("fixed ratio strategy needs caller-supplied ratios")
        return dict(ratios)
    if strategy is RatioStrategy.DEFAULT_MARKET:
        if ratios:
            return dict(ratios)
        return dict(DEFAULT_MARKET_RATIOS)

    lookup = group_lookup(grouping)
    in_range = customers.loc[:, ladder.labels].sum(axis=1)
    keys = pd.Series([lookup(s) for s in customers.index], index=customers.index)
    per_group = in_range.groupby(keys).sum()
    total = float(per_group.sum())
    if total <= 0:
        raise InvalidGroupRatioError("no customers in range to derive group ratios from")
    return {str(g): float(v) / total for g, v in per_group.items()}


def distribute_weighted_groups(segments, customers, target, ladder: Optional[GradeLadder] = None,
                               grouping=None, group_ratios=None,
                               strategy: RatioStrategy = RatioStrategy.FIXED,
                               precision: int = DEFAULT_PRECISION) -> pd.DataFrame:
    ladder = ladder or GradeLadder.full()
    frame = as_customer_frame(segments, customers)
    target = validate_target(target)
    precision = validate_precision(precision)
    strategy = RatioStrategy(strategy)
    if grouping is None and strategy is RatioStrategy.DEFAULT_MARKET:
        grouping = market_type_of

    names = list(frame.index)
    groups = partition_segments(names, grouping)
    raw = resolve_group_ratios(strategy, frame, ladder, grouping, group_ratios)
    raw_keys = {str(k) for k in raw}
    for group, positions in groups.items():
        if group not in raw_keys:
            raise UnmappedGroupError(names[positions[0]], group)
    ratios = normalize_group_ratios({g: v for g, v in raw.items() if str(g) in groups})

    allocation = empty_allocation(names)
    for group, positions in groups.items():
        ratio = ratios.get(group)
        members = [names[p] for p in positions]
        if ratio is None:
            logger.warning(f"⚠️  group {group!r} has a non-positive ratio; {len(members)} segment(s) left at zero")
            continue
        group_target = target * ratio
        sub = frame.loc[members]
        if len(members) == 1:
            result = distribute_single_level(members, sub, group_target, ladder, precision)
        else:
            result = distribute_multi_segment(members, sub, group_target, ladder, precision=precision)
        allocation.loc[members] = result.to_numpy()
        logger.info(f"[weighted] group {group!r}: ratio={ratio:.4f} target={group_target:,.2f} segments={len(members)}")

    return allocation
