"""
Algorithm selection and the single `allocate` entry point.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import pandas as pd

from .ladder import GradeLadder
from .matrix import DEFAULT_PRECISION, achieved_total, as_customer_frame, validate_target
from .multi_segment import distribute_multi_segment
from .single_level import distribute_single_level
from .weighted_group import RatioStrategy, distribute_weighted_groups

logger = logging.getLogger(__name__)


class Algorithm(str, Enum):
    SINGLE_LEVEL = "single"
    COLUMN_WISE = "multi"
    GROUP_SPLITTING = "weighted"


@dataclass(frozen=True)
class AllocationResult:
    allocation: pd.DataFrame
    algorithm: Algorithm
    target: float
    achieved: float

    @property
    def error(self) -> float:
        return abs(self.achieved - self.target)


def select_algorithm(segment_count: int, grouping=None, group_ratios=None,
                     strategy: RatioStrategy = RatioStrategy.FIXED) -> Algorithm:
    if segment_count <= 1:
        return Algorithm.SINGLE_LEVEL
    strategy = RatioStrategy(strategy)
    if strategy is not RatioStrategy.FIXED:
        return Algorithm.GROUP_SPLITTING
    if grouping is not None and group_ratios:
        return Algorithm.GROUP_SPLITTING
    return Algorithm.COLUMN_WISE


def allocate(segments, customers, target, ladder: Optional[GradeLadder] = None, *,
             algorithm=None, grouping=None, group_ratios=None,
             strategy: RatioStrategy = RatioStrategy.FIXED, segment_order=None,
             precision: int = DEFAULT_PRECISION) -> AllocationResult:
    ladder = ladder or GradeLadder.full()
    frame = as_customer_frame(segments, customers)
    target = validate_target(target)
    names = list(frame.index)

    algo = Algorithm(algorithm) if algorithm is not None else select_algorithm(
        len(names), grouping, group_ratios, strategy)
    logger.info(f"→ {algo.name} for {len(names)} segment(s), ladder {ladder}, target {target:,.2f}")

    if algo is Algorithm.SINGLE_LEVEL:
        allocation = distribute_single_level(names, frame, target, ladder, precision)
    elif algo is Algorithm.GROUP_SPLITTING:
        allocation = distribute_weighted_groups(names, frame, target, ladder, grouping=grouping,
                                                group_ratios=group_ratios, strategy=strategy,
                                                precision=precision)
    else:
        allocation = distribute_multi_segment(names, frame, target, ladder,
                                              segment_order=segment_order, precision=precision)

    return AllocationResult(allocation, algo, target, achieved_total(allocation, frame))
