"""
Single-level allocation: one shared per-tier quota vector for every segment.

Coarse phase
  Sweep tiers HG -> LG adding one unit per tier until the achieved total
  first exceeds the target, then revert that last unit (the "coarse plan").

Fine phase
  Four candidates absorb the remainder around the boundary tier:
    BOUNDARY   remainder goes to the boundary tier
    ABOVE      remainder goes to the tier above the boundary
    SPLIT      remainder split between the two, proportional to customers
    OVERSHOOT  re-apply the reverted unit, then discount the excess
  BOUNDARY and OVERSHOOT always produce the same vector
  (+1 - (w_b - r) / w_b == r / w_b); both are kept, and OVERSHOOT wins the tie.
  Candidates that break the non-increasing rule are discarded. The smallest
  |achieved - target| wins; exact ties go to the higher-numbered candidate.
"""

from __future__ import annotations
import math
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional

import numpy as np
import pandas as pd

from .errors import AllocationInfeasibleError, NoCustomerDataError
from .ladder import GradeLadder, TIER_COUNT, TIER_LABELS
from .matrix import (
    DEFAULT_PRECISION, EPS, allocation_error, as_customer_frame, ensure_customers_in_range,
    is_non_increasing, validate_precision, validate_target,
)

logger = logging.getLogger(__name__)


class Candidate(IntEnum):
    BOUNDARY = 1
    ABOVE = 2
    SPLIT = 3
    OVERSHOOT = 4


@dataclass
class CoarsePlan:
    quotas: np.ndarray
    total: float
    boundary: Optional[int] = None   # None: the sweep hit the target exactly
    above: Optional[int] = None

    @property
    def exact(self) -> bool:
        return self.boundary is None


def coarse_phase(weights, target: float, ladder: GradeLadder) -> CoarsePlan:
    """Round-robin +1 sweep over the ladder; stops at the first tier whose unit would exceed target."""
    weights = np.asarray(weights, dtype=float)
    lo, hi = ladder.high_tier, ladder.low_tier + 1
    sweep_total = float(weights[lo:hi].sum())
    if sweep_total <= 0:
        raise NoCustomerDataError(None, ladder)

    quotas = np.zeros(TIER_COUNT)
    # whole sweeps that stay strictly below the target
    full_sweeps = max(int(math.ceil(target / sweep_total)) - 1, 0)
    while full_sweeps and full_sweeps * sweep_total >= target - EPS:
        full_sweeps -= 1
    quotas[lo:hi] = full_sweeps
    total = full_sweeps * sweep_total
    logger.debug(f"[coarse] {full_sweeps} full sweep(s) over {ladder}, total={total:.4f} target={target:.4f}")

    while True:
        for tier in ladder.tiers:
            step = float(weights[tier])
            if total + step > target + EPS:
                above = tier - 1 if tier > ladder.high_tier else None
                logger.debug(f"[coarse] boundary at {TIER_LABELS[tier]} (total={total:.4f}, next unit={step:.4f})")
                return CoarsePlan(quotas, total, boundary=tier, above=above)
            quotas[tier] += 1
            total += step
            if abs(total - target) <= EPS:
                logger.debug(f"[coarse] exact hit at {TIER_LABELS[tier]}")
                return CoarsePlan(quotas, total)


def build_candidates(quotas, weights, boundary: int, above: Optional[int], remainder: float,
                     ladder: GradeLadder, precision: int = DEFAULT_PRECISION) -> Dict[Candidate, np.ndarray]:
    """Generate the surviving fine-tune candidates for one weight row."""
    quotas = np.asarray(quotas, dtype=float)
    w = np.asarray(weights, dtype=float)
    wb = float(w[boundary])
    wa = float(w[above]) if above is not None else 0.0
    raw = {}

    if wb > 0:
        q = quotas.copy()
        q[boundary] += remainder / wb
        raw[Candidate.BOUNDARY] = q
    if above is not None and wa > 0:
        q = quotas.copy()
        q[above] += remainder / wa
        raw[Candidate.ABOVE] = q
    if above is not None and wa + wb > 0:
        # proportional split gives both tiers the same per-customer increment
        delta = remainder / (wa + wb)
        q = quotas.copy()
        q[above] += delta
        q[boundary] += delta
        raw[Candidate.SPLIT] = q
    if wb > 0:
        q = quotas.copy()
        q[boundary] += 1.0
        q[boundary] -= (wb - remainder) / wb
        raw[Candidate.OVERSHOOT] = q

    survivors = {}
    for tag, q in raw.items():
        q = np.round(q, precision)
        if (q < 0).any() or not is_non_increasing(q, ladder):
            logger.debug(f"[fine] discard {tag.name}: breaks non-increasing tiers")
            continue
        survivors[tag] = q
    return survivors


def select_candidate(candidates: Dict[Candidate, np.ndarray], weights, target: float):
    """Return (tag, quotas, achieved) with minimal error; ties -> higher-numbered tag."""
    if not candidates:
        raise AllocationInfeasibleError("no fine-tune candidate satisfies the non-increasing constraint")
    w = np.asarray(weights, dtype=float)
    scored = [(allocation_error(float(q @ w), target), tag, q) for tag, q in candidates.items()]
    err, tag, q = min(scored, key=lambda s: (s[0], -int(s[1])))
    return tag, q, float(q @ w)


def solve_quota_vector(weights, target: float, ladder: GradeLadder,
                       precision: int = DEFAULT_PRECISION) -> np.ndarray:
    """Best non-increasing quota vector for one weight row (coarse + fine)."""
    plan = coarse_phase(weights, target, ladder)
    if plan.exact:
        return np.round(plan.quotas, precision)
    remainder = target - plan.total
    candidates = build_candidates(plan.quotas, weights, plan.boundary, plan.above, remainder, ladder, precision)
    tag, quotas, achieved = select_candidate(candidates, weights, target)
    logger.debug(f"[fine] {len(candidates)} candidate(s), picked {tag.name} "
                 f"achieved={achieved:.4f} error={abs(achieved - target):.4f}")
    return quotas


def distribute_single_level(segments, customers, target, ladder: Optional[GradeLadder] = None,
                            precision: int = DEFAULT_PRECISION) -> pd.DataFrame:
    """Uniform allocation: one quota vector broadcast to every segment row."""
    ladder = ladder or GradeLadder.full()
    frame = as_customer_frame(segments, customers)
    target = validate_target(target)
    precision = validate_precision(precision)
    ensure_customers_in_range(frame, ladder)

    column = frame.to_numpy().sum(axis=0)
    column[~ladder.mask()] = 0.0
    quotas = solve_quota_vector(column, target, ladder, precision)

    allocation = pd.DataFrame(np.tile(quotas, (len(frame), 1)), index=frame.index.copy(), columns=TIER_LABELS)
    achieved = float(quotas @ column)
    logger.info(f"[single] {len(frame)} segment(s) {ladder}: target={target:,.2f} "
                f"achieved={achieved:,.2f} error={abs(achieved - target):,.4f}")
    return allocation
