"""
Column-wise, unweighted, multi-segment allocation.

The coarse phase is shared with single-level allocation: whole tier columns
are raised together and the achieved total is weighted by every segment's
customers. In the fine phase each segment absorbs its own share of the
remainder (proportional to its boundary-tier customers) and picks its own
candidate, so rows may diverge. Segments are visited in ranking order and
the rounding drift of each pick is carried into the next segment's share, so
every pick is scored against the aggregate gap. A final pass nudges the
boundary tier by one rounding quantum wherever that brings the aggregate
total closer to the target. The broadcast plan (every row equal to the
single-level vector) is kept when its aggregate error is strictly smaller.
"""

from __future__ import annotations
import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .errors import InvalidInputError
from .ladder import GradeLadder, TIER_LABELS
from .matrix import (
    DEFAULT_PRECISION, EPS, ERROR_DECIMALS, allocation_error, as_customer_frame, ensure_customers_in_range,
    is_non_increasing, validate_precision, validate_target,
)
from .single_level import build_candidates, coarse_phase, select_candidate, solve_quota_vector

logger = logging.getLogger(__name__)


def default_segment_order(values: np.ndarray) -> list:
    """Descending by in-range customer total; input order breaks ties."""
    totals = values.sum(axis=1)
    return sorted(range(len(totals)), key=lambda i: -totals[i])


def resolve_segment_order(segment_order, segments: Sequence[str], values: np.ndarray) -> list:
    if segment_order is None:
        return default_segment_order(values)
    order = []
    for item in segment_order:
        if isinstance(item, str):
            if item not in segments:
                raise InvalidInputError(f"segment_order names unknown segment {item!r}")
            order.append(segments.index(item))
        else:
            order.append(int(item))
    if sorted(order) != list(range(len(segments))):
        raise InvalidInputError("segment_order must be a permutation of the segments")
    return order


def _closer(new_gap: float, old_gap: float, allow_tie: bool) -> bool:
    new, old = round(abs(new_gap), ERROR_DECIMALS), round(abs(old_gap), ERROR_DECIMALS)
    return new <= old if allow_tie else new < old


def settle_rounding_residual(rows: np.ndarray, values: np.ndarray, target: float, boundary: int,
                             order: list, ladder: GradeLadder, precision: int) -> np.ndarray:
    """One pass in segment order; each segment may move its boundary quota by one quantum.

    Moving up is accepted when the aggregate error does not grow (ties prefer the
    larger quota); moving down only when the error strictly shrinks.
    """
    quantum = 10.0 ** -precision
    achieved = float((rows * values).sum())
    for s in order:
        gap = target - achieved
        if abs(gap) <= EPS:
            break
        weight = float(values[s, boundary])
        if weight <= 0:
            continue
        step = quantum if gap > 0 else -quantum
        trial = rows[s].copy()
        trial[boundary] = round(trial[boundary] + step, precision)
        if trial[boundary] < 0 or not is_non_increasing(trial, ladder):
            continue
        new_gap = gap - step * weight
        if _closer(new_gap, gap, allow_tie=step > 0):
            rows[s] = trial
            achieved = target - new_gap
    return rows


def distribute_multi_segment(segments, customers, target, ladder: Optional[GradeLadder] = None,
                             segment_order=None, precision: int = DEFAULT_PRECISION) -> pd.DataFrame:
    ladder = ladder or GradeLadder.full()
    frame = as_customer_frame(segments, customers)
    target = validate_target(target)
    precision = validate_precision(precision)
    ensure_customers_in_range(frame, ladder)

    names = list(frame.index)
    values = frame.to_numpy().copy()
    values[:, ~ladder.mask()] = 0.0
    order = resolve_segment_order(segment_order, names, values)
    column = values.sum(axis=0)

    plan = coarse_phase(column, target, ladder)
    rows = np.tile(np.round(plan.quotas, precision), (len(names), 1))

    if not plan.exact:
        b = plan.boundary
        remainder = target - plan.total
        shares = remainder * values[:, b] / column[b]
        picks = {}
        carry = 0.0    # exact share not yet realised by earlier picks
        for s in order:
            if shares[s] <= EPS:
                continue
            weight = float(values[s, b])
            share = min(max(float(shares[s]) + carry, 0.0), weight)
            local_target = float(plan.quotas @ values[s]) + float(shares[s]) + carry
            if share <= EPS:
                carry = local_target - float(plan.quotas @ values[s])
                continue
            candidates = build_candidates(plan.quotas, values[s], b, plan.above, share, ladder, precision)
            tag, quotas, achieved_s = select_candidate(candidates, values[s], local_target)
            rows[s] = quotas
            carry = local_target - achieved_s
            picks[names[s]] = tag.name
        logger.debug(f"[multi] boundary={TIER_LABELS[b]} remainder={remainder:.4f} picks={picks}")
        rows = settle_rounding_residual(rows, values, target, b, order, ladder, precision)

        broadcast = solve_quota_vector(column, target, ladder, precision)
        if allocation_error(float(broadcast @ column), target) < allocation_error(float((rows * values).sum()), target):
            logger.debug("[multi] broadcast plan is closer to the target; rows left uniform")
            rows = np.tile(broadcast, (len(names), 1))

    allocation = pd.DataFrame(rows, index=frame.index.copy(), columns=TIER_LABELS)
    achieved = float((rows * values).sum())
    logger.info(f"[multi] {len(names)} segment(s) {ladder}: target={target:,.2f} "
                f"achieved={achieved:,.2f} error={abs(achieved - target):,.4f}")
    return allocation
