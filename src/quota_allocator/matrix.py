"""
Customer / allocation matrix helpers.

Matrices are DataFrames indexed by segment name with the 30 tier columns
D30..D1. Row order is the caller's segment order and is never changed.
"""

from __future__ import annotations
import math
import logging

import numpy as np
import pandas as pd

from .errors import InvalidInputError, NoCustomerDataError
from .ladder import TIER_COUNT, TIER_LABELS

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 2   # decimal places kept on every quota
EPS = 1e-9              # float slack for "equal" / "exceeds"
ERROR_DECIMALS = 9      # errors are rounded to this before comparison


def validate_target(target) -> float:
    try:
        value = float(target)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"target amount must be numeric, got {target!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"target amount must be positive, got {target!r}")
    return value


def validate_precision(precision) -> int:
    if isinstance(precision, bool) or not isinstance(precision, (int, np.integer)) or not 0 <= precision <= 8:
        raise InvalidInputError(f"precision must be an int in 0..8, got {precision!r}")
    return int(precision)


def as_customer_frame(segments, counts) -> pd.DataFrame:
    """Coerce (segments, counts) into a float DataFrame of shape (n_segments, 30).

    `counts` may be a DataFrame (tier-labelled or positional columns), a 2-D
    array or nested lists. Missing values become 0. When `segments` is None
    the DataFrame index is used.
    """
    if isinstance(counts, pd.DataFrame):
        frame = counts
        if set(TIER_LABELS).issubset(frame.columns):
            frame = frame[TIER_LABELS]
        index = [str(i) for i in frame.index]
        if segments is None:
            segments = index
        elif not isinstance(frame.index, pd.RangeIndex) and index != [str(s) for s in segments]:
            raise InvalidInputError("customer matrix index does not match the segment list")
        raw = frame.to_numpy()
    else:
        raw = counts
    if segments is None:
        raise InvalidInputError("segments are required when counts is not a DataFrame")

    segments = [str(s) for s in segments]
    if not segments:
        raise InvalidInputError("at least one segment is required")
    if len(set(segments)) != len(segments):
        raise InvalidInputError("segment names must be unique")

    try:
        values = np.asarray(raw, dtype=float)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"customer counts must be numeric: {exc}") from exc
    if values.ndim != 2 or values.shape != (len(segments), TIER_COUNT):
        raise InvalidInputError(
            f"customer matrix must be {len(segments)} x {TIER_COUNT}, got {'x'.join(map(str, values.shape))}")
    values = np.nan_to_num(values, nan=0.0)
    if not np.isfinite(values).all():
        raise InvalidInputError("customer counts must be finite")
    if (values < 0).any():
        raise InvalidInputError("customer counts must be >= 0")

    return pd.DataFrame(values, index=pd.Index(segments, name="segment"), columns=TIER_LABELS)


def empty_allocation(segments) -> pd.DataFrame:
    return pd.DataFrame(0.0, index=pd.Index(list(segments), name="segment"), columns=TIER_LABELS)


def ensure_customers_in_range(frame: pd.DataFrame, ladder):
    in_range = frame.loc[:, ladder.labels].sum(axis=1)
    empty = in_range[in_range <= 0]
    if not empty.empty:
        raise NoCustomerDataError(empty.index[0], ladder)


def achieved_total(allocation, counts) -> float:
    """Σ_segment Σ_tier allocation * customers."""
    a = allocation.to_numpy(dtype=float) if isinstance(allocation, pd.DataFrame) else np.asarray(allocation, dtype=float)
    c = counts.to_numpy(dtype=float) if isinstance(counts, pd.DataFrame) else np.asarray(counts, dtype=float)
    return float((a * c).sum())


def allocation_error(achieved: float, target: float) -> float:
    return round(abs(achieved - target), ERROR_DECIMALS)


def is_non_increasing(row, ladder) -> bool:
    seg = np.asarray(row, dtype=float)[ladder.high_tier:ladder.low_tier + 1]
    return bool(np.all(np.diff(seg) <= EPS))


def outside_is_zero(row, ladder) -> bool:
    return not np.asarray(row, dtype=float)[~ladder.mask()].any()
