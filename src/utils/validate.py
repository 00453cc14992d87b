#!/usr/bin/env python3
import argparse
import pandas as pd
import numpy as np

from quota_allocator.ladder import GradeLadder, TIER_LABELS
from quota_allocator.matrix import EPS, achieved_total


def fmt(n):
    return f"{float(n):,.2f}" if pd.notna(n) else "n/a"


def check_allocation(allocation: pd.DataFrame, customers: pd.DataFrame, ladder: GradeLadder,
                     target=None, tolerance=None):
    """Return a list of violation strings (empty list → allocation is valid)."""
    problems = []
    if list(allocation.columns) != TIER_LABELS:
        problems.append(f"allocation columns must be {TIER_LABELS[0]}..{TIER_LABELS[-1]}")
        return problems
    missing = set(allocation.index) - set(customers.index)
    if missing:
        problems.append(f"segments without customer rows: {sorted(missing)}")
        return problems

    a = allocation.to_numpy(dtype=float)
    if np.isnan(a).any():
        problems.append("allocation contains NaN")
        return problems
    if (a < 0).any():
        neg = allocation.index[(a < 0).any(axis=1)].tolist()
        problems.append(f"negative quotas in segments {neg}")

    outside = ~ladder.mask()
    for segment, row in zip(allocation.index, a):
        if row[outside].any():
            problems.append(f"{segment}: non-zero quota outside ladder {ladder}")
        seg = row[ladder.high_tier:ladder.low_tier + 1]
        bad = np.flatnonzero(np.diff(seg) > EPS)
        if bad.size:
            t = ladder.high_tier + int(bad[0])
            problems.append(f"{segment}: {TIER_LABELS[t + 1]}={seg[bad[0] + 1]} > {TIER_LABELS[t]}={seg[bad[0]]}")

    if target is not None and tolerance is not None:
        achieved = achieved_total(allocation, customers.loc[allocation.index, TIER_LABELS])
        if abs(achieved - float(target)) > float(tolerance):
            problems.append(f"achieved {achieved:,.4f} misses target {float(target):,.4f} by more than {tolerance}")
    return problems


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--customers", required=True)
    ap.add_argument("--allocation", required=True)
    ap.add_argument("--target", type=float, default=None)
    ap.add_argument("--tolerance", type=float, default=None, help="max allowed |achieved - target|")
    ap.add_argument("--high_grade", default="D30")
    ap.add_argument("--low_grade", default="D1")
    args = ap.parse_args()

    ladder = GradeLadder.from_grades(args.high_grade, args.low_grade)

    c = pd.read_csv(args.customers, dtype={'segment': str})
    need = {'segment', *TIER_LABELS}
    missing = need - set(c.columns)
    if missing:
        raise ValueError(f"customers missing columns: {sorted(missing)}")
    c = c.drop_duplicates('segment').set_index('segment')[TIER_LABELS].fillna(0)

    a = pd.read_csv(args.allocation, dtype={'segment': str})
    missing = need - set(a.columns)
    if missing:
        raise ValueError(f"allocation missing columns: {sorted(missing)}")
    a = a.set_index('segment')[TIER_LABELS]

    per_segment = (a * c.reindex(a.index)).sum(axis=1)
    achieved = float(per_segment.sum())
    problems = check_allocation(a, c, ladder, args.target, args.tolerance)

    print("── validator ─────────────────────────────────────────")
    print(f"segments                       : {len(a):,}")
    print(f"ladder                         : {ladder}")
    print(f"achieved (Σ quota × customers) : {fmt(achieved)}")
    if args.target is not None:
        print(f"target                         : {fmt(args.target)}")
        print(f"error                          : {fmt(abs(achieved - args.target))}")
    print(f"violations                     : {len(problems)}")
    print("───────────────────────────────────────────────────────")
    for p in problems:
        print(f"  {p}")

    if problems:
        raise SystemExit(1)


if __name__ == "__main__":
    pd.set_option("display.max_rows", 200)
    main()
