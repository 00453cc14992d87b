#!/usr/bin/env python3
import argparse
import pandas as pd

from quota_allocator.ladder import TIER_LABELS
from quota_allocator.main import summarize


def tier_usage(allocation: pd.DataFrame) -> pd.Series:
    """How many segments hold a positive quota at each tier."""
    return allocation.gt(0).sum(axis=0).reindex(TIER_LABELS, fill_value=0)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--customers", required=True)
    ap.add_argument("--allocation", required=True)
    ap.add_argument("--target", type=float, required=True)
    ap.add_argument("--top", type=int, default=15, help="segments to list, largest first")
    args = ap.parse_args()

    c = pd.read_csv(args.customers, dtype={'segment': str}).drop_duplicates('segment').set_index('segment')
    a = pd.read_csv(args.allocation, dtype={'segment': str}).set_index('segment')
    need = set(TIER_LABELS)
    if (need - set(c.columns)) or (need - set(a.columns)):
        raise ValueError("customers and allocation must both carry D30..D1 columns")
    c, a = c[TIER_LABELS].fillna(0), a[TIER_LABELS].fillna(0)

    stats = summarize(a, c, args.target)
    usage = tier_usage(a)
    used_tiers = usage[usage > 0]

    print("── report ─────────────────────────────")
    print(f"segments          : {stats['n_segments']:,}")
    print(f"target            : {args.target:,.2f}")
    print(f"achieved          : {stats['achieved']:,.2f}")
    print(f"error             : {stats['error']:,.4f}")
    print(f"fill rate         : {stats['fill_rate']*100:.2f}%")
    if not used_tiers.empty:
        print(f"tiers in use      : {used_tiers.index[0]}..{used_tiers.index[-1]}")
    top = sorted(stats['per_segment'].items(), key=lambda kv: kv[1], reverse=True)[:args.top]
    if top:
        print("\nLargest segments:")
        for segment, amount in top:
            print(f"  {segment:<20} achieved={amount:>12,.2f}  deepest={stats['deepest_tier'][segment] or '-'}")
    print("──────────────────────────────────────")


if __name__ == "__main__":
    main()
