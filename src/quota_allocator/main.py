#!/usr/bin/env python3
"""
Tiered Quota Allocator – batch driver

What this file contains:
• Input loading and validation (customer matrix CSV, optional group map / ratios)
• Allocation via the selector:
    --mode auto      → single-level for 1 segment, weighted when groups are given, else column-wise
    --mode single    → one shared quota vector for all segments
    --mode multi     → column-wise with per-segment fine adjustment
    --mode weighted  → group split by --group_ratios / --ratio_strategy
• Summary: per-segment achieved amount, deepest used tier, error, invariant checks

Input CSVs:
  customers     : segment, D30, D29, ..., D1
  groups        : segment, group_id
  group_ratios  : group_id, ratio
"""

from __future__ import annotations
import argparse, sys, time, textwrap, logging
import pandas as pd

from .errors import AllocationError
from .ladder import GradeLadder, TIER_LABELS
from .matrix import DEFAULT_PRECISION, is_non_increasing, outside_is_zero
from .selector import allocate
from .weighted_group import RatioStrategy

logger = logging.getLogger(__name__)


def _to_float(s):
    return pd.to_numeric(s, errors="coerce").fillna(0).astype(float)


def load_inputs(customers_csv, groups_csv=None, group_ratios_csv=None):
    customers = (pd.read_csv(customers_csv, dtype={'segment': str})
                   .rename(columns=str.strip))
    need_customers = {'segment', *TIER_LABELS}
    if (m := need_customers - set(customers.columns)):
        raise ValueError(f"customers missing {sorted(m)}")
    customers = (customers.drop_duplicates('segment')
                          .set_index('segment')[TIER_LABELS]
                          .apply(_to_float))

    grouping = None
    if groups_csv:
        groups = (pd.read_csv(groups_csv, dtype={'segment': str, 'group_id': str})
                    .rename(columns=str.strip))
        if (m := {'segment', 'group_id'} - set(groups.columns)):
            raise ValueError(f"groups missing {m}")
        grouping = groups.drop_duplicates('segment').set_index('segment')['group_id'].to_dict()

    group_ratios = None
    if group_ratios_csv:
        ratios = (pd.read_csv(group_ratios_csv, dtype={'group_id': str})
                    .rename(columns=str.strip))
        if (m := {'group_id', 'ratio'} - set(ratios.columns)):
            raise ValueError(f"group_ratios missing {m}")
        ratios['ratio'] = _to_float(ratios['ratio'])
        group_ratios = ratios.drop_duplicates('group_id').set_index('group_id')['ratio'].to_dict()

    return customers, grouping, group_ratios


def summarize(allocation: pd.DataFrame, customers: pd.DataFrame, target: float):
    """Per-segment achieved amounts, deepest used tier, and the overall error."""
    per_segment = (allocation * customers.reindex(allocation.index)).sum(axis=1)
    used = allocation.gt(0)
    deepest = used.apply(lambda r: r[r].index[-1] if r.any() else None, axis=1)
    achieved = float(per_segment.sum())
    return {'n_segments': int(len(allocation)),
            'per_segment': {str(k): float(v) for k, v in per_segment.items()},
            'deepest_tier': {str(k): v for k, v in deepest.items()},
            'achieved': achieved,
            'error': abs(achieved - float(target)),
            'fill_rate': achieved / float(target) if target else 0.0}


def print_summary(allocation, customers, ladder, target, label, t_sec):
    stats = summarize(allocation, customers, target)
    mono_bad = [s for s, row in allocation.iterrows() if not is_non_increasing(row.to_numpy(), ladder)]
    range_bad = [s for s, row in allocation.iterrows() if not outside_is_zero(row.to_numpy(), ladder)]

    summary_text = textwrap.dedent(f"""
        ── {label} summary ───────────────────────────────────────
        segments          : {stats['n_segments']:,}
        ladder            : {ladder}
        target            : {float(target):,.2f}
        achieved          : {stats['achieved']:,.2f}
        error             : {stats['error']:,.4f}
        fill rate         : {stats['fill_rate']*100:.2f} %
        non-increasing    : {'OK' if not mono_bad else mono_bad}
        outside ladder    : {'OK' if not range_bad else range_bad}
        wall time         : {t_sec:.2f}s
        ──────────────────────────────────────────────────────────
    """).strip()
    logger.info(summary_text)

    for segment, amount in stats['per_segment'].items():
        logger.info(f"  {segment:<20} achieved={amount:>12,.2f}  deepest={stats['deepest_tier'][segment] or '-'}")


# =====================================================================
# Driver
# =====================================================================
def main(cfg):
    t0 = time.time()
    customers, grouping, group_ratios = load_inputs(cfg.customers, cfg.groups, cfg.group_ratios)
    ladder = GradeLadder.from_grades(cfg.high_grade, cfg.low_grade)
    logger.info(f"segments: {len(customers):,}   customers in range: {customers[ladder.labels].to_numpy().sum():,.0f}")
    if grouping is not None:
        logger.info(f"groups: {len(set(grouping.values())):,}   ratios: {group_ratios}")

    algorithm = None if cfg.mode == "auto" else cfg.mode
    result = allocate(
        list(customers.index), customers, cfg.target, ladder,
        algorithm=algorithm,
        grouping=grouping,
        group_ratios=group_ratios,
        strategy=RatioStrategy(cfg.ratio_strategy),
        precision=cfg.precision,
    )

    print_summary(result.allocation, customers, ladder, cfg.target, result.algorithm.name, time.time() - t0)
    result.allocation.reset_index().to_csv(cfg.out, index=False)
    logger.info(f"✅ wrote {cfg.out}   (total wall time {time.time()-t0:.1f}s)")
    return result


def cli(argv=None):
    ap = argparse.ArgumentParser(description="Allocate a target amount across segments x 30 customer tiers")
    ap.add_argument("--customers", required=True, help="CSV: segment, D30..D1")
    ap.add_argument("--target", type=float, required=True, help="amount to distribute")
    ap.add_argument("--out", required=True)

    ap.add_argument("--mode", choices=("auto", "single", "multi", "weighted"), default="auto")
    ap.add_argument("--high_grade", default="D30", help="highest usable grade (HG)")
    ap.add_argument("--low_grade", default="D1", help="lowest usable grade (LG)")
    ap.add_argument("--precision", type=int, default=DEFAULT_PRECISION, help="decimal places kept on quotas")

    # Weighted group knobs
    ap.add_argument("--groups", default=None, help="CSV: segment, group_id")
    ap.add_argument("--group_ratios", default=None, help="CSV: group_id, ratio")
    ap.add_argument("--ratio_strategy", choices=[s.value for s in RatioStrategy], default=RatioStrategy.FIXED.value,
                    help="fixed=use --group_ratios; default_market=urban 0.4 / rural 0.6; customer_proportional=by in-range customers")

    ap.add_argument("--log_level", choices=("DEBUG", "INFO", "WARNING", "ERROR"), default="INFO", help="logging level")
    cfg = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        main(cfg)
    except (AllocationError, ValueError, OSError):
        logger.exception("Unhandled error during allocation run")
        sys.exit(1)


if __name__ == "__main__":
    cli()
