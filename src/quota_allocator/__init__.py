"""
Tiered Quota Allocator Package

Allocates a target amount across segments x 30 ordinal customer tiers with
non-increasing per-tier quotas and minimal error against the target.
"""

__version__ = "0.1.0"

from .errors import (
    AllocationError, InvalidInputError, NoCustomerDataError, AllocationInfeasibleError,
    InvalidGroupRatioError, UnmappedGroupError, DegenerateAllocationError,
)
from .ladder import GradeLadder, TIER_COUNT, TIER_LABELS, parse_grade
from .matrix import as_customer_frame, achieved_total, DEFAULT_PRECISION
from .single_level import Candidate, coarse_phase, solve_quota_vector, distribute_single_level
from .multi_segment import distribute_multi_segment
from .weighted_group import (
    RatioStrategy, market_type_of, normalize_group_ratios, resolve_group_ratios, distribute_weighted_groups,
)
from .truncation import EntityAllocationRecord, find_cutoff_tier, truncate_and_adjust, truncate_bands
from .selector import Algorithm, AllocationResult, select_algorithm, allocate
from .main import cli, summarize

__all__ = [
    "GradeLadder",
    "TIER_COUNT",
    "TIER_LABELS",
    "parse_grade",
    "as_customer_frame",
    "achieved_total",
    "DEFAULT_PRECISION",
    "Candidate",
    "coarse_phase",
    "solve_quota_vector",
    "distribute_single_level",
    "distribute_multi_segment",
    "RatioStrategy",
    "market_type_of",
    "normalize_group_ratios",
    "resolve_group_ratios",
    "distribute_weighted_groups",
    "EntityAllocationRecord",
    "find_cutoff_tier",
    "truncate_and_adjust",
    "truncate_bands",
    "Algorithm",
    "AllocationResult",
    "select_algorithm",
    "allocate",
    "cli",
    "summarize",
    "AllocationError",
    "InvalidInputError",
    "NoCustomerDataError",
    "AllocationInfeasibleError",
    "InvalidGroupRatioError",
    "UnmappedGroupError",
    "DegenerateAllocationError",
]
