"""
Utility scripts for the Tiered Quota Allocator project.
"""

from .validate import check_allocation
from .report import tier_usage

__all__ = [
    "check_allocation",
    "tier_usage",
]
