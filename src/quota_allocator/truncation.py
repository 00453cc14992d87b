"""
Cross-entity truncation for entities that share one tier axis (e.g. several
goods in the same price band).

Tiers below the deepest tier still used by at least two entities are cut,
and every entity is re-solved inside the narrowed ladder against its own
target. The batch is all-or-nothing: if any entity ends up all-zero, every
entity gets its pre-call allocation back.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np

from .errors import DegenerateAllocationError, InvalidInputError
from .ladder import GradeLadder, TIER_COUNT, TIER_LABELS
from .matrix import DEFAULT_PRECISION, EPS, validate_precision, validate_target
from .single_level import solve_quota_vector

logger = logging.getLogger(__name__)


def _as_tier_vector(values, what: str) -> np.ndarray:
    try:
        vec = np.asarray(values, dtype=float).copy()
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"{what} must be numeric: {exc}") from exc
    if vec.shape != (TIER_COUNT,):
        raise InvalidInputError(f"{what} must have {TIER_COUNT} tiers, got shape {vec.shape}")
    vec = np.nan_to_num(vec, nan=0.0)
    if (vec < 0).any():
        raise InvalidInputError(f"{what} must be >= 0")
    return vec


@dataclass
class EntityAllocationRecord:
    entity_id: str
    target_amount: float
    allocation: np.ndarray
    boosted: bool = False          # use the boosted weight vector when one is supplied
    name: Optional[str] = None
    meta: dict = field(default_factory=dict)

    def __post_init__(self):
        self.allocation = _as_tier_vector(self.allocation, f"allocation of {self.entity_id!r}")

    @property
    def label(self) -> str:
        return f"{self.name}({self.entity_id})" if self.name else str(self.entity_id)


def find_cutoff_tier(entities: Sequence[EntityAllocationRecord], ladder: GradeLadder) -> Optional[int]:
    """Deepest in-range tier where at least two entities hold a positive allocation."""
    if len(entities) < 2:
        return None
    positive = np.vstack([e.allocation for e in entities]) > EPS
    users = positive.sum(axis=0)
    for tier in range(ladder.low_tier, ladder.high_tier - 1, -1):
        if users[tier] >= 2:
            return tier
    return None


def truncate_and_adjust(entities: Sequence[EntityAllocationRecord], weights, ladder: Optional[GradeLadder] = None,
                        boosted_weights=None, precision: int = DEFAULT_PRECISION) -> Optional[int]:
    """Truncate and re-solve a batch in place; returns the cutoff tier (None: nothing to cut).

    Every write goes into the existing allocation arrays, so references held by
    the caller see both the result and a rollback. Raises
    DegenerateAllocationError after restoring every entity's snapshot.
    """
    ladder = ladder or GradeLadder.full()
    precision = validate_precision(precision)
    entities = list(entities)
    if not entities:
        return None
    base = _as_tier_vector(weights, "weights")
    boosted = _as_tier_vector(boosted_weights, "boosted weights") if boosted_weights is not None else None
    targets = [validate_target(e.target_amount) for e in entities]

    snapshot = [e.allocation.copy() for e in entities]
    outside = ~ladder.mask()
    cutoff = find_cutoff_tier(entities, ladder)
    if cutoff is None:
        logger.info(f"[truncate] no tier in {ladder} shared by two entities; batch of {len(entities)} left as is")
        return None

    narrowed = ladder.narrow(cutoff)
    logger.info(f"[truncate] cutoff at {TIER_LABELS[cutoff]} for {len(entities)} entities; "
                f"clearing {TIER_LABELS[cutoff + 1] if cutoff < ladder.low_tier else '-'}..{TIER_LABELS[ladder.low_tier]}")

    for entity in entities:
        entity.allocation[cutoff + 1:ladder.low_tier + 1] = 0.0
        entity.allocation[outside] = 0.0

    failed = []
    for entity, target in zip(entities, targets):
        w = boosted if (entity.boosted and boosted is not None) else base
        if w[narrowed.high_tier:narrowed.low_tier + 1].sum() <= 0:
            entity.allocation[:] = 0.0
            failed.append(entity.label)
            continue
        entity.allocation[:] = solve_quota_vector(w, target, narrowed, precision)
        if not (entity.allocation > 0).any():
            failed.append(entity.label)

    if failed:
        for entity, saved in zip(entities, snapshot):
            entity.allocation[:] = saved
        logger.warning(f"❌ truncation rolled back: {len(failed)} entit(ies) all-zero at cutoff {TIER_LABELS[cutoff]}")
        raise DegenerateAllocationError(failed)
    return cutoff


def truncate_bands(bands, weights, ladder: Optional[GradeLadder] = None, boosted_weights=None,
                   precision: int = DEFAULT_PRECISION) -> Dict[object, Optional[int]]:
    """Run truncate_and_adjust per band; failed bands are rolled back and reported together."""
    cutoffs: Dict[object, Optional[int]] = {}
    failed_entities, failed_bands = [], []
    for band, entities in bands.items():
        entities = list(entities)
        if len(entities) < 2:
            logger.debug(f"[truncate] band {band}: {len(entities)} entity, skipped")
            continue
        try:
            cutoffs[band] = truncate_and_adjust(entities, weights, ladder, boosted_weights, precision)
        except DegenerateAllocationError as exc:
            failed_entities.extend(exc.entities)
            failed_bands.append(band)
    if failed_entities:
        raise DegenerateAllocationError(failed_entities, bands=failed_bands)
    return cutoffs
