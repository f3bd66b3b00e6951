from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from procura.domain.models import VolumeTier


@dataclass(frozen=True)
class TierProblem:
    index: int  # positie in de aangeleverde volgorde
    code: str
    message: str


def validate_tier_set(tiers: Sequence[VolumeTier]) -> List[TierProblem]:
    """
    Structural checks on a volume tier set (no pricing logic).

    A well-formed set is ordered by ascending min_quantity, has disjoint
    ranges, has at most one open-ended tier (and only as the last one), and
    has non-negative bounds and prices. Gaps are allowed: a quantity inside a
    gap simply falls back to the base price.
    """
    problems: List[TierProblem] = []

    for idx, t in enumerate(tiers):
        if t.min_quantity < 0:
            problems.append(TierProblem(idx, "OUT_OF_RANGE", f"min_quantity must be >= 0, got {t.min_quantity}"))
        if t.price < 0:
            problems.append(TierProblem(idx, "OUT_OF_RANGE", f"price must be >= 0, got {t.price}"))
        if t.max_quantity is not None and t.max_quantity < t.min_quantity:
            problems.append(
                TierProblem(idx, "INVALID_RANGE", f"max_quantity {t.max_quantity} < min_quantity {t.min_quantity}")
            )

    for idx in range(len(tiers) - 1):
        cur, nxt = tiers[idx], tiers[idx + 1]

        if nxt.min_quantity < cur.min_quantity:
            problems.append(
                TierProblem(idx + 1, "NOT_ORDERED", f"min_quantity {nxt.min_quantity} follows {cur.min_quantity}")
            )
            continue

        if cur.max_quantity is None:
            problems.append(TierProblem(idx + 1, "OVERLAP", "Tier follows an open-ended tier."))
            continue

        # overlap: volgende min moet boven de vorige max liggen
        if nxt.min_quantity <= cur.max_quantity:
            problems.append(
                TierProblem(
                    idx + 1,
                    "OVERLAP",
                    f"Ranges overlap: previous ends at {cur.max_quantity}, next starts at {nxt.min_quantity}.",
                )
            )

    return problems
