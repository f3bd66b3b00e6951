from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence

from procura.core.logging_config import logger
from procura.data_validators.tiers import validate_tier_set
from procura.domain.models import SupplierOffering, VolumeTier, to_decimal
from procura.errors import MalformedTierSet, PricingNotice, TierResolutionWarning
from procura.observability.metrics import record_notice

D = Decimal


@dataclass(frozen=True)
class TierResolution:
    price: D
    tier: Optional[VolumeTier] = None  # None => base price
    warnings: List[PricingNotice] = field(default_factory=list)

    @property
    def used_base_price(self) -> bool:
        return self.tier is None


class TierResolver:
    """
    Picks the unit price for a quantity from a set of volume tiers.

    Bounds are inclusive on both ends: a quantity equal to a tier's
    max_quantity belongs to that tier, not the next one. An empty tier set
    means "no volume pricing" and silently yields the base price; a non-empty
    set without a match yields the base price plus a TierResolutionWarning.
    Malformed sets are logged and resolved on ascending min_quantity, so the
    lower tier wins on overlap.
    """

    def resolve(self, tiers: Sequence[VolumeTier], quantity, base_price) -> TierResolution:
        qty = to_decimal(quantity)
        base = to_decimal(base_price)
        tiers = tuple(tiers)

        if not tiers:
            return TierResolution(price=base)

        warnings: List[PricingNotice] = []

        problems = validate_tier_set(tiers)
        if problems:
            notice = MalformedTierSet(
                "Volume tiers are not disjoint and ascending; matching on ascending min_quantity.",
                meta={"problems": [f"{p.index}:{p.code}" for p in problems]},
            )
            warnings.append(notice)
            record_notice(notice.code)
            logger.bind(problems=[p.message for p in problems], qty=str(qty)).warning("malformed_tier_set")
            tiers = tuple(sorted(tiers, key=lambda t: t.min_quantity))

        for t in tiers:
            if t.matches(qty):
                return TierResolution(price=t.price, tier=t, warnings=warnings)

        notice = TierResolutionWarning(
            f"No volume tier matches quantity {qty}; using base price {base}.",
            meta={"qty": str(qty), "base_price": str(base), "tiers": [t.label() for t in tiers]},
        )
        warnings.append(notice)
        record_notice(notice.code)
        logger.bind(qty=str(qty), base_price=str(base)).warning("tier_resolution_fallback")
        return TierResolution(price=base, warnings=warnings)

    def resolve_offering(self, offering: SupplierOffering, quantity) -> TierResolution:
        return self.resolve(offering.volume_tiers, quantity, offering.base_price)


_default_resolver = TierResolver()


def resolve(tiers: Sequence[VolumeTier], quantity, base_price) -> TierResolution:
    return _default_resolver.resolve(tiers, quantity, base_price)


def resolve_price(tiers: Sequence[VolumeTier], quantity, base_price) -> D:
    return _default_resolver.resolve(tiers, quantity, base_price).price
