from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from procura.calculators.tier_price import TierResolver
from procura.core.logging_config import logger
from procura.domain.models import (
    BundledQuote,
    Quote,
    QuoteItem,
    QuoteStatus,
    SupplierOffering,
    sum_lines,
)
from procura.errors import OfferingUnavailable, PricingNotice
from procura.observability.metrics import record_notice

from .policy import Clock, ValidityPolicy, utc_now
from .quote_generator import NOTE_NOT_OFFERED, NOTE_UNAVAILABLE

D = Decimal

OfferingKey = Tuple[str, str]  # (supplier_id, product_id)
OfferingIndex = Mapping[OfferingKey, SupplierOffering]
QuoteSource = Callable[[str], Sequence[Quote]]


def index_offerings(offerings: Iterable[SupplierOffering]) -> Dict[OfferingKey, SupplierOffering]:
    """(supplier_id, product_id) -> offering. Later duplicates win."""
    return {(o.supplier_id, o.product_id): o for o in offerings}


def unique_ids(ids: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for rid in ids:
        if rid not in seen:
            seen.add(rid)
            out.append(rid)
    return out


@dataclass(frozen=True)
class _Contribution:
    request_id: str
    supplier_id: str
    supplier_name: Optional[str]
    item: QuoteItem


class QuoteBundler:
    """
    Folds per-request quotes into one quote per supplier.

    Lines are grouped on (supplier_id, product_id); the tier price is resolved
    once per group at the summed quantity and replaces the price of every line
    in the group. Lines are not merged: each request keeps its own line and
    quantity, tagged with the request it came from.
    """

    def __init__(
        self,
        resolver: Optional[TierResolver] = None,
        policy: Optional[ValidityPolicy] = None,
        clock: Clock = utc_now,
    ):
        self.resolver = resolver or TierResolver()
        self.policy = policy or ValidityPolicy.from_settings()
        self.clock = clock

    # -----------------------
    # Public
    # -----------------------

    def bundle(
        self,
        request_ids: Iterable[str],
        quote_source: QuoteSource,
        offerings: OfferingIndex,
    ) -> List[BundledQuote]:
        ids = unique_ids(request_ids)
        contributions: List[_Contribution] = []
        for rid in ids:
            contributions.extend(self._from_quotes(rid, quote_source(rid)))
        return self._fold(ids, contributions, offerings)

    def extend(
        self,
        bundles: Sequence[BundledQuote],
        request_ids: Iterable[str],
        quote_source: QuoteSource,
        offerings: OfferingIndex,
    ) -> List[BundledQuote]:
        """
        Add requests to existing bundles.

        Equivalent to bundling the union of all request ids directly. Lines of
        the existing bundles are reused; the already-bundled requests are only
        re-read for suppliers that had no bundle yet.
        """
        covered = {b.supplier_id for b in bundles}
        old_ids = unique_ids(rid for b in bundles for rid in sorted(b.request_ids))
        already = set(old_ids)
        new_ids = [rid for rid in unique_ids(request_ids) if rid not in already]

        contributions: List[_Contribution] = []
        for b in bundles:
            for it in b.items:
                contributions.append(
                    _Contribution(
                        request_id=it.source_request_id or "",
                        supplier_id=b.supplier_id,
                        supplier_name=b.supplier_name,
                        item=it,
                    )
                )

        for rid in old_ids:
            quotes = [qt for qt in quote_source(rid) if qt.supplier_id not in covered]
            contributions.extend(self._from_quotes(rid, quotes))

        for rid in new_ids:
            contributions.extend(self._from_quotes(rid, quote_source(rid)))

        return self._fold(old_ids + new_ids, contributions, offerings)

    # -----------------------
    # Internals
    # -----------------------

    @staticmethod
    def _from_quotes(request_id: str, quotes: Sequence[Quote]) -> List[_Contribution]:
        out: List[_Contribution] = []
        for qt in quotes:
            for it in qt.items:
                out.append(
                    _Contribution(
                        request_id=request_id,
                        supplier_id=qt.supplier_id,
                        supplier_name=qt.supplier_name,
                        item=it,
                    )
                )
        return out

    @staticmethod
    def _group(contributions: Iterable[_Contribution]) -> Dict[str, Dict[str, List[_Contribution]]]:
        grouped: Dict[str, Dict[str, List[_Contribution]]] = {}
        for c in contributions:
            grouped.setdefault(c.supplier_id, {}).setdefault(c.item.product_id, []).append(c)
        return grouped

    def _fold(
        self,
        request_ids: List[str],
        contributions: List[_Contribution],
        offerings: OfferingIndex,
    ) -> List[BundledQuote]:
        now = self.clock()
        out: List[BundledQuote] = []

        for supplier_id, by_product in self._group(contributions).items():
            if not any((supplier_id, pid) in offerings for pid in by_product):
                logger.bind(supplier_id=supplier_id, products=list(by_product)).debug("bundle_skipped_no_offerings")
                continue

            items: List[QuoteItem] = []
            warnings: List[PricingNotice] = []
            aggregates: Dict[str, D] = {}
            supplier_name: Optional[str] = None
            sources: set[str] = set()

            for product_id, group in by_product.items():
                total_qty = sum((c.item.quantity for c in group), D("0"))
                aggregates[product_id] = total_qty
                offering = offerings.get((supplier_id, product_id))

                if offering is None or not offering.available:
                    base_note = NOTE_NOT_OFFERED if offering is None else NOTE_UNAVAILABLE
                    notice = OfferingUnavailable(
                        base_note,
                        meta={"supplier_id": supplier_id, "product_id": product_id, "aggregate_qty": str(total_qty)},
                    )
                    record_notice(notice.code)
                    warnings.append(notice)
                    price, in_stock = D("0"), False
                else:
                    base_note = None
                    res = self.resolver.resolve_offering(offering, total_qty)
                    warnings.extend(res.warnings)
                    price, in_stock = res.price, offering.available
                    supplier_name = supplier_name or offering.supplier_name

                for c in group:
                    provenance = f"From request {c.request_id}; priced at aggregate quantity {total_qty}"
                    items.append(
                        replace(
                            c.item,
                            price_per_unit=price,
                            in_stock=in_stock,
                            source_request_id=c.request_id,
                            note=f"{base_note}. {provenance}" if base_note else provenance,
                        )
                    )
                    sources.add(c.request_id)
                    supplier_name = supplier_name or c.supplier_name

            bundled = BundledQuote(
                id=f"bundle_{supplier_id}_{uuid4().hex[:8]}",
                supplier_id=supplier_id,
                request_ids=frozenset(request_ids) | frozenset(sources),
                items=tuple(items),
                total_amount=sum_lines(items),
                created_at=now,
                expiry_date=now + self.policy.bundled_validity,
                status=QuoteStatus.RECEIVED,
                delivery_date=now + self.policy.delivery_lead_time,
                validity_days=self.policy.bundled_days,
                supplier_name=supplier_name,
                warnings=tuple(warnings),
                aggregate_quantities=aggregates,
            )
            out.append(bundled)

            logger.bind(
                quote_id=bundled.id,
                supplier_id=supplier_id,
                request_count=len(bundled.request_ids),
                line_count=len(items),
                total=str(bundled.total_amount),
            ).debug("bundled_quote_generated")

        return out
