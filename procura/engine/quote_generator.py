from __future__ import annotations

from decimal import Decimal
from typing import List, Mapping, Optional
from uuid import uuid4

from procura.calculators.tier_price import TierResolver
from procura.core.logging_config import logger
from procura.domain.models import (
    Quote,
    QuoteItem,
    QuoteStatus,
    Request,
    RequestItem,
    SupplierOffering,
    sum_lines,
)
from procura.errors import OfferingUnavailable, PricingNotice
from procura.observability.metrics import record_notice

from .policy import Clock, ValidityPolicy, utc_now

D = Decimal

NOTE_NOT_OFFERED = "Supplier does not offer this product"
NOTE_UNAVAILABLE = "Product currently unavailable from supplier"


def quote_item_id(supplier_id: str, request_item_id: str) -> str:
    return f"qitem_{supplier_id}_{request_item_id}"


def price_request_item(
    resolver: TierResolver,
    supplier_id: str,
    item: RequestItem,
    offering: Optional[SupplierOffering],
    *,
    quantity: Optional[D] = None,
    request_id: Optional[str] = None,
) -> tuple[QuoteItem, List[PricingNotice]]:
    """
    Price one request line against one supplier offering.

    `quantity` is the quantity the tier is resolved at; it defaults to the
    line's own quantity (single-request context). The line keeps its own
    quantity either way. Missing or unavailable offerings give a zero-priced,
    out-of-stock line: the line is kept so totals remain traceable.
    """
    if offering is None or not offering.available:
        note = NOTE_NOT_OFFERED if offering is None else NOTE_UNAVAILABLE
        notice = OfferingUnavailable(
            note,
            meta={"supplier_id": supplier_id, "product_id": item.product_id, "request_item_id": item.id},
        )
        record_notice(notice.code)
        qi = QuoteItem(
            id=quote_item_id(supplier_id, item.id),
            request_item_id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit=item.unit,
            price_per_unit=D("0"),
            in_stock=False,
            note=note,
            source_request_id=request_id,
            product_name=item.product_name,
            supplier_product_code=offering.supplier_product_code if offering else None,
        )
        return qi, [notice]

    res = resolver.resolve_offering(offering, quantity if quantity is not None else item.quantity)
    qi = QuoteItem(
        id=quote_item_id(supplier_id, item.id),
        request_item_id=item.id,
        product_id=item.product_id,
        quantity=item.quantity,
        unit=item.unit,
        price_per_unit=res.price,
        in_stock=offering.available,
        note=None if res.tier is not None or not offering.volume_tiers else "Base price (no matching volume tier)",
        source_request_id=request_id,
        product_name=item.product_name,
        supplier_product_code=offering.supplier_product_code,
    )
    return qi, list(res.warnings)


class QuoteGenerator:
    """
    One quote per (request, supplier): every request line is priced at its own
    quantity against the supplier's offering for that product.

    Pure transformation; callers persist or display the result.
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

    def generate(
        self,
        request: Request,
        supplier_id: str,
        offerings_by_product: Mapping[str, SupplierOffering],
    ) -> Quote:
        now = self.clock()

        items: List[QuoteItem] = []
        warnings: List[PricingNotice] = []
        supplier_name: Optional[str] = None

        for ri in request.items:
            offering = offerings_by_product.get(ri.product_id)
            if offering is not None and offering.supplier_id != supplier_id:
                # offerings van een andere leverancier tellen niet
                offering = None
            if offering is not None and offering.supplier_name:
                supplier_name = offering.supplier_name

            qi, notices = price_request_item(self.resolver, supplier_id, ri, offering, request_id=request.id)
            items.append(qi)
            warnings.extend(notices)

        quote = Quote(
            id=f"quote_{supplier_id}_{request.id}_{uuid4().hex[:8]}",
            supplier_id=supplier_id,
            request_id=request.id,
            items=tuple(items),
            total_amount=sum_lines(items),
            created_at=now,
            expiry_date=now + self.policy.single_request_validity,
            status=QuoteStatus.RECEIVED,
            delivery_date=now + self.policy.delivery_lead_time,
            validity_days=self.policy.single_request_days,
            supplier_name=supplier_name,
            warnings=tuple(warnings),
        )

        logger.bind(
            quote_id=quote.id,
            request_id=request.id,
            supplier_id=supplier_id,
            line_count=len(items),
            in_stock=sum(1 for it in items if it.in_stock),
            total=str(quote.total_amount),
        ).debug("quote_generated")
        return quote
