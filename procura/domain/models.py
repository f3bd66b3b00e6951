from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

D = Decimal
CENT = D("0.01")


def q(x: D) -> D:
    return x.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> D:
    if isinstance(value, D):
        return value
    return D(str(value))


class RequestPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequestStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class QuoteStatus(str, Enum):
    SENT = "sent"
    RECEIVED = "received"
    REJECTED = "rejected"
    EXPIRED = "expired"


# -----------------------------
# Requests (input, owned by persistence)
# -----------------------------


@dataclass(frozen=True)
class RequestItem:
    id: str
    product_id: str
    quantity: D
    unit: str
    product_name: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity))
        if self.quantity <= 0:
            raise ValueError(f"RequestItem {self.id}: quantity must be positive, got {self.quantity}")


@dataclass(frozen=True)
class Request:
    id: str
    items: Tuple[RequestItem, ...] = ()
    needed_by: Optional[datetime] = None
    priority: RequestPriority = RequestPriority.MEDIUM
    title: Optional[str] = None
    created_by: Optional[str] = None
    notes: Optional[str] = None
    status: RequestStatus = RequestStatus.SUBMITTED

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


# -----------------------------
# Supplier catalog
# -----------------------------


@dataclass(frozen=True)
class VolumeTier:
    min_quantity: D
    price: D
    max_quantity: Optional[D] = None  # None = open-ended

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_quantity", to_decimal(self.min_quantity))
        object.__setattr__(self, "price", to_decimal(self.price))
        if self.max_quantity is not None:
            object.__setattr__(self, "max_quantity", to_decimal(self.max_quantity))

    def matches(self, quantity: D) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity

    def label(self) -> str:
        upper = "+" if self.max_quantity is None else f"-{self.max_quantity}"
        return f"{self.min_quantity}{upper} @ {self.price}"


@dataclass(frozen=True)
class SupplierOffering:
    supplier_id: str
    product_id: str
    base_price: D
    volume_tiers: Tuple[VolumeTier, ...] = ()
    available: bool = True
    supplier_name: Optional[str] = None
    supplier_product_code: Optional[str] = None
    minimum_order_quantity: Optional[D] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_price", to_decimal(self.base_price))
        object.__setattr__(self, "volume_tiers", tuple(self.volume_tiers))
        if self.minimum_order_quantity is not None:
            object.__setattr__(self, "minimum_order_quantity", to_decimal(self.minimum_order_quantity))


# -----------------------------
# Quotes (derived)
# -----------------------------


@dataclass(frozen=True)
class QuoteItem:
    id: str
    request_item_id: str
    product_id: str
    quantity: D
    unit: str
    price_per_unit: D
    in_stock: bool
    note: Optional[str] = None
    source_request_id: Optional[str] = None
    product_name: Optional[str] = None
    supplier_product_code: Optional[str] = None

    @property
    def line_total(self) -> D:
        return self.price_per_unit * self.quantity


def sum_lines(items: List[QuoteItem] | Tuple[QuoteItem, ...]) -> D:
    total = D("0")
    for it in items:
        total += it.line_total
    return q(total)


@dataclass(frozen=True)
class Quote:
    """
    One supplier's quote for one request.
    `status` is the stored status; `expired` is derived at read time via
    procura.quotes.validity.effective_status().
    """

    id: str
    supplier_id: str
    request_id: str
    items: Tuple[QuoteItem, ...]
    total_amount: D
    created_at: datetime
    expiry_date: datetime
    status: QuoteStatus = QuoteStatus.RECEIVED
    delivery_date: Optional[datetime] = None
    validity_days: int = 0
    supplier_name: Optional[str] = None
    warnings: Tuple[Any, ...] = ()

    is_bundled = False

    @property
    def request_ids(self) -> FrozenSet[str]:
        return frozenset({self.request_id})

    def with_status(self, status: QuoteStatus) -> "Quote":
        return replace(self, status=status)

    def item_for(self, product_id: str) -> Optional[QuoteItem]:
        for it in self.items:
            if it.product_id == product_id:
                return it
        return None

    def as_dict(self) -> Dict[str, Any]:
        return _quote_dict(self, {"request_id": self.request_id})


@dataclass(frozen=True)
class BundledQuote:
    """
    One supplier's quote over several requests.
    Items keep their per-request quantity and point back to their request via
    `source_request_id`; all lines of one product share the aggregate-tier price.
    """

    id: str
    supplier_id: str
    request_ids: FrozenSet[str]
    items: Tuple[QuoteItem, ...]
    total_amount: D
    created_at: datetime
    expiry_date: datetime
    status: QuoteStatus = QuoteStatus.RECEIVED
    delivery_date: Optional[datetime] = None
    validity_days: int = 0
    supplier_name: Optional[str] = None
    warnings: Tuple[Any, ...] = ()
    # afgeleid uit items; telt niet mee voor eq/hash (dict is unhashable)
    aggregate_quantities: Dict[str, D] = field(default_factory=dict, compare=False)

    is_bundled = True

    def with_status(self, status: QuoteStatus) -> "BundledQuote":
        return replace(self, status=status)

    def item_for(self, product_id: str) -> Optional[QuoteItem]:
        for it in self.items:
            if it.product_id == product_id:
                return it
        return None

    def items_for_request(self, request_id: str) -> List[QuoteItem]:
        return [it for it in self.items if it.source_request_id == request_id]

    def as_dict(self) -> Dict[str, Any]:
        return _quote_dict(
            self,
            {
                "request_ids": sorted(self.request_ids),
                "aggregate_quantities": {k: str(v) for k, v in self.aggregate_quantities.items()},
            },
        )


def _quote_dict(quote: Quote | BundledQuote, extra: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": quote.id,
        "supplier_id": quote.supplier_id,
        "supplier_name": quote.supplier_name,
        "is_bundled": quote.is_bundled,
        "created_at": quote.created_at.isoformat(),
        "expiry_date": quote.expiry_date.isoformat(),
        "delivery_date": quote.delivery_date.isoformat() if quote.delivery_date else None,
        "validity_days": quote.validity_days,
        "status": quote.status.value,
        "total_amount": str(quote.total_amount),
        "items": [
            {
                "id": it.id,
                "request_item_id": it.request_item_id,
                "source_request_id": it.source_request_id,
                "product_id": it.product_id,
                "product_name": it.product_name,
                "quantity": str(it.quantity),
                "unit": it.unit,
                "price_per_unit": str(it.price_per_unit),
                "in_stock": it.in_stock,
                "note": it.note,
            }
            for it in quote.items
        ],
        "warnings": [w.as_dict() for w in quote.warnings],
    }
    out.update(extra)
    return out
