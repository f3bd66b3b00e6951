from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from procura.domain.models import Request

from .validity import AnyQuote, is_quote_valid

D = Decimal


@dataclass
class SupplierProductQuote:
    supplier_id: str
    supplier_name: Optional[str]
    price: D
    in_stock: bool
    supplier_product_code: Optional[str] = None


@dataclass
class ProductComparison:
    product_id: str
    product_name: Optional[str]
    unit: str
    quantity: D  # hoogste gevraagde hoeveelheid over de requests
    request_ids: List[str] = field(default_factory=list)
    supplier_quotes: List[SupplierProductQuote] = field(default_factory=list)

    def cheapest_in_stock(self) -> Optional[SupplierProductQuote]:
        for sq in self.supplier_quotes:
            if sq.in_stock:
                return sq
        return None


def available_suppliers(product_id: str, quotes: Iterable[AnyQuote]) -> List[str]:
    """
    Suppliers that can actually deliver `product_id`: the quote has an in-stock
    line for it. Zero-priced placeholder lines never qualify.
    """
    out: List[str] = []
    for qt in quotes:
        if qt.supplier_id in out:
            continue
        if any(it.product_id == product_id and it.in_stock for it in qt.items):
            out.append(qt.supplier_id)
    return out


def find_best_valid_quote(product_id: str, quotes: Sequence[AnyQuote], now: datetime) -> Optional[AnyQuote]:
    """Cheapest unexpired quote with an in-stock line for the product."""
    best: Optional[AnyQuote] = None
    best_price: Optional[D] = None

    for qt in quotes:
        if not is_quote_valid(qt, now):
            continue
        for it in qt.items:
            if it.product_id != product_id or not it.in_stock:
                continue
            if best_price is None or it.price_per_unit < best_price:
                best, best_price = qt, it.price_per_unit
            break

    return best


def product_comparison(quotes: Sequence[AnyQuote], requests: Sequence[Request]) -> List[ProductComparison]:
    """
    Product-centred view over the quotes of several requests.

    Per product: which requests ask for it, the largest requested quantity, and
    per supplier the best quoted unit price. Suppliers are sorted by price,
    in-stock lines first.
    """
    products: Dict[str, ProductComparison] = {}
    by_supplier: Dict[str, Dict[str, SupplierProductQuote]] = {}

    for req in requests:
        for ri in req.items:
            entry = products.get(ri.product_id)
            if entry is None:
                entry = ProductComparison(
                    product_id=ri.product_id,
                    product_name=ri.product_name,
                    unit=ri.unit,
                    quantity=ri.quantity,
                    request_ids=[req.id],
                )
                products[ri.product_id] = entry
                by_supplier[ri.product_id] = {}
            else:
                if req.id not in entry.request_ids:
                    entry.request_ids.append(req.id)
                if ri.quantity > entry.quantity:
                    entry.quantity = ri.quantity

    for qt in quotes:
        for it in qt.items:
            suppliers = by_supplier.get(it.product_id)
            if suppliers is None:
                continue
            current = suppliers.get(qt.supplier_id)
            if current is None:
                suppliers[qt.supplier_id] = SupplierProductQuote(
                    supplier_id=qt.supplier_id,
                    supplier_name=qt.supplier_name,
                    price=it.price_per_unit,
                    in_stock=it.in_stock,
                    supplier_product_code=it.supplier_product_code,
                )
            elif it.in_stock and (not current.in_stock or it.price_per_unit < current.price):
                current.price = it.price_per_unit
                current.in_stock = True

    for pid, entry in products.items():
        entry.supplier_quotes = sorted(
            by_supplier[pid].values(),
            key=lambda sq: (not sq.in_stock, sq.price),
        )

    return list(products.values())
