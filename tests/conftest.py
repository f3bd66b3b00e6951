from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Sequence

import pytest

from procura.domain.models import Quote, Request, RequestItem, SupplierOffering, VolumeTier
from procura.engine.bundler import QuoteBundler, index_offerings
from procura.engine.policy import ValidityPolicy
from procura.engine.quote_generator import QuoteGenerator
from procura.services.gateway import InMemoryProcurementGateway


@pytest.fixture
def anyio_backend():
    # Dwing anyio om alleen asyncio te gebruiken (geen Trio nodig)
    return "asyncio"


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def policy():
    return ValidityPolicy(single_request_days=14, bundled_days=30, delivery_lead_days=4)


@pytest.fixture
def tomato_tiers():
    # 1–10 @ 10, 11–50 @ 9.5, 51+ @ 9
    return (
        VolumeTier(min_quantity=Decimal("1"), max_quantity=Decimal("10"), price=Decimal("10.00")),
        VolumeTier(min_quantity=Decimal("11"), max_quantity=Decimal("50"), price=Decimal("9.50")),
        VolumeTier(min_quantity=Decimal("51"), price=Decimal("9.00")),
    )


@pytest.fixture
def offerings(tomato_tiers) -> List[SupplierOffering]:
    return [
        SupplierOffering(
            supplier_id="sup_fresh",
            product_id="tomato",
            base_price=Decimal("10.00"),
            volume_tiers=tomato_tiers,
            supplier_name="Fresh Foods",
        ),
        SupplierOffering(supplier_id="sup_fresh", product_id="basil", base_price=Decimal("2.40")),
        SupplierOffering(
            supplier_id="sup_metro",
            product_id="tomato",
            base_price=Decimal("10.40"),
            volume_tiers=(
                VolumeTier(min_quantity="1", max_quantity="20", price="10.40"),
                VolumeTier(min_quantity="21", price="8.90"),
            ),
            supplier_name="Metro",
        ),
        SupplierOffering(
            supplier_id="sup_metro",
            product_id="mozzarella",
            base_price=Decimal("6.10"),
            available=False,
        ),
        SupplierOffering(
            supplier_id="sup_dairy",
            product_id="mozzarella",
            base_price=Decimal("5.80"),
            volume_tiers=(
                VolumeTier(min_quantity="1", max_quantity="24", price="5.80"),
                VolumeTier(min_quantity="25", price="5.20"),
            ),
        ),
    ]


def _make_request(request_id: str, *lines) -> Request:
    """lines: (product_id, quantity[, unit])"""
    items = []
    for idx, line in enumerate(lines):
        product_id, qty = line[0], line[1]
        unit = line[2] if len(line) > 2 else "kg"
        items.append(RequestItem(id=f"{request_id}_{idx + 1}", product_id=product_id, quantity=qty, unit=unit))
    return Request(id=request_id, items=tuple(items))


@pytest.fixture
def make_request():
    return _make_request


@pytest.fixture
def request_a():
    return _make_request("req_a", ("tomato", 8))


@pytest.fixture
def request_b():
    return _make_request("req_b", ("tomato", 6))


@pytest.fixture
def request_c():
    return _make_request("req_c", ("tomato", 40), ("mozzarella", 12))


@pytest.fixture
def generator(policy, clock):
    return QuoteGenerator(policy=policy, clock=clock)


@pytest.fixture
def bundler(generator):
    return QuoteBundler(resolver=generator.resolver, policy=generator.policy, clock=generator.clock)


@pytest.fixture
def offering_index(offerings):
    return index_offerings(offerings)


@pytest.fixture
def quote_source(generator, offering_index):
    """Build a request_id -> per-supplier quotes lookup for the given requests."""

    def _build(requests: Sequence[Request], every_supplier: bool = False):
        # every_supplier: ook leveranciers zonder offering voor het request quoteren (zoals bij bundelen)
        by_supplier: Dict[str, Dict[str, SupplierOffering]] = {}
        for (supplier_id, product_id), offering in offering_index.items():
            by_supplier.setdefault(supplier_id, {})[product_id] = offering

        quotes: Dict[str, List[Quote]] = {}
        for r in requests:
            wanted = {ri.product_id for ri in r.items}
            quotes[r.id] = [
                generator.generate(r, sid, {pid: o for pid, o in offs.items() if pid in wanted})
                for sid, offs in by_supplier.items()
                if every_supplier or wanted.intersection(offs)
            ]
        return lambda rid: quotes.get(rid, [])

    return _build


@pytest.fixture
def gateway(offerings, request_a, request_b, request_c):
    return InMemoryProcurementGateway(offerings=offerings, requests=[request_a, request_b, request_c])
