from __future__ import annotations

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Sequence

from procura.core.logging_config import logger
from procura.domain.models import BundledQuote, Quote, Request, SupplierOffering
from procura.engine.bundler import OfferingKey, QuoteBundler, index_offerings, unique_ids
from procura.engine.quote_generator import QuoteGenerator
from procura.observability.metrics import record_quotes

from .gateway import ProcurementGateway


class QuoteService:
    """
    Entry points for the UI side: per-request quotes and bundled quotes.

    Offerings are looked up per product through the gateway (possibly remote,
    fetched concurrently); pricing itself is pure and done by the generator
    and bundler.
    """

    def __init__(
        self,
        gateway: ProcurementGateway,
        generator: Optional[QuoteGenerator] = None,
        bundler: Optional[QuoteBundler] = None,
    ):
        self.gateway = gateway
        self.generator = generator or QuoteGenerator()
        self.bundler = bundler or QuoteBundler(
            resolver=self.generator.resolver,
            policy=self.generator.policy,
            clock=self.generator.clock,
        )

    # -----------------------
    # Lookups
    # -----------------------

    async def _offering_index(self, product_ids: Iterable[str]) -> Dict[OfferingKey, SupplierOffering]:
        pids = unique_ids(product_ids)
        results = await asyncio.gather(*(self.gateway.get_supplier_offerings(pid) for pid in pids))
        flat: List[SupplierOffering] = []
        for offerings in results:
            flat.extend(offerings)
        return index_offerings(flat)

    async def _load_requests(self, request_ids: Sequence[str]) -> List[Request]:
        found = await asyncio.gather(*(self.gateway.get_request(rid) for rid in request_ids))
        out: List[Request] = []
        for rid, req in zip(request_ids, found):
            if req is None:
                logger.bind(request_id=rid).warning("request_not_found")
                continue
            out.append(req)
        return out

    def _quotes_for(
        self,
        request: Request,
        index: Dict[OfferingKey, SupplierOffering],
        suppliers: Sequence[str] = (),
    ) -> List[Quote]:
        """
        One quote per supplier with an offering for this request. Suppliers in
        `suppliers` always get a quote, even when they offer none of the
        request's products: every line is then zero-priced and out of stock.
        """
        wanted = {ri.product_id for ri in request.items}

        by_supplier: Dict[str, Dict[str, SupplierOffering]] = {sid: {} for sid in suppliers}
        for (supplier_id, product_id), offering in index.items():
            if product_id in wanted:
                by_supplier.setdefault(supplier_id, {})[product_id] = offering

        return [self.generator.generate(request, sid, offerings) for sid, offerings in by_supplier.items()]

    @staticmethod
    def _suppliers_in(index: Dict[OfferingKey, SupplierOffering]) -> List[str]:
        return unique_ids(supplier_id for supplier_id, _ in index)

    # -----------------------
    # Public
    # -----------------------

    async def generate_quotes(self, request_id: str) -> List[Quote]:
        t0 = time.time()
        requests = await self._load_requests([request_id])
        if not requests:
            return []

        request = requests[0]
        index = await self._offering_index(ri.product_id for ri in request.items)
        quotes = self._quotes_for(request, index)

        record_quotes("single", len(quotes))
        logger.bind(
            request_id=request_id,
            quote_count=len(quotes),
            duration_ms=round((time.time() - t0) * 1000, 2),
        ).info("quotes_generated")
        return quotes

    async def generate_bundled_quotes(self, request_ids: Iterable[str]) -> List[BundledQuote]:
        t0 = time.time()
        requests = await self._load_requests(unique_ids(request_ids))
        if not requests:
            return []

        index = await self._offering_index(ri.product_id for r in requests for ri in r.items)
        # elke leverancier in de bundel quoteert elk request, zodat geen regel wegvalt
        suppliers = self._suppliers_in(index)
        per_request = {r.id: self._quotes_for(r, index, suppliers) for r in requests}

        bundles = self.bundler.bundle([r.id for r in requests], lambda rid: per_request.get(rid, []), index)

        record_quotes("bundled", len(bundles))
        logger.bind(
            request_ids=sorted(per_request),
            bundle_count=len(bundles),
            duration_ms=round((time.time() - t0) * 1000, 2),
        ).info("bundled_quotes_generated")
        return bundles

    async def extend_bundled_quotes(
        self, bundles: Sequence[BundledQuote], request_ids: Iterable[str]
    ) -> List[BundledQuote]:
        """Add requests to existing bundles without re-pricing them from scratch."""
        new_ids = unique_ids(request_ids)
        existing = unique_ids(rid for b in bundles for rid in sorted(b.request_ids))
        requests = await self._load_requests(unique_ids([*existing, *new_ids]))
        index = await self._offering_index(ri.product_id for r in requests for ri in r.items)

        suppliers = self._suppliers_in(index)
        cache: Dict[str, List[Quote]] = {}
        by_id = {r.id: r for r in requests}

        def source(rid: str) -> List[Quote]:
            if rid not in cache:
                req = by_id.get(rid)
                cache[rid] = self._quotes_for(req, index, suppliers) if req is not None else []
            return cache[rid]

        out = self.bundler.extend(bundles, [rid for rid in new_ids if rid in by_id], source, index)
        record_quotes("bundled", len(out))
        return out
