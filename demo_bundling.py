#!/usr/bin/env python3
"""
Demo script voor quote generatie en bundling.
Toont per request de quotes en daarna de gebundelde quotes per leverancier.
"""

import asyncio
from pathlib import Path

from procura.app import create_app
from procura.core.settings import Settings


async def main():
    """Demo van per-request quotes vs gebundelde quotes."""
    print("Procura - Quote Bundling Demo")
    print("=" * 50)

    catalog = Path(__file__).parent / "data" / "sample_catalog.yaml"
    app = create_app(Settings(catalog_path=str(catalog), log_json=False))

    request_ids = ["req_lunch", "req_dinner"]
    standalone = {}

    for rid in request_ids:
        print(f"\nRequest {rid}")
        print("-" * 30)
        for quote in await app.quotes.generate_quotes(rid):
            standalone[quote.supplier_id] = standalone.get(quote.supplier_id, 0) + quote.total_amount
            print(f"  {quote.supplier_name or quote.supplier_id}: {quote.total_amount}")
            for it in quote.items:
                stock = "" if it.in_stock else "  (niet leverbaar)"
                print(f"    {it.product_id:<12} {it.quantity:>6} x {it.price_per_unit}{stock}")

    print("\nGebundeld")
    print("-" * 30)
    for bundle in await app.quotes.generate_bundled_quotes(request_ids):
        before = standalone.get(bundle.supplier_id, 0)
        print(f"  {bundle.supplier_name or bundle.supplier_id}: {bundle.total_amount} (los: {before})")
        for pid, qty in bundle.aggregate_quantities.items():
            print(f"    {pid:<12} totaal {qty}")


if __name__ == "__main__":
    asyncio.run(main())
