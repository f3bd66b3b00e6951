from __future__ import annotations

import copy
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from procura.domain.models import Request, SupplierOffering
from procura.storage.catalog_loader import Catalog, load_catalog


class ProcurementGateway(Protocol):
    """
    What this package needs from the persistence collaborator.
    All calls may be remote, so all of them are awaitable.
    """

    async def create_request(self, request: Request) -> Request: ...

    async def get_requests(self) -> List[Request]: ...

    async def get_request(self, request_id: str) -> Optional[Request]: ...

    async def update_request(self, request_id: str, changes: Dict[str, Any]) -> Request: ...

    async def delete_request(self, request_id: str) -> None: ...

    async def get_supplier_offerings(self, product_id: str) -> List[SupplierOffering]: ...


class InMemoryProcurementGateway:
    """
    Process-local ProcurementGateway (dev, demo en tests).
    Returned objects are copies; callers never share state with the gateway.
    """

    def __init__(self, offerings: Iterable[SupplierOffering] = (), requests: Iterable[Request] = ()):
        self._offerings: List[SupplierOffering] = list(offerings)
        self._requests: Dict[str, Request] = {r.id: r for r in requests}

    @classmethod
    def from_catalog(cls, catalog: Catalog) -> "InMemoryProcurementGateway":
        return cls(offerings=catalog.offerings, requests=catalog.requests)

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> "InMemoryProcurementGateway":
        return cls.from_catalog(load_catalog(path))

    # --- requests ---

    async def create_request(self, request: Request) -> Request:
        if request.id in self._requests:
            raise ValueError(f"Request {request.id} already exists")
        self._requests[request.id] = request
        return copy.deepcopy(request)

    async def get_requests(self) -> List[Request]:
        return copy.deepcopy(list(self._requests.values()))

    async def get_request(self, request_id: str) -> Optional[Request]:
        r = self._requests.get(request_id)
        return copy.deepcopy(r) if r is not None else None

    async def update_request(self, request_id: str, changes: Dict[str, Any]) -> Request:
        current = self._requests.get(request_id)
        if current is None:
            raise KeyError(f"Request {request_id} not found")
        updated = replace(current, **changes)
        self._requests[request_id] = updated
        return copy.deepcopy(updated)

    async def delete_request(self, request_id: str) -> None:
        if request_id not in self._requests:
            raise KeyError(f"Request {request_id} not found")
        del self._requests[request_id]

    # --- catalog ---

    async def get_supplier_offerings(self, product_id: str) -> List[SupplierOffering]:
        return [o for o in self._offerings if o.product_id == product_id]

    def add_offering(self, offering: SupplierOffering) -> None:
        self._offerings.append(offering)
