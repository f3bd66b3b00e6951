from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

from procura.core.logging_config import logger
from procura.domain.models import Request
from procura.optimistic.coordinator import (
    ErrorHandler,
    OptimisticUpdateCoordinator,
    insert_item,
    remove_item,
    update_item,
)
from procura.schemas.request_input_v1 import RequestCreateV1, RequestUpdateV1
from procura.storage.collection_store import CollectionStore, key_by_id

from .gateway import ProcurementGateway

# Velden die pricing-input zijn mogen niet via update() veranderen
IMMUTABLE_FIELDS = frozenset({"id", "items"})


class RequestBoard:
    """
    The visible list of requests, kept in sync with the gateway through
    optimistic create/update/delete.
    """

    def __init__(
        self,
        gateway: ProcurementGateway,
        store: Optional[CollectionStore[Request]] = None,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.gateway = gateway
        self.store: CollectionStore[Request] = store if store is not None else CollectionStore()
        self.coordinator: OptimisticUpdateCoordinator[Request] = OptimisticUpdateCoordinator(
            self.store, on_error=on_error
        )

    @property
    def requests(self) -> List[Request]:
        return self.store.items()

    @property
    def is_pending(self) -> bool:
        return self.coordinator.is_pending

    async def load(self) -> List[Request]:
        self.store.replace(await self.gateway.get_requests())
        logger.bind(count=len(self.store)).debug("requests_loaded")
        return self.store.items()

    async def create(self, data: Union[RequestCreateV1, Dict[str, Any]]) -> Request:
        payload = data if isinstance(data, RequestCreateV1) else RequestCreateV1.model_validate(data)
        request = payload.to_domain()

        await self.coordinator.run(
            insert_item(request),
            lambda: self.gateway.create_request(request),
            error_message="Could not create request",
            label="create_request",
        )
        return request

    async def update(self, request_id: str, **changes: Any) -> Request:
        blocked = IMMUTABLE_FIELDS.intersection(changes)
        if blocked:
            raise ValueError(f"Cannot update immutable request fields: {sorted(blocked)}")

        # zelfde validatie als bij create: "high" wordt RequestPriority.HIGH
        changes = RequestUpdateV1.model_validate(changes).to_changes()

        await self.coordinator.run(
            update_item(request_id, lambda r: replace(r, **changes), key=key_by_id),
            lambda: self.gateway.update_request(request_id, changes),
            error_message="Could not update request",
            label="update_request",
        )
        updated = self.store.get(request_id)
        if updated is None:
            # een gelijktijdige delete kan hem al weggehaald hebben
            raise KeyError(request_id)
        return updated

    async def delete(self, request_id: str) -> None:
        await self.coordinator.run(
            remove_item(request_id, key=key_by_id),
            lambda: self.gateway.delete_request(request_id),
            error_message="Could not delete request",
            label="delete_request",
        )
