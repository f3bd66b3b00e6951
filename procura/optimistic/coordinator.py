from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar
from uuid import uuid4

from procura.core.logging_config import logger
from procura.errors import ConfirmationFailure
from procura.observability.metrics import record_update, set_pending
from procura.storage.collection_store import CollectionStore

T = TypeVar("T")

Transform = Callable[[List[T]], List[T]]
Confirm = Callable[[], Awaitable[Any]]
ErrorHandler = Callable[[str, BaseException], None]


class UpdateState(str, Enum):
    IDLE = "IDLE"
    OPTIMISTIC = "OPTIMISTIC"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class PendingUpdate(Generic[T]):
    id: str
    optimistic_snapshot: List[T]
    rollback_snapshot: List[T]
    confirmation: Optional[asyncio.Future] = None
    state: UpdateState = UpdateState.IDLE
    label: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


class OptimisticUpdateCoordinator(Generic[T]):
    """
    Apply a mutation to the store right away, confirm it asynchronously, and
    restore the pre-mutation snapshot when the confirmation fails.

    Per mutation: IDLE -> OPTIMISTIC -> COMMITTED | ROLLED_BACK. Terminal states
    drop the PendingUpdate.

    Rollback restores the *whole* collection as it was when that mutation
    started (last-snapshot-wins). With two overlapping mutations where the
    second commits and the first later fails, the second's effect is lost too.
    Confirmations are not serialized and cannot be cancelled once started.
    """

    def __init__(self, store: CollectionStore[T], on_error: Optional[ErrorHandler] = None):
        self.store = store
        self._on_error = on_error
        self._pending: Dict[str, PendingUpdate[T]] = {}

    # --- inspection ---

    @property
    def is_pending(self) -> bool:
        return len(self._pending) > 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_updates(self) -> List[PendingUpdate[T]]:
        return list(self._pending.values())

    # --- run ---

    async def run(
        self,
        transform: Transform,
        confirm: Confirm,
        *,
        error_message: str = "Operation failed",
        label: Optional[str] = None,
    ) -> List[T]:
        update_id = uuid4().hex
        bound = logger.bind(update_id=update_id, label=label)

        rollback_snapshot = self.store.snapshot()
        try:
            optimistic = list(transform(self.store.snapshot()))
            # replace() valideert keys; bij een fout blijft de store ongewijzigd
            self.store.replace(optimistic)
        except Exception as exc:
            # niets gepubliceerd, dus ook niets terug te draaien
            bound.bind(error=repr(exc)).error("optimistic_transform_failed")
            self._surface(error_message, exc)
            raise ConfirmationFailure(error_message, update_id=update_id, meta={"stage": "transform"}) from exc

        pending: PendingUpdate[T] = PendingUpdate(
            id=update_id,
            optimistic_snapshot=optimistic,
            rollback_snapshot=rollback_snapshot,
            state=UpdateState.OPTIMISTIC,
            label=label,
        )
        self._track(pending)
        bound.bind(size=len(optimistic)).debug("optimistic_update_applied")

        try:
            pending.confirmation = asyncio.ensure_future(confirm())
            await pending.confirmation
        except Exception as exc:
            self.store.replace(rollback_snapshot)
            pending.state = UpdateState.ROLLED_BACK
            record_update("rolled_back")
            bound.bind(error=repr(exc), restored=len(rollback_snapshot)).warning("optimistic_update_rolled_back")
            self._surface(error_message, exc)
            raise ConfirmationFailure(error_message, update_id=update_id, meta={"stage": "confirm"}) from exc
        finally:
            # ook bij cancellation: pending opruimen zodat de gauge klopt
            self._finish(pending)

        pending.state = UpdateState.COMMITTED
        record_update("committed")
        bound.debug("optimistic_update_committed")
        return self.store.items()

    # --- internals ---

    def _track(self, pending: PendingUpdate[T]) -> None:
        self._pending[pending.id] = pending
        set_pending(len(self._pending))

    def _finish(self, pending: PendingUpdate[T]) -> None:
        self._pending.pop(pending.id, None)
        set_pending(len(self._pending))

    def _surface(self, message: str, exc: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(message, exc)


# -----------------------------
# Transform helpers
# -----------------------------


def insert_item(item: T) -> Transform:
    def _apply(items: List[T]) -> List[T]:
        return [*items, item]

    return _apply


def update_item(item_id: str, patch: Callable[[T], T], key: Callable[[T], str]) -> Transform:
    def _apply(items: List[T]) -> List[T]:
        found = False
        out: List[T] = []
        for it in items:
            if key(it) == item_id:
                out.append(patch(it))
                found = True
            else:
                out.append(it)
        if not found:
            raise KeyError(item_id)
        return out

    return _apply


def remove_item(item_id: str, key: Callable[[T], str]) -> Transform:
    def _apply(items: List[T]) -> List[T]:
        out = [it for it in items if key(it) != item_id]
        if len(out) == len(items):
            raise KeyError(item_id)
        return out

    return _apply
