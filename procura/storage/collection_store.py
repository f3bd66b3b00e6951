from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")

KeyFn = Callable[[Any], str]
Listener = Callable[[List[T]], None]


def key_by_id(item: Any) -> str:
    if isinstance(item, dict):
        return str(item["id"])
    return str(getattr(item, "id"))


class CollectionStore(Generic[T]):
    """
    Owned, in-memory collection keyed by a stable id.

    This is the single shared resource the optimistic coordinator mutates.
    Order is the insertion order of the current contents. `replace()` swaps the
    whole visible collection and notifies subscribers (the UI side).
    """

    def __init__(self, items: Iterable[T] = (), key: KeyFn = key_by_id):
        self._key = key
        self._items: Dict[str, T] = {}
        self._listeners: List[Listener] = []
        self._load(items)

    def _load(self, items: Iterable[T]) -> None:
        loaded: Dict[str, T] = {}
        for it in items:
            k = self._key(it)
            if k in loaded:
                raise ValueError(f"Duplicate key in collection: {k}")
            loaded[k] = it
        self._items = loaded

    # --- reads ---

    def items(self) -> List[T]:
        return list(self._items.values())

    def snapshot(self) -> List[T]:
        """Deep copy: later in-place edits to items never leak into a snapshot."""
        return copy.deepcopy(self.items())

    def get(self, key: str) -> Optional[T]:
        return self._items.get(key)

    def keys(self) -> List[str]:
        return list(self._items.keys())

    def key_of(self, item: T) -> str:
        return self._key(item)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self.items())

    def __len__(self) -> int:
        return len(self._items)

    # --- writes ---

    def replace(self, items: Iterable[T]) -> None:
        self._load(items)
        current = self.items()
        for fn in list(self._listeners):
            fn(current)

    def subscribe(self, fn: Listener) -> Callable[[], None]:
        self._listeners.append(fn)

        def _unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return _unsubscribe
