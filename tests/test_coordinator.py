import asyncio

import anyio
import pytest

from procura.errors import ConfirmationFailure
from procura.optimistic.coordinator import (
    OptimisticUpdateCoordinator,
    insert_item,
    remove_item,
    update_item,
)
from procura.storage.collection_store import CollectionStore, key_by_id


async def settle(rounds: int = 5):
    # laat andere tasks een paar keer draaien
    for _ in range(rounds):
        await anyio.sleep(0)


class Boom(Exception):
    pass


@pytest.fixture
def store():
    return CollectionStore([{"id": "x", "qty": 1}, {"id": "y", "qty": 2}])


@pytest.fixture
def errors():
    return []


@pytest.fixture
def coordinator(store, errors):
    return OptimisticUpdateCoordinator(store, on_error=lambda msg, exc: errors.append((msg, exc)))


@pytest.mark.anyio
async def test_commit_keeps_optimistic_state(coordinator, store, errors):
    async def confirm():
        return True

    result = await coordinator.run(insert_item({"id": "z", "qty": 3}), confirm)

    assert [r["id"] for r in result] == ["x", "y", "z"]
    assert store.keys() == ["x", "y", "z"]
    assert not coordinator.is_pending
    assert errors == []


@pytest.mark.anyio
async def test_optimistic_state_visible_while_pending(coordinator, store):
    gate = asyncio.Event()

    async def confirm():
        await gate.wait()

    task = asyncio.ensure_future(coordinator.run(remove_item("x", key=key_by_id), confirm))
    await settle()

    assert store.keys() == ["y"]
    assert coordinator.is_pending
    assert coordinator.pending_count == 1

    gate.set()
    await task

    assert store.keys() == ["y"]
    assert not coordinator.is_pending


@pytest.mark.anyio
async def test_failed_confirmation_rolls_back(coordinator, store, errors):
    async def confirm():
        raise Boom("server said no")

    with pytest.raises(ConfirmationFailure) as info:
        await coordinator.run(remove_item("x", key=key_by_id), confirm, error_message="Could not delete")

    assert store.keys() == ["x", "y"]
    assert isinstance(info.value.__cause__, Boom)
    assert info.value.meta["stage"] == "confirm"
    assert len(errors) == 1
    assert errors[0][0] == "Could not delete"
    assert isinstance(errors[0][1], Boom)
    assert not coordinator.is_pending


@pytest.mark.anyio
async def test_rollback_snapshot_is_isolated_from_in_place_edits(coordinator, store):
    gate = asyncio.Event()

    async def confirm():
        await gate.wait()
        raise Boom()

    def bump(items):
        for it in items:
            it["qty"] += 100
        return items

    task = asyncio.ensure_future(coordinator.run(bump, confirm))
    await settle()
    store.get("x")["qty"] = 999
    gate.set()

    with pytest.raises(ConfirmationFailure):
        await task

    assert [it["qty"] for it in store.items()] == [1, 2]


@pytest.mark.anyio
async def test_failing_transform_publishes_nothing(coordinator, store, errors):
    called = []

    async def confirm():
        called.append(True)

    with pytest.raises(ConfirmationFailure) as info:
        await coordinator.run(update_item("missing", lambda r: r, key=key_by_id), confirm)

    assert isinstance(info.value.__cause__, KeyError)
    assert info.value.meta["stage"] == "transform"
    assert called == []
    assert store.keys() == ["x", "y"]
    assert len(errors) == 1


@pytest.mark.anyio
async def test_overlapping_updates_last_snapshot_wins(coordinator, store):
    first_gate = asyncio.Event()

    async def slow_fail():
        await first_gate.wait()
        raise Boom()

    async def ok():
        return True

    first = asyncio.ensure_future(coordinator.run(insert_item({"id": "a", "qty": 0}), slow_fail))
    await settle()
    await coordinator.run(insert_item({"id": "b", "qty": 0}), ok)

    assert store.keys() == ["x", "y", "a", "b"]

    first_gate.set()
    with pytest.raises(ConfirmationFailure):
        await first

    # terug naar de snapshot van vóór de eerste mutatie: b is ook weg
    assert store.keys() == ["x", "y"]
    assert not coordinator.is_pending


@pytest.mark.anyio
async def test_subscribers_see_optimistic_and_rollback(coordinator, store):
    seen = []
    store.subscribe(lambda items: seen.append([it["id"] for it in items]))

    async def confirm():
        raise Boom()

    with pytest.raises(ConfirmationFailure):
        await coordinator.run(insert_item({"id": "z", "qty": 0}), confirm)

    assert seen == [["x", "y", "z"], ["x", "y"]]


@pytest.mark.anyio
async def test_no_error_handler_still_raises(store):
    coordinator = OptimisticUpdateCoordinator(store)

    async def confirm():
        raise Boom()

    with pytest.raises(ConfirmationFailure):
        await coordinator.run(insert_item({"id": "z"}), confirm)

    assert store.keys() == ["x", "y"]


def test_collection_store_rejects_duplicate_keys():
    with pytest.raises(ValueError):
        CollectionStore([{"id": "x"}, {"id": "x"}])


@pytest.mark.anyio
async def test_duplicate_key_from_transform_is_surfaced(coordinator, store, errors):
    called = []

    async def confirm():
        called.append(True)

    with pytest.raises(ConfirmationFailure) as info:
        await coordinator.run(insert_item({"id": "x", "qty": 7}), confirm, error_message="Could not create")

    assert isinstance(info.value.__cause__, ValueError)
    assert info.value.meta["stage"] == "transform"
    assert errors and errors[0][0] == "Could not create"
    assert len(errors) == 1
    assert called == []
    assert [it["qty"] for it in store.items()] == [1, 2]
    assert not coordinator.is_pending


@pytest.mark.anyio
async def test_cancelled_confirmation_clears_pending(coordinator, store):
    gate = asyncio.Event()

    async def confirm():
        await gate.wait()

    task = asyncio.ensure_future(coordinator.run(insert_item({"id": "z", "qty": 0}), confirm))
    await settle()
    assert coordinator.is_pending

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not coordinator.is_pending
    assert coordinator.pending_count == 0
