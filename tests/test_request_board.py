import asyncio

import pytest
from pydantic import ValidationError

from procura.domain.models import RequestPriority, RequestStatus
from procura.errors import ConfirmationFailure
from procura.services.request_board import RequestBoard


@pytest.fixture
def errors():
    return []


@pytest.fixture
def board(gateway, errors):
    return RequestBoard(gateway, on_error=lambda msg, exc: errors.append(msg))


@pytest.mark.anyio
async def test_load_fills_store(board):
    loaded = await board.load()

    assert [r.id for r in loaded] == ["req_a", "req_b", "req_c"]
    assert [r.id for r in board.requests] == ["req_a", "req_b", "req_c"]


@pytest.mark.anyio
async def test_create_inserts_and_persists(board, gateway):
    await board.load()

    created = await board.create(
        {
            "id": "req_new",
            "title": "Brunch",
            "priority": "high",
            "items": [{"product_id": "basil", "quantity": "2", "unit": "bunch"}],
        }
    )

    assert created.priority == RequestPriority.HIGH
    assert created.items[0].id == "req_new_item_1"
    assert board.requests[-1].id == "req_new"
    assert (await gateway.get_request("req_new")) is not None


@pytest.mark.anyio
async def test_create_rejects_invalid_payload(board):
    await board.load()

    with pytest.raises(ValidationError):
        await board.create({"items": [{"product_id": "basil", "quantity": "0", "unit": "bunch"}]})

    assert len(board.requests) == 3


@pytest.mark.anyio
async def test_rejected_delete_restores_request(board, gateway, errors):
    await board.load()
    gate = asyncio.Event()

    async def failing_delete(request_id):
        await gate.wait()
        raise RuntimeError("persistence down")

    gateway.delete_request = failing_delete

    task = asyncio.ensure_future(board.delete("req_b"))
    for _ in range(5):
        await asyncio.sleep(0)
    assert [r.id for r in board.requests] == ["req_a", "req_c"]
    assert board.is_pending

    gate.set()
    with pytest.raises(ConfirmationFailure):
        await task

    assert [r.id for r in board.requests] == ["req_a", "req_b", "req_c"]
    assert errors == ["Could not delete request"]
    assert not board.is_pending


@pytest.mark.anyio
async def test_update_refuses_immutable_fields(board):
    await board.load()

    with pytest.raises(ValueError):
        await board.update("req_a", items=())


@pytest.mark.anyio
async def test_update_changes_request(board, gateway):
    await board.load()

    updated = await board.update("req_a", title="Lunch", priority=RequestPriority.HIGH)

    assert updated.title == "Lunch"
    assert board.store.get("req_a").priority == RequestPriority.HIGH
    assert (await gateway.get_request("req_a")).title == "Lunch"


@pytest.mark.anyio
async def test_update_unknown_request_fails_without_changes(board, errors):
    await board.load()

    with pytest.raises(ConfirmationFailure):
        await board.update("req_zzz", title="nope")

    assert [r.id for r in board.requests] == ["req_a", "req_b", "req_c"]
    assert errors == ["Could not update request"]


@pytest.mark.anyio
async def test_update_coerces_values_like_create(board, gateway):
    await board.load()

    updated = await board.update("req_b", priority="high", status="approved")

    assert updated.priority is RequestPriority.HIGH
    assert updated.status is RequestStatus.APPROVED
    assert (await gateway.get_request("req_b")).priority is RequestPriority.HIGH


@pytest.mark.anyio
async def test_update_rejects_invalid_values(board, errors):
    await board.load()

    with pytest.raises(ValidationError):
        await board.update("req_b", priority="urgent")
    with pytest.raises(ValidationError):
        await board.update("req_b", colour="red")

    assert board.store.get("req_b").priority is RequestPriority.MEDIUM
    assert errors == []
