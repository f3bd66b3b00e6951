# procura/schemas/request_input_v1.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, condecimal, constr

from procura.domain.models import Request, RequestItem, RequestPriority, RequestStatus


class RequestItemV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    product_id: constr(strip_whitespace=True, min_length=1)  # type: ignore
    product_name: Optional[str] = None
    quantity: condecimal(gt=Decimal("0"))  # type: ignore
    unit: constr(strip_whitespace=True, min_length=1)  # type: ignore


class RequestCreateV1(BaseModel):
    """
    Payload for creating a request (chef-role intake).
    Ids may be assigned client side so optimistic inserts need no id swap later.
    """

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = None
    title: Optional[str] = None
    created_by: Optional[str] = None
    needed_by: Optional[datetime] = None
    priority: Literal["low", "medium", "high"] = "medium"
    notes: Optional[str] = None
    items: List[RequestItemV1] = Field(min_length=1)

    def to_domain(self) -> Request:
        request_id = self.id or f"req_{uuid4().hex[:12]}"
        items = tuple(
            RequestItem(
                id=it.id or f"{request_id}_item_{idx + 1}",
                product_id=it.product_id,
                quantity=it.quantity,
                unit=it.unit,
                product_name=it.product_name,
            )
            for idx, it in enumerate(self.items)
        )
        return Request(
            id=request_id,
            items=items,
            needed_by=self.needed_by,
            priority=RequestPriority(self.priority),
            title=self.title,
            created_by=self.created_by,
            notes=self.notes,
            status=RequestStatus.SUBMITTED,
        )


class RequestUpdateV1(BaseModel):
    """
    Partial update of a request. Only mutable fields; `id` and `items` are
    pricing input and are rejected as unknown fields.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    created_by: Optional[str] = None
    needed_by: Optional[datetime] = None
    priority: Optional[RequestPriority] = None
    notes: Optional[str] = None
    status: Optional[RequestStatus] = None

    def to_changes(self) -> Dict[str, Any]:
        # alleen expliciet meegegeven velden, met domeintypes (enums blijven enums)
        changes = self.model_dump(exclude_unset=True)
        # priority/status zijn verplicht op het domeinobject
        for name in ("priority", "status"):
            if changes.get(name, "") is None:
                del changes[name]
        return changes
