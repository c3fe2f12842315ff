from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

AcceptValue = Literal["pending", "accepted"]


class ProductIn(BaseModel):
    section: str | None = None
    type: str | None = None
    description: str | None = None
    # validated by the pricing calculator, not here
    quantity: Any = None
    price: Any = None


class DocumentIn(BaseModel):
    client_id: int | None = None
    delivery_date: datetime | None = None
    delivery_type: str | None = None
    products: list[ProductIn] | None = None
    notes: str | None = None
    storekeeper_notes: str | None = None
    username: str | None = None  # creating sales rep


class DocumentUpdate(DocumentIn):
    status: str | None = None
    actual_delivery_date: datetime | None = None

    # explicit values only; this is the one path that may reset a flag
    supervisoraccept: AcceptValue | None = None
    storekeeperaccept: AcceptValue | None = None
    manageraccept: AcceptValue | None = None


class SupervisorAcceptance(BaseModel):
    supervisor_id: int | None = None
