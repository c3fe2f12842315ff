from __future__ import annotations

from pydantic import BaseModel


class LocationIn(BaseModel):
    latitude: float | None = None
    longitude: float | None = None
    street: str | None = None
    city: str | None = None
    region: str | None = None


class ClientIn(BaseModel):
    company_name: str | None = None
    client_name: str | None = None
    client_type: str | None = None
    phone_number: str | None = None
    tax_number: str | None = None  # optional for one-time cash clients
    branch_number: str | None = None
    location: LocationIn | None = None
