from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from orderflow.app.db.models.models_v1 import Client, Order, Quotation
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.db.session import transaction
from orderflow.app.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

CASH_CLIENT_TYPE = "One-time cash client"

_REQUIRED = ("company_name", "client_name", "client_type", "phone_number", "branch_number")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_client_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    location = payload.get("location") or {}
    missing = [name for name in _REQUIRED if _blank(payload.get(name))]
    missing += [f"location.{k}" for k in ("latitude", "longitude") if location.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    tax_number = payload.get("tax_number")
    if payload["client_type"] != CASH_CLIENT_TYPE and _blank(tax_number):
        raise ValidationError("Missing required field: tax_number")

    try:
        latitude = float(location["latitude"])
        longitude = float(location["longitude"])
    except (TypeError, ValueError):
        raise ValidationError("Invalid location") from None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise ValidationError("Invalid location")

    return {
        "company_name": payload["company_name"].strip(),
        "client_name": payload["client_name"].strip(),
        "client_type": payload["client_type"].strip(),
        "phone_number": str(payload["phone_number"]).strip(),
        "tax_number": None if _blank(tax_number) else str(tax_number).strip(),
        "branch_number": str(payload["branch_number"]).strip(),
        "latitude": latitude,
        "longitude": longitude,
        "street": location.get("street") or None,
        "city": location.get("city") or None,
        "region": location.get("region") or None,
    }


def serialize_client(client: Client) -> dict[str, Any]:
    return {
        "id": client.id,
        "company_name": client.company_name,
        "client_name": client.client_name,
        "client_type": client.client_type,
        "phone_number": client.phone_number,
        "tax_number": client.tax_number,
        "branch_number": client.branch_number,
        "latitude": client.latitude,
        "longitude": client.longitude,
        "street": client.street,
        "city": client.city,
        "region": client.region,
    }


class ClientService:
    def __init__(self, db: Session, *, policy: RetryPolicy) -> None:
        self.db = db
        self.policy = policy

    def _load(self, client_id: int) -> Client:
        client = self.db.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client not found")
        return client

    def create(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields = validate_client_payload(payload)

        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                client = Client(**fields)
                self.db.add(client)
                self.db.flush()
                return serialize_client(client)

        return self.policy.call(_attempt, operation="create_client")

    def list(self, *, search: str | None = None, limit: int | None = None, page: int | None = None) -> dict[str, Any]:
        limit = min(max(int(limit or 10), 1), 50)
        page = max(int(page or 1), 1)

        stmt = select(Client)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(Client.client_name.ilike(pattern), Client.company_name.ilike(pattern)))

        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
                rows = (
                    self.db.execute(
                        stmt.order_by(Client.client_name.asc(), Client.id.asc())
                        .limit(limit)
                        .offset((page - 1) * limit)
                    )
                    .scalars()
                    .all()
                )
                clients = [serialize_client(c) for c in rows]
            return {
                "clients": clients,
                "total": total,
                "page": page,
                "totalPages": math.ceil(total / limit) if total else 0,
                "limit": limit,
            }

        return self.policy.call(_attempt, operation="list_clients")

    def get(self, client_id: int) -> dict[str, Any]:
        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                return serialize_client(self._load(client_id))

        return self.policy.call(_attempt, operation="get_client")

    def update(self, client_id: int, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields = validate_client_payload(payload)

        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                client = self._load(client_id)
                for name, value in fields.items():
                    setattr(client, name, value)
                self.db.flush()
                return serialize_client(client)

        return self.policy.call(_attempt, operation="update_client")

    def delete(self, client_id: int) -> dict[str, Any]:
        def _attempt() -> None:
            with transaction(self.db):
                client = self._load(client_id)
                owned = sum(
                    self.db.execute(select(func.count(model.id)).where(model.client_id == client_id)).scalar_one()
                    for model in (Order, Quotation)
                )
                if owned:
                    raise ConflictError("Client still has orders or quotations")
                self.db.delete(client)

        self.policy.call(_attempt, operation="delete_client")
        logger.info("client deleted", extra={"id": client_id})
        return {"message": "Client deleted successfully"}
