from __future__ import annotations

from sqlalchemy import select

from orderflow.app.db.models.core_types import Role
from orderflow.app.db.models.models_v1 import STAFF_MODELS


def order_payload(client_id: int, **overrides) -> dict:
    payload = {
        "client_id": client_id,
        "delivery_date": "2026-11-01T10:00:00+00:00",
        "delivery_type": "standard",
        "notes": "leave at gate",
        "username": "rep@example.com",
        "products": [
            {"section": "A", "type": "pallet", "description": "first", "quantity": 1, "price": 100},
            {"section": "B", "type": "box", "description": "second", "quantity": 2, "price": 50},
        ],
    }
    payload.update(overrides)
    return payload


def set_role_tokens(database, role: Role, token) -> None:
    model = STAFF_MODELS[role]
    with database.session() as s:
        for user in s.execute(select(model)).scalars():
            user.fcm_token = token
        s.commit()
