from __future__ import annotations

import logging

from sqlalchemy import select

from orderflow.app.config import Config
from orderflow.app.db.models.core_types import Role
from orderflow.app.db.models.models_v1 import STAFF_MODELS, Client
from orderflow.app.db.session import Database, transaction

logger = logging.getLogger(__name__)

DEMO_CLIENT = {
    "company_name": "Demo Trading Co",
    "client_name": "Demo Client",
    "client_type": "Company",
    "phone_number": "+966 500 000 000",
    "tax_number": "300000000000003",
    "branch_number": "001",
    "latitude": 24.7136,
    "longitude": 46.6753,
    "street": "King Fahd Rd",
    "city": "Riyadh",
    "region": "Riyadh",
}


def run_seed(db: Database) -> dict[str, int]:
    """Idempotent: one demo client and one user per role."""
    created = {"clients": 0, "staff": 0}
    session = db.session()
    try:
        with transaction(session):
            client = session.scalar(select(Client).where(Client.client_name == DEMO_CLIENT["client_name"]))
            if not client:
                session.add(Client(**DEMO_CLIENT))
                created["clients"] += 1

            for role, model in STAFF_MODELS.items():
                email = f"demo.{role.value.lower()}@example.com"
                if session.scalar(select(model).where(model.email == email)):
                    continue
                session.add(
                    model(
                        name=f"Demo {role.value}",
                        email=email,
                        phone="+966 500 000 001",
                        role=role.value,
                        active=True,
                    )
                )
                created["staff"] += 1
    finally:
        session.close()

    logger.info("seed done", extra=created)
    return created


if __name__ == "__main__":
    config = Config()
    database = Database.from_config(config)
    try:
        run_seed(database)
    finally:
        database.dispose()
