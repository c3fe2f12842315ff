from __future__ import annotations

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from orderflow.app.config import Config
from orderflow.app.db.retry import RetryPolicy
from orderflow.services.clients import ClientService
from orderflow.services.staff import StaffService
from orderflow.services.workflow import Workflow


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def get_retry_policy(request: Request) -> RetryPolicy:
    return request.app.state.retry_policy


def get_workflow(
    request: Request,
    db: Session = Depends(get_db),
    config: Config = Depends(get_config),
) -> Workflow:
    return Workflow(
        db,
        notifier=request.app.state.notifier,
        policy=request.app.state.retry_policy,
        vat_rate=config.VAT_RATE,
        require_acceptance_for_delivery=config.DELIVERY_REQUIRES_ACCEPTANCE,
    )


def get_client_service(request: Request, db: Session = Depends(get_db)) -> ClientService:
    return ClientService(db, policy=request.app.state.retry_policy)


def get_staff_service(request: Request, db: Session = Depends(get_db)) -> StaffService:
    return StaffService(
        db,
        identity=request.app.state.identity,
        mailer=request.app.state.mailer,
        policy=request.app.state.retry_policy,
    )
