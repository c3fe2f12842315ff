from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy.exc import SQLAlchemyError

from orderflow.app.db.session import translate_db_error
from orderflow.app.errors import AppError, TransientInfraError

router = APIRouter()


@router.get("/health")
def health(request: Request):
    try:
        request.app.state.database.ping()
    except SQLAlchemyError as exc:
        translated = translate_db_error(exc)
        if not isinstance(translated, AppError):
            translated = TransientInfraError(details=str(exc))
        raise translated from exc
    return {"status": "ok"}
