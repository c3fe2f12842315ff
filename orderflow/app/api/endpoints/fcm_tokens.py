from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from orderflow.app.api.deps import get_db, get_retry_policy
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.schemas.staff import FcmTokenIn
from orderflow.services.staff import register_fcm_token

router = APIRouter()


@router.post("/fcm-token")
def save_fcm_token(
    payload: FcmTokenIn,
    db: Session = Depends(get_db),
    policy: RetryPolicy = Depends(get_retry_policy),
):
    return register_fcm_token(db, policy, payload.model_dump())
