from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import requests
from sqlalchemy import select
from sqlalchemy.orm import Session

from orderflow.app.db.models.core_types import Role
from orderflow.app.db.models.models_v1 import STAFF_MODELS
from orderflow.app.errors import DownstreamServiceError

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project}/messages:send"


@dataclass(frozen=True)
class PushMessage:
    token: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


class PushChannel(Protocol):
    def send(self, message: PushMessage) -> None: ...


class FcmPushChannel:
    """Firebase Cloud Messaging, HTTP v1 API."""

    def __init__(self, project_id: str | None, access_token: str | None, *, timeout: float = 10.0) -> None:
        self.project_id = project_id
        self.access_token = access_token
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "FcmPushChannel":
        return cls(config.FCM_PROJECT_ID, config.FCM_ACCESS_TOKEN, timeout=config.HTTP_TIMEOUT_SECONDS)

    def send(self, message: PushMessage) -> None:
        if not self.project_id or not self.access_token:
            raise DownstreamServiceError("Push channel is not configured")

        payload = {
            "message": {
                "token": message.token,
                "notification": {"title": message.title, "body": message.body},
                "data": dict(message.data),
            }
        }
        try:
            resp = requests.post(
                FCM_SEND_URL.format(project=self.project_id),
                json=payload,
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise DownstreamServiceError("Push delivery failed", details=str(exc)) from exc

        if not resp.ok:
            raise DownstreamServiceError(
                "Push delivery failed",
                details=f"FCM responded {resp.status_code}: {resp.text[:500]}",
            )


class NotificationDispatcher:
    def __init__(self, channel: PushChannel) -> None:
        self.channel = channel

    def active_tokens(self, db: Session, role: Role) -> list[str]:
        model = STAFF_MODELS[role]
        rows = db.execute(
            select(model.fcm_token)
            .where(model.active.is_(True))
            .where(model.fcm_token.is_not(None))
            .where(model.fcm_token != "")
            .order_by(model.id.asc())
        ).scalars()
        return list(rows)

    def notify(self, db: Session, role: Role, message: str, title: str = "Notification") -> int:
        """
        Push ``message`` to every active user of ``role``.

        Tokens are read and the read transaction closed before anything goes
        on the wire. Returns the number of messages handed to the channel;
        0 (and no channel call) when nobody can be reached.
        """
        try:
            tokens = self.active_tokens(db, role)
        finally:
            db.rollback()

        if not tokens:
            logger.warning("no active notification tokens", extra={"role": role.value})
            return 0

        # every token is attempted; one stale device must not silence the role
        failed = []
        for token in tokens:
            try:
                self.channel.send(PushMessage(token=token, title=title, body=message, data={"role": role.value}))
            except DownstreamServiceError as exc:
                logger.warning(
                    "push to token failed",
                    extra={"role": role.value, "token_suffix": token[-6:], "error": exc.message},
                )
                failed.append(token)

        sent = len(tokens) - len(failed)
        logger.info("notifications sent", extra={"role": role.value, "count": sent, "failed": len(failed)})
        if failed:
            raise DownstreamServiceError(
                "Push delivery failed",
                details=f"{len(failed)} of {len(tokens)} {role.value} tokens failed",
            )
        return sent
