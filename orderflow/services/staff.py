"""
Role users (drivers, supervisors, storekeepers, managers, sales reps).

Registration provisions an external identity when the caller does not bring
one, then mails the temporary password. The identity call happens outside the
insert transaction; if the insert then fails the freshly created identity is
deleted again so the two sides do not drift.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from orderflow.app.db.models.core_types import Role
from orderflow.app.db.models.models_v1 import STAFF_MODELS
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.db.session import transaction
from orderflow.app.errors import (
    ConflictError,
    DownstreamServiceError,
    NotFoundError,
    ValidationError,
)
from orderflow.services.identity import IdentityProvider, Mailer, generate_password

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^\+?[\d\s-]{8,}$")

ROLE_LABELS = {
    Role.driver: "Driver",
    Role.supervisor: "Supervisor",
    Role.storekeeper: "Storekeeper",
    Role.manager: "Manager",
    Role.sales_rep: "Sales rep",
}


def parse_role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError("Invalid role specified") from None


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_staff_payload(payload: Mapping[str, Any]) -> dict[str, str]:
    fields = {name: _clean(payload.get(name)) for name in ("name", "email", "phone")}
    missing = [name for name, value in fields.items() if value is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if not EMAIL_RE.match(fields["email"]) or not PHONE_RE.match(fields["phone"]):
        raise ValidationError("Invalid email or phone number format")
    fields["email"] = fields["email"].lower()
    return fields


def serialize_staff(user) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "active": user.active,
        "identity_ref": user.identity_ref,
        "has_fcm_token": bool(user.fcm_token),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


class StaffService:
    def __init__(
        self,
        db: Session,
        *,
        identity: IdentityProvider,
        mailer: Mailer,
        policy: RetryPolicy,
    ) -> None:
        self.db = db
        self.identity = identity
        self.mailer = mailer
        self.policy = policy

    def _load(self, role: Role, user_id: int):
        user = self.db.get(STAFF_MODELS[role], user_id)
        if user is None:
            raise NotFoundError(f"{ROLE_LABELS[role]} not found")
        return user

    def _ensure_email_free(self, role: Role, email: str, *, exclude_id: int | None = None) -> None:
        model = STAFF_MODELS[role]
        stmt = select(model.id).where(model.email == email)
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if self.db.execute(stmt).first() is not None:
            raise ConflictError(f"{ROLE_LABELS[role]} with this email already exists")

    def register(self, role: Role, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields = validate_staff_payload(payload)
        model = STAFF_MODELS[role]

        def _check() -> None:
            with transaction(self.db):
                self._ensure_email_free(role, fields["email"])

        self.policy.call(_check, operation=f"check_{role.value}")

        identity_ref = _clean(payload.get("identity_ref"))
        password = None
        if identity_ref is None:
            password = generate_password()
            identity_ref = self.identity.create_user(
                email=fields["email"], password=password, name=fields["name"], role=role.value
            )

        def _insert() -> dict[str, Any]:
            with transaction(self.db):
                self._ensure_email_free(role, fields["email"])
                user = model(
                    **fields,
                    identity_ref=identity_ref,
                    role=role.value,
                    active=True,
                    fcm_token=_clean(payload.get("fcm_token")),
                )
                self.db.add(user)
                self.db.flush()
                return serialize_staff(user)

        try:
            user = self.policy.call(_insert, operation=f"register_{role.value}")
        except Exception:
            if password is not None:
                self._discard_identity(identity_ref)
            raise

        if password is not None:
            try:
                self.mailer.send_welcome(email=fields["email"], name=fields["name"], password=password, role=role.value)
            except DownstreamServiceError:
                logger.warning("welcome email not sent", extra={"role": role.value, "user_id": user["id"]}, exc_info=True)

        logger.info("staff registered", extra={"role": role.value, "user_id": user["id"]})
        return {"message": f"{ROLE_LABELS[role]} registered successfully", "user": user}

    def _discard_identity(self, identity_ref: str) -> None:
        try:
            self.identity.delete_user(identity_ref)
        except DownstreamServiceError:
            logger.error("orphaned identity left behind", extra={"identity_ref": identity_ref}, exc_info=True)

    def list(self, role: Role) -> list[dict[str, Any]]:
        model = STAFF_MODELS[role]

        def _attempt() -> list[dict[str, Any]]:
            with transaction(self.db):
                rows = self.db.execute(select(model).order_by(model.name.asc(), model.id.asc())).scalars().all()
                return [serialize_staff(u) for u in rows]

        return self.policy.call(_attempt, operation=f"list_{role.value}")

    def get(self, role: Role, user_id: int) -> dict[str, Any]:
        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                return serialize_staff(self._load(role, user_id))

        return self.policy.call(_attempt, operation=f"get_{role.value}")

    def update(self, role: Role, user_id: int, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields = validate_staff_payload(payload)
        active = payload.get("active")

        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                user = self._load(role, user_id)
                self._ensure_email_free(role, fields["email"], exclude_id=user_id)
                for name, value in fields.items():
                    setattr(user, name, value)
                if active is not None:
                    user.active = bool(active)
                self.db.flush()
                if user.identity_ref:
                    # a provider failure rolls the local edit back
                    self.identity.update_user(user.identity_ref, role=role.value, **fields)
                return serialize_staff(user)

        user = self.policy.call(_attempt, operation=f"update_{role.value}")
        return {"message": f"{ROLE_LABELS[role]} updated successfully", "user": user}

    def delete(self, role: Role, user_id: int) -> dict[str, Any]:
        def _attempt() -> None:
            with transaction(self.db):
                user = self._load(role, user_id)
                identity_ref = user.identity_ref
                self.db.delete(user)
                self.db.flush()
                if identity_ref:
                    self.identity.delete_user(identity_ref)

        self.policy.call(_attempt, operation=f"delete_{role.value}")
        logger.info("staff deleted", extra={"role": role.value, "user_id": user_id})
        return {"message": f"{ROLE_LABELS[role]} deleted successfully"}


def register_fcm_token(db: Session, policy: RetryPolicy, payload: Mapping[str, Any]) -> dict[str, Any]:
    email = _clean(payload.get("email"))
    raw_role = _clean(payload.get("role"))
    token = _clean(payload.get("fcmToken"))
    missing = [name for name, value in (("email", email), ("role", raw_role), ("fcmToken", token)) if value is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    role = parse_role(raw_role)
    model = STAFF_MODELS[role]

    def _attempt() -> int:
        with transaction(db):
            result = db.execute(
                update(model).where(model.email == email.lower()).values(fcm_token=token)
            )
            if result.rowcount == 0:
                raise NotFoundError("User not found")
            return result.rowcount

    policy.call(_attempt, operation="register_fcm_token")
    logger.info("fcm token registered", extra={"role": role.value})
    return {"message": "FCM token updated successfully"}
