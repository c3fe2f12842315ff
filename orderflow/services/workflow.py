"""
Order / quotation workflow.

Orchestrates pricing, id allocation, the approval state machine and
notifications. Every database step runs in one transaction under the retry
policy; notifications are sent only after the commit and never roll back
committed state.
"""

from __future__ import annotations

import enum
import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from orderflow.app.db.models.core_types import (
    AcceptState,
    ApprovalRole,
    DeliveryStatus,
    DocumentKind,
    WorkflowEvent,
)
from orderflow.app.db.models.models_v1 import (
    Client,
    Order,
    OrderProduct,
    Quotation,
    QuotationProduct,
    Supervisor,
)
from orderflow.app.db.retry import RetryPolicy
from orderflow.app.db.session import transaction
from orderflow.app.errors import (
    NotFoundError,
    SequenceConflictError,
    ValidationError,
)
from orderflow.services import approvals
from orderflow.services.notifications import NotificationDispatcher
from orderflow.services.pricing import DEFAULT_VAT_RATE, PricingResult, price_lines
from orderflow.services.sequences import next_custom_id

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = {
    DocumentKind.order: Order,
    DocumentKind.quotation: Quotation,
}

LINE_MODELS = {
    DocumentKind.order: (OrderProduct, "order_id"),
    DocumentKind.quotation: (QuotationProduct, "quotation_id"),
}

_REQUIRED_FIELDS = ("client_id", "delivery_date", "delivery_type", "products")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50

_CLIENT_FIELDS = (
    "company_name",
    "client_name",
    "phone_number",
    "tax_number",
    "branch_number",
    "latitude",
    "longitude",
    "street",
    "city",
    "region",
)


class ListScope(str, enum.Enum):
    all = "all"
    supervisor = "supervisor"
    supervisor_accept = "supervisorAccept"
    storekeeper_accept = "storekeeperaccept"
    sales_rep = "salesRep"


def _label(kind: DocumentKind) -> str:
    return "Order" if kind is DocumentKind.order else "Quotation"


def _id_key(kind: DocumentKind) -> str:
    return "orderId" if kind is DocumentKind.order else "quotationId"


def _money(value: float) -> Decimal:
    return Decimal(repr(float(value)))


def _float(value) -> float | None:
    return None if value is None else float(value)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # stored as UTC; some drivers hand back naive values
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def parse_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {field}") from None


def validate_document_payload(
    payload: Mapping[str, Any], *, vat_rate: float = DEFAULT_VAT_RATE
) -> tuple[dict[str, Any], PricingResult]:
    """
    Fail-fast validation shared by create and update. Runs before any
    transaction is opened.
    """
    missing = [name for name in _REQUIRED_FIELDS if _is_blank(payload.get(name))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    pricing = price_lines(payload["products"], vat_rate=vat_rate)

    try:
        client_id = int(payload["client_id"])
    except (TypeError, ValueError):
        raise ValidationError("Invalid client_id") from None

    fields = {
        "client_id": client_id,
        "delivery_date": parse_datetime(payload["delivery_date"], "delivery_date"),
        "delivery_type": str(payload["delivery_type"]).strip(),
        "notes": payload.get("notes"),
    }
    return fields, pricing


def serialize_line(line) -> dict[str, Any]:
    return {
        "id": line.id,
        "section": line.section,
        "type": line.type,
        "description": line.description,
        "quantity": line.quantity,
        "price": _float(line.price),
        "vat": _float(line.vat),
        "subtotal": _float(line.subtotal),
    }


def serialize_document(doc, *, include_products: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": doc.id,
        "custom_id": doc.custom_id,
        "client_id": doc.client_id,
        "username": doc.username,
        "delivery_date": _iso(doc.delivery_date),
        "delivery_type": doc.delivery_type,
        "notes": doc.notes,
        "storekeeper_notes": doc.storekeeper_notes,
        "total_price": _float(doc.total_price),
        "total_vat": _float(doc.total_vat),
        "total_subtotal": _float(doc.total_subtotal),
        "status": doc.status,
        "actual_delivery_date": _iso(doc.actual_delivery_date),
        "supervisoraccept": doc.supervisoraccept,
        "storekeeperaccept": doc.storekeeperaccept,
        "manageraccept": doc.manageraccept,
        "created_at": _iso(doc.created_at),
        "updated_at": _iso(doc.updated_at),
    }
    if doc.kind is DocumentKind.quotation:
        data["supervisor_id"] = doc.supervisor_id

    client = doc.client
    for name in _CLIENT_FIELDS:
        data[name] = getattr(client, name) if client is not None else None

    if include_products:
        data["products"] = [serialize_line(p) for p in doc.products]
    return data


class Workflow:
    """One instance per request; bound to that request's session."""

    def __init__(
        self,
        db: Session,
        *,
        notifier: NotificationDispatcher,
        policy: RetryPolicy,
        vat_rate: float = DEFAULT_VAT_RATE,
        require_acceptance_for_delivery: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.policy = policy
        self.vat_rate = vat_rate
        self.require_acceptance_for_delivery = require_acceptance_for_delivery
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ---------- helpers ----------
    def _load(self, kind: DocumentKind, doc_id: int):
        doc = self.db.get(DOCUMENT_MODELS[kind], doc_id)
        if doc is None:
            raise NotFoundError(f"{_label(kind)} not found")
        return doc

    def _require_client(self, client_id: int) -> None:
        if self.db.get(Client, client_id) is None:
            raise NotFoundError("Client not found")

    def _replace_lines(self, kind: DocumentKind, doc, pricing: PricingResult) -> None:
        line_model, fk = LINE_MODELS[kind]
        self.db.execute(delete(line_model).where(getattr(line_model, fk) == doc.id))
        for ln in pricing.lines:
            self.db.add(
                line_model(
                    **{fk: doc.id},
                    section=ln.section,
                    type=ln.type,
                    description=ln.description,
                    quantity=ln.quantity,
                    price=_money(ln.price),
                    vat=_money(ln.vat),
                    subtotal=_money(ln.subtotal),
                )
            )
        doc.total_price = _money(pricing.total_price)
        doc.total_vat = _money(pricing.total_vat)
        doc.total_subtotal = _money(pricing.total_subtotal)
        self.db.flush()
        self.db.expire(doc, ["products"])

    def _notify(self, kind: DocumentKind, event: WorkflowEvent, ref: str) -> int:
        title, body = approvals.render_message(kind, event, ref)
        sent = 0
        for role in approvals.recipients(kind, event):
            try:
                sent += self.notifier.notify(self.db, role, body, title)
            except Exception:
                # the document is already committed; a push failure never fails the request
                logger.warning(
                    "notification failed",
                    extra={"kind": kind.value, "event": event.value, "role": role.value, "ref": ref},
                    exc_info=True,
                )
        return sent

    def _totals(self, kind: DocumentKind, doc_id: int, custom_id: str, pricing: PricingResult) -> dict[str, Any]:
        return {
            _id_key(kind): doc_id,
            "customId": custom_id,
            "totalPrice": pricing.total_price,
            "totalVat": pricing.total_vat,
            "totalSubtotal": pricing.total_subtotal,
        }

    # ---------- create / update / delete ----------
    def create(self, kind: DocumentKind, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields, pricing = validate_document_payload(payload, vat_rate=self.vat_rate)
        model = DOCUMENT_MODELS[kind]

        def _attempt() -> tuple[int, str]:
            with transaction(self.db):
                self._require_client(fields["client_id"])
                custom_id = next_custom_id(self.db, kind, year=self.clock().year)
                doc = model(
                    custom_id=custom_id,
                    username=payload.get("username"),
                    storekeeper_notes=payload.get("storekeeper_notes"),
                    total_price=Decimal("0"),
                    total_vat=Decimal("0"),
                    total_subtotal=Decimal("0"),
                    **fields,
                    **approvals.initial_state(),
                )
                self.db.add(doc)
                self.db.flush()
                self._replace_lines(kind, doc, pricing)
                return doc.id, custom_id

        doc_id, custom_id = self.policy.including(SequenceConflictError).call(
            _attempt, operation=f"create_{kind.value}"
        )
        logger.info("%s created", kind.value, extra={"custom_id": custom_id, "lines": len(pricing.lines)})

        self._notify(kind, WorkflowEvent.created, custom_id)
        return {**self._totals(kind, doc_id, custom_id, pricing), "status": "success"}

    def update(self, kind: DocumentKind, doc_id: int, payload: Mapping[str, Any]) -> dict[str, Any]:
        fields, pricing = validate_document_payload(payload, vat_rate=self.vat_rate)

        def _attempt() -> str:
            with transaction(self.db):
                doc = self._load(kind, doc_id)
                self._require_client(fields["client_id"])

                for name, value in fields.items():
                    setattr(doc, name, value)
                if "storekeeper_notes" in payload:
                    doc.storekeeper_notes = payload.get("storekeeper_notes")

                approvals.set_flags(doc, {flag: payload.get(flag) for flag in (r.flag for r in ApprovalRole)})
                self._apply_status(doc, payload)
                self._replace_lines(kind, doc, pricing)
                return doc.custom_id

        custom_id = self.policy.call(_attempt, operation=f"update_{kind.value}")
        return {
            "message": f"{_label(kind)} updated successfully",
            **self._totals(kind, doc_id, custom_id, pricing),
        }

    def _apply_status(self, doc, payload: Mapping[str, Any]) -> None:
        status = payload.get("status")
        delivered_at = payload.get("actual_delivery_date")
        if delivered_at is not None:
            doc.actual_delivery_date = parse_datetime(delivered_at, "actual_delivery_date")
        if _is_blank(status):
            return
        if str(status).strip().lower() == DeliveryStatus.delivered.value.lower():
            doc.status = DeliveryStatus.delivered.value
            if doc.actual_delivery_date is None:
                doc.actual_delivery_date = self.clock()
        else:
            doc.status = str(status).strip()

    def delete(self, kind: DocumentKind, doc_id: int) -> dict[str, Any]:
        model = DOCUMENT_MODELS[kind]
        line_model, fk = LINE_MODELS[kind]

        def _attempt() -> None:
            with transaction(self.db):
                self._load(kind, doc_id)
                # children first; the parent FK is RESTRICT
                self.db.execute(delete(line_model).where(getattr(line_model, fk) == doc_id))
                self.db.execute(delete(model).where(model.id == doc_id))

        self.policy.call(_attempt, operation=f"delete_{kind.value}")
        logger.info("%s deleted", kind.value, extra={"id": doc_id})
        return {"message": f"{_label(kind)} deleted successfully"}

    # ---------- transitions ----------
    def accept(
        self,
        kind: DocumentKind,
        doc_id: int,
        role: ApprovalRole,
        *,
        supervisor_id: int | None = None,
    ) -> dict[str, Any]:
        if role is ApprovalRole.supervisor and kind is DocumentKind.quotation and supervisor_id is None:
            raise ValidationError("Missing quotation ID or supervisor ID")

        def _attempt() -> tuple[str, bool]:
            with transaction(self.db):
                doc = self._load(kind, doc_id)
                if supervisor_id is not None and self.db.get(Supervisor, supervisor_id) is None:
                    raise NotFoundError("Supervisor not found")
                changed = approvals.accept(doc, role, supervisor_id=supervisor_id)
                return doc.custom_id, changed

        custom_id, changed = self.policy.call(_attempt, operation=f"accept_{kind.value}_{role.value}")
        if not changed:
            logger.info("accept repeated", extra={"custom_id": custom_id, "role": role.value})

        self._notify(kind, approvals.ACCEPT_EVENTS[role], custom_id)
        return {
            "message": f"{_label(kind)} accepted by {role.value}",
            _id_key(kind): doc_id,
            "customId": custom_id,
            role.flag: AcceptState.accepted.value,
            "changed": changed,
        }

    def deliver(self, doc_id: int) -> dict[str, Any]:
        kind = DocumentKind.order

        def _attempt() -> tuple[str, datetime, bool]:
            with transaction(self.db):
                doc = self._load(kind, doc_id)
                changed = approvals.mark_delivered(
                    doc,
                    now=self.clock(),
                    require_acceptance=self.require_acceptance_for_delivery,
                )
                return doc.custom_id, doc.actual_delivery_date, changed

        custom_id, delivered_at, changed = self.policy.call(_attempt, operation="deliver_order")

        self._notify(kind, WorkflowEvent.delivered, custom_id)
        return {
            "message": "Order marked as delivered",
            "orderId": doc_id,
            "customId": custom_id,
            "status": DeliveryStatus.delivered.value,
            "actual_delivery_date": _iso(delivered_at),
            "changed": changed,
        }

    # ---------- reads ----------
    def get(self, kind: DocumentKind, doc_id: int) -> dict[str, Any]:
        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                return serialize_document(self._load(kind, doc_id))

        return self.policy.call(_attempt, operation=f"get_{kind.value}")

    def list_documents(
        self,
        kind: DocumentKind,
        scope: ListScope = ListScope.all,
        *,
        limit: int | None = None,
        page: int | None = None,
        query: str | None = None,
        status: str | None = None,
        username: str | None = None,
    ) -> dict[str, Any]:
        model = DOCUMENT_MODELS[kind]
        limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
        page = max(int(page or 1), 1)

        if scope is ListScope.sales_rep and _is_blank(username):
            raise ValidationError("Missing required fields: username")

        stmt = select(model).join(Client, model.client_id == Client.id)
        if query:
            pattern = f"%{query.strip()}%"
            stmt = stmt.where(or_(Client.client_name.ilike(pattern), Client.company_name.ilike(pattern)))

        accepted = AcceptState.accepted.value
        if scope in (ListScope.all, ListScope.supervisor):
            if status:
                stmt = stmt.where(or_(model.status == status, model.supervisoraccept == status))
        elif scope is ListScope.supervisor_accept:
            stmt = stmt.where(model.supervisoraccept == accepted)
            if status:
                stmt = stmt.where(model.storekeeperaccept == status)
        elif scope is ListScope.storekeeper_accept:
            stmt = stmt.where(model.storekeeperaccept == accepted)
            if status:
                stmt = stmt.where(model.status == status)
        elif scope is ListScope.sales_rep:
            stmt = stmt.where(model.username == username)
            if status:
                stmt = stmt.where(model.status == status)

        if scope is ListScope.supervisor:
            ordering = (model.created_at.desc(), model.id.desc())
        else:
            ordering = (model.delivery_date.desc(), model.id.desc())

        def _attempt() -> dict[str, Any]:
            with transaction(self.db):
                total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
                rows = (
                    self.db.execute(stmt.order_by(*ordering).limit(limit).offset((page - 1) * limit))
                    .scalars()
                    .all()
                )
                items = [serialize_document(doc, include_products=False) for doc in rows]

            total_pages = math.ceil(total / limit) if total else 0
            return {
                "orders": items,
                "totalCount": total,
                "currentPage": page,
                "totalPages": total_pages,
                "hasMore": page * limit < total,
            }

        return self.policy.call(_attempt, operation=f"list_{kind.value}")
