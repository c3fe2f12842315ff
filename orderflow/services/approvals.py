"""
Approval state machine for orders and quotations.

Each document carries three independent acceptance flags (supervisor,
storekeeper, manager), each ``pending`` or ``accepted``, plus a delivery
status. Workflow transitions only ever move a flag forward; moving one back
to ``pending`` is reserved for the administrative edit (``set_flags``).

The routing table below decides which roles hear about each transition.
"""

from __future__ import annotations

from datetime import datetime, timezone

from orderflow.app.db.models.core_types import (
    AcceptState,
    ApprovalRole,
    DeliveryStatus,
    DocumentKind,
    Role,
    WorkflowEvent,
)
from orderflow.app.errors import ValidationError, WorkflowStateError


ACCEPT_EVENTS = {
    ApprovalRole.supervisor: WorkflowEvent.supervisor_accepted,
    ApprovalRole.storekeeper: WorkflowEvent.storekeeper_accepted,
    ApprovalRole.manager: WorkflowEvent.manager_accepted,
}

NOTIFICATION_ROUTES: dict[tuple[DocumentKind, WorkflowEvent], tuple[Role, ...]] = {
    (DocumentKind.order, WorkflowEvent.created): (Role.supervisor,),
    (DocumentKind.quotation, WorkflowEvent.created): (Role.supervisor, Role.manager),
    (DocumentKind.order, WorkflowEvent.supervisor_accepted): (Role.storekeeper,),
    (DocumentKind.quotation, WorkflowEvent.supervisor_accepted): (Role.manager, Role.sales_rep),
    (DocumentKind.order, WorkflowEvent.storekeeper_accepted): (Role.driver,),
    (DocumentKind.quotation, WorkflowEvent.storekeeper_accepted): (Role.sales_rep,),
    (DocumentKind.order, WorkflowEvent.manager_accepted): (Role.sales_rep,),
    (DocumentKind.quotation, WorkflowEvent.manager_accepted): (Role.sales_rep,),
    (DocumentKind.order, WorkflowEvent.delivered): (Role.supervisor, Role.storekeeper),
}

_MESSAGES = {
    WorkflowEvent.created: ("New {label}", "New {label} {ref} has been created and awaits your approval."),
    WorkflowEvent.supervisor_accepted: ("Supervisor accepted", "{Label} {ref} was accepted by the supervisor."),
    WorkflowEvent.storekeeper_accepted: ("Ready for delivery", "{Label} {ref} was accepted by the storekeeper."),
    WorkflowEvent.manager_accepted: ("Manager accepted", "{Label} {ref} was accepted by the manager."),
    WorkflowEvent.delivered: ("Delivered", "{Label} {ref} has been delivered."),
}

_LABELS = {
    DocumentKind.order: "order",
    DocumentKind.quotation: "quotation",
}


def initial_state() -> dict[str, str | None]:
    return {
        "status": DeliveryStatus.not_delivered.value,
        "supervisoraccept": AcceptState.pending.value,
        "storekeeperaccept": AcceptState.pending.value,
        "manageraccept": AcceptState.pending.value,
        "actual_delivery_date": None,
    }


def is_accepted(document, role: ApprovalRole) -> bool:
    return getattr(document, role.flag) == AcceptState.accepted.value


def is_delivered(document) -> bool:
    return (document.status or "").lower() == DeliveryStatus.delivered.value.lower()


def accept(document, role: ApprovalRole, *, supervisor_id: int | None = None) -> bool:
    """
    Flip one role's flag to accepted. Returns True when the flag changed.

    Re-accepting is a no-op. For quotations the accepting supervisor is
    recorded on every supervisor acceptance.
    """
    if role is ApprovalRole.supervisor and document.kind is DocumentKind.quotation:
        if supervisor_id is None:
            raise ValidationError("Missing quotation ID or supervisor ID")
        document.supervisor_id = supervisor_id

    if is_accepted(document, role):
        return False

    setattr(document, role.flag, AcceptState.accepted.value)
    return True


def ready_for_delivery(document) -> bool:
    return is_accepted(document, ApprovalRole.supervisor) and is_accepted(document, ApprovalRole.storekeeper)


def mark_delivered(document, *, now: datetime | None = None, require_acceptance: bool = True) -> bool:
    """
    Move the document to Delivered and stamp the delivery time.

    Returns False when it was already delivered (first timestamp is kept).
    """
    if is_delivered(document):
        return False

    if require_acceptance and not ready_for_delivery(document):
        raise WorkflowStateError(
            f"{_LABELS[document.kind].capitalize()} must be accepted by supervisor and storekeeper before delivery"
        )

    document.status = DeliveryStatus.delivered.value
    document.actual_delivery_date = now or datetime.now(timezone.utc)
    return True


def set_flags(document, flags: dict[str, str | None]) -> None:
    """Administrative edit: explicit flag values, regressions allowed."""
    allowed = {s.value for s in AcceptState}
    for role in ApprovalRole:
        value = flags.get(role.flag)
        if value is None:
            continue
        if value not in allowed:
            raise ValidationError(f"Invalid value for {role.flag}: {value}")
        setattr(document, role.flag, value)


def recipients(kind: DocumentKind, event: WorkflowEvent) -> tuple[Role, ...]:
    return NOTIFICATION_ROUTES.get((kind, event), ())


def render_message(kind: DocumentKind, event: WorkflowEvent, ref: str) -> tuple[str, str]:
    label = _LABELS[kind]
    title, body = _MESSAGES[event]
    fmt = {"label": label, "Label": label.capitalize(), "ref": ref}
    return title.format(**fmt), body.format(**fmt)
