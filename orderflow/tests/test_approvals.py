from datetime import datetime, timezone

import pytest

from orderflow.app.db.models.core_types import ApprovalRole, DocumentKind, Role, WorkflowEvent
from orderflow.app.db.models.models_v1 import Order, Quotation
from orderflow.app.errors import ValidationError, WorkflowStateError
from orderflow.services import approvals

T0 = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)
T1 = datetime(2026, 4, 2, 8, 0, tzinfo=timezone.utc)


def _order(**kw):
    return Order(custom_id="NPO-2026-00001", **{**approvals.initial_state(), **kw})


def test_initial_state():
    order = _order()
    assert (order.supervisoraccept, order.storekeeperaccept, order.manageraccept) == ("pending",) * 3
    assert order.status == "not Delivered"
    assert order.actual_delivery_date is None


def test_accept_is_idempotent():
    order = _order()

    assert approvals.accept(order, ApprovalRole.supervisor) is True
    assert approvals.accept(order, ApprovalRole.supervisor) is False
    assert order.supervisoraccept == "accepted"
    assert order.storekeeperaccept == "pending"


def test_flags_are_independent():
    order = _order()
    approvals.accept(order, ApprovalRole.manager)
    assert (order.supervisoraccept, order.storekeeperaccept, order.manageraccept) == ("pending", "pending", "accepted")


def test_quotation_supervisor_acceptance_records_supervisor():
    quotation = Quotation(custom_id="NPQ-2026-00001", **approvals.initial_state())

    with pytest.raises(ValidationError):
        approvals.accept(quotation, ApprovalRole.supervisor)

    approvals.accept(quotation, ApprovalRole.supervisor, supervisor_id=7)
    assert (quotation.supervisoraccept, quotation.supervisor_id) == ("accepted", 7)


def test_delivery_requires_supervisor_and_storekeeper():
    order = _order()
    approvals.accept(order, ApprovalRole.supervisor)

    with pytest.raises(WorkflowStateError):
        approvals.mark_delivered(order, now=T0)
    assert order.status == "not Delivered"

    approvals.accept(order, ApprovalRole.storekeeper)
    assert approvals.mark_delivered(order, now=T0) is True
    assert (order.status, order.actual_delivery_date) == ("Delivered", T0)


def test_permissive_delivery_when_not_required():
    order = _order()
    assert approvals.mark_delivered(order, now=T0, require_acceptance=False) is True


def test_redelivery_keeps_first_timestamp():
    order = _order(supervisoraccept="accepted", storekeeperaccept="accepted")
    approvals.mark_delivered(order, now=T0)

    assert approvals.mark_delivered(order, now=T1) is False
    assert order.actual_delivery_date == T0


def test_administrative_edit_can_regress_a_flag():
    order = _order(supervisoraccept="accepted")
    approvals.set_flags(order, {"supervisoraccept": "pending", "manageraccept": None})

    assert order.supervisoraccept == "pending"
    assert order.manageraccept == "pending"


def test_administrative_edit_rejects_unknown_values():
    with pytest.raises(ValidationError):
        approvals.set_flags(_order(), {"storekeeperaccept": "rejected"})


@pytest.mark.parametrize(
    "kind, event, expected",
    [
        (DocumentKind.order, WorkflowEvent.created, (Role.supervisor,)),
        (DocumentKind.quotation, WorkflowEvent.created, (Role.supervisor, Role.manager)),
        (DocumentKind.order, WorkflowEvent.supervisor_accepted, (Role.storekeeper,)),
        (DocumentKind.quotation, WorkflowEvent.supervisor_accepted, (Role.manager, Role.sales_rep)),
        (DocumentKind.order, WorkflowEvent.storekeeper_accepted, (Role.driver,)),
        (DocumentKind.order, WorkflowEvent.delivered, (Role.supervisor, Role.storekeeper)),
        (DocumentKind.quotation, WorkflowEvent.delivered, ()),
    ],
)
def test_notification_routes(kind, event, expected):
    assert approvals.recipients(kind, event) == expected


def test_render_message():
    title, body = approvals.render_message(DocumentKind.quotation, WorkflowEvent.manager_accepted, "NPQ-2026-00003")
    assert title == "Manager accepted"
    assert body == "Quotation NPQ-2026-00003 was accepted by the manager."
