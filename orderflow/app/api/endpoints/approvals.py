from __future__ import annotations

from fastapi import APIRouter, Depends

from orderflow.app.api.deps import get_workflow
from orderflow.app.db.models.core_types import ApprovalRole, DocumentKind
from orderflow.app.schemas.documents import SupervisorAcceptance
from orderflow.services.workflow import Workflow

router = APIRouter()


@router.put("/acceptSupervisor/{order_id}")
def accept_order_supervisor(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.accept(DocumentKind.order, order_id, ApprovalRole.supervisor)


@router.put("/acceptStorekeeper/{order_id}")
def accept_order_storekeeper(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.accept(DocumentKind.order, order_id, ApprovalRole.storekeeper)


@router.put("/acceptManager/{order_id}")
def accept_order_manager(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.accept(DocumentKind.order, order_id, ApprovalRole.manager)


@router.put("/acceptSupervisorQuotation/{quotation_id}")
def accept_quotation_supervisor(
    quotation_id: int,
    payload: SupervisorAcceptance | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    supervisor_id = payload.supervisor_id if payload is not None else None
    return workflow.accept(
        DocumentKind.quotation,
        quotation_id,
        ApprovalRole.supervisor,
        supervisor_id=supervisor_id,
    )


@router.put("/acceptStorekeeperQuotation/{quotation_id}")
def accept_quotation_storekeeper(quotation_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.accept(DocumentKind.quotation, quotation_id, ApprovalRole.storekeeper)


@router.put("/acceptManagerQuotation/{quotation_id}")
def accept_quotation_manager(quotation_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.accept(DocumentKind.quotation, quotation_id, ApprovalRole.manager)


@router.put("/delivered/{order_id}")
def mark_order_delivered(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.deliver(order_id)
