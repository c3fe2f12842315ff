from __future__ import annotations

from fastapi import APIRouter, Depends

from orderflow.app.api.deps import get_workflow
from orderflow.app.db.models.core_types import DocumentKind
from orderflow.app.schemas.documents import DocumentIn, DocumentUpdate
from orderflow.services.workflow import ListScope, Workflow

router = APIRouter(prefix="/orders")

KIND = DocumentKind.order


@router.post("", status_code=201)
def create_order(payload: DocumentIn, workflow: Workflow = Depends(get_workflow)):
    return workflow.create(KIND, payload.model_dump())


@router.get("")
def list_orders(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(KIND, ListScope.all, limit=limit, page=page, query=query, status=status)


# role-scoped lists must be declared before /{order_id}
@router.get("/supervisor")
def list_orders_for_supervisor(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(KIND, ListScope.supervisor, limit=limit, page=page, query=query, status=status)


@router.get("/supervisorAccept")
def list_supervisor_accepted_orders(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    """Orders the supervisor accepted; ``status`` filters the storekeeper flag."""
    return workflow.list_documents(
        KIND, ListScope.supervisor_accept, limit=limit, page=page, query=query, status=status
    )


@router.get("/storekeeperaccept")
def list_storekeeper_accepted_orders(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(
        KIND, ListScope.storekeeper_accept, limit=limit, page=page, query=query, status=status
    )


@router.get("/salesRep")
def list_sales_rep_orders(
    username: str | None = None,
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(
        KIND,
        ListScope.sales_rep,
        limit=limit,
        page=page,
        query=query,
        status=status,
        username=username,
    )


@router.get("/{order_id}")
def get_order(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.get(KIND, order_id)


@router.put("/{order_id}")
def update_order(order_id: int, payload: DocumentUpdate, workflow: Workflow = Depends(get_workflow)):
    return workflow.update(KIND, order_id, payload.model_dump(exclude_unset=True))


@router.delete("/{order_id}")
def delete_order(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.delete(KIND, order_id)
