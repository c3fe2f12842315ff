from __future__ import annotations

from fastapi import APIRouter, Depends

from orderflow.app.api.deps import get_workflow
from orderflow.app.db.models.core_types import DocumentKind
from orderflow.app.schemas.documents import DocumentIn, DocumentUpdate
from orderflow.services.workflow import ListScope, Workflow

router = APIRouter(prefix="/quotations")

KIND = DocumentKind.quotation


@router.post("", status_code=201)
def create_quotation(payload: DocumentIn, workflow: Workflow = Depends(get_workflow)):
    return workflow.create(KIND, payload.model_dump())


@router.get("")
def list_quotations(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(KIND, ListScope.all, limit=limit, page=page, query=query, status=status)


# role-scoped lists must be declared before /{quotation_id}
@router.get("/supervisor")
def list_quotations_for_supervisor(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.list_documents(KIND, ListScope.supervisor, limit=limit, page=page, query=query, status=status)


@router.get("/supervisorAccept")
def list_supervisor_accepted_quotations(
    limit: int = 10,
    page: int = 1,
    query: str | None = None,
    status: str | None = None,
    workflow: Workflow = Depends(get_workflow),
):
    """Quotations the supervisor accepted; ``status`` filters the storekeeper flag."""
    return workflow.list_documents(
        KIND, ListScope.supervisor_accept, limit=limit, page=page, query=query, status=status
    )


@router.get("/storekeeperaccept")
def list_storekeeper_accepted_quotations(
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
def list_sales_rep_quotations(
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


@router.get("/{quotation_id}")
def get_quotation(quotation_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.get(KIND, quotation_id)


@router.put("/{quotation_id}")
def update_quotation(quotation_id: int, payload: DocumentUpdate, workflow: Workflow = Depends(get_workflow)):
    return workflow.update(KIND, quotation_id, payload.model_dump(exclude_unset=True))


@router.delete("/{quotation_id}")
def delete_quotation(quotation_id: int, workflow: Workflow = Depends(get_workflow)):
    return workflow.delete(KIND, quotation_id)
