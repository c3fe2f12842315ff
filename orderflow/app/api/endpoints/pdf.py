from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from orderflow.app.api.deps import get_workflow
from orderflow.app.db.models.core_types import DocumentKind
from orderflow.services.documents import render_document_pdf
from orderflow.services.workflow import Workflow

router = APIRouter()


def _pdf_response(kind: DocumentKind, document: dict) -> Response:
    filename = f"{document.get('custom_id') or kind.value}.pdf"
    return Response(
        content=render_document_pdf(kind, document),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/order/pdf/{order_id}")
def order_pdf(order_id: int, workflow: Workflow = Depends(get_workflow)):
    return _pdf_response(DocumentKind.order, workflow.get(DocumentKind.order, order_id))


@router.get("/quotation/pdf/{quotation_id}")
def quotation_pdf(quotation_id: int, workflow: Workflow = Depends(get_workflow)):
    return _pdf_response(DocumentKind.quotation, workflow.get(DocumentKind.quotation, quotation_id))
