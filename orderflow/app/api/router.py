from fastapi import APIRouter

from orderflow.app.api.endpoints.approvals import router as approvals_router
from orderflow.app.api.endpoints.clients import router as clients_router
from orderflow.app.api.endpoints.fcm_tokens import router as fcm_tokens_router
from orderflow.app.api.endpoints.orders import router as orders_router
from orderflow.app.api.endpoints.pdf import router as pdf_router
from orderflow.app.api.endpoints.quotations import router as quotations_router
from orderflow.app.api.endpoints.staff import STAFF_PREFIXES, build_staff_router

router = APIRouter()
router.include_router(orders_router, tags=["orders"])
router.include_router(quotations_router, tags=["quotations"])
router.include_router(approvals_router, tags=["approvals"])
router.include_router(pdf_router, tags=["documents"])
router.include_router(clients_router, tags=["clients"])
router.include_router(fcm_tokens_router, tags=["fcm"])
for role in STAFF_PREFIXES:
    router.include_router(build_staff_router(role), tags=["staff"])
