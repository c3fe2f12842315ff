from __future__ import annotations

from fastapi import APIRouter, Depends

from orderflow.app.api.deps import get_staff_service
from orderflow.app.db.models.core_types import Role
from orderflow.app.schemas.staff import StaffIn
from orderflow.services.staff import StaffService

STAFF_PREFIXES = {
    Role.driver: "/drivers",
    Role.supervisor: "/supervisors",
    Role.storekeeper: "/storekeepers",
    Role.manager: "/managers",
    Role.sales_rep: "/salesreps",
}


def build_staff_router(role: Role) -> APIRouter:
    """Same five routes for every role table."""
    router = APIRouter(prefix=STAFF_PREFIXES[role])

    @router.post("", status_code=201)
    def register(payload: StaffIn, staff: StaffService = Depends(get_staff_service)):
        return staff.register(role, payload.model_dump())

    @router.get("")
    def list_staff(staff: StaffService = Depends(get_staff_service)):
        return staff.list(role)

    @router.get("/{user_id}")
    def get_staff(user_id: int, staff: StaffService = Depends(get_staff_service)):
        return staff.get(role, user_id)

    @router.put("/{user_id}")
    def update_staff(user_id: int, payload: StaffIn, staff: StaffService = Depends(get_staff_service)):
        return staff.update(role, user_id, payload.model_dump())

    @router.delete("/{user_id}")
    def delete_staff(user_id: int, staff: StaffService = Depends(get_staff_service)):
        return staff.delete(role, user_id)

    return router
