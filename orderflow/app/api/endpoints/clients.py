from __future__ import annotations

from fastapi import APIRouter, Depends

from orderflow.app.api.deps import get_client_service
from orderflow.app.schemas.clients import ClientIn
from orderflow.services.clients import ClientService

router = APIRouter(prefix="/clients")


@router.post("", status_code=201)
def create_client(payload: ClientIn, clients: ClientService = Depends(get_client_service)):
    return clients.create(payload.model_dump())


@router.get("")
def list_clients(
    search: str | None = None,
    limit: int = 10,
    page: int = 1,
    clients: ClientService = Depends(get_client_service),
):
    return clients.list(search=search, limit=limit, page=page)


@router.get("/{client_id}")
def get_client(client_id: int, clients: ClientService = Depends(get_client_service)):
    return clients.get(client_id)


@router.put("/{client_id}")
def update_client(client_id: int, payload: ClientIn, clients: ClientService = Depends(get_client_service)):
    return clients.update(client_id, payload.model_dump())


@router.delete("/{client_id}")
def delete_client(client_id: int, clients: ClientService = Depends(get_client_service)):
    return clients.delete(client_id)
