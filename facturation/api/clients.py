"""Routes de gestion des clients."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from facturation.api.auth import get_current_user
from facturation.core import models, services, vehicles
from facturation.core.errors import NotFoundError

router = APIRouter()


@router.get("/", response_model=list[models.Client])
async def list_clients(user: models.User = Depends(get_current_user)) -> list[models.Client]:
    return services.list_clients()


@router.post("/", response_model=models.Client, status_code=201)
async def create_client(
    payload: models.ClientCreate,
    user: models.User = Depends(get_current_user),
) -> models.Client:
    return services.create_client(payload)


@router.get("/{client_id}", response_model=models.Client)
async def get_client(client_id: int, user: models.User = Depends(get_current_user)) -> models.Client:
    try:
        return services.get_client(client_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.put("/{client_id}", response_model=models.Client)
async def update_client(
    client_id: int,
    payload: models.ClientUpdate,
    user: models.User = Depends(get_current_user),
) -> models.Client:
    try:
        return services.update_client(client_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/{client_id}", status_code=204)
async def delete_client(client_id: int, user: models.User = Depends(get_current_user)) -> None:
    try:
        services.delete_client(client_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{client_id}/voitures", response_model=list[models.Vehicle])
async def list_client_vehicles(
    client_id: int,
    user: models.User = Depends(get_current_user),
) -> list[models.Vehicle]:
    return vehicles.list_vehicles(client_id=client_id)
