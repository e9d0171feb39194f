"""Routes de gestion des voitures."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from facturation.api.auth import get_current_user
from facturation.core import documents, models, vehicles
from facturation.core.errors import NotFoundError

router = APIRouter()


@router.get("/", response_model=list[models.Vehicle])
async def list_vehicles(user: models.User = Depends(get_current_user)) -> list[models.Vehicle]:
    return vehicles.list_vehicles()


@router.post("/", response_model=models.Vehicle, status_code=201)
async def create_vehicle(
    payload: models.VehicleCreate,
    user: models.User = Depends(get_current_user),
) -> models.Vehicle:
    try:
        return vehicles.create_vehicle(payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{vehicle_id}", response_model=models.Vehicle)
async def get_vehicle(vehicle_id: int, user: models.User = Depends(get_current_user)) -> models.Vehicle:
    try:
        return vehicles.get_vehicle(vehicle_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.put("/{vehicle_id}", response_model=models.Vehicle)
async def update_vehicle(
    vehicle_id: int,
    payload: models.VehicleUpdate,
    user: models.User = Depends(get_current_user),
) -> models.Vehicle:
    try:
        return vehicles.update_vehicle(vehicle_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/{vehicle_id}", status_code=204)
async def delete_vehicle(vehicle_id: int, user: models.User = Depends(get_current_user)) -> None:
    try:
        vehicles.delete_vehicle(vehicle_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/{vehicle_id}/factures", response_model=list[models.DocumentHeader])
async def list_vehicle_invoices(
    vehicle_id: int,
    user: models.User = Depends(get_current_user),
) -> list[models.DocumentHeader]:
    return documents.list_documents("invoice", vehicle_id=vehicle_id)


@router.get("/{vehicle_id}/devis", response_model=list[models.DocumentHeader])
async def list_vehicle_quotes(
    vehicle_id: int,
    user: models.User = Depends(get_current_user),
) -> list[models.DocumentHeader]:
    return documents.list_documents("quote", vehicle_id=vehicle_id)
