"""Routes des compteurs de numérotation."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from facturation.api.admin import require_admin
from facturation.api.auth import get_current_user
from facturation.core import counters, models

router = APIRouter()


@router.get("/", response_model=models.CounterValues)
async def get_counters(user: models.User = Depends(get_current_user)) -> models.CounterValues:
    return counters.get_counters()


@router.get("/next", response_model=models.CounterPreview)
async def get_next_numbers(user: models.User = Depends(get_current_user)) -> models.CounterPreview:
    return counters.get_next_numbers()


@router.put("/", response_model=models.CounterValues)
async def update_counters(
    payload: models.CounterUpdate,
    user: models.User = Depends(require_admin),
) -> models.CounterValues:
    values = payload.model_dump(exclude_none=True)
    if not values:
        raise HTTPException(status_code=400, detail="Aucune valeur de compteur fournie")
    try:
        return counters.set_values(values, actor=user.email or user.username)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
