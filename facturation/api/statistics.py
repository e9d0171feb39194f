"""Routes de statistiques (tableau de bord)."""
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from facturation.api.auth import get_current_user
from facturation.core import models, reports

router = APIRouter()


@router.get("/summary", response_model=models.StatsSummary)
async def get_summary(user: models.User = Depends(get_current_user)) -> models.StatsSummary:
    return reports.summary()


@router.get("/daily", response_model=list[models.DailyStat])
async def get_daily(
    start: Optional[date] = Query(None, description="Date de début incluse (YYYY-MM-DD)"),
    end: Optional[date] = Query(None, description="Date de fin incluse (YYYY-MM-DD)"),
    user: models.User = Depends(get_current_user),
) -> list[models.DailyStat]:
    return reports.daily_totals(start, end)


@router.get("/top-clients", response_model=list[models.TopClient])
async def get_top_clients(
    limit: int = Query(reports.TOP_CLIENTS_DEFAULT),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    user: models.User = Depends(get_current_user),
) -> list[models.TopClient]:
    return reports.top_clients(limit, start, end)


@router.get("/docs-by-day", response_model=list[models.DayDocument])
async def get_docs_by_day(
    day: date = Query(..., alias="date", description="Jour recherché (YYYY-MM-DD)"),
    user: models.User = Depends(get_current_user),
) -> list[models.DayDocument]:
    return reports.documents_of_day(day)
