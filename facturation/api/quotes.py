"""Routes des devis."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Response

from facturation.api.auth import get_current_user
from facturation.api.creation import create_from_request
from facturation.core import documents, models
from facturation.core.errors import NotFoundError

router = APIRouter()


@router.post("/complete", response_model=models.DocumentCreated, status_code=201)
async def create_quote(
    payload: models.QuoteCreateRequest,
    response: Response,
    user: models.User = Depends(get_current_user),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
) -> models.DocumentCreated:
    return create_from_request(
        payload, user=user, idempotency_key=idempotency_key, response=response
    )


@router.get("/", response_model=list[models.DocumentHeader])
async def list_quotes(user: models.User = Depends(get_current_user)) -> list[models.DocumentHeader]:
    return documents.list_documents("quote")


@router.get("/{quote_id}", response_model=models.DocumentHeader)
async def get_quote(
    quote_id: int,
    user: models.User = Depends(get_current_user),
) -> models.DocumentHeader:
    try:
        return documents.get_document("quote", quote_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{quote_id}/lignes", response_model=list[models.DocumentLine])
async def get_quote_lines(
    quote_id: int,
    user: models.User = Depends(get_current_user),
) -> list[models.DocumentLine]:
    try:
        return documents.get_document_lines("quote", quote_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
