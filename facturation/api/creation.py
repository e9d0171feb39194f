"""Traduction HTTP des créations de factures et devis."""
from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import HTTPException, Response
from pydantic import ValidationError

from facturation.core import documents, models
from facturation.core.errors import DocumentCreationError, DocumentValidationError

logger = logging.getLogger(__name__)


def create_from_request(
    request: Union[models.InvoiceCreateRequest, models.QuoteCreateRequest],
    *,
    user: models.User,
    idempotency_key: Optional[str],
    response: Response,
) -> models.DocumentCreated:
    try:
        payload = request.to_document()
        created = documents.create_document(
            payload,
            created_by=user.display_name,
            idempotency_key=idempotency_key,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=[error["msg"] for error in exc.errors()]) from exc
    except DocumentValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DocumentCreationError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": str(exc), "detail": exc.detail},
        ) from exc
    response.status_code = 200 if created.duplicate else 201
    return created
