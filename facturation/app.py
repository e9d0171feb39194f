"""Application FastAPI principale de la facturation atelier."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from facturation.api import (
    auth,
    clients,
    counters,
    invoices,
    quotes,
    statistics,
    vehicles,
)
from facturation.core import security, services
from facturation.core.logging_config import configure_logging


configure_logging()


@asynccontextmanager
async def _lifespan(_: FastAPI):
    security.check_secret_key()
    services.ensure_database_ready()
    yield


app = FastAPI(title="Facturation Atelier API", version="1.0.0", lifespan=_lifespan)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(clients.router, prefix="/clients", tags=["clients"])
app.include_router(vehicles.router, prefix="/voitures", tags=["voitures"])
app.include_router(invoices.router, prefix="/factures", tags=["factures"])
app.include_router(quotes.router, prefix="/devis", tags=["devis"])
app.include_router(counters.router, prefix="/counters", tags=["counters"])
app.include_router(statistics.router, prefix="/statistiques", tags=["statistiques"])


@app.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Renvoie l'état de santé générique du service."""
    return {"status": "ok"}
