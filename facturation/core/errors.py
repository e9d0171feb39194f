"""Exceptions métier partagées par les services et l'API."""
from __future__ import annotations


class DocumentValidationError(ValueError):
    """Requête rejetée avant toute écriture en base."""


class NotFoundError(LookupError):
    """Ressource (client, voiture, facture, devis) inexistante."""


class DocumentCreationError(RuntimeError):
    """Échec de la transaction de création, rien n'a été persisté."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail or message
