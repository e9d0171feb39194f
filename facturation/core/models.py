"""Modèles Pydantic pour l'API."""
from __future__ import annotations

import math
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, StrictInt, field_validator

from facturation.core import config
from facturation.core.errors import DocumentValidationError

DocumentKind = Literal["invoice-normal", "invoice-hidden", "quote"]

INVOICE_STATUSES = {"normale", "cachee", "impayee"}


def _strict_numbers() -> bool:
    return config.settings.strict_numbers


def coerce_decimal(value: Any, field_name: str) -> Decimal:
    """Convertit une saisie numérique permissive en ``Decimal``.

    Une valeur absente vaut 0. Une valeur illisible vaut 0 en mode
    ``lenient`` et lève une erreur en mode ``strict``.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0")
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, float) and not math.isfinite(value):
        parsed = None
    else:
        try:
            parsed = Decimal(str(value).strip().replace(",", "."))
        except InvalidOperation:
            parsed = None
    if parsed is None or not parsed.is_finite():
        if _strict_numbers():
            raise ValueError(f"Valeur numérique invalide pour {field_name}: {value!r}")
        return Decimal("0")
    return parsed


def coerce_mileage(value: Any) -> int:
    amount = coerce_decimal(value, "kilometrage")
    if amount < 0 or amount != amount.to_integral_value():
        if _strict_numbers():
            raise ValueError(f"Kilométrage invalide: {value!r}")
        return max(int(amount), 0)
    return int(amount)


def coerce_client_id(value: Any) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        client_id = int(str(value).strip())
    except ValueError:
        if _strict_numbers():
            raise ValueError(f"Identifiant client invalide: {value!r}") from None
        return None
    return client_id or None


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class User(BaseModel):
    id: int
    username: str
    role: str = Field(..., pattern=r"^(admin|user)$")
    nom: str = ""
    prenom: str = ""
    email: Optional[str] = None
    is_active: bool = True

    @property
    def display_name(self) -> str:
        full_name = f"{self.prenom} {self.nom}".strip()
        return full_name or self.email or "Admin"


class ClientBase(BaseModel):
    civilite: Optional[str] = None
    nom: Optional[str] = None
    prenom: Optional[str] = None
    type: Optional[str] = None
    adresse: Optional[str] = None
    code_postal: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("code_postal", "codePostal")
    )
    ville: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(ClientBase):
    pass


class Client(ClientBase):
    id: int


class VehicleCreate(BaseModel):
    immatriculation: str = ""
    kilometrage: int = 0
    client_id: int

    @field_validator("kilometrage", mode="before")
    @classmethod
    def _coerce_mileage(cls, value: Any) -> int:
        return coerce_mileage(value)


class VehicleUpdate(BaseModel):
    immatriculation: str = ""
    kilometrage: int = 0

    @field_validator("kilometrage", mode="before")
    @classmethod
    def _coerce_mileage(cls, value: Any) -> int:
        return coerce_mileage(value)


class Vehicle(BaseModel):
    id: int
    immatriculation: str
    kilometrage: int
    client_id: Optional[int] = None


class DocumentLineInput(BaseModel):
    reference: str = ""
    description: str = ""
    quantite: Decimal = Decimal("0")
    prix_unitaire: Decimal = Decimal("0")
    remise: Decimal = Decimal("0")
    tva: Decimal = Decimal("0")

    @field_validator("reference", "description", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("quantite", "prix_unitaire", "remise", "tva", mode="before")
    @classmethod
    def _coerce_numbers(cls, value: Any, info) -> Decimal:
        return coerce_decimal(value, info.field_name)


class DocumentCreate(BaseModel):
    """Demande de création normalisée, commune aux factures et aux devis."""

    kind: DocumentKind
    client_id: Optional[int] = None
    immatriculation: str = ""
    kilometrage: int = 0
    date_document: Optional[date] = None
    remise: Decimal = Decimal("0")
    montant_ttc: Optional[Decimal] = None
    statut: Optional[str] = None
    lignes: list[DocumentLineInput] = Field(default_factory=list)
    request_id: Optional[str] = None

    @field_validator("client_id", mode="before")
    @classmethod
    def _coerce_client(cls, value: Any) -> Optional[int]:
        return coerce_client_id(value)

    @field_validator("immatriculation", mode="before")
    @classmethod
    def _coerce_plate(cls, value: Any) -> str:
        return str(value or "")

    @field_validator("kilometrage", mode="before")
    @classmethod
    def _coerce_mileage(cls, value: Any) -> int:
        return coerce_mileage(value)

    @field_validator("remise", mode="before")
    @classmethod
    def _coerce_discount(cls, value: Any) -> Decimal:
        return coerce_decimal(value, "remise")

    @field_validator("montant_ttc", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        return coerce_decimal(value, "montant_ttc")

    @field_validator("date_document", mode="before")
    @classmethod
    def _empty_date(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("request_id", mode="before")
    @classmethod
    def _normalize_request_id(cls, value: Any) -> Optional[str]:
        normalized = str(value or "").strip()
        return normalized or None


class InvoiceVehicleInput(BaseModel):
    immatriculation: Any = ""
    kilometrage: Any = 0
    client_id: Any = None


class InvoiceHeaderInput(BaseModel):
    date_facture: Any = None
    montant_ttc: Any = None
    remise: Any = 0
    statut: Optional[str] = None


class InvoiceCreateRequest(BaseModel):
    """Charge utile ``{voiture, facture, lignes}`` de création de facture."""

    voiture: Optional[InvoiceVehicleInput] = None
    facture: Optional[InvoiceHeaderInput] = None
    lignes: Optional[list[dict[str, Any]]] = None
    request_id: Optional[str] = None

    def to_document(self) -> DocumentCreate:
        if self.voiture is None or self.facture is None or self.lignes is None:
            raise DocumentValidationError("Payload incomplet (voiture/facture/lignes)")
        statut = (self.facture.statut or "normale").strip().lower()
        if statut not in INVOICE_STATUSES:
            raise DocumentValidationError(f"Statut de facture invalide: {self.facture.statut}")
        return DocumentCreate(
            kind="invoice-hidden" if statut == "cachee" else "invoice-normal",
            client_id=self.voiture.client_id,
            immatriculation=self.voiture.immatriculation,
            kilometrage=self.voiture.kilometrage,
            date_document=self.facture.date_facture,
            remise=self.facture.remise,
            montant_ttc=self.facture.montant_ttc,
            statut=statut,
            lignes=self.lignes,
            request_id=self.request_id,
        )


class QuoteCreateRequest(BaseModel):
    """Charge utile à plat de création de devis."""

    client_id: Any = None
    immatriculation: Any = ""
    kilometrage: Any = 0
    date_devis: Any = None
    montant_ttc: Any = None
    remise: Any = 0
    statut: Optional[str] = "normal"
    lignes: Optional[list[dict[str, Any]]] = None
    request_id: Optional[str] = None

    def to_document(self) -> DocumentCreate:
        if coerce_client_id(self.client_id) is None:
            raise DocumentValidationError("client_id manquant")
        return DocumentCreate(
            kind="quote",
            client_id=self.client_id,
            immatriculation=self.immatriculation,
            kilometrage=self.kilometrage,
            date_document=self.date_devis,
            remise=self.remise,
            montant_ttc=self.montant_ttc,
            statut=(self.statut or "normal").strip() or "normal",
            lignes=self.lignes or [],
            request_id=self.request_id,
        )


class DocumentCreated(BaseModel):
    document_id: int
    numero: str
    duplicate: bool = False


class DocumentLine(BaseModel):
    id: int
    position: int
    reference: str
    description: str
    quantite: Decimal
    prix_unitaire: Decimal
    remise: Decimal
    tva: Decimal
    total_ht: Decimal


class DocumentHeader(BaseModel):
    id: int
    kind: DocumentKind
    numero: str
    date_document: date
    montant_ht: Decimal
    montant_tva: Decimal
    montant_ttc: Decimal
    remise: Decimal
    statut: str
    voiture_id: Optional[int] = None
    immatriculation: Optional[str] = None
    kilometrage: Optional[int] = None
    client_id: Optional[int] = None
    client: Optional[str] = None
    created_by: Optional[str] = None
    request_id: Optional[str] = None


class CounterValues(BaseModel):
    normal: int
    cachee: int
    devis: int


class CounterPreview(BaseModel):
    next_normal: int
    next_cachee: str
    next_devis: int


class CounterUpdate(BaseModel):
    normal: Optional[StrictInt] = Field(default=None, ge=0)
    cachee: Optional[StrictInt] = Field(default=None, ge=0)
    devis: Optional[StrictInt] = Field(default=None, ge=0)


class StatsSummary(BaseModel):
    total_encaisse: Decimal
    factures_normales: int
    factures_cachees: int
    devis: int


class DailyStat(BaseModel):
    type: str
    jour: date
    total: Decimal
    count: int


class TopClient(BaseModel):
    nom_complet: str
    total: Decimal


class DayDocument(BaseModel):
    jour: date
    client: str
    type: str
    statut: str
    montant: Decimal
