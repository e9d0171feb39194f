"""Création transactionnelle et idempotente des factures et devis."""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, DecimalException
from typing import Iterable, Optional

from facturation.core import counters, db, models, vehicles
from facturation.core.errors import (
    DocumentCreationError,
    DocumentValidationError,
    NotFoundError,
)
from facturation.core.money import (
    fits_in_cents,
    format_eur,
    from_cents,
    line_total_ht,
    round_money,
    to_cents,
    vat_amount,
)

logger = logging.getLogger(__name__)

_TOTAL_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class _DocumentTables:
    header: str
    lines: str
    line_fk: str
    date_column: str
    log_tag: str


_FAMILY_TABLES: dict[str, _DocumentTables] = {
    "invoice": _DocumentTables(
        header="factures",
        lines="facture_lignes",
        line_fk="facture_id",
        date_column="date_facture",
        log_tag="[FACTURE]",
    ),
    "quote": _DocumentTables(
        header="devis",
        lines="devis_lignes",
        line_fk="devis_id",
        date_column="date_devis",
        log_tag="[DEVIS]",
    ),
}

_KIND_FAMILY: dict[str, str] = {
    "invoice-normal": "invoice",
    "invoice-hidden": "invoice",
    "quote": "quote",
}


@dataclass(frozen=True)
class _PreparedLine:
    line: models.DocumentLineInput
    total_ht: Decimal


@dataclass(frozen=True)
class _PreparedDocument:
    payload: models.DocumentCreate
    lines: tuple[_PreparedLine, ...]
    statut: str
    document_date: date
    montant_ht: Decimal
    montant_tva: Decimal
    montant_ttc: Decimal


def family_tables(family: str) -> _DocumentTables:
    try:
        return _FAMILY_TABLES[family]
    except KeyError:
        raise ValueError(f"Type de document inconnu: {family}") from None


def resolve_request_id(header_value: Optional[str], body_value: Optional[str]) -> Optional[str]:
    """L'en-tête ``Idempotency-Key`` prime sur le ``request_id`` du corps."""
    for candidate in (header_value, body_value):
        normalized = str(candidate or "").strip()
        if normalized:
            return normalized
    return None


def _resolve_statut(payload: models.DocumentCreate) -> str:
    if payload.kind == "quote":
        return (payload.statut or "normal").strip() or "normal"
    if payload.kind == "invoice-hidden":
        if payload.statut not in (None, "", "cachee"):
            raise DocumentValidationError("Une facture cachée porte le statut 'cachee'")
        return "cachee"
    statut = (payload.statut or "normale").strip().lower()
    if statut == "cachee" or statut not in models.INVOICE_STATUSES:
        raise DocumentValidationError(f"Statut de facture invalide: {payload.statut}")
    return statut


def prepare_document(payload: models.DocumentCreate) -> _PreparedDocument:
    """Valide la demande et calcule les montants, sans toucher à la base."""
    if not payload.lignes:
        raise DocumentValidationError("Aucune ligne fournie")
    plate = vehicles.normalize_plate(payload.immatriculation)
    if payload.client_id is None and not plate:
        raise DocumentValidationError("Référence client ou immatriculation manquante")
    if payload.client_id is not None:
        with db.get_connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM clients WHERE id = ?", (payload.client_id,)
            ).fetchone()
        if row is None:
            raise DocumentValidationError("Client introuvable")

    statut = _resolve_statut(payload)
    try:
        prepared_lines = tuple(
            _PreparedLine(
                line=line,
                total_ht=line_total_ht(line.quantite, line.prix_unitaire, line.remise),
            )
            for line in payload.lignes
        )
        montant_ht = sum((line.total_ht for line in prepared_lines), Decimal("0.00"))
        montant_tva = sum(
            (vat_amount(line.total_ht, line.line.tva) for line in prepared_lines),
            Decimal("0.00"),
        )
        remise = round_money(payload.remise)
        montant_ttc = round_money(montant_ht + montant_tva - remise)
        amounts = [montant_ht, montant_tva, montant_ttc, remise]
        for prepared in prepared_lines:
            amounts.extend((round_money(prepared.line.prix_unitaire), prepared.total_ht))
    except DecimalException as exc:
        raise DocumentValidationError("Montant hors limites") from exc
    if not all(fits_in_cents(amount) for amount in amounts):
        raise DocumentValidationError("Montant hors limites")
    if payload.montant_ttc is not None and abs(payload.montant_ttc - montant_ttc) > _TOTAL_TOLERANCE:
        logger.warning(
            "[DOCUMENT] montant_ttc fourni=%s recalculé=%s, le montant recalculé est conservé",
            format_eur(payload.montant_ttc),
            format_eur(montant_ttc),
        )
    return _PreparedDocument(
        payload=payload,
        lines=prepared_lines,
        statut=statut,
        document_date=payload.date_document or date.today(),
        montant_ht=montant_ht,
        montant_tva=montant_tva,
        montant_ttc=montant_ttc,
    )


def _insert_lines(
    conn: sqlite3.Connection,
    tables: _DocumentTables,
    document_id: int,
    lines: Iterable[_PreparedLine],
) -> None:
    conn.executemany(
        f"""
        INSERT INTO {tables.lines} (
            {tables.line_fk}, position, reference, description, quantite,
            prix_unitaire_cents, remise, tva, total_ht_cents
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (
                document_id,
                position,
                prepared.line.reference,
                prepared.line.description,
                str(prepared.line.quantite),
                to_cents(prepared.line.prix_unitaire),
                str(prepared.line.remise),
                str(prepared.line.tva),
                to_cents(prepared.total_ht),
            )
            for position, prepared in enumerate(lines, start=1)
        ],
    )


def _write_document(
    prepared: _PreparedDocument, *, created_by: str, request_id: Optional[str]
) -> models.DocumentCreated:
    payload = prepared.payload
    number_format = counters.NUMBER_FORMATS[payload.kind]
    tables = _FAMILY_TABLES[_KIND_FAMILY[payload.kind]]
    with db.transaction() as conn:
        next_value = counters.peek_next_in(conn, number_format.counter_type)
        numero = number_format.format(next_value)
        vehicle_id = vehicles.resolve_vehicle(
            conn, payload.immatriculation, payload.client_id, payload.kilometrage
        )
        cur = conn.execute(
            f"""
            INSERT INTO {tables.header} (
                numero, {tables.date_column}, montant_ht_cents, montant_tva_cents,
                montant_ttc_cents, remise_cents, statut, voiture_id, created_by, request_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                numero,
                prepared.document_date.isoformat(),
                to_cents(prepared.montant_ht),
                to_cents(prepared.montant_tva),
                to_cents(prepared.montant_ttc),
                to_cents(payload.remise),
                prepared.statut,
                vehicle_id,
                created_by,
                request_id,
            ),
        )
        document_id = int(cur.lastrowid)
        _insert_lines(conn, tables, document_id, prepared.lines)
        advanced = counters.advance(conn, number_format.counter_type, actor=created_by)
        if advanced != next_value:
            raise DocumentCreationError(
                "Enregistrement échoué",
                detail=f"compteur {number_format.counter_type} incohérent ({advanced} != {next_value})",
            )
    logger.info(
        "%s created id=%s numero=%s ttc=%s by=%s request_id=%s",
        tables.log_tag,
        document_id,
        numero,
        format_eur(prepared.montant_ttc),
        created_by,
        request_id,
    )
    return models.DocumentCreated(document_id=document_id, numero=numero)


def find_by_request_id(family: str, request_id: str) -> Optional[models.DocumentCreated]:
    tables = family_tables(family)
    with db.get_connection() as conn:
        row = conn.execute(
            f"SELECT id, numero FROM {tables.header} WHERE request_id = ?", (request_id,)
        ).fetchone()
    if row is None:
        return None
    return models.DocumentCreated(document_id=row["id"], numero=row["numero"], duplicate=True)


def _is_request_id_conflict(exc: sqlite3.IntegrityError, tables: _DocumentTables) -> bool:
    message = str(exc)
    return "UNIQUE" in message and f"{tables.header}.request_id" in message


def create_document(
    payload: models.DocumentCreate,
    *,
    created_by: str,
    idempotency_key: Optional[str] = None,
) -> models.DocumentCreated:
    """Crée un document numéroté, au plus une fois par clé d'idempotence.

    Une clé déjà connue renvoie le document existant marqué ``duplicate``
    sans modifier ni voiture ni compteur, avant toute validation du contenu.
    Une violation d'unicité sur ``request_id`` (deux requêtes identiques
    concurrentes) est traitée de la même façon.
    """
    family = _KIND_FAMILY[payload.kind]
    tables = _FAMILY_TABLES[family]
    request_id = resolve_request_id(idempotency_key, payload.request_id)

    if request_id:
        existing = find_by_request_id(family, request_id)
        if existing is not None:
            logger.info(
                "%s duplicate request_id=%s -> id=%s numero=%s",
                tables.log_tag,
                request_id,
                existing.document_id,
                existing.numero,
            )
            return existing

    prepared = prepare_document(payload)
    try:
        return _write_document(prepared, created_by=created_by, request_id=request_id)
    except sqlite3.IntegrityError as exc:
        if request_id and _is_request_id_conflict(exc, tables):
            existing = find_by_request_id(family, request_id)
            if existing is not None:
                logger.info(
                    "%s concurrent duplicate request_id=%s -> id=%s",
                    tables.log_tag,
                    request_id,
                    existing.document_id,
                )
                return existing
        logger.error("%s create failed: %s", tables.log_tag, exc)
        raise DocumentCreationError("Enregistrement échoué", detail=str(exc)) from exc
    except (sqlite3.Error, OverflowError) as exc:
        logger.error("%s create failed: %s", tables.log_tag, exc)
        raise DocumentCreationError("Enregistrement échoué", detail=str(exc)) from exc


def _header_select(tables: _DocumentTables) -> str:
    return f"""
        SELECT
            d.id,
            d.numero,
            d.{tables.date_column} AS date_document,
            d.montant_ht_cents,
            d.montant_tva_cents,
            d.montant_ttc_cents,
            d.remise_cents,
            d.statut,
            d.voiture_id,
            d.created_by,
            d.request_id,
            v.immatriculation,
            v.kilometrage,
            v.client_id,
            TRIM(COALESCE(c.nom, '') || ' ' || COALESCE(c.prenom, '')) AS client
        FROM {tables.header} d
        LEFT JOIN voitures v ON v.id = d.voiture_id
        LEFT JOIN clients c ON c.id = v.client_id
    """


def _row_to_header(family: str, row: sqlite3.Row) -> models.DocumentHeader:
    if family == "quote":
        kind = "quote"
    else:
        kind = "invoice-hidden" if row["statut"] == "cachee" else "invoice-normal"
    return models.DocumentHeader(
        id=row["id"],
        kind=kind,
        numero=row["numero"],
        date_document=date.fromisoformat(row["date_document"][:10]),
        montant_ht=from_cents(row["montant_ht_cents"]),
        montant_tva=from_cents(row["montant_tva_cents"]),
        montant_ttc=from_cents(row["montant_ttc_cents"]),
        remise=from_cents(row["remise_cents"]),
        statut=row["statut"],
        voiture_id=row["voiture_id"],
        immatriculation=row["immatriculation"],
        kilometrage=row["kilometrage"],
        client_id=row["client_id"],
        client=row["client"] or None,
        created_by=row["created_by"],
        request_id=row["request_id"],
    )


def get_document(family: str, document_id: int) -> models.DocumentHeader:
    tables = family_tables(family)
    with db.get_connection() as conn:
        row = conn.execute(
            _header_select(tables) + " WHERE d.id = ?", (document_id,)
        ).fetchone()
    if row is None:
        raise NotFoundError("Facture introuvable" if family == "invoice" else "Devis introuvable")
    return _row_to_header(family, row)


def list_documents(family: str, *, vehicle_id: Optional[int] = None) -> list[models.DocumentHeader]:
    tables = family_tables(family)
    query = _header_select(tables)
    params: tuple[object, ...] = ()
    if vehicle_id is not None:
        query += " WHERE d.voiture_id = ?"
        params = (vehicle_id,)
    query += " ORDER BY d.id DESC"
    with db.get_connection() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_header(family, row) for row in rows]


def get_document_lines(family: str, document_id: int) -> list[models.DocumentLine]:
    tables = family_tables(family)
    get_document(family, document_id)
    with db.get_connection() as conn:
        rows = conn.execute(
            f"""
            SELECT id, position, reference, description, quantite,
                   prix_unitaire_cents, remise, tva, total_ht_cents
            FROM {tables.lines}
            WHERE {tables.line_fk} = ?
            ORDER BY position ASC, id ASC
            """,
            (document_id,),
        ).fetchall()
    return [
        models.DocumentLine(
            id=row["id"],
            position=row["position"],
            reference=row["reference"],
            description=row["description"],
            quantite=Decimal(row["quantite"]),
            prix_unitaire=from_cents(row["prix_unitaire_cents"]),
            remise=Decimal(row["remise"]),
            tva=Decimal(row["tva"]),
            total_ht=from_cents(row["total_ht_cents"]),
        )
        for row in rows
    ]
