"""Compteurs de numérotation des factures et devis.

Toute mutation de la table ``counters`` passe par ce module. ``advance`` ne
s'utilise que sur la connexion qui porte la transaction d'insertion du
document numéroté, comme dernière écriture avant le ``COMMIT``.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from facturation.core import db, models
from facturation.core.errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NumberFormat:
    counter_type: str
    width: int
    prefix: str = ""

    def format(self, value: int) -> str:
        return f"{self.prefix}{value:0{self.width}d}"

    def preview(self, value: int) -> str:
        return f"{self.prefix}{value}"


NUMBER_FORMATS: dict[str, NumberFormat] = {
    "invoice-normal": NumberFormat(counter_type="normal", width=3),
    "invoice-hidden": NumberFormat(counter_type="cachee", width=3, prefix="C"),
    "quote": NumberFormat(counter_type="devis", width=5),
}


def _check_type(counter_type: str) -> None:
    if counter_type not in db.COUNTER_TYPES:
        raise ValueError(f"Type de compteur inconnu: {counter_type}")


def _read_last_number(conn: sqlite3.Connection, counter_type: str) -> int:
    row = conn.execute(
        "SELECT last_number FROM counters WHERE type = ?", (counter_type,)
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Compteur absent: {counter_type}")
    return int(row["last_number"])


def format_number(kind: str, value: int) -> str:
    return NUMBER_FORMATS[kind].format(value)


def peek_next_in(conn: sqlite3.Connection, counter_type: str) -> int:
    _check_type(counter_type)
    return _read_last_number(conn, counter_type) + 1


def peek_next(counter_type: str) -> int:
    """Prochain numéro du compteur, sans réservation."""
    with db.get_connection() as conn:
        return peek_next_in(conn, counter_type)


def advance(conn: sqlite3.Connection, counter_type: str, *, actor: str | None = None) -> int:
    """Incrémente le compteur de 1 et renvoie la nouvelle valeur."""
    _check_type(counter_type)
    row = conn.execute(
        """
        UPDATE counters
        SET last_number = last_number + 1,
            updated_at = CURRENT_TIMESTAMP,
            updated_by = COALESCE(?, updated_by)
        WHERE type = ?
        RETURNING last_number
        """,
        (actor, counter_type),
    ).fetchone()
    if row is None:
        raise NotFoundError(f"Compteur absent: {counter_type}")
    return int(row["last_number"])


def get_counters() -> models.CounterValues:
    with db.get_connection() as conn:
        rows = conn.execute("SELECT type, last_number FROM counters").fetchall()
    values = {row["type"]: int(row["last_number"]) for row in rows}
    return models.CounterValues(
        normal=values.get("normal", 0),
        cachee=values.get("cachee", 0),
        devis=values.get("devis", 0),
    )


def get_next_numbers() -> models.CounterPreview:
    """Aperçu indicatif des prochains numéros, sans zéros de remplissage."""
    current = get_counters()
    return models.CounterPreview(
        next_normal=current.normal + 1,
        next_cachee=NUMBER_FORMATS["invoice-hidden"].preview(current.cachee + 1),
        next_devis=current.devis + 1,
    )


def set_value(counter_type: str, value: int, actor: str) -> None:
    """Remplace la valeur d'un compteur (correction administrative)."""
    set_values({counter_type: value}, actor)


def set_values(values: dict[str, int], actor: str) -> models.CounterValues:
    for counter_type, value in values.items():
        _check_type(counter_type)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Valeur de compteur invalide pour {counter_type}: {value!r}")
    with db.transaction() as conn:
        for counter_type, value in values.items():
            previous = _read_last_number(conn, counter_type)
            conn.execute(
                """
                UPDATE counters
                SET last_number = ?, updated_at = CURRENT_TIMESTAMP, updated_by = ?
                WHERE type = ?
                """,
                (value, actor, counter_type),
            )
            logger.warning(
                "[COUNTERS] override type=%s %s -> %s by=%s",
                counter_type,
                previous,
                value,
                actor,
            )
    return get_counters()
