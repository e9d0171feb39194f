"""Voitures : rattachement aux documents et opérations CRUD."""
from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from facturation.core import db, models
from facturation.core.errors import NotFoundError

logger = logging.getLogger(__name__)


def normalize_plate(plate: Optional[str]) -> str:
    return str(plate or "").strip().upper()


def _insert_vehicle(
    conn: sqlite3.Connection, plate: str, client_id: Optional[int], mileage: int
) -> int:
    cur = conn.execute(
        "INSERT INTO voitures (immatriculation, kilometrage, client_id) VALUES (?, ?, ?)",
        (plate, mileage, client_id),
    )
    return int(cur.lastrowid)


def resolve_vehicle(
    conn: sqlite3.Connection,
    plate: Optional[str],
    client_id: Optional[int],
    mileage: int,
) -> int:
    """Retrouve ou crée la voiture (immatriculation, client) à rattacher.

    Une immatriculation vide ou un client absent crée toujours une nouvelle
    ligne. Sur correspondance exacte, le kilométrage est remplacé.
    """
    normalized = normalize_plate(plate)
    if normalized and client_id is not None:
        row = conn.execute(
            "SELECT id FROM voitures WHERE immatriculation = ? AND client_id = ? ORDER BY id LIMIT 1",
            (normalized, client_id),
        ).fetchone()
        if row is not None:
            conn.execute(
                "UPDATE voitures SET kilometrage = ? WHERE id = ?", (mileage, row["id"])
            )
            logger.debug("[VOITURE] reuse id=%s plate=%s km=%s", row["id"], normalized, mileage)
            return int(row["id"])
    vehicle_id = _insert_vehicle(conn, normalized, client_id, mileage)
    logger.debug("[VOITURE] create id=%s plate=%r client_id=%s", vehicle_id, normalized, client_id)
    return vehicle_id


def _row_to_vehicle(row: sqlite3.Row) -> models.Vehicle:
    return models.Vehicle(
        id=row["id"],
        immatriculation=row["immatriculation"] or "",
        kilometrage=int(row["kilometrage"] or 0),
        client_id=row["client_id"],
    )


def create_vehicle(payload: models.VehicleCreate) -> models.Vehicle:
    with db.get_connection() as conn:
        if conn.execute("SELECT 1 FROM clients WHERE id = ?", (payload.client_id,)).fetchone() is None:
            raise NotFoundError("Client introuvable")
        vehicle_id = _insert_vehicle(
            conn, normalize_plate(payload.immatriculation), payload.client_id, payload.kilometrage
        )
    return get_vehicle(vehicle_id)


def get_vehicle(vehicle_id: int) -> models.Vehicle:
    with db.get_connection() as conn:
        row = conn.execute(
            "SELECT id, immatriculation, kilometrage, client_id FROM voitures WHERE id = ?",
            (vehicle_id,),
        ).fetchone()
    if row is None:
        raise NotFoundError("Voiture non trouvée")
    return _row_to_vehicle(row)


def list_vehicles(client_id: Optional[int] = None) -> list[models.Vehicle]:
    query = "SELECT id, immatriculation, kilometrage, client_id FROM voitures"
    params: tuple[object, ...] = ()
    if client_id is not None:
        query += " WHERE client_id = ?"
        params = (client_id,)
    query += " ORDER BY id DESC"
    with db.get_connection() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_vehicle(row) for row in rows]


def update_vehicle(vehicle_id: int, payload: models.VehicleUpdate) -> models.Vehicle:
    with db.get_connection() as conn:
        cur = conn.execute(
            "UPDATE voitures SET immatriculation = ?, kilometrage = ? WHERE id = ?",
            (normalize_plate(payload.immatriculation), payload.kilometrage, vehicle_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError("Voiture non trouvée")
    return get_vehicle(vehicle_id)


def delete_vehicle(vehicle_id: int) -> None:
    with db.get_connection() as conn:
        referenced = conn.execute(
            """
            SELECT (SELECT COUNT(*) FROM factures WHERE voiture_id = ?)
                 + (SELECT COUNT(*) FROM devis WHERE voiture_id = ?) AS total
            """,
            (vehicle_id, vehicle_id),
        ).fetchone()
        if referenced["total"]:
            raise ValueError("Voiture rattachée à des documents")
        cur = conn.execute("DELETE FROM voitures WHERE id = ?", (vehicle_id,))
        if cur.rowcount == 0:
            raise NotFoundError("Voiture non trouvée")
