"""Services métier : initialisation, utilisateurs et clients."""
from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from facturation.core import db, models, security
from facturation.core.errors import NotFoundError

logger = logging.getLogger(__name__)

# Initialisation de la base au premier appel
_db_initialized = False

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

_CLIENT_COLUMNS: tuple[str, ...] = (
    "civilite",
    "nom",
    "prenom",
    "type",
    "adresse",
    "code_postal",
    "ville",
    "email",
    "telephone",
)


def ensure_database_ready() -> None:
    global _db_initialized
    if _db_initialized:
        return
    db.init_databases()
    seed_default_admin()
    _db_initialized = True


def seed_default_admin() -> None:
    with db.get_connection() as conn:
        row = conn.execute(
            "SELECT id, password, role, is_active FROM users WHERE username = ?",
            (DEFAULT_ADMIN_USERNAME,),
        ).fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO users (username, password, role, is_active) VALUES (?, ?, 'admin', 1)",
                (DEFAULT_ADMIN_USERNAME, security.hash_password(DEFAULT_ADMIN_PASSWORD)),
            )
            logger.info("[AUTH] default admin created")
            return

        needs_update = not security.verify_password(DEFAULT_ADMIN_PASSWORD, row["password"])
        if row["role"] != "admin" or not bool(row["is_active"]):
            needs_update = True
        if needs_update:
            conn.execute(
                "UPDATE users SET password = ?, role = 'admin', is_active = 1 WHERE id = ?",
                (security.hash_password(DEFAULT_ADMIN_PASSWORD), row["id"]),
            )
            logger.warning("[AUTH] default admin repaired")


def _row_to_user(row: sqlite3.Row) -> models.User:
    return models.User(
        id=row["id"],
        username=row["username"],
        role=row["role"],
        nom=row["nom"] or "",
        prenom=row["prenom"] or "",
        email=row["email"],
        is_active=bool(row["is_active"]),
    )


def create_user(
    username: str,
    password: str,
    *,
    role: str = "user",
    nom: str = "",
    prenom: str = "",
    email: Optional[str] = None,
) -> models.User:
    ensure_database_ready()
    with db.get_connection() as conn:
        try:
            conn.execute(
                """
                INSERT INTO users (username, password, nom, prenom, email, role, is_active)
                VALUES (?, ?, ?, ?, ?, ?, 1)
                """,
                (username, security.hash_password(password), nom, prenom, email, role),
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError("Nom d'utilisateur déjà utilisé") from exc
    user = get_user(username)
    assert user is not None
    return user


def get_user(username: str) -> Optional[models.User]:
    ensure_database_ready()
    with db.get_connection() as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    return _row_to_user(row) if row else None


def authenticate(username: str, password: str) -> Optional[models.User]:
    ensure_database_ready()
    with db.get_connection() as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    if not row or not bool(row["is_active"]):
        return None
    if not security.verify_password(password, row["password"]):
        return None
    return _row_to_user(row)


def _row_to_client(row: sqlite3.Row) -> models.Client:
    return models.Client(id=row["id"], **{column: row[column] for column in _CLIENT_COLUMNS})


def create_client(payload: models.ClientCreate) -> models.Client:
    values = payload.model_dump()
    with db.get_connection() as conn:
        cur = conn.execute(
            f"""
            INSERT INTO clients ({", ".join(_CLIENT_COLUMNS)})
            VALUES ({", ".join("?" for _ in _CLIENT_COLUMNS)})
            """,
            [values[column] for column in _CLIENT_COLUMNS],
        )
        client_id = int(cur.lastrowid)
    logger.info("[CLIENT] created id=%s", client_id)
    return get_client(client_id)


def list_clients() -> list[models.Client]:
    with db.get_connection() as conn:
        rows = conn.execute(
            f"SELECT id, {', '.join(_CLIENT_COLUMNS)} FROM clients ORDER BY nom COLLATE NOCASE, id"
        ).fetchall()
    return [_row_to_client(row) for row in rows]


def get_client(client_id: int) -> models.Client:
    with db.get_connection() as conn:
        row = conn.execute(
            f"SELECT id, {', '.join(_CLIENT_COLUMNS)} FROM clients WHERE id = ?",
            (client_id,),
        ).fetchone()
    if row is None:
        raise NotFoundError("Client introuvable")
    return _row_to_client(row)


def update_client(client_id: int, payload: models.ClientUpdate) -> models.Client:
    values = payload.model_dump()
    assignments = ", ".join(f"{column} = ?" for column in _CLIENT_COLUMNS)
    with db.get_connection() as conn:
        cur = conn.execute(
            f"UPDATE clients SET {assignments} WHERE id = ?",
            [*(values[column] for column in _CLIENT_COLUMNS), client_id],
        )
        if cur.rowcount == 0:
            raise NotFoundError("Client introuvable pour mise à jour")
    return get_client(client_id)


def delete_client(client_id: int) -> None:
    with db.get_connection() as conn:
        cur = conn.execute("DELETE FROM clients WHERE id = ?", (client_id,))
        if cur.rowcount == 0:
            raise NotFoundError("Client introuvable pour suppression")
    logger.info("[CLIENT] deleted id=%s", client_id)
