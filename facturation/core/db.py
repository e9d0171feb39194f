"""Gestion des connexions SQLite et du schéma de la base de facturation."""
from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import ContextManager

from facturation.core.config import settings

BASE_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = Path(settings.DB_DIR) if settings.DB_DIR else BASE_DIR / "data"
DB_PATH = DATA_DIR / "gestion.db"

COUNTER_TYPES: tuple[str, ...] = ("normal", "cachee", "devis")

logger = logging.getLogger(__name__)

_db_lock = RLock()


def _connect(path: Path, *, isolation_level: str | None = "") -> sqlite3.Connection:
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        path,
        timeout=settings.DB_TIMEOUT_SECONDS,
        isolation_level=isolation_level,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def _managed_connection(path: Path) -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection that is always closed on exit."""

    conn = _connect(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        if conn.in_transaction:
            conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def _immediate_transaction(path: Path) -> Iterator[sqlite3.Connection]:
    """Yield a connection holding the database write lock until commit.

    ``BEGIN IMMEDIATE`` reserves the write lock before the first read, so two
    writers can never observe the same counter value.
    """

    conn = _connect(path, isolation_level=None)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.execute("COMMIT")
    except Exception:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def get_connection() -> ContextManager[sqlite3.Connection]:
    return _managed_connection(DB_PATH)


def transaction() -> ContextManager[sqlite3.Connection]:
    return _immediate_transaction(DB_PATH)


def init_databases() -> None:
    with _db_lock:
        logger.info("[DB] pid=%s DB_PATH=%s", os.getpid(), DB_PATH.resolve())
        with get_connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT UNIQUE NOT NULL,
                    password TEXT NOT NULL,
                    nom TEXT NOT NULL DEFAULT '',
                    prenom TEXT NOT NULL DEFAULT '',
                    email TEXT,
                    role TEXT NOT NULL DEFAULT 'user',
                    is_active INTEGER NOT NULL DEFAULT 1
                );
                CREATE TABLE IF NOT EXISTS clients (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    civilite TEXT,
                    nom TEXT,
                    prenom TEXT,
                    type TEXT,
                    adresse TEXT,
                    code_postal TEXT,
                    ville TEXT,
                    email TEXT,
                    telephone TEXT
                );
                CREATE TABLE IF NOT EXISTS voitures (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    immatriculation TEXT NOT NULL DEFAULT '',
                    kilometrage INTEGER NOT NULL DEFAULT 0,
                    client_id INTEGER REFERENCES clients(id) ON DELETE SET NULL
                );
                CREATE INDEX IF NOT EXISTS idx_voitures_client_plate
                ON voitures(client_id, immatriculation);
                CREATE TABLE IF NOT EXISTS factures (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    numero TEXT NOT NULL,
                    date_facture TEXT NOT NULL,
                    montant_ht_cents INTEGER NOT NULL DEFAULT 0,
                    montant_tva_cents INTEGER NOT NULL DEFAULT 0,
                    montant_ttc_cents INTEGER NOT NULL DEFAULT 0,
                    remise_cents INTEGER NOT NULL DEFAULT 0,
                    statut TEXT NOT NULL DEFAULT 'normale',
                    voiture_id INTEGER REFERENCES voitures(id),
                    created_by TEXT,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    request_id TEXT
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_factures_request_id
                ON factures(request_id) WHERE request_id IS NOT NULL;
                CREATE TABLE IF NOT EXISTS facture_lignes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    facture_id INTEGER NOT NULL REFERENCES factures(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    reference TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    quantite TEXT NOT NULL DEFAULT '0',
                    prix_unitaire_cents INTEGER NOT NULL DEFAULT 0,
                    remise TEXT NOT NULL DEFAULT '0',
                    tva TEXT NOT NULL DEFAULT '0',
                    total_ht_cents INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_facture_lignes_facture
                ON facture_lignes(facture_id, position);
                CREATE TABLE IF NOT EXISTS devis (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    numero TEXT NOT NULL,
                    date_devis TEXT NOT NULL,
                    montant_ht_cents INTEGER NOT NULL DEFAULT 0,
                    montant_tva_cents INTEGER NOT NULL DEFAULT 0,
                    montant_ttc_cents INTEGER NOT NULL DEFAULT 0,
                    remise_cents INTEGER NOT NULL DEFAULT 0,
                    statut TEXT NOT NULL DEFAULT 'normal',
                    voiture_id INTEGER REFERENCES voitures(id),
                    created_by TEXT,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    request_id TEXT
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_devis_request_id
                ON devis(request_id) WHERE request_id IS NOT NULL;
                CREATE TABLE IF NOT EXISTS devis_lignes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    devis_id INTEGER NOT NULL REFERENCES devis(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL,
                    reference TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    quantite TEXT NOT NULL DEFAULT '0',
                    prix_unitaire_cents INTEGER NOT NULL DEFAULT 0,
                    remise TEXT NOT NULL DEFAULT '0',
                    tva TEXT NOT NULL DEFAULT '0',
                    total_ht_cents INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_devis_lignes_devis
                ON devis_lignes(devis_id, position);
                CREATE TABLE IF NOT EXISTS counters (
                    type TEXT PRIMARY KEY,
                    last_number INTEGER NOT NULL DEFAULT 0 CHECK (last_number >= 0),
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    updated_by TEXT
                );
                """
            )
            conn.executemany(
                "INSERT OR IGNORE INTO counters (type, last_number) VALUES (?, 0)",
                [(counter_type,) for counter_type in COUNTER_TYPES],
            )
