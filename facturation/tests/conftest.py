from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from facturation.core import db, models, services  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setattr(db, "DATA_DIR", data_dir)
    monkeypatch.setattr(db, "DB_PATH", data_dir / "gestion.db")
    monkeypatch.setattr(services, "_db_initialized", False)
    services.ensure_database_ready()
    return data_dir


@pytest.fixture
def client_id() -> int:
    client = services.create_client(
        models.ClientCreate(civilite="M.", nom="Martin", prenom="Paul", ville="Lyon")
    )
    return client.id


@pytest.fixture
def make_document() -> Callable[..., models.DocumentCreate]:
    def _make(kind: str = "invoice-normal", **overrides: Any) -> models.DocumentCreate:
        data: dict[str, Any] = {
            "kind": kind,
            "immatriculation": "AB-123-CD",
            "kilometrage": 85000,
            "lignes": [
                {
                    "reference": "VID-01",
                    "description": "Vidange",
                    "quantite": 2,
                    "prix_unitaire": "10.00",
                    "tva": 20,
                },
                {
                    "reference": "FLT-02",
                    "description": "Filtre à huile",
                    "quantite": 1,
                    "prix_unitaire": "5.00",
                    "tva": 20,
                },
            ],
        }
        data.update(overrides)
        return models.DocumentCreate(**data)

    return _make
