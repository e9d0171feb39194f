from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from facturation.app import app
from facturation.core import services
from facturation.tests.helpers import count_rows, counter_value, login_headers


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    return login_headers(client, "admin", "admin123")


def _invoice_payload(client_id: int, **facture: object) -> dict[str, object]:
    return {
        "voiture": {"immatriculation": "ab-123-cd", "kilometrage": "85000", "client_id": client_id},
        "facture": {"date_facture": "2024-05-02", **facture},
        "lignes": [
            {"reference": "VID-01", "description": "Vidange", "quantite": 2, "prix_unitaire": "10", "tva": 20},
            {"description": "Filtre", "quantite": "1", "prix_unitaire": "5,00", "tva": "20"},
        ],
    }


def _create_client(client: TestClient, headers: dict[str, str]) -> int:
    response = client.post(
        "/clients/",
        json={"civilite": "Mme", "nom": "Durand", "prenom": "Claire", "codePostal": "69001"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    assert response.json()["code_postal"] == "69001"
    return response.json()["id"]


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routes_require_authentication(client: TestClient) -> None:
    assert client.get("/factures/").status_code == 401
    assert client.get("/counters/next").status_code == 401


def test_login_rejects_wrong_password(client: TestClient) -> None:
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


def test_refresh_token_cannot_be_used_as_access_token(client: TestClient) -> None:
    tokens = client.post("/auth/login", json={"username": "admin", "password": "admin123"}).json()
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert response.status_code == 401

    refreshed = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {refreshed.json()['access_token']}"})
    assert me.json()["username"] == "admin"


def test_invoice_creation_is_idempotent_over_http(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    headers = {**admin_headers, "Idempotency-Key": "facture-42"}

    first = client.post("/factures/complete", json=_invoice_payload(client_id), headers=headers)
    assert first.status_code == 201, first.text
    assert first.json() == {"document_id": first.json()["document_id"], "numero": "001", "duplicate": False}

    second = client.post("/factures/complete", json=_invoice_payload(client_id), headers=headers)
    assert second.status_code == 200
    assert second.json()["duplicate"] is True
    assert second.json()["document_id"] == first.json()["document_id"]
    assert count_rows("factures") == 1
    assert counter_value("normal") == 1

    invoice_id = first.json()["document_id"]
    header = client.get(f"/factures/{invoice_id}", headers=admin_headers).json()
    assert header["immatriculation"] == "AB-123-CD"
    assert header["montant_ttc"] == "30.00"
    assert header["client"] == "Durand Claire"
    lines = client.get(f"/factures/{invoice_id}/lignes", headers=admin_headers).json()
    assert [line["total_ht"] for line in lines] == ["20.00", "5.00"]


def test_hidden_invoice_over_http(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    response = client.post(
        "/factures/complete",
        json=_invoice_payload(client_id, statut="cachee"),
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["numero"] == "C001"
    assert counter_value("normal") == 0


def test_invalid_invoice_payloads_are_rejected(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    empty = _invoice_payload(client_id)
    empty["lignes"] = []
    response = client.post("/factures/complete", json=empty, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Aucune ligne fournie"

    incomplete = client.post("/factures/complete", json={"lignes": []}, headers=admin_headers)
    assert incomplete.status_code == 400

    bad_status = client.post(
        "/factures/complete",
        json=_invoice_payload(client_id, statut="archivee"),
        headers=admin_headers,
    )
    assert bad_status.status_code == 400
    assert count_rows("factures") == 0
    assert count_rows("voitures") == 0


def test_quote_creation_and_validation(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    payload = {
        "immatriculation": "EF-456-GH",
        "kilometrage": 1200,
        "date_devis": "2024-05-03",
        "lignes": [{"description": "Pneus", "quantite": 4, "prix_unitaire": "80", "tva": 20}],
    }
    missing_client = client.post("/devis/complete", json=payload, headers=admin_headers)
    assert missing_client.status_code == 400

    created = client.post("/devis/complete", json={**payload, "client_id": client_id}, headers=admin_headers)
    assert created.status_code == 201, created.text
    assert created.json()["numero"] == "00001"

    listed = client.get("/devis/", headers=admin_headers).json()
    assert [quote["montant_ttc"] for quote in listed] == ["384.00"]
    assert client.get("/devis/999", headers=admin_headers).status_code == 404


def test_missing_invoice_returns_404(client: TestClient, admin_headers) -> None:
    assert client.get("/factures/999", headers=admin_headers).status_code == 404
    assert client.get("/factures/999/lignes", headers=admin_headers).status_code == 404


def test_counters_endpoints(client: TestClient, admin_headers) -> None:
    preview = client.get("/counters/next", headers=admin_headers)
    assert preview.json() == {"next_normal": 1, "next_cachee": "C1", "next_devis": 1}

    updated = client.put("/counters/", json={"normal": 41, "devis": 7}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json() == {"normal": 41, "cachee": 0, "devis": 7}

    assert client.put("/counters/", json={}, headers=admin_headers).status_code == 400
    assert client.put("/counters/", json={"normal": -1}, headers=admin_headers).status_code == 422
    assert client.put("/counters/", json={"normal": "12"}, headers=admin_headers).status_code == 422


def test_counters_update_requires_admin(client: TestClient) -> None:
    services.create_user("secretaire", "motdepasse", nom="Roux", prenom="Anne")
    headers = login_headers(client, "secretaire", "motdepasse")
    assert client.get("/counters/", headers=headers).status_code == 200
    response = client.put("/counters/", json={"normal": 10}, headers=headers)
    assert response.status_code == 403
    assert counter_value("normal") == 0


def test_vehicle_routes_and_delete_conflict(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    created = client.post("/factures/complete", json=_invoice_payload(client_id), headers=admin_headers)
    invoice_id = created.json()["document_id"]
    vehicles = client.get(f"/clients/{client_id}/voitures", headers=admin_headers).json()
    assert [vehicle["immatriculation"] for vehicle in vehicles] == ["AB-123-CD"]

    vehicle_id = vehicles[0]["id"]
    invoices = client.get(f"/voitures/{vehicle_id}/factures", headers=admin_headers).json()
    assert [invoice["id"] for invoice in invoices] == [invoice_id]
    assert client.delete(f"/voitures/{vehicle_id}", headers=admin_headers).status_code == 409


def test_statistics_endpoints(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    client.post("/factures/complete", json=_invoice_payload(client_id), headers=admin_headers)

    summary = client.get("/statistiques/summary", headers=admin_headers).json()
    assert summary == {"total_encaisse": "30.00", "factures_normales": 1, "factures_cachees": 0, "devis": 0}

    daily = client.get(
        "/statistiques/daily",
        params={"start": "2024-05-01", "end": "2024-05-02"},
        headers=admin_headers,
    ).json()
    assert daily == [{"type": "facture", "jour": "2024-05-02", "total": "30.00", "count": 1}]

    top = client.get("/statistiques/top-clients", headers=admin_headers).json()
    assert top == [{"nom_complet": "Durand Claire", "total": "30.00"}]

    day = client.get("/statistiques/docs-by-day", params={"date": "2024-05-02"}, headers=admin_headers)
    assert day.status_code == 200
    assert [row["montant"] for row in day.json()] == ["30.00"]
    assert client.get("/statistiques/docs-by-day", headers=admin_headers).status_code == 422


@pytest.mark.parametrize("quantity", ["1e30", "1e20"])
def test_oversized_quote_amounts_return_400(client: TestClient, admin_headers, quantity: str) -> None:
    client_id = _create_client(client, admin_headers)
    response = client.post(
        "/devis/complete",
        json={
            "client_id": client_id,
            "immatriculation": "EF-456-GH",
            "lignes": [{"description": "Pneus", "quantite": quantity, "prix_unitaire": "80", "tva": 20}],
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Montant hors limites"
    assert counter_value("devis") == 0


def test_retry_after_client_deletion_over_http(client: TestClient, admin_headers) -> None:
    client_id = _create_client(client, admin_headers)
    headers = {**admin_headers, "Idempotency-Key": "facture-retry"}
    first = client.post("/factures/complete", json=_invoice_payload(client_id), headers=headers)
    assert client.delete(f"/clients/{client_id}", headers=admin_headers).status_code == 204

    retry = client.post("/factures/complete", json=_invoice_payload(client_id), headers=headers)
    assert retry.status_code == 200
    assert retry.json()["document_id"] == first.json()["document_id"]
    assert retry.json()["duplicate"] is True
