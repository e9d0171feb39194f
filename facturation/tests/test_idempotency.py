from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from facturation.core import documents, services, vehicles
from facturation.tests.helpers import count_rows, counter_value


def test_same_key_twice_creates_a_single_invoice(client_id, make_document) -> None:
    first = documents.create_document(
        make_document(client_id=client_id, kilometrage=85000),
        created_by="Admin",
        idempotency_key="idem-key-001",
    )
    second = documents.create_document(
        make_document(client_id=client_id, kilometrage=99999),
        created_by="Admin",
        idempotency_key="idem-key-001",
    )

    assert first.duplicate is False
    assert second.duplicate is True
    assert (second.document_id, second.numero) == (first.document_id, first.numero)
    assert count_rows("factures") == 1
    assert count_rows("facture_lignes") == 2
    assert counter_value("normal") == 1
    vehicle_id = documents.get_document("invoice", first.document_id).voiture_id
    assert vehicles.get_vehicle(vehicle_id).kilometrage == 85000


def test_retry_after_client_deletion_returns_existing_document(client_id, make_document) -> None:
    first = documents.create_document(
        make_document(client_id=client_id),
        created_by="Admin",
        idempotency_key="retry-after-delete",
    )
    services.delete_client(client_id)

    retry = documents.create_document(
        make_document(client_id=client_id),
        created_by="Admin",
        idempotency_key="retry-after-delete",
    )

    assert retry.duplicate is True
    assert (retry.document_id, retry.numero) == (first.document_id, first.numero)
    assert count_rows("factures") == 1
    assert counter_value("normal") == 1


def test_body_request_id_is_used_when_no_header(client_id, make_document) -> None:
    first = documents.create_document(
        make_document("quote", client_id=client_id, request_id="body-1"), created_by="Admin"
    )
    second = documents.create_document(
        make_document("quote", client_id=client_id, request_id="body-1"), created_by="Admin"
    )
    assert second.duplicate is True
    assert second.document_id == first.document_id
    assert documents.get_document("quote", first.document_id).request_id == "body-1"


def test_header_key_takes_precedence_over_body(client_id, make_document) -> None:
    first = documents.create_document(
        make_document(client_id=client_id, request_id="body-1"), created_by="Admin"
    )
    second = documents.create_document(
        make_document(client_id=client_id, request_id="body-1"),
        created_by="Admin",
        idempotency_key="header-1",
    )
    assert second.duplicate is False
    assert second.numero != first.numero
    assert documents.get_document("invoice", second.document_id).request_id == "header-1"


def test_documents_without_key_are_never_deduplicated(client_id, make_document) -> None:
    numbers = {
        documents.create_document(make_document(client_id=client_id), created_by="Admin").numero
        for _ in range(3)
    }
    assert numbers == {"001", "002", "003"}


def test_invoice_and_quote_keys_are_independent(client_id, make_document) -> None:
    invoice = documents.create_document(
        make_document(client_id=client_id), created_by="Admin", idempotency_key="shared"
    )
    quote = documents.create_document(
        make_document("quote", client_id=client_id), created_by="Admin", idempotency_key="shared"
    )
    assert invoice.duplicate is False
    assert quote.duplicate is False
    assert quote.numero == "00001"


def test_concurrent_retries_create_exactly_one_document(client_id, make_document) -> None:
    workers = 8
    barrier = threading.Barrier(workers)
    payload = make_document(client_id=client_id)

    def _submit(_: int):
        barrier.wait()
        return documents.create_document(payload, created_by="Admin", idempotency_key="abc")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_submit, range(workers)))

    assert len({(result.document_id, result.numero) for result in results}) == 1
    assert sum(not result.duplicate for result in results) == 1
    assert count_rows("factures") == 1
    assert counter_value("normal") == 1


def test_unique_violation_is_turned_into_duplicate(
    client_id, make_document, monkeypatch: pytest.MonkeyPatch
) -> None:
    existing = documents.create_document(
        make_document(client_id=client_id), created_by="Admin", idempotency_key="race-1"
    )
    real_lookup = documents.find_by_request_id
    calls: list[str] = []

    def _stale_first_lookup(family: str, request_id: str):
        calls.append(request_id)
        if len(calls) == 1:
            return None
        return real_lookup(family, request_id)

    monkeypatch.setattr(documents, "find_by_request_id", _stale_first_lookup)

    result = documents.create_document(
        make_document(client_id=client_id, kilometrage=1), created_by="Admin", idempotency_key="race-1"
    )

    assert result.duplicate is True
    assert result.document_id == existing.document_id
    assert len(calls) == 2
    assert count_rows("factures") == 1
    assert count_rows("voitures") == 1
    assert counter_value("normal") == 1
