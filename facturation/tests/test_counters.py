from __future__ import annotations

import re
import sqlite3

import pytest

from facturation.core import counters, db
from facturation.tests.helpers import counter_value


def test_counters_are_seeded_at_zero() -> None:
    current = counters.get_counters()
    assert (current.normal, current.cachee, current.devis) == (0, 0, 0)


def test_peek_next_does_not_mutate() -> None:
    assert counters.peek_next("normal") == 1
    assert counters.peek_next("normal") == 1
    assert counter_value("normal") == 0


def test_advance_increments_by_one_inside_transaction() -> None:
    with db.transaction() as conn:
        assert counters.advance(conn, "devis", actor="Paul Martin") == 1
        assert counters.advance(conn, "devis") == 2
    assert counter_value("devis") == 2
    with db.get_connection() as conn:
        row = conn.execute("SELECT updated_by FROM counters WHERE type = 'devis'").fetchone()
    assert row["updated_by"] == "Paul Martin"


def test_advance_is_discarded_when_transaction_fails() -> None:
    with pytest.raises(sqlite3.OperationalError):
        with db.transaction() as conn:
            counters.advance(conn, "normal")
            conn.execute("INSERT INTO missing_table VALUES (1)")
    assert counter_value("normal") == 0


def test_unknown_counter_type_is_rejected() -> None:
    with pytest.raises(ValueError):
        counters.peek_next("avoir")


def test_set_value_records_actor() -> None:
    counters.set_value("cachee", 41, "admin@garage.fr")
    assert counter_value("cachee") == 41
    with db.get_connection() as conn:
        row = conn.execute(
            "SELECT updated_by, updated_at FROM counters WHERE type = 'cachee'"
        ).fetchone()
    assert row["updated_by"] == "admin@garage.fr"
    assert row["updated_at"]


@pytest.mark.parametrize("value", [-1, 2.5, True, "3"])
def test_set_value_rejects_invalid_values(value: object) -> None:
    with pytest.raises(ValueError):
        counters.set_value("normal", value, "admin")  # type: ignore[arg-type]
    assert counter_value("normal") == 0


def test_set_values_may_lower_a_counter() -> None:
    counters.set_values({"normal": 12, "devis": 4}, actor="admin")
    current = counters.set_values({"normal": 3}, actor="admin")
    assert current.normal == 3
    assert current.devis == 4


def test_number_formatting_per_kind() -> None:
    assert counters.format_number("invoice-normal", 1) == "001"
    assert counters.format_number("invoice-hidden", 3) == "C003"
    assert counters.format_number("quote", 42) == "00042"
    assert counters.format_number("invoice-normal", 1234) == "1234"


def test_next_numbers_preview_has_no_padding() -> None:
    counters.set_values({"normal": 9, "cachee": 2, "devis": 0}, actor="admin")
    preview = counters.get_next_numbers()
    assert preview.next_normal == 10
    assert preview.next_cachee == "C3"
    assert preview.next_devis == 1
    assert counter_value("normal") == 9


def test_advance_and_override_share_timestamp_format() -> None:
    with db.transaction() as conn:
        counters.advance(conn, "normal", actor="Paul Martin")
    counters.set_value("devis", 12, "admin@garage.fr")

    with db.get_connection() as conn:
        rows = conn.execute(
            "SELECT type, updated_at FROM counters WHERE type IN ('normal', 'devis')"
        ).fetchall()
    pattern = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
    assert {row["type"]: bool(pattern.match(row["updated_at"])) for row in rows} == {
        "normal": True,
        "devis": True,
    }
