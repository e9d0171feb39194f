from __future__ import annotations

from fastapi.testclient import TestClient

from facturation.core import db


def counter_value(counter_type: str) -> int:
    with db.get_connection() as conn:
        row = conn.execute(
            "SELECT last_number FROM counters WHERE type = ?", (counter_type,)
        ).fetchone()
    return int(row["last_number"])


def count_rows(table: str) -> int:
    with db.get_connection() as conn:
        return int(conn.execute(f"SELECT COUNT(*) AS total FROM {table}").fetchone()["total"])


def login_headers(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post(
        "/auth/login",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
