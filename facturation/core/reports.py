"""Statistiques en lecture seule sur les factures et devis enregistrés."""
from __future__ import annotations

from datetime import date
from typing import Optional

from facturation.core import db, models
from facturation.core.money import from_cents

TOP_CLIENTS_DEFAULT = 5
TOP_CLIENTS_MAX = 50


def _date_filters(column: str, start: Optional[date], end: Optional[date]) -> tuple[list[str], list[str]]:
    clauses: list[str] = []
    params: list[str] = []
    if start is not None:
        clauses.append(f"date({column}) >= date(?)")
        params.append(start.isoformat())
    if end is not None:
        clauses.append(f"date({column}) <= date(?)")
        params.append(end.isoformat())
    return clauses, params


def _where(clauses: list[str]) -> str:
    return f"WHERE {' AND '.join(clauses)}" if clauses else ""


def summary() -> models.StatsSummary:
    """Total encaissé (hors factures cachées et impayées) et volumes par type."""
    with db.get_connection() as conn:
        row = conn.execute(
            """
            SELECT
                (SELECT IFNULL(SUM(montant_ttc_cents), 0) FROM factures
                 WHERE statut NOT IN ('cachee', 'impayee')) AS total_encaisse,
                (SELECT COUNT(*) FROM factures WHERE statut != 'cachee') AS factures_normales,
                (SELECT COUNT(*) FROM factures WHERE statut = 'cachee') AS factures_cachees,
                (SELECT COUNT(*) FROM devis) AS devis
            """
        ).fetchone()
    return models.StatsSummary(
        total_encaisse=from_cents(row["total_encaisse"]),
        factures_normales=int(row["factures_normales"]),
        factures_cachees=int(row["factures_cachees"]),
        devis=int(row["devis"]),
    )


def daily_totals(start: Optional[date] = None, end: Optional[date] = None) -> list[models.DailyStat]:
    """Totaux TTC et nombre de documents par jour et par type, bornes incluses."""
    quote_clauses, quote_params = _date_filters("date_devis", start, end)
    invoice_clauses, invoice_params = _date_filters("date_facture", start, end)
    normal_clauses = invoice_clauses + ["statut != 'cachee'"]
    hidden_clauses = invoice_clauses + ["statut = 'cachee'"]
    sql = f"""
        SELECT 'devis' AS type, date(date_devis) AS jour,
               IFNULL(SUM(montant_ttc_cents), 0) AS total, COUNT(*) AS count
        FROM devis
        {_where(quote_clauses)}
        GROUP BY date(date_devis)

        UNION ALL

        SELECT 'facture' AS type, date(date_facture) AS jour,
               IFNULL(SUM(montant_ttc_cents), 0) AS total, COUNT(*) AS count
        FROM factures
        {_where(normal_clauses)}
        GROUP BY date(date_facture)

        UNION ALL

        SELECT 'facture_cachee' AS type, date(date_facture) AS jour,
               IFNULL(SUM(montant_ttc_cents), 0) AS total, COUNT(*) AS count
        FROM factures
        {_where(hidden_clauses)}
        GROUP BY date(date_facture)

        ORDER BY jour ASC, type ASC
    """
    with db.get_connection() as conn:
        rows = conn.execute(sql, [*quote_params, *invoice_params, *invoice_params]).fetchall()
    return [
        models.DailyStat(
            type=row["type"],
            jour=date.fromisoformat(row["jour"]),
            total=from_cents(row["total"]),
            count=int(row["count"]),
        )
        for row in rows
    ]


def top_clients(
    limit: int = TOP_CLIENTS_DEFAULT,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[models.TopClient]:
    """Meilleurs clients par chiffre d'affaires facturé, hors factures cachées."""
    limit = max(1, min(TOP_CLIENTS_MAX, int(limit or TOP_CLIENTS_DEFAULT)))
    clauses, params = _date_filters("f.date_facture", start, end)
    clauses.append("f.statut != 'cachee'")
    sql = f"""
        SELECT c.id,
               TRIM(IFNULL(c.nom, '') || ' ' || IFNULL(c.prenom, '')) AS nom_complet,
               IFNULL(SUM(f.montant_ttc_cents), 0) AS total
        FROM clients c
        JOIN voitures v ON v.client_id = c.id
        JOIN factures f ON f.voiture_id = v.id
        {_where(clauses)}
        GROUP BY c.id
        ORDER BY total DESC, c.id ASC
        LIMIT ?
    """
    with db.get_connection() as conn:
        rows = conn.execute(sql, [*params, limit]).fetchall()
    return [
        models.TopClient(nom_complet=row["nom_complet"] or "Client", total=from_cents(row["total"]))
        for row in rows
    ]


def documents_of_day(day: date) -> list[models.DayDocument]:
    """Documents datés du jour donné, du plus gros montant au plus petit."""
    sql = """
        SELECT date(f.date_facture) AS jour,
               TRIM(IFNULL(c.nom, '') || ' ' || IFNULL(c.prenom, '')) AS client,
               CASE WHEN f.statut = 'cachee' THEN 'facture_cachee' ELSE 'facture' END AS type,
               f.statut AS statut,
               f.montant_ttc_cents AS montant
        FROM factures f
        JOIN voitures v ON v.id = f.voiture_id
        JOIN clients c ON c.id = v.client_id
        WHERE date(f.date_facture) = date(?)

        UNION ALL

        SELECT date(d.date_devis) AS jour,
               TRIM(IFNULL(c.nom, '') || ' ' || IFNULL(c.prenom, '')) AS client,
               'devis' AS type,
               IFNULL(d.statut, 'devis') AS statut,
               d.montant_ttc_cents AS montant
        FROM devis d
        JOIN voitures v ON v.id = d.voiture_id
        JOIN clients c ON c.id = v.client_id
        WHERE date(d.date_devis) = date(?)

        ORDER BY montant DESC
    """
    iso_day = day.isoformat()
    with db.get_connection() as conn:
        rows = conn.execute(sql, (iso_day, iso_day)).fetchall()
    return [
        models.DayDocument(
            jour=date.fromisoformat(row["jour"]),
            client=row["client"] or "",
            type=row["type"],
            statut=row["statut"],
            montant=from_cents(row["montant"]),
        )
        for row in rows
    ]
