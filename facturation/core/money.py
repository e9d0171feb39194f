"""Arithmétique monétaire en centimes."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
# Plus grand entier stockable dans une colonne INTEGER SQLite
MAX_CENTS = 2**63 - 1


def round_money(value: Decimal) -> Decimal:
    """Arrondit à deux décimales, demi-unité éloignée de zéro."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int(round_money(value) * HUNDRED)


def fits_in_cents(value: Decimal) -> bool:
    return abs(value) * HUNDRED <= MAX_CENTS


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / HUNDRED).quantize(CENT)


def line_total_ht(quantity: Decimal, unit_price: Decimal, discount_percent: Decimal) -> Decimal:
    gross = quantity * unit_price
    if discount_percent:
        gross = gross * (HUNDRED - discount_percent) / HUNDRED
    return round_money(gross)


def vat_amount(amount_ht: Decimal, rate_percent: Decimal) -> Decimal:
    return round_money(amount_ht * rate_percent / HUNDRED)


def format_eur(value: Decimal) -> str:
    return f"{value:.2f} €"
