# Overview: Sales and excise tax computation in integer cents.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

from ..errors import ValidationError


@dataclass(frozen=True)
class TaxRates:
    jurisdiction: str
    sales: Decimal
    excise: Decimal


def _to_rate(value) -> Decimal:
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid tax rate {value!r}") from None
    if rate < 0:
        raise ValidationError(f"Tax rate cannot be negative: {value!r}")
    return rate


def rates_for(jurisdiction: str | None, config) -> TaxRates:
    """
    Look up fixed jurisdiction rates from configuration.

    Rates are never taken from user input. An unknown jurisdiction is a
    validation error.
    """
    code = jurisdiction or config["DEFAULT_TAX_JURISDICTION"]
    table = config.get("TAX_JURISDICTIONS") or {}
    entry = table.get(code)
    if entry is None:
        raise ValidationError(
            f"No tax rates configured for jurisdiction '{code}'",
            details={"jurisdiction": code, "known": sorted(table)},
        )
    return TaxRates(
        jurisdiction=code,
        sales=_to_rate(entry["sales"]),
        excise=_to_rate(entry["excise"]),
    )


def round_cents(amount: Decimal) -> int:
    """Round to the minor unit, half-up."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_taxes(subtotal_cents: int, tax_rate, excise_rate) -> tuple[int, int]:
    """
    Compute (tax_cents, excise_cents) for a subtotal.

    Example: 9000 cents at 8.875% / 9% -> (799, 810).
    """
    if subtotal_cents < 0:
        raise ValidationError("Subtotal cannot be negative")
    subtotal = Decimal(subtotal_cents)
    tax = round_cents(subtotal * _to_rate(tax_rate))
    excise = round_cents(subtotal * _to_rate(excise_rate))
    return tax, excise


def compute_total(subtotal_cents: int, tax_cents: int, excise_cents: int, discount_cents: int = 0) -> int:
    for name, value in (
        ("subtotal", subtotal_cents),
        ("tax", tax_cents),
        ("excise tax", excise_cents),
        ("discount", discount_cents),
    ):
        if value < 0:
            raise ValidationError(f"{name} cannot be negative")

    total = subtotal_cents + tax_cents + excise_cents - discount_cents
    if total < 0:
        raise ValidationError(
            "Discount exceeds order amount",
            details={"discount_cents": discount_cents, "gross_cents": total + discount_cents},
        )
    return total
