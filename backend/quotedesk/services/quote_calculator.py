"""
Calcolo totali preventivo e piano di pagamento
Progetto: Quote Desk (Gestionale Preventivi)

Funzioni pure, senza accesso al database:
- line_total: totale di una voce (quantità × prezzo unitario)
- recompute: subtotale, imposta e totale della bozza
- schedule_total / schedule_is_balanced: somma percentuali del piano di pagamento

Tutti gli importi sono Decimal arrotondati al centesimo (ROUND_HALF_UP).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, ConfigDict

CENT = Decimal("0.01")
# Aliquota della bozza: 6 decimali come frazione, 4 come percentuale memorizzata
RATE_STEP = Decimal("0.000001")
PERCENTAGE_STEP = Decimal("0.0001")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


class PricedLine(Protocol):
    """Qualsiasi oggetto con quantity, unit_price e total (bozza o record DB)."""

    quantity: Any
    unit_price: Any
    total: Any


class QuoteTotals(BaseModel):
    """Totali derivati della bozza."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal

    model_config = ConfigDict(frozen=True)


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Converte un valore arbitrario in Decimal.

    Input non numerici (None, stringhe vuote, testo, NaN) diventano `default`.
    Accetta la virgola come separatore decimale.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def quantize(amount: Decimal) -> Decimal:
    """Arrotonda al centesimo con ROUND_HALF_UP."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_rate(rate: Any) -> Decimal:
    """Aliquota (frazione) arrotondata a 6 decimali, la precisione memorizzata."""
    return to_decimal(rate).quantize(RATE_STEP, rounding=ROUND_HALF_UP)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    """Totale di una voce: quantità × prezzo unitario, arrotondato al centesimo."""
    return quantize(to_decimal(quantity) * to_decimal(unit_price))


def recompute(
    items: Iterable[PricedLine],
    tax_enabled: bool,
    tax_rate: Any,
) -> QuoteTotals:
    """
    Ricalcola subtotale, imposta e totale.

    Args:
        items: Voci con `total` già aggiornato
        tax_enabled: Se False l'imposta è zero
        tax_rate: Aliquota come frazione (0.08 = 8%)

    Returns:
        QuoteTotals con subtotal, tax, total
    """
    subtotal = quantize(sum((to_decimal(item.total) for item in items), ZERO))
    tax = quantize(subtotal * to_decimal(tax_rate)) if tax_enabled else ZERO
    return QuoteTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def recompute_from_percentage(
    items: Iterable[PricedLine],
    tax_enabled: bool,
    tax_rate_percentage: Any,
) -> QuoteTotals:
    """Come recompute, ma con l'aliquota espressa in percentuale (10 = 10%)."""
    return recompute(items, tax_enabled, to_decimal(tax_rate_percentage) / HUNDRED)


def percentage_to_rate(percentage: Any) -> Decimal:
    """Percentuale memorizzata (8.00) → frazione della bozza (0.08)."""
    return (to_decimal(percentage) / HUNDRED).normalize()


def rate_to_percentage(rate: Any) -> Decimal:
    """Frazione della bozza (0.08875) → percentuale memorizzata (8.8750)."""
    return (quantize_rate(rate) * HUNDRED).quantize(PERCENTAGE_STEP, rounding=ROUND_HALF_UP)


def _schedule_sum(entries: Iterable[Any]) -> Decimal:
    total = ZERO
    for entry in entries:
        raw = entry.get("percentage") if isinstance(entry, dict) else getattr(entry, "percentage", None)
        total += to_decimal(raw)
    return total


def schedule_total(entries: Iterable[Any]) -> Decimal:
    """
    Somma delle percentuali del piano di pagamento, arrotondata al centesimo.

    Accetta oggetti con attributo `percentage` o dict con chiave "percentage".
    Valori non numerici contano come zero.
    """
    return quantize(_schedule_sum(entries))


def schedule_is_balanced(entries: Iterable[Any]) -> bool:
    """
    True se le percentuali sommano esattamente a 100.

    Solo indicativo: nessuna operazione viene bloccata quando è False.
    """
    return _schedule_sum(entries) == HUNDRED
