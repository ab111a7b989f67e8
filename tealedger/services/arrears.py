from decimal import Decimal

from sqlalchemy.orm import Session

from tealedger.errors import check_period
from tealedger.models.core import Invoice
from tealedger.services.money import ZERO, D


def previous_period(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def previous_invoice(db: Session, customer_id: str, year: int, month: int) -> Invoice | None:
    # keyed by customer, not book number, so a renumbered book still carries its debt
    py, pm = previous_period(year, month)
    return (
        db.query(Invoice)
        .filter(Invoice.customer_id == customer_id, Invoice.year == py, Invoice.month == pm)
        .first()
    )


def resolve_auto_arrears(db: Session, customer_id: str, year: int, month: int, enabled: bool) -> Decimal:
    """abs(previous net) when the previous month ended negative, else 0."""
    check_period(year, month)
    if not enabled:
        return ZERO
    prev = previous_invoice(db, customer_id, year, month)
    if prev is None or prev.net_amount is None:
        return ZERO
    net = D(prev.net_amount)
    return -net if net < ZERO else ZERO


def preview_auto_arrears(db: Session, customer_id: str, year: int, month: int, enabled: bool) -> dict:
    check_period(year, month)
    out = {
        "enabled": enabled,
        "previous_year": None,
        "previous_month": None,
        "previous_net_amount": None,
        "auto_arrears_amount": ZERO,
    }
    if not enabled:
        return out
    out["previous_year"], out["previous_month"] = previous_period(year, month)
    prev = previous_invoice(db, customer_id, year, month)
    if prev is not None:
        out["previous_net_amount"] = prev.net_amount
        out["auto_arrears_amount"] = resolve_auto_arrears(db, customer_id, year, month, enabled)
    return out
