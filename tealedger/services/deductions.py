from sqlalchemy.orm import Session

from tealedger.errors import NotFound, check_period
from tealedger.models.core import Customer, Deduction

DEDUCTION_FIELDS = (
    "last_month_arrears", "advance_amount", "advance_date", "loan_amount", "loan_date",
    "fertilizer1_amount", "fertilizer1_date", "fertilizer2_amount", "fertilizer2_date",
    "tea_packets_count", "tea_packets_total", "agrochemicals_amount", "agrochemicals_date",
    "transport_deduction", "stamp_fee", "other_deductions", "other_deductions_note",
)


def collect(db: Session, customer_id: str, year: int, month: int) -> Deduction | None:
    check_period(year, month)
    return (
        db.query(Deduction)
        .filter(Deduction.customer_id == customer_id, Deduction.year == year, Deduction.month == month)
        .first()
    )


def upsert_deduction(db: Session, customer: Customer, year: int, month: int, **fields) -> Deduction:
    # every field is overwritten; an omitted amount becomes "not entered" (None)
    row = collect(db, customer.id, year, month)
    if not row:
        row = Deduction(customer_id=customer.id, year=year, month=month)
        db.add(row)
    row.book_number = customer.book_number
    for k in DEDUCTION_FIELDS:
        setattr(row, k, fields.get(k))
    db.flush()
    return row


def delete_deduction(db: Session, deduction_id: str) -> None:
    row = db.get(Deduction, deduction_id)
    if not row:
        raise NotFound(f"deduction {deduction_id} not found")
    db.delete(row)
    db.flush()
