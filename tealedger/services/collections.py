import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from tealedger.errors import InvalidInput, check_period
from tealedger.models.core import Collection, Customer, TeaGrade
from tealedger.services.money import ZERO, D, money
from tealedger.services.rates import resolve_rate


@dataclass(frozen=True)
class CollectionLine:
    date: date
    grade: TeaGrade
    weight_kg: Decimal

    def as_json(self) -> dict:
        return {"date": self.date.isoformat(), "grade": self.grade.value, "weight_kg": str(self.weight_kg)}


@dataclass(frozen=True)
class MonthlyIntake:
    grade1_kg: Decimal = ZERO
    grade2_kg: Decimal = ZERO
    lines: tuple[CollectionLine, ...] = field(default_factory=tuple)

    @property
    def total_kg(self) -> Decimal:
        return self.grade1_kg + self.grade2_kg


def month_bounds(year: int, month: int) -> tuple[date, date]:
    check_period(year, month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def collections_between(db: Session, book_number: str, start: date, end: date) -> list[Collection]:
    return (
        db.query(Collection)
        .filter(Collection.book_number == book_number,
                Collection.collection_date >= start,
                Collection.collection_date <= end)
        .order_by(Collection.collection_date.asc(), Collection.grade.asc())
        .all()
    )


def aggregate(db: Session, book_number: str, year: int, month: int) -> MonthlyIntake:
    """Sum a grower's weights for the calendar month, split by grade."""
    start, end = month_bounds(year, month)
    g1 = g2 = ZERO
    lines = []
    for c in collections_between(db, book_number, start, end):
        w = D(c.weight_kg)
        if c.grade is TeaGrade.GRADE_1:
            g1 += w
        elif c.grade is TeaGrade.GRADE_2:
            g2 += w
        lines.append(CollectionLine(date=c.collection_date, grade=c.grade, weight_kg=w))
    return MonthlyIntake(grade1_kg=g1, grade2_kg=g2, lines=tuple(lines))


def upsert_collection(
    db: Session,
    customer: Customer,
    collection_date: date,
    weight_kg,
    grade: TeaGrade = TeaGrade.GRADE_2,
    rate_per_kg=None,
    notes: str | None = None,
) -> Collection:
    """One record per grower, day and grade; a second write for the same key overwrites."""
    if weight_kg is None or D(weight_kg) < ZERO:
        raise InvalidInput("weight_kg must be zero or more")
    if rate_per_kg is None:
        card = resolve_rate(db, collection_date.year, collection_date.month)
        rate_per_kg = card.rate_for(grade) or None

    row = (
        db.query(Collection)
        .filter(Collection.book_number == customer.book_number,
                Collection.collection_date == collection_date,
                Collection.grade == grade)
        .first()
    )
    if not row:
        row = Collection(customer_id=customer.id, book_number=customer.book_number,
                         collection_date=collection_date, grade=grade)
        db.add(row)
    row.weight_kg = D(weight_kg)
    row.rate_per_kg = D(rate_per_kg) if rate_per_kg is not None else None
    row.total_amount = money(D(weight_kg) * D(rate_per_kg)) if rate_per_kg is not None else None
    row.notes = notes
    db.flush()
    return row
