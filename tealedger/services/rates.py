from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from tealedger.errors import NotFound, check_period
from tealedger.models.core import MonthlyRate, TeaGrade
from tealedger.services.money import D

DEFAULT_SUPPLY_DEDUCTION_PERCENTAGE = Decimal("4.00")

RATE_FIELDS = (
    "grade1_rate", "grade2_rate", "supply_deduction_percentage", "transport_rate_per_kg",
    "transport_percentage", "stamp_fee", "tea_packet_price",
)


@dataclass(frozen=True)
class RateCard:
    """Rate card as the calculator sees it. Only the supply percentage may be absent."""
    year: int
    month: int
    grade1_rate: Decimal = Decimal("0")
    grade2_rate: Decimal = Decimal("0")
    supply_deduction_percentage: Decimal | None = None
    transport_rate_per_kg: Decimal = Decimal("0")
    transport_percentage: Decimal = Decimal("0")
    stamp_fee: Decimal = Decimal("0")
    tea_packet_price: Decimal = Decimal("0")

    @property
    def effective_supply_percentage(self) -> Decimal:
        if self.supply_deduction_percentage is None:
            return DEFAULT_SUPPLY_DEDUCTION_PERCENTAGE
        return D(self.supply_deduction_percentage)

    def rate_for(self, grade: TeaGrade) -> Decimal:
        return self.grade1_rate if grade is TeaGrade.GRADE_1 else self.grade2_rate


def resolve_rate(db: Session, year: int, month: int) -> RateCard:
    """Missing card → zero rates; never an error."""
    check_period(year, month)
    row = db.query(MonthlyRate).filter(MonthlyRate.year == year, MonthlyRate.month == month).first()
    if not row:
        return RateCard(year=year, month=month)
    return RateCard(
        year=year,
        month=month,
        grade1_rate=D(row.grade1_rate),
        grade2_rate=D(row.grade2_rate),
        supply_deduction_percentage=row.supply_deduction_percentage,
        transport_rate_per_kg=D(row.transport_rate_per_kg),
        transport_percentage=D(row.transport_percentage),
        stamp_fee=D(row.stamp_fee),
        tea_packet_price=D(row.tea_packet_price),
    )


def upsert_rate(db: Session, year: int, month: int, **fields) -> MonthlyRate:
    check_period(year, month)
    row = db.query(MonthlyRate).filter(MonthlyRate.year == year, MonthlyRate.month == month).first()
    if not row:
        row = MonthlyRate(year=year, month=month)
        db.add(row)
    for k in RATE_FIELDS:
        if k in fields:
            setattr(row, k, fields[k])
    db.flush()
    return row


def list_rates(db: Session, year: int) -> list[MonthlyRate]:
    return db.query(MonthlyRate).filter(MonthlyRate.year == year).order_by(MonthlyRate.month.asc()).all()


def get_rate(db: Session, rate_id: str) -> MonthlyRate:
    row = db.get(MonthlyRate, rate_id)
    if not row:
        raise NotFound(f"rate card {rate_id} not found")
    return row


def delete_rate(db: Session, rate_id: str) -> None:
    db.delete(get_rate(db, rate_id))
    db.flush()
