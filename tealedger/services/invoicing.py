"""Monthly invoice computation.

A grower's invoice for a month is built from four inputs: the month's rate
card, the grower's daily collections, the operator-entered deduction entry
and (optionally) the negative balance carried over from last month. The
numbers are computed by a strategy object so the older percentage-based
transport rule can still be reproduced for historical months.

`calculate` is pure with respect to the database: it only reads. Writing the
snapshot, keeping status sticky across regeneration and the batch runner are
layered on top.
"""
import logging
from collections import deque
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from decimal import Decimal
from threading import Event

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tealedger.config import settings
from tealedger.errors import InvalidInput, NotFound, check_period
from tealedger.models.core import Customer, Deduction, Invoice, InvoiceStatus
from tealedger.services.arrears import resolve_auto_arrears
from tealedger.services.collections import CollectionLine, MonthlyIntake, aggregate
from tealedger.services.deductions import collect
from tealedger.services.money import (
    HUNDRED, ONE, ZERO, D, money, percent_to_fraction, ratio, round_deduction, scratch, total,
)
from tealedger.services.rates import RateCard, resolve_rate
from tealedger.services.settings import InvoiceConfig, load_invoice_config
from tealedger.util.audit import audit

logger = logging.getLogger(__name__)


def _opt_money(x) -> Decimal | None:
    return None if x is None else money(x)


# ── Inputs ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GrowerRef:
    customer_id: str
    book_number: str
    name: str
    name_sinhala: str | None = None
    transport_exempt: bool = False

    @classmethod
    def from_row(cls, c: Customer) -> "GrowerRef":
        return cls(
            customer_id=c.id,
            book_number=c.book_number,
            name=c.grower_name_english,
            name_sinhala=c.grower_name_sinhala,
            transport_exempt=bool(c.transport_exempt),
        )


@dataclass(frozen=True)
class DeductionValues:
    # None means the operator never entered the line
    last_month_arrears: Decimal | None = None
    advance_amount: Decimal | None = None
    loan_amount: Decimal | None = None
    fertilizer1_amount: Decimal | None = None
    fertilizer2_amount: Decimal | None = None
    tea_packets_count: int | None = None
    tea_packets_total: Decimal | None = None
    agrochemicals_amount: Decimal | None = None
    other_deductions: Decimal | None = None
    other_deductions_note: str | None = None

    @classmethod
    def from_row(cls, d: Deduction | None) -> "DeductionValues":
        if d is None:
            return cls()
        return cls(
            last_month_arrears=_opt_money(d.last_month_arrears),
            advance_amount=_opt_money(d.advance_amount),
            loan_amount=_opt_money(d.loan_amount),
            fertilizer1_amount=_opt_money(d.fertilizer1_amount),
            fertilizer2_amount=_opt_money(d.fertilizer2_amount),
            tea_packets_count=d.tea_packets_count,
            tea_packets_total=_opt_money(d.tea_packets_total),
            agrochemicals_amount=_opt_money(d.agrochemicals_amount),
            other_deductions=_opt_money(d.other_deductions),
            other_deductions_note=d.other_deductions_note,
        )


@dataclass(frozen=True)
class InvoiceInputs:
    grower: GrowerRef
    year: int
    month: int
    rate: RateCard
    intake: MonthlyIntake
    deductions: DeductionValues = field(default_factory=DeductionValues)
    auto_arrears: Decimal = ZERO


# ── Output ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class InvoiceSnapshot:
    customer_id: str
    book_number: str
    customer_name: str
    customer_name_sinhala: str | None
    year: int
    month: int

    grade1_kg: Decimal
    grade2_kg: Decimal
    total_kg: Decimal
    supply_deduction_percentage: Decimal
    supply_deduction_kg: Decimal
    payable_kg: Decimal
    reduction_multiplier: Decimal
    payable_grade1_kg: Decimal
    payable_grade2_kg: Decimal

    grade1_rate: Decimal
    grade2_rate: Decimal
    grade1_amount: Decimal
    grade2_amount: Decimal
    total_amount: Decimal

    last_month_arrears: Decimal | None
    advance_amount: Decimal | None
    loan_amount: Decimal | None
    fertilizer1_amount: Decimal | None
    fertilizer2_amount: Decimal | None
    tea_packets_count: int | None
    tea_packets_total: Decimal | None
    agrochemicals_amount: Decimal | None
    transport_rate_per_kg: Decimal
    transport_deduction: Decimal
    transport_exempt: bool
    stamp_fee: Decimal
    other_deductions: Decimal | None
    other_deductions_note: str | None

    total_deductions: Decimal
    net_amount: Decimal

    collection_lines: tuple[CollectionLine, ...]
    strategy: str

    # columns copied verbatim onto the Invoice row
    STORED = (
        "customer_id", "book_number", "customer_name", "customer_name_sinhala", "year", "month",
        "grade1_kg", "grade2_kg", "total_kg", "supply_deduction_percentage", "supply_deduction_kg",
        "payable_kg", "grade1_rate", "grade2_rate", "grade1_amount", "grade2_amount", "total_amount",
        "last_month_arrears", "advance_amount", "loan_amount", "fertilizer1_amount",
        "fertilizer2_amount", "tea_packets_count", "tea_packets_total", "agrochemicals_amount",
        "transport_rate_per_kg", "transport_deduction", "transport_exempt", "stamp_fee",
        "other_deductions", "other_deductions_note", "total_deductions", "net_amount", "strategy",
    )

    def apply_to(self, inv: Invoice) -> Invoice:
        for name in self.STORED:
            setattr(inv, name, getattr(self, name))
        inv.collection_details = [line.as_json() for line in self.collection_lines]
        return inv


# ── Strategies ──────────────────────────────────────────────────────────────

class InvoiceStrategy:
    """Shared pipeline; subclasses decide shrinkage, grade split and transport."""

    name = ""

    def supply_deduction(self, total_kg: Decimal, percentage: Decimal, config: InvoiceConfig) -> Decimal:
        raise NotImplementedError

    def reduction_multiplier(self, total_kg: Decimal, payable_kg: Decimal, percentage: Decimal) -> Decimal:
        raise NotImplementedError

    def transport(self, inputs: InvoiceInputs, payable_kg: Decimal, total_amount: Decimal) -> Decimal:
        raise NotImplementedError

    def compute(self, inputs: InvoiceInputs, config: InvoiceConfig) -> InvoiceSnapshot:
        rate, intake, ded, grower = inputs.rate, inputs.intake, inputs.deductions, inputs.grower

        pct = rate.effective_supply_percentage
        total_kg = intake.grade1_kg + intake.grade2_kg
        supply_kg = self.supply_deduction(total_kg, pct, config)
        payable_kg = total_kg - supply_kg
        multiplier = self.reduction_multiplier(total_kg, payable_kg, pct)

        payable_g1 = money(intake.grade1_kg * multiplier)
        payable_g2 = money(intake.grade2_kg * multiplier)
        grade1_amount = money(payable_g1 * rate.grade1_rate)
        grade2_amount = money(payable_g2 * rate.grade2_rate)
        total_amount = grade1_amount + grade2_amount

        transport = ZERO if grower.transport_exempt else self.transport(inputs, payable_kg, total_amount)
        stamp_fee = money(rate.stamp_fee)

        arrears = D(ded.last_month_arrears) + D(inputs.auto_arrears)
        stored_arrears = money(arrears) if arrears > ZERO else None

        total_deductions = total(
            stored_arrears, ded.advance_amount, ded.loan_amount, ded.fertilizer1_amount,
            ded.fertilizer2_amount, ded.tea_packets_total, ded.agrochemicals_amount,
            transport, stamp_fee, ded.other_deductions,
        )

        return InvoiceSnapshot(
            customer_id=grower.customer_id,
            book_number=grower.book_number,
            customer_name=grower.name,
            customer_name_sinhala=grower.name_sinhala,
            year=inputs.year,
            month=inputs.month,
            grade1_kg=intake.grade1_kg,
            grade2_kg=intake.grade2_kg,
            total_kg=total_kg,
            supply_deduction_percentage=pct,
            supply_deduction_kg=supply_kg,
            payable_kg=payable_kg,
            reduction_multiplier=multiplier,
            payable_grade1_kg=payable_g1,
            payable_grade2_kg=payable_g2,
            grade1_rate=rate.grade1_rate,
            grade2_rate=rate.grade2_rate,
            grade1_amount=grade1_amount,
            grade2_amount=grade2_amount,
            total_amount=total_amount,
            last_month_arrears=stored_arrears,
            advance_amount=ded.advance_amount,
            loan_amount=ded.loan_amount,
            fertilizer1_amount=ded.fertilizer1_amount,
            fertilizer2_amount=ded.fertilizer2_amount,
            tea_packets_count=ded.tea_packets_count,
            tea_packets_total=ded.tea_packets_total,
            agrochemicals_amount=ded.agrochemicals_amount,
            transport_rate_per_kg=rate.transport_rate_per_kg,
            transport_deduction=transport,
            transport_exempt=grower.transport_exempt,
            stamp_fee=stamp_fee,
            other_deductions=ded.other_deductions,
            other_deductions_note=ded.other_deductions_note,
            total_deductions=total_deductions,
            net_amount=total_amount - total_deductions,
            collection_lines=intake.lines,
            strategy=self.name,
        )


class PerKgStrategy(InvoiceStrategy):
    """Transport charged per payable kg; grade split follows the rounded deduction."""

    name = "per_kg"

    def supply_deduction(self, total_kg, percentage, config):
        raw = scratch(total_kg * percentage / HUNDRED)
        return round_deduction(raw, config.rounding_mode)

    def reduction_multiplier(self, total_kg, payable_kg, percentage):
        # payable/total keeps per-grade kg consistent with the payable figure the grower sees
        return ratio(payable_kg, total_kg, default=ONE)

    def transport(self, inputs, payable_kg, total_amount):
        return money(payable_kg * inputs.rate.transport_rate_per_kg)


class LegacyPercentageStrategy(InvoiceStrategy):
    """Earlier rule set: transport as a percentage of the gross amount."""

    name = "legacy_percentage"

    def supply_deduction(self, total_kg, percentage, config):
        return money(total_kg * percentage / HUNDRED)

    def reduction_multiplier(self, total_kg, payable_kg, percentage):
        return ONE - percent_to_fraction(percentage)

    def transport(self, inputs, payable_kg, total_amount):
        return money(total_amount * inputs.rate.transport_percentage / HUNDRED)


STRATEGIES: dict[str, InvoiceStrategy] = {
    s.name: s for s in (PerKgStrategy(), LegacyPercentageStrategy())
}


def get_strategy(name: str) -> InvoiceStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise InvalidInput(f"unknown invoice strategy {name!r}")


# ── Database-backed operations ──────────────────────────────────────────────

def get_customer(db: Session, customer_id: str) -> Customer:
    c = db.get(Customer, customer_id)
    if not c:
        raise NotFound(f"customer {customer_id} not found")
    return c


def gather_inputs(db: Session, customer_id: str, year: int, month: int, config: InvoiceConfig) -> InvoiceInputs:
    check_period(year, month)
    customer = get_customer(db, customer_id)
    return InvoiceInputs(
        grower=GrowerRef.from_row(customer),
        year=year,
        month=month,
        rate=resolve_rate(db, year, month),
        intake=aggregate(db, customer.book_number, year, month),
        deductions=DeductionValues.from_row(collect(db, customer_id, year, month)),
        auto_arrears=resolve_auto_arrears(db, customer_id, year, month, config.auto_arrears_enabled),
    )


def calculate(db: Session, customer_id: str, year: int, month: int,
              config: InvoiceConfig | None = None) -> InvoiceSnapshot:
    config = config or load_invoice_config(db)
    inputs = gather_inputs(db, customer_id, year, month, config)
    return get_strategy(config.strategy).compute(inputs, config)


def find_invoice(db: Session, customer_id: str, year: int, month: int) -> Invoice | None:
    return (
        db.query(Invoice)
        .filter(Invoice.customer_id == customer_id, Invoice.year == year, Invoice.month == month)
        .first()
    )


def generate_invoice(db: Session, customer_id: str, year: int, month: int,
                     config: InvoiceConfig | None = None, actor: str | None = None) -> Invoice:
    """Compute and upsert the grower's invoice. An existing invoice keeps its status.

    If another writer inserts the same grower+period between the lookup and
    the insert, the session is rolled back and the snapshot is applied to
    that row instead.
    """
    snap = calculate(db, customer_id, year, month, config)
    inv = find_invoice(db, customer_id, year, month)
    if inv is None:
        inv = Invoice(status=InvoiceStatus.GENERATED)
        snap.apply_to(inv)
        db.add(inv)
        try:
            db.flush()
            return inv
        except IntegrityError:
            db.rollback()
            inv = find_invoice(db, customer_id, year, month)
            if inv is None:
                raise
            logger.info("invoice %04d-%02d for customer %s created concurrently, updating it",
                        year, month, customer_id)

    before = {"net_amount": str(inv.net_amount), "total_deductions": str(inv.total_deductions)}
    snap.apply_to(inv)
    db.flush()
    audit(db, actor, "Invoice", inv.id, "REGENERATE", before=before,
          after={"net_amount": str(snap.net_amount), "total_deductions": str(snap.total_deductions)})
    return inv


regenerate_invoice = generate_invoice


def get_invoice(db: Session, invoice_id: str) -> Invoice:
    inv = db.get(Invoice, invoice_id)
    if not inv:
        raise NotFound(f"invoice {invoice_id} not found")
    return inv


def set_status(db: Session, invoice_id: str, status: InvoiceStatus | str, actor: str | None = None) -> Invoice:
    # any status may move to any other; the audit log keeps the trail
    if not isinstance(status, InvoiceStatus):
        try:
            status = InvoiceStatus(str(status).upper())
        except ValueError:
            raise InvalidInput(f"invalid invoice status {status!r}")
    inv = get_invoice(db, invoice_id)
    before = inv.status
    inv.status = status
    db.flush()
    audit(db, actor, "Invoice", inv.id, "STATUS", before={"status": before.value}, after={"status": status.value})
    return inv


def delete_invoice(db: Session, invoice_id: str, actor: str | None = None) -> None:
    inv = get_invoice(db, invoice_id)
    audit(db, actor, "Invoice", inv.id, "DELETE",
          before={"customer_id": inv.customer_id, "year": inv.year, "month": inv.month,
                  "net_amount": str(inv.net_amount)})
    db.delete(inv)
    db.flush()


# ── Batch ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BatchFailure:
    customer_id: str
    book_number: str
    error: str


@dataclass
class BatchResult:
    year: int
    month: int
    invoice_ids: list[str] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.invoice_ids)


def generate_all_for_period(session_factory, year: int, month: int, *, workers: int | None = None,
                            cancel: Event | None = None, config: InvoiceConfig | None = None,
                            actor: str | None = None) -> BatchResult:
    """Generate every grower's invoice for the month.

    Each grower runs in its own session and commits on its own, so one
    grower's failure is recorded and skipped without touching the others.
    When `cancel` is set no further growers are started; those already
    running finish and stay written.
    """
    check_period(year, month)
    with session_factory() as db:
        growers = [(c.id, c.book_number) for c in db.query(Customer).order_by(Customer.book_number).all()]
        config = config or load_invoice_config(db)

    def _one(customer_id: str) -> str:
        with session_factory() as s:
            try:
                inv = generate_invoice(s, customer_id, year, month, config=config, actor=actor)
                s.commit()
                return inv.id
            except Exception:
                s.rollback()
                raise

    workers = max(1, workers or settings.INVOICE_BATCH_WORKERS)
    result = BatchResult(year=year, month=month)
    done_ids: dict[str, str] = {}
    pending = deque(growers)
    in_flight = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="invoice-batch") as pool:
        while pending or in_flight:
            while pending and len(in_flight) < workers and not (cancel and cancel.is_set()):
                cid, book = pending.popleft()
                in_flight[pool.submit(_one, cid)] = (cid, book)
            if not in_flight:
                break
            finished, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in finished:
                cid, book = in_flight.pop(fut)
                try:
                    done_ids[cid] = fut.result()
                except Exception as exc:
                    logger.exception("invoice generation failed for customer %s (book %s) %04d-%02d",
                                     cid, book, year, month)
                    result.failures.append(BatchFailure(customer_id=cid, book_number=book, error=str(exc)))

    result.invoice_ids = [done_ids[cid] for cid, _ in growers if cid in done_ids]
    result.cancelled = bool(pending)
    if result.cancelled:
        logger.warning("invoice batch %04d-%02d cancelled with %d growers not started",
                       year, month, len(pending))
    logger.info("invoice batch %04d-%02d: %d generated, %d failed",
                year, month, result.count, len(result.failures))
    return result
