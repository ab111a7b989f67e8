from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Date, Integer, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime, date
from decimal import Decimal
from tealedger.db import Base
from tealedger.models.common import IdMixin, TSMMixin, _now

# ── Enums ───────────────────────────────────────────────────────────────────
class TeaGrade(PyEnum):
    GRADE_1 = "GRADE_1"
    GRADE_2 = "GRADE_2"

class InvoiceStatus(PyEnum):
    GENERATED = "GENERATED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"

class UserRoleCode(PyEnum):
    ADMIN = "ADMIN"
    DEALER = "DEALER"

# ── Identity ────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    username: Mapped[str] = mapped_column(String(80), unique=True)
    email: Mapped[str | None] = mapped_column(String(160))
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRoleCode] = mapped_column(Enum(UserRoleCode), default=UserRoleCode.DEALER)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Settings ────────────────────────────────────────────────────────────────
class AppSetting(Base, IdMixin, TSMMixin):
    __tablename__ = "app_settings"
    setting_key: Mapped[str] = mapped_column(String(100), unique=True)
    setting_value: Mapped[str | None] = mapped_column(Text)

# ── Growers ─────────────────────────────────────────────────────────────────
class Customer(Base, IdMixin, TSMMixin):
    __tablename__ = "customer"
    book_number: Mapped[str] = mapped_column(String(40), unique=True)
    grower_name_english: Mapped[str] = mapped_column(String(160))
    grower_name_sinhala: Mapped[str | None] = mapped_column(String(160))
    address: Mapped[str | None] = mapped_column(Text)
    nic: Mapped[str | None] = mapped_column(String(20))
    land_name: Mapped[str | None] = mapped_column(String(160))
    contact_number: Mapped[str | None] = mapped_column(String(20))
    route: Mapped[str | None] = mapped_column(String(80))
    transport_exempt: Mapped[bool] = mapped_column(Boolean, default=False)

# ── Daily leaf intake ───────────────────────────────────────────────────────
class Collection(Base, IdMixin, TSMMixin):
    __tablename__ = "collection"
    __table_args__ = (UniqueConstraint("book_number", "collection_date", "grade", name="uq_collection_day_grade"),)
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer.id"))
    book_number: Mapped[str] = mapped_column(String(40), index=True)
    collection_date: Mapped[date] = mapped_column(Date, index=True)
    grade: Mapped[TeaGrade] = mapped_column(Enum(TeaGrade), default=TeaGrade.GRADE_2)
    weight_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    rate_per_kg: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))  # informational only
    notes: Mapped[str | None] = mapped_column(Text)

# ── Monthly rate card ───────────────────────────────────────────────────────
class MonthlyRate(Base, IdMixin, TSMMixin):
    __tablename__ = "monthly_rate"
    __table_args__ = (UniqueConstraint("year", "month", name="uq_rate_period"),)
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)  # 1-12
    grade1_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    grade2_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    supply_deduction_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))  # None → 4.00
    transport_rate_per_kg: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    transport_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))  # legacy strategy only
    stamp_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    tea_packet_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))

# ── Manually entered deductions ─────────────────────────────────────────────
class Deduction(Base, IdMixin, TSMMixin):
    __tablename__ = "deduction"
    __table_args__ = (UniqueConstraint("customer_id", "year", "month", name="uq_deduction_period"),)
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer.id"))
    book_number: Mapped[str] = mapped_column(String(40))
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)
    last_month_arrears: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    advance_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    advance_date: Mapped[date | None] = mapped_column(Date)
    loan_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    loan_date: Mapped[date | None] = mapped_column(Date)
    fertilizer1_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    fertilizer1_date: Mapped[date | None] = mapped_column(Date)
    fertilizer2_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    fertilizer2_date: Mapped[date | None] = mapped_column(Date)
    tea_packets_count: Mapped[int | None] = mapped_column(Integer)
    tea_packets_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    agrochemicals_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    agrochemicals_date: Mapped[date | None] = mapped_column(Date)
    # kept for operator reference; invoices recompute transport and take stamp fee from the rate card
    transport_deduction: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    stamp_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    other_deductions: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    other_deductions_note: Mapped[str | None] = mapped_column(Text)

# ── Invoice snapshot ────────────────────────────────────────────────────────
class Invoice(Base, IdMixin, TSMMixin):
    __tablename__ = "invoice"
    __table_args__ = (UniqueConstraint("customer_id", "year", "month", name="uq_invoice_period"),)
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customer.id"))
    book_number: Mapped[str] = mapped_column(String(40))
    customer_name: Mapped[str] = mapped_column(String(160))
    customer_name_sinhala: Mapped[str | None] = mapped_column(String(160))
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)

    # weights
    grade1_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    grade2_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    total_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    supply_deduction_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2))
    supply_deduction_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    payable_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    # rates & amounts
    grade1_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    grade2_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    grade1_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    grade2_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    # deductions (None = never entered, distinct from 0.00)
    last_month_arrears: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    advance_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    loan_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    fertilizer1_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    fertilizer2_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    tea_packets_count: Mapped[int | None] = mapped_column(Integer)
    tea_packets_total: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    agrochemicals_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    transport_rate_per_kg: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    transport_deduction: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    transport_exempt: Mapped[bool] = mapped_column(Boolean, default=False)
    stamp_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    other_deductions: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    other_deductions_note: Mapped[str | None] = mapped_column(Text)

    total_deductions: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)  # may be negative

    collection_details: Mapped[list] = mapped_column(JSON, default=list)  # [{date, grade, weight_kg}, ...]
    strategy: Mapped[str] = mapped_column(String(40), default="per_kg")
    status: Mapped[InvoiceStatus] = mapped_column(Enum(InvoiceStatus), default=InvoiceStatus.GENERATED)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor_user_id: Mapped[str | None] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
