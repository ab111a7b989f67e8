from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal
from tealedger.models.core import InvoiceStatus

InvoiceStatusLiteral = Literal["GENERATED", "PAID", "CANCELLED"]

class CollectionLineOut(BaseModel):
    date: str
    grade: str
    weight_kg: Decimal

class InvoiceFields(BaseModel):
    customer_id: str
    book_number: str
    customer_name: str
    customer_name_sinhala: Optional[str] = None
    year: int
    month: int

    grade1_kg: Decimal
    grade2_kg: Decimal
    total_kg: Decimal
    supply_deduction_percentage: Decimal
    supply_deduction_kg: Decimal
    payable_kg: Decimal

    grade1_rate: Decimal
    grade2_rate: Decimal
    grade1_amount: Decimal
    grade2_amount: Decimal
    total_amount: Decimal

    last_month_arrears: Optional[Decimal] = None
    advance_amount: Optional[Decimal] = None
    loan_amount: Optional[Decimal] = None
    fertilizer1_amount: Optional[Decimal] = None
    fertilizer2_amount: Optional[Decimal] = None
    tea_packets_count: Optional[int] = None
    tea_packets_total: Optional[Decimal] = None
    agrochemicals_amount: Optional[Decimal] = None
    transport_rate_per_kg: Decimal
    transport_deduction: Decimal
    transport_exempt: bool
    stamp_fee: Decimal
    other_deductions: Optional[Decimal] = None
    other_deductions_note: Optional[str] = None

    total_deductions: Decimal
    net_amount: Decimal
    strategy: str

class InvoiceOut(InvoiceFields):
    model_config = ConfigDict(from_attributes=True)
    id: str
    status: InvoiceStatus
    collection_details: list[CollectionLineOut] = []
    generated_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class InvoicePreviewOut(InvoiceFields):
    # unsaved calculation, exposes the intermediate split as well
    reduction_multiplier: Decimal
    payable_grade1_kg: Decimal
    payable_grade2_kg: Decimal

class StatusIn(BaseModel):
    status: InvoiceStatusLiteral

class BatchFailureOut(BaseModel):
    customer_id: str
    book_number: str
    error: str

class BatchOut(BaseModel):
    year: int
    month: int
    generated: int
    cancelled: bool
    invoices: list[InvoiceOut]
    failed: list[BatchFailureOut]
