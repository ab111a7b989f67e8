from datetime import date
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class DeductionIn(BaseModel):
    customer_id: str
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    last_month_arrears: Optional[Decimal] = None
    advance_amount: Optional[Decimal] = None
    advance_date: Optional[date] = None
    loan_amount: Optional[Decimal] = None
    loan_date: Optional[date] = None
    fertilizer1_amount: Optional[Decimal] = None
    fertilizer1_date: Optional[date] = None
    fertilizer2_amount: Optional[Decimal] = None
    fertilizer2_date: Optional[date] = None
    tea_packets_count: Optional[int] = Field(default=None, ge=0)
    tea_packets_total: Optional[Decimal] = None
    agrochemicals_amount: Optional[Decimal] = None
    agrochemicals_date: Optional[date] = None
    transport_deduction: Optional[Decimal] = None
    stamp_fee: Optional[Decimal] = None
    other_deductions: Optional[Decimal] = None
    other_deductions_note: Optional[str] = None

class DeductionOut(DeductionIn):
    model_config = ConfigDict(from_attributes=True)
    id: str
    book_number: str

class AutoArrearsOut(BaseModel):
    enabled: bool
    previous_year: Optional[int] = None
    previous_month: Optional[int] = None
    previous_net_amount: Optional[Decimal] = None
    auto_arrears_amount: Decimal
