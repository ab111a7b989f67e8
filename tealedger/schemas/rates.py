from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class RateIn(BaseModel):
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    grade1_rate: Optional[Decimal] = Field(default=None, ge=0)
    grade2_rate: Optional[Decimal] = Field(default=None, ge=0)
    supply_deduction_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    transport_rate_per_kg: Optional[Decimal] = Field(default=None, ge=0)
    transport_percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    stamp_fee: Optional[Decimal] = Field(default=None, ge=0)
    tea_packet_price: Optional[Decimal] = Field(default=None, ge=0)

class RateOut(RateIn):
    model_config = ConfigDict(from_attributes=True)
    id: str
