from datetime import date
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal
from tealedger.models.core import TeaGrade

GradeLiteral = Literal["GRADE_1", "GRADE_2"]

class CollectionIn(BaseModel):
    customer_id: str
    collection_date: date
    grade: GradeLiteral = "GRADE_2"
    weight_kg: Decimal = Field(ge=0)
    rate_per_kg: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

class CollectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    customer_id: str
    book_number: str
    collection_date: date
    grade: TeaGrade
    weight_kg: Decimal
    rate_per_kg: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    notes: Optional[str] = None
