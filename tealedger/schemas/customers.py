from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class CustomerIn(BaseModel):
    book_number: str = Field(min_length=1, max_length=40)
    grower_name_english: str = Field(min_length=1)
    grower_name_sinhala: Optional[str] = None
    address: Optional[str] = None
    nic: Optional[str] = None
    land_name: Optional[str] = None
    contact_number: Optional[str] = None
    route: Optional[str] = None
    transport_exempt: bool = False

class CustomerOut(CustomerIn):
    model_config = ConfigDict(from_attributes=True)
    id: str
