from pydantic import BaseModel, ConfigDict
from typing import Optional

class SettingIn(BaseModel):
    key: str
    value: Optional[str] = None

class SettingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    setting_key: str
    setting_value: Optional[str] = None
