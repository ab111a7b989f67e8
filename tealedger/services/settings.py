import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from tealedger.config import settings
from tealedger.errors import InvalidInput
from tealedger.models.core import AppSetting
from tealedger.services.money import DeductionRounding

logger = logging.getLogger(__name__)

AUTO_ARREARS_KEY = "auto_arrears_carry_forward"
ROUNDING_MODE_KEY = "deduction_rounding_mode"
STRATEGY_KEY = "invoice_calculation_strategy"

STRATEGY_NAMES = ("per_kg", "legacy_percentage")


@dataclass(frozen=True)
class InvoiceConfig:
    auto_arrears_enabled: bool = False
    rounding_mode: DeductionRounding = DeductionRounding.HALF_UP
    strategy: str = "per_kg"


def get_setting_value(db: Session, key: str) -> str | None:
    row = db.query(AppSetting).filter(AppSetting.setting_key == key).first()
    return row.setting_value if row else None


def save_setting(db: Session, key: str, value: str | None) -> AppSetting:
    key = (key or "").strip()
    if not key:
        raise InvalidInput("setting key is required")
    _validate(key, value)
    row = db.query(AppSetting).filter(AppSetting.setting_key == key).first()
    if not row:
        row = AppSetting(setting_key=key)
        db.add(row)
    row.setting_value = value
    db.flush()
    return row


def delete_setting(db: Session, key: str) -> bool:
    row = db.query(AppSetting).filter(AppSetting.setting_key == key).first()
    if not row:
        return False
    db.delete(row)
    db.flush()
    return True


def _validate(key: str, value: str | None) -> None:
    if value is None:
        return
    if key == ROUNDING_MODE_KEY:
        try:
            DeductionRounding(value)
        except ValueError:
            allowed = ", ".join(m.value for m in DeductionRounding)
            raise InvalidInput(f"{key} must be one of: {allowed}")
    elif key == STRATEGY_KEY and value not in STRATEGY_NAMES:
        raise InvalidInput(f"{key} must be one of: {', '.join(STRATEGY_NAMES)}")
    elif key == AUTO_ARREARS_KEY and value.strip().lower() not in ("true", "false"):
        raise InvalidInput(f"{key} must be 'true' or 'false'")


def load_invoice_config(db: Session) -> InvoiceConfig:
    """Read the feature flags once so a calculation never sees them change mid-way."""
    raw_arrears = get_setting_value(db, AUTO_ARREARS_KEY)
    if raw_arrears is None:
        auto_arrears = settings.AUTO_ARREARS_DEFAULT
    else:
        auto_arrears = raw_arrears.strip().lower() == "true"

    raw_mode = get_setting_value(db, ROUNDING_MODE_KEY) or settings.DEDUCTION_ROUNDING_DEFAULT
    try:
        mode = DeductionRounding(raw_mode)
    except ValueError:
        logger.warning("unknown %s %r, using half_up", ROUNDING_MODE_KEY, raw_mode)
        mode = DeductionRounding.HALF_UP

    strategy = get_setting_value(db, STRATEGY_KEY) or settings.INVOICE_STRATEGY_DEFAULT
    if strategy not in STRATEGY_NAMES:
        logger.warning("unknown %s %r, using per_kg", STRATEGY_KEY, strategy)
        strategy = "per_kg"

    return InvoiceConfig(auto_arrears_enabled=auto_arrears, rounding_mode=mode, strategy=strategy)
