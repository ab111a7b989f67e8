import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from tealedger.db import get_db
from tealedger.config import settings
from tealedger.util.security import hash_pw
from tealedger.models.core import User, UserRoleCode
from tealedger.services.settings import (
    AUTO_ARREARS_KEY, ROUNDING_MODE_KEY, STRATEGY_KEY, get_setting_value, save_setting,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")

    u = db.query(User).filter(User.username == "admin").first()
    if not u:
        u = User(username="admin", email="admin@example.com", pass_hash=hash_pw("admin"),
                 role=UserRoleCode.ADMIN, active=True)
        db.add(u); db.flush()
        logger.info("dev-bootstrap created admin user %s", u.id)

    defaults = {
        AUTO_ARREARS_KEY: "true" if settings.AUTO_ARREARS_DEFAULT else "false",
        ROUNDING_MODE_KEY: settings.DEDUCTION_ROUNDING_DEFAULT,
        STRATEGY_KEY: settings.INVOICE_STRATEGY_DEFAULT,
    }
    for key, value in defaults.items():
        if get_setting_value(db, key) is None:
            save_setting(db, key, value)

    db.commit()
    return {"ok": True, "admin_user_id": u.id, "username": u.username}
