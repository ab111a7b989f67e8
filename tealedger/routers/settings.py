# tealedger/routers/settings.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from tealedger.db import get_db
from tealedger.deps import require_auth, require_role
from tealedger.models.core import AppSetting, UserRoleCode
from tealedger.schemas.settings import SettingIn, SettingOut
from tealedger.services.settings import delete_setting, save_setting

router = APIRouter(prefix="/settings", tags=["settings"])

@router.get("/", response_model=list[SettingOut])
def list_settings(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return db.query(AppSetting).order_by(AppSetting.setting_key).all()

@router.get("/{key}", response_model=SettingOut)
def get_setting(key: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    row = db.query(AppSetting).filter(AppSetting.setting_key == key).first()
    if not row:
        raise HTTPException(404, detail="setting not found")
    return row

@router.post("/", response_model=SettingOut)
def upsert_setting(body: SettingIn, db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    row = save_setting(db, body.key, body.value)
    db.commit(); db.refresh(row)
    return row

@router.delete("/{key}")
def remove_setting(key: str, db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    if not delete_setting(db, key):
        raise HTTPException(404, detail="setting not found")
    db.commit()
    return {"ok": True}
