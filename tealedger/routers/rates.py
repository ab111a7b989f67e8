from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tealedger.db import get_db
from tealedger.deps import require_auth
from tealedger.models.core import MonthlyRate
from tealedger.schemas.rates import RateIn, RateOut
from tealedger.services import rates as rate_service

router = APIRouter(prefix="/rates", tags=["rates"])

@router.post("/", response_model=RateOut)
def upsert_rate(body: RateIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    # edits apply to invoices generated (or regenerated) afterwards, not to existing snapshots
    data = body.model_dump(exclude={"year", "month"})
    row = rate_service.upsert_rate(db, body.year, body.month, **data)
    db.commit(); db.refresh(row)
    return row

@router.get("/year/{year}", response_model=list[RateOut])
def list_rates(year: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return rate_service.list_rates(db, year)

@router.get("/{year}/{month}", response_model=RateOut)
def get_rate(year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    row = db.query(MonthlyRate).filter(MonthlyRate.year == year, MonthlyRate.month == month).first()
    if not row:
        raise HTTPException(404, detail="no rate card for this period")
    return row

@router.delete("/{rate_id}")
def delete_rate(rate_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    rate_service.delete_rate(db, rate_id)
    db.commit()
    return {"ok": True}
