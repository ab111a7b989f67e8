from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tealedger.db import get_db
from tealedger.deps import require_auth
from tealedger.errors import check_period
from tealedger.models.core import Deduction
from tealedger.schemas.deductions import AutoArrearsOut, DeductionIn, DeductionOut
from tealedger.schemas.invoices import InvoicePreviewOut
from tealedger.services.arrears import preview_auto_arrears
from tealedger.services.deductions import collect, delete_deduction, upsert_deduction
from tealedger.services.invoicing import calculate, get_customer
from tealedger.services.settings import load_invoice_config

router = APIRouter(prefix="/deductions", tags=["deductions"])

@router.post("/", response_model=DeductionOut)
def save_deduction(body: DeductionIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    customer = get_customer(db, body.customer_id)
    row = upsert_deduction(db, customer, body.year, body.month,
                           **body.model_dump(exclude={"customer_id", "year", "month"}))
    db.commit(); db.refresh(row)
    return row

@router.get("/customer/{customer_id}/period/{year}/{month}", response_model=DeductionOut)
def get_for_period(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    row = collect(db, customer_id, year, month)
    if not row:
        raise HTTPException(404, detail="no deductions for this period")
    return row

@router.get("/customer/{customer_id}", response_model=list[DeductionOut])
def list_for_customer(customer_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return (db.query(Deduction)
              .filter(Deduction.customer_id == customer_id)
              .order_by(Deduction.year.desc(), Deduction.month.desc()).all())

@router.get("/period/{year}/{month}", response_model=list[DeductionOut])
def list_for_period(year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    check_period(year, month)
    return (db.query(Deduction)
              .filter(Deduction.year == year, Deduction.month == month)
              .order_by(Deduction.book_number).all())

@router.get("/auto-arrears/{customer_id}/{year}/{month}", response_model=AutoArrearsOut)
def auto_arrears(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    config = load_invoice_config(db)
    return preview_auto_arrears(db, customer_id, year, month, config.auto_arrears_enabled)

@router.get("/calculate/{customer_id}/{year}/{month}", response_model=InvoicePreviewOut)
def monthly_totals(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    snap = calculate(db, customer_id, year, month)
    return InvoicePreviewOut.model_validate(snap, from_attributes=True)

@router.delete("/{deduction_id}")
def remove(deduction_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    delete_deduction(db, deduction_id)
    db.commit()
    return {"ok": True}
