import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from tealedger.config import settings
from tealedger.db import get_db, get_session_factory
from tealedger.deps import require_auth, require_role
from tealedger.errors import check_period
from tealedger.models.core import Invoice, UserRoleCode
from tealedger.schemas.invoices import BatchOut, InvoiceOut, StatusIn
from tealedger.services import invoicing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/period/{year}/{month}", response_model=list[InvoiceOut])
def list_for_period(year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    check_period(year, month)
    return (db.query(Invoice)
              .filter(Invoice.year == year, Invoice.month == month)
              .order_by(Invoice.book_number).all())


@router.get("/customer/{customer_id}/period/{year}/{month}", response_model=InvoiceOut)
def get_for_period(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    check_period(year, month)
    inv = invoicing.find_invoice(db, customer_id, year, month)
    if not inv:
        raise HTTPException(404, detail="invoice not found for this period")
    return inv


@router.get("/customer/{customer_id}", response_model=list[InvoiceOut])
def list_for_customer(customer_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return (db.query(Invoice)
              .filter(Invoice.customer_id == customer_id)
              .order_by(Invoice.year.desc(), Invoice.month.desc()).all())


@router.get("/count/{year}/{month}")
def count_for_period(year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    check_period(year, month)
    n = db.query(func.count(Invoice.id)).filter(Invoice.year == year, Invoice.month == month).scalar()
    return {"count": int(n or 0), "year": year, "month": month}


@router.get("/exists/{customer_id}/{year}/{month}")
def exists(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    check_period(year, month)
    return {"exists": invoicing.find_invoice(db, customer_id, year, month) is not None}


@router.post("/generate/{customer_id}/{year}/{month}", response_model=InvoiceOut)
def generate(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    inv = invoicing.generate_invoice(db, customer_id, year, month, actor=sub)
    db.commit(); db.refresh(inv)
    return inv


@router.post("/regenerate/{customer_id}/{year}/{month}", response_model=InvoiceOut)
def regenerate(customer_id: str, year: int, month: int, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    inv = invoicing.regenerate_invoice(db, customer_id, year, month, actor=sub)
    db.commit(); db.refresh(inv)
    return inv


@router.post("/generate-all/{year}/{month}", response_model=BatchOut)
def generate_all(year: int, month: int, workers: int | None = None,
                 db: Session = Depends(get_db), session_factory=Depends(get_session_factory),
                 sub: str = Depends(require_auth)):
    workers = min(workers or settings.INVOICE_BATCH_WORKERS, 16)
    result = invoicing.generate_all_for_period(session_factory, year, month,
                                               workers=workers, actor=sub)
    rows = db.query(Invoice).filter(Invoice.id.in_(result.invoice_ids)).all() if result.invoice_ids else []
    by_id = {r.id: r for r in rows}
    return BatchOut(
        year=year,
        month=month,
        generated=result.count,
        cancelled=result.cancelled,
        invoices=[InvoiceOut.model_validate(by_id[i]) for i in result.invoice_ids if i in by_id],
        failed=[{"customer_id": f.customer_id, "book_number": f.book_number, "error": f.error}
                for f in result.failures],
    )


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_one(invoice_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return invoicing.get_invoice(db, invoice_id)


@router.put("/{invoice_id}/status", response_model=InvoiceOut)
def update_status(invoice_id: str, body: StatusIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    inv = invoicing.set_status(db, invoice_id, body.status, actor=sub)
    db.commit(); db.refresh(inv)
    logger.info("invoice %s status -> %s by %s", inv.id, inv.status.value, sub)
    return inv


@router.delete("/{invoice_id}")
def delete(invoice_id: str, db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    invoicing.delete_invoice(db, invoice_id, actor=sub)
    db.commit()
    return {"ok": True}
