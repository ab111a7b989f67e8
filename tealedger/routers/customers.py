from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from tealedger.db import get_db
from tealedger.deps import require_auth
from tealedger.models.core import Collection, Customer, Deduction, Invoice
from tealedger.schemas.customers import CustomerIn, CustomerOut
from tealedger.services.invoicing import get_customer

router = APIRouter(prefix="/customers", tags=["customers"])

@router.post("/", response_model=CustomerOut)
def create_customer(body: CustomerIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    c = Customer(**body.model_dump())
    db.add(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail=f"book number {body.book_number} already exists")
    db.refresh(c)
    return c

@router.get("/", response_model=list[CustomerOut])
def list_customers(route: str | None = None, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    q = db.query(Customer)
    if route:
        q = q.filter(Customer.route == route)
    return q.order_by(Customer.book_number).all()

@router.get("/search", response_model=list[CustomerOut])
def search_customers(name: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return (db.query(Customer)
              .filter(Customer.grower_name_english.ilike(f"%{name}%"))
              .order_by(Customer.book_number).all())

@router.get("/book/{book_number}", response_model=CustomerOut)
def get_by_book_number(book_number: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    c = db.query(Customer).filter(Customer.book_number == book_number).first()
    if not c:
        raise HTTPException(404, detail="customer not found")
    return c

@router.get("/{customer_id}", response_model=CustomerOut)
def get_one(customer_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return get_customer(db, customer_id)

@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: str, body: CustomerIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    # book number may change; invoices and deductions follow the customer id
    c = get_customer(db, customer_id)
    for k, v in body.model_dump().items():
        setattr(c, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail=f"book number {body.book_number} already exists")
    db.refresh(c)
    return c

@router.delete("/{customer_id}")
def delete_customer(customer_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    c = get_customer(db, customer_id)
    for model in (Invoice, Deduction, Collection):
        if db.query(model.id).filter(model.customer_id == c.id).first():
            raise HTTPException(409, detail="customer has collections, deductions or invoices")
    db.delete(c)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="customer has collections, deductions or invoices")
    return {"ok": True}
