from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tealedger.db import get_db
from tealedger.deps import require_auth
from tealedger.models.core import Collection, TeaGrade
from tealedger.schemas.collections import CollectionIn, CollectionOut
from tealedger.services.collections import collections_between, upsert_collection
from tealedger.services.invoicing import get_customer

router = APIRouter(prefix="/collections", tags=["collections"])

@router.post("/", response_model=CollectionOut)
def record_collection(body: CollectionIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    customer = get_customer(db, body.customer_id)
    row = upsert_collection(
        db, customer,
        collection_date=body.collection_date,
        weight_kg=body.weight_kg,
        grade=TeaGrade(body.grade),
        rate_per_kg=body.rate_per_kg,
        notes=body.notes,
    )
    db.commit(); db.refresh(row)
    return row

@router.get("/", response_model=list[CollectionOut])
def list_by_date(day: date, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return (db.query(Collection)
              .filter(Collection.collection_date == day)
              .order_by(Collection.book_number, Collection.grade).all())

@router.get("/range", response_model=list[CollectionOut])
def list_by_range(start: date, end: date, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    if end < start:
        raise HTTPException(400, detail="end before start")
    return (db.query(Collection)
              .filter(Collection.collection_date >= start, Collection.collection_date <= end)
              .order_by(Collection.collection_date, Collection.book_number, Collection.grade).all())

@router.get("/book/{book_number}", response_model=list[CollectionOut])
def list_by_book(book_number: str, start: date | None = None, end: date | None = None,
                 db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    if start and end:
        return collections_between(db, book_number, start, end)
    return (db.query(Collection)
              .filter(Collection.book_number == book_number)
              .order_by(Collection.collection_date, Collection.grade).all())

@router.delete("/{collection_id}")
def delete_collection(collection_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    row = db.get(Collection, collection_id)
    if not row:
        raise HTTPException(404, detail="collection not found")
    db.delete(row); db.commit()
    return {"ok": True}
