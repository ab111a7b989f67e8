from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from tealedger.schemas.common import Token
from tealedger.util.security import create_token, verify_pw
from tealedger.models.core import User
from tealedger.db import get_db

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(username: str, password: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.username == username).first()
    if not user or not user.active or not verify_pw(user.pass_hash, password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=create_token(user.id, user.role.value))
