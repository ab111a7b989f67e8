from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Literal, Optional

from tealedger.db import get_db
from tealedger.deps import require_role
from tealedger.util.security import hash_pw
from tealedger.models.core import User, UserRoleCode

router = APIRouter(prefix="/users", tags=["users"])


class UserIn(BaseModel):
    username: str
    password: str
    email: Optional[str] = None
    role: Literal["ADMIN", "DEALER"] = "DEALER"


@router.post("/")
def create_user(body: UserIn, db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    if db.query(User).filter(User.username == body.username).first():
        raise HTTPException(409, detail="Username already exists")
    u = User(username=body.username, email=body.email, pass_hash=hash_pw(body.password),
             role=UserRoleCode(body.role))
    db.add(u); db.commit(); db.refresh(u)
    return {"id": u.id, "username": u.username, "role": u.role.value}


@router.get("/")
def list_users(db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    return [
        {"id": u.id, "username": u.username, "email": u.email, "role": u.role.value, "active": u.active}
        for u in db.query(User).order_by(User.username).all()
    ]


@router.post("/{user_id}/deactivate")
def deactivate_user(user_id: str, db: Session = Depends(get_db), sub: str = Depends(require_role(UserRoleCode.ADMIN))):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(404, detail="user not found")
    if u.id == sub:
        raise HTTPException(400, detail="cannot deactivate yourself")
    u.active = False
    db.commit()
    return {"id": u.id, "active": u.active}
