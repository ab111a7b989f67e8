from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from tealedger.db import get_db
from tealedger.models.core import User, UserRoleCode
from tealedger.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
        return data["sub"]
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_role(code: UserRoleCode):
    def _dep(sub: str = Depends(require_auth), db: Session = Depends(get_db)):
        user = db.get(User, sub)
        if not user or not user.active:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
        # ADMIN may do everything a narrower role may
        if user.role is UserRoleCode.ADMIN or user.role is code:
            return sub
        raise HTTPException(status_code=403, detail=f"Requires role: {code.value}")
    return _dep
