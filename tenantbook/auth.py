# tenantbook/auth.py

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session

from .config import ACCESS_TOKEN_EXPIRE_DAYS, JWT_ALGORITHM, SECRET_KEY
from .db import get_session
from .models import User

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user: User, expires_days: int = ACCESS_TOKEN_EXPIRE_DAYS) -> str:
    to_encode = {
        "sub": str(user.id),
        "role": user.role,
        "business": str(user.business_id),
        "exp": datetime.now(timezone.utc) + timedelta(days=expires_days),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> dict:
    if credentials is None or not credentials.credentials.strip():
        raise _unauthorized("Token must be provided as a Bearer token")

    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Invalid token")

    user_id = payload.get("sub")
    business = payload.get("business")
    if user_id is None or business is None:
        raise _unauthorized("Token is missing user or business identifier")

    user = session.get(User, int(user_id))
    if user is None or str(user.business_id) != str(business):
        raise _unauthorized("User not found")

    return {
        "id": user.id,
        "role": user.role,
        "business": user.business_id,
    }
