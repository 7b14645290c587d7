# tenantbook/deps.py

from fastapi import Depends
from sqlmodel import Session

from .auth import get_current_user
from .db import get_session
from .errors import Forbidden, NotFound
from .models import Business


def require_role(user: dict, *roles: str):
    if user["role"] not in roles:
        raise Forbidden(f"Requires role: {', '.join(roles)}")


def current_business(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
) -> Business:
    business = session.get(Business, current_user["business"])
    if business is None:
        raise NotFound("Business not found")
    return business
