from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from bbq_booking.db.session import get_db
from bbq_booking.core.security import decode_token
from bbq_booking.models.user import User
from bbq_booking.services.reservation_lifecycle import Actor, OPERATOR_ROLES

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _guard

def get_operator(user: User = Depends(require_roles(*OPERATOR_ROLES))) -> Actor:
    """The authenticated operator, as the actor passed into lifecycle calls."""
    return Actor(id=user.id, role=user.role)

def get_optional_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User | None:
    """Signed-in customer when a bearer token is sent; guests get None."""
    if not creds:
        return None
    return get_current_user(creds, db)
