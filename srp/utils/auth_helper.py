from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from srp.config import ADMIN_SEAT_USER_IDS, JWT_ALGORITHM, JWT_SECRET
from srp.db.db import get_session
from srp.models.user import User

ROLE_HIERARCHY = {
    "member": 1,
    "fc": 2,
    "admin": 3,
}

bearer_scheme_required = HTTPBearer(auto_error=True)


def get_current_user_required(token: HTTPAuthorizationCredentials = Depends(bearer_scheme_required)):
    try:
        payload = jwt.decode(
            token.credentials,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if not str(payload.get("sub", "")).isdigit():
        raise HTTPException(status_code=401, detail="Token has no seat user id")

    return payload


def _find_user(session: Session, seat_user_id: int):
    return session.exec(
        select(User).where(User.seat_user_id == seat_user_id)
    ).first()


def get_db_user(session: Session, current_user):
    """Role record for the token's seat user, created as member on first sight."""
    seat_user_id = int(current_user["sub"])
    name = current_user.get("name") or f"seat-{seat_user_id}"

    user = _find_user(session, seat_user_id)

    if not user:
        role = "admin" if seat_user_id in ADMIN_SEAT_USER_IDS else "member"
        session.add(User(seat_user_id=seat_user_id, main_character_name=name, role=role))
        try:
            session.commit()
        except IntegrityError:
            # A parallel first request inserted the row
            session.rollback()
        user = _find_user(session, seat_user_id)
    elif user.main_character_name != name:
        user.main_character_name = name
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def has_role(user: User, minimum_role: str) -> bool:
    return ROLE_HIERARCHY.get(user.role, 0) >= ROLE_HIERARCHY[minimum_role]


def require_role(minimum_role: str):
    def dependency(
        session: Session = Depends(get_session),
        current_user=Depends(get_current_user_required),
    ) -> User:
        user = get_db_user(session, current_user)
        if not has_role(user, minimum_role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency
