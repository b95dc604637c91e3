from typing import Any, Dict, Optional, Type, TypeVar
import logging

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import User
from kasir.responses import db_error, describe_errors, ok
from kasir.security import (
    get_password_hash,
    is_email_allowed,
    issue_token,
    normalize_email,
    revoke_token,
    verify_password,
    verify_token,
)

logger = logging.getLogger("kasir.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

ACTIONS = ("login", "register", "logout", "verify")

M = TypeVar("M", bound=BaseModel)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=2)


def _parse(model: Type[M], payload: Optional[Dict[str, Any]], message: str) -> M:
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        errors = e.errors()
        if any(err.get("type") == "missing" for err in errors):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=describe_errors(errors))


def _session_out(user: User, token: str) -> Dict[str, Any]:
    return {"id": user.id, "email": user.email, "full_name": user.full_name, "token": token}


def _find_user(db: Session, email: str) -> Optional[User]:
    return db.exec(select(User).where(User.email == email)).first()


def _login_impl(payload: LoginIn, db: Session):
    email = normalize_email(payload.email)
    try:
        user = _find_user(db, email)
        if not user or not verify_password(payload.password, user.password_hash):
            logger.info("login rejected")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Email atau password salah")
        token = issue_token(db, user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        raise db_error(db, e)
    logger.info("login ok user_id=%s", user.id)
    return ok(_session_out(user, token), "Login successful")


def _register_impl(payload: RegisterIn, db: Session):
    email = normalize_email(payload.email)
    if not is_email_allowed(email):
        logger.info("registration refused for address outside the allow-list")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email tidak diizinkan untuk mendaftar. Hanya email yang terdaftar yang dapat mengakses sistem ini.",
        )
    try:
        if _find_user(db, email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email sudah terdaftar")
        user = User(email=email, password_hash=get_password_hash(payload.password), full_name=payload.full_name.strip())
        db.add(user)
        db.flush()
        token = issue_token(db, user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # a concurrent registration won the unique index on users.email
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email sudah terdaftar")
    except SQLAlchemyError as e:
        raise db_error(db, e)
    logger.info("registered user_id=%s", user.id)
    return ok(_session_out(user, token), "Registration successful")


def _logout_impl(authorization: Optional[str], db: Session):
    try:
        revoke_token(db, authorization)
    except SQLAlchemyError as e:
        raise db_error(db, e)
    return ok(message="Logout successful")


def _verify_impl(authorization: Optional[str], db: Session):
    try:
        result = verify_token(db, authorization)
    except SQLAlchemyError as e:
        raise db_error(db, e)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=result.reason,
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = result.user
    return ok({"id": user.id, "email": user.email, "full_name": user.full_name})


@router.post("/")
def auth_action(
    action: str = Query(""),
    payload: Optional[Dict[str, Any]] = Body(None),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_session),
):
    """
    Single entry point dispatching on ``?action=``: login and register take a
    JSON body, logout and verify read the bearer token.
    """
    if action == "login":
        return _login_impl(_parse(LoginIn, payload, "Missing email or password"), db)
    if action == "register":
        return _register_impl(
            _parse(RegisterIn, payload, "Missing required fields: email, password, full_name"), db
        )
    if action == "logout":
        return _logout_impl(authorization, db)
    if action == "verify":
        return _verify_impl(authorization, db)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Invalid action. Use " + ", ".join(f"?action={a}" for a in ACTIONS),
    )
