from dataclasses import dataclass
from datetime import datetime, timedelta
import hashlib
import logging
import os
import secrets
from typing import Iterable, List, Optional, Tuple

from passlib.context import CryptContext

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import User, UserToken

logger = logging.getLogger("kasir.security")


def _parse_emails(raw: str) -> List[str]:
    return [e.strip().lower() for e in (raw or "").split(",") if e.strip()]


# comma-separated list of addresses allowed to register
ALLOWED_EMAILS = _parse_emails(os.environ.get("ALLOWED_EMAILS", ""))
TOKEN_TTL_DAYS = int(os.environ.get("TOKEN_TTL_DAYS", "7"))
TOKEN_BYTES = 32

MSG_TOKEN_MISSING = "Token tidak ditemukan. Silakan login terlebih dahulu."
MSG_TOKEN_MALFORMED = "Format token tidak valid"
MSG_TOKEN_INVALID = "Token tidak valid atau sudah kadaluarsa. Silakan login kembali."

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_email_allowed(email: str, allowed: Optional[Iterable[str]] = None) -> bool:
    allowed = ALLOWED_EMAILS if allowed is None else [normalize_email(e) for e in allowed]
    return normalize_email(email) in set(allowed)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(db: Session, user: User, now: Optional[datetime] = None) -> str:
    """
    Replace every session of ``user`` with a fresh one and return the bearer
    value. The caller commits, so the revocation and the insert land together.
    """
    now = now or datetime.utcnow()
    db.exec(delete(UserToken).where(UserToken.user_id == user.id))
    token = generate_token()
    db.add(UserToken(user_id=user.id, token=hash_token(token), expires_at=now + timedelta(days=TOKEN_TTL_DAYS)))
    return token


@dataclass(frozen=True)
class AuthResult:
    user: Optional[User] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.user is not None


def extract_bearer(authorization: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (token, None) or (None, failure message)."""
    raw = (authorization or "").strip()
    if not raw:
        return None, MSG_TOKEN_MISSING
    scheme, _, token = raw.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None, MSG_TOKEN_MALFORMED
    return token, None


def verify_token(db: Session, authorization: Optional[str], now: Optional[datetime] = None) -> AuthResult:
    token, reason = extract_bearer(authorization)
    if token is None:
        return AuthResult(reason=reason)

    digest = hash_token(token)
    now = now or datetime.utcnow()
    row = db.exec(
        select(UserToken).where(UserToken.token == digest, UserToken.expires_at > now)
    ).first()
    if row is None or not secrets.compare_digest(row.token, digest):
        return AuthResult(reason=MSG_TOKEN_INVALID)

    user = db.get(User, row.user_id)
    if user is None:
        return AuthResult(reason=MSG_TOKEN_INVALID)
    return AuthResult(user=user)


def revoke_token(db: Session, authorization: Optional[str]) -> int:
    """Delete the session behind ``authorization``; unknown tokens are a no-op."""
    token, _ = extract_bearer(authorization)
    if token is None:
        return 0
    result = db.exec(delete(UserToken).where(UserToken.token == hash_token(token)))
    db.commit()
    return result.rowcount or 0


def _raise_unauthorized(detail: str):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def require_auth(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_session),
) -> User:
    """
    Dependency gating every resource router. Header lookup is
    case-insensitive, so ``authorization`` and ``Authorization`` both work.
    """
    try:
        result = verify_token(db, authorization)
    except SQLAlchemyError as e:
        logger.exception("token verification failed")
        raise HTTPException(status_code=500, detail=f"Database error: {e}")
    if not result.ok:
        logger.debug("require_auth denied: %s", result.reason)
        _raise_unauthorized(result.reason)
    return result.user
