import logging
from typing import Any, Dict, Optional, Sequence

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

logger = logging.getLogger("kasir.responses")


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Success envelope: {"success": true, "message"?: str, "data"?: any}."""
    out: Dict[str, Any] = {"success": True}
    if message is not None:
        out["message"] = message
    if data is not None:
        out["data"] = data
    return out


def fail(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def _field_name(loc: Sequence[Any]) -> str:
    names = [str(part) for part in loc if isinstance(part, str) and part not in ("body", "query", "header")]
    return names[-1] if names else "request"


def describe_errors(errors: Sequence[Dict[str, Any]]) -> str:
    """Flatten pydantic errors into one message, missing fields first."""
    missing = [_field_name(e.get("loc", ())) for e in errors if e.get("type") == "missing"]
    if missing:
        return "Missing required fields: " + ", ".join(dict.fromkeys(missing))
    if not errors:
        return "Invalid request"
    first = errors[0]
    return f"Invalid value for {_field_name(first.get('loc', ()))}: {first.get('msg', 'invalid')}"


def db_error(db: Session, exc: SQLAlchemyError) -> HTTPException:
    """Roll back and turn a driver error into the 500 the clients expect."""
    try:
        db.rollback()
    except SQLAlchemyError:
        logger.exception("rollback failed")
    logger.exception("database error: %s", exc)
    return HTTPException(status_code=500, detail=f"Database error: {exc}")
