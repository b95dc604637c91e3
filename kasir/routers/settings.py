import os
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from kasir.database import get_session
from kasir.models import SETTINGS_ID, StoreSettings
from kasir.responses import db_error, ok
from kasir.security import require_auth

DEFAULT_STORE_NAME = os.getenv("DEFAULT_STORE_NAME", "Distributor & Supplier Kertas")

router = APIRouter(prefix="/settings", tags=["settings"], dependencies=[Depends(require_auth)])


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    store_name: Optional[str] = Field(None, min_length=1, max_length=255)
    store_logo: Optional[str] = None


def get_or_create_settings(session: Session) -> StoreSettings:
    """The singleton row is created on first access."""
    settings = session.get(StoreSettings, SETTINGS_ID)
    if settings is None:
        settings = StoreSettings(id=SETTINGS_ID, store_name=DEFAULT_STORE_NAME)
        session.add(settings)
        session.commit()
        session.refresh(settings)
    return settings


@router.get("/")
def read_settings(session: Session = Depends(get_session)):
    try:
        return ok(get_or_create_settings(session))
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.put("/")
def update_settings(payload: SettingsUpdate, session: Session = Depends(get_session)):
    patch = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        settings = get_or_create_settings(session)
        for field, value in patch.items():
            setattr(settings, field, value)
        session.add(settings)
        session.commit()
        session.refresh(settings)
        return ok(settings, "Settings updated successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)
