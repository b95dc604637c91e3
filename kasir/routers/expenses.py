import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import Expense
from kasir.responses import db_error, ok
from kasir.security import require_auth

router = APIRouter(prefix="/expenses", tags=["expenses"], dependencies=[Depends(require_auth)])


class ExpenseCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    cost: float = Field(..., ge=0)
    date: dt.date
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    cost: Optional[float] = Field(None, ge=0)
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class ExpenseRef(BaseModel):
    id: str


@router.get("/")
def list_expenses(session: Session = Depends(get_session)):
    try:
        rows: List[Expense] = session.exec(
            select(Expense).order_by(Expense.date.desc(), Expense.created_at.desc())
        ).all()
        return ok(rows)
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.post("/")
def create_expense(payload: ExpenseCreate, session: Session = Depends(get_session)):
    expense = Expense(
        category=payload.category,
        description=payload.description or "",
        cost=payload.cost,
        date=payload.date,
        notes=payload.notes or "",
    )
    try:
        session.add(expense)
        session.commit()
        session.refresh(expense)
        return ok(expense, "Expense created successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.put("/")
def update_expense(payload: ExpenseUpdate, session: Session = Depends(get_session)):
    patch = {k: v for k, v in payload.model_dump(exclude_unset=True, exclude={"id"}).items() if v is not None}
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        expense = session.get(Expense, payload.id)
        if not expense:
            raise HTTPException(status_code=404, detail="Expense not found")
        for field, value in patch.items():
            setattr(expense, field, value)
        expense.updated_at = dt.datetime.utcnow()
        session.add(expense)
        session.commit()
        session.refresh(expense)
        return ok(expense, "Expense updated successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.delete("/")
def delete_expense(payload: ExpenseRef = Body(...), session: Session = Depends(get_session)):
    try:
        expense = session.get(Expense, payload.id)
        if not expense:
            raise HTTPException(status_code=404, detail="Expense not found")
        session.delete(expense)
        session.commit()
        return ok(message="Expense deleted successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)
