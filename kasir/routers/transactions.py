from datetime import datetime
from typing import Any, List, Optional
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import DEFAULT_PAYMENT_METHOD, PAYMENT_METHODS, Product, Transaction
from kasir.normalize import canonical_payment_method
from kasir.responses import db_error, ok
from kasir.security import require_auth

logger = logging.getLogger("kasir.transactions")

router = APIRouter(prefix="/transactions", tags=["transactions"], dependencies=[Depends(require_auth)])


def _payment_method(value: Any) -> Optional[str]:
    if value is None:
        return None
    method = canonical_payment_method(value)
    if method is None:
        raise ValueError("payment_method must be one of " + ", ".join(PAYMENT_METHODS))
    return method


class TransactionCreate(BaseModel):
    # a client-sent "total" is not a field here, so it is dropped
    model_config = ConfigDict(str_strip_whitespace=True)

    product_name: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0, validation_alias=AliasChoices("quantity", "qty"))
    unit_price: float = Field(..., ge=0, validation_alias=AliasChoices("unit_price", "price"))
    payment_method: Optional[str] = None
    product_id: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def check_payment_method(cls, value):
        return _payment_method(value)


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    product_name: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, gt=0, validation_alias=AliasChoices("quantity", "qty"))
    unit_price: Optional[float] = Field(None, ge=0, validation_alias=AliasChoices("unit_price", "price"))
    payment_method: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def check_payment_method(cls, value):
        return _payment_method(value)


class TransactionRef(BaseModel):
    id: str


def compute_total(quantity: int, unit_price: float) -> float:
    return quantity * unit_price


def _decrement_stock(session: Session, product_id: str, quantity: int, now: datetime) -> None:
    """
    Conditional decrement inside the caller's transaction. Raises 400 when the
    product exists but cannot cover ``quantity``; an unknown product id is
    left as a loose reference.
    """
    result = session.exec(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity, updated_at=now)
    )
    if result.rowcount:
        return
    product = session.get(Product, product_id)
    if product is not None:
        logger.info("sale rejected: product_id=%s stock=%s qty=%s", product_id, product.stock, quantity)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Stok tidak mencukupi untuk {product.name} (tersisa {product.stock})",
        )
    logger.warning("transaction references unknown product_id=%s, stock untouched", product_id)


@router.get("/")
def list_transactions(session: Session = Depends(get_session)):
    try:
        rows: List[Transaction] = session.exec(select(Transaction).order_by(Transaction.timestamp.desc())).all()
        return ok(rows)
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.post("/")
def create_transaction(payload: TransactionCreate, session: Session = Depends(get_session)):
    now = datetime.utcnow()
    tx = Transaction(
        product_name=payload.product_name,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        total=compute_total(payload.quantity, payload.unit_price),
        payment_method=payload.payment_method or DEFAULT_PAYMENT_METHOD,
        product_id=payload.product_id or None,
        timestamp=payload.timestamp or now,
    )
    try:
        if tx.product_id:
            try:
                _decrement_stock(session, tx.product_id, tx.quantity, now)
            except HTTPException:
                session.rollback()
                raise
        session.add(tx)
        session.commit()
        session.refresh(tx)
        return ok(tx, "Transaction created successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.put("/")
def update_transaction(payload: TransactionUpdate, session: Session = Depends(get_session)):
    patch = {k: v for k, v in payload.model_dump(exclude_unset=True, exclude={"id"}).items() if v is not None}
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        tx = session.get(Transaction, payload.id)
        if not tx:
            raise HTTPException(status_code=404, detail="Transaction not found")
        for field, value in patch.items():
            setattr(tx, field, value)
        # the stored counterpart fills in whichever of quantity/unit_price was not sent
        if "quantity" in patch or "unit_price" in patch:
            tx.total = compute_total(tx.quantity, tx.unit_price)
        session.add(tx)
        session.commit()
        session.refresh(tx)
        return ok(tx, "Transaction updated successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.delete("/")
def delete_transaction(payload: TransactionRef = Body(...), session: Session = Depends(get_session)):
    try:
        tx = session.get(Transaction, payload.id)
        if not tx:
            raise HTTPException(status_code=404, detail="Transaction not found")
        session.delete(tx)
        session.commit()
        return ok(message="Transaction deleted successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)
