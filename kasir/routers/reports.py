from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import Expense, Product, Transaction
from kasir.normalize import LOW_STOCK_THRESHOLD
from kasir.responses import db_error, ok
from kasir.roas import calculate_roas
from kasir.security import require_auth

router = APIRouter(tags=["reports"], dependencies=[Depends(require_auth)])
dashboard_sub = APIRouter(prefix="/dashboard")
roas_sub = APIRouter(prefix="/roas")


class RoasIn(BaseModel):
    selling_price: float = Field(..., ge=0)
    cogs: float = Field(0.0, ge=0)
    admin_fee_pct: float = Field(0.0, ge=0, le=100)
    target_profit_pct: float = Field(0.0, ge=0, le=100)


def summarize(
    products: List[Product],
    transactions: List[Transaction],
    expenses: List[Expense],
) -> Dict[str, Any]:
    """
    Totals shown on the dashboard. Profit only counts sales whose product
    still exists, since the margin comes from the current product row.
    """
    by_id = {p.id: p for p in products}
    total_purchase = sum(p.purchase_price * p.stock for p in products)
    total_sales = sum(t.total for t in transactions)
    total_profit = 0.0
    for t in transactions:
        product = by_id.get(t.product_id) if t.product_id else None
        if product is not None:
            total_profit += product.profit * t.quantity
    total_other = sum(e.cost for e in expenses)
    return {
        "total_purchase": round(total_purchase, 2),
        "total_sales": round(total_sales, 2),
        "total_profit": round(total_profit, 2),
        "total_products": len(products),
        "low_stock": sum(1 for p in products if p.stock < LOW_STOCK_THRESHOLD),
        "transaction_count": len(transactions),
        "total_other_expenses": round(total_other, 2),
        "total_expenses": round(total_purchase + total_other, 2),
    }


@dashboard_sub.get("/")
def dashboard(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_session),
):
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    try:
        tq = select(Transaction)
        eq = select(Expense)
        if start:
            tq = tq.where(Transaction.timestamp >= datetime.combine(start, time.min))
            eq = eq.where(Expense.date >= start)
        if end:
            tq = tq.where(Transaction.timestamp < datetime.combine(end + timedelta(days=1), time.min))
            eq = eq.where(Expense.date <= end)
        products = db.exec(select(Product)).all()
        transactions = db.exec(tq).all()
        expenses = db.exec(eq).all()
    except SQLAlchemyError as e:
        raise db_error(db, e)
    out = summarize(products, transactions, expenses)
    out["start"] = start
    out["end"] = end
    return ok(out)


@roas_sub.post("/")
def roas(payload: RoasIn):
    result = calculate_roas(
        payload.selling_price,
        payload.cogs,
        admin_fee_pct=payload.admin_fee_pct,
        target_profit_pct=payload.target_profit_pct,
    )
    return ok(result.as_dict())


router.include_router(dashboard_sub)
router.include_router(roas_sub)
