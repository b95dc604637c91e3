from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from kasir.database import get_session
from kasir.models import Product
from kasir.responses import db_error, ok
from kasir.security import require_auth

router = APIRouter(prefix="/products", tags=["products"], dependencies=[Depends(require_auth)])


class ProductCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: Optional[str] = None
    name: str = Field(..., min_length=1)
    purchase_price: float = Field(0.0, ge=0)
    selling_price: float = Field(..., ge=0, validation_alias=AliasChoices("selling_price", "price"))
    stock: int = Field(0, ge=0)
    image: Optional[str] = None


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    code: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1)
    purchase_price: Optional[float] = Field(None, ge=0)
    selling_price: Optional[float] = Field(None, ge=0, validation_alias=AliasChoices("selling_price", "price"))
    stock: Optional[int] = Field(None, ge=0)
    image: Optional[str] = None


class ProductRef(BaseModel):
    id: str


class ProductOut(BaseModel):
    id: str
    code: Optional[str] = None
    name: str
    purchase_price: float
    selling_price: float
    profit: float
    stock: int
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _to_out(p: Product) -> ProductOut:
    return ProductOut(
        id=p.id,
        code=p.code,
        name=p.name,
        purchase_price=p.purchase_price,
        selling_price=p.selling_price,
        profit=p.profit,
        stock=p.stock,
        image=p.image,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


@router.get("/")
def list_products(id: Optional[str] = Query(None), session: Session = Depends(get_session)):
    try:
        if id:
            product = session.get(Product, id)
            if not product:
                raise HTTPException(status_code=404, detail="Product not found")
            return ok(_to_out(product))
        products: List[Product] = session.exec(select(Product).order_by(Product.name)).all()
        return ok([_to_out(p) for p in products])
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.post("/")
def create_product(payload: ProductCreate, session: Session = Depends(get_session)):
    try:
        product = Product(**payload.model_dump())
        session.add(product)
        session.commit()
        session.refresh(product)
        return ok(_to_out(product), "Product created successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.put("/")
def update_product(payload: ProductUpdate, session: Session = Depends(get_session)):
    # only the keys the client actually sent; explicit nulls are ignored
    patch = {k: v for k, v in payload.model_dump(exclude_unset=True, exclude={"id"}).items() if v is not None}
    if not patch:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        product = session.get(Product, payload.id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        for field, value in patch.items():
            setattr(product, field, value)
        product.updated_at = datetime.utcnow()
        session.add(product)
        session.commit()
        session.refresh(product)
        return ok(_to_out(product), "Product updated successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)


@router.delete("/")
def delete_product(payload: ProductRef = Body(...), session: Session = Depends(get_session)):
    try:
        product = session.get(Product, payload.id)
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        session.delete(product)
        session.commit()
        return ok(message="Product deleted successfully")
    except SQLAlchemyError as e:
        raise db_error(session, e)
