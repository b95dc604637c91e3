import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import Column, Text
from sqlalchemy.dialects import mysql
from sqlmodel import SQLModel, Field

PAYMENT_METHODS = ("Cash", "Shopee", "Tokopedia")
DEFAULT_PAYMENT_METHOD = "Cash"

SETTINGS_ID = 1

# base64 images and logos do not fit in MySQL TEXT (64KB)
LongText = Text().with_variant(mysql.LONGTEXT(), "mysql")


def new_id() -> str:
    return str(uuid.uuid4())


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    email: str = Field(index=True, unique=True, nullable=False, max_length=191)
    password_hash: str = Field(max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=255, nullable=True)
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)


class UserToken(SQLModel, table=True):
    """
    One row per issued session. ``token`` holds the SHA-256 digest of the
    bearer value, never the value itself.
    """
    __tablename__ = "user_tokens"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    token: str = Field(index=True, unique=True, max_length=255)
    expires_at: dt.datetime
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    code: Optional[str] = Field(default=None, max_length=100, nullable=True)
    name: str = Field(index=True, max_length=255)
    purchase_price: float = 0.0
    selling_price: float = 0.0
    stock: int = 0
    image: Optional[str] = Field(default=None, sa_column=Column(LongText, nullable=True))
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
    updated_at: Optional[dt.datetime] = Field(default=None, nullable=True)

    @property
    def profit(self) -> float:
        return round((self.selling_price or 0.0) - (self.purchase_price or 0.0), 2)


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    product_name: str = Field(max_length=255)
    quantity: int = 1
    unit_price: float = 0.0
    total: float = 0.0
    payment_method: str = Field(default=DEFAULT_PAYMENT_METHOD, max_length=50)
    # loose reference: the product may be deleted later, product_name keeps the snapshot
    product_id: Optional[str] = Field(default=None, index=True, max_length=36, nullable=True)
    timestamp: dt.datetime = Field(default_factory=dt.datetime.utcnow, index=True)


class Expense(SQLModel, table=True):
    __tablename__ = "other_expenses"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    category: str = Field(max_length=100)
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    cost: float = 0.0
    date: dt.date = Field(index=True)
    notes: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
    updated_at: Optional[dt.datetime] = Field(default=None, nullable=True)


class StoreSettings(SQLModel, table=True):
    __tablename__ = "store_settings"

    id: int = Field(default=SETTINGS_ID, primary_key=True)
    store_name: str = Field(max_length=255)
    store_logo: Optional[str] = Field(default=None, sa_column=Column(LongText, nullable=True))
