from datetime import datetime, timedelta

from sqlmodel import Session, select

from kasir.database import engine
from kasir.models import Product, Transaction
from kasir.routers.settings import get_or_create_settings
from kasir.routers.transactions import compute_total

DEMO_PRODUCTS = [
    {"code": "KRT-A4-70", "name": "Kertas A4 70gsm", "purchase_price": 42000, "selling_price": 50000, "stock": 40},
    {"code": "KRT-F4-70", "name": "Kertas F4 70gsm", "purchase_price": 46000, "selling_price": 55000, "stock": 25},
    {"code": "KRT-A3-80", "name": "Kertas A3 80gsm", "purchase_price": 88000, "selling_price": 105000, "stock": 6},
]


def seed(session: Session) -> bool:
    """Insert demo products and two sales into an empty catalogue."""
    get_or_create_settings(session)
    if session.exec(select(Product)).first():
        return False
    products = [Product(**p) for p in DEMO_PRODUCTS]
    for p in products:
        session.add(p)
    session.flush()
    now = datetime.utcnow()
    for product, qty, days_ago in ((products[0], 2, 1), (products[1], 1, 2)):
        session.add(
            Transaction(
                product_name=product.name,
                quantity=qty,
                unit_price=product.selling_price,
                total=compute_total(qty, product.selling_price),
                product_id=product.id,
                timestamp=now - timedelta(days=days_ago),
            )
        )
    session.commit()
    return True


if __name__ == "__main__":
    with Session(engine) as s:
        seed(s)
