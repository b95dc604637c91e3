import os
import sys

from sqlalchemy import create_engine, inspect, text

url = os.environ.get("DATABASE_URL")
if not url:
    raise SystemExit("ERROR: DATABASE_URL is not set")

engine = create_engine(url, pool_pre_ping=True)
print("DATABASE_URL:", engine.url.render_as_string(hide_password=True))

with engine.connect() as conn:
    conn.execute(text("SELECT 1"))
print("SELECT 1 ok")

tables = inspect(engine).get_table_names()
print("Tables:", tables)
expected = {"users", "user_tokens", "products", "transactions", "other_expenses", "store_settings"}
missing = sorted(expected - set(tables))
if missing:
    print("Missing tables (run scripts/create_schema.py):", ", ".join(missing))
    sys.exit(1)
