"""
Create the store account, or reset its password, without going through
POST /auth/?action=register. The address must still be on ALLOWED_EMAILS.

Usage:
  python scripts/create_user.py --email owner@example.com --password secret123 --name "Owner"
"""
import argparse
import os
import sys

from sqlalchemy import delete
from sqlmodel import Session, select

# make "kasir" importable when run from a checkout
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from kasir.database import engine, init_db  # noqa: E402
from kasir.models import User, UserToken  # noqa: E402
from kasir.security import get_password_hash, is_email_allowed, normalize_email  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or reset the store account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="")
    args = parser.parse_args()

    email = normalize_email(args.email)
    if not is_email_allowed(email):
        print(f"{email} is not listed in ALLOWED_EMAILS", file=sys.stderr)
        return 2
    if len(args.password) < 6:
        print("password must be at least 6 characters", file=sys.stderr)
        return 2

    init_db()
    with Session(engine) as session:
        user = session.exec(select(User).where(User.email == email)).first()
        if user:
            user.password_hash = get_password_hash(args.password)
            if args.name:
                user.full_name = args.name
            # old sessions must not survive a password reset
            session.exec(delete(UserToken).where(UserToken.user_id == user.id))
            action = "updated"
        else:
            user = User(email=email, password_hash=get_password_hash(args.password), full_name=args.name or None)
            action = "created"
        session.add(user)
        session.commit()
        print(f"{action} {email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
