"""
FreshCart - Database Seeder
=============================
Seeds users and products for local testing, and prints a login token per
user (the login flow itself lives outside this service).

Usage:
    python scripts/seed.py          # Seed (idempotent)
    python scripts/seed.py --reset  # Drop all data and reseed
"""

import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine  # noqa: E402
from common.security import create_token  # noqa: E402
from modules.user.models import User  # noqa: E402
from modules.catalog.models import Product  # noqa: E402
from modules.cart.models import CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem  # noqa: F401,E402


USERS = [
    {"username": "admin", "email": "admin@freshcart.local", "role": "admin", "address": "1 Market Street"},
    {"username": "alice", "email": "alice@freshcart.local", "role": "user", "address": "12 Orchard Road"},
    {"username": "bob", "email": "bob@freshcart.local", "role": "user", "address": "7 Harbour Lane"},
]

PRODUCTS = [
    {"name": "Fuji Apples (1kg)", "price": Decimal("4.50"), "quantity": 40, "category": "Fruit"},
    {"name": "Bananas (bunch)", "price": Decimal("2.20"), "quantity": 25, "category": "Fruit"},
    {"name": "Free-range Eggs (12)", "price": Decimal("5.80"), "quantity": 12, "category": "Dairy"},
    {"name": "Whole Milk (2L)", "price": Decimal("3.95"), "quantity": 0, "category": "Dairy"},
    {"name": "Basmati Rice (5kg)", "price": Decimal("18.90"), "quantity": 6, "category": "Pantry"},
    {"name": "Olive Oil (1L)", "price": Decimal("12.40"), "quantity": 3, "category": "Pantry"},
]


def seed():
    db = SessionLocal()
    try:
        print("=" * 50)
        print("  FreshCart — Seeder")
        print("=" * 50)

        Base.metadata.create_all(bind=engine)

        print("\n[1/2] Users")
        for data in USERS:
            existing = db.query(User).filter(User.email == data["email"]).first()
            if not existing:
                db.add(User(**data))
                print(f"  + {data['role']}: {data['email']}")
            else:
                print(f"  = exists: {data['email']}")
        db.flush()

        print("\n[2/2] Products")
        for data in PRODUCTS:
            existing = db.query(Product).filter(Product.name == data["name"]).first()
            if not existing:
                db.add(Product(**data))
                print(f"  + {data['name']} ({data['quantity']} in stock)")
            else:
                print(f"  = exists: {data['name']}")

        db.commit()

        print("\nTokens (send as auth_token cookie or Bearer header):")
        for data in USERS:
            print(f"  {data['email']}: {create_token({'sub': data['email']})}")

    except Exception as e:
        db.rollback()
        print(f"\nSeed failed: {e}")
        raise
    finally:
        db.close()


def reset_and_seed():
    """Drop all tables and recreate + seed."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("All tables recreated")
    seed()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.strip().lower() == "yes":
            reset_and_seed()
        else:
            print("Aborted.")
    else:
        seed()
