import os
import sys
from dotenv import load_dotenv
from sqlmodel import Session, SQLModel, select

# --- PATH SETUP ---
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
sys.path.append(project_root)

from bakery_bliss.utils.db import engine, create_db_and_tables
from bakery_bliss.models import BakerTeam, Product, User, UserRole

# 1. Setup
load_dotenv()

USERS = [
    {"email": "admin@bakery.com", "username": "admin", "full_name": "Ada Admin", "role": UserRole.ADMIN},
    {"email": "main@bakery.com", "username": "mainbaker", "full_name": "Marco Main", "role": UserRole.MAIN_BAKER},
    {"email": "junior@bakery.com", "username": "juniorbaker", "full_name": "Julia Junior", "role": UserRole.JUNIOR_BAKER},
    {"email": "junior2@bakery.com", "username": "juniorbaker2", "full_name": "Jamal Junior", "role": UserRole.JUNIOR_BAKER},
    {"email": "customer@bakery.com", "username": "customer", "full_name": "Casey Customer", "role": UserRole.CUSTOMER},
]

PRODUCTS = [
    {"name": "Strawberry Shortcake", "description": "Light sponge, fresh strawberries and whipped cream", "price": 32.0, "category": "cakes"},
    {"name": "Chocolate Fudge Cake", "description": "Three layers of dark chocolate with fudge frosting", "price": 38.5, "category": "cakes"},
    {"name": "Butter Croissant", "description": "Flaky, laminated, baked every morning", "price": 3.75, "category": "pastries"},
    {"name": "Sourdough Loaf", "description": "48 hour fermented country loaf", "price": 8.0, "category": "breads"},
]


def main(reset: bool = False):
    print("--- 🧁 Seeding Bakery Bliss ---")

    if reset:
        SQLModel.metadata.drop_all(engine)
        print("   🗑️  Dropped all tables")
    create_db_and_tables()

    with Session(engine) as session:
        if session.exec(select(User)).first():
            print("ℹ️  Users already present; run with --reset to start over.")
            return

        users = {}
        for data in USERS:
            user = User(**data)
            session.add(user)
            users[data["username"]] = user
        session.flush()
        print(f"   🔹 Created {len(users)} users")

        main_baker = users["mainbaker"]
        for junior_name in ("juniorbaker", "juniorbaker2"):
            junior = users[junior_name]
            junior.main_baker_id = main_baker.id
            session.add(BakerTeam(main_baker_id=main_baker.id, junior_baker_id=junior.id))
        print(f"   🔹 Built team for {main_baker.full_name}")

        for data in PRODUCTS:
            session.add(Product(**data, main_baker_id=main_baker.id))
        print(f"   🔹 Added {len(PRODUCTS)} products")

        session.commit()

        for user in users.values():
            print(f"   👤 {user.role.value:<13} id={user.id:<3} {user.email}")

    print("✅ Seed complete.")


if __name__ == "__main__":
    main(reset="--reset" in sys.argv)
