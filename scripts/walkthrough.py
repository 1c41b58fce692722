import os
import sys
from dotenv import load_dotenv

# Load env vars
load_dotenv()

# --- PATH FIX ---
# Get the path to the project root (one level up from 'scripts')
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from sqlmodel import Session, select
from bakery_bliss.utils.db import engine
from bakery_bliss.models import Order, OrderItem, Product, User, UserRole
from bakery_bliss.events import build_publisher
from bakery_bliss.errors import WorkflowError
from bakery_bliss.commission import baker_total_earnings
from bakery_bliss.workflow import Actor, assign_junior_baker, transition_order


def first_user(session, role):
    return session.exec(select(User).where(User.role == role)).first()


if __name__ == "__main__":
    print("--- 🧁 Bakery Bliss Order Walkthrough ---")
    publisher = build_publisher()

    with Session(engine) as session:
        customer = first_user(session, UserRole.CUSTOMER)
        main_baker = first_user(session, UserRole.MAIN_BAKER)
        junior = session.exec(
            select(User).where(User.role == UserRole.JUNIOR_BAKER, User.main_baker_id == main_baker.id)
        ).first() if main_baker else None
        product = session.exec(select(Product)).first()

        if not (customer and main_baker and junior and product):
            print("❌ Error: Missing demo data. Run scripts/seed_db.py first.")
            sys.exit(1)

        rush = "--rush" in sys.argv
        demo_number = len(session.exec(select(Order)).all()) + 1
        order = Order(
            order_id=f"BB-ORD-DEMO{demo_number:03d}",
            user_id=customer.id,
            total_amount=round(product.price * 2, 2),
            is_rush=rush,
            main_baker_id=main_baker.id,
        )
        session.add(order)
        session.flush()
        session.add(OrderItem(order_id=order.id, product_id=product.id, quantity=2, price_per_item=product.price))
        session.commit()
        print(f"🛒 {customer.full_name} ordered 2 x {product.name} -> {order.order_id} (${order.total_amount}, rush={rush})")

        junior_actor = Actor.from_user(junior)
        main_actor = Actor.from_user(main_baker)

        steps = [
            ("assign", main_actor, None, None),
            ("processing", junior_actor, None, "start baking"),
            ("quality_check", junior_actor, None, "submit for quality check"),
            ("processing", main_actor, "Needs more frosting on the sides", "reject quality"),
            ("quality_check", junior_actor, None, "resubmit"),
            ("ready", main_actor, None, "approve quality"),
            ("delivered", junior_actor, None, "deliver"),
        ]

        for target, actor, feedback, label in steps:
            try:
                if target == "assign":
                    order = assign_junior_baker(session, order.id, junior.id, actor, publisher=publisher)
                    print(f"👩‍🍳 Assigned {junior.full_name} (status: {order.status.value})")
                    continue
                order = transition_order(session, order.id, target, actor, feedback=feedback, publisher=publisher)
                print(f"➡️  {label}: now {order.status.value} (v{order.version})")
            except WorkflowError as e:
                print(f"❌ {label} refused [{e.kind}]: {e.message}")
                sys.exit(1)

        print("---------------------------------")
        print(f"💰 {junior.full_name} lifetime earnings: ${baker_total_earnings(session, junior.id)}")
        print(f"💰 {main_baker.full_name} lifetime earnings: ${baker_total_earnings(session, main_baker.id)}")

    publisher.close()
