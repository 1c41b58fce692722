# bakery_bliss/commission.py

"""
Baker pay.

calculate_commission() is pure Decimal arithmetic:
    base  = order total x rate(role)      junior_baker 15%, main_baker 20%
    bonus = base x 10% on rush orders, else 0
    total = base + bonus

Amounts are only rounded (half-up, to the cent) when an earning is written to the database,
so the calculation itself stays linear.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlmodel import Session, select

from bakery_bliss import config
from bakery_bliss.models import BakerEarning, Order, OrderStatus, User, UserRole

CENT = Decimal("0.01")


def commission_rate(role: UserRole) -> Decimal:
    if role == UserRole.JUNIOR_BAKER:
        return config.JUNIOR_BAKER_RATE
    if role == UserRole.MAIN_BAKER:
        return config.MAIN_BAKER_RATE
    raise ValueError(f"No commission rate for role: {role}")


@dataclass(frozen=True)
class CommissionBreakdown:
    base_amount: Decimal
    bonus_amount: Decimal
    total_amount: Decimal
    percentage: Decimal

    def quantized(self) -> "CommissionBreakdown":
        base = self.base_amount.quantize(CENT, rounding=ROUND_HALF_UP)
        bonus = self.bonus_amount.quantize(CENT, rounding=ROUND_HALF_UP)
        return CommissionBreakdown(
            base_amount=base,
            bonus_amount=bonus,
            total_amount=base + bonus,
            percentage=self.percentage.quantize(CENT, rounding=ROUND_HALF_UP),
        )


def calculate_commission(order_total, role: UserRole, rush: bool = False) -> CommissionBreakdown:
    # str() first so floats like 19.99 don't drag binary noise into the Decimal
    total = order_total if isinstance(order_total, Decimal) else Decimal(str(order_total))
    rate = commission_rate(role)

    base = total * rate
    bonus = base * config.RUSH_BONUS_RATE if rush else Decimal("0")
    return CommissionBreakdown(
        base_amount=base,
        bonus_amount=bonus,
        total_amount=base + bonus,
        percentage=rate * 100,
    )


def _record_earning(session: Session, order: Order, baker_id: int, role: UserRole) -> BakerEarning:
    breakdown = calculate_commission(order.total_amount, role, order.is_rush).quantized()
    earning = BakerEarning(
        order_id=order.id,
        baker_id=baker_id,
        baker_type=role,
        base_amount=breakdown.base_amount,
        bonus_amount=breakdown.bonus_amount,
        amount=breakdown.total_amount,
        percentage=breakdown.percentage,
    )
    session.add(earning)
    return earning


def distribute_earnings(session: Session, order: Order) -> List[BakerEarning]:
    """
    Create the earning rows for a delivered order.
    Does not commit; the caller commits together with the status change.

    Returns an empty list (and writes nothing) when:
    - the order is not delivered
    - the order has no main baker
    - earnings were already distributed for this order
    """
    if order.status != OrderStatus.DELIVERED:
        print(f"💰 [EARNINGS] Order {order.order_id} is {order.status.value}, not delivered. Skipping.")
        return []

    if not order.main_baker_id:
        print(f"💰 [EARNINGS] Order {order.order_id} has no main baker. Skipping.")
        return []

    existing = session.exec(select(BakerEarning).where(BakerEarning.order_id == order.id)).first()
    if existing:
        print(f"💰 [EARNINGS] Already distributed for order {order.order_id}")
        return []

    earnings = []
    if order.junior_baker_id:
        earnings.append(_record_earning(session, order, order.junior_baker_id, UserRole.JUNIOR_BAKER))
        junior = session.get(User, order.junior_baker_id)
        if junior:
            junior.completed_orders += 1
            session.add(junior)

    earnings.append(_record_earning(session, order, order.main_baker_id, UserRole.MAIN_BAKER))

    summary = ", ".join(f"{e.baker_type.value} #{e.baker_id} ${e.amount}" for e in earnings)
    print(f"💰 [EARNINGS] Order {order.order_id}: {summary}")
    return earnings


# --- Queries ---

def baker_total_earnings(session: Session, baker_id: int) -> Decimal:
    earnings = session.exec(select(BakerEarning).where(BakerEarning.baker_id == baker_id)).all()
    return sum((Decimal(e.amount) for e in earnings), Decimal("0.00"))


def baker_earnings_breakdown(session: Session, baker_id: int) -> List[dict]:
    statement = (
        select(BakerEarning, Order)
        .join(Order, BakerEarning.order_id == Order.id)
        .where(BakerEarning.baker_id == baker_id)
        .order_by(BakerEarning.created_at)
    )
    return [
        {
            "order_id": order.order_id,
            "order_total": order.total_amount,
            "is_rush": order.is_rush,
            "baker_type": earning.baker_type,
            "percentage": earning.percentage,
            "base_amount": earning.base_amount,
            "bonus_amount": earning.bonus_amount,
            "amount": earning.amount,
            "created_at": earning.created_at,
        }
        for earning, order in session.exec(statement).all()
    ]


def earnings_summary(session: Session, baker_type: Optional[UserRole] = None) -> List[dict]:
    """Totals per (baker, baker_type), largest earners first."""
    statement = select(BakerEarning, User).join(User, BakerEarning.baker_id == User.id)
    if baker_type:
        statement = statement.where(BakerEarning.baker_type == baker_type)

    grouped = {}
    for earning, baker in session.exec(statement).all():
        key = (earning.baker_id, earning.baker_type)
        if key not in grouped:
            grouped[key] = {
                "baker_id": baker.id,
                "baker_name": baker.full_name,
                "baker_type": earning.baker_type,
                "total_earnings": Decimal("0.00"),
                "order_count": 0,
            }
        grouped[key]["total_earnings"] += Decimal(earning.amount)
        grouped[key]["order_count"] += 1

    return sorted(grouped.values(), key=lambda row: row["total_earnings"], reverse=True)
