# bakery_bliss/workflow.py
"""
The order fulfillment workflow.

An order moves through:
    pending -> processing -> quality_check -> ready -> delivered
    pending -> cancelled

This module does 3 things
1. Defines the Table: every legal (from, to) edge and WHO may trigger it. One table, one policy check.
2. Defines the Operations: transition_order() and assign_junior_baker(), which load the order,
   consult the table, write with an optimistic version check, and publish a notification.
3. Hands delivered orders to the commission module so bakers get paid.

Nothing else in the service compares role strings to decide what an actor may do to an order.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Set, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from bakery_bliss.commission import distribute_earnings
from bakery_bliss.errors import (
    AlreadyAssigned,
    ConcurrentModification,
    InvalidTransition,
    MissingFeedback,
    NotFound,
    Unauthorized,
)
from bakery_bliss.events import JuniorAssignedEvent, StatusChangeEvent, publish_safely
from bakery_bliss.models import BakerTeam, ChatMessage, Order, OrderStatus, User, UserRole


@dataclass(frozen=True)
class Actor:
    """Who is asking. Built from the authenticated user for every request."""
    id: int
    role: UserRole

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=user.role)


class Party(str, Enum):
    """The kinds of actor a table row can name."""
    OWNER = "customer who owns the order"
    ASSIGNED_JUNIOR = "junior baker assigned to the order"
    ASSIGNED_MAIN = "main baker assigned to the order"
    ANY_BAKER = "any baker"
    ADMIN = "admin"


@dataclass(frozen=True)
class TransitionRule:
    parties: FrozenSet[Party]
    requires_feedback: bool = False
    requires_junior_baker: bool = False


TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset([
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
])

# Entering one of these pays the bakers
COMMISSION_STATES: FrozenSet[OrderStatus] = frozenset([OrderStatus.DELIVERED])

TRANSITIONS: Dict[Tuple[OrderStatus, OrderStatus], TransitionRule] = {
    (OrderStatus.PENDING, OrderStatus.PROCESSING): TransitionRule(
        parties=frozenset([Party.ASSIGNED_JUNIOR]),
        requires_junior_baker=True,
    ),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): TransitionRule(
        parties=frozenset([Party.OWNER, Party.ADMIN]),
    ),
    (OrderStatus.PROCESSING, OrderStatus.QUALITY_CHECK): TransitionRule(
        parties=frozenset([Party.ASSIGNED_JUNIOR]),
    ),
    # Quality approved
    (OrderStatus.QUALITY_CHECK, OrderStatus.READY): TransitionRule(
        parties=frozenset([Party.ASSIGNED_MAIN, Party.ADMIN]),
    ),
    # Quality rejected, sent back for revision
    (OrderStatus.QUALITY_CHECK, OrderStatus.PROCESSING): TransitionRule(
        parties=frozenset([Party.ASSIGNED_MAIN, Party.ADMIN]),
        requires_feedback=True,
    ),
    # Admin doubles as the automated fulfillment signal
    (OrderStatus.READY, OrderStatus.DELIVERED): TransitionRule(
        parties=frozenset([Party.ANY_BAKER, Party.ADMIN]),
    ),
}


def is_valid_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return (from_status, to_status) in TRANSITIONS


def allowed_targets(status: OrderStatus) -> Set[OrderStatus]:
    return {to for (frm, to) in TRANSITIONS if frm == status}


def _is_party(party: Party, order: Order, actor: Actor) -> bool:
    if party == Party.OWNER:
        return actor.role == UserRole.CUSTOMER and order.user_id == actor.id
    if party == Party.ASSIGNED_JUNIOR:
        return actor.role == UserRole.JUNIOR_BAKER and order.junior_baker_id == actor.id
    if party == Party.ASSIGNED_MAIN:
        return actor.role == UserRole.MAIN_BAKER and order.main_baker_id == actor.id
    if party == Party.ANY_BAKER:
        return actor.role.is_baker
    if party == Party.ADMIN:
        return actor.role == UserRole.ADMIN
    return False


def _coerce_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown order status: {value!r}")


def check_transition(order: Order, target, actor: Actor, feedback: Optional[str] = None) -> TransitionRule:
    """
    Pure policy check. Raises the first problem found, in this order:
    InvalidTransition (edge) -> InvalidTransition (precondition) -> Unauthorized -> MissingFeedback
    """
    target = _coerce_status(target)
    current = order.status

    rule = TRANSITIONS.get((current, target))
    if rule is None:
        if current in TERMINAL_STATES:
            raise InvalidTransition(f"Order {order.order_id} is {current.value}; no further changes allowed")
        raise InvalidTransition(f"Cannot move order {order.order_id} from {current.value} to {target.value}")

    if rule.requires_junior_baker and not order.junior_baker_id:
        raise InvalidTransition(f"Order {order.order_id} has no junior baker assigned")

    if not any(_is_party(party, order, actor) for party in rule.parties):
        allowed = " or ".join(sorted(p.value for p in rule.parties))
        raise Unauthorized(f"Only the {allowed} can move an order from {current.value} to {target.value}")

    if rule.requires_feedback and not (feedback and feedback.strip()):
        raise MissingFeedback("Feedback is required when sending an order back for revision")

    return rule


def _get_order(session: Session, order_pk: int) -> Order:
    order = session.get(Order, order_pk)
    if not order:
        raise NotFound(f"Order {order_pk} not found")
    return order


def _compare_and_swap(session: Session, order: Order, seen_version: int, **values):
    """
    UPDATE ... WHERE version = seen_version. Zero rows means someone else got there first.
    """
    statement = (
        update(Order)
        .where(Order.id == order.id, Order.version == seen_version)
        .values(version=seen_version + 1, updated_at=datetime.utcnow(), **values)
    )
    result = session.connection().execute(statement)
    if result.rowcount != 1:
        session.rollback()
        raise ConcurrentModification(
            f"Order {order.order_id} was modified by another request; refetch and retry"
        )
    session.refresh(order)


def transition_order(
    session: Session,
    order_pk: int,
    target,
    actor: Actor,
    feedback: Optional[str] = None,
    expected_version: Optional[int] = None,
    publisher=None,
) -> Order:
    """
    Move an order to `target` on behalf of `actor`.

    - expected_version: the version the caller last saw. Defaults to the version read here.
    - On success the order is committed, earnings are created when entering a commission state,
      and {order_id, old_status, new_status} is published.
    """
    order = _get_order(session, order_pk)
    check_transition(order, target, actor, feedback)

    old_status = order.status
    new_status = _coerce_status(target)
    seen_version = order.version if expected_version is None else expected_version

    values = {"status": new_status}
    if old_status == OrderStatus.QUALITY_CHECK and new_status == OrderStatus.PROCESSING:
        values["quality_feedback"] = feedback.strip()

    _compare_and_swap(session, order, seen_version, **values)

    if new_status in COMMISSION_STATES:
        distribute_earnings(session, order)

    session.commit()
    session.refresh(order)

    if publisher is not None:
        publish_safely(publisher, StatusChangeEvent(
            order_id=order.order_id, old_status=old_status, new_status=new_status,
        ))
    return order


def approve_quality(session: Session, order_pk: int, actor: Actor, feedback: Optional[str] = None,
                    expected_version: Optional[int] = None, publisher=None) -> Order:
    return transition_order(session, order_pk, OrderStatus.READY, actor,
                            feedback=feedback, expected_version=expected_version, publisher=publisher)


def reject_quality(session: Session, order_pk: int, actor: Actor, feedback: Optional[str],
                   expected_version: Optional[int] = None, publisher=None) -> Order:
    return transition_order(session, order_pk, OrderStatus.PROCESSING, actor,
                            feedback=feedback, expected_version=expected_version, publisher=publisher)


def is_on_team(session: Session, main_baker_id: int, junior_baker_id: int) -> bool:
    statement = select(BakerTeam).where(
        BakerTeam.main_baker_id == main_baker_id,
        BakerTeam.junior_baker_id == junior_baker_id,
        BakerTeam.is_active == True,  # noqa: E712
    )
    return session.exec(statement).first() is not None


def assign_junior_baker(
    session: Session,
    order_pk: int,
    junior_baker_id: int,
    actor: Actor,
    expected_version: Optional[int] = None,
    publisher=None,
) -> Order:
    """
    A main baker hands a pending order to a junior baker on their team.

    The order stays pending; the junior baker starts work with pending -> processing.
    An admin may assign on behalf of the order's main baker.
    Reassignment is refused (AlreadyAssigned).
    """
    if actor.role not in (UserRole.MAIN_BAKER, UserRole.ADMIN):
        raise Unauthorized("Only a main baker or an admin can assign orders")

    order = _get_order(session, order_pk)

    if order.status != OrderStatus.PENDING:
        raise InvalidTransition(f"Only pending orders can be assigned; order {order.order_id} is {order.status.value}")

    if actor.role == UserRole.MAIN_BAKER:
        if order.main_baker_id and order.main_baker_id != actor.id:
            raise Unauthorized(f"Order {order.order_id} belongs to another main baker")
        main_baker_id = actor.id
    else:
        if not order.main_baker_id:
            raise InvalidTransition(f"Order {order.order_id} has no main baker to assign on behalf of")
        main_baker_id = order.main_baker_id

    junior = session.get(User, junior_baker_id)
    if not junior or junior.role != UserRole.JUNIOR_BAKER:
        raise NotFound(f"Junior baker {junior_baker_id} not found")

    if not is_on_team(session, main_baker_id, junior_baker_id):
        raise Unauthorized(f"Junior baker {junior_baker_id} is not on main baker {main_baker_id}'s team")

    if order.junior_baker_id:
        raise AlreadyAssigned(f"Order {order.order_id} already has junior baker {order.junior_baker_id}")

    seen_version = order.version if expected_version is None else expected_version
    _compare_and_swap(session, order, seen_version, main_baker_id=main_baker_id, junior_baker_id=junior_baker_id)

    # Open the order chat
    session.add(ChatMessage(
        order_id=order.id,
        sender_id=order.user_id,
        message="Hello! I've placed this order and look forward to working with you.",
    ))
    session.add(ChatMessage(
        order_id=order.id,
        sender_id=junior_baker_id,
        message="Hi there! I'll be working on your order. Please let me know if you have any specific requests or questions!",
    ))

    session.commit()
    session.refresh(order)

    if publisher is not None:
        publish_safely(publisher, JuniorAssignedEvent(
            order_id=order.order_id,
            junior_baker_id=order.junior_baker_id,
            main_baker_id=order.main_baker_id,
            status=order.status,
        ))
    return order
