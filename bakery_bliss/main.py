# bakery_bliss/main.py

"""
Used by FastAPI to handle the Traffic (API endpoints)
This is the entry point for the API
Customers check out, bakers move orders through the kitchen, admins manage people
"""

import random
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

# For Middleware block so the storefront can access the API
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session, select, func

import uvicorn

from bakery_bliss import config
from bakery_bliss.commission import baker_earnings_breakdown, baker_total_earnings, earnings_summary
from bakery_bliss.dependencies import get_actor, get_current_user, get_publisher, require_roles
from bakery_bliss.errors import WorkflowError
from bakery_bliss.models import (
    ApplicationStatus,
    BakerApplication,
    BakerEarning,
    BakerTeam,
    ChatMessage,
    CustomCake,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Review,
    ShippingInfo,
    User,
    UserRole,
)
from bakery_bliss.schemas import (
    ApplicationCreate,
    ApplicationDecision,
    ApplicationRead,
    AssignRequest,
    ChatCreate,
    CheckoutRequest,
    CustomCakeCreate,
    EarningsReport,
    MarkRead,
    OrderDetail,
    OrderRead,
    ProductCreate,
    ProductUpdate,
    QualityDecision,
    ReviewCreate,
    RoleUpdate,
    StatusUpdate,
    TeamCreate,
    UserCreate,
    UserRead,
)
from bakery_bliss.utils.db import create_db_and_tables, get_session
from bakery_bliss.workflow import (
    TERMINAL_STATES,
    Actor,
    approve_quality,
    assign_junior_baker,
    reject_quality,
    transition_order,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables on startup if they don't exist.
    create_db_and_tables()
    yield


app = FastAPI(title="Bakery Bliss API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allows all origins (storefront, postman, etc.)
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Workflow errors carry their own HTTP status
@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


@app.get("/health")
def health_check():
    return {"status": "ok"}


# ---------- Helpers ----------

def _can_view_order(order: Order, user: User) -> bool:
    return (
        user.role == UserRole.ADMIN
        or order.user_id == user.id
        or order.junior_baker_id == user.id
        or order.main_baker_id == user.id
        or (user.role == UserRole.MAIN_BAKER and order.main_baker_id is None)
    )


def _get_visible_order(session: Session, order_pk: int, user: User) -> Order:
    order = session.get(Order, order_pk)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not _can_view_order(order, user):
        raise HTTPException(status_code=403, detail="You do not have access to this order")
    return order


def _order_detail(order: Order) -> OrderDetail:
    # Pulls items and shipping through the relationships
    return OrderDetail.model_validate(order, from_attributes=True)


ACTIVE_STATUSES = [status for status in OrderStatus if status not in TERMINAL_STATES]


def _count_orders(session: Session, *criteria) -> int:
    statement = select(func.count()).select_from(Order)
    if criteria:
        statement = statement.where(*criteria)
    return session.exec(statement).one()


def _active_assignments(session: Session, user_id: int) -> int:
    """Non-terminal orders this user is baking or supervising."""
    return _count_orders(
        session,
        (Order.junior_baker_id == user_id) | (Order.main_baker_id == user_id),
        Order.status.in_(ACTIVE_STATUSES),
    )


def _leave_teams(session: Session, user: User):
    """Deactivate every team row the user is on, from either side."""
    memberships = session.exec(
        select(BakerTeam).where(
            (BakerTeam.junior_baker_id == user.id) | (BakerTeam.main_baker_id == user.id),
            BakerTeam.is_active == True,  # noqa: E712
        )
    ).all()
    for membership in memberships:
        membership.is_active = False
        session.add(membership)

    for junior in session.exec(select(User).where(User.main_baker_id == user.id)).all():
        junior.main_baker_id = None
        session.add(junior)

    user.main_baker_id = None
    session.add(user)


def _new_order_number(session: Session) -> str:
    while True:
        candidate = f"BB-ORD-{random.randint(100000, 999999)}"
        if not session.exec(select(Order).where(Order.order_id == candidate)).first():
            return candidate


# ---------- Users ----------

@app.post("/users", response_model=UserRead, status_code=201)
def register_user(body: UserCreate, session: Session = Depends(get_session)):
    taken = session.exec(
        select(User).where((User.email == body.email) | (User.username == body.username))
    ).first()
    if taken:
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(email=body.email, username=body.username, full_name=body.full_name)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@app.get("/users/me", response_model=UserRead)
def read_me(user: User = Depends(get_current_user)):
    return user


# ---------- Catalog ----------

@app.get("/products", response_model=List[Product])
def list_products(category: Optional[str] = None, session: Session = Depends(get_session)):
    statement = select(Product)
    if category:
        statement = statement.where(Product.category == category)
    return session.exec(statement).all()


@app.get("/products/{product_id}", response_model=Product)
def get_product(product_id: int, session: Session = Depends(get_session)):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/products", response_model=Product, status_code=201)
def create_product(
    body: ProductCreate,
    user: User = Depends(require_roles(UserRole.MAIN_BAKER)),
    session: Session = Depends(get_session)
):
    product = Product(**body.model_dump(), main_baker_id=user.id)
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@app.post("/custom-cakes", response_model=CustomCake, status_code=201)
def create_custom_cake(
    body: CustomCakeCreate,
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    session: Session = Depends(get_session)
):
    if body.main_baker_id is not None:
        baker = session.get(User, body.main_baker_id)
        if not baker or baker.role != UserRole.MAIN_BAKER:
            raise HTTPException(status_code=400, detail="Selected main baker does not exist")

    cake = CustomCake(**body.model_dump(), user_id=user.id)
    session.add(cake)
    session.commit()
    session.refresh(cake)
    return cake


# ---------- Orders ----------

@app.get("/orders", response_model=List[OrderRead])
def list_orders(
    status: Optional[OrderStatus] = None,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """
    Each role sees its own slice:
    customers their purchases, junior bakers their tasks, main bakers their kitchen, admins everything
    """
    statement = select(Order)
    if user.role == UserRole.CUSTOMER:
        statement = statement.where(Order.user_id == user.id)
    elif user.role == UserRole.JUNIOR_BAKER:
        statement = statement.where(Order.junior_baker_id == user.id)
    elif user.role == UserRole.MAIN_BAKER:
        # Their kitchen, plus orders no main baker has claimed yet
        statement = statement.where((Order.main_baker_id == user.id) | (Order.main_baker_id == None))  # noqa: E711

    if status:
        statement = statement.where(Order.status == status)

    return session.exec(statement.order_by(Order.created_at.desc())).all()


@app.post("/orders", response_model=OrderDetail, status_code=201)
def checkout(
    body: CheckoutRequest,
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    session: Session = Depends(get_session)
):
    """
    Turn the cart into a pending order.
    Prices come from the catalog, never from the client, and are frozen on the order items.
    """
    lines = []
    main_bakers = set()
    for item in body.items:
        if item.product_id is not None:
            product = session.get(Product, item.product_id)
            if not product:
                raise HTTPException(status_code=400, detail=f"Product {item.product_id} not found")
            if not product.in_stock:
                raise HTTPException(status_code=400, detail=f"{product.name} is out of stock")
            price = product.price
            main_bakers.add(product.main_baker_id)
        else:
            cake = session.get(CustomCake, item.custom_cake_id)
            if not cake or cake.user_id != user.id:
                raise HTTPException(status_code=400, detail=f"Custom cake {item.custom_cake_id} not found")
            price = cake.total_price
            if cake.main_baker_id:
                main_bakers.add(cake.main_baker_id)
        lines.append((item, price))

    total = round(sum(item.quantity * price for item, price in lines), 2)
    hours = config.RUSH_DEADLINE_HOURS if body.is_rush else config.ORDER_DEADLINE_HOURS

    order = Order(
        order_id=_new_order_number(session),
        user_id=user.id,
        total_amount=total,
        is_rush=body.is_rush,
        deadline=datetime.utcnow() + timedelta(hours=hours),
        # A single kitchen gets the order straight away; mixed carts are claimed at assignment
        main_baker_id=main_bakers.pop() if len(main_bakers) == 1 else None,
    )
    session.add(order)
    session.flush()

    for item, price in lines:
        session.add(OrderItem(
            order_id=order.id,
            product_id=item.product_id,
            custom_cake_id=item.custom_cake_id,
            quantity=item.quantity,
            price_per_item=price,
        ))
    session.add(ShippingInfo(order_id=order.id, **body.shipping.model_dump()))

    session.commit()
    session.refresh(order)
    print(f"🧁 [ORDER] {order.order_id} placed by user {user.id}: ${order.total_amount} (rush={order.is_rush})")
    return _order_detail(order)


@app.get("/orders/track/{order_number}")
def track_order(order_number: str, session: Session = Depends(get_session)):
    """Public tracking by the human readable order number. No personal details."""
    order = session.exec(select(Order).where(Order.order_id == order_number)).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    return {
        "order_id": order.order_id,
        "status": order.status,
        "total_amount": order.total_amount,
        "is_rush": order.is_rush,
        "deadline": order.deadline,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
        "items": [
            {"quantity": i.quantity, "price_per_item": i.price_per_item} for i in order.items
        ],
    }


@app.get("/orders/{order_id}", response_model=OrderDetail)
def get_order(order_id: int, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    return _order_detail(_get_visible_order(session, order_id, user))


@app.patch("/orders/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: int,
    body: StatusUpdate,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    publisher=Depends(get_publisher)
):
    return transition_order(
        session, order_id, body.status, actor,
        feedback=body.feedback, expected_version=body.expected_version, publisher=publisher,
    )


@app.patch("/orders/{order_id}/assign", response_model=OrderRead)
def assign_order(
    order_id: int,
    body: AssignRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    publisher=Depends(get_publisher)
):
    return assign_junior_baker(
        session, order_id, body.baker_id, actor,
        expected_version=body.expected_version, publisher=publisher,
    )


@app.patch("/orders/{order_id}/approve", response_model=OrderRead)
def approve_order(
    order_id: int,
    body: QualityDecision,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    publisher=Depends(get_publisher)
):
    return approve_quality(
        session, order_id, actor,
        feedback=body.feedback, expected_version=body.expected_version, publisher=publisher,
    )


@app.patch("/orders/{order_id}/reject", response_model=OrderRead)
def reject_order(
    order_id: int,
    body: QualityDecision,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
    publisher=Depends(get_publisher)
):
    return reject_quality(
        session, order_id, actor, body.feedback,
        expected_version=body.expected_version, publisher=publisher,
    )


# ---------- Order Chat ----------

@app.get("/orders/{order_id}/chats", response_model=List[ChatMessage])
def list_chats(order_id: int, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    _get_visible_order(session, order_id, user)
    statement = select(ChatMessage).where(ChatMessage.order_id == order_id).order_by(ChatMessage.timestamp)
    return session.exec(statement).all()


@app.post("/orders/{order_id}/chats", response_model=ChatMessage, status_code=201)
def post_chat(
    order_id: int,
    body: ChatCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    _get_visible_order(session, order_id, user)
    chat = ChatMessage(order_id=order_id, sender_id=user.id, message=body.message)
    session.add(chat)
    session.commit()
    session.refresh(chat)
    return chat


@app.patch("/chats/read")
def mark_chats_read(body: MarkRead, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    chats = session.exec(select(ChatMessage).where(ChatMessage.id.in_(body.chat_ids))).all()
    updated = 0
    for chat in chats:
        order = session.get(Order, chat.order_id)
        if order and _can_view_order(order, user) and not chat.is_read:
            chat.is_read = True
            session.add(chat)
            updated += 1
    session.commit()
    return {"success": True, "updated": updated}


# ---------- Baker Applications ----------

VALID_PROMOTIONS = {
    UserRole.CUSTOMER: UserRole.JUNIOR_BAKER,
    UserRole.JUNIOR_BAKER: UserRole.MAIN_BAKER,
}


@app.post("/baker-applications", response_model=ApplicationRead, status_code=201)
def apply_for_promotion(
    body: ApplicationCreate,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    if VALID_PROMOTIONS.get(user.role) != body.requested_role:
        raise HTTPException(status_code=400, detail="Invalid role progression")

    if body.main_baker_id is not None:
        target = session.get(User, body.main_baker_id)
        if not target or target.role != UserRole.MAIN_BAKER:
            raise HTTPException(status_code=400, detail="Selected main baker does not exist")

    open_application = session.exec(
        select(BakerApplication).where(
            BakerApplication.user_id == user.id,
            BakerApplication.status == ApplicationStatus.PENDING,
        )
    ).first()
    if open_application:
        raise HTTPException(status_code=400, detail="You already have a pending application")

    application = BakerApplication(
        user_id=user.id,
        current_role=user.role,
        requested_role=body.requested_role,
        main_baker_id=body.main_baker_id,
        reason=body.reason,
    )
    session.add(application)
    session.commit()
    session.refresh(application)
    return application


@app.get("/baker-applications", response_model=List[ApplicationRead])
def list_applications(
    status: Optional[ApplicationStatus] = None,
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MAIN_BAKER)),
    session: Session = Depends(get_session)
):
    statement = select(BakerApplication)
    if user.role == UserRole.MAIN_BAKER:
        statement = statement.where(BakerApplication.main_baker_id == user.id)
    if status:
        statement = statement.where(BakerApplication.status == status)
    return session.exec(statement.order_by(BakerApplication.created_at)).all()


def _can_review(application: BakerApplication, reviewer: User) -> bool:
    if reviewer.role == UserRole.ADMIN:
        return True
    return (
        reviewer.role == UserRole.MAIN_BAKER
        and application.requested_role == UserRole.JUNIOR_BAKER
        and application.main_baker_id == reviewer.id
    )


@app.patch("/baker-applications/{application_id}", response_model=ApplicationRead)
def review_application(
    application_id: int,
    body: ApplicationDecision,
    reviewer: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """
    A reviewer approves or rejects a promotion request, exactly once
    """

    # 1. Get the Application
    application = session.get(BakerApplication, application_id)

    if not application:
        raise HTTPException(status_code=404, detail="Application not found")

    if not _can_review(application, reviewer):
        raise HTTPException(status_code=403, detail="You cannot review this application")

    if application.status != ApplicationStatus.PENDING:
        raise HTTPException(status_code=400, detail="Application is already processed")

    if body.decision not in ("approve", "reject"):
        raise HTTPException(status_code=400, detail="Invalid decision. Use 'approve' or 'reject'")

    applicant = session.get(User, application.user_id)
    if not applicant:
        raise HTTPException(status_code=404, detail="Applicant not found")

    # 2. Process Decision
    if body.decision == "approve":
        if applicant.role != application.current_role:
            raise HTTPException(status_code=400, detail="Applicant's role changed since applying")

        if applicant.role.is_baker and _active_assignments(session, applicant.id):
            raise HTTPException(status_code=400, detail="Applicant still has orders in progress")

        application.status = ApplicationStatus.APPROVED
        applicant.role = application.requested_role

        if application.requested_role == UserRole.JUNIOR_BAKER and application.main_baker_id:
            applicant.main_baker_id = application.main_baker_id
            session.add(BakerTeam(main_baker_id=application.main_baker_id, junior_baker_id=applicant.id))
        elif application.requested_role == UserRole.MAIN_BAKER:
            # A new main baker leaves their old team
            _leave_teams(session, applicant)
        session.add(applicant)
    else:
        application.status = ApplicationStatus.REJECTED

    application.reviewed_by = reviewer.id
    application.updated_at = datetime.utcnow()
    session.add(application)
    session.commit()
    session.refresh(application)

    print(f"📝 [APPLICATION] #{application.id} {application.status.value} by user {reviewer.id}")
    return application


# ---------- Teams ----------

@app.get("/teams/me", response_model=List[UserRead])
def my_team(user: User = Depends(require_roles(UserRole.MAIN_BAKER)), session: Session = Depends(get_session)):
    statement = (
        select(User)
        .join(BakerTeam, BakerTeam.junior_baker_id == User.id)
        .where(BakerTeam.main_baker_id == user.id, BakerTeam.is_active == True)  # noqa: E712
    )
    return session.exec(statement).all()


@app.post("/admin/teams", status_code=201)
def add_team_member(
    body: TeamCreate,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    main_baker = session.get(User, body.main_baker_id)
    junior = session.get(User, body.junior_baker_id)
    if not main_baker or main_baker.role != UserRole.MAIN_BAKER:
        raise HTTPException(status_code=400, detail="main_baker_id is not a main baker")
    if not junior or junior.role != UserRole.JUNIOR_BAKER:
        raise HTTPException(status_code=400, detail="junior_baker_id is not a junior baker")

    existing = session.exec(
        select(BakerTeam).where(
            BakerTeam.main_baker_id == main_baker.id,
            BakerTeam.junior_baker_id == junior.id,
            BakerTeam.is_active == True,  # noqa: E712
        )
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Junior baker is already on this team")

    team = BakerTeam(main_baker_id=main_baker.id, junior_baker_id=junior.id)
    junior.main_baker_id = main_baker.id
    session.add(team)
    session.add(junior)
    session.commit()
    session.refresh(team)
    return team


# ---------- Admin ----------

@app.get("/admin/users", response_model=List[UserRead])
def list_users(
    role: Optional[UserRole] = None,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    statement = select(User)
    if role:
        statement = statement.where(User.role == role)
    return session.exec(statement).all()


# Path parameters are named target_user_id: `user_id` is already the auth header parameter

@app.patch("/admin/users/{target_user_id}/role", response_model=UserRead)
def update_user_role(
    target_user_id: int,
    body: RoleUpdate,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    user = session.get(User, target_user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if body.role != user.role and user.role.is_baker:
        if _active_assignments(session, user.id):
            raise HTTPException(status_code=400, detail="User still has orders in progress")
        _leave_teams(session, user)

    user.role = body.role
    session.add(user)
    session.commit()
    session.refresh(user)
    print(f"👤 [ADMIN] User {user.id} is now {user.role.value}")
    return user


def _delete_blockers(session: Session, user_id: int) -> List[str]:
    """Rows that would be left pointing at a deleted user."""
    checks = [
        ("orders", select(Order.id).where(
            (Order.user_id == user_id) | (Order.junior_baker_id == user_id) | (Order.main_baker_id == user_id)
        )),
        ("earnings", select(BakerEarning.id).where(BakerEarning.baker_id == user_id)),
        ("products", select(Product.id).where(Product.main_baker_id == user_id)),
        ("chat messages", select(ChatMessage.id).where(ChatMessage.sender_id == user_id)),
        ("reviews", select(Review.id).where((Review.user_id == user_id) | (Review.junior_baker_id == user_id))),
        ("reviewed applications", select(BakerApplication.id).where(BakerApplication.reviewed_by == user_id)),
    ]
    return [name for name, statement in checks if session.exec(statement).first() is not None]


@app.delete("/admin/users/{target_user_id}")
def delete_user(
    target_user_id: int,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    user = session.get(User, target_user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Cannot delete admin users")

    blockers = _delete_blockers(session, user.id)
    if blockers:
        raise HTTPException(status_code=400, detail=f"User still has {', '.join(blockers)}")

    for membership in session.exec(
        select(BakerTeam).where((BakerTeam.junior_baker_id == user.id) | (BakerTeam.main_baker_id == user.id))
    ).all():
        session.delete(membership)
    for junior in session.exec(select(User).where(User.main_baker_id == user.id)).all():
        junior.main_baker_id = None
        session.add(junior)
    for application in session.exec(select(BakerApplication).where(BakerApplication.user_id == user.id)).all():
        session.delete(application)
    for application in session.exec(select(BakerApplication).where(BakerApplication.main_baker_id == user.id)).all():
        application.main_baker_id = None
        session.add(application)
    for cake in session.exec(select(CustomCake).where(CustomCake.user_id == user.id)).all():
        session.delete(cake)
    for cake in session.exec(select(CustomCake).where(CustomCake.main_baker_id == user.id)).all():
        cake.main_baker_id = None
        session.add(cake)

    session.delete(user)
    session.commit()
    print(f"👤 [ADMIN] Deleted user {target_user_id}")
    return {"message": "User deleted successfully"}


@app.patch("/admin/products/{product_id}", response_model=Product)
def update_product(
    product_id: int,
    body: ProductUpdate,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    # Placed orders keep their own price snapshot
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@app.delete("/admin/products/{product_id}")
def delete_product(
    product_id: int,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    product = session.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    ordered = session.exec(select(OrderItem).where(OrderItem.product_id == product.id)).first()
    if ordered:
        raise HTTPException(status_code=400, detail="Product appears in orders; mark it out of stock instead")

    session.delete(product)
    session.commit()
    return {"message": "Product deleted successfully"}


@app.get("/admin/stats")
def admin_stats(
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    revenue = session.exec(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(Order.status != OrderStatus.CANCELLED)
    ).one()

    recent_orders = session.exec(
        select(Order, User).join(User, Order.user_id == User.id).order_by(Order.created_at.desc()).limit(10)
    ).all()
    recent_users = session.exec(select(User).order_by(User.created_at.desc()).limit(10)).all()

    return {
        "total_users": session.exec(select(func.count()).select_from(User)).one(),
        "total_products": session.exec(select(func.count()).select_from(Product)).one(),
        "total_orders": _count_orders(session),
        "total_revenue": round(float(revenue), 2),
        "pending_orders": _count_orders(session, Order.status == OrderStatus.PENDING),
        "new_users_this_month": session.exec(
            select(func.count()).select_from(User).where(User.created_at >= month_start)
        ).one(),
        "orders_by_status": {status.value: _count_orders(session, Order.status == status) for status in OrderStatus},
        "recent_orders": [
            {
                "id": order.id,
                "order_id": order.order_id,
                "total_amount": order.total_amount,
                "status": order.status,
                "created_at": order.created_at,
                "customer_name": customer.full_name,
            }
            for order, customer in recent_orders
        ],
        "recent_users": [UserRead.model_validate(u, from_attributes=True) for u in recent_users],
    }


# ---------- Dashboards ----------

@app.get("/dashboard/customer")
def customer_dashboard(
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    session: Session = Depends(get_session)
):
    spent = session.exec(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.user_id == user.id, Order.status != OrderStatus.CANCELLED
        )
    ).one()
    recent = session.exec(
        select(Order).where(Order.user_id == user.id).order_by(Order.created_at.desc()).limit(5)
    ).all()
    return {
        "total_orders": _count_orders(session, Order.user_id == user.id),
        "pending_orders": _count_orders(
            session, Order.user_id == user.id, Order.status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING])
        ),
        "lifetime_value": round(float(spent), 2),
        "recent_orders": [OrderRead.model_validate(o, from_attributes=True) for o in recent],
    }


@app.get("/dashboard/junior-baker")
def junior_baker_dashboard(
    user: User = Depends(require_roles(UserRole.JUNIOR_BAKER)),
    session: Session = Depends(get_session)
):
    mine = Order.junior_baker_id == user.id
    assigned = _count_orders(session, mine)
    completed = _count_orders(session, mine, Order.status.in_([OrderStatus.READY, OrderStatus.DELIVERED]))
    upcoming = session.exec(
        select(Order).where(
            mine, Order.status.in_([OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.QUALITY_CHECK])
        ).order_by(Order.deadline).limit(5)
    ).all()
    return {
        "assigned_orders": assigned,
        "in_progress_orders": _count_orders(session, mine, Order.status == OrderStatus.PROCESSING),
        "quality_check_orders": _count_orders(session, mine, Order.status == OrderStatus.QUALITY_CHECK),
        "completed_orders": completed,
        # Share of assigned orders that made it past quality check
        "performance": round(completed / assigned * 100, 1) if assigned else 0.0,
        "upcoming_tasks": [OrderRead.model_validate(o, from_attributes=True) for o in upcoming],
    }


@app.get("/dashboard/main-baker")
def main_baker_dashboard(
    user: User = Depends(require_roles(UserRole.MAIN_BAKER)),
    session: Session = Depends(get_session)
):
    # Same slice as the order listing: their kitchen plus unclaimed orders
    kitchen = (Order.main_baker_id == user.id) | (Order.main_baker_id == None)  # noqa: E711
    needing_assignment = session.exec(
        select(Order).where(
            kitchen, Order.status == OrderStatus.PENDING, Order.junior_baker_id == None  # noqa: E711
        ).order_by(Order.deadline).limit(5)
    ).all()
    team_size = session.exec(
        select(func.count()).select_from(BakerTeam).where(
            BakerTeam.main_baker_id == user.id, BakerTeam.is_active == True  # noqa: E712
        )
    ).one()
    return {
        "incoming_orders": _count_orders(session, kitchen, Order.status == OrderStatus.PENDING),
        "pending_tasks": _count_orders(
            session, kitchen, Order.status.in_([OrderStatus.PROCESSING, OrderStatus.QUALITY_CHECK])
        ),
        "awaiting_quality_check": _count_orders(session, kitchen, Order.status == OrderStatus.QUALITY_CHECK),
        "team_size": team_size,
        "orders_needing_assignment": [OrderRead.model_validate(o, from_attributes=True) for o in needing_assignment],
    }


# ---------- Earnings ----------

@app.get("/earnings/me", response_model=EarningsReport)
def my_earnings(
    user: User = Depends(require_roles(UserRole.JUNIOR_BAKER, UserRole.MAIN_BAKER)),
    session: Session = Depends(get_session)
):
    return EarningsReport(
        baker_id=user.id,
        total_earnings=baker_total_earnings(session, user.id),
        earnings=baker_earnings_breakdown(session, user.id),
    )


@app.get("/admin/earnings")
def all_earnings(
    baker_type: Optional[UserRole] = None,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    session: Session = Depends(get_session)
):
    return earnings_summary(session, baker_type)


# ---------- Reviews ----------

def _review_refusal(session: Session, order: Optional[Order], user: User) -> Optional[str]:
    """Why `user` may not review `order`, or None if they may."""
    if user.role != UserRole.CUSTOMER:
        return "Only customers can leave reviews"
    if not order or order.user_id != user.id or order.status != OrderStatus.DELIVERED:
        return "You cannot review this order"
    already = session.exec(
        select(Review).where(Review.order_id == order.id, Review.user_id == user.id)
    ).first()
    if already:
        return "You already reviewed this order"
    return None


@app.post("/reviews", response_model=Review, status_code=201)
def create_review(
    body: ReviewCreate,
    user: User = Depends(require_roles(UserRole.CUSTOMER)),
    session: Session = Depends(get_session)
):
    order = session.get(Order, body.order_id)
    refusal = _review_refusal(session, order, user)
    if refusal:
        raise HTTPException(status_code=400, detail=refusal)

    review = Review(
        order_id=order.id,
        user_id=user.id,
        junior_baker_id=order.junior_baker_id,
        rating=body.rating,
        comment=body.comment,
    )
    session.add(review)
    session.commit()
    session.refresh(review)
    return review


@app.get("/reviews/baker/{baker_id}")
def baker_reviews(baker_id: int, session: Session = Depends(get_session)):
    reviews = session.exec(
        select(Review).where(Review.junior_baker_id == baker_id).order_by(Review.created_at.desc())
    ).all()
    average = session.exec(select(func.avg(Review.rating)).where(Review.junior_baker_id == baker_id)).one()
    return {"reviews": reviews, "average_rating": float(average or 0)}


@app.get("/reviews/order/{order_id}", response_model=List[Review])
def order_reviews(order_id: int, session: Session = Depends(get_session)):
    return session.exec(
        select(Review).where(Review.order_id == order_id).order_by(Review.created_at.desc())
    ).all()


@app.get("/reviews/can-review/{order_id}")
def can_review(order_id: int, user: User = Depends(get_current_user), session: Session = Depends(get_session)):
    refusal = _review_refusal(session, session.get(Order, order_id), user)
    return {"can_review": refusal is None, "reason": refusal}


if __name__ == "__main__":
    # If running directly, this allows 'python -m bakery_bliss.main' to work
    # BUT standard usage is 'uvicorn bakery_bliss.main:app --reload' from terminal
    uvicorn.run("bakery_bliss.main:app", host="0.0.0.0", port=8000, reload=True)
