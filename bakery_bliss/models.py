# bakery_bliss/models.py

"""
The Contract: what a bakery order, its people and its money look like
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship


# --- 1. Enums ---
# Closed sets. The order status column can never hold anything outside OrderStatus.
class UserRole(str, Enum):
    CUSTOMER = "customer"
    JUNIOR_BAKER = "junior_baker"
    MAIN_BAKER = "main_baker"
    ADMIN = "admin"

    @property
    def is_baker(self) -> bool:
        return self in (UserRole.JUNIOR_BAKER, UserRole.MAIN_BAKER)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    QUALITY_CHECK = "quality_check"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# --- 2. Database Tables ---

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    username: str = Field(unique=True, index=True)
    full_name: str
    role: UserRole = Field(default=UserRole.CUSTOMER)
    # Junior bakers belong to one main baker's team
    main_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    completed_orders: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: str
    price: float
    category: str = Field(index=True)
    in_stock: bool = Field(default=True)
    main_baker_id: int = Field(foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CustomCake(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id")
    name: Optional[str] = None
    layers: Optional[str] = None  # "2layer", "3layer"
    color: Optional[str] = None
    pounds: float
    message: Optional[str] = None
    special_instructions: Optional[str] = None
    total_price: float
    main_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    # Human readable identifier, e.g. BB-ORD-482913
    order_id: str = Field(unique=True, index=True)
    user_id: int = Field(foreign_key="user.id")
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    total_amount: float
    is_rush: bool = Field(default=False)
    deadline: Optional[datetime] = None
    quality_feedback: Optional[str] = None
    main_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    junior_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    # Bumped on every status or assignment write (optimistic lock)
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(back_populates="order")
    shipping: Optional["ShippingInfo"] = Relationship(
        back_populates="order", sa_relationship_kwargs={"uselist": False}
    )


class OrderItem(SQLModel, table=True):
    """
    Snapshot of a line at checkout time.
    Price is copied from the product / custom cake so later price edits don't leak in.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    product_id: Optional[int] = Field(default=None, foreign_key="product.id")
    custom_cake_id: Optional[int] = Field(default=None, foreign_key="customcake.id")
    quantity: int
    price_per_item: float

    order: Order = Relationship(back_populates="items")


class ShippingInfo(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", unique=True)
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    payment_method: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    order: Order = Relationship(back_populates="shipping")


class BakerTeam(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    main_baker_id: int = Field(foreign_key="user.id", index=True)
    junior_baker_id: int = Field(foreign_key="user.id", index=True)
    is_active: bool = Field(default=True)
    assigned_at: datetime = Field(default_factory=datetime.utcnow)


class BakerApplication(SQLModel, table=True):
    """
    A role promotion request. Reviewed exactly once, then terminal.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id")
    current_role: UserRole
    requested_role: UserRole
    main_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    reason: str
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING)
    reviewed_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class BakerEarning(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    baker_id: int = Field(foreign_key="user.id", index=True)
    baker_type: UserRole
    base_amount: Decimal = Field(max_digits=10, decimal_places=2)
    bonus_amount: Decimal = Field(max_digits=10, decimal_places=2)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    percentage: Decimal = Field(max_digits=5, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ChatMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id", index=True)
    sender_id: int = Field(foreign_key="user.id")
    message: str
    is_read: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class Review(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="order.id")
    user_id: int = Field(foreign_key="user.id")
    junior_baker_id: Optional[int] = Field(default=None, foreign_key="user.id")
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
