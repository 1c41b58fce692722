# bakery_bliss/schemas.py
"""
Request and response bodies for the API.
Table models live in models.py; these are what goes over the wire.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from bakery_bliss.models import ApplicationStatus, OrderStatus, UserRole


# ---------------------------
# Users
# ---------------------------
class UserCreate(BaseModel):
    email: str
    username: str
    full_name: str


class UserRead(BaseModel):
    id: int
    email: str
    username: str
    full_name: str
    role: UserRole
    main_baker_id: Optional[int] = None
    completed_orders: int = 0


class RoleUpdate(BaseModel):
    role: UserRole


# ---------------------------
# Catalog
# ---------------------------
class ProductCreate(BaseModel):
    name: str
    description: str
    price: float = Field(..., gt=0)
    category: str
    in_stock: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    in_stock: Optional[bool] = None


class CustomCakeCreate(BaseModel):
    name: Optional[str] = None
    layers: Optional[str] = None
    color: Optional[str] = None
    pounds: float = Field(..., gt=0)
    message: Optional[str] = None
    special_instructions: Optional[str] = None
    total_price: float = Field(..., gt=0)
    main_baker_id: Optional[int] = None


# ---------------------------
# Orders
# ---------------------------
class CheckoutItem(BaseModel):
    product_id: Optional[int] = None
    custom_cake_id: Optional[int] = None
    quantity: int = Field(..., ge=1)

    @model_validator(mode="after")
    def exactly_one_reference(self):
        if (self.product_id is None) == (self.custom_cake_id is None):
            raise ValueError("Each item needs exactly one of product_id or custom_cake_id")
        return self


class ShippingDetails(BaseModel):
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    payment_method: str


class CheckoutRequest(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    shipping: ShippingDetails
    is_rush: bool = False


class OrderItemRead(BaseModel):
    id: int
    product_id: Optional[int] = None
    custom_cake_id: Optional[int] = None
    quantity: int
    price_per_item: float


class OrderRead(BaseModel):
    id: int
    order_id: str
    user_id: int
    status: OrderStatus
    total_amount: float
    is_rush: bool
    deadline: Optional[datetime] = None
    quality_feedback: Optional[str] = None
    main_baker_id: Optional[int] = None
    junior_baker_id: Optional[int] = None
    version: int
    created_at: datetime
    updated_at: datetime


class OrderDetail(OrderRead):
    items: List[OrderItemRead] = []
    shipping: Optional[ShippingDetails] = None


class StatusUpdate(BaseModel):
    status: OrderStatus
    feedback: Optional[str] = None
    expected_version: Optional[int] = None


class AssignRequest(BaseModel):
    baker_id: int
    expected_version: Optional[int] = None


class QualityDecision(BaseModel):
    feedback: Optional[str] = None
    expected_version: Optional[int] = None


# ---------------------------
# Chat
# ---------------------------
class ChatCreate(BaseModel):
    message: str = Field(..., min_length=1)


class MarkRead(BaseModel):
    chat_ids: List[int] = Field(..., min_length=1)


# ---------------------------
# Applications & Teams
# ---------------------------
class ApplicationCreate(BaseModel):
    requested_role: UserRole
    main_baker_id: Optional[int] = None
    reason: str = Field(..., min_length=1)


class ApplicationDecision(BaseModel):
    decision: str  # "approve" or "reject"


class ApplicationRead(BaseModel):
    id: int
    user_id: int
    current_role: UserRole
    requested_role: UserRole
    main_baker_id: Optional[int] = None
    reason: str
    status: ApplicationStatus
    reviewed_by: Optional[int] = None


class TeamCreate(BaseModel):
    main_baker_id: int
    junior_baker_id: int


# ---------------------------
# Earnings & Reviews
# ---------------------------
class EarningsReport(BaseModel):
    baker_id: int
    total_earnings: Decimal
    earnings: List[dict]


class ReviewCreate(BaseModel):
    order_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
