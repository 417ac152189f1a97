"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from .models import MenuCategory, OrderStatus, PaymentMethod, SplitType


class SignupIn(BaseModel):
    """Payload for student self-registration."""
    email: str
    password: str
    full_name: str
    phone_number: str
    rfid_number: Optional[str] = None
    is_campus_student: bool = False
    college_email: Optional[str] = None


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"
    role: str


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    username: Optional[str] = None


class MenuItemIn(BaseModel):
    """Request format for creating a menu item."""
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    category: MenuCategory = MenuCategory.SNACKS
    preparation_time: int = 10


class MenuItemUpdate(BaseModel):
    """Partial update of a menu item; omitted fields are left unchanged."""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    category: Optional[MenuCategory] = None
    preparation_time: Optional[int] = None
    is_available: Optional[bool] = None


class OrderItemIn(BaseModel):
    """Single line of an order request."""
    menu_item_id: int
    quantity: int = 1


class CardDetails(BaseModel):
    card_number: str
    expiry: str
    cvv: str
    name: Optional[str] = None


class OrderIn(BaseModel):
    """Request model for placing an order.

    `card` is required for CARD payments and `upi_id` for UPI payments;
    RFID orders need neither.
    """
    vendor_id: int
    items: List[OrderItemIn]
    payment_method: PaymentMethod
    group_order_id: Optional[int] = None
    card: Optional[CardDetails] = None
    upi_id: Optional[str] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class PickupIn(BaseModel):
    pickup_code: str


class RfidCreditIn(BaseModel):
    """Admin credit request; `amount` is validated by the service."""
    rfid_number: str
    amount: Optional[float] = None


class ReviewIn(BaseModel):
    order_id: int
    food_rating: int = Field(ge=1, le=5)
    service_rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    images: Optional[List[str]] = None


class GroupOrderIn(BaseModel):
    vendor_id: int
    split_type: SplitType = SplitType.EQUAL
    participant_count: int = 1


class OtpSendIn(BaseModel):
    email: Optional[str] = None
    phone_number: Optional[str] = None


class OtpVerifyIn(BaseModel):
    email: Optional[str] = None
    phone_number: Optional[str] = None
    otp: str
