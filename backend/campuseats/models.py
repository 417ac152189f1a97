"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Status-like columns are string enums so they serialize as plain text in
both the database and the JSON API.
"""

from enum import Enum
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship, Column, JSON
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    STUDENT = "STUDENT"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class MenuCategory(str, Enum):
    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"
    SNACKS = "SNACKS"
    BEVERAGES = "BEVERAGES"
    DESSERTS = "DESSERTS"


class PaymentMethod(str, Enum):
    RFID = "RFID"
    CARD = "CARD"
    UPI = "UPI"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    PICKED_UP = "PICKED_UP"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TransactionType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class SplitType(str, Enum):
    EQUAL = "EQUAL"
    ITEMIZED = "ITEMIZED"


class User(SQLModel, table=True):
    """A registered account (student, vendor operator or admin).

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `rfid_number` / `rfid_balance`: only set for campus students who
      pay with their RFID card; other users keep both as `None`
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: Role = Field(default=Role.STUDENT, index=True)
    full_name: str
    phone_number: str
    username: Optional[str] = Field(default=None, unique=True)
    rfid_number: Optional[str] = Field(default=None, index=True, unique=True)
    rfid_balance: Optional[float] = None
    is_campus_student: bool = False
    college_email: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Vendor(SQLModel, table=True):
    """A food outlet operated by a `VENDOR` user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', unique=True)
    shop_name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    average_rating: float = 0.0
    total_reviews: int = 0
    is_active: bool = True
    opening_hours: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    menu_items: List['MenuItem'] = Relationship(back_populates='vendor')


class MenuItem(SQLModel, table=True):
    """A dish sold by a `Vendor`; `price` is in rupees."""
    id: Optional[int] = Field(default=None, primary_key=True)
    vendor_id: int = Field(foreign_key='vendor.id', index=True)
    name: str
    description: Optional[str] = None
    price: float
    image_url: Optional[str] = None
    category: MenuCategory = MenuCategory.SNACKS
    is_available: bool = True
    preparation_time: int = 10
    created_at: datetime = Field(default_factory=utcnow)
    vendor: Optional[Vendor] = Relationship(back_populates='menu_items')


class GroupOrder(SQLModel, table=True):
    """A shareable group order that individual orders can join."""
    __tablename__ = 'group_orders'

    id: Optional[int] = Field(default=None, primary_key=True)
    creator_id: int = Field(foreign_key='user.id', index=True)
    vendor_id: int = Field(foreign_key='vendor.id')
    share_link: str = Field(index=True, unique=True)
    split_type: SplitType = SplitType.EQUAL
    participant_count: int = 1
    is_finalized: bool = False
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)
    orders: List['Order'] = Relationship(back_populates='group_order')


class Order(SQLModel, table=True):
    """A student's order at one vendor.

    `items` is a JSON snapshot of the ordered dishes
    (`menu_item_id`, `name`, `price`, `quantity`) so later menu edits do
    not change historical orders.
    """
    __tablename__ = 'orders'

    id: Optional[int] = Field(default=None, primary_key=True)
    order_number: str = Field(index=True, unique=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    vendor_id: int = Field(foreign_key='vendor.id', index=True)
    group_order_id: Optional[int] = Field(default=None, foreign_key='group_orders.id')
    is_group_order: bool = False
    items: List[dict] = Field(default_factory=list, sa_column=Column(JSON))
    subtotal: float
    tax: float
    total_amount: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: Optional[str] = None
    order_status: OrderStatus = Field(default=OrderStatus.PLACED, index=True)
    pickup_code: str
    picked_up_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    vendor: Optional[Vendor] = Relationship()
    group_order: Optional[GroupOrder] = Relationship(back_populates='orders')


class Review(SQLModel, table=True):
    """A student's rating of a collected order (one review per order)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key='orders.id', unique=True)
    student_id: int = Field(foreign_key='user.id')
    vendor_id: int = Field(foreign_key='vendor.id', index=True)
    food_rating: int
    service_rating: int
    comment: Optional[str] = None
    images: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """A row of the RFID balance ledger.

    Every balance change writes one row with the balance before and
    after, so the ledger can be replayed against `User.rfid_balance`.
    """
    __tablename__ = 'transactions'

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    order_id: Optional[int] = Field(default=None, foreign_key='orders.id')
    transaction_type: TransactionType
    amount: float
    previous_balance: float
    new_balance: float
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class OtpCode(SQLModel, table=True):
    """A one-time verification code issued to an email or phone number."""
    id: Optional[int] = Field(default=None, primary_key=True)
    target: str = Field(index=True)
    code: str
    expires_at: datetime
    attempts: int = 0
    consumed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
