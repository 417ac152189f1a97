"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
vendors, menu items, orders, reviews, ledger rows, group orders, OTP
codes). Repositories return SQLModel objects and perform
commits/refreshes where appropriate. Methods named `stage_*` only add
to the session so a service can commit several writes as one unit.
"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import func
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def get_by_username(self, username: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_by_rfid(self, rfid_number: str) -> Optional[models.User]:
        """Return the student holding `rfid_number`, if any."""
        stmt = select(models.User).where(models.User.rfid_number == rfid_number)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def list_all(self) -> List[models.User]:
        """Return every user, newest first."""
        stmt = select(models.User).order_by(models.User.created_at.desc(), models.User.id.desc())
        return self.session.exec(stmt).all()


class VendorRepository:
    """Query helpers for `Vendor` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, vendor: models.Vendor) -> models.Vendor:
        self.session.add(vendor)
        self.session.commit()
        self.session.refresh(vendor)
        return vendor

    def get(self, vendor_id: int) -> Optional[models.Vendor]:
        return self.session.get(models.Vendor, vendor_id)

    def get_by_user(self, user_id: int) -> Optional[models.Vendor]:
        """Return the vendor operated by `user_id`."""
        stmt = select(models.Vendor).where(models.Vendor.user_id == user_id)
        return self.session.exec(stmt).first()

    def list_active(self) -> List[models.Vendor]:
        stmt = select(models.Vendor).where(models.Vendor.is_active == True).order_by(models.Vendor.shop_name)  # noqa: E712
        return self.session.exec(stmt).all()

    def update_rating(self, vendor: models.Vendor, average_rating: float, total_reviews: int) -> models.Vendor:
        vendor.average_rating = average_rating
        vendor.total_reviews = total_reviews
        self.session.add(vendor)
        self.session.commit()
        self.session.refresh(vendor)
        return vendor


class MenuItemRepository:
    """CRUD operations for `MenuItem` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, item: models.MenuItem) -> models.MenuItem:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def save(self, item: models.MenuItem) -> models.MenuItem:
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def delete(self, item: models.MenuItem) -> None:
        self.session.delete(item)
        self.session.commit()

    def get(self, item_id: int) -> Optional[models.MenuItem]:
        return self.session.get(models.MenuItem, item_id)

    def list_for_vendor(self, vendor_id: int) -> List[models.MenuItem]:
        """List a vendor's menu grouped by category, then by name."""
        stmt = (
            select(models.MenuItem)
            .where(models.MenuItem.vendor_id == vendor_id)
            .order_by(models.MenuItem.category, models.MenuItem.name)
        )
        return self.session.exec(stmt).all()

    def list_available(self) -> List[models.MenuItem]:
        stmt = select(models.MenuItem).where(models.MenuItem.is_available == True)  # noqa: E712
        return self.session.exec(stmt).all()

    def get_many(self, item_ids: List[int]) -> List[models.MenuItem]:
        if not item_ids:
            return []
        stmt = select(models.MenuItem).where(models.MenuItem.id.in_(item_ids))
        return self.session.exec(stmt).all()


class OrderRepository:
    """Persist and query `Order` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, order: models.Order) -> models.Order:
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        return order

    def stage(self, order: models.Order) -> None:
        self.session.add(order)

    def get(self, order_id: int) -> Optional[models.Order]:
        return self.session.get(models.Order, order_id)

    def exists_order_number(self, order_number: str) -> bool:
        stmt = select(models.Order.id).where(models.Order.order_number == order_number)
        return self.session.exec(stmt).first() is not None

    def list_filtered(
        self,
        student_id: Optional[int] = None,
        vendor_id: Optional[int] = None,
        status: Optional[models.OrderStatus] = None,
    ) -> List[models.Order]:
        """List orders newest first, optionally scoped to a student, vendor or status."""
        stmt = select(models.Order)
        if student_id is not None:
            stmt = stmt.where(models.Order.student_id == student_id)
        if vendor_id is not None:
            stmt = stmt.where(models.Order.vendor_id == vendor_id)
        if status is not None:
            stmt = stmt.where(models.Order.order_status == status)
        stmt = stmt.order_by(models.Order.created_at.desc(), models.Order.id.desc())
        return self.session.exec(stmt).all()

    def list_unsettled_rfid(self) -> List[models.Order]:
        """RFID orders that were collected but never marked `PAID`."""
        stmt = select(models.Order).where(
            models.Order.payment_method == models.PaymentMethod.RFID,
            models.Order.payment_status == models.PaymentStatus.PENDING,
            models.Order.order_status.in_([models.OrderStatus.PICKED_UP, models.OrderStatus.COMPLETED]),
        ).order_by(models.Order.id)
        return self.session.exec(stmt).all()

    def count_for_group(self, group_order_id: int) -> int:
        stmt = select(func.count(models.Order.id)).where(models.Order.group_order_id == group_order_id)
        return self.session.exec(stmt).one()


class ReviewRepository:
    """Persist reviews and compute vendor rating aggregates."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, review: models.Review) -> models.Review:
        self.session.add(review)
        self.session.commit()
        self.session.refresh(review)
        return review

    def get_by_order(self, order_id: int) -> Optional[models.Review]:
        stmt = select(models.Review).where(models.Review.order_id == order_id)
        return self.session.exec(stmt).first()

    def list_for_vendor(self, vendor_id: int) -> List[models.Review]:
        stmt = (
            select(models.Review)
            .where(models.Review.vendor_id == vendor_id)
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        )
        return self.session.exec(stmt).all()

    def list_all(self) -> List[models.Review]:
        return self.session.exec(select(models.Review)).all()


class TransactionRepository:
    """Ledger rows for RFID balance changes."""
    def __init__(self, session: Session):
        self.session = session

    def stage(self, tx: models.Transaction) -> None:
        """Add a ledger row without committing; the caller owns the commit."""
        self.session.add(tx)

    def list_for_student(self, student_id: int) -> List[models.Transaction]:
        stmt = (
            select(models.Transaction)
            .where(models.Transaction.student_id == student_id)
            .order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())
        )
        return self.session.exec(stmt).all()

    def list_for_order(self, order_id: int) -> List[models.Transaction]:
        stmt = select(models.Transaction).where(models.Transaction.order_id == order_id)
        return self.session.exec(stmt).all()


class GroupOrderRepository:
    """CRUD operations for `GroupOrder` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, group: models.GroupOrder) -> models.GroupOrder:
        self.session.add(group)
        self.session.commit()
        self.session.refresh(group)
        return group

    def save(self, group: models.GroupOrder) -> models.GroupOrder:
        self.session.add(group)
        self.session.commit()
        self.session.refresh(group)
        return group

    def delete(self, group: models.GroupOrder) -> None:
        self.session.delete(group)
        self.session.commit()

    def get(self, group_id: int) -> Optional[models.GroupOrder]:
        return self.session.get(models.GroupOrder, group_id)

    def get_by_share_link(self, share_link: str) -> Optional[models.GroupOrder]:
        stmt = select(models.GroupOrder).where(models.GroupOrder.share_link == share_link)
        return self.session.exec(stmt).first()

    def list_for_creator(self, creator_id: int) -> List[models.GroupOrder]:
        stmt = (
            select(models.GroupOrder)
            .where(models.GroupOrder.creator_id == creator_id)
            .order_by(models.GroupOrder.created_at.desc(), models.GroupOrder.id.desc())
        )
        return self.session.exec(stmt).all()


class OtpRepository:
    """Persistence for one-time verification codes."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, otp: models.OtpCode) -> models.OtpCode:
        self.session.add(otp)
        self.session.commit()
        self.session.refresh(otp)
        return otp

    def save(self, otp: models.OtpCode) -> models.OtpCode:
        self.session.add(otp)
        self.session.commit()
        return otp

    def latest_active(self, target: str, now: datetime) -> Optional[models.OtpCode]:
        """Return the newest unconsumed code for `target` that has not expired."""
        stmt = (
            select(models.OtpCode)
            .where(models.OtpCode.target == target, models.OtpCode.consumed == False)  # noqa: E712
            .order_by(models.OtpCode.created_at.desc(), models.OtpCode.id.desc())
        )
        otp = self.session.exec(stmt).first()
        if otp is None:
            return None
        expires_at = otp.expires_at
        # SQLite hands back naive datetimes; stored values are always UTC
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=now.tzinfo)
        return otp if expires_at >= now else None
