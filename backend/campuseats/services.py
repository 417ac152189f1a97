"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, execute domain logic and persist aggregates via
repositories. Failures are raised as `ServiceError` subclasses that
carry the HTTP status the controller layer should answer with.

The one piece with real rules is RFID settlement
(`PaymentService.settle_rfid`): balance is only checked when an order is
placed and is deducted later, exactly once, when the order is picked up
or completed.
"""

import json
import math
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .schemas import GroupOrderIn, MenuItemIn, MenuItemUpdate, OrderIn, ProfileUpdate, ReviewIn, SignupIn
from .utils import gateway
from .utils.codes import generate_order_number, generate_otp, generate_pickup_code, generate_share_link
from .utils.rate_limit import InMemoryRateLimiter

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS
DEFAULT_MENU_IMAGE = "https://images.unsplash.com/photo-1546069901-ba9599a7e63c?w=300"

payments_logger = logging.getLogger("campuseats.payments")
otp_logger = logging.getLogger("campuseats.otp")

# status -> statuses it may move to; re-sending the current status is always allowed
ORDER_TRANSITIONS = {
    models.OrderStatus.PLACED: {models.OrderStatus.CONFIRMED, models.OrderStatus.CANCELLED},
    models.OrderStatus.CONFIRMED: {models.OrderStatus.PREPARING, models.OrderStatus.CANCELLED},
    models.OrderStatus.PREPARING: {models.OrderStatus.READY, models.OrderStatus.CANCELLED},
    models.OrderStatus.READY: {models.OrderStatus.PICKED_UP, models.OrderStatus.COMPLETED},
    models.OrderStatus.PICKED_UP: {models.OrderStatus.COMPLETED},
    models.OrderStatus.COMPLETED: set(),
    models.OrderStatus.CANCELLED: set(),
}
SETTLING_STATUSES = {models.OrderStatus.PICKED_UP, models.OrderStatus.COMPLETED}


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 400

    def __init__(self, detail: str, headers: Optional[dict] = None):
        super().__init__(detail)
        self.detail = detail
        self.headers = headers


class ValidationError(ServiceError):
    status_code = 400


class PermissionDenied(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class RateLimited(ServiceError):
    status_code = 429


def _money(value: float) -> float:
    return round(float(value) + 1e-9, 2)


def _aware(value: datetime) -> datetime:
    # SQLite returns naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def public_user(user: models.User) -> dict:
    """Serialize a user without credentials."""
    return user.model_dump(exclude={"password_hash"})


class AuthService:
    """Authentication related operations (signup + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def signup(self, data: SignupIn) -> models.User:
        """Register a student account.

        Campus students must use the campus email domain and present an
        RFID card number; they start with an empty RFID balance. Other
        students need a college email for verification and cannot pay
        with RFID.
        """
        email = (data.email or "").strip().lower()
        if not email or not data.password or not data.full_name or not data.phone_number:
            raise ValidationError("Missing required fields")
        rfid_number = None
        rfid_balance = None
        if data.is_campus_student:
            if not email.endswith(f"@{settings.CAMPUS_EMAIL_DOMAIN}"):
                raise ValidationError(f"Campus students must use @{settings.CAMPUS_EMAIL_DOMAIN} email address")
            rfid_number = (data.rfid_number or "").strip()
            if not rfid_number:
                raise ValidationError("RFID number is required for campus students")
            if len(rfid_number) < settings.MIN_RFID_LENGTH:
                raise ValidationError("Invalid RFID number format")
            rfid_balance = 0.0
        elif not data.college_email:
            raise ValidationError("College email is required for verification")

        if self.user_repo.get_by_email(email):
            raise ConflictError("Email or RFID number already exists")
        if rfid_number and self.user_repo.get_by_rfid(rfid_number):
            raise ConflictError("Email or RFID number already exists")

        user = models.User(
            email=email,
            password_hash=PWD_CTX.hash(data.password),
            role=models.Role.STUDENT,
            full_name=data.full_name.strip(),
            phone_number=data.phone_number.strip(),
            rfid_number=rfid_number,
            rfid_balance=rfid_balance,
            is_campus_student=data.is_campus_student,
            college_email=data.college_email,
        )
        return self.user_repo.create(user)

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Return the user for valid credentials, `None` otherwise."""
        user = self.user_repo.get_by_email((email or "").strip())
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return user

    def issue_token(self, user: models.User) -> str:
        """Sign a JWT carrying the user's id, email and role."""
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "email": user.email, "role": user.role.value, "exp": int(expire.timestamp())}
        if user.role == models.Role.VENDOR:
            vendor = repositories.VendorRepository(self.session).get_by_user(user.id)
            payload["vendor_id"] = vendor.id if vendor else None
        return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


class ProfileService:
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def get_profile(self, user: models.User) -> dict:
        out = public_user(user)
        if user.role == models.Role.VENDOR:
            vendor = repositories.VendorRepository(self.session).get_by_user(user.id)
            out["vendor"] = vendor.model_dump() if vendor else None
        return out

    def update_profile(self, user: models.User, changes: ProfileUpdate) -> dict:
        """Apply the provided fields; a username must not belong to anyone else."""
        if changes.username is not None:
            username = changes.username.strip()
            if not username:
                raise ValidationError("Username cannot be empty")
            other = self.user_repo.get_by_username(username)
            if other and other.id != user.id:
                raise ValidationError("Username already taken")
            user.username = username
        if changes.full_name is not None:
            if not changes.full_name.strip():
                raise ValidationError("Full name cannot be empty")
            user.full_name = changes.full_name.strip()
        if changes.phone_number is not None:
            user.phone_number = changes.phone_number.strip()
        self.user_repo.save(user)
        return self.get_profile(user)


class MenuService:
    """Vendor listing, menus and vendor-side menu management."""
    def __init__(self, session: Session):
        self.session = session
        self.vendor_repo = repositories.VendorRepository(session)
        self.item_repo = repositories.MenuItemRepository(session)

    def list_vendors(self) -> List[models.Vendor]:
        return self.vendor_repo.list_active()

    def get_menu(self, vendor_id: int) -> List[models.MenuItem]:
        if not self.vendor_repo.get(vendor_id):
            raise NotFoundError("Vendor not found")
        return self.item_repo.list_for_vendor(vendor_id)

    def vendor_for(self, user: models.User) -> models.Vendor:
        """Return the shop operated by a vendor user."""
        vendor = self.vendor_repo.get_by_user(user.id)
        if not vendor:
            raise PermissionDenied("No vendor is associated with this account")
        return vendor

    def _owned_item(self, user: models.User, item_id: int) -> models.MenuItem:
        vendor = self.vendor_for(user)
        item = self.item_repo.get(item_id)
        if not item:
            raise NotFoundError("Menu item not found")
        if item.vendor_id != vendor.id:
            raise PermissionDenied("Menu item belongs to another vendor")
        return item

    @staticmethod
    def _check_item_values(price: Optional[float], preparation_time: Optional[int]):
        if price is not None and (not math.isfinite(price) or price <= 0):
            raise ValidationError("price must be greater than 0")
        if preparation_time is not None and preparation_time < 0:
            raise ValidationError("preparation_time must be >= 0")

    def create_item(self, user: models.User, data: MenuItemIn) -> models.MenuItem:
        vendor = self.vendor_for(user)
        if not data.name or not data.name.strip():
            raise ValidationError("name is required")
        self._check_item_values(data.price, data.preparation_time)
        item = models.MenuItem(
            vendor_id=vendor.id,
            name=data.name.strip(),
            description=data.description,
            price=_money(data.price),
            image_url=data.image_url or DEFAULT_MENU_IMAGE,
            category=data.category,
            preparation_time=data.preparation_time,
            is_available=True,
        )
        return self.item_repo.create(item)

    def update_item(self, user: models.User, item_id: int, changes: MenuItemUpdate) -> models.MenuItem:
        item = self._owned_item(user, item_id)
        fields = changes.model_dump(exclude_unset=True)
        self._check_item_values(fields.get("price"), fields.get("preparation_time"))
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("name cannot be empty")
        for key, value in fields.items():
            if value is None and key != "description":
                continue
            if key == "price":
                value = _money(value)
            elif key == "name":
                value = value.strip()
            setattr(item, key, value)
        return self.item_repo.save(item)

    def delete_item(self, user: models.User, item_id: int) -> None:
        item = self._owned_item(user, item_id)
        self.item_repo.delete(item)

    def recommended(self, limit: int = 12) -> List[dict]:
        """Rank available dishes by vendor rating, popularity and price.

        score = vendor rating + min(reviews / 10, 2) + (0.5 if price < 100)
        where the vendor rating is the mean of (food + service) / 2 over
        its reviews, or the stored average when it has none. Only items
        scoring at least 4.0 are recommended.
        """
        stats = {}
        for review in repositories.ReviewRepository(self.session).list_all():
            total, count = stats.get(review.vendor_id, (0.0, 0))
            stats[review.vendor_id] = (total + (review.food_rating + review.service_rating) / 2, count + 1)

        scored = []
        for item in self.item_repo.list_available():
            vendor = item.vendor
            if vendor is None or not vendor.is_active:
                continue
            total, count = stats.get(item.vendor_id, (0.0, 0))
            vendor_rating = total / count if count else (vendor.average_rating or 0.0)
            popularity = min(count / 10, 2) if count else 0
            price_factor = 0.5 if item.price < 100 else 0
            score = vendor_rating + popularity + price_factor
            if score < 4.0:
                continue
            entry = item.model_dump()
            entry.update({
                "vendor": {"id": vendor.id, "shop_name": vendor.shop_name, "average_rating": vendor.average_rating},
                "vendor_rating": round(vendor_rating, 2),
                "review_count": count,
                "is_recommended": True,
                "recommendation_score": round(score, 2),
            })
            scored.append(entry)
        scored.sort(key=lambda e: e["recommendation_score"], reverse=True)
        return scored[:limit]


class PaymentService:
    """RFID balance ledger: settlement of orders and admin credits.

    Methods prefixed `stage_` mutate objects on the session without
    committing, so the caller can commit the order update, the balance
    change and the ledger row together.
    """
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.tx_repo = repositories.TransactionRepository(session)

    def stage_rfid_settlement(self, order: models.Order) -> Optional[models.Transaction]:
        """Deduct the order total from the student's balance and mark it `PAID`.

        Returns the staged ledger row, or `None` when there is nothing to
        do (not an RFID order, or already paid). Raises `ConflictError`
        if the balance no longer covers the total; nothing is staged in
        that case.
        """
        if order.payment_method != models.PaymentMethod.RFID:
            return None
        if order.payment_status == models.PaymentStatus.PAID:
            payments_logger.info("rfid_already_settled %s", json.dumps({"order": order.order_number}))
            return None
        student = self.user_repo.get(order.student_id)
        if student is None or student.rfid_balance is None:
            raise ConflictError("Student has no RFID account")
        previous = _money(student.rfid_balance)
        amount = _money(order.total_amount)
        if previous + 1e-9 < amount:
            raise ConflictError("Insufficient RFID balance to settle order")
        new_balance = _money(previous - amount)
        student.rfid_balance = new_balance
        order.payment_status = models.PaymentStatus.PAID
        tx = models.Transaction(
            student_id=student.id,
            order_id=order.id,
            transaction_type=models.TransactionType.DEBIT,
            amount=amount,
            previous_balance=previous,
            new_balance=new_balance,
            description=f"Order {order.order_number} payment",
        )
        self.session.add(student)
        self.tx_repo.stage(tx)
        return tx

    def settle_rfid(self, order: models.Order) -> Optional[models.Transaction]:
        """Stage and commit a settlement for an order whose status is already final."""
        tx = self.stage_rfid_settlement(order)
        if tx is None:
            return None
        order.updated_at = models.utcnow()
        self.session.add(order)
        self.session.commit()
        self.session.refresh(tx)
        log_settlement(order, tx)
        return tx

    def credit(self, rfid_number: str, amount) -> dict:
        """Top up a student's RFID balance and record a `CREDIT` row."""
        if not rfid_number or amount is None:
            raise ValidationError("RFID number and amount are required")
        try:
            credit_amount = _money(float(amount))
        except (TypeError, ValueError):
            raise ValidationError("Invalid amount")
        if not math.isfinite(credit_amount) or credit_amount <= 0:
            raise ValidationError("Invalid amount")
        user = self.user_repo.get_by_rfid(rfid_number)
        if not user:
            raise NotFoundError("User with this RFID number not found")
        previous = _money(user.rfid_balance or 0.0)
        user.rfid_balance = _money(previous + credit_amount)
        tx = models.Transaction(
            student_id=user.id,
            transaction_type=models.TransactionType.CREDIT,
            amount=credit_amount,
            previous_balance=previous,
            new_balance=user.rfid_balance,
            description="RFID balance top-up",
        )
        self.session.add(user)
        self.tx_repo.stage(tx)
        self.session.commit()
        self.session.refresh(user)
        payments_logger.info(
            "rfid_credit %s",
            json.dumps({"user_id": user.id, "rfid": rfid_number, "amount": credit_amount,
                        "previous_balance": previous, "new_balance": user.rfid_balance}),
        )
        return {
            "full_name": user.full_name,
            "email": user.email,
            "rfid_number": user.rfid_number,
            "previous_balance": previous,
            "new_balance": user.rfid_balance,
            "credited_amount": credit_amount,
        }

    def balance(self, user: models.User) -> dict:
        return {"rfid_number": user.rfid_number, "rfid_balance": user.rfid_balance or 0.0}

    def history(self, user: models.User) -> List[models.Transaction]:
        return self.tx_repo.list_for_student(user.id)


def log_settlement(order: models.Order, tx: models.Transaction) -> None:
    payments_logger.info(
        "rfid_debit %s",
        json.dumps({"order": order.order_number, "student_id": tx.student_id, "amount": tx.amount,
                    "previous_balance": tx.previous_balance, "new_balance": tx.new_balance}),
    )


class OrderService:
    """Order placement and the order-status state machine."""
    def __init__(self, session: Session):
        self.session = session
        self.order_repo = repositories.OrderRepository(session)
        self.item_repo = repositories.MenuItemRepository(session)
        self.vendor_repo = repositories.VendorRepository(session)
        self.group_repo = repositories.GroupOrderRepository(session)
        self.payments = PaymentService(session)

    def _price_items(self, vendor_id: int, lines) -> tuple:
        if not lines:
            raise ValidationError("Order must contain at least one item")
        quantities = {}
        for line in lines:
            if line.quantity < 1:
                raise ValidationError("quantity must be at least 1")
            quantities[line.menu_item_id] = quantities.get(line.menu_item_id, 0) + line.quantity
        found = {i.id: i for i in self.item_repo.get_many(list(quantities))}
        snapshot = []
        subtotal = 0.0
        for item_id, qty in quantities.items():
            item = found.get(item_id)
            if item is None or item.vendor_id != vendor_id:
                raise ValidationError(f"Menu item {item_id} is not on this vendor's menu")
            if not item.is_available:
                raise ValidationError(f"{item.name} is currently unavailable")
            snapshot.append({"menu_item_id": item.id, "name": item.name, "price": item.price, "quantity": qty})
            subtotal += item.price * qty
        subtotal = _money(subtotal)
        tax = _money(subtotal * settings.TAX_RATE)
        return snapshot, subtotal, tax, _money(subtotal + tax)

    def _new_order_number(self) -> str:
        number = generate_order_number()
        while self.order_repo.exists_order_number(number):
            number = generate_order_number()
        return number

    def place_order(self, student: models.User, data: OrderIn) -> models.Order:
        """Create an order after checking the student can pay for it.

        RFID orders only check the balance here; the deduction happens at
        pickup/completion. Card and UPI payments go through the simulated
        gateway and are `PAID` immediately.
        """
        vendor = self.vendor_repo.get(data.vendor_id)
        if not vendor or not vendor.is_active:
            raise NotFoundError("Vendor not found")
        snapshot, subtotal, tax, total = self._price_items(vendor.id, data.items)

        group = None
        if data.group_order_id is not None:
            group = self.group_repo.get(data.group_order_id)
            if not group:
                raise NotFoundError("Group order not found")
            if group.vendor_id != vendor.id:
                raise ValidationError("Group order is for a different vendor")
            if group.is_finalized or _aware(group.expires_at) < models.utcnow():
                raise ConflictError("Group order is closed")

        payment_status = models.PaymentStatus.PENDING
        reference = None
        if data.payment_method == models.PaymentMethod.RFID:
            if student.rfid_balance is None or student.rfid_balance + 1e-9 < total:
                raise ValidationError("Insufficient RFID balance")
        else:
            try:
                if data.payment_method == models.PaymentMethod.CARD:
                    if data.card is None:
                        raise gateway.PaymentDeclined("Card details are required")
                    reference = gateway.charge_card(data.card.card_number, data.card.expiry, data.card.cvv, total)
                else:
                    reference = gateway.charge_upi(data.upi_id, total)
            except gateway.PaymentDeclined as e:
                raise ValidationError(str(e))
            payment_status = models.PaymentStatus.PAID

        order = models.Order(
            order_number=self._new_order_number(),
            student_id=student.id,
            vendor_id=vendor.id,
            group_order_id=group.id if group else None,
            is_group_order=group is not None,
            items=snapshot,
            subtotal=subtotal,
            tax=tax,
            total_amount=total,
            payment_method=data.payment_method,
            payment_status=payment_status,
            payment_reference=reference,
            order_status=models.OrderStatus.PLACED,
            pickup_code=generate_pickup_code(),
        )
        return self.order_repo.create(order)

    def list_orders(self, user: models.User, status: Optional[models.OrderStatus] = None) -> List[models.Order]:
        if user.role == models.Role.STUDENT:
            return self.order_repo.list_filtered(student_id=user.id, status=status)
        if user.role == models.Role.VENDOR:
            vendor = self.vendor_repo.get_by_user(user.id)
            if not vendor:
                return []
            return self.order_repo.list_filtered(vendor_id=vendor.id, status=status)
        return self.order_repo.list_filtered(status=status)

    def _get(self, order_id: int) -> models.Order:
        order = self.order_repo.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_for(self, user: models.User, order_id: int) -> models.Order:
        """Return an order visible to `user` (owner, its vendor, or admin)."""
        order = self._get(order_id)
        if user.role == models.Role.ADMIN or order.student_id == user.id:
            return order
        if user.role == models.Role.VENDOR:
            vendor = self.vendor_repo.get_by_user(user.id)
            if vendor and vendor.id == order.vendor_id:
                return order
        raise PermissionDenied("Not allowed to view this order")

    def _get_for_staff(self, actor: models.User, order_id: int) -> models.Order:
        order = self._get(order_id)
        if actor.role == models.Role.ADMIN:
            return order
        if actor.role == models.Role.VENDOR:
            vendor = self.vendor_repo.get_by_user(actor.id)
            if vendor and vendor.id == order.vendor_id:
                return order
        raise PermissionDenied("Order belongs to another vendor")

    def _stage_refund(self, order: models.Order) -> None:
        if order.payment_method != models.PaymentMethod.RFID and order.payment_status == models.PaymentStatus.PAID:
            order.payment_status = models.PaymentStatus.REFUNDED

    def _commit_status(self, order: models.Order, status: models.OrderStatus) -> models.Order:
        tx = None
        if status in SETTLING_STATUSES:
            tx = self.payments.stage_rfid_settlement(order)
        if status == models.OrderStatus.CANCELLED:
            self._stage_refund(order)
        if status == models.OrderStatus.PICKED_UP and order.picked_up_at is None:
            order.picked_up_at = models.utcnow()
        order.order_status = status
        order.updated_at = models.utcnow()
        self.order_repo.stage(order)
        self.session.commit()
        self.session.refresh(order)
        if tx is not None:
            log_settlement(order, tx)
        return order

    def update_status(self, actor: models.User, order_id: int, status: models.OrderStatus) -> models.Order:
        """Move an order along the status machine, settling RFID payment on collection.

        Re-sending the current status is a no-op apart from settling an
        RFID order that is collected but still unpaid.
        """
        order = self._get_for_staff(actor, order_id)
        current = order.order_status
        if status == current:
            if status in SETTLING_STATUSES:
                self.payments.settle_rfid(order)
                self.session.refresh(order)
            return order
        if status not in ORDER_TRANSITIONS[current]:
            raise ConflictError(f"Cannot move order from {current.value} to {status.value}")
        return self._commit_status(order, status)

    def confirm_pickup(self, actor: models.User, order_id: int, pickup_code: str) -> models.Order:
        """Verify the pickup code, mark the order collected and settle payment."""
        order = self._get_for_staff(actor, order_id)
        if (pickup_code or "").strip() != order.pickup_code:
            raise ValidationError("Invalid pickup code")
        if order.order_status == models.OrderStatus.PICKED_UP:
            self.payments.settle_rfid(order)
            self.session.refresh(order)
            return order
        if order.order_status != models.OrderStatus.READY:
            raise ConflictError(f"Order is {order.order_status.value}, not ready for pickup")
        return self._commit_status(order, models.OrderStatus.PICKED_UP)

    def cancel(self, student: models.User, order_id: int) -> models.Order:
        order = self._get(order_id)
        if order.student_id != student.id:
            raise PermissionDenied("Not allowed to cancel this order")
        if order.order_status == models.OrderStatus.CANCELLED:
            return order
        if order.order_status != models.OrderStatus.PLACED:
            raise ConflictError("Order can only be cancelled before the vendor confirms it")
        return self._commit_status(order, models.OrderStatus.CANCELLED)

    def reconcile_unsettled(self) -> List[dict]:
        """Settle RFID orders that were collected without being marked `PAID`."""
        results = []
        for order in self.order_repo.list_unsettled_rfid():
            try:
                tx = self.payments.settle_rfid(order)
            except ConflictError as e:
                self.session.rollback()
                results.append({"order_number": order.order_number, "settled": False, "error": e.detail})
                continue
            results.append({
                "order_number": order.order_number,
                "settled": tx is not None,
                "amount": tx.amount if tx else 0.0,
                "new_balance": tx.new_balance if tx else None,
            })
        return results


class ReviewService:
    """Create reviews and keep vendor rating aggregates current."""
    def __init__(self, session: Session):
        self.session = session
        self.review_repo = repositories.ReviewRepository(session)
        self.order_repo = repositories.OrderRepository(session)
        self.vendor_repo = repositories.VendorRepository(session)

    def create(self, student: models.User, data: ReviewIn) -> models.Review:
        order = self.order_repo.get(data.order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.student_id != student.id:
            raise PermissionDenied("You can only review your own orders")
        if order.order_status not in SETTLING_STATUSES:
            raise ValidationError("Only collected orders can be reviewed")
        if self.review_repo.get_by_order(order.id):
            raise ConflictError("Order already reviewed")
        review = self.review_repo.create(models.Review(
            order_id=order.id,
            student_id=student.id,
            vendor_id=order.vendor_id,
            food_rating=data.food_rating,
            service_rating=data.service_rating,
            comment=data.comment or None,
            images=data.images or None,
        ))
        self._refresh_vendor_rating(order.vendor_id)
        return review

    def _refresh_vendor_rating(self, vendor_id: int) -> None:
        reviews = self.review_repo.list_for_vendor(vendor_id)
        vendor = self.vendor_repo.get(vendor_id)
        if not vendor or not reviews:
            return
        avg = sum((r.food_rating + r.service_rating) / 2 for r in reviews) / len(reviews)
        self.vendor_repo.update_rating(vendor, round(avg, 2), len(reviews))

    def list_for_vendor(self, vendor_id: int) -> List[models.Review]:
        return self.review_repo.list_for_vendor(vendor_id)


class GroupOrderService:
    """Shareable group orders that individual orders can attach to."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupOrderRepository(session)
        self.order_repo = repositories.OrderRepository(session)

    def create(self, user: models.User, data: GroupOrderIn) -> models.GroupOrder:
        if not repositories.VendorRepository(self.session).get(data.vendor_id):
            raise NotFoundError("Vendor not found")
        if data.participant_count < 1:
            raise ValidationError("participant_count must be at least 1")
        share_link = generate_share_link()
        while self.group_repo.get_by_share_link(share_link):
            share_link = generate_share_link()
        group = models.GroupOrder(
            creator_id=user.id,
            vendor_id=data.vendor_id,
            share_link=share_link,
            split_type=data.split_type,
            participant_count=data.participant_count,
            expires_at=models.utcnow() + timedelta(hours=settings.GROUP_ORDER_TTL_HOURS),
        )
        return self.group_repo.create(group)

    def list_for(self, user: models.User) -> List[models.GroupOrder]:
        return self.group_repo.list_for_creator(user.id)

    def get(self, group_id: int) -> models.GroupOrder:
        group = self.group_repo.get(group_id)
        if not group:
            raise NotFoundError("Group order not found")
        return group

    def get_by_link(self, share_link: str) -> models.GroupOrder:
        group = self.group_repo.get_by_share_link(share_link)
        if not group:
            raise NotFoundError("Group order not found")
        return group

    def _owned(self, user: models.User, group_id: int) -> models.GroupOrder:
        group = self.get(group_id)
        if group.creator_id != user.id:
            raise PermissionDenied("Only the creator can change this group order")
        return group

    def finalize(self, user: models.User, group_id: int) -> models.GroupOrder:
        group = self._owned(user, group_id)
        if not group.is_finalized:
            group.is_finalized = True
            self.group_repo.save(group)
        return group

    def delete(self, user: models.User, group_id: int) -> None:
        group = self._owned(user, group_id)
        if self.order_repo.count_for_group(group.id):
            raise ConflictError("Group order already has orders")
        self.group_repo.delete(group)


class OtpService:
    """Issue and verify one-time codes. Delivery is a log line only."""
    def __init__(self, session: Session, limiter: InMemoryRateLimiter):
        self.session = session
        self.otp_repo = repositories.OtpRepository(session)
        self.limiter = limiter

    @staticmethod
    def target_of(email: Optional[str], phone_number: Optional[str]) -> str:
        target = (email or "").strip().lower() or (phone_number or "").strip()
        if not target:
            raise ValidationError("Phone number or email is required")
        return target

    def send(self, target: str) -> dict:
        allowed, retry_after = self.limiter.allow(
            f"otp:{target}", settings.OTP_RATE_LIMIT_PER_MIN, settings.OTP_RATE_LIMIT_WINDOW_SECONDS
        )
        if not allowed:
            raise RateLimited(
                f"rate limit exceeded; retry after {retry_after}s",
                headers={"Retry-After": str(retry_after)},
            )
        code = generate_otp()
        otp = self.otp_repo.create(models.OtpCode(
            target=target,
            code=code,
            expires_at=models.utcnow() + timedelta(seconds=settings.OTP_TTL_SECONDS),
        ))
        otp_logger.info("otp_delivery %s", json.dumps({"target": target, "otp_id": otp.id, "mock": True}))
        out = {"success": True, "message": "OTP sent successfully", "expires_in": settings.OTP_TTL_SECONDS}
        if settings.is_dev:
            out["otp"] = code
        return out

    def verify(self, target: str, code: str) -> dict:
        if not code:
            raise ValidationError("OTP is required")
        otp = self.otp_repo.latest_active(target, models.utcnow())
        if otp is None:
            raise ValidationError("OTP expired or not found")
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            raise ValidationError("Too many attempts; request a new OTP")
        if otp.code != code.strip():
            otp.attempts += 1
            self.otp_repo.save(otp)
            raise ValidationError("Invalid OTP")
        otp.consumed = True
        self.otp_repo.save(otp)
        self.limiter.reset(f"otp:{target}")
        return {"success": True, "message": "OTP verified successfully"}
