"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the CampusEats ordering
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses.

Endpoints implemented:
- POST /auth/signup, POST /auth/login
- GET|PUT /users/me, GET /users (admin)
- GET /vendors, GET /vendors/{vendor_id}/menu, GET /menu/recommended
- POST /menu-items, PUT|DELETE /menu-items/{item_id} (vendor)
- POST|GET /orders, GET /orders/{order_id}
- PATCH /orders/{order_id}/status, POST /orders/{order_id}/pickup (vendor/admin)
- POST /orders/{order_id}/cancel (student)
- GET /balance, GET /transactions (student), POST /rfid/credit (admin)
- POST|GET /reviews
- POST|GET /group-orders, GET /group-orders/{id}, GET /group-orders/share/{link},
  POST /group-orders/{id}/finalize, DELETE /group-orders/{id}
- POST /otp/send, POST /otp/verify
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
from typing import Optional
import json
import logging
import os
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, models, repositories
from .auth import get_current_user, require_admin, require_staff, require_student, require_vendor
from .schemas import (
    GroupOrderIn,
    LoginIn,
    MenuItemIn,
    MenuItemUpdate,
    OrderIn,
    OtpSendIn,
    OtpVerifyIn,
    PickupIn,
    ProfileUpdate,
    ReviewIn,
    RfidCreditIn,
    SignupIn,
    StatusUpdate,
)
from .utils.rate_limit import InMemoryRateLimiter
from .config import settings

app = FastAPI(title="CampusEats API")
logger = logging.getLogger("campuseats.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_otp_rate_limiter = InMemoryRateLimiter()

# paths whose requests are logged as structured lines
_AUDITED_PREFIXES = ("/orders", "/rfid", "/balance", "/transactions")

# open CORS for local frontends; set ALLOW_DEV_CORS=false to disable
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.exception_handler(services.ServiceError)
async def service_error_handler(request: Request, exc: services.ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    audited = request.url.path.startswith(_AUDITED_PREFIXES)
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if audited:
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


def _order_out(order: models.Order) -> dict:
    out = order.model_dump()
    vendor = order.vendor
    out["vendor"] = {"id": vendor.id, "shop_name": vendor.shop_name} if vendor else None
    return out


def _group_out(group: models.GroupOrder, with_orders: bool = False) -> dict:
    out = group.model_dump()
    if with_orders:
        out["orders"] = [_order_out(o) for o in group.orders]
    return out


@app.post('/auth/signup')
def signup(payload: SignupIn, db: Session = Depends(get_session)):
    """Register a student account.

    Campus students must sign up with the campus email domain and their
    RFID card number; everyone else supplies a college email instead.
    """
    user = services.AuthService(db).signup(payload)
    return {'success': True, 'message': 'User registered successfully', 'user': services.public_user(user)}


@app.post('/auth/login')
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id`, `email` and `role` (and
    `vendor_id` for vendor accounts) and is signed using the configured
    JWT secret.
    """
    auth = services.AuthService(db)
    user = auth.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': auth.issue_token(user), 'token_type': 'bearer', 'role': user.role.value}


@app.get('/users/me')
def get_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return services.ProfileService(db).get_profile(user)


@app.put('/users/me')
def update_profile(changes: ProfileUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update the caller's name, phone number or username."""
    return services.ProfileService(db).update_profile(user, changes)


@app.get('/users')
def list_users(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    """List every account, newest first, without password hashes."""
    return [services.public_user(u) for u in repositories.UserRepository(db).list_all()]


@app.get('/vendors')
def list_vendors(db: Session = Depends(get_session)):
    return services.MenuService(db).list_vendors()


@app.get('/vendors/{vendor_id}/menu')
def vendor_menu(vendor_id: int, db: Session = Depends(get_session)):
    """Return a vendor's full menu, including items marked unavailable."""
    return services.MenuService(db).get_menu(vendor_id)


@app.get('/menu/recommended')
def recommended_items(db: Session = Depends(get_session)):
    """Top recommended dishes across all vendors."""
    data = services.MenuService(db).recommended()
    return {'success': True, 'data': data, 'total': len(data)}


@app.post('/menu-items')
def create_menu_item(payload: MenuItemIn, db: Session = Depends(get_session), user: models.User = Depends(require_vendor)):
    return services.MenuService(db).create_item(user, payload)


@app.put('/menu-items/{item_id}')
def update_menu_item(item_id: int, payload: MenuItemUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_vendor)):
    return services.MenuService(db).update_item(user, item_id, payload)


@app.delete('/menu-items/{item_id}')
def delete_menu_item(item_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_vendor)):
    services.MenuService(db).delete_item(user, item_id)
    return {'success': True}


@app.post('/orders')
def place_order(payload: OrderIn, db: Session = Depends(get_session), user: models.User = Depends(require_student)):
    """Place an order for the authenticated student.

    Totals are computed from the current menu prices plus tax. RFID
    orders only need enough balance now; the balance is charged when the
    order is picked up or completed.
    """
    order = services.OrderService(db).place_order(user, payload)
    return _order_out(order)


@app.get('/orders')
def list_orders(status: Optional[models.OrderStatus] = None, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List orders visible to the caller: own (student), shop (vendor) or all (admin)."""
    return [_order_out(o) for o in services.OrderService(db).list_orders(user, status)]


@app.get('/orders/{order_id}')
def get_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _order_out(services.OrderService(db).get_for(user, order_id))


@app.patch('/orders/{order_id}/status')
def update_order_status(order_id: int, payload: StatusUpdate, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    """Advance an order's status.

    Moving an RFID order to `PICKED_UP` or `COMPLETED` deducts the
    student's balance once and marks the payment `PAID`.
    """
    order = services.OrderService(db).update_status(user, order_id, payload.status)
    return {'success': True, 'order': _order_out(order)}


@app.post('/orders/{order_id}/pickup')
def confirm_pickup(order_id: int, payload: PickupIn, db: Session = Depends(get_session), user: models.User = Depends(require_staff)):
    """Confirm collection with the student's pickup code."""
    order = services.OrderService(db).confirm_pickup(user, order_id, payload.pickup_code)
    return _order_out(order)


@app.post('/orders/{order_id}/cancel')
def cancel_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(require_student)):
    order = services.OrderService(db).cancel(user, order_id)
    return _order_out(order)


@app.get('/balance')
def get_balance(db: Session = Depends(get_session), user: models.User = Depends(require_student)):
    return services.PaymentService(db).balance(user)


@app.get('/transactions')
def list_transactions(db: Session = Depends(get_session), user: models.User = Depends(require_student)):
    """Return the caller's RFID ledger, newest first."""
    return services.PaymentService(db).history(user)


@app.post('/rfid/credit')
def credit_rfid(payload: RfidCreditIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    """Top up the balance of the student holding `rfid_number`."""
    logger.info("rfid_credit_requested %s", json.dumps({"admin": admin.email, "rfid": payload.rfid_number}))
    result = services.PaymentService(db).credit(payload.rfid_number, payload.amount)
    return {'success': True, 'user': result}


@app.post('/reviews')
def create_review(payload: ReviewIn, db: Session = Depends(get_session), user: models.User = Depends(require_student)):
    """Review a collected order; the vendor's average rating is recomputed."""
    return services.ReviewService(db).create(user, payload)


@app.get('/reviews')
def list_reviews(vendor_id: Optional[int] = None, db: Session = Depends(get_session)):
    if vendor_id is None:
        raise HTTPException(status_code=400, detail='Vendor ID required')
    return services.ReviewService(db).list_for_vendor(vendor_id)


@app.post('/group-orders')
def create_group_order(payload: GroupOrderIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _group_out(services.GroupOrderService(db).create(user, payload))


@app.get('/group-orders')
def list_group_orders(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [_group_out(g) for g in services.GroupOrderService(db).list_for(user)]


@app.get('/group-orders/share/{share_link}')
def get_group_order_by_link(share_link: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _group_out(services.GroupOrderService(db).get_by_link(share_link), with_orders=True)


@app.get('/group-orders/{group_id}')
def get_group_order(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _group_out(services.GroupOrderService(db).get(group_id), with_orders=True)


@app.post('/group-orders/{group_id}/finalize')
def finalize_group_order(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return _group_out(services.GroupOrderService(db).finalize(user, group_id))


@app.delete('/group-orders/{group_id}')
def delete_group_order(group_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.GroupOrderService(db).delete(user, group_id)
    return {'success': True, 'group_order_id': group_id}


@app.post('/otp/send')
def send_otp(payload: OtpSendIn, db: Session = Depends(get_session)):
    """Issue a 6-digit code. Delivery is mocked; in dev the code is echoed back."""
    svc = services.OtpService(db, _otp_rate_limiter)
    return svc.send(svc.target_of(payload.email, payload.phone_number))


@app.post('/otp/verify')
def verify_otp(payload: OtpVerifyIn, db: Session = Depends(get_session)):
    svc = services.OtpService(db, _otp_rate_limiter)
    return svc.verify(svc.target_of(payload.email, payload.phone_number), payload.otp)


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>CampusEats API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>CampusEats API</h1>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/vendors">Vendors</a></li>
          <li><a href="/menu/recommended">Recommended dishes</a></li>
        </ul>
        <p>Use <code>/auth/signup</code> + <code>/auth/login</code> to get a token, then place orders with <code>/orders</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
