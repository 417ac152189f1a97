"""Demo data: students with RFID balances, four campus outlets and an admin.

`seed_demo_data` is idempotent; accounts are matched by email so it can
be re-run against an existing database (and from tests) safely.
"""

from typing import Dict
from sqlmodel import Session

from . import models, repositories
from .services import PWD_CTX

STUDENT_PASSWORD = "student123"
VENDOR_PASSWORD = "vendor123"
ADMIN_PASSWORD = "admin123"

STUDENTS = [
    ("john.doe@mec.edu", "John Doe", "9876543210", "1234567890", 500.0),
    ("jane.smith@mec.edu", "Jane Smith", "9876543211", "0987654321", 750.0),
    ("alex.kumar@mec.edu", "Alex Kumar", "9876543212", "1122334455", 300.0),
]

VENDORS = [
    {
        "email": "canteen@mec.edu",
        "manager": "Campus Canteen Manager",
        "phone": "9876543220",
        "shop_name": "Campus Canteen",
        "description": "Authentic North & South Indian cuisine, perfect for lunch and dinner",
        "average_rating": 4.5,
        "total_reviews": 128,
        "opening_hours": "7:00 AM - 9:00 PM",
        "menu": [
            ("Veg Biryani", "Aromatic basmati rice cooked with mixed vegetables and spices", 80, "LUNCH", 20),
            ("Paneer Butter Masala", "Rich and creamy cottage cheese curry", 120, "LUNCH", 15),
            ("Masala Dosa", "Crispy rice crepe filled with spiced potato filling", 40, "BREAKFAST", 15),
            ("Idli Sambar", "Steamed rice cakes served with lentil curry", 30, "BREAKFAST", 10),
            ("Chai Tea", "Traditional Indian spiced tea", 10, "BEVERAGES", 2),
        ],
    },
    {
        "email": "quickbites@mec.edu",
        "manager": "Quick Bites Manager",
        "phone": "9876543221",
        "shop_name": "Quick Bites",
        "description": "Fast food favorites - Burgers, Sandwiches, and more!",
        "average_rating": 4.2,
        "total_reviews": 95,
        "opening_hours": "8:00 AM - 8:00 PM",
        "menu": [
            ("Veg Burger", "Grilled veggie patty with fresh lettuce and tomatoes", 50, "SNACKS", 8),
            ("Cheese Sandwich", "Grilled sandwich loaded with cheese", 40, "SNACKS", 5),
            ("French Fries", "Crispy salted fries", 45, "SNACKS", 6),
        ],
    },
    {
        "email": "juice@mec.edu",
        "manager": "Juice Junction Manager",
        "phone": "9876543222",
        "shop_name": "Juice Junction",
        "description": "Fresh juices, smoothies, and healthy drinks",
        "average_rating": 4.7,
        "total_reviews": 76,
        "opening_hours": "7:00 AM - 7:00 PM",
        "menu": [
            ("Orange Juice", "Freshly squeezed oranges", 40, "BEVERAGES", 3),
            ("Mango Smoothie", "Alphonso mango blended with yogurt", 70, "BEVERAGES", 5),
        ],
    },
    {
        "email": "dosa@mec.edu",
        "manager": "Dosa Point Manager",
        "phone": "9876543223",
        "shop_name": "Dosa Point",
        "description": "Crispy dosas and South Indian breakfast specialties",
        "average_rating": 4.6,
        "total_reviews": 142,
        "opening_hours": "6:00 AM - 11:00 AM",
        "menu": [
            ("Ghee Roast Dosa", "Paper-thin dosa roasted in ghee", 60, "BREAKFAST", 10),
            ("Medu Vada", "Crispy lentil fritters with chutney", 35, "BREAKFAST", 8),
        ],
    },
]

ADMIN = ("admin@mec.edu", "System Administrator", "9876543230")


def _ensure_user(users: repositories.UserRepository, email: str, password: str, role: models.Role, **fields) -> models.User:
    existing = users.get_by_email(email)
    if existing:
        return existing
    return users.create(models.User(email=email, password_hash=PWD_CTX.hash(password), role=role, **fields))


def seed_demo_data(session: Session) -> Dict[str, int]:
    """Create the demo accounts, shops and menus that are missing."""
    users = repositories.UserRepository(session)
    vendors = repositories.VendorRepository(session)
    items = repositories.MenuItemRepository(session)
    created = {"users": 0, "vendors": 0, "menu_items": 0}

    before = len(users.list_all())
    for email, name, phone, rfid, balance in STUDENTS:
        _ensure_user(
            users, email, STUDENT_PASSWORD, models.Role.STUDENT,
            full_name=name, phone_number=phone, rfid_number=rfid, rfid_balance=balance, is_campus_student=True,
        )
    _ensure_user(users, ADMIN[0], ADMIN_PASSWORD, models.Role.ADMIN, full_name=ADMIN[1], phone_number=ADMIN[2])

    for entry in VENDORS:
        owner = _ensure_user(
            users, entry["email"], VENDOR_PASSWORD, models.Role.VENDOR,
            full_name=entry["manager"], phone_number=entry["phone"],
        )
        vendor = vendors.get_by_user(owner.id)
        if vendor:
            continue
        vendor = vendors.create(models.Vendor(
            user_id=owner.id,
            shop_name=entry["shop_name"],
            description=entry["description"],
            average_rating=entry["average_rating"],
            total_reviews=entry["total_reviews"],
            opening_hours=entry["opening_hours"],
        ))
        created["vendors"] += 1
        for name, description, price, category, prep in entry["menu"]:
            items.create(models.MenuItem(
                vendor_id=vendor.id,
                name=name,
                description=description,
                price=float(price),
                category=models.MenuCategory(category),
                preparation_time=prep,
            ))
            created["menu_items"] += 1
    created["users"] = len(users.list_all()) - before
    return created
