from __future__ import annotations

import re

from services.api.app.db.models import MenuItem, Restaurant, User
from sqlalchemy.orm import Session

# (restaurant name, cuisine, [(menu item name, category, price in paise)])
SAMPLE_RESTAURANTS: list[tuple[str, str, list[tuple[str, str, int]]]] = [
    (
        "Wrapchik",
        "Rolls & Wraps",
        [("Paneer Wrap", "Wraps", 12000), ("Chicken Tikka Roll", "Rolls", 14000)],
    ),
    (
        "pizza nation",
        "Italian Pizza",
        [("Margherita Pizza", "Pizzas", 32000), ("Pepperoni Pizza", "Pizzas", 38000)],
    ),
    (
        "dessert club",
        "Desserts & Sweets",
        [("Chocolate Lava Cake", "Cakes", 15000), ("Rasmalai", "Sweets", 12000)],
    ),
    (
        "honey cafe",
        "Cafe & Snacks",
        [("Cappuccino", "Coffee", 10000), ("Veg Club Sandwich", "Snacks", 12000)],
    ),
    (
        "sips and bites",
        "Beverages & Fast Food",
        [("Oreo Shake", "Shakes", 12000), ("Veg Burger", "Fast Food", 9000)],
    ),
    (
        "chilli chatkara",
        "Indian Street Food",
        [("Pav Bhaji", "Street Food", 11000), ("Chole Bhature", "Street Food", 13000)],
    ),
]

STUDENT_ID = "student-1"
ADMIN_ID = "admin-1"


def slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def owner_id(index: int) -> str:
    return f"owner-{index + 1}"


def restaurant_id(name: str) -> str:
    return f"rest-{slug(name)}"


def menu_item_id(name: str) -> str:
    return f"item-{slug(name)}"


def seed_sample_data(db: Session) -> dict[str, int]:
    """Insert the sample users, restaurants and menu items. Safe to run twice.

    Ids are derived from names so integration tests can reference them directly.
    """

    created = {"users": 0, "restaurants": 0, "menu_items": 0}

    for uid, name, email, role in (
        (STUDENT_ID, "Student 1", "student1@grub.com", "user"),
        (ADMIN_ID, "Admin", "admin@grub.com", "admin"),
    ):
        if db.get(User, uid) is None:
            db.add(User(id=uid, name=name, email=email, role=role))
            created["users"] += 1

    for index, (name, cuisine, items) in enumerate(SAMPLE_RESTAURANTS):
        oid = owner_id(index)
        if db.get(User, oid) is None:
            db.add(
                User(
                    id=oid,
                    name=f"Owner{index + 1}",
                    email=f"owner{index + 1}@grub.com",
                    role="restaurant_owner",
                )
            )
            created["users"] += 1

        rid = restaurant_id(name)
        if db.get(Restaurant, rid) is None:
            db.add(
                Restaurant(
                    id=rid,
                    owner_id=oid,
                    name=name,
                    cuisine=cuisine,
                    status="approved",
                    is_open=True,
                )
            )
            created["restaurants"] += 1

        for item_name, category, price_cents in items:
            mid = menu_item_id(item_name)
            if db.get(MenuItem, mid) is None:
                db.add(
                    MenuItem(
                        id=mid,
                        restaurant_id=rid,
                        name=item_name,
                        category=category,
                        price_cents=price_cents,
                        is_available=True,
                    )
                )
                created["menu_items"] += 1

    db.commit()
    return created
