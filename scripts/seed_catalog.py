"""
Seed a small demo catalog (categories + products). Skips any SKU that already exists.

Usage:
  python scripts/seed_catalog.py
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.storefront.models import Category, Product, ProductImage
from app.storefront.utils import slugify
from scripts._db_utils import script_session

_IMG = "https://images.unsplash.com/photo-{}?w=1200&q=80"

DEMO_CATEGORIES = (
    ("Power Tools", "Drills, drivers, grinders and saws."),
    ("Measuring Tools", "Levels, lasers and distance measures."),
)

# name, category, price, original_price, badge, rating, reviews, sku, featured, new, image ids
DEMO_PRODUCTS = (
    ("Professional Cordless Drill Kit", "Power Tools", "249.99", "299.99", "Best Seller", "4.8", 342, "DRL-PRO-2024", True, False,
     ("1504148455328-c376907d081c", "1581092160562-40aa08e78837")),
    ("Precision Angle Grinder", "Power Tools", "179.99", None, "Pro Grade", "4.6", 189, "ANG-GRND-PRO", True, False,
     ("1581092160562-40aa08e78837",)),
    ("Heavy Duty Hammer Drill", "Power Tools", "329.99", "399.99", "Heavy Duty", "4.9", 276, "HMR-DRL-HD", True, False,
     ("1530124566582-a618bc2615dc",)),
    ("Multi-Tool Oscillating Set", "Power Tools", "199.99", None, "Versatile", "4.7", 158, "MLT-OSC-PRO", True, False,
     ("1572981779307-38b8cabb2407",)),
    ("Professional Jigsaw", "Power Tools", "159.99", "189.99", None, "4.5", 124, "JGS-PRO-001", True, False,
     ("1590587784838-ce8ec8c0b8dd",)),
    ("Compact Impact Driver", "Power Tools", "149.99", None, "New Arrival", "4.6", 89, "IMP-DRV-CMP", False, True,
     ("1513828583688-c52646db42da",)),
    ("Laser Distance Measure", "Measuring Tools", "89.99", None, "New Arrival", "4.8", 203, "LSR-DST-001", False, True,
     ("1581092918056-0c4c3acd3789",)),
    ("Digital Level Pro", "Measuring Tools", "119.99", None, "New Arrival", "4.7", 167, "DIG-LVL-PRO", False, True,
     ("1504148455328-c376907d081c",)),
)


def seed_catalog(*, database_url: str | None = None, stock: int = 25) -> int:
    created = 0
    with script_session(database_url) as s:
        cats: dict[str, Category] = {}
        for name, description in DEMO_CATEGORIES:
            c = s.query(Category).filter(Category.name == name).one_or_none()
            if not c:
                c = Category(name=name, slug=slugify(name), description=description)
                s.add(c)
                s.flush()
            cats[name] = c

        for name, cat, price, original, badge, rating, reviews, sku, featured, new, images in DEMO_PRODUCTS:
            if s.query(Product).filter(Product.sku == sku).one_or_none():
                continue
            p = Product(
                name=name,
                sku=sku,
                price=Decimal(price),
                original_price=Decimal(original) if original else None,
                badge=badge,
                rating=Decimal(rating),
                review_count=reviews,
                stock=stock,
                is_featured=featured,
                is_new=new,
                category=cats[cat],
            )
            p.images = [ProductImage(url=_IMG.format(img), position=i) for i, img in enumerate(images)]
            s.add(p)
            created += 1

    print(f"Seeded demo catalog: {created} new product(s).")
    return created


def main() -> None:
    seed_catalog(database_url=None)


if __name__ == "__main__":
    main()
