"""Seed the product catalog with common Indian medicines and a few suppliers.

Usage (from backend/): python seed_inventory.py
Existing SKUs are left untouched, so the script can be re-run.
"""
from decimal import Decimal

from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.models.product import Product
from app.models.supplier import Supplier

SUPPLIERS = [
    ("Sun Pharma", "+91 98200 11111"),
    ("Cipla Dist.", "+91 98200 22222"),
    ("Dr. Reddy Supply", "+91 98200 33333"),
]

# brand, generic, strength, form, schedule, gst%, mrp, stock, min_stock
DRUGS = [
    ("Dolo", "Paracetamol", "650mg", "TAB", "OTC", 12, "30.91", 240, 50),
    ("Calpol", "Paracetamol", "500mg", "TAB", "OTC", 12, "15.50", 8, 30),
    ("Augmentin", "Amoxicillin + Clav", "625mg", "TAB", "H", 12, "223.40", 40, 20),
    ("Azithral", "Azithromycin", "500mg", "TAB", "H", 12, "119.50", 0, 15),
    ("Pan", "Pantoprazole", "40mg", "TAB", "H", 12, "155.00", 90, 25),
    ("Omez", "Omeprazole", "20mg", "CAP", "H", 12, "62.30", 12, 20),
    ("Allegra", "Fexofenadine", "120mg", "TAB", "H", 12, "235.00", 35, 10),
    ("Ascoril", "Terbutaline + Bromhexine", "100ml", "SYR", "H", 12, "118.00", 5, 10),
    ("Volini", "Diclofenac", "30g", "CRM", "OTC", 18, "145.00", 25, 10),
    ("Shelcal", "Calcium + Vit D3", "500mg", "TAB", "OTC", 18, "126.00", 60, 20),
    ("Telma", "Telmisartan", "40mg", "TAB", "H", 12, "223.00", 45, 20),
    ("Glycomet", "Metformin", "500mg", "TAB", "H", 12, "32.00", 150, 40),
    ("Alprax", "Alprazolam", "0.5mg", "TAB", "H1", 12, "41.00", 20, 10),
    ("Monocef", "Ceftriaxone", "1g", "INJ", "H", 12, "65.00", 3, 10),
    ("Electral", "ORS", "21g", "PWD", "OTC", 5, "22.00", 200, 50),
]


def _sku(brand: str, strength: str, form: str) -> str:
    return f"{brand}-{strength}-{form}".upper().replace(" ", "")


def seed_inventory():
    init_db()
    db = SessionLocal()
    try:
        suppliers = []
        for name, phone in SUPPLIERS:
            supplier = db.query(Supplier).filter(Supplier.name == name).first()
            if not supplier:
                supplier = Supplier(name=name, phone=phone)
                db.add(supplier)
                db.flush()
            suppliers.append(supplier)

        created = 0
        for index, (brand, generic, strength, form, schedule, gst, mrp, stock, min_stock) in enumerate(DRUGS):
            sku = _sku(brand, strength, form)
            if db.query(Product).filter(Product.sku == sku).first():
                continue
            db.add(Product(
                sku=sku,
                brand=brand,
                generic=generic,
                strength=strength,
                form=form,
                schedule=schedule,
                gst_percent=gst,
                mrp=Decimal(mrp),
                stock=stock,
                min_stock=min_stock,
                supplier_id=suppliers[index % len(suppliers)].id,
            ))
            created += 1

        db.commit()
        print(f"✅ Seeded {created} products ({len(DRUGS) - created} already present)")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory()
