"""Local demo data: ``python -m app.seed``.

Creates the admin profile only when no admin exists yet, a team profile, and
the Electronics and Mechanical categories with a few parts each. Safe to run
repeatedly.
"""
import time
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core_settings import get_settings
from app.domain.models import Category, Part, Profile
from app.domain.status import ProfileRole

MAX_ATTEMPTS = 30
SLEEP_SECONDS = 2

ADMIN = {"external_id": "admin", "username": "admin", "role": ProfileRole.ADMIN.value}
TEAM = {"external_id": "team-1", "username": "team1", "role": ProfileRole.TEAM.value}

CATEGORIES = [
    {"name": "Electronics", "description": "Electronic components", "checkout_limit": 10},
    {"name": "Mechanical", "description": "Mechanical parts", "checkout_limit": 15},
]

PARTS = {
    "Electronics": [
        {"name": "Arduino Uno", "quantity": 12, "barcode": "EL-0001"},
        {"name": "Resistor Pack", "quantity": 3, "barcode": "EL-0002"},
        {"name": "Servo Motor", "quantity": 8, "barcode": "EL-0003"},
    ],
    "Mechanical": [
        {"name": "M3 Screw Set", "quantity": 40, "barcode": "ME-0001"},
        {"name": "Aluminium Extrusion 20x20", "quantity": 0, "barcode": "ME-0002"},
    ],
}

def bootstrap_admin(db: Session) -> bool:
    """Create the default admin profile if there is no admin. Returns True when created."""
    exists = db.query(Profile.id).filter(Profile.role == ProfileRole.ADMIN.value).first()
    if exists:
        return False
    db.add(Profile(**ADMIN))
    db.commit()
    return True

def seed_demo_data(db: Session) -> dict:
    created = {"admin": bootstrap_admin(db), "profiles": 0, "categories": 0, "parts": 0}

    if not db.query(Profile).filter(Profile.external_id == TEAM["external_id"]).first():
        db.add(Profile(**TEAM))
        created["profiles"] += 1

    for data in CATEGORIES:
        category = db.query(Category).filter(Category.name == data["name"]).first()
        if not category:
            category = Category(**data)
            db.add(category)
            db.flush()
            created["categories"] += 1
        for part in PARTS.get(data["name"], []):
            if not db.query(Part).filter(Part.barcode == part["barcode"]).first():
                db.add(Part(category_id=category.id, **part))
                created["parts"] += 1

    db.commit()
    return created

def main():
    from app.auth_local import create_access_token
    from app.infrastructure.db import SessionLocal, init_models

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            init_models()
            break
        except OperationalError as e:
            print(f"DB not ready (attempt {attempt}): {e}")
            time.sleep(SLEEP_SECONDS)
    else:
        raise SystemExit("Database not ready after max attempts")

    with SessionLocal() as db:
        created = seed_demo_data(db)
    print(f"Seeded {get_settings().database_url.split('@')[-1]}: {created}")
    print(f"Admin token: {create_access_token(ADMIN['external_id'], expires_minutes=24 * 60)}")
    print(f"Team token:  {create_access_token(TEAM['external_id'], expires_minutes=24 * 60)}")

if __name__ == "__main__":
    main()
