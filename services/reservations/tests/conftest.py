import os
import tempfile

# Must be set before app modules read settings
_tmpdir = tempfile.mkdtemp(prefix="reservations-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'reservations.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, func

from app.main import app
from app.auth_local import create_access_token
from app.infrastructure.db import engine, SessionLocal
from app.domain.models import Base, Category, Part, Profile, LedgerEntry


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def electronics(db):
    category = Category(id=1, name="Electronics", description="Electronic components", checkout_limit=10)
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def resistor_pack(db, electronics):
    part = Part(id=5, category_id=electronics.id, name="Resistor Pack", quantity=3, barcode="EL-0002")
    db.add(part)
    db.commit()
    return part


@pytest.fixture
def arduino(db, electronics):
    part = Part(id=6, category_id=electronics.id, name="Arduino Uno", quantity=30, barcode="EL-0001")
    db.add(part)
    db.commit()
    return part


@pytest.fixture
def team_profile(db):
    profile = Profile(external_id="team-1", username="team1", role="team")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def other_team_profile(db):
    profile = Profile(external_id="team-2", username="team2", role="team")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def admin_profile(db):
    profile = Profile(external_id="admin", username="admin", role="admin")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def client():
    return TestClient(app)


def auth_headers(profile_or_subject):
    subject = getattr(profile_or_subject, "external_id", profile_or_subject)
    return {"Authorization": f"Bearer {create_access_token(subject)}"}


def stock(part_id):
    """Current quantity straight from the database."""
    with SessionLocal() as session:
        return session.execute(select(Part.quantity).where(Part.id == part_id)).scalar_one()


def entry_count(part_id=None, status=None):
    with SessionLocal() as session:
        query = select(func.count(LedgerEntry.id))
        if part_id is not None:
            query = query.where(LedgerEntry.part_id == part_id)
        if status is not None:
            query = query.where(LedgerEntry.status == status)
        return session.execute(query).scalar_one()
