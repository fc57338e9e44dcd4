from sqlalchemy.orm import Session, joinedload
from typing import Optional
from app.domain.models import Category, Part, Profile, LedgerEntry
from app.domain.status import ReservationStatus
from app.domain.errors import CategoryNotFound, EntryNotFound, Forbidden, InvalidStatus
from app.core_settings import get_settings

class ProfileService:
    def __init__(self, db: Session):
        self.db = db

    def find_by_external_identity(self, external_id: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.external_id == external_id).first()

    def find_by_id(self, profile_id: int) -> Optional[Profile]:
        return self.db.get(Profile, profile_id)

class CatalogService:
    def __init__(self, db: Session, low_stock_threshold: Optional[int] = None):
        self.db = db
        if low_stock_threshold is None:
            low_stock_threshold = get_settings().LOW_STOCK_THRESHOLD
        self.low_stock_threshold = low_stock_threshold

    def list_categories(self):
        return self.db.query(Category).order_by(Category.name).all()

    def stock_status(self, quantity: int) -> str:
        if quantity <= 0:
            return "out-of-stock"
        if quantity <= self.low_stock_threshold:
            return "low-stock"
        return "available"

    def list_parts(self, category_id: int) -> list[dict]:
        if self.db.get(Category, category_id) is None:
            raise CategoryNotFound(category_id)
        parts = self.db.query(Part).filter(Part.category_id == category_id).order_by(Part.name).all()
        return [
            {
                "id": part.id,
                "category_id": part.category_id,
                "name": part.name,
                "description": part.description,
                "quantity": part.quantity,
                "barcode": part.barcode,
                "image_url": part.image_url,
                "stock_status": self.stock_status(part.quantity),
            }
            for part in parts
        ]

class ReservationQueryService:
    """Ledger reads. Team profiles only ever see their own entries."""

    def __init__(self, db: Session):
        self.db = db

    def list(self, caller: Profile, profile_id: Optional[int] = None, status: Optional[str] = None):
        query = self.db.query(LedgerEntry).options(joinedload(LedgerEntry.part))
        if not caller.is_admin:
            profile_id = caller.id
        if profile_id is not None:
            query = query.filter(LedgerEntry.profile_id == profile_id)
        if status is not None:
            try:
                query = query.filter(LedgerEntry.status == ReservationStatus(status).value)
            except ValueError:
                raise InvalidStatus(status)
        return query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc()).all()

    def get(self, caller: Profile, entry_id: int) -> LedgerEntry:
        entry = self.db.get(LedgerEntry, entry_id, options=[joinedload(LedgerEntry.part)])
        if entry is None:
            raise EntryNotFound(entry_id)
        if not caller.is_admin and entry.profile_id != caller.id:
            raise Forbidden()
        return entry
