"""Reservation ledger: turns a checkout batch into stock decrements and
ledger entries.

Each checked-out unit is its own transaction: a conditional
``UPDATE parts SET quantity = quantity - 1 WHERE id = :id AND quantity > 0``
followed by the insert of its ``reserved`` entry, committed together. The
database serializes concurrent decrements of the same row, so no lock or
cached quantity lives in this process. Units committed before a failure stay
committed; the batch is not rolled back as a whole.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.core import get_logger
from app.domain.models import Part, LedgerEntry
from app.application.service import ProfileService
from app.domain.status import ReservationStatus
from app.domain.errors import (
    ProfileNotFound,
    PartNotFound,
    InvalidQuantity,
    CheckoutLimitExceeded,
    OutOfStock,
    StoreError,
)

logger = get_logger(__name__)

LineItem = Tuple[int, int]

@dataclass
class CheckoutResult:
    entry_ids: List[int] = field(default_factory=list)

    @property
    def units_checked_out(self) -> int:
        return len(self.entry_ids)

def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1

class LedgerService:
    def __init__(self, db: Session):
        self.db = db

    def checkout(
        self,
        caller_profile_id: int,
        items: Iterable[Sequence],
        notes: Optional[str] = None,
    ) -> CheckoutResult:
        """Check out ``items`` (``(part_id, quantity)`` pairs) for the caller.

        All validation happens before the first decrement. Raises
        ``OutOfStock`` or ``StoreError`` mid-batch with the units already
        committed; a resubmitted batch is a new batch (no deduplication).
        """
        lines: List[LineItem] = [(item[0], item[1]) for item in items]

        profile = ProfileService(self.db).find_by_id(caller_profile_id)
        if profile is None:
            raise ProfileNotFound()
        self._validate(lines)

        total = sum(quantity for _, quantity in lines)
        logger.info(
            f"Processing checkout of {total} unit(s) for profile {profile.id}",
            extra={'extra_fields': {
                'profile_id': profile.id,
                'items': [{'part_id': p, 'quantity': q} for p, q in lines],
            }}
        )

        result = CheckoutResult()
        completed: List[LineItem] = []
        for part_id, quantity in lines:
            done = 0
            for _ in range(quantity):
                try:
                    entry_id = self._reserve_unit(part_id, profile.id, notes)
                except SQLAlchemyError as e:
                    logger.error(
                        f"Store failure on part {part_id} after {len(result.entry_ids)} unit(s)",
                        exc_info=True,
                        extra={'extra_fields': {
                            'part_id': part_id,
                            'units_completed_so_far': len(result.entry_ids),
                        }}
                    )
                    raise StoreError(part_id, result.entry_ids, _with_partial(completed, part_id, done), cause=e) from e
                if entry_id is None:
                    part_name = self.db.query(Part.name).filter(Part.id == part_id).scalar()
                    logger.warning(
                        f"Out of stock on part {part_id} after {len(result.entry_ids)} unit(s)",
                        extra={'extra_fields': {
                            'part_id': part_id,
                            'units_completed_so_far': len(result.entry_ids),
                        }}
                    )
                    raise OutOfStock(part_id, result.entry_ids, _with_partial(completed, part_id, done), part_name)
                result.entry_ids.append(entry_id)
                done += 1
            completed.append((part_id, done))

        logger.info(
            f"Checkout completed: {result.units_checked_out} unit(s)",
            extra={'extra_fields': {'profile_id': profile.id, 'entry_ids': result.entry_ids}}
        )
        return result

    def _validate(self, lines: List[LineItem]) -> None:
        totals = {}
        limits = {}
        for part_id, quantity in lines:
            part = self.db.get(Part, part_id)
            if part is None:
                raise PartNotFound(part_id)
            if not _is_positive_int(quantity):
                raise InvalidQuantity(part_id, quantity)
            totals[part.category_id] = totals.get(part.category_id, 0) + quantity
            limits[part.category_id] = part.category.checkout_limit
        for category_id, requested in totals.items():
            if requested > limits[category_id]:
                raise CheckoutLimitExceeded(category_id, limits[category_id], requested)

    def _reserve_unit(self, part_id: int, profile_id: int, notes: Optional[str]) -> Optional[int]:
        """One atomic step. Returns the new entry id, or None when the part had no stock."""
        try:
            decremented = self.db.execute(
                update(Part)
                .where(Part.id == part_id, Part.quantity > 0)
                .values(quantity=Part.quantity - 1),
                execution_options={"synchronize_session": False},
            )
            if decremented.rowcount == 0:
                self.db.rollback()
                return None
            entry = self._append_entry(part_id, profile_id, notes)
            entry_id = entry.id
            self.db.commit()
            return entry_id
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _append_entry(self, part_id: int, profile_id: int, notes: Optional[str]) -> LedgerEntry:
        entry = LedgerEntry(
            part_id=part_id,
            profile_id=profile_id,
            status=ReservationStatus.RESERVED.value,
            created_at=datetime.utcnow(),
            notes=notes,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

def _with_partial(completed: List[LineItem], part_id: int, done: int) -> List[LineItem]:
    if done:
        return completed + [(part_id, done)]
    return list(completed)
