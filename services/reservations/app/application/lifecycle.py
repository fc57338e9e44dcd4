from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from shared.core import get_logger
from app.domain.models import LedgerEntry, Profile
from app.domain.status import ReservationStatus, is_natural_transition
from app.domain.errors import Forbidden, EntryNotFound, InvalidStatus

logger = get_logger(__name__)

@dataclass
class StatusChange:
    entry: LedgerEntry
    previous_status: ReservationStatus
    override: bool

class ReservationLifecycle:
    """Admin-only status changes on ledger entries.

    Never touches ``Part.quantity``. Any status may be set from any status;
    changes off the reserved -> issued -> returned/lost/damaged path are
    reported as overrides.
    """

    def __init__(self, db: Session):
        self.db = db

    def update_status(
        self,
        entry_id: int,
        new_status: str,
        admin_remarks: Optional[str],
        acting_profile: Optional[Profile],
    ) -> StatusChange:
        if acting_profile is None or not acting_profile.is_admin:
            raise Forbidden()
        try:
            status = ReservationStatus(new_status)
        except ValueError:
            raise InvalidStatus(new_status)

        entry = self.db.get(LedgerEntry, entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)

        previous = ReservationStatus(entry.status)
        override = status != previous and not is_natural_transition(previous, status)

        entry.status = status.value
        entry.admin_remarks = admin_remarks
        self.db.commit()
        self.db.refresh(entry)

        message = f"Reservation {entry.id} moved {previous.value} -> {status.value}"
        fields = {
            'entry_id': entry.id,
            'previous_status': previous.value,
            'status': status.value,
            'admin_profile_id': acting_profile.id,
            'override': override,
        }
        if override:
            logger.warning(f"{message} (admin override)", extra={'extra_fields': fields})
        else:
            logger.info(message, extra={'extra_fields': fields})
        return StatusChange(entry=entry, previous_status=previous, override=override)
