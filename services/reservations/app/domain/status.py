"""Reservation lifecycle states.

A ledger entry starts ``reserved`` when a unit is checked out. The natural
path is reserved -> issued -> returned, with ``lost`` and ``damaged`` as the
other ways an issued unit can end. Administrators are not bound to this path;
``is_natural_transition`` only tells callers whether a change follows it.
"""

from enum import Enum

class ProfileRole(str, Enum):
    TEAM = "team"
    ADMIN = "admin"

class ReservationStatus(str, Enum):
    RESERVED = "reserved"
    ISSUED = "issued"
    RETURNED = "returned"
    LOST = "lost"
    DAMAGED = "damaged"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def holds_stock(self) -> bool:
        """Units in these states are still out of the stock counter."""
        return self in (ReservationStatus.RESERVED, ReservationStatus.ISSUED)

TERMINAL_STATUSES = frozenset({
    ReservationStatus.RETURNED,
    ReservationStatus.LOST,
    ReservationStatus.DAMAGED,
})

NATURAL_TRANSITIONS = {
    ReservationStatus.RESERVED: frozenset({ReservationStatus.ISSUED}),
    ReservationStatus.ISSUED: frozenset({
        ReservationStatus.RETURNED,
        ReservationStatus.LOST,
        ReservationStatus.DAMAGED,
    }),
    ReservationStatus.RETURNED: frozenset(),
    ReservationStatus.LOST: frozenset(),
    ReservationStatus.DAMAGED: frozenset(),
}

def is_natural_transition(current: ReservationStatus, new: ReservationStatus) -> bool:
    return new in NATURAL_TRANSITIONS[current]
