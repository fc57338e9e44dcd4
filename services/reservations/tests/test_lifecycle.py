import pytest

from app.application.ledger import LedgerService
from app.application.lifecycle import ReservationLifecycle
from app.domain.models import LedgerEntry
from app.domain.status import ReservationStatus, is_natural_transition
from app.domain.errors import Forbidden, EntryNotFound, InvalidStatus
from conftest import stock


@pytest.fixture
def entry_id(db, arduino, team_profile):
    result = LedgerService(db).checkout(team_profile.id, [(arduino.id, 1)], notes="pickup after lunch")
    return result.entry_ids[0]


def _entry(db, entry_id):
    db.expire_all()
    return db.get(LedgerEntry, entry_id)


def test_checked_out_entry_starts_reserved(db, entry_id):
    assert _entry(db, entry_id).status == "reserved"


def test_team_member_cannot_update_status(db, entry_id, team_profile):
    with pytest.raises(Forbidden):
        ReservationLifecycle(db).update_status(entry_id, "returned", "ok", team_profile)

    entry = _entry(db, entry_id)
    assert entry.status == "reserved"
    assert entry.admin_remarks is None


def test_missing_acting_profile_is_forbidden(db, entry_id):
    with pytest.raises(Forbidden):
        ReservationLifecycle(db).update_status(entry_id, "issued", None, None)


def test_admin_return_does_not_touch_stock(db, entry_id, arduino, admin_profile):
    assert stock(arduino.id) == 29

    change = ReservationLifecycle(db).update_status(entry_id, "returned", "ok", admin_profile)

    assert change.entry.status == "returned"
    assert change.entry.admin_remarks == "ok"
    assert change.previous_status is ReservationStatus.RESERVED
    assert stock(arduino.id) == 29


def test_update_keeps_notes_and_creation_time(db, entry_id, admin_profile):
    before = _entry(db, entry_id)
    created_at = before.created_at

    ReservationLifecycle(db).update_status(entry_id, "issued", "handed over at desk", admin_profile)

    after = _entry(db, entry_id)
    assert after.notes == "pickup after lunch"
    assert after.created_at == created_at
    assert after.admin_remarks == "handed over at desk"


def test_remarks_are_overwritten(db, entry_id, admin_profile):
    lifecycle = ReservationLifecycle(db)
    lifecycle.update_status(entry_id, "issued", "first", admin_profile)
    lifecycle.update_status(entry_id, "issued", None, admin_profile)
    assert _entry(db, entry_id).admin_remarks is None


def test_natural_path_is_not_an_override(db, entry_id, admin_profile):
    lifecycle = ReservationLifecycle(db)
    assert lifecycle.update_status(entry_id, "issued", None, admin_profile).override is False
    assert lifecycle.update_status(entry_id, "damaged", "cracked housing", admin_profile).override is False


def test_admin_may_skip_issued(db, entry_id, admin_profile):
    change = ReservationLifecycle(db).update_status(entry_id, "returned", "never picked up", admin_profile)
    assert change.override is True
    assert _entry(db, entry_id).status == "returned"


def test_admin_may_reopen_terminal_entry(db, entry_id, admin_profile):
    lifecycle = ReservationLifecycle(db)
    lifecycle.update_status(entry_id, "issued", None, admin_profile)
    lifecycle.update_status(entry_id, "lost", None, admin_profile)

    change = lifecycle.update_status(entry_id, "returned", "found in the lab", admin_profile)

    assert change.previous_status is ReservationStatus.LOST
    assert change.override is True
    assert _entry(db, entry_id).status == "returned"


def test_unknown_status_is_rejected(db, entry_id, admin_profile):
    with pytest.raises(InvalidStatus) as exc:
        ReservationLifecycle(db).update_status(entry_id, "checked_out", None, admin_profile)
    assert exc.value.status == "checked_out"
    assert _entry(db, entry_id).status == "reserved"


def test_unknown_entry(db, admin_profile):
    with pytest.raises(EntryNotFound) as exc:
        ReservationLifecycle(db).update_status(12345, "issued", None, admin_profile)
    assert exc.value.entry_id == 12345


def test_forbidden_is_reported_before_missing_entry(db, team_profile):
    with pytest.raises(Forbidden):
        ReservationLifecycle(db).update_status(12345, "issued", None, team_profile)


@pytest.mark.parametrize("current, new, expected", [
    ("reserved", "issued", True),
    ("issued", "returned", True),
    ("issued", "lost", True),
    ("issued", "damaged", True),
    ("reserved", "returned", False),
    ("returned", "issued", False),
    ("lost", "returned", False),
])
def test_natural_transitions(current, new, expected):
    assert is_natural_transition(ReservationStatus(current), ReservationStatus(new)) is expected


def test_terminal_and_stock_holding_states():
    assert {s for s in ReservationStatus if s.is_terminal} == {
        ReservationStatus.RETURNED, ReservationStatus.LOST, ReservationStatus.DAMAGED,
    }
    assert {s for s in ReservationStatus if s.holds_stock} == {
        ReservationStatus.RESERVED, ReservationStatus.ISSUED,
    }
