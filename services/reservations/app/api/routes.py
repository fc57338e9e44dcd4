from fastapi import APIRouter, Depends, HTTPException, Request, Query
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import Optional
from shared.core import set_request_context
from app.infrastructure.db import get_db
from app.auth_local import verified_identity
from app.application.ledger import LedgerService
from app.application.lifecycle import ReservationLifecycle, StatusChange
from app.application.service import ProfileService, CatalogService, ReservationQueryService
from app.application.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    StatusUpdate,
    ReservationStatusUpdate,
    StatusUpdateResponse,
    LedgerEntryRead,
    CategoryRead,
    PartRead,
    ProfileRead,
)
from app.domain.errors import ReservationError, InvalidToken, ProfileNotFound
from app.domain.models import Profile

BEARER_PREFIX = "Bearer "

def _http_error(err: ReservationError) -> HTTPException:
    return HTTPException(status_code=err.status_code, detail=err.to_dict())

def verify_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise _http_error(InvalidToken("Missing Authorization"))
    identity = verified_identity(auth_header.split(" ", 1)[1])
    if not identity:
        raise _http_error(InvalidToken())
    return identity

async def get_current_profile(identity: str = Depends(verify_token), db: Session = Depends(get_db)) -> Profile:
    # async so the profile_id context set here is inherited by the endpoint's worker thread;
    # the lookup itself runs in the threadpool to keep the event loop free
    profile = await run_in_threadpool(ProfileService(db).find_by_external_identity, identity)
    if not profile:
        raise _http_error(ProfileNotFound())
    set_request_context(profile_id=str(profile.id))
    return profile

def _status_response(change: StatusChange) -> StatusUpdateResponse:
    read = LedgerEntryRead.model_validate(change.entry)
    return StatusUpdateResponse(
        **read.model_dump(),
        previous_status=change.previous_status.value,
        override=change.override,
    )

router = APIRouter(tags=["reservations"])

@router.post("/checkout", response_model=CheckoutResponse)
def checkout(
    payload: CheckoutRequest,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    """Reserve units against shared stock, one atomic step per unit."""
    items = [(item.part_id, item.quantity) for item in payload.line_items()]
    try:
        result = LedgerService(db).checkout(profile.id, items, notes=payload.notes)
    except ReservationError as e:
        raise _http_error(e)
    return CheckoutResponse(items_count=result.units_checked_out, entry_ids=result.entry_ids)

@router.post("/updateReservationStatus", response_model=StatusUpdateResponse)
def update_reservation_status(
    payload: ReservationStatusUpdate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    try:
        change = ReservationLifecycle(db).update_status(
            payload.entry_id, payload.status, payload.admin_remarks, profile
        )
    except ReservationError as e:
        raise _http_error(e)
    return _status_response(change)

@router.patch("/reservations/{entry_id}", response_model=StatusUpdateResponse)
def patch_reservation(
    entry_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    try:
        change = ReservationLifecycle(db).update_status(
            entry_id, payload.status, payload.admin_remarks, profile
        )
    except ReservationError as e:
        raise _http_error(e)
    return _status_response(change)

@router.get("/reservations", response_model=list[LedgerEntryRead])
def list_reservations(
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
    profile_id: Optional[int] = Query(None, description="Admins only: filter by requester"),
    status: Optional[str] = Query(None, description="Filter by reservation status"),
):
    """Newest first. Team users always get their own reservations only."""
    try:
        return ReservationQueryService(db).list(profile, profile_id=profile_id, status=status)
    except ReservationError as e:
        raise _http_error(e)

@router.get("/reservations/{entry_id}", response_model=LedgerEntryRead)
def get_reservation(
    entry_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(get_current_profile),
):
    try:
        return ReservationQueryService(db).get(profile, entry_id)
    except ReservationError as e:
        raise _http_error(e)

@router.get("/me", response_model=ProfileRead)
def me(profile: Profile = Depends(get_current_profile)):
    return profile

catalog_router = APIRouter(prefix="/categories", tags=["catalog"])

@catalog_router.get("/", response_model=list[CategoryRead])
def list_categories(db: Session = Depends(get_db), identity: str = Depends(verify_token)):
    return CatalogService(db).list_categories()

@catalog_router.get("/{category_id}/parts", response_model=list[PartRead])
def list_category_parts(category_id: int, db: Session = Depends(get_db), identity: str = Depends(verify_token)):
    try:
        return CatalogService(db).list_parts(category_id)
    except ReservationError as e:
        raise _http_error(e)
