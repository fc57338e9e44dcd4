from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional

class CheckoutItem(BaseModel):
    part_id: int
    # Positivity is checked by the ledger so it can report InvalidQuantity
    quantity: int = 1

class CheckoutRequest(BaseModel):
    items: Optional[list[CheckoutItem]] = Field(default=None, min_length=1)
    # Legacy single-item form: one unit of part_id
    part_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _require_items_or_part(self):
        if self.items is None and self.part_id is None:
            raise ValueError("either items or part_id is required")
        return self

    def line_items(self) -> list[CheckoutItem]:
        if self.items is not None:
            return self.items
        return [CheckoutItem(part_id=self.part_id, quantity=1)]

class CheckoutResponse(BaseModel):
    success: bool = True
    message: str = "Items checked out successfully"
    items_count: int
    entry_ids: list[int]

class StatusUpdate(BaseModel):
    status: str
    admin_remarks: Optional[str] = None

class ReservationStatusUpdate(StatusUpdate):
    entry_id: int

class PartSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

class LedgerEntryRead(BaseModel):
    id: int
    part_id: Optional[int] = None
    profile_id: Optional[int] = None
    status: str
    created_at: datetime
    notes: Optional[str] = None
    admin_remarks: Optional[str] = None
    part: Optional[PartSummary] = None

    class Config:
        from_attributes = True

class StatusUpdateResponse(LedgerEntryRead):
    previous_status: str
    override: bool

class CategoryRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    checkout_limit: int

    class Config:
        from_attributes = True

class PartRead(BaseModel):
    id: int
    category_id: int
    name: str
    description: Optional[str] = None
    quantity: int
    barcode: Optional[str] = None
    image_url: Optional[str] = None
    stock_status: str

class ProfileRead(BaseModel):
    id: int
    username: str
    role: str

    class Config:
        from_attributes = True
