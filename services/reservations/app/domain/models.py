from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint, Index, func
from datetime import datetime
from typing import Optional

from .status import ReservationStatus, ProfileRole
from app.core_settings import get_settings

class Base(DeclarativeBase):
    pass

def _default_checkout_limit() -> int:
    return get_settings().DEFAULT_CHECKOUT_LIMIT

def _in_values(column: str, values) -> str:
    return f"{column} IN (" + ", ".join(f"'{v.value}'" for v in values) + ")"

class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint("checkout_limit >= 1", name="ck_categories_checkout_limit_positive"),
    )
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Max total units a single checkout batch may draw from this category
    checkout_limit: Mapped[int] = mapped_column(Integer, default=_default_checkout_limit, server_default="10")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    parts: Mapped[list["Part"]] = relationship("Part", back_populates="category")

class Part(Base):
    __tablename__ = "parts"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_parts_quantity_non_negative"),
    )
    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="RESTRICT"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Available stock; only the ledger's conditional decrement and manual admin edits change it
    quantity: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    barcode: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    category: Mapped[Category] = relationship("Category", back_populates="parts")

class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint(_in_values("role", ProfileRole), name="ck_profiles_role"),
    )
    id: Mapped[int] = mapped_column(primary_key=True)
    # Subject of the verified bearer credential issued by the identity provider
    external_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True)
    role: Mapped[str] = mapped_column(String(20), default=ProfileRole.TEAM.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN.value

class LedgerEntry(Base):
    """One checked-out unit. Rows are never deleted; deleting the part or
    profile only nulls the reference."""
    __tablename__ = "ledger_entries"
    __table_args__ = (
        CheckConstraint(_in_values("status", ReservationStatus), name="ck_ledger_entries_status"),
        Index("idx_ledger_entries_created_at", "created_at"),
    )
    id: Mapped[int] = mapped_column(primary_key=True)
    part_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("parts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    profile_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default=ReservationStatus.RESERVED.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    part: Mapped[Optional[Part]] = relationship("Part")
    profile: Mapped[Optional[Profile]] = relationship("Profile")
