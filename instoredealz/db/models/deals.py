from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from instoredealz.db.base import Base


class Deal(Base):
    __tablename__ = "deals"
    __table_args__ = (
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_deals_discount_percentage_range",
        ),
        CheckConstraint(
            "required_membership IN ('basic','premium','ultimate')",
            name="ck_deals_required_membership",
        ),
        CheckConstraint("current_redemptions >= 0", name="ck_deals_current_redemptions_non_negative"),
        Index("idx_deals_vendor", "vendor_id"),
        Index("idx_deals_active_approved", "is_active", "is_approved"),
        Index("idx_deals_category", "category"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    vendor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("vendors.id"), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    discounted_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    valid_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_redemptions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_redemptions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    is_approved: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    required_membership: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="basic",
        server_default=text("'basic'"),
    )
    address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(10, 8), nullable=True)
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(11, 8), nullable=True)
    # Hashed PIN when pin_salt is set, plaintext legacy PIN otherwise.
    verification_pin: Mapped[str] = mapped_column(Text, nullable=False)
    pin_salt: Mapped[str | None] = mapped_column(String(64), nullable=True)
    pin_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pin_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
