from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from instoredealz.db.base import Base


class DealClaim(Base):
    __tablename__ = "deal_claims"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','used','claimed','expired')",
            name="ck_deal_claims_status",
        ),
        CheckConstraint("savings_amount >= 0", name="ck_deal_claims_savings_non_negative"),
        Index("idx_deal_claims_user_deal", "user_id", "deal_id"),
        Index("idx_deal_claims_deal", "deal_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    deal_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("deals.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    savings_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        server_default=text("0"),
    )
    bill_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    actual_savings: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
