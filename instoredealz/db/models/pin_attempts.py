from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from instoredealz.db.base import Base


class PinAttempt(Base):
    __tablename__ = "pin_attempts"
    __table_args__ = (
        CheckConstraint(
            "result IN ('ACCEPTED','INVALID_FORMAT','DEAL_NOT_FOUND','DEAL_UNAVAILABLE',"
            "'RATE_LIMITED','INVALID_PIN')",
            name="ck_pin_attempts_result",
        ),
        Index("idx_pin_attempts_deal_time", "deal_id", "attempted_at"),
        Index("idx_pin_attempts_deal_user_time", "deal_id", "user_id", "attempted_at"),
        Index("idx_pin_attempts_deal_ip_time", "deal_id", "ip_address", "attempted_at"),
    )

    # Append-only. deal_id carries no foreign key so attempts against unknown deals are logged too.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    deal_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    result: Mapped[str] = mapped_column(String(24), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
