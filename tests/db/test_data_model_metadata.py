from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

from instoredealz.db.base import Base
from instoredealz.db.models import (  # noqa: F401
    Deal,
    DealClaim,
    PinAttempt,
    SystemLog,
    User,
    Vendor,
)


def test_all_tables_registered() -> None:
    assert set(Base.metadata.tables) == {
        "users",
        "vendors",
        "deals",
        "deal_claims",
        "pin_attempts",
        "system_logs",
    }


def test_pin_attempts_are_not_bound_to_existing_deals() -> None:
    table = Base.metadata.tables["pin_attempts"]

    assert table.foreign_keys == set()


def test_claim_status_constraint_lists_every_status() -> None:
    table = Base.metadata.tables["deal_claims"]
    constraints = {
        constraint.name: str(constraint.sqltext)
        for constraint in table.constraints
        if isinstance(constraint, CheckConstraint)
    }

    assert "ck_deal_claims_status" in constraints
    for status in ("pending", "used", "claimed", "expired"):
        assert f"'{status}'" in constraints["ck_deal_claims_status"]


def test_unique_constraints_are_named() -> None:
    names = {
        constraint.name
        for table in Base.metadata.tables.values()
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint)
    }

    assert {"uq_users_email", "uq_vendors_user_id"} <= names


def test_deal_pin_columns_are_present() -> None:
    columns = Base.metadata.tables["deals"].columns

    assert columns["pin_salt"].nullable is True
    assert columns["pin_expires_at"].nullable is True
    assert columns["verification_pin"].nullable is False
