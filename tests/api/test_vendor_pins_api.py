from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from instoredealz.api.deps import rotating_pins_from
from instoredealz.core.config import get_settings
from instoredealz.db.models.users import User
from instoredealz.redemption.pin_codec import check_pin_strength
from tests.api.api_fixtures import _auth_headers, _seed_now


def test_current_pin_requires_vendor_role(client, storage) -> None:
    customer, _, deal = _seed_now(storage)

    response = client.get(
        f"/api/vendors/deals/{deal.id}/current-pin",
        headers=_auth_headers(customer.id, "customer"),
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_current_pin_is_not_cacheable(client, storage) -> None:
    _, vendor, deal = _seed_now(storage)

    response = client.get(
        f"/api/vendors/deals/{deal.id}/current-pin",
        headers=_auth_headers(vendor.user_id, "vendor"),
    )

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["Pragma"] == "no-cache"
    assert response.headers["Expires"] == "0"
    body = response.json()
    assert body["dealId"] == deal.id
    assert body["rotationIntervalSeconds"] == get_settings().rotating_pin_interval_seconds
    assert body["isActive"] is True
    generator = rotating_pins_from(get_settings())
    now_utc = datetime.now(timezone.utc)
    bucket = generator.bucket_for(now_utc)
    assert body["currentPin"] in {
        generator.pin_for_bucket(deal.id, bucket),
        generator.pin_for_bucket(deal.id, bucket - 1),
    }


def test_rotating_pin_is_accepted_at_verification(client, storage) -> None:
    customer, vendor, deal = _seed_now(storage, pin=None)
    current = client.get(
        f"/api/vendors/deals/{deal.id}/current-pin",
        headers=_auth_headers(vendor.user_id, "vendor"),
    ).json()["currentPin"]

    response = client.post(
        f"/api/deals/{deal.id}/verify-pin",
        json={"pin": current},
        headers=_auth_headers(customer.id, "customer"),
    )

    assert response.status_code == 200
    assert response.json()["savingsAmount"] == 200.0


def test_current_pin_for_foreign_deal_is_denied(client, storage) -> None:
    _, _, deal = _seed_now(storage)
    other_vendor = asyncio.run(
        storage.create_user(User(email="other@example.com", name="Other", role="vendor"))
    )

    response = client.get(
        f"/api/vendors/deals/{deal.id}/current-pin",
        headers=_auth_headers(other_vendor.id, "vendor"),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "E_DEAL_ACCESS_DENIED"


def test_current_pin_for_missing_deal(client, storage) -> None:
    _, vendor, _ = _seed_now(storage)

    response = client.get(
        "/api/vendors/deals/999/current-pin",
        headers=_auth_headers(vendor.user_id, "vendor"),
    )

    assert response.status_code == 404
    assert response.json()["code"] == "E_DEAL_NOT_FOUND"


def test_generate_pin_suggests_strong_pin(client, storage) -> None:
    _, vendor, _ = _seed_now(storage)

    response = client.post("/api/vendors/generate-pin", headers=_auth_headers(vendor.user_id, "vendor"))

    assert response.status_code == 200
    pin = response.json()["pin"]
    assert len(pin) == 4
    assert check_pin_strength(pin).is_valid


def test_reissue_pin_replaces_static_pin(client, storage) -> None:
    customer, vendor, deal = _seed_now(storage, pin="4821")
    vendor_headers = _auth_headers(vendor.user_id, "vendor")

    reissued = client.post(f"/api/vendors/deals/{deal.id}/pin", json={"pin": "7395"}, headers=vendor_headers)

    assert reissued.status_code == 200
    assert reissued.json()["pin"] == "7395"
    assert deal.verification_pin != "7395"
    assert storage.system_logs[-1].action == "DEAL_PIN_ISSUED"
    assert "7395" not in str(storage.system_logs[-1].details)

    verify = client.post(
        f"/api/deals/{deal.id}/verify-pin",
        json={"pin": "7395"},
        headers=_auth_headers(customer.id, "customer"),
    )
    assert verify.status_code == 200


def test_reissue_pin_rejects_weak_pin(client, storage) -> None:
    _, vendor, deal = _seed_now(storage)

    response = client.post(
        f"/api/vendors/deals/{deal.id}/pin",
        json={"pin": "1111"},
        headers=_auth_headers(vendor.user_id, "vendor"),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "E_PIN_WEAK"


def test_pin_status_never_exposes_pin(client, storage) -> None:
    _, vendor, deal = _seed_now(storage, pin="4821")

    response = client.get(
        f"/api/vendors/deals/{deal.id}/pin-status",
        headers=_auth_headers(vendor.user_id, "vendor"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["securityLevel"] == "hashed"
    assert body["isExpired"] is False
    assert "pin" not in body
    assert "verificationPin" not in body
