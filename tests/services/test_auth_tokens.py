from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt

from instoredealz.services.auth import (
    decode_access_token,
    extract_bearer_token,
    extract_client_ip,
)
from tests.services.auth_fixtures import _access_token

SECRET = "jwt-secret"


def test_issued_token_round_trips_to_principal() -> None:
    token = _access_token(user_id=7, role="vendor", secret=SECRET)

    principal = decode_access_token(token, secret=SECRET)

    assert principal is not None
    assert (principal.user_id, principal.role) == (7, "vendor")
    assert principal.is_vendor is True
    assert principal.is_admin is False


def test_decode_rejects_wrong_secret_expired_and_garbage() -> None:
    expired = _access_token(
        user_id=7,
        role="customer",
        secret=SECRET,
        now_utc=datetime.now(timezone.utc) - timedelta(days=2),
        ttl=timedelta(hours=1),
    )

    assert decode_access_token(_access_token(user_id=7, role="customer", secret="other"), secret=SECRET) is None
    assert decode_access_token(expired, secret=SECRET) is None
    assert decode_access_token("not-a-token", secret=SECRET) is None
    assert decode_access_token(None, secret=SECRET) is None


def test_decode_requires_numeric_subject_and_role() -> None:
    exp = datetime.now(timezone.utc) + timedelta(hours=1)
    no_role = jwt.encode({"sub": "7", "exp": exp}, SECRET, algorithm="HS256")
    bad_sub = jwt.encode({"sub": "abc", "role": "customer", "exp": exp}, SECRET, algorithm="HS256")

    assert decode_access_token(no_role, secret=SECRET) is None
    assert decode_access_token(bad_sub, secret=SECRET) is None


def test_extract_bearer_token() -> None:
    assert extract_bearer_token(SimpleNamespace(headers={"Authorization": "Bearer abc"})) == "abc"
    assert extract_bearer_token(SimpleNamespace(headers={"Authorization": "bearer  abc "})) == "abc"
    assert extract_bearer_token(SimpleNamespace(headers={"Authorization": "Basic abc"})) is None
    assert extract_bearer_token(SimpleNamespace(headers={})) is None


def test_extract_client_ip_uses_forwarded_for_only_from_trusted_proxy() -> None:
    request = SimpleNamespace(
        client=SimpleNamespace(host="10.0.0.5"),
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.5"},
    )

    assert extract_client_ip(request, trusted_proxies="10.0.0.0/8") == "203.0.113.9"
    assert extract_client_ip(request, trusted_proxies="") == "10.0.0.5"
    assert extract_client_ip(request, trusted_proxies="192.168.0.0/16") == "10.0.0.5"


def test_extract_client_ip_falls_back_to_unknown() -> None:
    request = SimpleNamespace(client=None, headers={})

    assert extract_client_ip(request) == "unknown"
