from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from functools import lru_cache

import jwt
from fastapi import Request

BEARER_PREFIX = "bearer "
VENDOR_ROLES = frozenset({"vendor"})
ADMIN_ROLES = frozenset({"admin", "superadmin"})


@dataclass(frozen=True, slots=True)
class Principal:
    user_id: int
    role: str

    @property
    def is_vendor(self) -> bool:
        return self.role in VENDOR_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def decode_access_token(token: str | None, *, secret: str, algorithm: str = "HS256") -> Principal | None:
    if not token or not secret:
        return None
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        return None

    role = payload.get("role")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    if user_id <= 0 or not isinstance(role, str) or not role:
        return None
    return Principal(user_id=user_id, role=role)


def extract_bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization")
    if not header or not header.lower().startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


@lru_cache(maxsize=32)
def _parse_networks(
    entries: str,
) -> tuple[ipaddress.IPv4Network | ipaddress.IPv6Network, ...]:
    networks: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = []
    for raw_entry in entries.split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _parse_ip(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def _is_trusted_proxy(*, proxy_ip: str | None, trusted_proxies: str) -> bool:
    if proxy_ip is None:
        return False
    parsed_ip = ipaddress.ip_address(proxy_ip)
    return any(parsed_ip in network for network in _parse_networks(trusted_proxies))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str:
    """Client address used to scope PIN attempts.

    ``X-Forwarded-For`` is honoured only when the direct peer is a trusted proxy.
    """
    client_host = _parse_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and _is_trusted_proxy(proxy_ip=client_host, trusted_proxies=trusted_proxies):
        candidate = _parse_ip(forwarded_for.split(",", maxsplit=1)[0])
        if candidate is not None:
            return candidate
    return client_host or "unknown"
