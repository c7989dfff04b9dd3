"""OIDC JWT authentication for staff terminals.

Provides:
- verify_token(): Validates an RS256 JWT against the issuer's JWKS and returns its subject
- get_current_user(): FastAPI dependency resolving the staff user
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import Depends, HTTPException, Request

_JWKS_CACHE_TTL = 600  # 10 minutes


@dataclass
class CurrentUser:
    """Authenticated staff member."""

    id: str
    external_subject: str
    email: str | None
    name: str | None


@dataclass(frozen=True)
class OidcSettings:
    issuer: str | None
    audience: str | None
    jwks_url: str | None
    authorized_parties: tuple[str, ...] = ()

    @property
    def configured(self) -> bool:
        return bool(self.issuer and self.audience and self.jwks_url)


def load_oidc_settings() -> OidcSettings:
    """Load OIDC settings from environment."""
    parties = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    return OidcSettings(
        issuer=os.environ.get("OIDC_ISSUER"),
        audience=os.environ.get("OIDC_AUDIENCE"),
        jwks_url=os.environ.get("OIDC_JWKS_URL"),
        authorized_parties=tuple(p.strip() for p in parties.split(",") if p.strip()),
    )


class JwksCache:
    """Thread-safe JWKS cache with TTL and forced refresh on unknown kid."""

    def __init__(self, ttl: float = _JWKS_CACHE_TTL) -> None:
        self.ttl = ttl
        self._keys: dict[str, Any] | None = None
        self._fetched_at: float = 0
        self._lock = threading.Lock()

    def clear(self) -> None:
        with self._lock:
            self._keys = None
            self._fetched_at = 0

    def get(self, jwks_url: str, *, force_refresh: bool = False) -> dict[str, Any]:
        with self._lock:
            now = time.time()
            fresh = self._keys is not None and (now - self._fetched_at) < self.ttl
            if fresh and not force_refresh:
                return self._keys

            try:
                resp = requests.get(jwks_url, timeout=10)
                resp.raise_for_status()
            except requests.RequestException:
                raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
            self._keys = resp.json()
            self._fetched_at = now
            return self._keys

    def find(self, jwks_url: str, kid: str) -> dict[str, Any] | None:
        """Find a key by kid, refetching once if the kid is unknown (key rotation)."""
        for force in (False, True):
            for key in self.get(jwks_url, force_refresh=force).get("keys", []):
                if key.get("kid") == kid:
                    return key
        return None


jwks_cache = JwksCache()

_INVALID = HTTPException(status_code=401, detail="Invalid token")


def verify_token(token: str) -> str:
    """Verify JWT and return its subject claim.

    Raises:
        HTTPException: 401 if the token is invalid or expired, 503 if the
            JWKS endpoint is unreachable.
    """
    settings = load_oidc_settings()
    if not settings.configured:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise _INVALID
    if not kid:
        raise _INVALID

    key_data = jwks_cache.find(settings.jwks_url, kid)
    if key_data is None:
        raise _INVALID

    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(key_data)
    except (ValueError, TypeError, jwt.exceptions.InvalidKeyError):
        raise _INVALID

    try:
        payload = jwt.decode(
            token,
            public_key,
            algorithms=["RS256"],
            issuer=settings.issuer,
            audience=settings.audience,
            options={"require": ["exp", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise _INVALID

    if settings.authorized_parties and "azp" in payload:
        if payload["azp"] not in settings.authorized_parties:
            raise _INVALID

    sub = payload.get("sub")
    if not sub:
        raise _INVALID
    return sub


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")
    return parts[1]


def _get_user_from_db(external_subject: str) -> CurrentUser | None:
    from innkeep.infra.db import txn

    with txn() as cur:
        cur.execute(
            "SELECT id, external_subject, email, name FROM users WHERE external_subject = %s",
            (external_subject,),
        )
        row = cur.fetchone()
    if row is None:
        return None
    return CurrentUser(id=str(row[0]), external_subject=row[1], email=row[2], name=row[3])


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: authenticated staff user.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if user unknown.
    """
    sub = verify_token(_extract_bearer_token(request))
    user = _get_user_from_db(sub)
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")
    return user


# Dependency alias for cleaner imports
CurrentUserDep = Depends(get_current_user)
