"""Shared pytest fixtures for Innkeep tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from fakes import FakeStore  # noqa: E402
from helpers import AUDIENCE, ISSUER, JWKS_URL  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Clear the process-wide JWKS cache so keys never leak between tests."""
    from innkeep.api.auth import jwks_cache

    jwks_cache.clear()
    yield
    jwks_cache.clear()


@pytest.fixture
def store(monkeypatch):
    """In-memory repositories wired into every domain module."""
    return FakeStore().install(monkeypatch)


@pytest.fixture
def oidc_env(monkeypatch):
    monkeypatch.setenv("OIDC_ISSUER", ISSUER)
    monkeypatch.setenv("OIDC_AUDIENCE", AUDIENCE)
    monkeypatch.setenv("OIDC_JWKS_URL", JWKS_URL)
    monkeypatch.delenv("OIDC_AUTHORIZED_PARTIES", raising=False)
