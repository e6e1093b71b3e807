"""
X-API-Key authentication for the market-intelligence service.

Every analysis route needs a key; the manual job triggers (odds poll, CLV
fetch) also need the admin identity.  Keys come from ``API_KEY_USER1`` ..
``API_KEY_USER5`` and are read on first request, so importing the app (tests,
the scheduler process) does not require them to be set.
"""

from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader
from functools import lru_cache
import os
from typing import Dict
from dotenv import load_dotenv

from market_intel.core.errors import ConfigurationError

load_dotenv()

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

MAX_API_USERS = 5
ADMIN_USER = "user1"
DEV_API_KEY = "dev-key-insecure"


@lru_cache(maxsize=1)
def get_valid_api_keys() -> Dict[str, str]:
    """Map each configured key to its user id (``user1`` is the admin).

    Raises:
        ConfigurationError: No key is configured outside ``ENVIRONMENT=development``.
    """
    keys = {}
    for i in range(1, MAX_API_USERS + 1):
        key = os.getenv(f"API_KEY_USER{i}")
        if key:
            keys[key] = f"user{i}"

    if keys:
        return keys

    # Local runs only
    if os.getenv("ENVIRONMENT") == "development":
        return {DEV_API_KEY: ADMIN_USER}
    raise ConfigurationError(
        f"No API keys configured: set API_KEY_USER1..API_KEY_USER{MAX_API_USERS}"
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(api_key: str = Security(API_KEY_HEADER)) -> str:
    """Resolve the caller of ``/api/analyze`` to a user id, or reject with 401."""
    if not api_key:
        raise _unauthorized("API key required. Include 'X-API-Key' header.")

    user = get_valid_api_keys().get(api_key)
    if user is None:
        raise _unauthorized("Invalid API key")
    return user


async def verify_admin_api_key(user: str = Security(verify_api_key)) -> str:
    """Gate the manual odds-poll and CLV-fetch triggers to the admin user."""
    if user != ADMIN_USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required to trigger market jobs",
        )
    return user
