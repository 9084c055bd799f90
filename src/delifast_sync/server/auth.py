"""
Authentication Dependencies

API key authentication for manual actions and bearer-secret authentication
for the job endpoints.
"""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from delifast_sync.config.settings import settings


def _secrets_match(given: str, expected: str) -> bool:
    # compare_digest rejects non-ASCII str
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


async def verify_api_key(x_api_key: str = Header(..., description="Dashboard API key")):
    """
    Verify API key from X-API-Key header.

    Raises:
        HTTPException: If API key is invalid or no key is configured

    Returns:
        True if authentication successful
    """
    expected_key = settings.dashboard_api_key

    if not expected_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard not configured (DASHBOARD_API_KEY not set in environment)",
        )

    if not _secrets_match(x_api_key, expected_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return True


async def verify_job_secret(authorization: Optional[str] = Header(None)):
    """
    Verify ``Authorization: Bearer <JOB_SECRET>`` on job endpoints.

    Raises:
        HTTPException: 401 on a missing or wrong secret, 503 if none is configured
    """
    expected = settings.job_secret

    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Jobs not configured (JOB_SECRET not set in environment)",
        )

    if not authorization or not _secrets_match(authorization, f"Bearer {expected}"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return True


async def require_shop(x_shop_domain: str = Header(..., description="Shop domain")) -> str:
    """Shop the manual action applies to, from the X-Shop-Domain header."""
    shop = x_shop_domain.strip().lower()
    if not shop:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Shop domain required")
    return shop
