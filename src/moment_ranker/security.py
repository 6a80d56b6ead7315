import os
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

API_KEY_HEADER_NAME = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


def get_api_key() -> str | None:
    return os.environ.get("API_KEY")


def get_admin_api_key() -> str | None:
    """Key for cache administration and maintenance; defaults to ``API_KEY``."""
    return os.environ.get("ADMIN_API_KEY") or get_api_key()


def _check(api_key: str | None, expected_key: str | None) -> str:
    if not expected_key or api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


async def verify_api_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str:
    return _check(api_key, get_api_key())


async def verify_admin_key(
    api_key: Annotated[str | None, Depends(api_key_header)],
) -> str:
    return _check(api_key, get_admin_api_key())

