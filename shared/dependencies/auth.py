"""FastAPI authentication dependency."""

import secrets

from fastapi import HTTPException, Request


async def verify_api_key(request: Request) -> None:
    """Verify the bearer token provided in the Authorization header.

    Args:
        request (Request): The incoming FastAPI request.

    Raises:
        HTTPException: If the token is missing or invalid (401).
    """
    config = request.app.state.config
    expected_key = config.get_string_val("APP_API_KEY")
    scheme, _, provided_key = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not provided_key or not secrets.compare_digest(provided_key.strip(), expected_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )
