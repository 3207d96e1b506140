import secrets

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader

from .config import Settings, get_settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(
    api_key: str | None = Security(api_key_header),
    settings: Settings = Depends(get_settings),
) -> None:
    """Enforce the X-API-Key header when BACKEND_API_KEY is configured.

    Without BACKEND_API_KEY every request is allowed, which suits local use
    next to the chat backend.
    """
    expected = settings.backend_api_key
    if not expected:
        return
    if not api_key or not secrets.compare_digest(api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
