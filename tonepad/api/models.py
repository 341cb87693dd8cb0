from typing import Any

import httpx
from fastapi import APIRouter, Depends

from tonepad.api.deps import get_session
from tonepad.session import Session


router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("")
async def list_models(session: Session = Depends(get_session)) -> dict[str, Any]:
    """Return the models allowed by this server.

    With a key configured, intersect the allowlist with the gateway's advertised
    models. Otherwise, return the allowlist as-is.
    """
    settings = session.settings
    result = list(settings.allowed_models)
    if not settings.has_api_key:
        return {"models": result}

    url = f"{settings.base_url.rstrip('/')}/models"
    headers = {"Authorization": f"Bearer {settings.api_key}"}
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            resp = await client.get(url, headers=headers)
            resp.raise_for_status()
            data = resp.json()
            available_ids = {str(m.get("id")) for m in (data.get("data") or []) if m.get("id")}
            intersected = [m for m in settings.allowed_models if m in available_ids]
            return {"models": intersected or result}
    except httpx.HTTPError:
        # On any error, just fall back to our allowlist
        return {"models": result}
