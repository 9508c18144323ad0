"""Publisher resolution endpoints.

Routes
------
GET  /api/resolve?url=...&debug=1
POST /api/resolve    Body: {"url": "https://...", "debug": false}

Both return ``{"success": true, "publisherUrl": ...}`` or
``{"success": false, "error": ...}``; ``debug`` adds a ``debug`` object.
A missing ``url`` is answered with HTTP 400 in the same shape.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ResolveRequest(BaseModel):
    url: Optional[str] = None
    debug: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _resolve(request: Request, url: Optional[str], debug: bool, missing: str) -> JSONResponse:
    if not url:
        return JSONResponse({"success": False, "error": missing}, status_code=400)
    result = request.app.state.services.resolver.resolve(url)
    return JSONResponse(result.to_dict(debug=debug))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
def resolve_get(request: Request, url: Optional[str] = None, debug: bool = False) -> JSONResponse:
    """Resolve the ``url`` query parameter to its publisher URL."""
    return _resolve(request, url, debug, "Missing url parameter")


@router.post("")
def resolve_post(body: ResolveRequest, request: Request) -> JSONResponse:
    """Resolve ``body.url`` to its publisher URL."""
    return _resolve(request, body.url, body.debug, "Missing url in request body")
