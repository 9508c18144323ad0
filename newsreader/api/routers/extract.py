"""Article extraction endpoints.

Routes
------
GET  /api/extract?url=...&debug=1&refresh=1
POST /api/extract    Body: {"url": "https://...", "debug": false, "refresh": false}

The body is always the full extraction shape (see
:meth:`ExtractionResult.to_dict`).  Pipeline failures are answered with
HTTP 200 and ``success: false``; only a missing or invalid ``url`` is a 400.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from newsreader.scraper.models import ExtractionResult
from newsreader.telemetry.taxonomy import ExtractStatus, FailureReason

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ExtractRequest(BaseModel):
    url: Optional[str] = None
    debug: bool = False
    refresh: bool = False


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _extract(request: Request, url: Optional[str], debug: bool, refresh: bool) -> JSONResponse:
    if not url:
        missing = ExtractionResult(
            url="",
            status=ExtractStatus.INVALID_URL,
            reason=FailureReason.INVALID_URL,
            error="URL parameter is required",
        )
        return JSONResponse(missing.to_dict(debug=debug), status_code=400)

    result = request.app.state.services.articles.extract(url, refresh=refresh)
    status_code = 400 if result.status is ExtractStatus.INVALID_URL else 200
    return JSONResponse(result.to_dict(debug=debug), status_code=status_code)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("")
def extract_get(
    request: Request,
    url: Optional[str] = None,
    debug: bool = False,
    refresh: bool = False,
) -> JSONResponse:
    """Extract the article at the ``url`` query parameter."""
    return _extract(request, url, debug, refresh)


@router.post("")
def extract_post(body: ExtractRequest, request: Request) -> JSONResponse:
    """Extract the article at ``body.url``."""
    return _extract(request, body.url, body.debug, body.refresh)
