"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from newsreader.api import app

    uvicorn newsreader.api:app --reload
"""

from newsreader.api.app import app

__all__ = ["app"]
