import logging
from contextlib import contextmanager

from fastapi import HTTPException

from app.services.errors import SyncError

logger = logging.getLogger(__name__)


@contextmanager
def http_errors(operation: str):
    """Map SyncError to its HTTP status; anything unexpected becomes a logged 500."""
    try:
        yield
    except HTTPException:
        raise
    except SyncError as e:
        logger.warning("%s rejected (%d): %s", operation, e.status_code, e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception("%s failed", operation)
        raise HTTPException(status_code=500, detail=f"{operation} failed: {e}")
