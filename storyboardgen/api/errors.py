"""
Domain Error to HTTP Mapping
"""

from fastapi import HTTPException

from storyboardgen.core.exceptions import StoryboardError

STATUS_BY_CODE = {
    "validation_error": 400,
    "insufficient_credits": 402,
    "credit_exhausted_upstream": 402,
    "credit_limit_exceeded": 409,
    "ledger_unavailable": 503,
    "model_error": 503,
    "model_unavailable": 503,
    "missing_api_key": 503,
    "persistence_error": 500,
    "webhook_error": 400,
}


def to_http_exception(error: StoryboardError) -> HTTPException:
    """HTTPException whose detail carries the error code and details."""
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 500),
        detail=error.to_dict(),
    )
