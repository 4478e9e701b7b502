"""
StoryboardGen Exceptions

Exception taxonomy for the generation, credit and persistence paths.
Every error carries a stable ``code`` used by the API layer and recorded on
failed scene results.
"""

from typing import Any, Dict, Optional


class StoryboardError(Exception):
    """Base exception for all StoryboardGen errors."""

    code = "storyboard_error"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class ValidationError(StoryboardError):
    """Raised when a request is missing references or prompts."""

    code = "validation_error"


# =============================================================================
# CREDIT ERRORS
# =============================================================================

class CreditError(StoryboardError):
    """Base exception for credit ledger outcomes."""

    code = "credit_error"


class InsufficientCreditsError(CreditError):
    """Raised when a run asks for more credits than the account has left."""

    code = "insufficient_credits"

    def __init__(
        self,
        requested: int,
        remaining: int,
        monthly_limit: int,
        upgrade_required: bool = False,
        message: Optional[str] = None,
    ):
        if message is None:
            if upgrade_required:
                message = "Upgrade to keep generating."
            else:
                plural = "" if remaining == 1 else "s"
                message = (
                    f"You can generate {remaining} more image{plural} this month "
                    f"(credits {monthly_limit})."
                )
        super().__init__(message, {
            "requested": requested,
            "remaining": remaining,
            "monthly_limit": monthly_limit,
            "upgrade_required": upgrade_required,
        })
        self.requested = requested
        self.remaining = remaining
        self.monthly_limit = monthly_limit
        self.upgrade_required = upgrade_required


class CreditLimitExceededError(CreditError):
    """Raised by the ledger when a consume would push usage past the limit."""

    code = "credit_limit_exceeded"

    def __init__(self, requested: int, remaining: int, monthly_limit: int):
        message = f"Monthly credit limit reached: requested {requested}, remaining {remaining}"
        super().__init__(message, {
            "requested": requested,
            "remaining": remaining,
            "monthly_limit": monthly_limit,
        })
        self.requested = requested
        self.remaining = remaining
        self.monthly_limit = monthly_limit


class CreditExhaustedUpstreamError(CreditError):
    """Raised when credits ran out after generation already happened."""

    code = "credit_exhausted_upstream"


class LedgerUnavailableError(StoryboardError):
    """Raised when the usage ledger cannot be read or written."""

    code = "ledger_unavailable"


# =============================================================================
# MODEL ERRORS
# =============================================================================

class ModelError(StoryboardError):
    """Base exception for generative model failures."""

    code = "model_error"


class ModelUnavailableError(ModelError):
    """Raised when the model call fails or returns no usable output."""

    code = "model_unavailable"

    def __init__(self, message: str, status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code else {}
        super().__init__(message, details)
        self.status_code = status_code


class MissingApiKeyError(ModelError):
    """Raised when the provider key is absent or not recognised."""

    code = "missing_api_key"

    def __init__(self, message: str = "KEY_NOT_FOUND"):
        super().__init__(message)


# =============================================================================
# PERSISTENCE / BILLING ERRORS
# =============================================================================

class PersistenceError(StoryboardError):
    """Raised when saving a project or uploading an image fails."""

    code = "persistence_error"


class WebhookError(StoryboardError):
    """Raised when a payment webhook cannot be verified or applied."""

    code = "webhook_error"
