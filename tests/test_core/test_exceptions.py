"""
Tests for Custom Exceptions

Tests for storyboardgen/core/exceptions.py and storyboardgen/api/errors.py
"""

import pytest

from storyboardgen.api.errors import to_http_exception
from storyboardgen.core.exceptions import (
    CreditExhaustedUpstreamError,
    CreditLimitExceededError,
    InsufficientCreditsError,
    LedgerUnavailableError,
    MissingApiKeyError,
    ModelUnavailableError,
    PersistenceError,
    StoryboardError,
    ValidationError,
)


class TestStoryboardError:
    """Tests for the base error."""

    def test_str_includes_details(self):
        """Test details are rendered after the message."""
        error = StoryboardError("Broken", {"id": 1})

        assert str(error) == "Broken | Details: {'id': 1}"

    def test_to_dict(self):
        """Test the serialized form carries code, message and details."""
        error = PersistenceError("Save failed", {"project_id": "p1"})

        assert error.to_dict() == {"code": "persistence_error", "message": "Save failed", "project_id": "p1"}


class TestCreditErrors:
    """Tests for credit error messages."""

    def test_remaining_message(self):
        """Test the shortfall message names what is left."""
        error = InsufficientCreditsError(requested=3, remaining=1, monthly_limit=90)

        assert error.message == "You can generate 1 more image this month (credits 90)."
        assert error.details["upgrade_required"] is False

    def test_upgrade_message(self):
        """Test accounts that must upgrade get the upgrade message."""
        error = InsufficientCreditsError(requested=1, remaining=0, monthly_limit=90, upgrade_required=True)

        assert error.message == "Upgrade to keep generating."

    def test_limit_exceeded_details(self):
        """Test the ledger refusal carries its numbers."""
        error = CreditLimitExceededError(requested=2, remaining=1, monthly_limit=90)

        assert error.details == {"requested": 2, "remaining": 1, "monthly_limit": 90}


class TestHttpMapping:
    """Tests for error to HTTP status mapping."""

    @pytest.mark.parametrize("error,status_code", [
        (ValidationError("bad"), 400),
        (InsufficientCreditsError(1, 0, 90), 402),
        (CreditExhaustedUpstreamError("gone"), 402),
        (CreditLimitExceededError(1, 0, 90), 409),
        (LedgerUnavailableError("down"), 503),
        (ModelUnavailableError("down", 503), 503),
        (MissingApiKeyError(), 503),
        (PersistenceError("failed"), 500),
        (StoryboardError("unknown"), 500),
    ])
    def test_status_codes(self, error, status_code):
        """Test each error code maps to its status."""
        exc = to_http_exception(error)

        assert exc.status_code == status_code
        assert exc.detail["code"] == error.code
