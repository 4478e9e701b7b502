"""
Tests for Image Payload Helpers

Tests for storyboardgen/services/images.py
"""

import base64

import pytest

from storyboardgen.services.images import decode_data_url, extension_for, sniff_mime_type

from tests.conftest import PNG_BYTES


class TestDataUrls:
    """Tests for data URL decoding."""

    def test_decode(self):
        """Test bytes and mime type are recovered."""
        url = "data:image/webp;base64," + base64.b64encode(b"abc").decode("ascii")

        assert decode_data_url(url) == (b"abc", "image/webp")

    def test_not_a_data_url(self):
        """Test plain URLs are rejected."""
        with pytest.raises(ValueError):
            decode_data_url("https://example.com/a.png")

    def test_bad_base64(self):
        """Test a corrupt payload is rejected."""
        with pytest.raises(ValueError):
            decode_data_url("data:image/png;base64,not base64!")

    @pytest.mark.parametrize("mime_type,expected", [
        ("image/png", "png"),
        ("image/jpeg", "jpeg"),
        ("", "png"),
        (None, "png"),
    ])
    def test_extension_for(self, mime_type, expected):
        """Test extensions come from the mime subtype."""
        assert extension_for(mime_type) == expected


class TestSniffing:
    """Tests for mime detection from bytes."""

    def test_png_detected(self):
        """Test PNG bytes are recognized."""
        assert sniff_mime_type(PNG_BYTES) == "image/png"

    def test_garbage_is_none(self):
        """Test non-image bytes give None."""
        assert sniff_mime_type(b"hello world") is None

