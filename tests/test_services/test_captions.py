"""
Tests for Caption Helpers

Tests for storyboardgen/services/captions.py
"""

from storyboardgen.models.generation import Captions
from storyboardgen.services.captions import (
    append_hashtags,
    apply_hashtags,
    format_caption_display,
    normalize_hashtags,
    set_caption,
)


class TestHashtags:
    """Tests for hashtag enforcement."""

    def test_normalize(self):
        """Test tags are trimmed and de-duplicated in order."""
        assert normalize_hashtags([" #a", "#b", "", "#a "]) == ["#a", "#b"]

    def test_only_missing_tags_are_appended(self):
        """Test tags already in the caption are not repeated."""
        assert append_hashtags("Fun day #a", ["#a", "#b"]) == "Fun day #a\n\n#b"

    def test_nothing_missing(self):
        """Test a caption with every tag is unchanged."""
        assert append_hashtags("Fun #a #b", ["#a", "#b"]) == "Fun #a #b"

    def test_empty_caption(self):
        """Test an empty caption becomes just the tags."""
        assert append_hashtags("", ["#a"]) == "#a"

    def test_apply_without_tags_is_identity(self):
        """Test no approved hashtags leaves captions as they are."""
        captions = Captions(tiktok=["x"], instagram=["y"])

        assert apply_hashtags(captions, []) is captions


class TestFormatting:
    """Tests for caption display."""

    def test_single_caption_has_no_prefix(self):
        """Test one caption is shown as is."""
        assert format_caption_display(["Hello"]) == "Hello"

    def test_multiple_captions_are_numbered(self):
        """Test several captions carry scene numbers."""
        assert format_caption_display(["a", "b"]) == "Scene 1: a\n\nScene 2: b"


class TestSetCaption:
    """Tests for replacing one scene's captions."""

    def test_pads_short_lists(self):
        """Test lists shorter than the index are padded with empty captions."""
        captions = set_caption(Captions(tiktok=["a"], instagram=[]), 2, "t", "i")

        assert captions.tiktok == ["a", "", "t"]
        assert captions.instagram == ["", "", "i"]

    def test_original_is_untouched(self):
        """Test the input captions are not mutated."""
        original = Captions(tiktok=["a"], instagram=["b"])

        set_caption(original, 0, "t", "i")

        assert original.tiktok == ["a"]
