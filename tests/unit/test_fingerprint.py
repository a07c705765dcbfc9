"""Tests for text fingerprints."""

from swimr.jobs.fingerprint import context_hash, make_cache_key, quick_hash


class TestQuickHash:
    """Tests for quick_hash."""

    def test_known_values(self):
        """Test digests match the 32-bit h * 31 + c rolling hash in base 36."""
        assert quick_hash("") == "0"
        assert quick_hash("a") == "2p"
        assert quick_hash("ab") == "2e9"
        assert quick_hash("hello") == "1n1e4y"

    def test_utf16_code_units(self):
        """Test characters outside the BMP hash as surrogate pairs."""
        assert quick_hash("😀") == "11zz7"

    def test_overflow_wraps_to_signed(self):
        """Test long inputs wrap into the signed 32-bit range."""
        digest = quick_hash("The quick brown fox jumps over the lazy dog" * 20)
        value = int(digest, 36)
        assert -(2**31) <= value < 2**31

    def test_stable(self):
        """Test the same text always yields the same fingerprint."""
        text = "Senior Python engineer with ten years of experience."
        assert quick_hash(text) == quick_hash(text)

    def test_sensitive_to_changes(self):
        """Test one-character and ordering changes alter the fingerprint."""
        text = "Senior Python engineer with ten years of experience."
        assert quick_hash(text) != quick_hash(text[:-1] + "!")
        assert quick_hash("ab") != quick_hash("ba")


class TestCacheKey:
    """Tests for context_hash and make_cache_key."""

    def test_missing_context_equals_empty(self):
        """Test None and "" share a context hash."""
        assert context_hash(None) == context_hash("") == "0"

    def test_cache_key_layout(self):
        """Test the composite key format."""
        key = make_cache_key("cand-1", None, "a", None)
        assert key == "cand-1|none|2p|0"

        key = make_cache_key("cand-1", "role-9", "ab", "a")
        assert key == "cand-1|role-9|2e9|2p"
