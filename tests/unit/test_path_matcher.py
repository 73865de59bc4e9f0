"""
Unit tests for the segment-based path matcher.
"""

from servitsy.path_matcher import PathMatcher


class TestPathMatcher:
    """Tests for PathMatcher.test()."""

    def test_no_patterns_never_matches(self):
        """Test that a matcher without positive patterns matches nothing."""
        matcher = PathMatcher([])
        assert matcher.test("") is False
        assert matcher.test(".env") is False
        assert matcher.test("a/b/c") is False

    def test_only_negative_patterns_never_match(self):
        """Test that negations alone do not make a matcher match."""
        matcher = PathMatcher(["!.well-known", "!*.txt"])
        assert matcher.test("readme.md") is False
        assert matcher.test(".well-known") is False

    def test_exact_segment(self):
        """Test exact segment patterns."""
        matcher = PathMatcher([".env"])
        assert matcher.test(".env") is True
        assert matcher.test("config/.env") is True
        assert matcher.test(".env.local") is False
        assert matcher.test("x.env") is False

    def test_wildcard(self):
        """Test "*" patterns against whole segments."""
        matcher = PathMatcher(["*.min.js"])
        assert matcher.test("app.min.js") is True
        assert matcher.test("lib/app.min.js") is True
        assert matcher.test("app.min.jsx") is False
        assert matcher.test("appxminxjs") is False

    def test_default_exclude_patterns(self):
        """Test dotfiles being matched while .well-known is not."""
        matcher = PathMatcher([".*", "!.well-known"])
        assert matcher.test(".env") is True
        assert matcher.test("public/.hidden/a.txt") is True
        assert matcher.test(".well-known") is False
        assert matcher.test(".well-known/security.txt") is False
        assert matcher.test("index.html") is False

    def test_negation_only_applies_to_its_segment(self):
        """Test that a negated segment does not protect its children."""
        matcher = PathMatcher([".*", "!.well-known"])
        assert matcher.test(".well-known/.secret") is True

    def test_backslash_paths(self):
        """Test Windows-style separators being split too."""
        matcher = PathMatcher([".git"])
        assert matcher.test("project\\.git\\config") is True

    def test_case_sensitivity(self):
        """Test the case_sensitive flag."""
        sensitive = PathMatcher(["*.MD"])
        insensitive = PathMatcher(["*.MD"], case_sensitive=False)
        assert sensitive.test("README.md") is False
        assert sensitive.test("README.MD") is True
        assert insensitive.test("README.md") is True

    def test_multi_segment_patterns_are_ignored(self):
        """Test that patterns containing a separator are dropped."""
        matcher = PathMatcher(["a/b", "a\\b"])
        assert matcher.positive == []
        assert matcher.test("a/b") is False

    def test_regex_characters_are_literal(self):
        """Test that regex metacharacters in patterns match themselves."""
        matcher = PathMatcher(["(draft)*.txt", "a+b"])
        assert matcher.test("(draft) notes.txt") is True
        assert matcher.test("draft notes.txt") is False
        assert matcher.test("a+b") is True
        assert matcher.test("aab") is False

    def test_repeated_calls_are_stable(self):
        """Test that results do not change between calls."""
        matcher = PathMatcher(["*.log"])
        results = {matcher.test("logs/server.log") for _ in range(5)}
        assert results == {True}
