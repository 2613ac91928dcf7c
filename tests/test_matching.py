"""Tests for attachment name filtering."""

from mailferry.matching import attachment_matches


class TestAttachmentMatches:
    """Tests for attachment_matches."""

    def test_wildcard_matches_anything(self):
        assert attachment_matches("x.pdf", "*") is True

    def test_different_name_does_not_match(self):
        assert attachment_matches("x.pdf", "y.pdf") is False

    def test_exact_name_matches(self):
        assert attachment_matches("x.pdf", "x.pdf") is True

    def test_case_sensitive(self):
        assert attachment_matches("X.pdf", "x.pdf") is False

    def test_no_partial_or_glob_matching(self):
        assert attachment_matches("x.pdf", "*.pdf") is False
        assert attachment_matches("invoice_2024.pdf", "invoice") is False
