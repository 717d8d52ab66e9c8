"""
Tests: book-size name normalization and slugs.

Run with:
    pytest backend/tests/test_names.py -v
"""

import pytest

from book_pricing.utils.names import normalize, slugify

NAMES = [
    "رقعی (14×20)",
    "رقعی",
    "A5 (148×210)",
    "B5",
    "  Letter  (US) ",
    "(only a note)",
    "وزیری (17×24) (جدید)",
    "",
]


class TestNormalize:

    def test_strips_parenthetical_description(self):
        assert normalize("رقعی (14×20)") == "رقعی"
        assert normalize("A5 (148×210)") == "A5"

    def test_plain_name_unchanged(self):
        assert normalize("B5") == "B5"

    def test_trims_whitespace(self):
        assert normalize("  Letter  (US) ") == "Letter"

    def test_multiple_parentheticals(self):
        assert normalize("وزیری (17×24) (جدید)") == "وزیری"

    def test_name_that_is_only_a_parenthetical_is_kept(self):
        assert normalize(" (only a note) ") == "(only a note)"

    @pytest.mark.parametrize("name", NAMES)
    def test_idempotent(self, name):
        assert normalize(normalize(name)) == normalize(name)

    def test_unicode_forms_collapse(self):
        # "é" precomposed vs e + combining accent
        assert normalize("Caf\u00e9 (A4)") == normalize("Cafe\u0301")


class TestSlugify:

    def test_known_persian_terms(self):
        assert slugify("تحریر") == "tahrir"
        assert slugify("جلد سخت") == "hard-cover"
        assert slugify("رقعی") == "roghei"

    def test_fallback(self):
        assert slugify("Hard  Cover") == "hard-cover"
        assert slugify("A5") == "a5"
