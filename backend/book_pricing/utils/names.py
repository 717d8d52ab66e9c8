import re
import unicodedata

from book_pricing.models.matrix import BookSizeKey

# space + "(...)"; nested parentheses are not expected in size names
_PARENTHETICAL_RE = re.compile(r"\s*\([^)]*\)")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w]+|_+")

SLUG_MAPPING = {
    # paper types
    "تحریر": "tahrir",
    "بالک": "bulk",
    "گلاسه": "glossy",
    # binding types
    "شومیز": "shomiz",
    "جلد سخت": "hard-cover",
    "گالینگور": "galingoor",
    "سیمی": "simi",
    "منگنه": "mangane",
    # print types
    "سیاه و سفید": "bw",
    "رنگی": "color",
    # extras
    "لب گرد": "rounded-corner",
    "خط تا": "creasing",
    "شیرینک": "shrink",
    "سوراخ": "hole-punch",
    "شماره گذاری": "numbering",
    "سلفون براق": "glossy-lamination",
    "سلفون مات": "matte-lamination",
    # book sizes
    "رقعی": "roghei",
    "وزیری": "vaziri",
    "خشتی": "kheshti",
}


def normalize(name: str) -> BookSizeKey:
    """Turn an administrator book-size name into its storage key.

    "رقعی (14×20)" -> "رقعی", "A5 (148×210)" -> "A5", "B5" -> "B5".
    A name that is nothing but a parenthetical is kept (stripped) rather than
    collapsing to an empty key.
    """
    text = unicodedata.normalize("NFC", name or "")
    stripped = _PARENTHETICAL_RE.sub("", text).strip()
    if not stripped:
        return BookSizeKey(text.strip())
    return BookSizeKey(stripped)


def slugify(label: str) -> str:
    label = _WHITESPACE_RE.sub(" ", (label or "").strip()).lower()
    if label in SLUG_MAPPING:
        return SLUG_MAPPING[label]
    return _NON_WORD_RE.sub("-", label).strip("-")
