"""Slug, price and text formatting helpers shared by the builders"""

import re
import unicodedata
from typing import Optional

from ..core.models import Range

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')

UMLAUT_FOLDING = {
    'ä': 'ae',
    'ö': 'oe',
    'ü': 'ue',
    'ß': 'ss',
}

ELLIPSIS = '...'

# Truncation cuts at a word boundary only past this share of the limit
WORD_BOUNDARY_RATIO = 0.7


def generate_slug(name: str) -> str:
    """Build a URL slug from a display name.

    German umlauts are folded to their two-letter spelling before any
    other diacritics are stripped, so "Grünhorn Apotheke" becomes
    "gruenhorn-apotheke".
    """
    text = name.lower()
    for char, replacement in UMLAUT_FOLDING.items():
        text = text.replace(char, replacement)
    text = unicodedata.normalize('NFD', text)
    text = ''.join(c for c in text if not unicodedata.combining(c))
    text = re.sub(r'[^a-z0-9]+', '-', text)
    return text.strip('-')


def is_valid_slug(slug: Optional[str]) -> bool:
    return bool(slug) and SLUG_PATTERN.match(slug) is not None


def truncate(text: str, max_length: int, suffix: str = ELLIPSIS) -> str:
    """Word-boundary aware truncation. Idempotent for text within the limit."""
    if len(text) <= max_length:
        return text

    cut = text[:max_length - len(suffix)]
    last_space = cut.rfind(' ')
    if last_space > max_length * WORD_BOUNDARY_RATIO:
        cut = cut[:last_space]
    return cut.rstrip() + suffix


def format_price(cents: int) -> str:
    """Render integer cents as a German EUR string, e.g. 900 -> "9,00 €" """
    negative = cents < 0
    euros, rest = divmod(abs(int(cents)), 100)
    grouped = f"{euros:,}".replace(',', '.')
    text = f"{grouped},{rest:02d} €"
    return f"-{text}" if negative else text


def format_decimal_price(cents: int) -> str:
    """Machine readable decimal price, e.g. 1250 -> "12.50" """
    euros, rest = divmod(int(cents), 100)
    return f"{euros}.{rest:02d}"


def format_percent(value: float) -> str:
    """German decimal notation without trailing zeros: 22.0 -> "22", 0.5 -> "0,5" """
    text = f"{value:.1f}".rstrip('0').rstrip('.')
    return text.replace('.', ',')


def format_range(value_range: Optional[Range], unit: str = '%') -> Optional[str]:
    if value_range is None:
        return None
    if value_range.min == value_range.max:
        return f"{format_percent(value_range.min)}{unit}"
    return f"{format_percent(value_range.min)}-{format_percent(value_range.max)}{unit}"
