"""Tests for slug, price and text formatting"""

import pytest

from pseo_engine.core.models import Range
from pseo_engine.utils.formatting import (
    format_decimal_price, format_percent, format_price, format_range,
    generate_slug, is_valid_slug, truncate,
)


@pytest.mark.parametrize('name,slug', [
    ('Grünhorn Apotheke', 'gruenhorn-apotheke'),
    ('OG Kush', 'og-kush'),
    ('Straße & Söhne', 'strasse-soehne'),
    ('Café Crème', 'cafe-creme'),
    ('  --Blue   Dream!-- ', 'blue-dream'),
])
def test_generate_slug(name, slug):
    assert generate_slug(name) == slug
    assert is_valid_slug(slug)


def test_is_valid_slug():
    assert not is_valid_slug('')
    assert not is_valid_slug(None)
    assert not is_valid_slug('OG-Kush')
    assert not is_valid_slug('og--kush')
    assert not is_valid_slug('-og-kush')


def test_truncate_keeps_short_text():
    assert truncate('Hallo Welt', 20) == 'Hallo Welt'


def test_truncate_cuts_at_word_boundary():
    text = 'Cannabis Apotheke Berlin mit Lieferung'
    result = truncate(text, 30)
    assert len(result) <= 30
    assert result == 'Cannabis Apotheke Berlin...'


def test_truncate_without_spaces():
    assert truncate('a' * 30, 10) == 'aaaaaaa...'


def test_truncate_is_idempotent():
    text = 'Super Lemon Haze Extra Long Name Auto Feminized Cannabis Sorte Deluxe'
    once = truncate(text, 40)
    assert truncate(once, 40) == once


@pytest.mark.parametrize('cents,text', [
    (900, '9,00 €'),
    (1250, '12,50 €'),
    (5, '0,05 €'),
    (123456, '1.234,56 €'),
    (-900, '-9,00 €'),
])
def test_format_price(cents, text):
    assert format_price(cents) == text


def test_format_decimal_price():
    assert format_decimal_price(1250) == '12.50'
    assert format_decimal_price(900) == '9.00'


def test_format_percent_and_range():
    assert format_percent(22.0) == '22'
    assert format_percent(0.5) == '0,5'
    assert format_range(Range(18, 24)) == '18-24%'
    assert format_range(Range(20, 20)) == '20%'
    assert format_range(None) is None
