"""Formatting, validation and reporting helpers"""

from .formatting import format_price, generate_slug, is_valid_slug, truncate
from .validation import EntityValidator, ValidationIssue, ValidationResult

__all__ = [
    'format_price',
    'generate_slug',
    'is_valid_slug',
    'truncate',
    'EntityValidator',
    'ValidationIssue',
    'ValidationResult'
]
