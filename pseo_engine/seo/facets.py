"""
Category facet slugs

A facet narrows a category listing: thc-<min>-<max>, cbd-<min>-<max>,
brand-<brand slug> or a plain product form value. The same parser backs
facet pages, sitemap entries and catalog validation, so a curated facet is
listed only when its page resolves.
"""

from typing import Any, Callable, Dict, Optional
import re

from ..core.models import Brand, Product, ProductForm

FORM_NAMES_DE = {
    ProductForm.FLOWER: 'Blüten',
    ProductForm.EXTRACT: 'Extrakt',
    ProductForm.VAPE: 'Vaporizer',
    ProductForm.ROSIN: 'Rosin',
    ProductForm.OIL: 'Öl',
    ProductForm.CAPSULE: 'Kapseln',
}

# thc-20-25, cbd-0-1 (decimal bounds allowed: thc-17.5-22)
RANGE_FACET = re.compile(r'^(thc|cbd)-(\d+(?:\.\d+)?)-(\d+(?:\.\d+)?)$')
BRAND_FACET_PREFIX = 'brand-'

FORM_VALUES = {form.value: form for form in ProductForm}


def translate_form(form: ProductForm) -> str:
    return FORM_NAMES_DE.get(form, form.value)


def is_facet_shape(facet_slug: str) -> bool:
    """Whether the slug has a recognized facet form; brand existence is not checked"""
    match = RANGE_FACET.match(facet_slug)
    if match:
        return float(match.group(2)) <= float(match.group(3))
    if facet_slug.startswith(BRAND_FACET_PREFIX):
        return len(facet_slug) > len(BRAND_FACET_PREFIX)
    return facet_slug in FORM_VALUES


def parse_facet(facet_slug: str, brand_lookup: Callable[[str], Optional[Brand]]) -> Optional[Dict[str, Any]]:
    """Label and product predicate for a facet slug, None when it cannot resolve"""
    match = RANGE_FACET.match(facet_slug)
    if match:
        cannabinoid, low, high = match.group(1), float(match.group(2)), float(match.group(3))
        if low > high:
            return None
        attribute = f"{cannabinoid}_percent"

        def in_range(product: Product) -> bool:
            value = getattr(product, attribute)
            return value is not None and low <= value <= high
        return {
            'label': f"{cannabinoid.upper()} {match.group(2)}-{match.group(3)}%",
            'predicate': in_range,
        }

    if facet_slug.startswith(BRAND_FACET_PREFIX):
        brand = brand_lookup(facet_slug[len(BRAND_FACET_PREFIX):])
        if brand is None:
            return None
        return {'label': brand.name, 'predicate': lambda product: product.brand_id == brand.id}

    product_form = FORM_VALUES.get(facet_slug)
    if product_form is None:
        return None
    return {'label': translate_form(product_form),
            'predicate': lambda product: product.form == product_form}
