"""Indexability Gate

Decides per entity whether its page is exposed to search engines.
Rules are evaluated in order and the first match wins; thresholds come
from INDEXABILITY_THRESHOLDS and can be overridden per run.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple
from enum import Enum

from .. import INDEXABILITY_THRESHOLDS
from ..core.models import (
    Brand, Category, City, Entity, PageType, Pharmacy, Product, Strain, Terpene,
)
from .routes import href, path_for


class IndexabilityReason(Enum):
    HAS_SUFFICIENT_DATA = "has_sufficient_data"
    HAS_PRODUCTS = "has_products"
    HAS_OFFERS = "has_offers"
    HAS_RELATED_ENTITIES = "has_related_entities"
    IS_HUB_PAGE = "is_hub_page"
    IS_CURATED_FACET = "is_curated_facet"
    INDEXED_BY_POLICY = "indexed_by_policy"
    THIN_CONTENT = "thin_content"
    NO_THC_CBD_DATA = "no_thc_cbd_data"
    NO_PRODUCTS = "no_products"
    NO_OFFERS = "no_offers"
    NO_RELATED_ENTITIES = "no_related_entities"
    LOW_PHARMACY_DENSITY = "low_pharmacy_density"
    UNCURATED_FACET = "uncurated_facet"
    DUPLICATE_CONTENT = "duplicate_content"
    FILTER_COMBINATION = "filter_combination"


@dataclass(frozen=True)
class IndexabilityThresholds:
    min_city_pharmacies: int = INDEXABILITY_THRESHOLDS['min_city_pharmacies']
    min_city_offers: int = INDEXABILITY_THRESHOLDS['min_city_offers']
    min_product_price_samples: int = INDEXABILITY_THRESHOLDS['min_product_price_samples']
    min_brand_products_index: int = INDEXABILITY_THRESHOLDS['min_brand_products_index']
    min_brand_products_link: int = INDEXABILITY_THRESHOLDS['min_brand_products_link']
    min_terpene_strains: int = INDEXABILITY_THRESHOLDS['min_terpene_strains']

    @classmethod
    def from_overrides(cls, overrides: Optional[Dict[str, int]] = None) -> 'IndexabilityThresholds':
        overrides = overrides or {}
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown indexability thresholds: {sorted(unknown)}")
        for name, value in overrides.items():
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"Threshold {name} must be a non-negative integer, got {value!r}")
        return cls(**overrides)


DEFAULT_THRESHOLDS = IndexabilityThresholds()


@dataclass(frozen=True)
class IndexabilityResult:
    should_index: bool
    reason: IndexabilityReason
    confidence: int  # 0-100
    notes: Tuple[str, ...] = ()
    suggested_canonical: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'should_index': self.should_index,
            'reason': self.reason.value,
            'confidence': self.confidence,
            'notes': list(self.notes),
            'suggested_canonical': self.suggested_canonical,
        }


def check_strain(strain: Strain) -> IndexabilityResult:
    notes = []
    if strain.thc_range is not None or strain.cbd_range is not None:
        notes.append('Has THC/CBD data')
    if strain.product_ids:
        notes.append(f"Has {len(strain.product_ids)} products")
    if strain.parent_strain_ids or strain.child_strain_ids:
        notes.append('Has related strains')

    if notes:
        return IndexabilityResult(True, IndexabilityReason.HAS_SUFFICIENT_DATA, 90, tuple(notes))
    return IndexabilityResult(False, IndexabilityReason.THIN_CONTENT, 95, ('No THC/CBD data, products or related strains',))


def check_product(product: Product, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> IndexabilityResult:
    active = product.active_offers
    if active:
        return IndexabilityResult(True, IndexabilityReason.HAS_OFFERS, 95, (f"{len(active)} active offers",))

    sample_size = product.price_stats.sample_size if product.price_stats else 0
    if sample_size >= thresholds.min_product_price_samples:
        return IndexabilityResult(True, IndexabilityReason.HAS_SUFFICIENT_DATA, 75, ('Has historical price data',))

    return IndexabilityResult(False, IndexabilityReason.NO_OFFERS, 90, ('No active offers and no historical data',))


def check_city(city: City, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> IndexabilityResult:
    if city.pharmacy_count >= thresholds.min_city_pharmacies:
        return IndexabilityResult(True, IndexabilityReason.HAS_SUFFICIENT_DATA, 90, (f"{city.pharmacy_count} pharmacies",))
    if city.offer_count >= thresholds.min_city_offers:
        return IndexabilityResult(True, IndexabilityReason.HAS_OFFERS, 85, (f"{city.offer_count} active offers",))
    return IndexabilityResult(
        False, IndexabilityReason.LOW_PHARMACY_DENSITY, 85,
        (f"Only {city.pharmacy_count} pharmacies and {city.offer_count} offers",)
    )


def check_pharmacy(pharmacy: Pharmacy) -> IndexabilityResult:
    """Pharmacy pages are always published"""
    return IndexabilityResult(True, IndexabilityReason.INDEXED_BY_POLICY, 100, (f"{pharmacy.product_count} products",))


def check_brand(brand: Brand, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> IndexabilityResult:
    if brand.product_count >= thresholds.min_brand_products_index:
        return IndexabilityResult(True, IndexabilityReason.HAS_PRODUCTS, 90, (f"{brand.product_count} products",))
    return IndexabilityResult(False, IndexabilityReason.NO_PRODUCTS, 90, ('No products',))


def should_link_brand(brand: Brand, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> bool:
    """Editorial rule for hub listings and sitemaps, stricter than indexing"""
    return brand.product_count >= thresholds.min_brand_products_link


def check_terpene(terpene: Terpene, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> IndexabilityResult:
    if terpene.strain_count >= thresholds.min_terpene_strains:
        return IndexabilityResult(True, IndexabilityReason.HAS_RELATED_ENTITIES, 85, (f"{terpene.strain_count} strains",))
    return IndexabilityResult(
        False, IndexabilityReason.NO_RELATED_ENTITIES, 85,
        (f"Only {terpene.strain_count} strains",)
    )


def check_category(category: Category) -> IndexabilityResult:
    """Category root pages are always published"""
    return IndexabilityResult(True, IndexabilityReason.IS_HUB_PAGE, 100, (f"{category.product_count} products",))


def check_facet(category: Category, facet_slug: str) -> IndexabilityResult:
    """Only curated facets index; every other filter view points at its category"""
    if facet_slug in category.curated_facets:
        return IndexabilityResult(True, IndexabilityReason.IS_CURATED_FACET, 100, ('Curated facet',))
    return IndexabilityResult(
        False, IndexabilityReason.UNCURATED_FACET, 100,
        ('Dynamic filter - canonical to category',),
        suggested_canonical=href(path_for(category)),
    )


def check_hub(page_type: PageType) -> IndexabilityResult:
    if not page_type.is_hub:
        raise ValueError(f"{page_type} is not a hub page")
    return IndexabilityResult(True, IndexabilityReason.IS_HUB_PAGE, 100, ('Hub page',))


def check_indexability(entity: Entity, thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS) -> IndexabilityResult:
    if isinstance(entity, Strain):
        return check_strain(entity)
    if isinstance(entity, Product):
        return check_product(entity, thresholds)
    if isinstance(entity, Pharmacy):
        return check_pharmacy(entity)
    if isinstance(entity, City):
        return check_city(entity, thresholds)
    if isinstance(entity, Brand):
        return check_brand(entity, thresholds)
    if isinstance(entity, Terpene):
        return check_terpene(entity, thresholds)
    if isinstance(entity, Category):
        return check_category(entity)
    raise TypeError(f"Unknown entity type: {type(entity).__name__}")
