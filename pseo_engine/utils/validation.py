from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from collections import Counter
import logging

from .. import INDEXABILITY_THRESHOLDS
from ..core.models import (
    Brand, Category, City, Entity, Pharmacy, Product, ProductForm, Range,
    Strain, Terpene,
)
from ..seo.facets import is_facet_shape
from .formatting import SLUG_PATTERN


logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 100

# Errors that make an entity unusable as a graph node or page title
BLOCKING_CODES = frozenset({'ID_REQUIRED', 'NAME_REQUIRED', 'SLUG_REQUIRED'})


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    code: str


@dataclass
class ValidationResult:
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    @property
    def is_blocking(self) -> bool:
        """True when the entity cannot be placed in the graph at all"""
        return any(e.code in BLOCKING_CODES for e in self.errors)

    def error(self, field_name: str, message: str, code: str):
        self.errors.append(ValidationIssue(field_name, message, code))

    def warn(self, field_name: str, message: str, code: str):
        self.warnings.append(ValidationIssue(field_name, message, code))

    def merge(self, other: 'ValidationResult'):
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entity_id': self.entity_id,
            'entity_type': self.entity_type,
            'valid': self.valid,
            'errors': [vars(e) for e in self.errors],
            'warnings': [vars(w) for w in self.warnings],
        }


class EntityValidator:
    """Field-level validation and data-quality warnings for catalog entities.

    Nothing here raises for bad data: every problem is collected per entity
    with a field name and a code, and summarized by validate_batch.
    """

    PERCENT_LIMITS = {
        'min': 0.0,
        'max': 100.0
    }

    def __init__(self, thresholds: Optional[Dict[str, int]] = None):
        self.thresholds = INDEXABILITY_THRESHOLDS.copy()
        if thresholds:
            self.thresholds.update(thresholds)
        self.validation_stats = {
            'total_validated': 0,
            'passed': 0,
            'failed': 0,
            'warnings': 0
        }

    def validate_slug(self, slug: Optional[str]) -> ValidationResult:
        result = ValidationResult()
        if not slug:
            result.error('slug', 'Slug is required', 'SLUG_REQUIRED')
            return result

        if not SLUG_PATTERN.match(slug):
            result.error('slug', 'Slug must be lowercase alphanumeric with hyphens', 'SLUG_INVALID_FORMAT')
        if len(slug) > MAX_SLUG_LENGTH:
            result.warn('slug', 'Slug is very long, consider shortening', 'SLUG_TOO_LONG')
        return result

    def _validate_identity(self, entity: Entity, result: ValidationResult):
        if not entity.id:
            result.error('id', 'ID is required', 'ID_REQUIRED')
        if not entity.name or not entity.name.strip():
            result.error('name', 'Name is required', 'NAME_REQUIRED')
        result.merge(self.validate_slug(entity.slug))

    def _validate_range(self, value: Optional[Range], label: str, field_name: str, result: ValidationResult):
        if value is None:
            return
        if value.min < self.PERCENT_LIMITS['min'] or value.max > self.PERCENT_LIMITS['max']:
            result.error(field_name, f"{label} range must be between 0-100", f"{label}_OUT_OF_RANGE")
        if value.min > value.max:
            result.error(field_name, f"{label} min cannot exceed max", f"{label}_RANGE_INVALID")

    def _validate_percent(self, value: Optional[float], label: str, field_name: str, result: ValidationResult):
        if value is None:
            return
        if value < self.PERCENT_LIMITS['min'] or value > self.PERCENT_LIMITS['max']:
            result.error(field_name, f"{label} percent must be between 0-100", f"{label}_OUT_OF_RANGE")

    def validate_strain(self, strain: Strain) -> ValidationResult:
        result = ValidationResult(strain.id, 'strain')
        self._validate_identity(strain, result)
        self._validate_range(strain.thc_range, 'THC', 'thc_range', result)
        self._validate_range(strain.cbd_range, 'CBD', 'cbd_range', result)

        if strain.thc_range is None and strain.cbd_range is None:
            result.warn('thc_range', 'No THC/CBD data - may be thin content', 'NO_CANNABINOID_DATA')
        if not strain.terpene_ids:
            result.warn('terpene_ids', 'No terpene data', 'NO_TERPENE_DATA')
        if not strain.product_ids:
            result.warn('product_ids', 'No products - may affect indexability', 'NO_PRODUCTS')
        return result

    def validate_product(self, product: Product) -> ValidationResult:
        result = ValidationResult(product.id, 'product')
        self._validate_identity(product, result)

        if not product.brand_id:
            result.error('brand_id', 'Brand ID is required', 'BRAND_REQUIRED')
        if product.form is None:
            result.error('form', 'Product form is required', 'FORM_REQUIRED')
        elif not isinstance(product.form, ProductForm):
            result.error('form', f"Invalid product form: {product.form}", 'FORM_INVALID')
        if not product.category_id:
            result.error('category_id', 'Category ID is required', 'CATEGORY_REQUIRED')

        self._validate_percent(product.thc_percent, 'THC', 'thc_percent', result)
        self._validate_percent(product.cbd_percent, 'CBD', 'cbd_percent', result)

        for offer in product.offers:
            if offer.price_cents <= 0:
                result.error('offers', f"Offer {offer.id} has non-positive price", 'PRICE_INVALID')
            if offer.product_id and offer.product_id != product.id:
                result.warn('offers', f"Offer {offer.id} belongs to product {offer.product_id}", 'OFFER_MISMATCH')

        if not product.offers:
            result.warn('offers', 'No offers - may affect indexability', 'NO_OFFERS')
        if not product.strain_id:
            result.warn('strain_id', 'No strain linked', 'NO_STRAIN')
        return result

    def validate_pharmacy(self, pharmacy: Pharmacy) -> ValidationResult:
        result = ValidationResult(pharmacy.id, 'pharmacy')
        self._validate_identity(pharmacy, result)

        if not pharmacy.city_id:
            result.error('city_id', 'City ID is required', 'CITY_REQUIRED')
        if pharmacy.address.coordinates is None:
            result.warn('address', 'No coordinates - proximity links fall back to city', 'NO_COORDINATES')
        if pharmacy.rating is not None and not 0 <= pharmacy.rating <= 5:
            result.error('rating', 'Rating must be between 0-5', 'RATING_OUT_OF_RANGE')
        if not pharmacy.offer_ids:
            result.warn('offer_ids', 'No offers', 'NO_OFFERS')
        return result

    def validate_city(self, city: City) -> ValidationResult:
        """Identity checks plus the density warning used for indexing"""
        result = ValidationResult(city.id, 'city')
        self._validate_identity(city, result)

        min_pharmacies = self.thresholds['min_city_pharmacies']
        min_offers = self.thresholds['min_city_offers']
        if city.pharmacy_count < min_pharmacies and city.offer_count < min_offers:
            result.warn(
                'pharmacy_count',
                f"Low density: {city.pharmacy_count} pharmacies, {city.offer_count} offers - may noindex",
                'LOW_DENSITY'
            )
        return result

    def validate_brand(self, brand: Brand) -> ValidationResult:
        result = ValidationResult(brand.id, 'brand')
        self._validate_identity(brand, result)
        if not brand.product_ids:
            result.warn('product_ids', 'No products - may affect indexability', 'NO_PRODUCTS')
        return result

    def validate_terpene(self, terpene: Terpene) -> ValidationResult:
        result = ValidationResult(terpene.id, 'terpene')
        self._validate_identity(terpene, result)
        if not terpene.name_de:
            result.warn('name_de', 'No German name', 'NO_GERMAN_NAME')
        if not terpene.strain_ids:
            result.warn('strain_ids', 'No strains linked', 'NO_STRAINS')
        return result

    def validate_category(self, category: Category) -> ValidationResult:
        result = ValidationResult(category.id, 'category')
        self._validate_identity(category, result)
        if not category.included_forms:
            result.warn('included_forms', 'No product forms configured', 'NO_FORMS')
        for facet in category.curated_facets:
            if not SLUG_PATTERN.match(facet):
                result.error('curated_facets', f"Facet '{facet}' is not a valid slug", 'FACET_INVALID_FORMAT')
            elif not is_facet_shape(facet):
                result.warn('curated_facets', f"Facet '{facet}' matches no range, brand or form filter", 'FACET_UNRESOLVABLE')
        return result

    def validate_entity(self, entity: Entity) -> ValidationResult:
        if isinstance(entity, Strain):
            result = self.validate_strain(entity)
        elif isinstance(entity, Product):
            result = self.validate_product(entity)
        elif isinstance(entity, Pharmacy):
            result = self.validate_pharmacy(entity)
        elif isinstance(entity, City):
            result = self.validate_city(entity)
        elif isinstance(entity, Brand):
            result = self.validate_brand(entity)
        elif isinstance(entity, Terpene):
            result = self.validate_terpene(entity)
        elif isinstance(entity, Category):
            result = self.validate_category(entity)
        else:
            raise TypeError(f"Unknown entity type: {type(entity).__name__}")

        self.validation_stats['total_validated'] += 1
        if result.valid:
            self.validation_stats['passed'] += 1
        else:
            self.validation_stats['failed'] += 1
        if result.warnings:
            self.validation_stats['warnings'] += 1
        return result

    def validate_batch(self, entities: Iterable[Entity]) -> Dict[str, Any]:
        """Validate many entities and summarize error and warning codes"""
        results = [self.validate_entity(entity) for entity in entities]

        error_counts = Counter(e.code for r in results for e in r.errors)
        warning_counts = Counter(w.code for r in results for w in r.warnings)
        summary = {
            'total': len(results),
            'valid': sum(1 for r in results if r.valid),
            'invalid': sum(1 for r in results if not r.valid),
            'warnings': sum(1 for r in results if r.warnings),
            'error_counts': dict(error_counts),
            'warning_counts': dict(warning_counts),
            'validation_results': results,
        }

        if summary['invalid']:
            logger.info(f"Validation: {summary['invalid']}/{summary['total']} entities with errors")
        return summary

    def get_validation_report(self) -> Dict[str, Any]:
        total = self.validation_stats['total_validated']
        return {
            'stats': self.validation_stats.copy(),
            'pass_rate': (self.validation_stats['passed'] / total * 100) if total > 0 else 0,
        }
