"""Schema Builder

schema.org structured data per page. A BreadcrumbList always comes first;
entity-specific objects follow. combine_schemas merges them into one
payload, dropping each object's @context inside a @graph.
"""

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from .. import SITEMAP_DEFAULTS
from ..core.config import DEFAULT_CONFIG, ResolverConfig
from ..core.models import (
    Address, Brand, Breadcrumb, Category, City, DeliveryMethod, Entity, Offer,
    OfferStatus, Pharmacy, Product, Strain, Terpene,
)
from ..utils.formatting import format_decimal_price, format_percent
from .facets import translate_form
from .routes import build_canonical, path_for

logger = logging.getLogger(__name__)

SCHEMA_CONTEXT = 'https://schema.org'
ITEM_LIST_LIMIT = SITEMAP_DEFAULTS['item_list_limit']

AVAILABILITY = {
    OfferStatus.IN_STOCK: 'https://schema.org/InStock',
    OfferStatus.LOW_STOCK: 'https://schema.org/LimitedAvailability',
    OfferStatus.OUT_OF_STOCK: 'https://schema.org/OutOfStock',
    OfferStatus.PRE_ORDER: 'https://schema.org/PreOrder',
}

DAYS = {
    'mo': 'Monday',
    'tu': 'Tuesday',
    'we': 'Wednesday',
    'th': 'Thursday',
    'fr': 'Friday',
    'sa': 'Saturday',
    'su': 'Sunday',
}

HOURS_PATTERN = re.compile(r'^\s*((?:[01]\d|2[0-3]):[0-5]\d)\s*-\s*((?:[01]\d|2[0-3]):[0-5]\d|24:00)\s*$')

DELIVERY_FEATURES = {
    DeliveryMethod.STANDARD: 'Versand',
    DeliveryMethod.EXPRESS: 'Expressversand',
    DeliveryMethod.PICKUP: 'Abholung',
    DeliveryMethod.SAME_DAY: 'Lieferung am selben Tag',
}

Schema = Dict[str, Any]


def build_opening_hours(hours: Optional[Dict[str, str]]) -> List[Schema]:
    """OpeningHoursSpecification per day; unknown days and malformed ranges are skipped"""
    if not hours:
        return []

    normalized = {str(day).strip().lower()[:2]: value for day, value in hours.items()}
    specs = []
    for key, day_name in DAYS.items():
        value = normalized.get(key)
        if not value:
            continue
        match = HOURS_PATTERN.match(str(value))
        if not match:
            logger.debug(f"Skipping malformed opening hours {key}={value!r}")
            continue
        specs.append({
            '@type': 'OpeningHoursSpecification',
            'dayOfWeek': day_name,
            'opens': match.group(1),
            'closes': match.group(2),
        })
    return specs


def build_postal_address(address: Address) -> Schema:
    street = f"{address.street}, {address.street_line2}" if address.street_line2 else address.street
    return {
        '@type': 'PostalAddress',
        'streetAddress': street,
        'addressLocality': address.city,
        'postalCode': address.postal_code,
        'addressRegion': address.state,
        'addressCountry': address.country,
    }


def product_specs(product: Product) -> str:
    specs = []
    if product.thc_percent is not None:
        specs.append(f"THC: {format_percent(product.thc_percent)}%")
    if product.cbd_percent is not None:
        specs.append(f"CBD: {format_percent(product.cbd_percent)}%")
    specs.append(f"Form: {translate_form(product.form)}")
    return ', '.join(specs)


def combine_schemas(schemas: Sequence[Schema]) -> Optional[Schema]:
    """One payload for a page: the object itself, or a @graph of all of them"""
    if not schemas:
        return None
    if len(schemas) == 1:
        return dict(schemas[0])
    return {
        '@context': SCHEMA_CONTEXT,
        '@graph': [{k: v for k, v in schema.items() if k != '@context'} for schema in schemas],
    }


def to_json_ld(schemas: Sequence[Schema]) -> str:
    payload = combine_schemas(schemas)
    if payload is None:
        return ''
    return json.dumps(payload, ensure_ascii=False, separators=(',', ':'))


class SchemaBuilder:
    """Structured-data objects for one site configuration"""

    def __init__(self, config: ResolverConfig = DEFAULT_CONFIG, item_list_limit: int = ITEM_LIST_LIMIT):
        self.config = config
        self.item_list_limit = item_list_limit

    def url(self, path: str) -> str:
        return build_canonical(self.config.base_url, path)

    def breadcrumb_list(self, path: Sequence[Breadcrumb]) -> Schema:
        return {
            '@context': SCHEMA_CONTEXT,
            '@type': 'BreadcrumbList',
            'itemListElement': [
                {
                    '@type': 'ListItem',
                    'position': index,
                    'name': crumb.name,
                    'item': self.url(crumb.slug),
                }
                for index, crumb in enumerate(path, start=1)
            ],
        }

    def offer(self, offer: Offer, product_url: str, seller_name: Optional[str] = None) -> Schema:
        schema = {
            '@type': 'Offer',
            'url': product_url,
            'priceCurrency': 'EUR',
            'price': format_decimal_price(offer.price_cents),
            'availability': AVAILABILITY[offer.status],
        }
        if seller_name:
            schema['seller'] = {'@type': 'Organization', 'name': seller_name}
        return schema

    def product(self, product: Product, brand: Optional[Brand] = None,
                offers: Sequence[Tuple[Offer, Optional[str]]] = ()) -> Schema:
        """offers are (offer, pharmacy name) pairs; one offer is inlined as an object"""
        product_url = self.url(path_for(product))
        schema: Schema = {
            '@context': SCHEMA_CONTEXT,
            '@type': 'Product',
            'name': product.name,
            'url': product_url,
        }
        if brand:
            schema['brand'] = {'@type': 'Brand', 'name': brand.name}
        if product.product_code:
            schema['sku'] = product.product_code
        if product.pzn:
            schema['gtin13'] = product.pzn
        schema['description'] = product_specs(product)

        offer_schemas = [self.offer(offer, product_url, seller) for offer, seller in offers]
        if len(offer_schemas) == 1:
            schema['offers'] = offer_schemas[0]
        elif offer_schemas:
            schema['offers'] = offer_schemas
        return schema

    def local_business(self, pharmacy: Pharmacy) -> Schema:
        schema: Schema = {
            '@context': SCHEMA_CONTEXT,
            '@type': 'Pharmacy',
            'name': pharmacy.name,
            'url': self.url(path_for(pharmacy)),
            'address': build_postal_address(pharmacy.address),
        }
        if pharmacy.contact.phone:
            schema['telephone'] = pharmacy.contact.phone
        if pharmacy.contact.email:
            schema['email'] = pharmacy.contact.email
        if pharmacy.contact.website:
            schema['sameAs'] = pharmacy.contact.website

        coordinates = pharmacy.address.coordinates
        if coordinates is not None:
            schema['geo'] = {
                '@type': 'GeoCoordinates',
                'latitude': coordinates[0],
                'longitude': coordinates[1],
            }

        hours = build_opening_hours(pharmacy.opening_hours)
        if hours:
            schema['openingHoursSpecification'] = hours

        features = []
        if pharmacy.delivery_info:
            features = [DELIVERY_FEATURES[m] for m in pharmacy.delivery_info.methods]
        features.extend(s for s in pharmacy.services if s not in features)
        if features:
            schema['amenityFeature'] = [
                {'@type': 'LocationFeatureSpecification', 'name': name, 'value': True}
                for name in features
            ]

        if pharmacy.rating is not None and pharmacy.review_count > 0:
            schema['aggregateRating'] = {
                '@type': 'AggregateRating',
                'ratingValue': f"{pharmacy.rating:.1f}",
                'reviewCount': pharmacy.review_count,
                'bestRating': '5',
                'worstRating': '1',
            }
        return schema

    def item_list(self, name: str, entities: Sequence[Entity]) -> Optional[Schema]:
        """numberOfItems is the full count; elements stop at the list limit"""
        if not entities:
            return None
        return {
            '@context': SCHEMA_CONTEXT,
            '@type': 'ItemList',
            'name': name,
            'numberOfItems': len(entities),
            'itemListElement': [
                {
                    '@type': 'ListItem',
                    'position': index,
                    'url': self.url(path_for(entity)),
                    'name': entity.name_de if isinstance(entity, (Category, Terpene)) and entity.name_de else entity.name,
                }
                for index, entity in enumerate(entities[:self.item_list_limit], start=1)
            ],
        }

    def for_entity(self, entity: Entity, breadcrumbs: Sequence[Breadcrumb], **context) -> List[Schema]:
        """Breadcrumb list first, then the entity's own objects.

        context carries what the page already resolved: 'items' (sorted
        products/pharmacies/strains for the item list), 'brand' and
        'offers' for products.
        """
        schemas = [self.breadcrumb_list(breadcrumbs)]
        items = context.get('items') or []

        if isinstance(entity, Product):
            schemas.append(self.product(entity, context.get('brand'), context.get('offers') or ()))
        elif isinstance(entity, Pharmacy):
            schemas.append(self.local_business(entity))
        elif isinstance(entity, Strain):
            schemas.append(self.item_list(f"{entity.name} Produkte", items))
        elif isinstance(entity, City):
            schemas.append(self.item_list(f"Cannabis Apotheken in {entity.name}", items))
        elif isinstance(entity, Brand):
            schemas.append(self.item_list(f"{entity.name} Produkte", items))
        elif isinstance(entity, Category):
            schemas.append(self.item_list(entity.name_de or entity.name, items))
        elif isinstance(entity, Terpene):
            schemas.append(self.item_list(f"Sorten mit {entity.name_de or entity.name}", items))
        else:
            raise TypeError(f"Unknown entity type: {type(entity).__name__}")

        return [schema for schema in schemas if schema is not None]
