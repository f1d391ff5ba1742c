"""URL routes, canonical URLs and breadcrumb paths for every page type"""

from typing import Dict, List, Optional

from ..core.models import (
    Brand, Breadcrumb, Category, City, Entity, EntityType, PageType,
    Pharmacy, Product, Strain, Terpene,
)

# Path prefix per entity page; categories live under the products hub
ENTITY_PREFIXES = {
    EntityType.STRAIN: 'strain',
    EntityType.PRODUCT: 'product',
    EntityType.PHARMACY: 'apotheke',
    EntityType.CITY: 'cannabis-apotheke',
    EntityType.BRAND: 'brand',
    EntityType.TERPENE: 'terpene',
    EntityType.CATEGORY: 'products',
}

HUB_PATHS = {
    PageType.HOME: '',
    PageType.STRAINS_HUB: 'strains',
    PageType.APOTHEKE_HUB: 'cannabis-apotheke',
    PageType.TERPENES_HUB: 'terpenes',
    PageType.PRODUCTS_HUB: 'products',
    PageType.BRANDS_HUB: 'brands',
}

HUB_NAMES = {
    PageType.HOME: 'Home',
    PageType.STRAINS_HUB: 'Sorten',
    PageType.APOTHEKE_HUB: 'Cannabis Apotheke',
    PageType.TERPENES_HUB: 'Terpene',
    PageType.PRODUCTS_HUB: 'Produkte',
    PageType.BRANDS_HUB: 'Hersteller',
}

# Hub a detail page hangs under in breadcrumb trails
PARENT_HUBS = {
    EntityType.STRAIN: PageType.STRAINS_HUB,
    EntityType.PRODUCT: PageType.PRODUCTS_HUB,
    EntityType.PHARMACY: PageType.APOTHEKE_HUB,
    EntityType.CITY: PageType.APOTHEKE_HUB,
    EntityType.BRAND: PageType.BRANDS_HUB,
    EntityType.TERPENE: PageType.TERPENES_HUB,
    EntityType.CATEGORY: PageType.PRODUCTS_HUB,
}


def entity_path(entity_type: EntityType, slug: str) -> str:
    """Site-relative path without leading slash, e.g. "strain/og-kush" """
    return f"{ENTITY_PREFIXES[entity_type]}/{slug}"


def path_for(entity: Entity) -> str:
    return entity_path(entity.entity_type, entity.slug)


def facet_path(category_slug: str, facet_slug: str) -> str:
    return f"{ENTITY_PREFIXES[EntityType.CATEGORY]}/{category_slug}/{facet_slug}"


def hub_path(page_type: PageType) -> str:
    if page_type not in HUB_PATHS:
        raise ValueError(f"{page_type} is not a hub page")
    return HUB_PATHS[page_type]


def href(path: str) -> str:
    """Root-relative link target used by internal links"""
    return '/' + path.strip('/') if path else '/'


def build_canonical(base_url: str, path: str) -> str:
    """Absolute canonical URL without trailing slash"""
    base = base_url.rstrip('/')
    path = path.strip('/')
    return f"{base}/{path}" if path else base


def hub_breadcrumb(page_type: PageType) -> Breadcrumb:
    return Breadcrumb(name=HUB_NAMES[page_type], slug=HUB_PATHS[page_type])


def home_breadcrumb() -> Breadcrumb:
    return hub_breadcrumb(PageType.HOME)


def breadcrumb_path(entity: Entity, lookups: Optional[Dict[str, Entity]] = None) -> List[Breadcrumb]:
    """Ordered path from the site root to the entity.

    lookups may carry the product's 'brand' or the pharmacy's 'city' so
    the trail includes that intermediate page; missing ones are skipped.
    """
    lookups = lookups or {}
    trail = [home_breadcrumb(), hub_breadcrumb(PARENT_HUBS[entity.entity_type])]

    if isinstance(entity, Product):
        brand = lookups.get('brand')
        if isinstance(brand, Brand):
            trail.append(Breadcrumb(brand.name, path_for(brand)))
    elif isinstance(entity, Pharmacy):
        city = lookups.get('city')
        if isinstance(city, City):
            trail.append(Breadcrumb(city.name, path_for(city)))
    elif isinstance(entity, Category):
        parent = lookups.get('parent_category')
        if isinstance(parent, Category):
            trail.append(Breadcrumb(parent.name_de, path_for(parent)))
    elif not isinstance(entity, (Strain, City, Brand, Terpene)):
        raise TypeError(f"Unknown entity type: {type(entity).__name__}")

    trail.append(Breadcrumb(_display_name(entity), path_for(entity)))
    return trail


def hub_breadcrumb_path(page_type: PageType) -> List[Breadcrumb]:
    if page_type == PageType.HOME:
        return [home_breadcrumb()]
    return [home_breadcrumb(), hub_breadcrumb(page_type)]


def _display_name(entity: Entity) -> str:
    if isinstance(entity, Category):
        return entity.name_de or entity.name
    return entity.name
