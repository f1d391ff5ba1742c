"""Page Resolvers: one page-data record per (graph, page type, slug)"""

from .page_data import PageData, SeoBlock
from .page_resolvers import (
    PageResolver,
    resolve_apotheke_hub,
    resolve_brand_page,
    resolve_brands_hub,
    resolve_category_facet_page,
    resolve_category_page,
    resolve_city_page,
    resolve_home_page,
    resolve_pages,
    resolve_pharmacy_page,
    resolve_product_page,
    resolve_products_hub,
    resolve_strain_page,
    resolve_strains_hub,
    resolve_terpene_page,
    resolve_terpenes_hub,
)

__all__ = [
    'PageData',
    'SeoBlock',
    'PageResolver',
    'resolve_apotheke_hub',
    'resolve_brand_page',
    'resolve_brands_hub',
    'resolve_category_facet_page',
    'resolve_category_page',
    'resolve_city_page',
    'resolve_home_page',
    'resolve_pages',
    'resolve_pharmacy_page',
    'resolve_product_page',
    'resolve_products_hub',
    'resolve_strain_page',
    'resolve_strains_hub',
    'resolve_terpene_page',
    'resolve_terpenes_hub'
]
