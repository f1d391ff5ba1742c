"""Cannabis pSEO Engine - Core Module"""

from typing import Dict, Any

__version__ = "1.0.0"

# Indexability thresholds (overridable per run)
INDEXABILITY_THRESHOLDS = {
    'min_city_pharmacies': 3,
    'min_city_offers': 10,
    'min_product_price_samples': 5,
    'min_brand_products_index': 1,
    'min_brand_products_link': 3,  # editorial rule for hub listings, not indexing
    'min_terpene_strains': 3,
}

# Maximum links emitted per section
SECTION_LIMITS = {
    'breadcrumb': 5,
    'related_strains': 6,
    'parent_strains': 3,
    'child_strains': 6,
    'terpenes': 5,
    'products': 10,
    'pharmacies': 10,
    'city': 1,
    'brand': 1,
    'category': 1,
    'alternatives': 6,
    'nearby': 5,
    'footer': 10,
}

# Higher = more important
SECTION_PRIORITIES = {
    'breadcrumb': 10,
    'parent_strains': 9,
    'child_strains': 8,
    'related_strains': 7,
    'terpenes': 6,
    'products': 6,
    'category': 5,
    'brand': 5,
    'pharmacies': 5,
    'city': 5,
    'alternatives': 4,
    'nearby': 4,
    'footer': 3,
}

assert set(SECTION_LIMITS) == set(SECTION_PRIORITIES), "Every link section needs a limit and a priority"

# Character limits for metadata
META_LIMITS = {
    'title': 60,
    'description': 160,
    'og_title': 70,
    'og_description': 200,
    'twitter_title': 70,
    'twitter_description': 200,
}

SITEMAP_DEFAULTS = {
    'max_urls_per_sitemap': 10000,
    'item_list_limit': 20,
}

# Strain similarity scoring
SIMILARITY_SETTINGS = {
    'same_genetic_type': 2.0,
    'shared_parent': 2.0,
    'same_breeder': 1.0,
    'shared_terpene': 1.0,
    'shared_effect': 0.5,
    'similar_thc': 1.0,
    'thc_tolerance': 3.0,
    'min_score': 3.0,
    'max_similar': 6,
}

# Product alternative weights by reason
ALTERNATIVE_SETTINGS = {
    'same_strain': 1.0,
    'similar_thc_cbd': 0.8,
    'same_brand': 0.6,
    'price_comparable': 0.5,
    'same_form': 0.4,
    'thc_tolerance': 2.0,
    'cbd_tolerance': 1.0,
    'price_tolerance': 0.15,  # ±15% of median price
    'max_alternatives': 6,
}

# Partner site for outbound links
EXTERNAL_URLS = {
    'base': 'https://weed.de',
    'product': 'https://weed.de/produkt/{slug}',
    'pharmacy': 'https://weed.de/apotheke/{slug}',
    'strain': 'https://weed.de/strains/{slug}',
    'brand_search': 'https://weed.de/produktsuche?manufacturer={name}',
    'pharmacy_search': 'https://weed.de/apothekensuche',
    'product_search': 'https://weed.de/produktsuche',
    'become_patient': 'https://weed.de/patient-werden',
}

DEFAULT_RESOLVER_CONFIG: Dict[str, Any] = {
    'base_url': 'https://example.com',
    'default_locale': 'de_DE',
    'site_name': 'Cannabis Deutschland',
    'twitter_site': '@cannabisde',
}
