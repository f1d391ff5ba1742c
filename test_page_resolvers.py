"""Tests for page-data resolution"""

import json

import pytest

from pseo_engine.core.config import ResolverConfig
from pseo_engine.core.models import PageType
from pseo_engine.resolvers import (
    PageResolver, resolve_apotheke_hub, resolve_brand_page, resolve_brands_hub,
    resolve_category_facet_page, resolve_category_page, resolve_city_page,
    resolve_home_page, resolve_pages, resolve_pharmacy_page, resolve_product_page,
    resolve_products_hub, resolve_strain_page, resolve_strains_hub,
    resolve_terpene_page, resolve_terpenes_hub,
)


@pytest.fixture
def resolver(graph):
    return PageResolver(graph)


def slugs(items):
    return [item['slug'] for item in items]


def test_resolution_is_deterministic(graph):
    first = resolve_product_page(graph, 'aurora-og-kush')
    second = resolve_product_page(graph, 'aurora-og-kush')
    assert first.to_json() == second.to_json()
    assert resolve_home_page(graph).to_json() == resolve_home_page(graph).to_json()


@pytest.mark.parametrize('resolve', [
    resolve_strain_page, resolve_product_page, resolve_pharmacy_page, resolve_city_page,
    resolve_brand_page, resolve_terpene_page, resolve_category_page,
])
def test_unknown_slug_is_not_found(graph, resolve):
    assert resolve(graph, 'does-not-exist') is None


def test_strain_page(graph):
    page = resolve_strain_page(graph, 'og-kush')

    assert page.page_type == PageType.STRAIN
    assert page.strain['name'] == 'OG Kush'
    assert page.strain['genetic_type'] == 'hybrid'
    assert page.strain['breeder'] == 'Imperial Genetics'
    assert [t['slug'] for t in page.strain['terpenes']] == ['myrcene', 'limonene']
    assert slugs(page.products) == ['aurora-og-kush', 'tilray-og-kush']
    assert page.stats['pharmacy_count'] == 3
    assert slugs(page.similar_strains) == ['girl-scout-cookies']
    assert page.similar_strains[0]['weight'] == pytest.approx(0.6)
    assert slugs(page.lineage['children']) == ['girl-scout-cookies']
    assert page.lineage['parents'] == []
    assert page.external['partner_url'] == 'https://weed.de/strains/og-kush'
    assert page.indexability.should_index


def test_strain_lookup_by_id(graph):
    page = resolve_strain_page(graph, 's-og')
    assert page.slug == 'og-kush'


def test_thin_strain_still_resolves_as_noindex(graph):
    page = resolve_strain_page(graph, 'mystery')
    assert not page.indexability.should_index
    assert not page.seo.meta.robots.index
    assert page.products == []


def test_product_page(graph):
    page = resolve_product_page(graph, 'aurora-og-kush')

    assert [o['pharmacy_name'] for o in page.offers] == ['Grünhorn Apotheke', 'Alexander Apotheke']
    assert page.offers[0]['price_formatted'] == '9,00 €'
    assert slugs(page.alternatives) == ['tilray-og-kush', 'aurora-blue-dream', 'tilray-sativa']
    assert page.alternatives[0]['reason'] == 'same_strain'
    assert page.brand['slug'] == 'aurora'
    assert page.strain['slug'] == 'og-kush'
    assert page.category['name'] == 'Blüten'
    assert page.product['price_range']['min_formatted'] == '9,00 €'
    assert page.external['partner_url'] == 'https://weed.de/produkt/aurora-og-kush'

    schema_types = [s['@type'] for s in page.seo.schema]
    assert schema_types == ['BreadcrumbList', 'Product']
    assert page.seo.json_ld['@context'] == 'https://schema.org'


def test_product_without_offers(graph):
    page = resolve_product_page(graph, 'aurora-extrakt')
    assert page.offers == []
    assert not page.indexability.should_index
    assert page.indexability.reason.value == 'no_offers'


def test_pharmacy_page(graph):
    page = resolve_pharmacy_page(graph, 'hafen-apotheke')

    assert page.city['slug'] == 'hamburg'
    assert slugs(page.products) == ['tilray-og-kush']
    assert page.products[0]['pharmacy_price_cents'] == 1100
    assert page.external['partner_url'] == 'https://weed.de/apotheke/hafen-apotheke'
    assert page.indexability.should_index


def test_pharmacy_details(graph):
    page = resolve_pharmacy_page(graph, 'gruenhorn-apotheke')
    assert page.pharmacy['address']['postal_code'] == '10117'
    assert page.pharmacy['rating'] == 4.6
    assert page.pharmacy['price_score'] == 64
    assert page.seo.schema[1]['@type'] == 'Pharmacy'


def test_city_page(graph):
    page = resolve_city_page(graph, 'berlin')

    assert page.stats['pharmacy_count'] == 3
    assert page.stats['offer_count'] == 3
    assert slugs(page.pharmacies) == ['alexander-apotheke', 'gruenhorn-apotheke', 'spree-apotheke']
    assert slugs(page.nearby_cities) == ['potsdam', 'hamburg']
    assert set(page.external) == {'pharmacy_search_url', 'become_patient_url'}
    assert page.seo.meta.title == 'Cannabis Apotheke Berlin – 3 Apotheken'


def test_small_city_is_noindex(graph):
    page = resolve_city_page(graph, 'hamburg')
    assert not page.indexability.should_index
    assert page.seo.meta.robots.content.startswith('noindex')


def test_brand_page(graph):
    page = resolve_brand_page(graph, 'aurora')

    assert page.stats['product_count'] == 3
    assert page.stats['in_stock_count'] == 2
    assert page.stats['listed_in_hub']
    assert slugs(page.products) == ['aurora-og-kush', 'aurora-blue-dream']
    assert page.external['partner_url'] == 'https://weed.de/produktsuche?manufacturer=Aurora'

    assert not resolve_brand_page(graph, 'tilray').stats['listed_in_hub']


def test_item_lists_only_carry_listable_products(graph):
    brand_page = resolve_brand_page(graph, 'aurora')
    item_list = next(s for s in brand_page.seo.schema if s['@type'] == 'ItemList')

    assert item_list['numberOfItems'] == 2
    assert [item['url'] for item in item_list['itemListElement']] == [
        'https://example.com/product/aurora-og-kush', 'https://example.com/product/aurora-blue-dream',
    ]

    category_page = resolve_category_page(graph, 'extracts')
    assert category_page.products == []
    assert all(s['@type'] != 'ItemList' for s in category_page.seo.schema)


def test_terpene_page(graph):
    page = resolve_terpene_page(graph, 'myrcene')

    assert page.terpene['name_de'] == 'Myrcen'
    assert slugs(page.strains) == ['og-kush', 'blue-dream', 'girl-scout-cookies']
    assert page.related_terpenes == [{'slug': 'limonene', 'name': 'Limonen', 'shared_strains': 2}]


def test_category_page_stats(graph):
    page = resolve_category_page(graph, 'flowers')

    assert page.stats['product_count'] == 4
    assert page.stats['brand_count'] == 2
    assert page.stats['avg_thc'] == 21.5
    assert [(b['slug'], b['product_count']) for b in page.stats['top_brands']] == [('aurora', 2), ('tilray', 2)]
    assert page.stats['genetics_breakdown'] == {'indica': 0, 'sativa': 1, 'hybrid': 2}
    assert page.stats['price_range']['min_cents'] == 900
    assert page.stats['price_range']['max_cents'] == 1100
    assert page.category['curated_facets'] == ['thc-20-25']
    assert page.facet is None


def test_curated_facet_page(graph):
    page = resolve_category_facet_page(graph, 'flowers', 'thc-20-25')

    assert page.page_type == PageType.CATEGORY_FACET
    assert page.slug == 'flowers/thc-20-25'
    assert page.facet['label'] == 'THC 20-25%'
    assert page.facet['curated']
    assert len(page.products) == 4
    assert page.indexability.should_index
    assert page.seo.meta.canonical == 'https://example.com/products/flowers/thc-20-25'
    assert page.seo.breadcrumbs[-1].name == 'THC 20-25%'
    assert [s['@type'] for s in page.seo.schema] == ['BreadcrumbList']


def test_uncurated_facet_canonicalizes_to_category(graph):
    page = resolve_category_facet_page(graph, 'flowers', 'thc-22-25')

    assert slugs(page.products) == ['aurora-og-kush', 'tilray-og-kush']
    assert not page.facet['curated']
    assert not page.indexability.should_index
    assert page.seo.meta.canonical == 'https://example.com/products/flowers'
    assert page.facet['category_url'] == 'https://example.com/products/flowers'


def test_brand_and_form_facets(graph):
    page = resolve_category_facet_page(graph, 'flowers', 'brand-tilray')
    assert page.facet['label'] == 'Tilray'
    assert slugs(page.products) == ['tilray-og-kush', 'tilray-sativa']

    assert len(resolve_category_facet_page(graph, 'flowers', 'flower').products) == 4


@pytest.mark.parametrize('category_slug,facet_slug', [
    ('flowers', 'color-green'),
    ('flowers', 'thc-25-20'),
    ('flowers', 'brand-unknown'),
    ('unknown', 'thc-20-25'),
])
def test_unparseable_facet_is_not_found(graph, category_slug, facet_slug):
    assert resolve_category_facet_page(graph, category_slug, facet_slug) is None


def test_strains_hub(graph):
    page = resolve_strains_hub(graph)

    assert page.stats['count'] == 4
    assert slugs(page.groups['hybrid']) == ['og-kush', 'girl-scout-cookies']
    assert slugs(page.groups['sativa']) == ['blue-dream']
    assert page.groups['indica'] == []
    assert page.stats['top_terpenes'][0]['slug'] == 'myrcene'
    assert page.seo.meta.canonical == 'https://example.com/strains'


def test_apotheke_hub(graph):
    page = resolve_apotheke_hub(graph)

    assert slugs(page.items) == ['berlin', 'hamburg']
    assert set(page.groups) == {'Berlin', 'Hamburg'}
    assert page.groups['Berlin'][0]['indexable']
    assert not page.groups['Hamburg'][0]['indexable']
    assert page.stats['pharmacy_count'] == 4


def test_other_hubs(graph):
    assert slugs(resolve_terpenes_hub(graph).items) == ['myrcene', 'limonene']
    assert slugs(resolve_brands_hub(graph).items) == ['aurora']

    products = resolve_products_hub(graph)
    assert 'aurora-extrakt' not in slugs(products.items)
    assert slugs(products.groups['categories']) == ['flowers', 'extracts']


def test_home_page(graph):
    page = resolve_home_page(graph)

    assert page.slug == ''
    assert [item['count'] for item in page.items] == [4, 3, 2, 5, 2]
    assert page.stats['count'] == 16
    assert page.seo.meta.canonical == 'https://example.com'
    assert [s['@type'] for s in page.seo.schema] == ['BreadcrumbList']


def test_dispatch(resolver):
    assert resolver.resolve(PageType.STRAIN, 'blue-dream').slug == 'blue-dream'
    assert resolver.resolve(PageType.CATEGORY_FACET, 'flowers/thc-20-25').facet['curated']
    assert resolver.resolve(PageType.HOME).page_type == PageType.HOME
    assert resolver.resolve(PageType.CATEGORY_FACET, 'flowers') is None


def test_resolve_pages_keeps_order(graph):
    pages = resolve_pages(graph, PageType.STRAIN, ['blue-dream', 'nope', 'og-kush'], max_workers=2)

    assert pages[0].slug == 'blue-dream'
    assert pages[1] is None
    assert pages[2].slug == 'og-kush'
    assert resolve_pages(graph, PageType.STRAIN, []) == []


def test_to_dict_layout(graph):
    data = resolve_city_page(graph, 'berlin').to_dict()

    keys = list(data)
    assert keys[:2] == ['page_type', 'slug']
    assert keys[-4:] == ['seo', 'links', 'external', 'indexability']
    assert data['page_type'] == 'city'
    assert data['seo']['breadcrumbs'][0] == {'name': 'Home', 'href': 'https://example.com'}
    json.loads(resolve_city_page(graph, 'berlin').to_json())


def test_config_dict_overrides(graph):
    page = resolve_strain_page(graph, 'og-kush', {'resolver': {'base_url': 'https://cannabis.example/'}})
    assert page.seo.meta.canonical == 'https://cannabis.example/strain/og-kush'

    page = resolve_city_page(graph, 'hamburg', {'indexability': {'min_city_pharmacies': 1}})
    assert page.indexability.should_index


def test_top_level_resolver_fields(graph):
    page = resolve_strain_page(graph, 'og-kush', {'baseUrl': 'https://cannabis.example', 'siteName': 'X'})
    assert page.seo.meta.canonical == 'https://cannabis.example/strain/og-kush'
    assert page.seo.meta.open_graph.site_name == 'X'

    page = resolve_strain_page(graph, 'og-kush', {'site_name': 'Y', 'resolver': {'siteName': 'Z'}})
    assert page.seo.meta.open_graph.site_name == 'Z'


def test_config_object(graph):
    page = resolve_brand_page(graph, 'aurora', ResolverConfig(base_url='https://cannabis.example'))
    assert page.seo.meta.canonical == 'https://cannabis.example/brand/aurora'


def test_unknown_config_keys_are_rejected(graph):
    with pytest.raises(ValueError):
        PageResolver(graph, {'resolver': {'colour': 'green'}})
    with pytest.raises(ValueError):
        PageResolver(graph, {'indexability': {'min_city_shops': 1}})
    with pytest.raises(ValueError):
        PageResolver(graph, {'colour': 'green'})
