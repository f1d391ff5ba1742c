"""Tests for page metadata"""

import pytest

from pseo_engine import META_LIMITS
from pseo_engine.core.config import ResolverConfig
from pseo_engine.core.models import PageType, Strain
from pseo_engine.seo.indexability import check_facet, check_hub, check_indexability
from pseo_engine.seo.meta_builder import MetaBuilder, RobotsDirective


@pytest.fixture
def meta():
    return MetaBuilder(ResolverConfig(base_url='https://example.com/'))


def test_strain_meta(meta, graph):
    strain = graph.strain('og-kush')
    page = meta.for_entity(strain, check_indexability(strain))

    assert page.title == 'OG Kush (Hybrid) – Wirkung, THC & Verfügbarkeit'
    assert page.description.startswith('OG Kush: Entspannt, Glücklich. 18-24% THC, 0-1% CBD.')
    assert 'Bei 3 Apotheken verfügbar' in page.description
    assert page.canonical == 'https://example.com/strain/og-kush'
    assert page.robots.index


def test_product_meta_skips_brand_already_in_name(meta, graph):
    product = graph.product('aurora-og-kush')
    brand = graph.brand('aurora')
    page = meta.for_entity(product, check_indexability(product), brand=brand)

    assert page.title == 'Aurora OG Kush | ab 9,00 €'
    assert 'THC: 22%, CBD: 1%, Blüten' in page.description
    assert page.open_graph.type == 'product'


def test_robots_follow_the_gate(meta, graph):
    product = graph.product('aurora-extrakt')
    page = meta.for_entity(product, check_indexability(product))
    assert not page.robots.index
    assert page.robots.content.startswith('noindex, follow')


def test_city_meta(meta, graph):
    city = graph.city('berlin')
    page = meta.for_entity(city, check_indexability(city))
    assert page.title == 'Cannabis Apotheke Berlin – 3 Apotheken'
    assert 'Preise von 9,00 € bis 12,00 €' in page.description


def test_titles_and_descriptions_fit_limits(meta, graph):
    long_name = 'Super Lemon Haze Extra Long Name Auto Feminized Cannabis Sorte Deluxe Edition'
    strain = Strain('s-long', 'super-lemon-haze', long_name)
    entities = [strain] + [e for mapping in (graph.strains, graph.products, graph.pharmacies, graph.cities,
                                             graph.brands, graph.terpenes, graph.categories)
                           for e in mapping.values()]
    for entity in entities:
        page = meta.for_entity(entity, check_indexability(entity))
        assert len(page.title) <= META_LIMITS['title']
        assert len(page.description) <= META_LIMITS['description']
        assert len(page.open_graph.title) <= META_LIMITS['og_title']
        assert len(page.twitter.description) <= META_LIMITS['twitter_description']


def test_long_title_truncated_at_word_boundary(meta):
    strain = Strain('s', 'long', 'Super Lemon Haze Extra Long Name Auto Feminized Cannabis Sorte Deluxe')
    page = meta.for_entity(strain, check_indexability(strain))
    assert page.title.endswith('...')
    assert not page.title[:-3].endswith(' ')


def test_uncurated_facet_canonical_points_to_category(meta, graph):
    category = graph.category('flowers')
    result = check_facet(category, 'thc-15-18')
    page = meta.facet_meta(category, 'thc-15-18', 'THC 15-18%', result, 0)

    assert page.canonical == 'https://example.com/products/flowers'
    assert not page.robots.index


def test_curated_facet_keeps_own_canonical(meta, graph):
    category = graph.category('flowers')
    result = check_facet(category, 'thc-20-25')
    page = meta.facet_meta(category, 'thc-20-25', 'THC 20-25%', result, 4)
    assert page.canonical == 'https://example.com/products/flowers/thc-20-25'


def test_hub_meta(meta):
    page = meta.hub_meta(PageType.HOME, check_hub(PageType.HOME))
    assert page.canonical == 'https://example.com'

    strains = meta.hub_meta(PageType.STRAINS_HUB, check_hub(PageType.STRAINS_HUB), 4)
    assert strains.canonical == 'https://example.com/strains'
    assert '4 Einträge' in strains.description


def test_social_meta_uses_site_config(graph):
    config = ResolverConfig(base_url='https://cannabis.example', site_name='Testseite', twitter_site='@test')
    meta = MetaBuilder(config)
    brand = graph.brand('aurora')
    page = meta.for_entity(brand, check_indexability(brand))

    assert page.open_graph.site_name == 'Testseite'
    assert page.open_graph.locale == 'de_DE'
    assert page.twitter.site == '@test'
    assert page.twitter.card == 'summary'


def test_robots_directive_content():
    assert RobotsDirective(index=True).content == 'index, follow, max-snippet:-1, max-image-preview:large'


def test_meta_to_dict(meta, graph):
    terpene = graph.terpene('myrcene')
    data = meta.for_entity(terpene, check_indexability(terpene)).to_dict()
    assert set(data) == {'title', 'description', 'canonical', 'robots', 'open_graph', 'twitter'}
    assert data['title'].startswith('Myrcen')


def test_unknown_entity_type(meta, graph):
    with pytest.raises(TypeError):
        meta.for_entity(object(), check_hub(PageType.HOME))
