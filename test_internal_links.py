"""Tests for internal link sections"""

from dataclasses import replace

import pytest

from pseo_engine import SECTION_LIMITS, SECTION_PRIORITIES
from pseo_engine.core.models import PageType
from pseo_engine.seo.internal_links import InternalLinkBuilder


@pytest.fixture
def builder(graph):
    return InternalLinkBuilder(graph)


def hrefs(link_set, section):
    return [link.href for link in link_set.get(section)]


def test_strain_links(builder, graph):
    links = builder.for_entity(graph.strain('og-kush'))

    assert hrefs(links, 'breadcrumb') == ['/', '/strains']
    assert hrefs(links, 'child_strains') == ['/strain/girl-scout-cookies']
    assert hrefs(links, 'terpenes') == ['/terpene/myrcene', '/terpene/limonene']
    assert hrefs(links, 'products') == ['/product/aurora-og-kush', '/product/tilray-og-kush']
    # the only similar strain is already linked as a child
    assert links.get('related_strains') == ()


def test_product_links(builder, graph):
    links = builder.for_entity(graph.product('aurora-og-kush'))

    assert hrefs(links, 'breadcrumb') == ['/', '/products', '/brand/aurora']
    assert hrefs(links, 'related_strains') == ['/strain/og-kush']
    assert hrefs(links, 'brand') == ['/brand/aurora']
    assert hrefs(links, 'category') == ['/products/flowers']
    assert hrefs(links, 'pharmacies') == ['/apotheke/gruenhorn-apotheke', '/apotheke/alexander-apotheke']
    assert hrefs(links, 'alternatives') == [
        '/product/tilray-og-kush', '/product/aurora-blue-dream', '/product/tilray-sativa',
    ]


def test_pharmacy_links(builder, graph):
    links = builder.for_entity(graph.pharmacy('gruenhorn-apotheke'))

    assert hrefs(links, 'city') == ['/cannabis-apotheke/berlin']
    assert hrefs(links, 'nearby') == [
        '/apotheke/alexander-apotheke', '/apotheke/spree-apotheke', '/apotheke/hafen-apotheke',
    ]
    assert hrefs(links, 'products') == ['/product/aurora-og-kush']
    assert hrefs(links, 'breadcrumb') == ['/', '/cannabis-apotheke', '/cannabis-apotheke/berlin']


def test_nearby_pharmacies_follow_graph_ranking(graph):
    pharmacy = replace(graph.pharmacy('gruenhorn-apotheke'), nearby_pharmacy_ids=('ph-4', 'ph-missing', 'ph-3'))
    nearby = InternalLinkBuilder(graph).nearby_pharmacies(pharmacy)
    assert [p.slug for p in nearby] == ['hafen-apotheke', 'spree-apotheke']

    capped = InternalLinkBuilder(graph, {'nearby': 1}).for_entity(graph.pharmacy('gruenhorn-apotheke'))
    assert hrefs(capped, 'nearby') == ['/apotheke/alexander-apotheke']


def test_city_links(builder, graph):
    links = builder.for_entity(graph.city('berlin'))

    assert hrefs(links, 'pharmacies') == [
        '/apotheke/alexander-apotheke', '/apotheke/gruenhorn-apotheke', '/apotheke/spree-apotheke',
    ]
    assert hrefs(links, 'nearby') == ['/cannabis-apotheke/potsdam', '/cannabis-apotheke/hamburg']


def test_terpene_and_category_links(builder, graph):
    terpene_links = builder.for_entity(graph.terpene('myrcene'))
    assert len(terpene_links.get('related_strains')) == 3

    category_links = builder.for_entity(graph.category('extracts'))
    assert hrefs(category_links, 'products') == ['/product/aurora-extrakt']
    # a page never links to itself from the footer
    assert '/products/extracts' not in hrefs(category_links, 'footer')


def test_footer_lists_hubs_then_categories(builder, graph):
    links = builder.for_entity(graph.brand('tilray'))
    assert hrefs(links, 'footer') == [
        '/strains', '/cannabis-apotheke', '/products', '/brands', '/terpenes',
        '/products/flowers', '/products/extracts',
    ]


def test_sections_respect_limits(graph):
    builder = InternalLinkBuilder(graph, section_limits={'pharmacies': 1, 'footer': 2})
    links = builder.for_entity(graph.city('berlin'))

    assert hrefs(links, 'pharmacies') == ['/apotheke/alexander-apotheke']
    assert len(links.get('footer')) == 2


def test_every_section_within_default_limits(builder, graph):
    for entity in list(graph.strains.values()) + list(graph.products.values()) + list(graph.cities.values()):
        for section, section_links in builder.for_entity(entity).sections:
            assert len(section_links) <= SECTION_LIMITS[section]
            assert all(link.priority == SECTION_PRIORITIES[section] for link in section_links)
            assert len({link.href for link in section_links}) == len(section_links)


def test_unknown_section_is_rejected(graph):
    with pytest.raises(ValueError):
        InternalLinkBuilder(graph, section_limits={'sidebar': 3})
    with pytest.raises(ValueError):
        InternalLinkBuilder(graph, section_priorities={'footer': -1})


def test_ranked_orders_by_priority(builder, graph):
    ranked = builder.for_entity(graph.product('aurora-og-kush')).ranked()
    priorities = [link.priority for link in ranked]
    assert priorities == sorted(priorities, reverse=True)


def test_links_have_non_empty_anchor_text(builder, graph):
    for pharmacy in graph.pharmacies.values():
        for link in builder.for_entity(pharmacy).ranked():
            assert link.anchor_text
            assert link.title


def test_hub_links(builder):
    links = builder.for_hub(PageType.STRAINS_HUB)
    assert hrefs(links, 'breadcrumb') == ['/']
    assert '/strains' not in hrefs(links, 'footer')


def test_link_set_to_dict(builder, graph):
    data = builder.for_entity(graph.strain('blue-dream')).to_dict()
    assert list(data)[0] == 'breadcrumb'
    assert data['products'][0]['target_slug'] == 'aurora-blue-dream'
    assert data['products'][0]['target_type'] == 'product'


def test_unknown_entity_type(builder):
    with pytest.raises(TypeError):
        builder.for_entity('og-kush')
