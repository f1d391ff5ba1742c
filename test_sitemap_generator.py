"""Tests for sitemap sharding, rendering and robots.txt"""

from dataclasses import replace

import pytest

from pseo_engine.graph import build_entity_graph
from pseo_engine.seo.sitemap_generator import (
    SitemapConfig, SitemapFile, SitemapGenerator, SitemapIndex, SitemapUrl,
    generate_robots_txt, generate_sitemap_index_xml, generate_sitemap_xml,
    generate_sitemaps, get_sitemap_stats, shard_urls,
)

BASE_URL = 'https://example.com'


def create_urls(count):
    return [SitemapUrl(loc=f"{BASE_URL}/strain/s-{i}") for i in range(count)]


@pytest.fixture
def build(graph):
    return generate_sitemaps(graph, SitemapConfig(base_url=BASE_URL + '/', lastmod='2024-05-01'))


def locs(build, filename):
    files = {f.filename: f for f in build.files}
    return [url.loc for url in files[filename].urls]


def test_shard_sizes():
    files = shard_urls(create_urls(25000), 10000, 'sitemap-strains')
    assert [f.url_count for f in files] == [10000, 10000, 5000]
    assert [f.filename for f in files] == [
        'sitemap-strains-1.xml', 'sitemap-strains-2.xml', 'sitemap-strains-3.xml',
    ]
    # order is preserved across shards
    assert files[1].urls[0].loc == f"{BASE_URL}/strain/s-10000"


def test_single_shard_has_no_suffix():
    files = shard_urls(create_urls(3), 10000, 'sitemap-brands')
    assert [f.filename for f in files] == ['sitemap-brands.xml']
    assert shard_urls([], 10000, 'sitemap-brands') == []


def test_exact_multiple_shards():
    files = shard_urls(create_urls(20), 10, 'sitemap-products')
    assert [f.url_count for f in files] == [10, 10]


def test_invalid_shard_size():
    with pytest.raises(ValueError):
        shard_urls(create_urls(3), 0, 'sitemap-strains')
    with pytest.raises(ValueError):
        SitemapConfig(base_url=BASE_URL, max_urls_per_sitemap=0)


def test_sitemap_url_validation():
    with pytest.raises(ValueError):
        SitemapUrl(loc=BASE_URL, changefreq='sometimes')
    with pytest.raises(ValueError):
        SitemapUrl(loc=BASE_URL, priority=1.5)


def test_files_follow_policy_order(build):
    assert [f.filename for f in build.files] == [
        'sitemap-static.xml',
        'sitemap-strains.xml',
        'sitemap-products.xml',
        'sitemap-cities.xml',
        'sitemap-pharmacies.xml',
        'sitemap-brands.xml',
        'sitemap-terpenes.xml',
        'sitemap-categories.xml',
    ]
    assert build.total_urls == 23


def test_only_indexable_entities_are_listed(build):
    assert locs(build, 'sitemap-strains.xml') == [
        f"{BASE_URL}/strain/og-kush",
        f"{BASE_URL}/strain/blue-dream",
        f"{BASE_URL}/strain/girl-scout-cookies",
    ]
    assert f"{BASE_URL}/product/aurora-extrakt" not in locs(build, 'sitemap-products.xml')
    assert locs(build, 'sitemap-cities.xml') == [f"{BASE_URL}/cannabis-apotheke/berlin"]
    assert len(locs(build, 'sitemap-pharmacies.xml')) == 4
    assert locs(build, 'sitemap-terpenes.xml') == [f"{BASE_URL}/terpene/myrcene"]


def test_in_stock_products_come_first(build):
    assert locs(build, 'sitemap-products.xml')[-1] == f"{BASE_URL}/product/tilray-sativa"


def test_brands_follow_linking_rule(build):
    assert locs(build, 'sitemap-brands.xml') == [f"{BASE_URL}/brand/aurora"]


def test_categories_include_curated_facets(build):
    assert locs(build, 'sitemap-categories.xml') == [
        f"{BASE_URL}/products/flowers",
        f"{BASE_URL}/products/flowers/thc-20-25",
        f"{BASE_URL}/products/extracts",
    ]


def test_unresolvable_curated_facets_are_skipped(catalog):
    catalog['categories'] = [
        replace(c, curated_facets=('thc-20-25', 'brand-unknown', 'sativa', 'brand-tilray'))
        if c.slug == 'flowers' else c
        for c in catalog['categories']
    ]
    build = generate_sitemaps(build_entity_graph(**catalog), SitemapConfig(BASE_URL, lastmod='2024-05-01'))

    assert locs(build, 'sitemap-categories.xml') == [
        f"{BASE_URL}/products/flowers",
        f"{BASE_URL}/products/flowers/thc-20-25",
        f"{BASE_URL}/products/flowers/brand-tilray",
        f"{BASE_URL}/products/extracts",
    ]


def test_static_pages(build):
    static = {f.filename: f for f in build.files}['sitemap-static.xml']
    assert static.urls[0].loc == BASE_URL
    assert static.urls[0].priority == 1.0


def test_small_shard_size_splits_entity_files(graph):
    build = SitemapGenerator(graph, SitemapConfig(BASE_URL, max_urls_per_sitemap=2, lastmod='2024-05-01')).generate()
    names = [f.filename for f in build.files]
    assert 'sitemap-pharmacies-1.xml' in names
    assert 'sitemap-pharmacies-2.xml' in names
    assert names[:3] == ['sitemap-static-1.xml', 'sitemap-static-2.xml', 'sitemap-static-3.xml']
    assert all(f.url_count <= 2 for f in build.files)
    assert len(build.index.sitemaps) == len(build.files)


def test_index_lists_every_file(build):
    assert build.index.sitemaps[0] == (f"{BASE_URL}/sitemap-static.xml", '2024-05-01')
    assert all(lastmod == '2024-05-01' for _, lastmod in build.index.sitemaps)


def test_sitemap_xml_formats_priority_and_escapes():
    xml = generate_sitemap_xml([
        SitemapUrl(loc=f"{BASE_URL}/search?q=a&b=c", changefreq='daily', priority=0.7, lastmod='2024-05-01'),
        SitemapUrl(loc=f"{BASE_URL}/strain/og-kush", priority=1.0),
    ])
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert '<loc>https://example.com/search?q=a&amp;b=c</loc>' in xml
    assert '<priority>0.7</priority>' in xml
    assert '<priority>1.0</priority>' in xml
    assert '<changefreq>daily</changefreq>' in xml
    assert xml.count('<url>') == 2


def test_empty_sitemap_xml_is_well_formed():
    xml = generate_sitemap_xml([])
    assert '<urlset' in xml
    assert '<url>' not in xml


def test_sitemap_index_xml():
    index = SitemapIndex(sitemaps=((f"{BASE_URL}/sitemap-static.xml", '2024-05-01'),))
    xml = generate_sitemap_index_xml(index)
    assert '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">' in xml
    assert '<lastmod>2024-05-01</lastmod>' in xml


def test_robots_txt():
    robots = generate_robots_txt(BASE_URL + '/')
    assert 'User-agent: *' in robots
    assert 'Disallow: /api/' in robots
    assert 'Sitemap: https://example.com/sitemap-index.xml' in robots


def test_render_includes_index_and_robots(build):
    documents = build.render(BASE_URL)
    assert 'sitemap-index.xml' in documents
    assert 'robots.txt' in documents
    assert len(documents) == len(build.files) + 2


def test_sitemap_stats(build):
    stats = get_sitemap_stats(build.files)
    assert stats['total_files'] == 8
    assert stats['total_urls'] == 23
    assert stats['by_type']['pharmacies'] == 4
    assert stats['by_type']['categories'] == 3
    assert get_sitemap_stats([]) == {'total_files': 0, 'total_urls': 0, 'by_type': {}}


def test_sitemap_type_from_filename():
    assert SitemapFile('sitemap-products-2.xml', ()).sitemap_type == 'products'
    assert SitemapFile('extra.xml', ()).sitemap_type == 'other'
