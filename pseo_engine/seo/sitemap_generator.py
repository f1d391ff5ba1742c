"""Sitemap Generator

Collects every indexable URL per entity type in a fixed policy order,
shards each list into size-bounded files and renders the sitemap XML,
the sitemap index and robots.txt. Runs once per build over the whole
graph; lastmod is the only value that may come from the clock and it is
injectable through SitemapConfig.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape
import logging
import math
import re

import pandas as pd

from .. import SITEMAP_DEFAULTS
from ..core.models import Brand, City, Entity, PageType, Pharmacy, Product, Strain, Terpene
from ..graph.entity_graph import EntityGraph
from .facets import parse_facet
from .indexability import (
    IndexabilityThresholds, check_city, check_product, check_strain,
    check_terpene, should_link_brand,
)
from .routes import HUB_PATHS, build_canonical, facet_path, path_for

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = 'http://www.sitemaps.org/schemas/sitemap/0.9'
SITEMAP_INDEX_FILENAME = 'sitemap-index.xml'
CHANGEFREQS = ('always', 'hourly', 'daily', 'weekly', 'monthly', 'yearly', 'never')

# (page, priority, changefreq)
STATIC_PAGES = (
    (PageType.HOME, 1.0, 'daily'),
    (PageType.APOTHEKE_HUB, 0.9, 'daily'),
    (PageType.PRODUCTS_HUB, 0.9, 'daily'),
    (PageType.STRAINS_HUB, 0.8, 'weekly'),
    (PageType.TERPENES_HUB, 0.6, 'weekly'),
    (PageType.BRANDS_HUB, 0.6, 'weekly'),
)

ROBOTS_ALLOW = ('/', '/strain/', '/product/', '/cannabis-apotheke/', '/apotheke/', '/products/', '/brand/', '/terpene/')
ROBOTS_DISALLOW_FACETS = ('/products/*?*', '/search/', '/search?*', '/api/', '/_next/')
ROBOTS_DISALLOW_THIN = ('/draft/', '/preview/')


def _xml(text: str) -> str:
    return escape(text, {'"': '&quot;', "'": '&apos;'})


@dataclass(frozen=True)
class SitemapUrl:
    loc: str
    changefreq: Optional[str] = None
    priority: Optional[float] = None
    lastmod: Optional[str] = None

    def __post_init__(self):
        if self.changefreq is not None and self.changefreq not in CHANGEFREQS:
            raise ValueError(f"Invalid changefreq {self.changefreq!r}")
        if self.priority is not None and not 0.0 <= self.priority <= 1.0:
            raise ValueError(f"Priority must be within 0.0-1.0, got {self.priority}")


@dataclass(frozen=True)
class SitemapFile:
    filename: str
    urls: Tuple[SitemapUrl, ...]

    @property
    def url_count(self) -> int:
        return len(self.urls)

    @property
    def sitemap_type(self) -> str:
        match = re.match(r'sitemap-([a-z]+)', self.filename)
        return match.group(1) if match else 'other'


@dataclass(frozen=True)
class SitemapIndex:
    sitemaps: Tuple[Tuple[str, str], ...]  # (loc, lastmod)


@dataclass(frozen=True)
class SitemapConfig:
    base_url: str
    max_urls_per_sitemap: int = SITEMAP_DEFAULTS['max_urls_per_sitemap']
    lastmod: Optional[str] = None  # ISO date; today when omitted
    thresholds: Optional[IndexabilityThresholds] = None

    def __post_init__(self):
        if self.max_urls_per_sitemap < 1:
            raise ValueError(f"max_urls_per_sitemap must be at least 1, got {self.max_urls_per_sitemap}")
        object.__setattr__(self, 'base_url', self.base_url.rstrip('/'))


@dataclass(frozen=True)
class SitemapBuild:
    index: SitemapIndex
    files: Tuple[SitemapFile, ...]
    lastmod: str

    @property
    def total_urls(self) -> int:
        return sum(f.url_count for f in self.files)

    def render(self, base_url: str) -> Dict[str, str]:
        """filename -> document, including the index and robots.txt"""
        documents = {f.filename: generate_sitemap_xml(f.urls) for f in self.files}
        documents[SITEMAP_INDEX_FILENAME] = generate_sitemap_index_xml(self.index)
        documents['robots.txt'] = generate_robots_txt(base_url)
        return documents


def shard_urls(urls: Sequence[SitemapUrl], max_per_sitemap: int, filename_prefix: str) -> List[SitemapFile]:
    """ceil(N/S) files of at most S urls; a single file has no numeric suffix"""
    if max_per_sitemap < 1:
        raise ValueError(f"max_per_sitemap must be at least 1, got {max_per_sitemap}")
    if not urls:
        return []
    if len(urls) <= max_per_sitemap:
        return [SitemapFile(filename=f"{filename_prefix}.xml", urls=tuple(urls))]

    chunks = math.ceil(len(urls) / max_per_sitemap)
    return [
        SitemapFile(
            filename=f"{filename_prefix}-{i + 1}.xml",
            urls=tuple(urls[i * max_per_sitemap:(i + 1) * max_per_sitemap]),
        )
        for i in range(chunks)
    ]


# Per-type priority heuristics

def strain_priority(strain: Strain) -> Tuple[float, str]:
    if strain.product_count > 5:
        return 0.8, 'weekly'
    if strain.product_count > 0:
        return 0.7, 'weekly'
    return 0.6, 'weekly'


def product_priority(product: Product) -> Tuple[float, str]:
    if product.in_stock:
        return 0.7, 'daily'
    return 0.5, 'weekly'


def city_priority(city: City) -> Tuple[float, str]:
    if city.pharmacy_count >= 10:
        return 0.8, 'daily'
    if city.pharmacy_count >= 5:
        return 0.7, 'daily'
    return 0.6, 'daily'


def pharmacy_priority(pharmacy: Pharmacy) -> Tuple[float, str]:
    return (0.6 if pharmacy.product_count > 20 else 0.5), 'daily'


def brand_priority(brand: Brand) -> Tuple[float, str]:
    return 0.5, 'weekly'


def terpene_priority(terpene: Terpene) -> Tuple[float, str]:
    return (0.6 if terpene.strain_count >= 10 else 0.5), 'weekly'


class SitemapGenerator:
    """Builds every sitemap shard for one graph snapshot"""

    def __init__(self, graph: EntityGraph, config: SitemapConfig):
        self.graph = graph
        self.config = config
        self.thresholds = config.thresholds or graph.thresholds

    def _url(self, path: str, lastmod: str, priority: float, changefreq: str) -> SitemapUrl:
        return SitemapUrl(
            loc=build_canonical(self.config.base_url, path),
            lastmod=lastmod,
            changefreq=changefreq,
            priority=priority,
        )

    def _entity_urls(self, entities: List[Entity], sort_key: Callable, heuristic: Callable, lastmod: str) -> List[SitemapUrl]:
        ordered = sorted(entities, key=sort_key)
        urls = []
        for entity in ordered:
            priority, changefreq = heuristic(entity)
            urls.append(self._url(path_for(entity), lastmod, priority, changefreq))
        return urls

    def static_urls(self, lastmod: str) -> List[SitemapUrl]:
        return [self._url(HUB_PATHS[page], lastmod, priority, changefreq) for page, priority, changefreq in STATIC_PAGES]

    def strain_urls(self, lastmod: str) -> List[SitemapUrl]:
        strains = [s for s in self.graph.strains.values() if check_strain(s).should_index]
        return self._entity_urls(strains, lambda s: (-s.product_count, s.slug), strain_priority, lastmod)

    def product_urls(self, lastmod: str) -> List[SitemapUrl]:
        products = [p for p in self.graph.products.values() if check_product(p, self.thresholds).should_index]
        return self._entity_urls(products, lambda p: (not p.in_stock, p.slug), product_priority, lastmod)

    def city_urls(self, lastmod: str) -> List[SitemapUrl]:
        cities = [c for c in self.graph.cities.values() if check_city(c, self.thresholds).should_index]
        return self._entity_urls(cities, lambda c: (-c.pharmacy_count, c.slug), city_priority, lastmod)

    def pharmacy_urls(self, lastmod: str) -> List[SitemapUrl]:
        pharmacies = list(self.graph.pharmacies.values())
        return self._entity_urls(pharmacies, lambda p: (-p.product_count, p.slug), pharmacy_priority, lastmod)

    def brand_urls(self, lastmod: str) -> List[SitemapUrl]:
        """Only brands that pass the hub-linking rule"""
        brands = [b for b in self.graph.brands.values() if should_link_brand(b, self.thresholds)]
        return self._entity_urls(brands, lambda b: (-b.product_count, b.slug), brand_priority, lastmod)

    def terpene_urls(self, lastmod: str) -> List[SitemapUrl]:
        terpenes = [t for t in self.graph.terpenes.values() if check_terpene(t, self.thresholds).should_index]
        return self._entity_urls(terpenes, lambda t: (-t.strain_count, t.slug), terpene_priority, lastmod)

    def category_urls(self, lastmod: str) -> List[SitemapUrl]:
        """Category roots plus the curated facets that resolve to a page"""
        urls = []
        for category in sorted(self.graph.categories.values(), key=lambda c: (-c.product_count, c.slug)):
            urls.append(self._url(path_for(category), lastmod, 0.9, 'daily'))
            for facet_slug in category.curated_facets:
                if parse_facet(facet_slug, self.graph.brand) is None:
                    logger.warning(f"Skipping unresolvable facet {category.slug}/{facet_slug}")
                    continue
                urls.append(self._url(facet_path(category.slug, facet_slug), lastmod, 0.6, 'weekly'))
        return urls

    def generate(self) -> SitemapBuild:
        lastmod = self.config.lastmod or date.today().isoformat()
        max_urls = self.config.max_urls_per_sitemap

        files = shard_urls(self.static_urls(lastmod), max_urls, 'sitemap-static')
        for prefix, collect in (
            ('sitemap-strains', self.strain_urls),
            ('sitemap-products', self.product_urls),
            ('sitemap-cities', self.city_urls),
            ('sitemap-pharmacies', self.pharmacy_urls),
            ('sitemap-brands', self.brand_urls),
            ('sitemap-terpenes', self.terpene_urls),
            ('sitemap-categories', self.category_urls),
        ):
            files.extend(shard_urls(collect(lastmod), max_urls, prefix))

        index = SitemapIndex(sitemaps=tuple(
            (build_canonical(self.config.base_url, f.filename), lastmod) for f in files
        ))
        build = SitemapBuild(index=index, files=tuple(files), lastmod=lastmod)
        logger.info(f"Generated {len(files)} sitemap files with {build.total_urls} URLs")
        return build


def generate_sitemaps(graph: EntityGraph, config: SitemapConfig) -> SitemapBuild:
    return SitemapGenerator(graph, config).generate()


def generate_sitemap_xml(urls: Sequence[SitemapUrl]) -> str:
    entries = []
    for url in urls:
        lines = ["  <url>", f"    <loc>{_xml(url.loc)}</loc>"]
        if url.lastmod:
            lines.append(f"    <lastmod>{_xml(url.lastmod)}</lastmod>")
        if url.changefreq:
            lines.append(f"    <changefreq>{url.changefreq}</changefreq>")
        if url.priority is not None:
            lines.append(f"    <priority>{url.priority:.1f}</priority>")
        lines.append("  </url>")
        entries.append("\n".join(lines))

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<urlset xmlns="{SITEMAP_NAMESPACE}">\n'
        + "\n".join(entries) + ("\n" if entries else "")
        + "</urlset>\n"
    )


def generate_sitemap_index_xml(index: SitemapIndex) -> str:
    entries = [
        f"  <sitemap>\n    <loc>{_xml(loc)}</loc>\n    <lastmod>{_xml(lastmod)}</lastmod>\n  </sitemap>"
        for loc, lastmod in index.sitemaps
    ]
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<sitemapindex xmlns="{SITEMAP_NAMESPACE}">\n'
        + "\n".join(entries) + ("\n" if entries else "")
        + "</sitemapindex>\n"
    )


def generate_robots_txt(base_url: str) -> str:
    base_url = base_url.rstrip('/')
    lines = [
        f"# Robots.txt for {base_url}",
        "",
        "User-agent: *",
        "",
        "# Allow all indexable pages",
    ]
    lines += [f"Allow: {path}" for path in ROBOTS_ALLOW]
    lines += ["", "# Block faceted navigation and search"]
    lines += [f"Disallow: {path}" for path in ROBOTS_DISALLOW_FACETS]
    lines += ["", "# Block thin pages"]
    lines += [f"Disallow: {path}" for path in ROBOTS_DISALLOW_THIN]
    lines += [
        "",
        f"Sitemap: {base_url}/{SITEMAP_INDEX_FILENAME}",
        "",
        "Crawl-delay: 1",
    ]
    return "\n".join(lines) + "\n"


def sitemap_frame(files: Sequence[SitemapFile]) -> pd.DataFrame:
    return pd.DataFrame(
        [{'filename': f.filename, 'type': f.sitemap_type, 'url_count': f.url_count} for f in files],
        columns=['filename', 'type', 'url_count'],
    )


def get_sitemap_stats(files: Sequence[SitemapFile]) -> Dict[str, Any]:
    frame = sitemap_frame(files)
    by_type = frame.groupby('type', sort=True)['url_count'].sum() if not frame.empty else pd.Series(dtype=int)
    return {
        'total_files': int(len(frame)),
        'total_urls': int(frame['url_count'].sum()) if not frame.empty else 0,
        'by_type': {str(k): int(v) for k, v in by_type.items()},
    }
