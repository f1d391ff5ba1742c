"""Page Resolvers

Coordinates the indexability gate, internal links, meta and schema builders
for one page. Each resolve_* call is a pure function of (graph, slug, config):
it reads the immutable graph and returns a fresh page-data record, or None
when the slug is not in the graph.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import quote_plus
import logging

from .. import DEFAULT_RESOLVER_CONFIG, EXTERNAL_URLS, SITEMAP_DEFAULTS
from ..core.config import ResolverConfig, normalize_options
from ..core.models import (
    Breadcrumb, Category, City, EntityType, GeneticType, PageType,
    Pharmacy, Product, Strain, Terpene,
)
from ..graph.aggregates import sort_products
from ..graph.entity_graph import EntityGraph
from ..seo.facets import parse_facet, translate_form
from ..seo.indexability import (
    IndexabilityThresholds, check_brand, check_category, check_city, check_facet,
    check_hub, check_pharmacy, check_product, check_strain, check_terpene,
    should_link_brand,
)
from ..seo.internal_links import InternalLinkBuilder
from ..seo.meta_builder import GENETIC_NAMES, MetaBuilder
from ..seo.routes import HUB_NAMES, HUB_PATHS, build_canonical, facet_path, hub_breadcrumb_path, path_for
from ..seo.schema_builder import SchemaBuilder
from ..utils.formatting import format_price, format_range
from .page_data import (
    BrandPageData, CategoryPageData, CityPageData, HubPageData, PageData,
    PharmacyPageData, ProductPageData, SeoBlock, StrainPageData,
    TerpenePageData,
)

logger = logging.getLogger(__name__)

LIST_LIMIT = SITEMAP_DEFAULTS['item_list_limit']
TOP_BRANDS = 5
RELATED_TERPENES = 5

# Nested sections a config dict may carry next to top-level ResolverConfig fields
CONFIG_SECTIONS = frozenset({'resolver', 'indexability', 'section_limits', 'section_priorities', 'meta_limits'})

ConfigInput = Union[None, Dict[str, Any], ResolverConfig]


# Summaries shared by several page types

def _price_block(min_cents: Optional[int], max_cents: Optional[int]) -> Optional[Dict[str, Any]]:
    if min_cents is None:
        return None
    return {
        'min_cents': min_cents,
        'max_cents': max_cents,
        'min_formatted': format_price(min_cents),
        'max_formatted': format_price(max_cents),
    }


def _genetic_label(strain: Strain) -> Optional[str]:
    return strain.genetic_type.value if strain.genetic_type is not None else None


class PageResolver:
    """Builds page-data records for every page type over one graph"""

    def __init__(self, graph: EntityGraph, config: ConfigInput = None):
        if isinstance(config, ResolverConfig):
            config = {'resolver': asdict(config)}
        self.graph = graph
        self.config = config or {}

        # ResolverConfig fields may sit at the top level or under 'resolver'
        top_level = {k: v for k, v in self.config.items() if k not in CONFIG_SECTIONS}
        unknown = set(top_level) - ResolverConfig.option_names()
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        resolver_settings = DEFAULT_RESOLVER_CONFIG.copy()
        resolver_settings.update(normalize_options(top_level))
        if 'resolver' in self.config:
            resolver_settings.update(normalize_options(self.config['resolver']))
        self.resolver_config = ResolverConfig.from_dict(resolver_settings)

        threshold_settings = asdict(graph.thresholds)
        if 'indexability' in self.config:
            threshold_settings.update(self.config['indexability'])
        self.thresholds = IndexabilityThresholds.from_overrides(threshold_settings)

        self.links = InternalLinkBuilder(graph, self.config.get('section_limits'),
                                         self.config.get('section_priorities'))
        self.meta = MetaBuilder(self.resolver_config, self.config.get('meta_limits'))
        self.schema = SchemaBuilder(self.resolver_config)

    # Shared pieces

    def _seo(self, meta, breadcrumbs: List[Breadcrumb], schemas) -> SeoBlock:
        return SeoBlock(meta=meta, breadcrumbs=tuple(breadcrumbs), schema=tuple(schemas),
                        base_url=self.resolver_config.base_url)

    def _not_found(self, page_type: PageType, slug: str) -> None:
        logger.debug(f"No {page_type.value} page for slug {slug!r}")
        return None

    def _product_summary(self, product: Product) -> Dict[str, Any]:
        brand = self.graph.get_by_id(EntityType.BRAND, product.brand_id)
        return {
            'slug': product.slug,
            'name': product.name,
            'brand_name': brand.name if brand else None,
            'form': product.form.value,
            'thc_percent': product.thc_percent,
            'cbd_percent': product.cbd_percent,
            'price_min': product.lowest_price_cents,
            'price_formatted': format_price(product.lowest_price_cents) if product.lowest_price_cents is not None else None,
            'in_stock': product.in_stock,
        }

    @staticmethod
    def _strain_summary(strain: Strain) -> Dict[str, Any]:
        return {
            'slug': strain.slug,
            'name': strain.name,
            'genetic_type': _genetic_label(strain),
            'thc_range': format_range(strain.thc_range) if strain.thc_range else None,
            'product_count': strain.product_count,
        }

    @staticmethod
    def _pharmacy_summary(pharmacy: Pharmacy) -> Dict[str, Any]:
        return {
            'slug': pharmacy.slug,
            'name': pharmacy.name,
            'street': pharmacy.address.street,
            'postal_code': pharmacy.address.postal_code,
            'city': pharmacy.address.city,
            'product_count': pharmacy.product_count,
            'rating': pharmacy.rating,
            'price_score': pharmacy.price_score,
        }

    @staticmethod
    def _city_summary(city: City) -> Dict[str, Any]:
        return {
            'slug': city.slug,
            'name': city.name,
            'state': city.state,
            'pharmacy_count': city.pharmacy_count,
        }

    def _listable(self, products: List[Product]) -> List[Product]:
        """Products that pass the index gate, in listing order"""
        return sort_products(p for p in products if check_product(p, self.thresholds).should_index)

    def _products(self, listable: List[Product]) -> List[Dict[str, Any]]:
        return [self._product_summary(p) for p in listable[:LIST_LIMIT]]

    @staticmethod
    def _external_for(page_type: PageType, slug: str = '', name: str = '') -> Dict[str, str]:
        if page_type == PageType.STRAIN:
            return {
                'partner_url': EXTERNAL_URLS['strain'].format(slug=slug),
                'pharmacy_search_url': EXTERNAL_URLS['pharmacy_search'],
                'become_patient_url': EXTERNAL_URLS['become_patient'],
            }
        if page_type == PageType.PRODUCT:
            return {
                'partner_url': EXTERNAL_URLS['product'].format(slug=slug),
                'pharmacy_search_url': EXTERNAL_URLS['pharmacy_search'],
                'become_patient_url': EXTERNAL_URLS['become_patient'],
            }
        if page_type == PageType.PHARMACY:
            return {
                'partner_url': EXTERNAL_URLS['pharmacy'].format(slug=slug),
                'product_search_url': EXTERNAL_URLS['product_search'],
            }
        if page_type in (PageType.CITY, PageType.APOTHEKE_HUB):
            return {
                'pharmacy_search_url': EXTERNAL_URLS['pharmacy_search'],
                'become_patient_url': EXTERNAL_URLS['become_patient'],
            }
        if page_type == PageType.BRAND:
            return {
                'partner_url': EXTERNAL_URLS['brand_search'].format(name=quote_plus(name)),
                'product_search_url': EXTERNAL_URLS['product_search'],
            }
        return {
            'product_search_url': EXTERNAL_URLS['product_search'],
            'become_patient_url': EXTERNAL_URLS['become_patient'],
        }

    # Entity pages

    def resolve_strain(self, slug: str) -> Optional[StrainPageData]:
        strain = self.graph.strain(slug)
        if strain is None:
            return self._not_found(PageType.STRAIN, slug)

        indexability = check_strain(strain)
        breadcrumbs = self.links.breadcrumbs(strain)
        products = self.graph.products_for_strain(strain)
        listable = self._listable(products)

        similar = []
        for similarity in strain.similar_strains:
            other = self.graph.get_by_id(EntityType.STRAIN, similarity.strain_id)
            if other is None:
                continue
            summary = self._strain_summary(other)
            summary['weight'] = similarity.weight
            summary['reasons'] = [reason.type.value for reason in similarity.reasons]
            similar.append(summary)

        terpenes = self.graph.resolve_ids(EntityType.TERPENE, strain.terpene_ids)
        price_stats = strain.price_stats
        return StrainPageData(
            page_type=PageType.STRAIN,
            slug=strain.slug,
            strain={
                'slug': strain.slug,
                'name': strain.name,
                'synonyms': list(strain.synonyms),
                'genetic_type': _genetic_label(strain),
                'genetic_label': GENETIC_NAMES[strain.genetic_type] if strain.genetic_type else None,
                'breeder': strain.genetics.breeder if strain.genetics else None,
                'thc_range': format_range(strain.thc_range) if strain.thc_range else None,
                'cbd_range': format_range(strain.cbd_range) if strain.cbd_range else None,
                'effects': [{'name': e.name_de or e.name, 'category': e.category, 'is_positive': e.is_positive}
                            for e in strain.effects],
                'flavors': [f.name_de or f.name for f in strain.flavors],
                'terpenes': [{'slug': t.slug, 'name': t.name_de or t.name} for t in terpenes],
                'description': strain.description,
            },
            stats={
                'product_count': strain.product_count,
                'pharmacy_count': strain.pharmacy_count,
                'price_range': _price_block(price_stats.min_cents, price_stats.max_cents) if price_stats else None,
                'median_price_cents': price_stats.median_cents if price_stats else None,
            },
            products=self._products(listable),
            similar_strains=similar,
            lineage={
                'parents': [self._strain_summary(s) for s in
                            self.graph.resolve_ids(EntityType.STRAIN, strain.parent_strain_ids)],
                'children': [self._strain_summary(s) for s in
                             self.graph.resolve_ids(EntityType.STRAIN, strain.child_strain_ids)],
            },
            seo=self._seo(
                self.meta.for_entity(strain, indexability),
                breadcrumbs,
                self.schema.for_entity(strain, breadcrumbs, items=listable),
            ),
            links=self.links.for_entity(strain, breadcrumbs),
            external=self._external_for(PageType.STRAIN, strain.slug),
            indexability=indexability,
        )

    def resolve_product(self, slug: str) -> Optional[ProductPageData]:
        product = self.graph.product(slug)
        if product is None:
            return self._not_found(PageType.PRODUCT, slug)

        indexability = check_product(product, self.thresholds)
        brand = self.graph.get_by_id(EntityType.BRAND, product.brand_id)
        strain = self.graph.get_by_id(EntityType.STRAIN, product.strain_id)
        category = self.graph.get_by_id(EntityType.CATEGORY, product.category_id)
        breadcrumbs = self.links.breadcrumbs(product)

        offers = []
        schema_offers = []
        for offer in sorted(product.active_offers, key=lambda o: (o.price_cents, o.pharmacy_id)):
            pharmacy = self.graph.get_by_id(EntityType.PHARMACY, offer.pharmacy_id)
            if pharmacy is None:
                continue
            offers.append({
                'pharmacy_slug': pharmacy.slug,
                'pharmacy_name': pharmacy.name,
                'city': pharmacy.address.city,
                'price_cents': offer.price_cents,
                'price_formatted': format_price(offer.price_cents),
                'status': offer.status.value,
                'delivery_days': offer.delivery_days,
            })
            schema_offers.append((offer, pharmacy.name))

        alternatives = []
        for alternative in product.alternatives:
            alt = self.graph.get_by_id(EntityType.PRODUCT, alternative.product_id)
            if alt is None:
                continue
            summary = self._product_summary(alt)
            summary['reason'] = alternative.reason.value
            summary['weight'] = alternative.weight
            alternatives.append(summary)

        stats = product.price_stats
        volatility = product.stock_volatility
        return ProductPageData(
            page_type=PageType.PRODUCT,
            slug=product.slug,
            product={
                'slug': product.slug,
                'name': product.name,
                'form': product.form.value,
                'form_label': translate_form(product.form),
                'thc_percent': product.thc_percent,
                'cbd_percent': product.cbd_percent,
                'pzn': product.pzn,
                'package_size_grams': product.package_size_grams,
                'in_stock': product.in_stock,
                'offer_count': len(offers),
                'price_range': _price_block(stats.min_cents, stats.max_cents) if stats else None,
                'median_price_cents': stats.median_cents if stats else None,
                'stock_volatility': asdict(volatility) if volatility else None,
            },
            brand={'slug': brand.slug, 'name': brand.name, 'product_count': brand.product_count} if brand else None,
            strain=self._strain_summary(strain) if strain else None,
            category={'slug': category.slug, 'name': category.name_de or category.name} if category else None,
            offers=offers,
            alternatives=alternatives,
            seo=self._seo(
                self.meta.for_entity(product, indexability, brand=brand),
                breadcrumbs,
                self.schema.for_entity(product, breadcrumbs, brand=brand, offers=schema_offers),
            ),
            links=self.links.for_entity(product, breadcrumbs),
            external=self._external_for(PageType.PRODUCT, product.slug),
            indexability=indexability,
        )

    def resolve_pharmacy(self, slug: str) -> Optional[PharmacyPageData]:
        pharmacy = self.graph.pharmacy(slug)
        if pharmacy is None:
            return self._not_found(PageType.PHARMACY, slug)

        indexability = check_pharmacy(pharmacy)
        city = self.graph.get_by_id(EntityType.CITY, pharmacy.city_id)
        breadcrumbs = self.links.breadcrumbs(pharmacy)

        prices = {}
        for offer in self.graph.offers_for_pharmacy(pharmacy):
            if offer.is_active:
                prices[offer.product_id] = min(offer.price_cents, prices.get(offer.product_id, offer.price_cents))
        products = []
        for product in sort_products(self.graph.products_for_pharmacy(pharmacy))[:LIST_LIMIT]:
            summary = self._product_summary(product)
            price = prices.get(product.id)
            summary['pharmacy_price_cents'] = price
            summary['pharmacy_price_formatted'] = format_price(price) if price is not None else None
            products.append(summary)

        delivery = pharmacy.delivery_info
        return PharmacyPageData(
            page_type=PageType.PHARMACY,
            slug=pharmacy.slug,
            pharmacy={
                'slug': pharmacy.slug,
                'name': pharmacy.name,
                'address': asdict(pharmacy.address),
                'contact': asdict(pharmacy.contact),
                'services': list(pharmacy.services),
                'delivery_methods': [m.value for m in delivery.methods] if delivery else [],
                'opening_hours': dict(pharmacy.opening_hours or {}),
                'rating': pharmacy.rating,
                'review_count': pharmacy.review_count,
                'product_count': pharmacy.product_count,
                'price_score': pharmacy.price_score,
            },
            city=self._city_summary(city) if city else None,
            products=products,
            nearby_pharmacies=[self._pharmacy_summary(p) for p in self.links.nearby_pharmacies(pharmacy)],
            seo=self._seo(
                self.meta.for_entity(pharmacy, indexability, city=city),
                breadcrumbs,
                self.schema.for_entity(pharmacy, breadcrumbs),
            ),
            links=self.links.for_entity(pharmacy, breadcrumbs),
            external=self._external_for(PageType.PHARMACY, pharmacy.slug),
            indexability=indexability,
        )

    def resolve_city(self, slug: str) -> Optional[CityPageData]:
        city = self.graph.city(slug)
        if city is None:
            return self._not_found(PageType.CITY, slug)

        indexability = check_city(city, self.thresholds)
        breadcrumbs = self.links.breadcrumbs(city)
        pharmacies = sorted(self.graph.pharmacies_for_city(city), key=lambda p: (-p.product_count, p.slug))
        price_range = city.price_range

        return CityPageData(
            page_type=PageType.CITY,
            slug=city.slug,
            city={
                'slug': city.slug,
                'name': city.name,
                'state': city.state,
                'population': city.population,
            },
            stats={
                'pharmacy_count': city.pharmacy_count,
                'offer_count': city.offer_count,
                'avg_delivery_days': city.avg_delivery_days,
                'price_range': _price_block(price_range.min_cents, price_range.max_cents) if price_range else None,
            },
            pharmacies=[self._pharmacy_summary(p) for p in pharmacies],
            nearby_cities=[self._city_summary(c) for c in
                           self.graph.resolve_ids(EntityType.CITY, city.nearby_city_ids)],
            seo=self._seo(
                self.meta.for_entity(city, indexability),
                breadcrumbs,
                self.schema.for_entity(city, breadcrumbs, items=pharmacies),
            ),
            links=self.links.for_entity(city, breadcrumbs),
            external=self._external_for(PageType.CITY, city.slug),
            indexability=indexability,
        )

    def resolve_brand(self, slug: str) -> Optional[BrandPageData]:
        brand = self.graph.brand(slug)
        if brand is None:
            return self._not_found(PageType.BRAND, slug)

        indexability = check_brand(brand, self.thresholds)
        breadcrumbs = self.links.breadcrumbs(brand)
        products = self.graph.products_for_brand(brand)
        prices = [p.lowest_price_cents for p in products if p.lowest_price_cents is not None]
        forms = Counter(p.form.value for p in products)
        listable = self._listable(products)

        return BrandPageData(
            page_type=PageType.BRAND,
            slug=brand.slug,
            brand={
                'slug': brand.slug,
                'name': brand.name,
                'country': brand.country,
                'website': brand.website,
                'description': brand.description,
            },
            stats={
                'product_count': brand.product_count,
                'in_stock_count': sum(1 for p in products if p.in_stock),
                'forms': dict(sorted(forms.items())),
                'price_range': _price_block(min(prices), max(prices)) if prices else None,
                'listed_in_hub': should_link_brand(brand, self.thresholds),
            },
            products=self._products(listable),
            seo=self._seo(
                self.meta.for_entity(brand, indexability),
                breadcrumbs,
                self.schema.for_entity(brand, breadcrumbs, items=listable),
            ),
            links=self.links.for_entity(brand, breadcrumbs),
            external=self._external_for(PageType.BRAND, brand.slug, brand.name),
            indexability=indexability,
        )

    def related_terpenes(self, terpene: Terpene) -> List[Dict[str, Any]]:
        """Terpenes sharing the most strains with this one"""
        shared = Counter()
        for strain in self.graph.strains_for_terpene(terpene):
            for terpene_id in strain.terpene_ids:
                if terpene_id != terpene.id:
                    shared[terpene_id] += 1
        related = []
        for other in self.graph.resolve_ids(EntityType.TERPENE, shared):
            related.append({
                'slug': other.slug,
                'name': other.name_de or other.name,
                'shared_strains': shared[other.id],
            })
        related.sort(key=lambda t: (-t['shared_strains'], t['slug']))
        return related[:RELATED_TERPENES]

    def resolve_terpene(self, slug: str) -> Optional[TerpenePageData]:
        terpene = self.graph.terpene(slug)
        if terpene is None:
            return self._not_found(PageType.TERPENE, slug)

        indexability = check_terpene(terpene, self.thresholds)
        breadcrumbs = self.links.breadcrumbs(terpene)
        strains = sorted(self.graph.strains_for_terpene(terpene), key=lambda s: (-s.product_count, s.slug))

        return TerpenePageData(
            page_type=PageType.TERPENE,
            slug=terpene.slug,
            terpene={
                'slug': terpene.slug,
                'name': terpene.name,
                'name_de': terpene.name_de,
                'aroma': terpene.aroma,
                'effects': [e.name_de or e.name for e in terpene.effects],
                'also_found_in': list(terpene.also_found_in),
                'boiling_point_celsius': terpene.boiling_point_celsius,
                'strain_count': terpene.strain_count,
            },
            strains=[self._strain_summary(s) for s in strains[:LIST_LIMIT]],
            related_terpenes=self.related_terpenes(terpene),
            seo=self._seo(
                self.meta.for_entity(terpene, indexability),
                breadcrumbs,
                self.schema.for_entity(terpene, breadcrumbs, items=strains),
            ),
            links=self.links.for_entity(terpene, breadcrumbs),
            external=self._external_for(PageType.TERPENE, terpene.slug),
            indexability=indexability,
        )

    def _category_stats(self, category: Category, products: List[Product]) -> Dict[str, Any]:
        brand_counts = Counter(p.brand_id for p in products)
        top_brands = []
        for brand in self.graph.resolve_ids(EntityType.BRAND, brand_counts):
            top_brands.append({'slug': brand.slug, 'name': brand.name, 'product_count': brand_counts[brand.id]})
        top_brands.sort(key=lambda b: (-b['product_count'], b['slug']))

        genetics = Counter()
        for product in products:
            strain = self.graph.get_by_id(EntityType.STRAIN, product.strain_id)
            if strain is not None and strain.genetic_type is not None:
                genetics[strain.genetic_type.value] += 1

        thc_values = [p.thc_percent for p in products if p.thc_percent is not None]
        prices = [p.lowest_price_cents for p in products if p.lowest_price_cents is not None]
        return {
            'product_count': len(products),
            'brand_count': len(brand_counts),
            'top_brands': top_brands[:TOP_BRANDS],
            'genetics_breakdown': {g.value: genetics.get(g.value, 0) for g in GeneticType},
            'avg_thc': round(sum(thc_values) / len(thc_values), 1) if thc_values else None,
            'price_range': _price_block(min(prices), max(prices)) if prices else None,
        }

    def resolve_category(self, slug: str) -> Optional[CategoryPageData]:
        category = self.graph.category(slug)
        if category is None:
            return self._not_found(PageType.CATEGORY, slug)

        indexability = check_category(category)
        breadcrumbs = self.links.breadcrumbs(category)
        products = self.graph.products_for_category(category)
        listable = self._listable(products)

        return CategoryPageData(
            page_type=PageType.CATEGORY,
            slug=category.slug,
            category=self._category_block(category),
            stats=self._category_stats(category, products),
            products=self._products(listable),
            seo=self._seo(
                self.meta.for_entity(category, indexability),
                breadcrumbs,
                self.schema.for_entity(category, breadcrumbs, items=listable),
            ),
            links=self.links.for_entity(category, breadcrumbs),
            external=self._external_for(PageType.CATEGORY, category.slug),
            indexability=indexability,
        )

    @staticmethod
    def _category_block(category: Category) -> Dict[str, Any]:
        return {
            'slug': category.slug,
            'name': category.name_de or category.name,
            'description': category.description,
            'included_forms': [f.value for f in category.included_forms],
            'curated_facets': list(category.curated_facets),
        }

    def facet_filter(self, facet_slug: str) -> Optional[Dict[str, Any]]:
        """Parse a facet slug into a label and product predicate"""
        return parse_facet(facet_slug, self.graph.brand)

    def resolve_category_facet(self, category_slug: str, facet_slug: str) -> Optional[CategoryPageData]:
        category = self.graph.category(category_slug)
        if category is None:
            return self._not_found(PageType.CATEGORY_FACET, f"{category_slug}/{facet_slug}")
        facet = self.facet_filter(facet_slug)
        if facet is None:
            return self._not_found(PageType.CATEGORY_FACET, f"{category_slug}/{facet_slug}")

        indexability = check_facet(category, facet_slug)
        products = [p for p in self.graph.products_for_category(category) if facet['predicate'](p)]
        listable = self._listable(products)
        breadcrumbs = self.links.breadcrumbs(category)
        breadcrumbs.append(Breadcrumb(facet['label'], facet_path(category.slug, facet_slug)))

        return CategoryPageData(
            page_type=PageType.CATEGORY_FACET,
            slug=f"{category.slug}/{facet_slug}",
            category=self._category_block(category),
            stats=self._category_stats(category, products),
            products=self._products(listable),
            facet={
                'slug': facet_slug,
                'label': facet['label'],
                'curated': facet_slug in category.curated_facets,
                'category_url': build_canonical(self.resolver_config.base_url, path_for(category)),
            },
            seo=self._seo(
                self.meta.facet_meta(category, facet_slug, facet['label'], indexability, len(products)),
                breadcrumbs,
                [self.schema.breadcrumb_list(breadcrumbs)],
            ),
            links=self.links.for_category(category, breadcrumbs),
            external=self._external_for(PageType.CATEGORY_FACET),
            indexability=indexability,
        )

    # Hub pages

    def _hub(self, page_type: PageType, title: str, entities: Sequence, items: List[Dict[str, Any]],
             groups: Optional[Dict[str, List[Dict[str, Any]]]] = None,
             stats: Optional[Dict[str, Any]] = None) -> HubPageData:
        indexability = check_hub(page_type)
        breadcrumbs = hub_breadcrumb_path(page_type)
        schemas = [self.schema.breadcrumb_list(breadcrumbs)]
        item_list = self.schema.item_list(title, list(entities))
        if item_list is not None:
            schemas.append(item_list)
        return HubPageData(
            page_type=page_type,
            slug=breadcrumbs[-1].slug,
            title=title,
            stats=stats or {'count': len(entities)},
            items=items,
            groups=groups or {},
            seo=self._seo(self.meta.hub_meta(page_type, indexability, len(entities)), breadcrumbs, schemas),
            links=self.links.for_hub(page_type),
            external=self._external_for(page_type),
            indexability=indexability,
        )

    def resolve_strains_hub(self) -> HubPageData:
        strains = sorted(self.graph.strains.values(), key=lambda s: (-s.product_count, s.slug))
        groups = {g.value: [] for g in GeneticType}
        for strain in strains:
            if strain.genetic_type is not None:
                groups[strain.genetic_type.value].append(self._strain_summary(strain))

        terpenes = sorted(self.graph.terpenes.values(), key=lambda t: (-t.strain_count, t.slug))
        top_terpenes = [{'slug': t.slug, 'name': t.name_de or t.name, 'strain_count': t.strain_count}
                        for t in terpenes[:10]]
        return self._hub(
            PageType.STRAINS_HUB, 'Cannabis Sorten', strains,
            [self._strain_summary(s) for s in strains[:LIST_LIMIT]],
            groups=groups,
            stats={'count': len(strains), 'top_terpenes': top_terpenes},
        )

    def resolve_apotheke_hub(self) -> HubPageData:
        cities = sorted((c for c in self.graph.cities.values() if c.pharmacy_count > 0),
                        key=lambda c: (-c.pharmacy_count, c.slug))
        by_state: Dict[str, List[Dict[str, Any]]] = {}
        for city in sorted(cities, key=lambda c: (c.state, -c.pharmacy_count, c.slug)):
            summary = self._city_summary(city)
            summary['indexable'] = check_city(city, self.thresholds).should_index
            by_state.setdefault(city.state, []).append(summary)
        return self._hub(
            PageType.APOTHEKE_HUB, 'Cannabis Apotheken nach Stadt', cities,
            [self._city_summary(c) for c in cities[:LIST_LIMIT]],
            groups=by_state,
            stats={'count': len(cities), 'pharmacy_count': len(self.graph.pharmacies)},
        )

    def resolve_terpenes_hub(self) -> HubPageData:
        terpenes = sorted(self.graph.terpenes.values(), key=lambda t: (-t.strain_count, t.slug))
        items = [{'slug': t.slug, 'name': t.name_de or t.name, 'aroma': t.aroma, 'strain_count': t.strain_count}
                 for t in terpenes]
        return self._hub(PageType.TERPENES_HUB, 'Cannabis Terpene', terpenes, items)

    def resolve_products_hub(self) -> HubPageData:
        products = self._listable(list(self.graph.products.values()))
        categories = sorted(self.graph.categories.values(), key=lambda c: (-c.product_count, c.slug))
        groups = {'categories': [{'slug': c.slug, 'name': c.name_de or c.name, 'product_count': c.product_count}
                                 for c in categories]}
        return self._hub(
            PageType.PRODUCTS_HUB, 'Cannabis Produkte', products,
            [self._product_summary(p) for p in products[:LIST_LIMIT]],
            groups=groups,
        )

    def resolve_brands_hub(self) -> HubPageData:
        brands = sorted((b for b in self.graph.brands.values() if should_link_brand(b, self.thresholds)),
                        key=lambda b: (-b.product_count, b.slug))
        items = [{'slug': b.slug, 'name': b.name, 'product_count': b.product_count} for b in brands]
        return self._hub(PageType.BRANDS_HUB, 'Cannabis Hersteller', brands, items)

    def resolve_home(self) -> HubPageData:
        """Start page: one entry per hub with its entry count"""
        counts = {
            PageType.STRAINS_HUB: len(self.graph.strains),
            PageType.APOTHEKE_HUB: len(self.graph.cities),
            PageType.TERPENES_HUB: len(self.graph.terpenes),
            PageType.PRODUCTS_HUB: len(self.graph.products),
            PageType.BRANDS_HUB: len(self.graph.brands),
        }
        items = [{'slug': HUB_PATHS[page_type], 'name': HUB_NAMES[page_type], 'count': count}
                 for page_type, count in counts.items()]
        return self._hub(PageType.HOME, self.resolver_config.site_name, (), items,
                         stats={'count': sum(counts.values())})

    def resolve(self, page_type: PageType, slug: str = '') -> Optional[PageData]:
        """Dispatch by page type; facet slugs are "<category>/<facet>" """
        if page_type == PageType.CATEGORY_FACET:
            category_slug, _, facet_slug = slug.partition('/')
            return self.resolve_category_facet(category_slug, facet_slug)
        if page_type.is_hub:
            if page_type not in HUB_RESOLVERS:
                raise ValueError(f"No resolver for {page_type}")
            return HUB_RESOLVERS[page_type](self)
        if page_type not in ENTITY_RESOLVERS:
            raise ValueError(f"No resolver for {page_type}")
        return ENTITY_RESOLVERS[page_type](self, slug)


ENTITY_RESOLVERS: Dict[PageType, Callable[[PageResolver, str], Optional[PageData]]] = {
    PageType.STRAIN: PageResolver.resolve_strain,
    PageType.PRODUCT: PageResolver.resolve_product,
    PageType.PHARMACY: PageResolver.resolve_pharmacy,
    PageType.CITY: PageResolver.resolve_city,
    PageType.BRAND: PageResolver.resolve_brand,
    PageType.TERPENE: PageResolver.resolve_terpene,
    PageType.CATEGORY: PageResolver.resolve_category,
}

HUB_RESOLVERS: Dict[PageType, Callable[[PageResolver], HubPageData]] = {
    PageType.HOME: PageResolver.resolve_home,
    PageType.STRAINS_HUB: PageResolver.resolve_strains_hub,
    PageType.APOTHEKE_HUB: PageResolver.resolve_apotheke_hub,
    PageType.TERPENES_HUB: PageResolver.resolve_terpenes_hub,
    PageType.PRODUCTS_HUB: PageResolver.resolve_products_hub,
    PageType.BRANDS_HUB: PageResolver.resolve_brands_hub,
}


# Module-level entry points

def resolve_strain_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[StrainPageData]:
    return PageResolver(graph, config).resolve_strain(slug)


def resolve_product_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[ProductPageData]:
    return PageResolver(graph, config).resolve_product(slug)


def resolve_pharmacy_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[PharmacyPageData]:
    return PageResolver(graph, config).resolve_pharmacy(slug)


def resolve_city_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[CityPageData]:
    return PageResolver(graph, config).resolve_city(slug)


def resolve_brand_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[BrandPageData]:
    return PageResolver(graph, config).resolve_brand(slug)


def resolve_terpene_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[TerpenePageData]:
    return PageResolver(graph, config).resolve_terpene(slug)


def resolve_category_page(graph: EntityGraph, slug: str, config: ConfigInput = None) -> Optional[CategoryPageData]:
    return PageResolver(graph, config).resolve_category(slug)


def resolve_category_facet_page(graph: EntityGraph, category_slug: str, facet_slug: str,
                                config: ConfigInput = None) -> Optional[CategoryPageData]:
    return PageResolver(graph, config).resolve_category_facet(category_slug, facet_slug)


def resolve_home_page(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_home()


def resolve_strains_hub(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_strains_hub()


def resolve_apotheke_hub(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_apotheke_hub()


def resolve_terpenes_hub(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_terpenes_hub()


def resolve_products_hub(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_products_hub()


def resolve_brands_hub(graph: EntityGraph, config: ConfigInput = None) -> HubPageData:
    return PageResolver(graph, config).resolve_brands_hub()


def resolve_pages(graph: EntityGraph, page_type: PageType, slugs: Sequence[str],
                  config: ConfigInput = None, max_workers: int = 4) -> List[Optional[PageData]]:
    """Resolve many pages of one type in parallel; results keep the order of slugs"""
    resolver = PageResolver(graph, config)
    if not slugs:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(lambda slug: resolver.resolve(page_type, slug), slugs))
    missing = sum(1 for result in results if result is None)
    logger.info(f"Resolved {len(results) - missing}/{len(results)} {page_type.value} pages")
    return results
