"""Meta Builder

Title, description, canonical, robots and social-preview metadata per page.
Titles and descriptions are assembled from ordered parts, joined with a
fixed separator and truncated to a hard character limit. The robots
index flag is always taken from the Indexability Gate result passed in.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .. import META_LIMITS
from ..core.config import DEFAULT_CONFIG, ResolverConfig
from ..core.models import (
    Brand, Category, City, Entity, GeneticType, PageType, Pharmacy, Product,
    Strain, Terpene,
)
from ..utils.formatting import format_percent, format_price, format_range, truncate
from .facets import translate_form
from .indexability import IndexabilityResult
from .routes import HUB_PATHS, build_canonical, facet_path, path_for

TITLE_SEPARATOR = ' '
DESCRIPTION_SEPARATOR = '. '

GENETIC_NAMES = {
    GeneticType.INDICA: 'Indica',
    GeneticType.SATIVA: 'Sativa',
    GeneticType.HYBRID: 'Hybrid',
}


@dataclass(frozen=True)
class RobotsDirective:
    index: bool
    follow: bool = True
    max_snippet: int = -1
    max_image_preview: str = 'large'

    @property
    def content(self) -> str:
        """Value for a robots meta tag"""
        return ', '.join([
            'index' if self.index else 'noindex',
            'follow' if self.follow else 'nofollow',
            f"max-snippet:{self.max_snippet}",
            f"max-image-preview:{self.max_image_preview}",
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'follow': self.follow,
            'max_snippet': self.max_snippet,
            'max_image_preview': self.max_image_preview,
            'content': self.content,
        }


@dataclass(frozen=True)
class OpenGraphMeta:
    title: str
    description: str
    url: str
    type: str
    site_name: str
    locale: str
    image: Optional[str] = None
    image_alt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class TwitterMeta:
    card: str
    title: str
    description: str
    site: str
    image: Optional[str] = None
    image_alt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class PageMeta:
    title: str
    description: str
    canonical: str
    robots: RobotsDirective
    open_graph: OpenGraphMeta
    twitter: TwitterMeta

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'description': self.description,
            'canonical': self.canonical,
            'robots': self.robots.to_dict(),
            'open_graph': self.open_graph.to_dict(),
            'twitter': self.twitter.to_dict(),
        }


def _description(parts: List[str]) -> str:
    parts = [p.strip() for p in parts if p and p.strip()]
    return DESCRIPTION_SEPARATOR.join(parts) + '.'


def _title(parts: List[str]) -> str:
    return TITLE_SEPARATOR.join(p for p in parts if p)


def _top_effects(effects, limit: int = 3) -> List[str]:
    return [e.name_de or e.name for e in effects if e.is_positive][:limit]


class MetaBuilder:
    """Builds PageMeta for every page type"""

    def __init__(self, config: ResolverConfig = DEFAULT_CONFIG, limits: Optional[Dict[str, int]] = None):
        self.config = config
        self.limits = META_LIMITS.copy()
        if limits:
            self.limits.update(limits)

    # Shared pieces

    def _assemble(self, title_parts: List[str], description_parts: List[str], path: str,
                  indexability: IndexabilityResult, og_type: str = 'website',
                  canonical: Optional[str] = None, image: Optional[str] = None) -> PageMeta:
        raw_title = _title(title_parts)
        raw_description = _description(description_parts)
        title = truncate(raw_title, self.limits['title'])
        description = truncate(raw_description, self.limits['description'])
        canonical = canonical or build_canonical(self.config.base_url, path)

        return PageMeta(
            title=title,
            description=description,
            canonical=canonical,
            robots=RobotsDirective(index=indexability.should_index),
            open_graph=OpenGraphMeta(
                title=truncate(raw_title, self.limits['og_title']),
                description=truncate(raw_description, self.limits['og_description']),
                url=canonical,
                type=og_type,
                site_name=self.config.site_name,
                locale=self.config.default_locale,
                image=image,
                image_alt=raw_title if image else None,
            ),
            twitter=TwitterMeta(
                card='summary_large_image' if image else 'summary',
                title=truncate(raw_title, self.limits['twitter_title']),
                description=truncate(raw_description, self.limits['twitter_description']),
                site=self.config.twitter_site,
                image=image,
                image_alt=raw_title if image else None,
            ),
        )

    # Entity pages

    def for_entity(self, entity: Entity, indexability: IndexabilityResult, **context) -> PageMeta:
        if isinstance(entity, Strain):
            return self.strain_meta(entity, indexability)
        if isinstance(entity, Product):
            return self.product_meta(entity, indexability, context.get('brand'))
        if isinstance(entity, Pharmacy):
            return self.pharmacy_meta(entity, indexability, context.get('city'))
        if isinstance(entity, City):
            return self.city_meta(entity, indexability)
        if isinstance(entity, Brand):
            return self.brand_meta(entity, indexability)
        if isinstance(entity, Terpene):
            return self.terpene_meta(entity, indexability)
        if isinstance(entity, Category):
            return self.category_meta(entity, indexability)
        raise TypeError(f"Unknown entity type: {type(entity).__name__}")

    def strain_meta(self, strain: Strain, indexability: IndexabilityResult) -> PageMeta:
        title_parts = [strain.name]
        if strain.genetic_type is not None:
            title_parts.append(f"({GENETIC_NAMES[strain.genetic_type]})")
        title_parts.append('– Wirkung, THC & Verfügbarkeit')

        effects = _top_effects(strain.effects)
        description_parts = [f"{strain.name}: {', '.join(effects)}" if effects else f"{strain.name} Cannabis Sorte"]
        cannabinoids = [r for r in (format_range(strain.thc_range, '% THC'), format_range(strain.cbd_range, '% CBD')) if r]
        if cannabinoids:
            description_parts.append(', '.join(cannabinoids))
        if strain.pharmacy_count > 0:
            description_parts.append(f"Bei {strain.pharmacy_count} Apotheken verfügbar")
        if strain.price_stats:
            description_parts.append(f"ab {format_price(strain.price_stats.min_cents)}")

        return self._assemble(title_parts, description_parts, path_for(strain), indexability)

    def product_meta(self, product: Product, indexability: IndexabilityResult, brand: Optional[Brand] = None) -> PageMeta:
        title_parts = [product.name]
        if brand and brand.name and brand.name not in product.name:
            title_parts.append(f"– {brand.name}")
        if product.price_stats:
            title_parts.append(f"| ab {format_price(product.price_stats.min_cents)}")

        description_parts = [f"{product.name} von {brand.name}" if brand else product.name]
        specs = []
        if product.thc_percent is not None:
            specs.append(f"THC: {format_percent(product.thc_percent)}%")
        if product.cbd_percent is not None:
            specs.append(f"CBD: {format_percent(product.cbd_percent)}%")
        specs.append(translate_form(product.form))
        description_parts.append(', '.join(specs))
        if product.price_stats:
            description_parts.append(
                f"Preis ab {format_price(product.price_stats.min_cents)}, "
                f"bei {len(product.active_offers)} Apotheken verfügbar"
            )

        return self._assemble(title_parts, description_parts, path_for(product), indexability, og_type='product')

    def pharmacy_meta(self, pharmacy: Pharmacy, indexability: IndexabilityResult, city: Optional[City] = None) -> PageMeta:
        city_name = city.name if city else pharmacy.address.city
        title_parts = [pharmacy.name, f"– Cannabis Apotheke in {city_name}" if city_name else '– Cannabis Apotheke']

        description_parts = [f"{pharmacy.name} in {city_name}" if city_name else pharmacy.name]
        if pharmacy.product_count > 0:
            description_parts.append(f"{pharmacy.product_count} Cannabis Produkte verfügbar")
        if pharmacy.services:
            description_parts.append(', '.join(pharmacy.services[:2]))
        if pharmacy.delivery_info and pharmacy.delivery_info.is_nationwide:
            description_parts.append('Bundesweiter Versand')
        description_parts.append('Jetzt Preise vergleichen')

        return self._assemble(title_parts, description_parts, path_for(pharmacy), indexability)

    def city_meta(self, city: City, indexability: IndexabilityResult) -> PageMeta:
        title_parts = [f"Cannabis Apotheke {city.name}", f"– {city.pharmacy_count} Apotheken"]

        description_parts = [
            f"Cannabis Apotheken in {city.name}",
            f"{city.pharmacy_count} Apotheken mit {city.offer_count} Produkten",
        ]
        if city.price_range:
            description_parts.append(
                f"Preise von {format_price(city.price_range.min_cents)} bis {format_price(city.price_range.max_cents)}"
            )
        description_parts.append('Jetzt vergleichen & beste Apotheke finden')

        return self._assemble(title_parts, description_parts, path_for(city), indexability)

    def brand_meta(self, brand: Brand, indexability: IndexabilityResult) -> PageMeta:
        title_parts = [f"{brand.name} Cannabis Produkte", f"– {brand.product_count} Produkte"]

        description_parts = [brand.name, f"{brand.product_count} Cannabis Produkte"]
        if brand.country:
            description_parts.append(f"Hersteller aus {brand.country}")
        description_parts.append('Preise vergleichen & günstig kaufen')

        return self._assemble(title_parts, description_parts, path_for(brand), indexability)

    def terpene_meta(self, terpene: Terpene, indexability: IndexabilityResult) -> PageMeta:
        name = terpene.name_de or terpene.name
        title_parts = [name, '– Wirkung & Cannabis Sorten']

        description_parts = [f"{name} Terpen"]
        if terpene.aroma:
            description_parts.append(f"Aroma: {terpene.aroma}")
        effects = _top_effects(terpene.effects)
        if effects:
            description_parts.append(f"Wirkung: {', '.join(effects)}")
        if terpene.strain_count > 0:
            description_parts.append(f"In {terpene.strain_count} Sorten enthalten")

        return self._assemble(title_parts, description_parts, path_for(terpene), indexability)

    def category_meta(self, category: Category, indexability: IndexabilityResult) -> PageMeta:
        name = category.name_de or category.name
        title_parts = [name, 'kaufen']
        if category.product_count > 0:
            title_parts.append(f"– {category.product_count} Produkte")
        if category.price_range:
            title_parts.append(f"ab {format_price(category.price_range.min_cents)}")

        description_parts = [name, f"{category.product_count} Produkte von {category.brand_count} Herstellern"]
        if category.price_range:
            description_parts.append(f"Preise ab {format_price(category.price_range.min_cents)}")
        description_parts.append('Jetzt vergleichen und günstig kaufen')

        return self._assemble(title_parts, description_parts, path_for(category), indexability)

    def facet_meta(self, category: Category, facet_slug: str, facet_label: str,
                   indexability: IndexabilityResult, product_count: int) -> PageMeta:
        """Uncurated facets canonicalize to their category page"""
        name = category.name_de or category.name
        title_parts = [name, facet_label, f"– {product_count} Produkte"]
        description_parts = [f"{name} mit {facet_label}", f"{product_count} Produkte", 'Jetzt vergleichen']

        canonical = None
        if indexability.suggested_canonical:
            canonical = build_canonical(self.config.base_url, indexability.suggested_canonical)
        return self._assemble(title_parts, description_parts, facet_path(category.slug, facet_slug),
                              indexability, canonical=canonical)

    # Hub pages

    HUB_COPY = {
        PageType.HOME: (
            ['Cannabis Apotheken, Sorten & Preise vergleichen'],
            ['Medizinisches Cannabis in Deutschland', 'Sorten, Produkte und Apotheken vergleichen'],
        ),
        PageType.STRAINS_HUB: (
            ['Cannabis Sorten', '– Wirkung, THC & Terpene'],
            ['Alle medizinischen Cannabis Sorten', 'Indica, Sativa und Hybrid im Vergleich'],
        ),
        PageType.APOTHEKE_HUB: (
            ['Cannabis Apotheke finden', '– Apotheken nach Stadt'],
            ['Cannabis Apotheken in Deutschland nach Stadt', 'Preise und Verfügbarkeit vergleichen'],
        ),
        PageType.TERPENES_HUB: (
            ['Terpene', '– Aroma & Wirkung von Cannabis'],
            ['Alle Cannabis Terpene', 'Aroma, Wirkung und Sorten im Überblick'],
        ),
        PageType.PRODUCTS_HUB: (
            ['Cannabis Produkte', '– Preise vergleichen'],
            ['Medizinische Cannabis Produkte', 'Blüten, Extrakte und mehr im Preisvergleich'],
        ),
        PageType.BRANDS_HUB: (
            ['Cannabis Hersteller', '– Marken im Überblick'],
            ['Alle Cannabis Hersteller', 'Produkte und Preise nach Marke'],
        ),
    }

    def hub_meta(self, page_type: PageType, indexability: IndexabilityResult,
                 count: Optional[int] = None) -> PageMeta:
        title_parts, description_parts = self.HUB_COPY[page_type]
        description_parts = list(description_parts)
        if count:
            description_parts.insert(1, f"{count} Einträge")
        return self._assemble(list(title_parts), description_parts, HUB_PATHS[page_type], indexability)
