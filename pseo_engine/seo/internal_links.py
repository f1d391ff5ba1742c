"""Internal Link Builder

Resolves an entity's relations into ranked, capped link sections. Every
link in a section carries that section's configured priority and no
section ever holds more links than its limit.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

from .. import SECTION_LIMITS, SECTION_PRIORITIES
from ..core.models import (
    Brand, Breadcrumb, Category, City, Entity, EntityType, PageType,
    Pharmacy, Product, Strain, Terpene,
)
from ..graph.aggregates import sort_products
from ..graph.entity_graph import EntityGraph
from .routes import HUB_NAMES, HUB_PATHS, breadcrumb_path, href, path_for

logger = logging.getLogger(__name__)

LINK_SECTIONS = tuple(SECTION_LIMITS.keys())

FOOTER_HUBS = (
    PageType.STRAINS_HUB,
    PageType.APOTHEKE_HUB,
    PageType.PRODUCTS_HUB,
    PageType.BRANDS_HUB,
    PageType.TERPENES_HUB,
)


@dataclass(frozen=True)
class InternalLink:
    href: str
    anchor_text: str
    title: str
    section: str
    priority: int
    target_type: str  # entity type value, or "hub"
    target_slug: str
    target_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class LinkSet:
    """Links grouped by section, sections in configured order"""
    sections: Tuple[Tuple[str, Tuple[InternalLink, ...]], ...] = ()

    def get(self, section: str) -> Tuple[InternalLink, ...]:
        for name, links in self.sections:
            if name == section:
                return links
        return ()

    def ranked(self) -> List[InternalLink]:
        """All links, highest priority first; stable within a priority"""
        links = [link for _, section_links in self.sections for link in section_links]
        return sorted(links, key=lambda link: -link.priority)

    def __len__(self) -> int:
        return sum(len(links) for _, links in self.sections)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [link.to_dict() for link in links] for name, links in self.sections}


def _anchor(text: Optional[str], fallback: str) -> str:
    text = (text or '').strip()
    return text if text else fallback


def _product_title(product: Product, brand: Optional[Brand]) -> str:
    return f"{product.name} von {brand.name}" if brand else product.name


class _SectionCollector:
    """Enforces limits and duplicate hrefs while a link set is assembled"""

    def __init__(self, limits: Dict[str, int], priorities: Dict[str, int]):
        self.limits = limits
        self.priorities = priorities
        self.links: Dict[str, List[InternalLink]] = {}

    def full(self, section: str) -> bool:
        return len(self.links.get(section, [])) >= self.limits[section]

    def add(self, section: str, target_type: str, slug: str, link_href: str,
            anchor_text: str, title: str, target_id: Optional[str] = None) -> bool:
        if self.full(section):
            return False
        bucket = self.links.setdefault(section, [])
        if any(link.href == link_href for link in bucket):
            return False
        bucket.append(InternalLink(
            href=link_href,
            anchor_text=_anchor(anchor_text, slug),
            title=_anchor(title, anchor_text or slug),
            section=section,
            priority=self.priorities[section],
            target_type=target_type,
            target_slug=slug,
            target_id=target_id,
        ))
        return True

    def add_entity(self, section: str, entity: Entity, anchor_text: str, title: str) -> bool:
        return self.add(section, entity.entity_type.value, entity.slug, href(path_for(entity)),
                        anchor_text, title, entity.id)

    def build(self) -> LinkSet:
        ordered = tuple(
            (section, tuple(self.links[section]))
            for section in LINK_SECTIONS
            if self.links.get(section)
        )
        return LinkSet(sections=ordered)


class InternalLinkBuilder:
    """Per-entity link sections over one graph snapshot"""

    def __init__(self, graph: EntityGraph,
                 section_limits: Optional[Dict[str, int]] = None,
                 section_priorities: Optional[Dict[str, int]] = None):
        self.graph = graph
        self.section_limits = SECTION_LIMITS.copy()
        self.section_priorities = SECTION_PRIORITIES.copy()
        if section_limits:
            self._check_sections(section_limits)
            self.section_limits.update(section_limits)
        if section_priorities:
            self._check_sections(section_priorities)
            self.section_priorities.update(section_priorities)

    @staticmethod
    def _check_sections(overrides: Dict[str, int]):
        unknown = set(overrides) - set(LINK_SECTIONS)
        if unknown:
            raise ValueError(f"Unknown link sections: {sorted(unknown)}")
        for section, value in overrides.items():
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"Section {section} needs a non-negative integer, got {value!r}")

    def _collector(self) -> _SectionCollector:
        return _SectionCollector(self.section_limits, self.section_priorities)

    def for_entity(self, entity: Entity, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        if isinstance(entity, Strain):
            return self.for_strain(entity, breadcrumbs)
        if isinstance(entity, Product):
            return self.for_product(entity, breadcrumbs)
        if isinstance(entity, Pharmacy):
            return self.for_pharmacy(entity, breadcrumbs)
        if isinstance(entity, City):
            return self.for_city(entity, breadcrumbs)
        if isinstance(entity, Brand):
            return self.for_brand(entity, breadcrumbs)
        if isinstance(entity, Terpene):
            return self.for_terpene(entity, breadcrumbs)
        if isinstance(entity, Category):
            return self.for_category(entity, breadcrumbs)
        raise TypeError(f"Unknown entity type: {type(entity).__name__}")

    # Shared sections

    def _add_breadcrumbs(self, links: _SectionCollector, trail: List[Breadcrumb]):
        """Every crumb except the current page"""
        for crumb in trail[:-1]:
            links.add('breadcrumb', 'hub' if crumb.slug in HUB_PATHS.values() else 'page',
                      crumb.slug, href(crumb.slug), crumb.name, crumb.name)

    def _add_footer(self, links: _SectionCollector, current_path: Optional[str] = None):
        for page_type in FOOTER_HUBS:
            path = HUB_PATHS[page_type]
            if path == current_path:
                continue
            links.add('footer', 'hub', path, href(path), HUB_NAMES[page_type], HUB_NAMES[page_type])
        for category in sorted(self.graph.categories.values(), key=lambda c: (-c.product_count, c.slug)):
            if path_for(category) == current_path:
                continue
            name = category.name_de or category.name
            links.add_entity('footer', category, name, f"Alle {name}")

    def _add_products(self, links: _SectionCollector, products: List[Product], section: str = 'products'):
        for product in sort_products(products):
            if links.full(section):
                break
            brand = self.graph.get_by_id(EntityType.BRAND, product.brand_id)
            links.add_entity(section, product, product.name, _product_title(product, brand))

    def breadcrumbs(self, entity: Entity) -> List[Breadcrumb]:
        """Breadcrumb path including the intermediate brand/city/parent page"""
        lookups = {}
        if isinstance(entity, Product):
            lookups['brand'] = self.graph.get_by_id(EntityType.BRAND, entity.brand_id)
        elif isinstance(entity, Pharmacy):
            lookups['city'] = self.graph.get_by_id(EntityType.CITY, entity.city_id)
        elif isinstance(entity, Category):
            lookups['parent_category'] = self.graph.get_by_id(EntityType.CATEGORY, entity.parent_category_id)
        return breadcrumb_path(entity, lookups)

    def _finish(self, links: _SectionCollector, entity: Entity, trail: Optional[List[Breadcrumb]]) -> LinkSet:
        self._add_breadcrumbs(links, trail if trail is not None else self.breadcrumbs(entity))
        self._add_footer(links, path_for(entity))
        return links.build()

    # Entity pages

    def for_strain(self, strain: Strain, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()

        for parent in self.graph.resolve_ids(EntityType.STRAIN, strain.parent_strain_ids):
            links.add_entity('parent_strains', parent, parent.name, f"{parent.name} - Elternsorte")

        for child in self.graph.resolve_ids(EntityType.STRAIN, strain.child_strain_ids):
            links.add_entity('child_strains', child, child.name, f"{child.name} - Abgeleitete Sorte")

        lineage = set(strain.parent_strain_ids) | set(strain.child_strain_ids)
        for similarity in strain.similar_strains:
            similar = self.graph.get_by_id(EntityType.STRAIN, similarity.strain_id)
            if similar is None or similar.id in lineage:
                continue
            links.add_entity('related_strains', similar, similar.name, f"{similar.name} - Ähnliche Sorte")

        for terpene in self.graph.resolve_ids(EntityType.TERPENE, strain.terpene_ids):
            name = terpene.name_de or terpene.name
            links.add_entity('terpenes', terpene, name, f"{name} Terpen")

        self._add_products(links, self.graph.resolve_ids(EntityType.PRODUCT, strain.product_ids))
        return self._finish(links, strain, breadcrumbs)

    def for_product(self, product: Product, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()

        strain = self.graph.get_by_id(EntityType.STRAIN, product.strain_id)
        if strain:
            links.add_entity('related_strains', strain, strain.name, f"{strain.name} Sorte")

        brand = self.graph.get_by_id(EntityType.BRAND, product.brand_id)
        if brand:
            links.add_entity('brand', brand, brand.name, f"Alle {brand.name} Produkte")

        category = self.graph.get_by_id(EntityType.CATEGORY, product.category_id)
        if category:
            name = category.name_de or category.name
            links.add_entity('category', category, name, f"Alle {name}")

        # Only pharmacies with an active offer; one link per pharmacy
        for offer in product.active_offers:
            pharmacy = self.graph.get_by_id(EntityType.PHARMACY, offer.pharmacy_id)
            if pharmacy:
                links.add_entity('pharmacies', pharmacy, pharmacy.name, f"Bei {pharmacy.name} kaufen")

        for alternative in product.alternatives:
            alt = self.graph.get_by_id(EntityType.PRODUCT, alternative.product_id)
            if alt:
                alt_brand = self.graph.get_by_id(EntityType.BRAND, alt.brand_id)
                suffix = f" von {alt_brand.name}" if alt_brand else ''
                links.add_entity('alternatives', alt, alt.name, f"Alternative: {alt.name}{suffix}")

        return self._finish(links, product, breadcrumbs)

    def nearby_pharmacies(self, pharmacy: Pharmacy) -> List[Pharmacy]:
        """Closest other pharmacies as ranked at graph construction"""
        nearby = self.graph.resolve_ids(EntityType.PHARMACY, pharmacy.nearby_pharmacy_ids)
        return nearby[:self.section_limits['nearby']]

    def for_pharmacy(self, pharmacy: Pharmacy, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()

        city = self.graph.get_by_id(EntityType.CITY, pharmacy.city_id)
        if city:
            links.add_entity('city', city, f"Cannabis Apotheken in {city.name}",
                             f"Alle Cannabis Apotheken in {city.name}")

        for nearby in self.nearby_pharmacies(pharmacy):
            links.add_entity('nearby', nearby, nearby.name, f"{nearby.name} in der Nähe")

        self._add_products(links, self.graph.products_for_pharmacy(pharmacy))
        return self._finish(links, pharmacy, breadcrumbs)

    def for_city(self, city: City, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()

        pharmacies = self.graph.resolve_ids(EntityType.PHARMACY, city.pharmacy_ids)
        for pharmacy in sorted(pharmacies, key=lambda p: (-p.product_count, p.slug)):
            links.add_entity('pharmacies', pharmacy, pharmacy.name, f"{pharmacy.name} in {city.name}")

        for nearby in self.graph.resolve_ids(EntityType.CITY, city.nearby_city_ids):
            links.add_entity('nearby', nearby, f"Cannabis Apotheke {nearby.name}",
                             f"Cannabis Apotheken in {nearby.name}")

        return self._finish(links, city, breadcrumbs)

    def for_brand(self, brand: Brand, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()
        self._add_products(links, self.graph.resolve_ids(EntityType.PRODUCT, brand.product_ids))
        return self._finish(links, brand, breadcrumbs)

    def for_terpene(self, terpene: Terpene, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()
        name = terpene.name_de or terpene.name

        strains = self.graph.resolve_ids(EntityType.STRAIN, terpene.strain_ids)
        for strain in sorted(strains, key=lambda s: (-s.product_count, s.slug)):
            links.add_entity('related_strains', strain, strain.name, f"{strain.name} - Enthält {name}")

        return self._finish(links, terpene, breadcrumbs)

    def for_category(self, category: Category, breadcrumbs: Optional[List[Breadcrumb]] = None) -> LinkSet:
        links = self._collector()

        parent = self.graph.get_by_id(EntityType.CATEGORY, category.parent_category_id)
        if parent:
            name = parent.name_de or parent.name
            links.add_entity('category', parent, name, f"Alle {name}")

        self._add_products(links, self.graph.resolve_ids(EntityType.PRODUCT, category.product_ids))
        return self._finish(links, category, breadcrumbs)

    def for_hub(self, page_type: PageType) -> LinkSet:
        """Hub pages only carry the shared footer and a link home"""
        links = self._collector()
        if page_type != PageType.HOME:
            links.add('breadcrumb', 'hub', '', href(''), HUB_NAMES[PageType.HOME], HUB_NAMES[PageType.HOME])
        self._add_footer(links, HUB_PATHS[page_type])
        return links.build()
