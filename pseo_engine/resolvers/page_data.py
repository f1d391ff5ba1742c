"""Page-data records handed to the rendering layer.

One record shape per page type. Every record carries the same four
blocks next to its resolved content: seo (meta, breadcrumbs, schema),
links (sections of internal links), external (partner URLs) and
indexability. to_dict() gives a JSON-ready dictionary whose key order
only depends on the input graph.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple
import json

from ..core.models import Breadcrumb, PageType
from ..seo.indexability import IndexabilityResult
from ..seo.internal_links import LinkSet
from ..seo.meta_builder import PageMeta
from ..seo.routes import build_canonical
from ..seo.schema_builder import combine_schemas


@dataclass(frozen=True)
class SeoBlock:
    meta: PageMeta
    breadcrumbs: Tuple[Breadcrumb, ...]
    schema: Tuple[Dict[str, Any], ...]
    base_url: str

    @property
    def json_ld(self) -> Optional[Dict[str, Any]]:
        return combine_schemas(self.schema)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'meta': self.meta.to_dict(),
            'breadcrumbs': [
                {'name': crumb.name, 'href': build_canonical(self.base_url, crumb.slug)}
                for crumb in self.breadcrumbs
            ],
            'schema': list(self.schema),
        }


@dataclass(frozen=True)
class PageData:
    page_type: PageType
    slug: str
    seo: SeoBlock
    links: LinkSet
    external: Dict[str, str]
    indexability: IndexabilityResult

    def _content(self) -> Dict[str, Any]:
        base_fields = {f.name for f in fields(PageData)}
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in base_fields}

    def to_dict(self) -> Dict[str, Any]:
        data = {'page_type': self.page_type.value, 'slug': self.slug}
        data.update(self._content())
        data['seo'] = self.seo.to_dict()
        data['links'] = self.links.to_dict()
        data['external'] = dict(self.external)
        data['indexability'] = self.indexability.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass(frozen=True)
class StrainPageData(PageData):
    strain: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    products: List[Dict[str, Any]] = field(default_factory=list)
    similar_strains: List[Dict[str, Any]] = field(default_factory=list)
    lineage: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)


@dataclass(frozen=True)
class ProductPageData(PageData):
    product: Dict[str, Any] = field(default_factory=dict)
    brand: Optional[Dict[str, Any]] = None
    strain: Optional[Dict[str, Any]] = None
    category: Optional[Dict[str, Any]] = None
    offers: List[Dict[str, Any]] = field(default_factory=list)
    alternatives: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class PharmacyPageData(PageData):
    pharmacy: Dict[str, Any] = field(default_factory=dict)
    city: Optional[Dict[str, Any]] = None
    products: List[Dict[str, Any]] = field(default_factory=list)
    nearby_pharmacies: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class CityPageData(PageData):
    city: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    pharmacies: List[Dict[str, Any]] = field(default_factory=list)
    nearby_cities: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class BrandPageData(PageData):
    brand: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    products: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class TerpenePageData(PageData):
    terpene: Dict[str, Any] = field(default_factory=dict)
    strains: List[Dict[str, Any]] = field(default_factory=list)
    related_terpenes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class CategoryPageData(PageData):
    category: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)
    products: List[Dict[str, Any]] = field(default_factory=list)
    facet: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class HubPageData(PageData):
    title: str = ''
    stats: Dict[str, Any] = field(default_factory=dict)
    items: List[Dict[str, Any]] = field(default_factory=list)
    groups: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
