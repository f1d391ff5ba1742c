"""Entity Graph

Immutable in-memory snapshot of the catalog. build_entity_graph validates
the raw records, repairs back-references, recomputes every aggregate and
indexes the result for slug/id lookups and O(1) reverse lookups. The
snapshot is read-only for the rest of the generation run and can be
shared between resolver threads without locking.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

from fuzzywuzzy import fuzz

from .. import SECTION_LIMITS
from ..core.models import (
    Brand, Category, City, Entity, EntityType, Offer, Pharmacy, Product,
    Strain, Terpene,
)
from ..seo.indexability import (
    DEFAULT_THRESHOLDS, IndexabilityThresholds, check_brand, check_city,
    check_product, check_strain, check_terpene, should_link_brand,
)
from ..utils.validation import EntityValidator
from .aggregates import (
    centroid, compute_pharmacy_price_score, compute_price_range,
    compute_price_stats, compute_product_alternatives, compute_similar_strains,
    compute_stock_volatility, nearest, product_price_samples,
)


logger = logging.getLogger(__name__)

FUZZY_NAME_THRESHOLD = 85
MAX_NEARBY_CITIES = 5
MAX_NEARBY_PHARMACIES = SECTION_LIMITS['nearby']


@dataclass(frozen=True)
class IntegrityWarning:
    code: str
    entity_type: str
    entity_id: str
    field: str
    message: str
    target_id: Optional[str] = None


@dataclass(frozen=True)
class IntegrityReport:
    warnings: Tuple[IntegrityWarning, ...] = ()
    excluded: Tuple[Tuple[str, str], ...] = ()  # (entity_type, entity_id)

    @property
    def ok(self) -> bool:
        return not self.warnings and not self.excluded

    def count_by_code(self) -> Dict[str, int]:
        return dict(Counter(w.code for w in self.warnings))

    def for_entity(self, entity_type: str, entity_id: str) -> List[IntegrityWarning]:
        return [w for w in self.warnings if w.entity_type == entity_type and w.entity_id == entity_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'warning_count': len(self.warnings),
            'by_code': self.count_by_code(),
            'excluded': [{'entity_type': t, 'entity_id': i} for t, i in self.excluded],
            'warnings': [vars(w) for w in self.warnings],
        }


@dataclass(frozen=True)
class GraphStats:
    total_strains: int
    total_products: int
    total_pharmacies: int
    total_cities: int
    total_brands: int
    total_terpenes: int
    total_categories: int
    total_offers: int
    active_offers: int
    indexable_strains: int
    indexable_products: int
    indexable_cities: int
    indexable_brands: int
    indexable_terpenes: int
    linkable_brands: int

    def to_dict(self) -> Dict[str, int]:
        return dict(vars(self))


class _IntegrityCollector:
    """Mutable accumulator used only while the graph is being built"""

    def __init__(self):
        self.warnings: List[IntegrityWarning] = []
        self.excluded: List[Tuple[str, str]] = []

    def add(self, code: str, entity: Entity, field_name: str, message: str, target_id: Optional[str] = None):
        self.warnings.append(IntegrityWarning(
            code=code,
            entity_type=entity.entity_type.value,
            entity_id=entity.id,
            field=field_name,
            message=message,
            target_id=target_id,
        ))
        if code == 'DANGLING_REFERENCE':
            logger.debug(f"{entity.entity_type.value} {entity.id}: {message}")

    def report(self) -> IntegrityReport:
        return IntegrityReport(warnings=tuple(self.warnings), excluded=tuple(self.excluded))


def _freeze(mapping: Dict) -> Mapping:
    return MappingProxyType(dict(mapping))


def _freeze_index(index: Dict[str, List[str]]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({key: tuple(values) for key, values in index.items()})


class EntityGraph:
    """Read-only lookups by slug or id plus reverse indices and stats.

    Build instances with build_entity_graph; the constructor trusts that
    the entities it receives are already reconciled.
    """

    def __init__(self,
                 strains: Sequence[Strain],
                 products: Sequence[Product],
                 pharmacies: Sequence[Pharmacy],
                 cities: Sequence[City],
                 brands: Sequence[Brand],
                 terpenes: Sequence[Terpene],
                 categories: Sequence[Category],
                 integrity: Optional[IntegrityReport] = None,
                 thresholds: IndexabilityThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds
        self.integrity = integrity or IntegrityReport()

        self._by_id: Dict[EntityType, Mapping[str, Entity]] = {}
        self._by_slug: Dict[EntityType, Mapping[str, Entity]] = {}
        for entity_type, entities in (
            (EntityType.STRAIN, strains),
            (EntityType.PRODUCT, products),
            (EntityType.PHARMACY, pharmacies),
            (EntityType.CITY, cities),
            (EntityType.BRAND, brands),
            (EntityType.TERPENE, terpenes),
            (EntityType.CATEGORY, categories),
        ):
            self._by_id[entity_type] = _freeze({e.id: e for e in entities})
            self._by_slug[entity_type] = _freeze({e.slug: e for e in entities})

        self._build_indices()
        self.stats = self._compute_stats()

    # Lookups

    @property
    def strains(self) -> Mapping[str, Strain]:
        return self._by_id[EntityType.STRAIN]

    @property
    def products(self) -> Mapping[str, Product]:
        return self._by_id[EntityType.PRODUCT]

    @property
    def pharmacies(self) -> Mapping[str, Pharmacy]:
        return self._by_id[EntityType.PHARMACY]

    @property
    def cities(self) -> Mapping[str, City]:
        return self._by_id[EntityType.CITY]

    @property
    def brands(self) -> Mapping[str, Brand]:
        return self._by_id[EntityType.BRAND]

    @property
    def terpenes(self) -> Mapping[str, Terpene]:
        return self._by_id[EntityType.TERPENE]

    @property
    def categories(self) -> Mapping[str, Category]:
        return self._by_id[EntityType.CATEGORY]

    def entities(self, entity_type: EntityType) -> List[Entity]:
        return list(self._by_id[entity_type].values())

    def get(self, entity_type: EntityType, key: Optional[str]) -> Optional[Entity]:
        """Look up by slug first, then by id"""
        if not key:
            return None
        entity = self._by_slug[entity_type].get(key)
        if entity is None:
            entity = self._by_id[entity_type].get(key)
        return entity

    def get_by_id(self, entity_type: EntityType, entity_id: Optional[str]) -> Optional[Entity]:
        if not entity_id:
            return None
        return self._by_id[entity_type].get(entity_id)

    def resolve_ids(self, entity_type: EntityType, ids: Iterable[str]) -> List[Entity]:
        """Entities for the ids that exist, in order; dangling ids are skipped"""
        lookup = self._by_id[entity_type]
        return [lookup[i] for i in ids if i in lookup]

    def strain(self, key: str) -> Optional[Strain]:
        return self.get(EntityType.STRAIN, key)

    def product(self, key: str) -> Optional[Product]:
        return self.get(EntityType.PRODUCT, key)

    def pharmacy(self, key: str) -> Optional[Pharmacy]:
        return self.get(EntityType.PHARMACY, key)

    def city(self, key: str) -> Optional[City]:
        return self.get(EntityType.CITY, key)

    def brand(self, key: str) -> Optional[Brand]:
        return self.get(EntityType.BRAND, key)

    def terpene(self, key: str) -> Optional[Terpene]:
        return self.get(EntityType.TERPENE, key)

    def category(self, key: str) -> Optional[Category]:
        return self.get(EntityType.CATEGORY, key)

    def offer(self, offer_id: str) -> Optional[Offer]:
        return self.offers_by_id.get(offer_id)

    # Reverse lookups

    def _build_indices(self):
        products_by_strain = defaultdict(list)
        products_by_brand = defaultdict(list)
        products_by_category = defaultdict(list)
        offers_by_pharmacy = defaultdict(list)
        offers_by_id = {}
        for product in self.products.values():
            if product.strain_id in self.strains:
                products_by_strain[product.strain_id].append(product.id)
            if product.brand_id in self.brands:
                products_by_brand[product.brand_id].append(product.id)
            if product.category_id in self.categories:
                products_by_category[product.category_id].append(product.id)
            for offer in product.offers:
                offers_by_id[offer.id] = offer
                offers_by_pharmacy[offer.pharmacy_id].append(offer.id)

        pharmacies_by_city = defaultdict(list)
        for pharmacy in self.pharmacies.values():
            if pharmacy.city_id in self.cities:
                pharmacies_by_city[pharmacy.city_id].append(pharmacy.id)

        strains_by_terpene = defaultdict(list)
        strains_by_name = {}
        for strain in self.strains.values():
            for terpene_id in strain.terpene_ids:
                strains_by_terpene[terpene_id].append(strain.id)
            for name in (strain.name,) + tuple(strain.synonyms):
                strains_by_name.setdefault(name.strip().lower(), strain.id)

        self.products_by_strain = _freeze_index(products_by_strain)
        self.products_by_brand = _freeze_index(products_by_brand)
        self.products_by_category = _freeze_index(products_by_category)
        self.pharmacies_by_city = _freeze_index(pharmacies_by_city)
        self.strains_by_terpene = _freeze_index(strains_by_terpene)
        self.offers_by_pharmacy = _freeze_index(offers_by_pharmacy)
        self.offers_by_id = _freeze(offers_by_id)
        self.strains_by_name = _freeze(strains_by_name)

    def products_for_strain(self, strain: Strain) -> List[Product]:
        return self.resolve_ids(EntityType.PRODUCT, self.products_by_strain.get(strain.id, ()))

    def products_for_brand(self, brand: Brand) -> List[Product]:
        return self.resolve_ids(EntityType.PRODUCT, self.products_by_brand.get(brand.id, ()))

    def products_for_category(self, category: Category) -> List[Product]:
        return self.resolve_ids(EntityType.PRODUCT, self.products_by_category.get(category.id, ()))

    def pharmacies_for_city(self, city: City) -> List[Pharmacy]:
        return self.resolve_ids(EntityType.PHARMACY, self.pharmacies_by_city.get(city.id, ()))

    def strains_for_terpene(self, terpene: Terpene) -> List[Strain]:
        return self.resolve_ids(EntityType.STRAIN, self.strains_by_terpene.get(terpene.id, ()))

    def offers_for_pharmacy(self, pharmacy: Pharmacy) -> List[Offer]:
        return [self.offers_by_id[i] for i in self.offers_by_pharmacy.get(pharmacy.id, ())]

    def products_for_pharmacy(self, pharmacy: Pharmacy) -> List[Product]:
        product_ids = []
        for offer in self.offers_for_pharmacy(pharmacy):
            if offer.is_active and offer.product_id not in product_ids:
                product_ids.append(offer.product_id)
        return self.resolve_ids(EntityType.PRODUCT, product_ids)

    def products_by_strain_slug(self, slug: str) -> List[Product]:
        strain = self.strain(slug)
        return self.products_for_strain(strain) if strain else []

    def find_strain_by_name(self, name: str) -> Optional[Strain]:
        """Exact name or synonym match, then the best fuzzy match"""
        if not name:
            return None
        normalized = name.strip().lower()
        strain_id = self.strains_by_name.get(normalized)
        if strain_id:
            return self.strains[strain_id]

        best_score, best_id = 0, None
        for candidate, candidate_id in sorted(self.strains_by_name.items()):
            score = fuzz.token_sort_ratio(normalized, candidate)
            if score > best_score:
                best_score, best_id = score, candidate_id
        if best_id is not None and best_score >= FUZZY_NAME_THRESHOLD:
            return self.strains[best_id]
        return None

    # Stats

    def _compute_stats(self) -> GraphStats:
        offers = list(self.offers_by_id.values())
        t = self.thresholds
        return GraphStats(
            total_strains=len(self.strains),
            total_products=len(self.products),
            total_pharmacies=len(self.pharmacies),
            total_cities=len(self.cities),
            total_brands=len(self.brands),
            total_terpenes=len(self.terpenes),
            total_categories=len(self.categories),
            total_offers=len(offers),
            active_offers=sum(1 for o in offers if o.is_active),
            indexable_strains=sum(1 for s in self.strains.values() if check_strain(s).should_index),
            indexable_products=sum(1 for p in self.products.values() if check_product(p, t).should_index),
            indexable_cities=sum(1 for c in self.cities.values() if check_city(c, t).should_index),
            indexable_brands=sum(1 for b in self.brands.values() if check_brand(b, t).should_index),
            indexable_terpenes=sum(1 for x in self.terpenes.values() if check_terpene(x, t).should_index),
            linkable_brands=sum(1 for b in self.brands.values() if should_link_brand(b, t)),
        )


# Construction

def _admit(entities: Iterable[Entity], validator: EntityValidator, collector: _IntegrityCollector) -> Dict[str, Entity]:
    """Drop entities without id, name or slug and duplicates; keep first occurrence"""
    admitted: Dict[str, Entity] = {}
    seen_slugs = set()
    for entity in entities:
        result = validator.validate_entity(entity)
        if result.is_blocking:
            codes = ', '.join(e.code for e in result.errors)
            logger.warning(f"Excluding {entity.entity_type.value} {entity.id or '<no id>'}: {codes}")
            collector.excluded.append((entity.entity_type.value, entity.id or ''))
            continue
        if entity.id in admitted:
            collector.add('DUPLICATE_ID', entity, 'id', f"Duplicate id {entity.id} dropped")
            continue
        if entity.slug in seen_slugs:
            collector.add('DUPLICATE_SLUG', entity, 'slug', f"Duplicate slug {entity.slug} dropped")
            continue
        admitted[entity.id] = entity
        seen_slugs.add(entity.slug)
    return admitted


def _reconcile_one_to_many(owners: Dict[str, Entity], list_field: str,
                           children: Dict[str, Entity], child_fk: str,
                           collector: _IntegrityCollector) -> Dict[str, Tuple[str, ...]]:
    """Make owner reference lists agree with the children's foreign keys.

    The child's foreign key is authoritative. Declared order is kept,
    dangling and contradicted entries are dropped, missing children are
    appended in id order.
    """
    actual = defaultdict(list)
    for child in children.values():
        owner_id = getattr(child, child_fk)
        if owner_id in owners:
            actual[owner_id].append(child.id)

    reconciled = {}
    for owner_id, owner in owners.items():
        result = []
        for child_id in getattr(owner, list_field):
            if child_id in result:
                continue
            child = children.get(child_id)
            if child is None:
                collector.add('DANGLING_REFERENCE', owner, list_field, f"Unknown id {child_id} in {list_field}", child_id)
            elif getattr(child, child_fk) != owner_id:
                collector.add('BACKREF_CONFLICT', owner, list_field,
                              f"{child_id} points to {getattr(child, child_fk)}, not {owner_id}", child_id)
            else:
                result.append(child_id)
        for child_id in sorted(actual[owner_id]):
            if child_id not in result:
                collector.add('BACKREF_REPAIRED', owner, list_field, f"Added missing back-reference {child_id}", child_id)
                result.append(child_id)
        reconciled[owner_id] = tuple(result)
    return reconciled


def _check_foreign_key(entity: Entity, fk_field: str, targets: Mapping[str, Entity], collector: _IntegrityCollector):
    target_id = getattr(entity, fk_field)
    if target_id and target_id not in targets:
        collector.add('DANGLING_REFERENCE', entity, fk_field, f"Unknown id {target_id} in {fk_field}", target_id)


def _filter_known(entity: Entity, list_field: str, known: Mapping[str, Entity], collector: _IntegrityCollector,
                  exclude_self: bool = False) -> Tuple[str, ...]:
    result = []
    for ref in getattr(entity, list_field):
        if ref in result or (exclude_self and ref == entity.id):
            continue
        if ref not in known:
            collector.add('DANGLING_REFERENCE', entity, list_field, f"Unknown id {ref} in {list_field}", ref)
            continue
        result.append(ref)
    return tuple(result)


def _symmetric_union(strains: Dict[str, Strain], forward: Dict[str, Tuple[str, ...]],
                     backward: Dict[str, Tuple[str, ...]], forward_field: str,
                     collector: _IntegrityCollector) -> Dict[str, Tuple[str, ...]]:
    """forward[a] gains b whenever backward[b] lists a"""
    implied = defaultdict(list)
    for b_id, a_ids in backward.items():
        for a_id in a_ids:
            implied[a_id].append(b_id)

    result = {}
    for strain_id, refs in forward.items():
        merged = list(refs)
        for ref in sorted(implied[strain_id]):
            if ref not in merged:
                collector.add('BACKREF_REPAIRED', strains[strain_id], forward_field,
                              f"Added missing back-reference {ref}", ref)
                merged.append(ref)
        result[strain_id] = tuple(merged)
    return result


def build_entity_graph(strains: Iterable[Strain] = (),
                       products: Iterable[Product] = (),
                       pharmacies: Iterable[Pharmacy] = (),
                       cities: Iterable[City] = (),
                       brands: Iterable[Brand] = (),
                       terpenes: Iterable[Terpene] = (),
                       categories: Iterable[Category] = (),
                       thresholds: Optional[IndexabilityThresholds] = None) -> EntityGraph:
    """Validate, reconcile and index raw entity records into a snapshot.

    Never raises on bad data: entities without id or slug are excluded,
    everything else (dangling ids, one-sided back-references, duplicates)
    is repaired or skipped and recorded in graph.integrity.
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    collector = _IntegrityCollector()
    validator = EntityValidator()

    strain_map = _admit(strains, validator, collector)
    product_map = _admit(products, validator, collector)
    pharmacy_map = _admit(pharmacies, validator, collector)
    city_map = _admit(cities, validator, collector)
    brand_map = _admit(brands, validator, collector)
    terpene_map = _admit(terpenes, validator, collector)
    category_map = _admit(categories, validator, collector)

    # Offers live on products; the enclosing product owns them
    for product_id, product in list(product_map.items()):
        offers = []
        for offer in product.offers:
            if offer.pharmacy_id not in pharmacy_map:
                collector.add('DANGLING_REFERENCE', product, 'offers',
                              f"Offer {offer.id} references unknown pharmacy {offer.pharmacy_id}", offer.pharmacy_id)
                continue
            if offer.product_id != product_id:
                collector.add('BACKREF_REPAIRED', product, 'offers',
                              f"Offer {offer.id} reassigned from {offer.product_id or '<none>'}", offer.id)
                offer = replace(offer, product_id=product_id)
            offers.append(offer)

        for fk_field, targets in (('brand_id', brand_map), ('strain_id', strain_map), ('category_id', category_map)):
            _check_foreign_key(product, fk_field, targets, collector)

        product = replace(
            product,
            offers=tuple(offers),
            alternative_product_ids=_filter_known(product, 'alternative_product_ids', product_map, collector, exclude_self=True),
        )
        samples = product_price_samples(product)
        product_map[product_id] = replace(
            product,
            price_stats=compute_price_stats(samples),
            stock_volatility=compute_stock_volatility(product),
        )

    offer_map: Dict[str, Offer] = {o.id: o for p in product_map.values() for o in p.offers}

    # One-to-many back-references; the single-valued side wins
    strain_products = _reconcile_one_to_many(strain_map, 'product_ids', product_map, 'strain_id', collector)
    brand_products = _reconcile_one_to_many(brand_map, 'product_ids', product_map, 'brand_id', collector)
    category_products = _reconcile_one_to_many(category_map, 'product_ids', product_map, 'category_id', collector)
    city_pharmacies = _reconcile_one_to_many(city_map, 'pharmacy_ids', pharmacy_map, 'city_id', collector)
    pharmacy_offers = _reconcile_one_to_many(pharmacy_map, 'offer_ids', offer_map, 'pharmacy_id', collector)

    for pharmacy in pharmacy_map.values():
        _check_foreign_key(pharmacy, 'city_id', city_map, collector)

    # Many-to-many and symmetric strain edges
    strain_terpenes = {s.id: _filter_known(s, 'terpene_ids', terpene_map, collector) for s in strain_map.values()}
    terpene_strains = {t.id: _filter_known(t, 'strain_ids', strain_map, collector) for t in terpene_map.values()}
    strain_terpenes_full = _symmetric_union(strain_map, strain_terpenes, terpene_strains, 'terpene_ids', collector)
    terpene_strains_full = {}
    implied = defaultdict(list)
    for strain_id, terpene_ids in strain_terpenes.items():
        for terpene_id in terpene_ids:
            implied[terpene_id].append(strain_id)
    for terpene_id, strain_ids in terpene_strains.items():
        merged = list(strain_ids)
        for strain_id in sorted(implied[terpene_id]):
            if strain_id not in merged:
                collector.add('BACKREF_REPAIRED', terpene_map[terpene_id], 'strain_ids',
                              f"Added missing back-reference {strain_id}", strain_id)
                merged.append(strain_id)
        terpene_strains_full[terpene_id] = tuple(merged)

    parents = {s.id: _filter_known(s, 'parent_strain_ids', strain_map, collector, exclude_self=True) for s in strain_map.values()}
    children = {s.id: _filter_known(s, 'child_strain_ids', strain_map, collector, exclude_self=True) for s in strain_map.values()}
    parents_full = _symmetric_union(strain_map, parents, children, 'parent_strain_ids', collector)
    children_full = _symmetric_union(strain_map, children, parents, 'child_strain_ids', collector)

    # Aggregates
    median_by_product = {pid: (p.price_stats.median_cents if p.price_stats else None) for pid, p in product_map.items()}

    for pharmacy_id, pharmacy in list(pharmacy_map.items()):
        offers = [offer_map[i] for i in pharmacy_offers[pharmacy_id]]
        pharmacy_map[pharmacy_id] = replace(
            pharmacy,
            offer_ids=pharmacy_offers[pharmacy_id],
            product_count=len({o.product_id for o in offers if o.is_active}),
            price_score=compute_pharmacy_price_score(offers, median_by_product),
        )
    _assign_nearby_pharmacies(pharmacy_map, city_pharmacies)

    for strain_id, strain in list(strain_map.items()):
        strain_product_list = [product_map[i] for i in strain_products[strain_id]]
        pharmacy_ids = {o.pharmacy_id for p in strain_product_list for o in p.active_offers}
        samples = [price for p in strain_product_list for price in product_price_samples(p)]
        strain_map[strain_id] = replace(
            strain,
            product_ids=strain_products[strain_id],
            terpene_ids=strain_terpenes_full[strain_id],
            parent_strain_ids=parents_full[strain_id],
            child_strain_ids=children_full[strain_id],
            pharmacy_count=len(pharmacy_ids),
            price_stats=compute_price_stats(samples),
        )

    for city_id, city in list(city_map.items()):
        city_pharmacy_list = [pharmacy_map[i] for i in city_pharmacies[city_id]]
        active = [offer_map[i] for ph in city_pharmacy_list for i in ph.offer_ids if offer_map[i].is_active]
        delivery_days = [ph.delivery_info.standard_delivery_days for ph in city_pharmacy_list if ph.delivery_info]
        city_map[city_id] = replace(
            city,
            pharmacy_ids=city_pharmacies[city_id],
            nearby_city_ids=_filter_known(city, 'nearby_city_ids', city_map, collector, exclude_self=True),
            pharmacy_count=len(city_pharmacy_list),
            offer_count=len(active),
            avg_delivery_days=round(sum(delivery_days) / len(delivery_days), 1) if delivery_days else None,
            price_range=compute_price_range(o.price_cents for o in active),
        )
    _assign_nearby_cities(city_map, pharmacy_map)

    for brand_id, brand in list(brand_map.items()):
        brand_map[brand_id] = replace(brand, product_ids=brand_products[brand_id], product_count=len(brand_products[brand_id]))

    for terpene_id, terpene in list(terpene_map.items()):
        terpene_map[terpene_id] = replace(
            terpene,
            strain_ids=terpene_strains_full[terpene_id],
            strain_count=len(terpene_strains_full[terpene_id]),
        )

    for category_id, category in list(category_map.items()):
        category_product_list = [product_map[i] for i in category_products[category_id]]
        category_map[category_id] = replace(
            category,
            product_ids=category_products[category_id],
            product_count=len(category_product_list),
            brand_count=len({p.brand_id for p in category_product_list if p.brand_id in brand_map}),
            price_range=compute_price_range(o.price_cents for p in category_product_list for o in p.active_offers),
        )

    # Edges derived from the reconciled entities
    similar = compute_similar_strains(list(strain_map.values()))
    for strain_id, strain in list(strain_map.items()):
        strain_map[strain_id] = replace(strain, similar_strains=similar[strain_id])

    alternatives = compute_product_alternatives(
        list(product_map.values()),
        lambda p: check_product(p, thresholds).should_index,
    )
    for product_id, product in list(product_map.items()):
        product_map[product_id] = replace(
            product,
            alternatives=alternatives[product_id],
            alternative_product_ids=tuple(a.product_id for a in alternatives[product_id]),
        )

    graph = EntityGraph(
        strains=list(strain_map.values()),
        products=list(product_map.values()),
        pharmacies=list(pharmacy_map.values()),
        cities=list(city_map.values()),
        brands=list(brand_map.values()),
        terpenes=list(terpene_map.values()),
        categories=list(category_map.values()),
        integrity=collector.report(),
        thresholds=thresholds,
    )
    logger.info(
        f"Entity graph built: {graph.stats.total_strains} strains, {graph.stats.total_products} products, "
        f"{graph.stats.total_pharmacies} pharmacies, {graph.stats.total_cities} cities, "
        f"{len(graph.integrity.warnings)} integrity warnings, {len(graph.integrity.excluded)} excluded"
    )
    return graph


def _city_coordinates(city: City, pharmacy_map: Mapping[str, Pharmacy]):
    if city.coordinates is not None:
        return city.coordinates
    return centroid(
        pharmacy_map[i].address.coordinates
        for i in city.pharmacy_ids
        if pharmacy_map[i].address.coordinates is not None
    )


def _assign_nearby_cities(city_map: Dict[str, City], pharmacy_map: Mapping[str, Pharmacy]):
    """Cities without declared neighbours get the closest cities by distance"""
    coordinates = {city_id: _city_coordinates(city, pharmacy_map) for city_id, city in city_map.items()}
    for city_id, city in list(city_map.items()):
        if city.nearby_city_ids or coordinates[city_id] is None:
            continue
        closest = nearest(
            coordinates[city_id],
            ((other_id, coords) for other_id, coords in coordinates.items() if other_id != city_id),
            MAX_NEARBY_CITIES,
        )
        city_map[city_id] = replace(city, nearby_city_ids=tuple(other_id for other_id, _ in closest))


def _assign_nearby_pharmacies(pharmacy_map: Dict[str, Pharmacy], city_pharmacies: Mapping[str, Tuple[str, ...]]):
    """Closest other pharmacies by distance, else same-city pharmacies by product count"""
    located = [(pharmacy_id, p.address.coordinates) for pharmacy_id, p in pharmacy_map.items()]
    for pharmacy_id, pharmacy in list(pharmacy_map.items()):
        nearby = ()
        origin = pharmacy.address.coordinates
        if origin is not None:
            closest = nearest(
                origin,
                ((other_id, coords) for other_id, coords in located if other_id != pharmacy_id),
                MAX_NEARBY_PHARMACIES,
            )
            nearby = tuple(other_id for other_id, _ in closest)
        if not nearby:
            siblings = [pharmacy_map[i] for i in city_pharmacies.get(pharmacy.city_id, ()) if i != pharmacy_id]
            siblings.sort(key=lambda p: (-p.product_count, p.slug))
            nearby = tuple(p.id for p in siblings[:MAX_NEARBY_PHARMACIES])
        pharmacy_map[pharmacy_id] = replace(pharmacy, nearby_pharmacy_ids=nearby)
