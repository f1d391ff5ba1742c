from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar, Dict, Optional, Tuple, Union
from enum import Enum


class EntityType(Enum):
    STRAIN = "strain"
    PRODUCT = "product"
    PHARMACY = "pharmacy"
    CITY = "city"
    BRAND = "brand"
    TERPENE = "terpene"
    CATEGORY = "category"


class PageType(Enum):
    """Every page shape the resolvers can produce"""
    HOME = "home"
    STRAIN = "strain"
    PRODUCT = "product"
    PHARMACY = "pharmacy"
    CITY = "city"
    BRAND = "brand"
    TERPENE = "terpene"
    CATEGORY = "category"
    CATEGORY_FACET = "category_facet"
    STRAINS_HUB = "strains_hub"
    APOTHEKE_HUB = "apotheke_hub"
    TERPENES_HUB = "terpenes_hub"
    PRODUCTS_HUB = "products_hub"
    BRANDS_HUB = "brands_hub"

    @property
    def is_hub(self) -> bool:
        return self in HUB_PAGE_TYPES


HUB_PAGE_TYPES = frozenset({
    PageType.HOME,
    PageType.STRAINS_HUB,
    PageType.APOTHEKE_HUB,
    PageType.TERPENES_HUB,
    PageType.PRODUCTS_HUB,
    PageType.BRANDS_HUB,
})


class GeneticType(Enum):
    INDICA = "indica"
    SATIVA = "sativa"
    HYBRID = "hybrid"


class HybridDominance(Enum):
    INDICA_DOMINANT = "indica-dominant"
    SATIVA_DOMINANT = "sativa-dominant"
    BALANCED = "balanced"


class ProductForm(Enum):
    FLOWER = "flower"
    EXTRACT = "extract"
    VAPE = "vape"
    ROSIN = "rosin"
    OIL = "oil"
    CAPSULE = "capsule"


class OfferStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    PRE_ORDER = "pre_order"

    @property
    def is_available(self) -> bool:
        return self in (OfferStatus.IN_STOCK, OfferStatus.LOW_STOCK)


class DeliveryMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    PICKUP = "pickup"
    SAME_DAY = "same_day"


class SimilarityReasonType(Enum):
    SHARED_TERPENE = "shared_terpene"
    SHARED_PARENT = "shared_parent"
    SAME_BREEDER = "same_breeder"
    SIMILAR_EFFECTS = "similar_effects"
    SIMILAR_THC = "similar_thc"
    SAME_GENETIC_TYPE = "same_genetic_type"


class AlternativeReason(Enum):
    SAME_STRAIN = "same_strain"
    SIMILAR_THC_CBD = "similar_thc_cbd"
    SAME_BRAND = "same_brand"
    SAME_FORM = "same_form"
    PRICE_COMPARABLE = "price_comparable"


# Value objects

@dataclass(frozen=True)
class Range:
    """Closed percentage range, e.g. THC 18-22%"""
    min: float
    max: float

    @property
    def is_valid(self) -> bool:
        return 0 <= self.min <= self.max <= 100


@dataclass(frozen=True)
class PriceRange:
    min_cents: int
    max_cents: int


@dataclass(frozen=True)
class Genetics:
    type: GeneticType
    ratio: Optional[str] = None
    dominance: Optional[HybridDominance] = None
    breeder: Optional[str] = None
    year_bred: Optional[int] = None
    lineage: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Effect:
    name: str
    name_de: str
    category: str = "mental"  # mental | physical | medical
    intensity: str = "moderate"  # mild | moderate | strong
    is_positive: bool = True
    prevalence: float = 0.0


@dataclass(frozen=True)
class Flavor:
    name: str
    name_de: str
    category: str = "earthy"
    intensity: int = 3


@dataclass(frozen=True)
class PricePoint:
    date: date
    price_cents: int


@dataclass(frozen=True)
class PriceStats:
    """Derived price aggregate, never authoritative"""
    min_cents: int
    max_cents: int
    median_cents: int
    avg_cents: int
    sample_size: int


@dataclass(frozen=True)
class StockVolatility:
    available_today: int
    avg_30_day: float


@dataclass(frozen=True)
class Offer:
    """A product offered by one pharmacy"""
    id: str
    product_id: str
    pharmacy_id: str
    price_cents: int
    status: OfferStatus = OfferStatus.IN_STOCK
    is_active: bool = True
    price_per_gram_cents: Optional[int] = None
    quantity_available: Optional[int] = None
    delivery_days: Optional[int] = None
    first_seen_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    price_history: Tuple[PricePoint, ...] = ()


@dataclass(frozen=True)
class Address:
    street: str
    postal_code: str
    city: str
    state: str = ""
    country: str = "DE"
    street_line2: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Contact:
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


@dataclass(frozen=True)
class DeliveryInfo:
    methods: Tuple[DeliveryMethod, ...] = ()
    standard_delivery_days: int = 2
    express_delivery_days: Optional[int] = None
    free_delivery_threshold_cents: Optional[int] = None
    delivery_cost_cents: Optional[int] = None
    delivery_areas: Tuple[str, ...] = ()
    is_nationwide: bool = False


@dataclass(frozen=True)
class SimilarityReason:
    type: SimilarityReasonType
    detail: str = ""


@dataclass(frozen=True)
class StrainSimilarity:
    """Weighted strain-to-strain edge"""
    strain_id: str
    weight: float
    reasons: Tuple[SimilarityReason, ...] = ()


@dataclass(frozen=True)
class ProductAlternative:
    product_id: str
    reason: AlternativeReason
    weight: float


@dataclass(frozen=True)
class Breadcrumb:
    """One step of a breadcrumb path; an empty slug means the site root"""
    name: str
    slug: str = ""


# Entities
#
# Fields marked "computed" are recomputed by build_entity_graph from the
# reference lists; any value supplied by the source is discarded.

@dataclass(frozen=True)
class Strain:
    entity_type: ClassVar[EntityType] = EntityType.STRAIN

    id: str
    slug: str
    name: str
    synonyms: Tuple[str, ...] = ()
    thc_range: Optional[Range] = None
    cbd_range: Optional[Range] = None
    genetics: Optional[Genetics] = None
    parent_strain_ids: Tuple[str, ...] = ()
    child_strain_ids: Tuple[str, ...] = ()
    terpene_ids: Tuple[str, ...] = ()  # ordered by prevalence
    effects: Tuple[Effect, ...] = ()
    flavors: Tuple[Flavor, ...] = ()
    product_ids: Tuple[str, ...] = ()
    description: Optional[str] = None
    updated_at: Optional[datetime] = None
    # computed
    pharmacy_count: int = 0
    price_stats: Optional[PriceStats] = None
    similar_strains: Tuple[StrainSimilarity, ...] = ()

    @property
    def genetic_type(self) -> Optional[GeneticType]:
        return self.genetics.type if self.genetics else None

    @property
    def product_count(self) -> int:
        return len(self.product_ids)


@dataclass(frozen=True)
class Product:
    entity_type: ClassVar[EntityType] = EntityType.PRODUCT

    id: str
    slug: str
    name: str
    brand_id: str
    form: ProductForm
    category_id: str
    strain_id: Optional[str] = None
    thc_percent: Optional[float] = None
    cbd_percent: Optional[float] = None
    pzn: Optional[str] = None
    product_code: Optional[str] = None
    package_size_grams: Optional[float] = None
    offers: Tuple[Offer, ...] = ()
    alternative_product_ids: Tuple[str, ...] = ()
    updated_at: Optional[datetime] = None
    # computed
    price_stats: Optional[PriceStats] = None
    stock_volatility: Optional[StockVolatility] = None
    alternatives: Tuple[ProductAlternative, ...] = ()

    @property
    def active_offers(self) -> Tuple[Offer, ...]:
        return tuple(o for o in self.offers if o.is_active)

    @property
    def in_stock(self) -> bool:
        return any(o.status.is_available for o in self.active_offers)

    @property
    def lowest_price_cents(self) -> Optional[int]:
        prices = [o.price_cents for o in self.active_offers]
        return min(prices) if prices else None


@dataclass(frozen=True)
class Pharmacy:
    entity_type: ClassVar[EntityType] = EntityType.PHARMACY

    id: str
    slug: str
    name: str
    city_id: str
    address: Address
    contact: Contact = field(default_factory=Contact)
    delivery_info: Optional[DeliveryInfo] = None
    offer_ids: Tuple[str, ...] = ()
    services: Tuple[str, ...] = ()
    opening_hours: Optional[Dict[str, str]] = None  # "mo" -> "09:00-18:00"
    rating: Optional[float] = None
    review_count: int = 0
    updated_at: Optional[datetime] = None
    # computed
    product_count: int = 0
    price_score: Optional[int] = None
    nearby_pharmacy_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class City:
    entity_type: ClassVar[EntityType] = EntityType.CITY

    id: str
    slug: str
    name: str
    state: str
    pharmacy_ids: Tuple[str, ...] = ()
    nearby_city_ids: Tuple[str, ...] = ()
    population: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    updated_at: Optional[datetime] = None
    # computed
    pharmacy_count: int = 0
    offer_count: int = 0
    avg_delivery_days: Optional[float] = None
    price_range: Optional[PriceRange] = None

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Brand:
    entity_type: ClassVar[EntityType] = EntityType.BRAND

    id: str
    slug: str
    name: str
    country: Optional[str] = None
    product_ids: Tuple[str, ...] = ()
    website: Optional[str] = None
    description: Optional[str] = None
    updated_at: Optional[datetime] = None
    # computed
    product_count: int = 0


@dataclass(frozen=True)
class Terpene:
    entity_type: ClassVar[EntityType] = EntityType.TERPENE

    id: str
    slug: str
    name: str
    name_de: str
    aroma: str = ""
    effects: Tuple[Effect, ...] = ()
    strain_ids: Tuple[str, ...] = ()
    also_found_in: Tuple[str, ...] = ()
    boiling_point_celsius: Optional[float] = None
    updated_at: Optional[datetime] = None
    # computed
    strain_count: int = 0


@dataclass(frozen=True)
class Category:
    entity_type: ClassVar[EntityType] = EntityType.CATEGORY

    id: str
    slug: str
    name: str
    name_de: str
    description: str = ""
    included_forms: Tuple[ProductForm, ...] = ()
    product_ids: Tuple[str, ...] = ()
    curated_facets: Tuple[str, ...] = ()
    parent_category_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    # computed
    product_count: int = 0
    brand_count: int = 0
    price_range: Optional[PriceRange] = None


Entity = Union[Strain, Product, Pharmacy, City, Brand, Terpene, Category]

ENTITY_CLASSES = {
    EntityType.STRAIN: Strain,
    EntityType.PRODUCT: Product,
    EntityType.PHARMACY: Pharmacy,
    EntityType.CITY: City,
    EntityType.BRAND: Brand,
    EntityType.TERPENE: Terpene,
    EntityType.CATEGORY: Category,
}
