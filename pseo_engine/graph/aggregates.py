"""Computed aggregates for the entity graph

Every function here is a pure function of its inputs: counts, price
statistics, strain similarity edges, product alternatives and geographic
proximity are derived from reference lists at graph construction and
never read back from the source records.
"""

from collections import Counter
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
from geopy.distance import geodesic

from .. import ALTERNATIVE_SETTINGS, SIMILARITY_SETTINGS
from ..core.models import (
    AlternativeReason, Offer, PriceRange, PriceStats, Product,
    ProductAlternative, SimilarityReason, SimilarityReasonType, StockVolatility,
    Strain, StrainSimilarity,
)


logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0
# Candidates kept per requested neighbour before exact geodesic distances
SHORTLIST_FACTOR = 4


def round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


# Prices

def product_price_samples(product: Product) -> List[int]:
    """Prices a product's statistics are computed from.

    Current prices of active offers when there are any; otherwise every
    recorded price-history point plus the last known price of inactive
    offers, so a product that is sold out everywhere keeps a price signal.
    """
    active = [o.price_cents for o in product.offers if o.is_active]
    if active:
        return active

    samples = []
    for offer in product.offers:
        samples.extend(point.price_cents for point in offer.price_history)
        samples.append(offer.price_cents)
    return samples


def compute_price_stats(samples: Sequence[int]) -> Optional[PriceStats]:
    if not samples:
        return None

    prices = np.array(samples, dtype=float)
    return PriceStats(
        min_cents=int(prices.min()),
        max_cents=int(prices.max()),
        median_cents=round_half_up(np.median(prices)),
        avg_cents=round_half_up(prices.mean()),
        sample_size=len(samples),
    )


def compute_price_range(prices: Iterable[int]) -> Optional[PriceRange]:
    prices = list(prices)
    if not prices:
        return None
    return PriceRange(min_cents=min(prices), max_cents=max(prices))


def compute_stock_volatility(product: Product, window_days: int = 30) -> Optional[StockVolatility]:
    """Offers available now versus the daily average of observed offers.

    The window ends at the latest recorded price point, not at the wall
    clock, so the result only depends on the data.
    """
    if not product.offers:
        return None

    available_today = sum(1 for o in product.offers if o.is_active and o.status.is_available)
    observed = [point.date for o in product.offers for point in o.price_history]
    if not observed:
        return StockVolatility(available_today=available_today, avg_30_day=float(available_today))

    window_end = max(observed)
    window_start = window_end - timedelta(days=window_days - 1)
    per_day = Counter(d for d in observed if window_start <= d <= window_end)
    avg = float(np.mean(list(per_day.values())))
    return StockVolatility(available_today=available_today, avg_30_day=round(avg, 1))


def compute_pharmacy_price_score(offers: Sequence[Offer], median_by_product: Mapping[str, Optional[int]]) -> Optional[int]:
    """0-100 price competitiveness; 50 means priced at the market median"""
    deltas = []
    for offer in offers:
        if not offer.is_active:
            continue
        median = median_by_product.get(offer.product_id)
        if not median:
            continue
        deltas.append((median - offer.price_cents) / median)

    if not deltas:
        return None
    score = 50 + 100 * float(np.mean(deltas))
    return int(np.clip(round_half_up(score), 0, 100))


# Strain similarity

def _thc_max(strain: Strain) -> Optional[float]:
    return strain.thc_range.max if strain.thc_range else None


def score_strain_pair(a: Strain, b: Strain, settings: Optional[Dict] = None) -> Tuple[float, Tuple[SimilarityReason, ...]]:
    settings = settings or SIMILARITY_SETTINGS
    score = 0.0
    reasons = []

    if a.genetic_type is not None and a.genetic_type == b.genetic_type:
        score += settings['same_genetic_type']
        reasons.append(SimilarityReason(SimilarityReasonType.SAME_GENETIC_TYPE, a.genetic_type.value))

    for parent_id in sorted(set(a.parent_strain_ids) & set(b.parent_strain_ids)):
        score += settings['shared_parent']
        reasons.append(SimilarityReason(SimilarityReasonType.SHARED_PARENT, parent_id))

    breeder_a = a.genetics.breeder if a.genetics else None
    breeder_b = b.genetics.breeder if b.genetics else None
    if breeder_a and breeder_b and breeder_a.strip().lower() == breeder_b.strip().lower():
        score += settings['same_breeder']
        reasons.append(SimilarityReason(SimilarityReasonType.SAME_BREEDER, breeder_a))

    # keep terpene order of the first strain
    shared_terpenes = [t for t in a.terpene_ids if t in set(b.terpene_ids)]
    for terpene_id in shared_terpenes:
        score += settings['shared_terpene']
        reasons.append(SimilarityReason(SimilarityReasonType.SHARED_TERPENE, terpene_id))

    shared_effects = sorted({e.name for e in a.effects} & {e.name for e in b.effects})
    if shared_effects:
        score += settings['shared_effect'] * len(shared_effects)
        reasons.append(SimilarityReason(SimilarityReasonType.SIMILAR_EFFECTS, ', '.join(shared_effects)))

    thc_a, thc_b = _thc_max(a), _thc_max(b)
    if thc_a is not None and thc_b is not None and abs(thc_a - thc_b) <= settings['thc_tolerance']:
        score += settings['similar_thc']
        reasons.append(SimilarityReason(SimilarityReasonType.SIMILAR_THC, f"{thc_a:g}/{thc_b:g}"))

    return score, tuple(reasons)


def compute_similar_strains(strains: Sequence[Strain], settings: Optional[Dict] = None) -> Dict[str, Tuple[StrainSimilarity, ...]]:
    """Top similar strains per strain, highest score first, ties by id"""
    settings = settings or SIMILARITY_SETTINGS
    candidates: Dict[str, List[Tuple[float, str, Tuple[SimilarityReason, ...]]]] = {s.id: [] for s in strains}

    for i, a in enumerate(strains):
        for b in strains[i + 1:]:
            score, reasons = score_strain_pair(a, b, settings)
            if score < settings['min_score']:
                continue
            candidates[a.id].append((score, b.id, reasons))
            _, reverse_reasons = score_strain_pair(b, a, settings)
            candidates[b.id].append((score, a.id, reverse_reasons))

    result = {}
    for strain_id, scored in candidates.items():
        scored.sort(key=lambda item: (-item[0], item[1]))
        result[strain_id] = tuple(
            StrainSimilarity(strain_id=other_id, weight=min(score / 10, 1.0), reasons=reasons)
            for score, other_id, reasons in scored[:settings['max_similar']]
        )
    return result


# Product alternatives

def classify_alternative(product: Product, candidate: Product, settings: Optional[Dict] = None) -> Optional[AlternativeReason]:
    """Strongest reason the candidate can replace the product, if any"""
    settings = settings or ALTERNATIVE_SETTINGS

    if product.strain_id and product.strain_id == candidate.strain_id:
        return AlternativeReason.SAME_STRAIN

    if (product.form == candidate.form
            and product.thc_percent is not None and candidate.thc_percent is not None
            and abs(product.thc_percent - candidate.thc_percent) <= settings['thc_tolerance']
            and abs((product.cbd_percent or 0) - (candidate.cbd_percent or 0)) <= settings['cbd_tolerance']):
        return AlternativeReason.SIMILAR_THC_CBD

    if product.brand_id == candidate.brand_id:
        return AlternativeReason.SAME_BRAND

    if product.form == candidate.form:
        own, other = product.price_stats, candidate.price_stats
        if own and other and own.median_cents > 0:
            if abs(other.median_cents - own.median_cents) / own.median_cents <= settings['price_tolerance']:
                return AlternativeReason.PRICE_COMPARABLE
        return AlternativeReason.SAME_FORM

    return None


def compute_product_alternatives(products: Sequence[Product],
                                 is_listable: Callable[[Product], bool],
                                 settings: Optional[Dict] = None) -> Dict[str, Tuple[ProductAlternative, ...]]:
    """Ranked alternatives per product.

    Candidates must pass is_listable (the product indexability rule).
    Ranking is weight desc, then declared alternatives first, then
    in-stock first, then lowest price, then id.
    """
    settings = settings or ALTERNATIVE_SETTINGS
    listable = [p for p in products if is_listable(p)]
    by_strain: Dict[str, List[Product]] = {}
    by_brand: Dict[str, List[Product]] = {}
    by_form: Dict[object, List[Product]] = {}
    for p in listable:
        if p.strain_id:
            by_strain.setdefault(p.strain_id, []).append(p)
        by_brand.setdefault(p.brand_id, []).append(p)
        by_form.setdefault(p.form, []).append(p)

    result = {}
    for product in products:
        pool = {}
        for group in (by_strain.get(product.strain_id, []) if product.strain_id else [],
                      by_brand.get(product.brand_id, []),
                      by_form.get(product.form, [])):
            for candidate in group:
                if candidate.id != product.id:
                    pool[candidate.id] = candidate

        declared = set(product.alternative_product_ids)
        ranked = []
        for candidate in pool.values():
            reason = classify_alternative(product, candidate, settings)
            if reason is None:
                continue
            price = candidate.lowest_price_cents
            ranked.append((
                -settings[reason.value],
                candidate.id not in declared,
                not candidate.in_stock,
                price if price is not None else float('inf'),
                candidate.id,
                reason,
            ))
        ranked.sort(key=lambda item: item[:5])
        result[product.id] = tuple(
            ProductAlternative(product_id=item[4], reason=item[5], weight=-item[0])
            for item in ranked[:settings['max_alternatives']]
        )
    return result


def sort_products(products: Iterable[Product]) -> List[Product]:
    """In stock first, then cheapest, then slug"""
    def key(product: Product):
        price = product.lowest_price_cents
        return (not product.in_stock, price if price is not None else float('inf'), product.slug)
    return sorted(products, key=key)


# Proximity

def distance_km(a: Coordinates, b: Coordinates) -> float:
    return geodesic(a, b).kilometers


def centroid(points: Iterable[Coordinates]) -> Optional[Coordinates]:
    points = list(points)
    if not points:
        return None
    arr = np.array(points, dtype=float)
    return (float(arr[:, 0].mean()), float(arr[:, 1].mean()))


def _approx_km(origin: Coordinates, points: np.ndarray) -> np.ndarray:
    """Equirectangular distance estimate, vectorized over an (n, 2) array"""
    lat0 = np.radians(origin[0])
    lat = np.radians(points[:, 0])
    dlon = np.radians(points[:, 1] - origin[1]) * np.cos((lat + lat0) / 2)
    return EARTH_RADIUS_KM * np.hypot(lat - lat0, dlon)


def nearest(origin: Coordinates, candidates: Iterable[Tuple[str, Optional[Coordinates]]], limit: int) -> List[Tuple[str, float]]:
    """(id, km) of the closest candidates with coordinates, ties by id.

    Large candidate sets are shortlisted with a numpy estimate first, so the
    exact geodesic distance is only computed for a few times `limit` points.
    """
    located = [(candidate_id, coords) for candidate_id, coords in candidates if coords is not None]
    if limit < 1 or not located:
        return []

    shortlist_size = limit * SHORTLIST_FACTOR
    if len(located) > shortlist_size:
        approx = _approx_km(origin, np.array([coords for _, coords in located], dtype=float))
        cutoff = np.partition(approx, shortlist_size - 1)[shortlist_size - 1]
        located = [item for item, km in zip(located, approx) if km <= cutoff]

    distances = [(candidate_id, distance_km(origin, coords)) for candidate_id, coords in located]
    distances.sort(key=lambda item: (item[1], item[0]))
    return distances[:limit]
