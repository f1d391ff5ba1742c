"""Shared sample catalog for the pSEO engine tests.

Three cities (Berlin passes the density gate, Hamburg and Potsdam do
not), four pharmacies, two brands, two categories, four strains, two
terpenes and five products. All back-references are declared on both
sides, so the built graph has a clean integrity report.
"""

from datetime import date

import pytest

from pseo_engine.core.models import (
    Address, Brand, Category, City, Contact, DeliveryInfo, DeliveryMethod,
    Effect, Flavor, GeneticType, Genetics, Offer, OfferStatus, Pharmacy,
    PricePoint, Product, ProductForm, Range, Strain, Terpene,
)
from pseo_engine.graph import build_entity_graph


RELAXED = Effect('relaxed', 'Entspannt', 'physical', 'strong')
HAPPY = Effect('happy', 'Glücklich', 'mental')
DRY_MOUTH = Effect('dry_mouth', 'Trockener Mund', 'physical', 'mild', is_positive=False)


def create_cities():
    return [
        City('c-berlin', 'berlin', 'Berlin', 'Berlin', pharmacy_ids=('ph-1', 'ph-2', 'ph-3'),
             population=3645000, latitude=52.5200, longitude=13.4050),
        City('c-hamburg', 'hamburg', 'Hamburg', 'Hamburg', pharmacy_ids=('ph-4',),
             population=1841000, latitude=53.5511, longitude=9.9937),
        City('c-potsdam', 'potsdam', 'Potsdam', 'Brandenburg',
             population=183000, latitude=52.3906, longitude=13.0645),
    ]


def create_pharmacies():
    return [
        Pharmacy(
            'ph-1', 'gruenhorn-apotheke', 'Grünhorn Apotheke', 'c-berlin',
            Address('Friedrichstraße 10', '10117', 'Berlin', 'Berlin', latitude=52.5200, longitude=13.4050),
            contact=Contact(phone='+49 30 123456', email='info@gruenhorn.de'),
            delivery_info=DeliveryInfo(methods=(DeliveryMethod.STANDARD, DeliveryMethod.PICKUP)),
            offer_ids=('o-1',),
            services=('Beratung',),
            opening_hours={'mo': '09:00-18:00', 'sa': '10:00-14:00', 'su': 'geschlossen'},
            rating=4.6,
            review_count=120,
        ),
        Pharmacy(
            'ph-2', 'alexander-apotheke', 'Alexander Apotheke', 'c-berlin',
            Address('Alexanderplatz 1', '10178', 'Berlin', 'Berlin', latitude=52.5219, longitude=13.4132),
            offer_ids=('o-2',),
        ),
        Pharmacy(
            'ph-3', 'spree-apotheke', 'Spree Apotheke', 'c-berlin',
            Address('Spreeweg 5', '10557', 'Berlin', 'Berlin', latitude=52.5100, longitude=13.3900),
            offer_ids=('o-3',),
        ),
        Pharmacy(
            'ph-4', 'hafen-apotheke', 'Hafen Apotheke', 'c-hamburg',
            Address('Hafenstraße 2', '20359', 'Hamburg', 'Hamburg', latitude=53.5460, longitude=9.9660),
            offer_ids=('o-4', 'o-5'),
        ),
    ]


def create_brands():
    return [
        Brand('b-aurora', 'aurora', 'Aurora', country='Kanada', product_ids=('p-1', 'p-2', 'p-3')),
        Brand('b-tilray', 'tilray', 'Tilray', country='Portugal', product_ids=('p-4', 'p-5')),
    ]


def create_categories():
    return [
        Category('cat-flowers', 'flowers', 'Flowers', 'Blüten', included_forms=(ProductForm.FLOWER,),
                 product_ids=('p-1', 'p-2', 'p-4', 'p-5'), curated_facets=('thc-20-25',)),
        Category('cat-extracts', 'extracts', 'Extracts', 'Extrakte',
                 included_forms=(ProductForm.EXTRACT, ProductForm.OIL), product_ids=('p-3',)),
    ]


def create_terpenes():
    return [
        Terpene('t-myrcene', 'myrcene', 'Myrcene', 'Myrcen', aroma='erdig', effects=(RELAXED,),
                strain_ids=('s-og', 's-bd', 's-gsc')),
        Terpene('t-limonene', 'limonene', 'Limonene', 'Limonen', aroma='zitrusartig', effects=(HAPPY,),
                strain_ids=('s-og', 's-gsc')),
    ]


def create_strains():
    return [
        Strain(
            's-og', 'og-kush', 'OG Kush', synonyms=('OGK',),
            thc_range=Range(18, 24), cbd_range=Range(0, 1),
            genetics=Genetics(GeneticType.HYBRID, breeder='Imperial Genetics'),
            child_strain_ids=('s-gsc',),
            terpene_ids=('t-myrcene', 't-limonene'),
            effects=(RELAXED, HAPPY, DRY_MOUTH),
            flavors=(Flavor('pine', 'Kiefer'),),
            product_ids=('p-1', 'p-4'),
            description='Klassische Hybrid-Sorte aus Kalifornien.',
        ),
        Strain(
            's-bd', 'blue-dream', 'Blue Dream',
            thc_range=Range(17, 24),
            genetics=Genetics(GeneticType.SATIVA),
            terpene_ids=('t-myrcene',),
            effects=(HAPPY,),
            product_ids=('p-2',),
        ),
        Strain(
            's-gsc', 'girl-scout-cookies', 'Girl Scout Cookies',
            thc_range=Range(19, 25),
            genetics=Genetics(GeneticType.HYBRID),
            parent_strain_ids=('s-og',),
            terpene_ids=('t-myrcene', 't-limonene'),
            effects=(RELAXED, HAPPY),
        ),
        Strain('s-thin', 'mystery', 'Mystery'),
    ]


def create_products():
    history = tuple(PricePoint(date(2026, 3, day), 1250 + day) for day in (1, 2, 3, 4))
    return [
        Product(
            'p-1', 'aurora-og-kush', 'Aurora OG Kush', 'b-aurora', ProductForm.FLOWER, 'cat-flowers',
            strain_id='s-og', thc_percent=22.0, cbd_percent=1.0, pzn='12345678', package_size_grams=10.0,
            offers=(
                Offer('o-1', 'p-1', 'ph-1', 900, OfferStatus.IN_STOCK),
                Offer('o-2', 'p-1', 'ph-2', 1200, OfferStatus.LOW_STOCK),
            ),
        ),
        Product(
            'p-2', 'aurora-blue-dream', 'Aurora Blue Dream', 'b-aurora', ProductForm.FLOWER, 'cat-flowers',
            strain_id='s-bd', thc_percent=21.0,
            offers=(Offer('o-3', 'p-2', 'ph-3', 1000),),
        ),
        Product(
            'p-3', 'aurora-extrakt', 'Aurora Vollspektrum Extrakt', 'b-aurora', ProductForm.EXTRACT, 'cat-extracts',
            thc_percent=25.0,
        ),
        Product(
            'p-4', 'tilray-og-kush', 'Tilray OG Kush', 'b-tilray', ProductForm.FLOWER, 'cat-flowers',
            strain_id='s-og', thc_percent=23.0,
            offers=(Offer('o-4', 'p-4', 'ph-4', 1100),),
        ),
        Product(
            'p-5', 'tilray-sativa', 'Tilray Sativa 20', 'b-tilray', ProductForm.FLOWER, 'cat-flowers',
            thc_percent=20.0,
            offers=(Offer('o-5', 'p-5', 'ph-4', 1300, OfferStatus.OUT_OF_STOCK, is_active=False,
                          price_history=history),),
        ),
    ]


def create_catalog():
    return {
        'strains': create_strains(),
        'products': create_products(),
        'pharmacies': create_pharmacies(),
        'cities': create_cities(),
        'brands': create_brands(),
        'terpenes': create_terpenes(),
        'categories': create_categories(),
    }


@pytest.fixture
def catalog():
    return create_catalog()


@pytest.fixture
def graph(catalog):
    return build_entity_graph(**catalog)
