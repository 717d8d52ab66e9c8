import copy

import pytest

from book_pricing.models.matrix import PricingMatrix
from book_pricing.services.alerts import AlertClient
from book_pricing.services.cache import TTLCache
from book_pricing.services.engine import build_services
from book_pricing.services.parameters import ConfiguredParameters, StaticParameterProvider
from book_pricing.services.storage import InMemoryStore

SIZE = "رقعی (14×20)"
SIZE_KEY = "رقعی"
OTHER_SIZE = "وزیری"
PAPER = "تحریر"
BINDING = "شومیز"
WIRE = "سیمی"

FIXED_EXTRA = "لب گرد"
PER_UNIT_EXTRA = "شیرینک"
PAGE_BASED_EXTRA = "سلفون براق"

MATRIX_DATA = {
    "page_costs": {
        PAPER: {
            "70": {"bw": 150, "color": 600},
            "80": {"bw": 170, "color": 650},
            "100": {"bw": 200, "color": 800},
        },
    },
    "binding_costs": {
        BINDING: {"250": 30000, "300": 35000},
        WIRE: {"250": 40000},
    },
    "extras_costs": {
        FIXED_EXTRA: {"price": 50000, "type": "fixed"},
        PER_UNIT_EXTRA: {"price": 2000, "type": "per_unit"},
        PAGE_BASED_EXTRA: {"price": 100000, "type": "page_based", "step": 4000},
    },
    "restrictions": {
        "forbidden_print_types": {PAPER: {"70": ["color"], "80": ["bw", "color"]}},
        "forbidden_cover_weights": {WIRE: []},
        "forbidden_extras": {WIRE: [PAGE_BASED_EXTRA]},
    },
    "profit_margin": 0,
}


@pytest.fixture
def matrix_data():
    return copy.deepcopy(MATRIX_DATA)


@pytest.fixture
def matrix(matrix_data):
    return PricingMatrix.model_validate(matrix_data)


@pytest.fixture
def params():
    return ConfiguredParameters(
        book_sizes=[SIZE, OTHER_SIZE, "A5 (148×210)"],
        paper_types={PAPER: ["70", "80", "100"]},
        binding_types=[BINDING, WIRE],
        cover_weights=["250", "300"],
        extras=[FIXED_EXTRA, PER_UNIT_EXTRA, PAGE_BASED_EXTRA],
    )


@pytest.fixture
def provider(params):
    return StaticParameterProvider(params)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def services(store, provider):
    return build_services(
        store=store,
        parameters=provider,
        alerts=AlertClient(webhook_url=""),
        cache=TTLCache(ttl_seconds=0),
    )


@pytest.fixture
def priced(services, matrix):
    services.matrices.save(SIZE, matrix)
    return services


def selection(**overrides):
    data = {
        "book_size": SIZE,
        "paper_type": PAPER,
        "paper_weight": "100",
        "print_type": "bw",
        "page_count_bw": 200,
        "binding_type": BINDING,
        "cover_weight": "250",
        "extras": [],
    }
    data.update(overrides)
    return data
