from functools import lru_cache

from book_pricing.services.engine import PricingServices, build_services


@lru_cache(maxsize=1)
def get_services() -> PricingServices:
    return build_services()
