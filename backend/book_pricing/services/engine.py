import logging
from dataclasses import dataclass
from typing import Optional

from book_pricing.services.alerts import AlertClient
from book_pricing.services.cache import TTLCache
from book_pricing.services.constraints import ConstraintResolver
from book_pricing.services.matrix_store import MatrixStore
from book_pricing.services.parameters import SettingsParameterProvider
from book_pricing.services.pricing import PriceCalculator
from book_pricing.services.storage import SettingsStore
from book_pricing.services.validation import QuantityValidator

logger = logging.getLogger(__name__)


@dataclass
class PricingServices:
    store: object
    parameters: object
    matrices: MatrixStore
    resolver: ConstraintResolver
    calculator: PriceCalculator
    alerts: AlertClient


def build_services(
    store=None,
    parameters=None,
    alerts: Optional[AlertClient] = None,
    cache: Optional[TTLCache] = None,
) -> PricingServices:
    """Wire the pricing components around one settings store.

    Without arguments this uses the database-backed store and reads the
    configured parameters from it.
    """
    store = store if store is not None else SettingsStore()
    parameters = parameters if parameters is not None else SettingsParameterProvider(store)
    alerts = alerts or AlertClient()
    matrices = MatrixStore(store, parameters, cache=cache, alerts=alerts)
    resolver = ConstraintResolver(matrices, parameters)
    calculator = PriceCalculator(resolver, QuantityValidator())
    logger.debug("Built pricing services with store=%s", type(store).__name__)
    return PricingServices(
        store=store,
        parameters=parameters,
        matrices=matrices,
        resolver=resolver,
        calculator=calculator,
        alerts=alerts,
    )
