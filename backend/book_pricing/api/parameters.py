from fastapi import APIRouter, Depends

from book_pricing.api.deps import get_services
from book_pricing.services.engine import PricingServices
from book_pricing.utils.names import normalize, slugify

router = APIRouter()


@router.get("/")
def get_parameters(services: PricingServices = Depends(get_services)):
    params = services.resolver.configured_parameters()
    result = params.model_dump()
    result["book_size_keys"] = {name: normalize(name) for name in params.book_sizes}
    result["slugs"] = {p: slugify(p) for p in list(params.paper_types) + params.binding_types}
    return result
