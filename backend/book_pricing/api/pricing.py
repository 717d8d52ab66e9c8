import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from book_pricing.api.deps import get_services
from book_pricing.models.selection import (
    BookSizeStatus,
    FullSelection,
    PartialSelection,
    ValidationResult,
)
from book_pricing.services.engine import PricingServices

logger = logging.getLogger(__name__)
router = APIRouter()


class PriceRequest(BaseModel):
    selection: FullSelection
    quantity: int


class OptionsRequest(BaseModel):
    book_size: str
    current_selection: Optional[PartialSelection] = None


class CombinationRequest(BaseModel):
    selection: FullSelection


def _rejected(result: ValidationResult) -> JSONResponse:
    return JSONResponse(status_code=422, content=result.model_dump(mode="json"))


@router.post("/calculate-price")
def calculate_price(req: PriceRequest, services: PricingServices = Depends(get_services)):
    logger.info("Price requested book_size=%s quantity=%s", req.selection.book_size, req.quantity)
    result = services.calculator.calculate(req.selection, req.quantity)
    if isinstance(result, ValidationResult):
        logger.info("Price request rejected reason=%s: %s", result.reason, result.message)
        return _rejected(result)
    return result


@router.post("/allowed-options")
def allowed_options(req: OptionsRequest, services: PricingServices = Depends(get_services)):
    result = services.resolver.allowed_options(req.book_size, req.current_selection)
    if isinstance(result, ValidationResult):
        return _rejected(result)
    return result


@router.post("/validate-combination", response_model=ValidationResult)
def validate_combination(req: CombinationRequest, services: PricingServices = Depends(get_services)):
    return services.resolver.validate_combination(req.selection)


@router.get("/available-book-sizes", response_model=List[BookSizeStatus])
def available_book_sizes(services: PricingServices = Depends(get_services)):
    return services.resolver.available_book_sizes()
