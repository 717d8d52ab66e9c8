import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from book_pricing.models.matrix import ExtraKind, ExtraServiceConfig, PricingMatrix
from book_pricing.models.selection import ExtraCharge, FullSelection, PriceBreakdown, ValidationResult
from book_pricing.services.constraints import ConstraintResolver
from book_pricing.services.validation import QuantityValidator
from book_pricing.utils.names import normalize

logger = logging.getLogger(__name__)


def apply_fraction(amount: int, fraction: float) -> int:
    """`amount * fraction` rounded half-up to a whole currency unit."""
    return int((Decimal(amount) * Decimal(str(fraction))).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def extra_charge(name: str, config: ExtraServiceConfig, quantity: int, pages_per_copy: int) -> ExtraCharge:
    if config.kind == ExtraKind.FIXED:
        # invoice-level, charged once per order
        units = 1
    elif config.kind == ExtraKind.PER_UNIT:
        units = quantity
    else:
        total_pages = pages_per_copy * quantity
        # at least one billable block even below one step
        units = max(1, -(-total_pages // config.step))
    return ExtraCharge(name=name, kind=config.kind, units=units, amount=config.price * units)


class PriceCalculator:
    """Matrix-based book pricing.

    grand_total = (per_copy * quantity - discount + extras) * (1 + profit_margin)
    where per_copy = page costs + binding/cover cost. The quantity discount
    applies to the per-copy part only, never to extras.
    """

    def __init__(self, resolver: ConstraintResolver, quantities: Optional[QuantityValidator] = None):
        self.resolver = resolver
        self.quantities = quantities or QuantityValidator()

    def _extras(self, matrix: PricingMatrix, selection: FullSelection, quantity: int) -> List[ExtraCharge]:
        return [
            extra_charge(name, matrix.extras_costs[name], quantity, selection.pages_per_copy)
            for name in selection.extras
        ]

    def calculate(self, selection: FullSelection, quantity: int) -> Union[PriceBreakdown, ValidationResult]:
        logger.debug("calculate called with selection=%s quantity=%s", selection.model_dump(), quantity)
        result, matrix = self.resolver.check_selection(selection)
        if not result.allowed:
            return result

        book_size = normalize(selection.book_size)
        out_of_range = self.quantities.validate(quantity, matrix.quantity_constraints, book_size)
        if out_of_range is not None:
            return out_of_range

        cost = matrix.page_cost(selection.paper_type, selection.paper_weight)
        page_cost_bw = (cost.bw or 0) * selection.page_count_bw
        page_cost_color = (cost.color or 0) * selection.page_count_color
        page_cost = page_cost_bw + page_cost_color
        binding_cost = matrix.binding_cost(selection.binding_type, selection.cover_weight)

        per_copy_subtotal = page_cost + binding_cost
        subtotal = per_copy_subtotal * quantity
        discount_fraction = matrix.discount_for(quantity)
        discount_amount = apply_fraction(subtotal, discount_fraction)

        charges = self._extras(matrix, selection, quantity)
        fixed_extras = sum(c.amount for c in charges if c.kind == ExtraKind.FIXED)
        variable_extras = sum(c.amount for c in charges if c.kind != ExtraKind.FIXED)
        extras_total = fixed_extras + variable_extras

        before_margin = subtotal - discount_amount + extras_total
        margin_amount = apply_fraction(before_margin, matrix.profit_margin)
        grand_total = before_margin + margin_amount
        price_per_copy = int((Decimal(grand_total) / quantity).quantize(Decimal(1), rounding=ROUND_HALF_UP))

        logger.info("Priced book_size=%s quantity=%s grand_total=%s", book_size, quantity, grand_total)
        return PriceBreakdown(
            book_size=book_size,
            quantity=quantity,
            pages_per_copy=selection.pages_per_copy,
            page_cost_bw=page_cost_bw,
            page_cost_color=page_cost_color,
            page_cost=page_cost,
            binding_cost=binding_cost,
            per_copy_subtotal=per_copy_subtotal,
            subtotal=subtotal,
            discount_fraction=discount_fraction,
            discount_amount=discount_amount,
            fixed_extras=fixed_extras,
            variable_extras=variable_extras,
            extras_total=extras_total,
            extras=charges,
            profit_margin=matrix.profit_margin,
            margin_amount=margin_amount,
            grand_total=grand_total,
            price_per_copy=price_per_copy,
        )
