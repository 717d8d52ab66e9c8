from typing import List, Optional

from book_pricing.models.matrix import QuantityConstraints
from book_pricing.models.selection import ErrorKind, ValidationResult


class QuantityValidator:
    """Checks an order quantity against a matrix's quantity constraints.

    Rules:
    - quantity < minimum -> below_minimum
    - quantity > maximum -> above_maximum
    - quantity not a multiple of step -> off_step

    Issues are reported in that order; the first one names the result.
    """

    def issues(self, quantity: int, constraints: QuantityConstraints) -> List[str]:
        found = []
        if quantity < constraints.minimum:
            found.append("below_minimum")
        if quantity > constraints.maximum:
            found.append("above_maximum")
        if quantity % constraints.step != 0:
            found.append("off_step")
        return found

    def validate(self, quantity: int, constraints: QuantityConstraints, book_size: str = "") -> Optional[ValidationResult]:
        issues = self.issues(quantity, constraints)
        if not issues:
            return None

        where = f" for {book_size!r}" if book_size else ""
        messages = {
            "below_minimum": f"minimum quantity{where} is {constraints.minimum}",
            "above_maximum": f"maximum quantity{where} is {constraints.maximum}",
            "off_step": f"quantity{where} must be a multiple of {constraints.step}",
        }
        return ValidationResult.fail(
            ErrorKind.OUT_OF_RANGE,
            "; ".join(messages[i] for i in issues),
            [str(q) for q in self.nearest_valid(quantity, constraints)],
        )

    def nearest_valid(self, quantity: int, constraints: QuantityConstraints) -> List[int]:
        step = constraints.step
        # valid quantities are multiples of step inside [minimum, maximum]
        lowest = -(-constraints.minimum // step) * step
        highest = constraints.maximum // step * step
        if lowest > highest:
            return []
        below = max(lowest, min(highest, quantity // step * step))
        above = min(highest, max(lowest, -(-quantity // step) * step))
        return sorted({below, above})
