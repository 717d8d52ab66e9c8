from enum import Enum
from typing import Dict, List, NewType, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# Produced only by book_pricing.utils.names.normalize
BookSizeKey = NewType("BookSizeKey", str)

PRINT_TYPES = ("bw", "color")


class MatrixModel(BaseModel):
    # weights arrive as JSON numbers from older admin forms; unknown keys are rejected
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="forbid")


class PageCost(MatrixModel):
    """Per-page price for one paper type / weight. A missing mode is not priced."""

    bw: Optional[int] = Field(default=None, ge=0)
    color: Optional[int] = Field(default=None, ge=0)

    def price_for(self, print_type: str) -> Optional[int]:
        return getattr(self, print_type, None)


class ExtraKind(str, Enum):
    FIXED = "fixed"
    PER_UNIT = "per_unit"
    PAGE_BASED = "page_based"


class ExtraServiceConfig(MatrixModel):
    price: int = Field(ge=0)
    kind: ExtraKind = Field(default=ExtraKind.FIXED, alias="type")
    step: int = 0

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="forbid", populate_by_name=True)

    @model_validator(mode="after")
    def _page_based_needs_step(self):
        if self.kind == ExtraKind.PAGE_BASED and self.step <= 0:
            raise ValueError("page_based extras need a positive step")
        return self


class RestrictionSet(MatrixModel):
    # paper type -> weight -> forbidden print types
    forbidden_print_types: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    forbidden_binding_types: List[str] = Field(default_factory=list)
    forbidden_cover_weights: Dict[str, List[str]] = Field(default_factory=dict)
    forbidden_extras: Dict[str, List[str]] = Field(default_factory=dict)

    @field_validator("forbidden_print_types", mode="before")
    @classmethod
    def _reject_paper_level_restrictions(cls, value):
        # old per-paper-type shape {"paper": ["color"]} has no weight level
        if isinstance(value, dict):
            for paper_type, weights in value.items():
                if not isinstance(weights, dict):
                    raise ValueError(
                        f"forbidden_print_types[{paper_type!r}] must map weights to print types"
                    )
        return value

    @field_validator("forbidden_print_types")
    @classmethod
    def _known_print_types(cls, value):
        for weights in value.values():
            for modes in weights.values():
                unknown = set(modes) - set(PRINT_TYPES)
                if unknown:
                    raise ValueError(f"unknown print types: {sorted(unknown)}")
        return value

    def forbidden_prints(self, paper_type: str, weight: str) -> List[str]:
        return self.forbidden_print_types.get(paper_type, {}).get(weight, [])

    def allowed_prints(self, paper_type: str, weight: str) -> List[str]:
        forbidden = self.forbidden_prints(paper_type, weight)
        return [p for p in PRINT_TYPES if p not in forbidden]

    def is_binding_forbidden(self, binding_type: str) -> bool:
        return binding_type in self.forbidden_binding_types

    def is_cover_weight_forbidden(self, binding_type: str, cover_weight: str) -> bool:
        return cover_weight in self.forbidden_cover_weights.get(binding_type, [])

    def is_extra_forbidden(self, binding_type: str, extra: str) -> bool:
        return extra in self.forbidden_extras.get(binding_type, [])


class QuantityDiscount(MatrixModel):
    threshold_quantity: int = Field(ge=1)
    discount_fraction: float = Field(ge=0, le=1)


class QuantityConstraints(MatrixModel):
    minimum: int = Field(default=1, ge=1, validation_alias=AliasChoices("minimum", "minimum_quantity"))
    maximum: int = Field(default=100000, ge=1, validation_alias=AliasChoices("maximum", "maximum_quantity"))
    step: int = Field(default=1, ge=1, validation_alias=AliasChoices("step", "quantity_step"))

    @model_validator(mode="after")
    def _ordered(self):
        if self.maximum < self.minimum:
            raise ValueError("quantity maximum is below minimum")
        return self


class PricingMatrix(MatrixModel):
    """Full administrator-configured pricing dataset for one book size.

    Saved wholesale; there is no partial update. Money values are integers in
    the smallest currency unit.
    """

    page_costs: Dict[str, Dict[str, PageCost]]
    binding_costs: Dict[str, Dict[str, int]]
    extras_costs: Dict[str, ExtraServiceConfig] = Field(default_factory=dict)
    restrictions: RestrictionSet = Field(default_factory=RestrictionSet)
    profit_margin: float = Field(default=0.0, ge=0, le=1)
    quantity_discounts: List[QuantityDiscount] = Field(default_factory=list)
    quantity_constraints: QuantityConstraints = Field(default_factory=QuantityConstraints)

    @field_validator("binding_costs")
    @classmethod
    def _non_negative_binding(cls, value):
        for binding_type, weights in value.items():
            for weight, cost in weights.items():
                if cost < 0:
                    raise ValueError(f"negative binding cost for {binding_type}/{weight}")
        return value

    @field_validator("quantity_discounts")
    @classmethod
    def _highest_threshold_first(cls, value):
        return sorted(value, key=lambda d: d.threshold_quantity, reverse=True)

    def page_cost(self, paper_type: str, weight: str) -> Optional[PageCost]:
        return self.page_costs.get(paper_type, {}).get(weight)

    def binding_cost(self, binding_type: str, cover_weight: str) -> Optional[int]:
        return self.binding_costs.get(binding_type, {}).get(cover_weight)

    def discount_for(self, quantity: int) -> float:
        for tier in self.quantity_discounts:
            if tier.threshold_quantity <= quantity:
                return tier.discount_fraction
        return 0.0

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)
