from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from book_pricing.models.matrix import ExtraKind


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    FORBIDDEN = "forbidden"
    OUT_OF_RANGE = "out_of_range"
    MALFORMED_MATRIX = "malformed_matrix"
    STORAGE_ERROR = "storage_error"
    ORPHANED = "orphaned"


class PrintType(str, Enum):
    BW = "bw"
    COLOR = "color"
    MIXED = "mixed"


class SelectionModel(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class PartialSelection(SelectionModel):
    paper_type: Optional[str] = None
    paper_weight: Optional[str] = None
    binding_type: Optional[str] = None


class FullSelection(SelectionModel):
    book_size: str
    paper_type: str
    paper_weight: str
    print_type: PrintType
    page_count_bw: int = Field(default=0, ge=0)
    page_count_color: int = Field(default=0, ge=0)
    binding_type: str
    cover_weight: str
    extras: List[str] = Field(default_factory=list)

    @field_validator("extras")
    @classmethod
    def _unique_extras(cls, value):
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _pages_match_print_type(self):
        if self.print_type == PrintType.BW and (self.page_count_bw <= 0 or self.page_count_color):
            raise ValueError("bw print type needs black/white pages only")
        if self.print_type == PrintType.COLOR and (self.page_count_color <= 0 or self.page_count_bw):
            raise ValueError("color print type needs color pages only")
        if self.print_type == PrintType.MIXED and (self.page_count_bw <= 0 or self.page_count_color <= 0):
            raise ValueError("mixed print type needs both black/white and color pages")
        return self

    @property
    def pages_per_copy(self) -> int:
        return self.page_count_bw + self.page_count_color

    def used_print_types(self) -> List[str]:
        used = []
        if self.page_count_bw:
            used.append("bw")
        if self.page_count_color:
            used.append("color")
        return used


class ValidationResult(BaseModel):
    allowed: bool
    reason: Optional[ErrorKind] = None
    message: str = ""
    suggestions: List[str] = Field(default_factory=list)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(allowed=True, message="combination is valid")

    @classmethod
    def fail(cls, reason: ErrorKind, message: str, suggestions: Optional[List[str]] = None) -> "ValidationResult":
        return cls(allowed=False, reason=reason, message=message, suggestions=suggestions or [])


class Option(BaseModel):
    value: str
    slug: str


class ExtraOption(Option):
    price: int
    kind: ExtraKind


class AllowedOptions(BaseModel):
    book_size: str
    papers: Dict[str, List[str]] = Field(default_factory=dict)
    print_types_per_weight: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    print_types: List[str] = Field(default_factory=list)
    bindings: List[Option] = Field(default_factory=list)
    cover_weights: List[Option] = Field(default_factory=list)
    extras: List[ExtraOption] = Field(default_factory=list)
    paper_slugs: Dict[str, str] = Field(default_factory=dict)


class BookSizeStatus(BaseModel):
    size: str
    label: str
    slug: str
    enabled: bool
    has_pricing: bool
    paper_type_count: int = 0
    binding_type_count: int = 0
    reason: Optional[ErrorKind] = None


class ExtraCharge(BaseModel):
    name: str
    kind: ExtraKind
    units: int
    amount: int


class PriceBreakdown(BaseModel):
    book_size: str
    quantity: int
    pages_per_copy: int
    page_cost_bw: int
    page_cost_color: int
    page_cost: int
    binding_cost: int
    per_copy_subtotal: int
    subtotal: int
    discount_fraction: float
    discount_amount: int
    fixed_extras: int
    variable_extras: int
    extras_total: int
    extras: List[ExtraCharge] = Field(default_factory=list)
    profit_margin: float
    margin_amount: int
    grand_total: int
    price_per_copy: int


class SaveResult(BaseModel):
    saved: bool
    book_size: str
    reason: Optional[ErrorKind] = None
    message: str = ""
    orphans_removed: int = 0
