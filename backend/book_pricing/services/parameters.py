"""Administrator-configured product parameters (book sizes, papers, bindings...).

This is the only list of what can be ordered. An empty list means nothing is
orderable yet. There is no built-in list of sizes.
"""
import json
import logging
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from book_pricing.utils.names import normalize

logger = logging.getLogger(__name__)

BOOK_SIZES_KEY = "book_sizes"
PAPER_TYPES_KEY = "paper_types"
BINDING_TYPES_KEY = "binding_types"
COVER_WEIGHTS_KEY = "cover_weights"
EXTRAS_KEY = "extras"


class ConfiguredParameters(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, frozen=True)

    book_sizes: List[str] = Field(default_factory=list)
    paper_types: Dict[str, List[str]] = Field(default_factory=dict)
    binding_types: List[str] = Field(default_factory=list)
    cover_weights: List[str] = Field(default_factory=list)
    extras: List[str] = Field(default_factory=list)

    def size_keys(self) -> Set[str]:
        return {normalize(s) for s in self.book_sizes}

    def is_book_size_configured(self, name: str) -> bool:
        return normalize(name) in self.size_keys()

    def is_paper_configured(self, paper_type: str, weight: Optional[str] = None) -> bool:
        if paper_type not in self.paper_types:
            return False
        return weight is None or weight in self.paper_types[paper_type]

    def is_binding_configured(self, binding_type: str) -> bool:
        return binding_type in self.binding_types

    def is_cover_weight_configured(self, cover_weight: str) -> bool:
        return cover_weight in self.cover_weights

    def is_extra_configured(self, extra: str) -> bool:
        return extra in self.extras


class StaticParameterProvider:
    def __init__(self, parameters: ConfiguredParameters):
        self.parameters = parameters

    def load(self) -> ConfiguredParameters:
        return self.parameters


class SettingsParameterProvider:
    """Reads the parameter lists from the settings store on every call."""

    def __init__(self, store):
        self.store = store

    def _read(self, key: str, default):
        raw = self.store.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Setting %s is not valid JSON, treating as empty: %s", key, e)
            return default

    def load(self) -> ConfiguredParameters:
        data = {
            "book_sizes": self._read(BOOK_SIZES_KEY, []),
            "paper_types": self._read(PAPER_TYPES_KEY, {}),
            "binding_types": self._read(BINDING_TYPES_KEY, []),
            "cover_weights": self._read(COVER_WEIGHTS_KEY, []),
            "extras": self._read(EXTRAS_KEY, []),
        }
        try:
            return ConfiguredParameters(**data)
        except ValidationError as e:
            # keep the well-formed lists, drop the broken ones
            logger.error("Configured parameters have an unexpected shape: %s", e)
            return ConfiguredParameters(**{k: v for k, v in data.items() if _is_valid_field(k, v)})

    def save(self, parameters: ConfiguredParameters) -> None:
        for key, value in parameters.model_dump().items():
            self.store.set(key, json.dumps(value, ensure_ascii=False))


def _is_valid_field(name: str, value) -> bool:
    try:
        ConfiguredParameters(**{name: value})
        return True
    except ValidationError:
        return False
