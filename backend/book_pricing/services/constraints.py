import logging
from typing import Dict, List, Optional, Tuple

from book_pricing.models.matrix import PricingMatrix
from book_pricing.models.selection import (
    AllowedOptions,
    BookSizeStatus,
    ErrorKind,
    ExtraOption,
    FullSelection,
    Option,
    PartialSelection,
    ValidationResult,
)
from book_pricing.services.matrix_store import LookupStatus, MatrixStore
from book_pricing.services.parameters import ConfiguredParameters
from book_pricing.utils.names import normalize, slugify

logger = logging.getLogger(__name__)


class ConstraintResolver:
    """Which parameter values can be ordered for a book size, and why not.

    A value is offered only when it is in the configured parameters, priced in
    the size's matrix, and not disabled by the matrix restrictions.
    """

    def __init__(self, matrices: MatrixStore, parameters):
        self.matrices = matrices
        self.parameters = parameters

    def configured_parameters(self) -> ConfiguredParameters:
        return self.parameters.load()

    # --- usable values -------------------------------------------------

    def _usable_weights(self, matrix: PricingMatrix, params: ConfiguredParameters, paper_type: str) -> Dict[str, List[str]]:
        weights = {}
        for weight, cost in matrix.page_costs.get(paper_type, {}).items():
            if not params.is_paper_configured(paper_type, weight):
                continue
            prints = [p for p in matrix.restrictions.allowed_prints(paper_type, weight) if cost.price_for(p) is not None]
            # a weight with every print type disabled is not offered at all
            if prints:
                weights[weight] = prints
        return weights

    def _usable_papers(self, matrix: PricingMatrix, params: ConfiguredParameters) -> Dict[str, Dict[str, List[str]]]:
        papers = {}
        for paper_type in matrix.page_costs:
            weights = self._usable_weights(matrix, params, paper_type)
            if weights:
                papers[paper_type] = weights
        return papers

    def _usable_cover_weights(self, matrix: PricingMatrix, params: ConfiguredParameters, binding_type: str) -> List[str]:
        if not params.is_binding_configured(binding_type) or matrix.restrictions.is_binding_forbidden(binding_type):
            return []
        return [
            w
            for w in matrix.binding_costs.get(binding_type, {})
            if params.is_cover_weight_configured(w) and not matrix.restrictions.is_cover_weight_forbidden(binding_type, w)
        ]

    def _usable_bindings(self, matrix: PricingMatrix, params: ConfiguredParameters) -> List[str]:
        return [b for b in matrix.binding_costs if self._usable_cover_weights(matrix, params, b)]

    def _usable_extras(self, matrix: PricingMatrix, params: ConfiguredParameters, binding_type: str) -> List[str]:
        return [
            e
            for e in matrix.extras_costs
            if params.is_extra_configured(e) and not matrix.restrictions.is_extra_forbidden(binding_type, e)
        ]

    def _load(self, book_size: str) -> Tuple[Optional[PricingMatrix], Optional[ValidationResult], ConfiguredParameters]:
        params = self.parameters.load()
        key = normalize(book_size)
        if not params.is_book_size_configured(key):
            return None, ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"book size {key!r} is not configured", sorted(params.size_keys())
            ), params

        lookup = self.matrices.lookup(key)
        if lookup.status == LookupStatus.MALFORMED:
            return None, ValidationResult.fail(
                ErrorKind.MALFORMED_MATRIX, f"pricing for book size {key!r} is unavailable"
            ), params
        if lookup.status == LookupStatus.NOT_FOUND:
            return None, ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"no pricing is configured for book size {key!r}"
            ), params
        return lookup.matrix, None, params

    # --- operations ----------------------------------------------------

    def available_book_sizes(self) -> List[BookSizeStatus]:
        params = self.parameters.load()
        labels: Dict[str, str] = {}
        for name in params.book_sizes:
            labels.setdefault(normalize(name), name)

        result = []
        for key, label in labels.items():
            lookup = self.matrices.lookup(key)
            if lookup.status != LookupStatus.FOUND:
                reason = ErrorKind.MALFORMED_MATRIX if lookup.status == LookupStatus.MALFORMED else ErrorKind.NOT_CONFIGURED
                result.append(BookSizeStatus(size=key, label=label, slug=slugify(key), enabled=False, has_pricing=False, reason=reason))
                continue

            matrix = lookup.matrix
            papers = self._usable_papers(matrix, params)
            bindings = self._usable_bindings(matrix, params)
            enabled = bool(papers) and bool(bindings)
            reason = None
            if not enabled:
                priced = bool(matrix.page_costs) and bool(matrix.binding_costs)
                reason = ErrorKind.FORBIDDEN if priced else ErrorKind.NOT_CONFIGURED
            result.append(
                BookSizeStatus(
                    size=key,
                    label=label,
                    slug=slugify(key),
                    enabled=enabled,
                    has_pricing=True,
                    paper_type_count=len(papers),
                    binding_type_count=len(bindings),
                    reason=reason,
                )
            )
        return result

    def allowed_options(self, book_size: str, current_selection: Optional[PartialSelection] = None):
        """Options for the next form step. Returns AllowedOptions or a failed ValidationResult."""
        selection = current_selection or PartialSelection()
        matrix, failure, params = self._load(book_size)
        if failure is not None:
            return failure

        papers = self._usable_papers(matrix, params)
        options = AllowedOptions(
            book_size=normalize(book_size),
            papers={p: list(weights) for p, weights in papers.items()},
            print_types_per_weight=papers,
            paper_slugs={p: slugify(p) for p in papers},
            bindings=[Option(value=b, slug=slugify(b)) for b in self._usable_bindings(matrix, params)],
        )

        if selection.paper_type and selection.paper_weight:
            options.print_types = papers.get(selection.paper_type, {}).get(selection.paper_weight, [])

        binding = selection.binding_type
        if binding and binding in [b.value for b in options.bindings]:
            options.cover_weights = [Option(value=w, slug=slugify(w)) for w in self._usable_cover_weights(matrix, params, binding)]
            options.extras = [
                ExtraOption(
                    value=e,
                    slug=slugify(e),
                    price=matrix.extras_costs[e].price,
                    kind=matrix.extras_costs[e].kind,
                )
                for e in self._usable_extras(matrix, params, binding)
            ]
        return options

    def check_selection(self, selection: FullSelection) -> Tuple[ValidationResult, Optional[PricingMatrix]]:
        matrix, failure, params = self._load(selection.book_size)
        if failure is not None:
            return failure, None

        restrictions = matrix.restrictions
        size = normalize(selection.book_size)
        paper_type = selection.paper_type
        weight = selection.paper_weight
        papers = self._usable_papers(matrix, params)

        if not params.is_paper_configured(paper_type) or paper_type not in matrix.page_costs:
            return ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"paper {paper_type!r} is not available for {size!r}", list(papers)
            ), matrix

        weights = papers.get(paper_type, {})
        cost = matrix.page_cost(paper_type, weight)
        if not params.is_paper_configured(paper_type, weight) or cost is None:
            return ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"weight {weight} of paper {paper_type!r} is not priced for {size!r}", list(weights)
            ), matrix
        if weight not in weights:
            return ValidationResult.fail(
                ErrorKind.FORBIDDEN, f"weight {weight} of paper {paper_type!r} is disabled for {size!r}", list(weights)
            ), matrix

        for print_type in selection.used_print_types():
            if print_type in restrictions.forbidden_prints(paper_type, weight):
                return ValidationResult.fail(
                    ErrorKind.FORBIDDEN,
                    f"{print_type} printing is disabled for paper {paper_type!r} {weight} in {size!r}",
                    weights[weight],
                ), matrix
            if cost.price_for(print_type) is None:
                return ValidationResult.fail(
                    ErrorKind.NOT_CONFIGURED,
                    f"{print_type} printing is not priced for paper {paper_type!r} {weight} in {size!r}",
                    weights[weight],
                ), matrix

        binding = selection.binding_type
        bindings = self._usable_bindings(matrix, params)
        if not params.is_binding_configured(binding) or binding not in matrix.binding_costs:
            return ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"binding {binding!r} is not available for {size!r}", bindings
            ), matrix
        if restrictions.is_binding_forbidden(binding):
            return ValidationResult.fail(
                ErrorKind.FORBIDDEN, f"binding {binding!r} is disabled for {size!r}", bindings
            ), matrix

        cover_weight = selection.cover_weight
        cover_weights = self._usable_cover_weights(matrix, params, binding)
        if not params.is_cover_weight_configured(cover_weight) or matrix.binding_cost(binding, cover_weight) is None:
            return ValidationResult.fail(
                ErrorKind.NOT_CONFIGURED, f"cover weight {cover_weight} is not priced for binding {binding!r}", cover_weights
            ), matrix
        if restrictions.is_cover_weight_forbidden(binding, cover_weight):
            return ValidationResult.fail(
                ErrorKind.FORBIDDEN, f"cover weight {cover_weight} is disabled for binding {binding!r}", cover_weights
            ), matrix

        extras = self._usable_extras(matrix, params, binding)
        for extra in selection.extras:
            if not params.is_extra_configured(extra) or extra not in matrix.extras_costs:
                return ValidationResult.fail(
                    ErrorKind.NOT_CONFIGURED, f"extra service {extra!r} is not available for {size!r}", extras
                ), matrix
            if restrictions.is_extra_forbidden(binding, extra):
                return ValidationResult.fail(
                    ErrorKind.FORBIDDEN, f"extra service {extra!r} is not allowed with binding {binding!r}", extras
                ), matrix

        return ValidationResult.ok(), matrix

    def validate_combination(self, selection: FullSelection) -> ValidationResult:
        result, _ = self.check_selection(selection)
        if not result.allowed:
            logger.info("Rejected combination book_size=%s reason=%s: %s", selection.book_size, result.reason, result.message)
        return result
