import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from book_pricing.services.matrix_store import LookupStatus
from book_pricing.services.storage import StorageError

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
WARNING = "warning"
CRITICAL = "critical"


class HealthReport(BaseModel):
    overall_status: str = HEALTHY
    checks: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    def add(self, name: str, status: str, **details) -> None:
        self.checks[name] = {"status": status, **details}
        if status == CRITICAL:
            self.overall_status = CRITICAL
        elif status == WARNING and self.overall_status == HEALTHY:
            self.overall_status = WARNING


def _check_matrices(services, report: HealthReport, sizes) -> None:
    counts = {"complete": [], "incomplete": [], "malformed": [], "missing": []}
    for size in sorted(sizes):
        lookup = services.matrices.lookup(size)
        if lookup.status == LookupStatus.MALFORMED:
            counts["malformed"].append(size)
        elif lookup.status == LookupStatus.NOT_FOUND:
            counts["missing"].append(size)
        elif lookup.matrix.page_costs and lookup.matrix.binding_costs:
            counts["complete"].append(size)
        else:
            counts["incomplete"].append(size)

    if not counts["complete"]:
        status = CRITICAL
        report.errors.append("no book size has a complete pricing matrix")
    elif counts["incomplete"] or counts["missing"] or counts["malformed"]:
        status = WARNING
    else:
        status = HEALTHY

    if counts["malformed"]:
        report.errors.append(f"malformed pricing matrices: {', '.join(counts['malformed'])}")
        report.recommendations.append("re-save the malformed matrices from the admin panel")
    if counts["missing"]:
        report.warnings.append(f"book sizes without pricing: {', '.join(counts['missing'])}")
        report.recommendations.append("configure pricing for every book size offered on the order form")
    if counts["incomplete"]:
        report.warnings.append(f"incomplete pricing matrices: {', '.join(counts['incomplete'])}")

    report.add("pricing_matrices", status, **{k: len(v) for k, v in counts.items()}, sizes=counts)


def run_health_check(services) -> HealthReport:
    report = HealthReport()

    if not services.store.ping():
        report.add("storage", CRITICAL, reachable=False)
        report.errors.append("settings storage is unreachable")
        report.recommendations.append("check DATABASE_URL and that the database is running")
        return report
    report.add("storage", HEALTHY, reachable=True)

    try:
        params = services.parameters.load()
        sizes = params.size_keys()
        if not sizes:
            report.add("product_parameters", CRITICAL, book_sizes=0)
            report.errors.append("no book sizes are configured")
            report.recommendations.append("add book sizes in the product parameters")
            return report
        report.add(
            "product_parameters",
            HEALTHY,
            book_sizes=len(sizes),
            paper_types=len(params.paper_types),
            binding_types=len(params.binding_types),
        )

        _check_matrices(services, report, sizes)

        orphans = services.matrices.find_orphans()
        if orphans:
            report.add("orphaned_matrices", WARNING, count=len(orphans), sizes=sorted(orphans.values()))
            report.warnings.append(f"{len(orphans)} pricing matrices belong to removed book sizes")
            report.recommendations.append("run POST /admin/matrices/cleanup-orphans")
        else:
            report.add("orphaned_matrices", HEALTHY, count=0)

        statuses = services.resolver.available_book_sizes()
        enabled = [s.size for s in statuses if s.enabled]
        disabled = {s.size: s.reason.value if s.reason else None for s in statuses if not s.enabled}
        if not enabled:
            report.add("order_form", CRITICAL, enabled=0, disabled=disabled)
            report.errors.append("no book size can be ordered")
        else:
            report.add("order_form", WARNING if disabled else HEALTHY, enabled=len(enabled), disabled=disabled)
    except StorageError as e:
        logger.exception("Health check failed while reading storage")
        report.add("storage", CRITICAL, reachable=False)
        report.errors.append(f"storage error: {e}")
        return report

    cache = services.matrices.cache
    report.add("cache", HEALTHY, entries=len(cache), ttl_seconds=cache.ttl_seconds)
    logger.info("Health check finished overall_status=%s", report.overall_status)
    return report
