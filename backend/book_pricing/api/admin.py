import logging
from html import escape
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.responses import HTMLResponse

from book_pricing.api.deps import get_services
from book_pricing.models.matrix import PricingMatrix
from book_pricing.models.selection import ErrorKind, SaveResult, ValidationResult
from book_pricing.services.engine import PricingServices
from book_pricing.services.health import HealthReport, run_health_check
from book_pricing.services.matrix_store import LookupStatus, MigrationReport
from book_pricing.utils.names import normalize

logger = logging.getLogger(__name__)
router = APIRouter()

_STATUS_COLORS = {"healthy": "#16a34a", "warning": "#d97706", "critical": "#dc2626"}


class CacheClearRequest(BaseModel):
    book_size: Optional[str] = None


def _render_health_html(report: HealthReport) -> str:
    rows = "".join(
        f"<tr><td>{escape(name)}</td>"
        f"<td style='color:{_STATUS_COLORS.get(check['status'], '#111827')}'>{check['status']}</td>"
        f"<td>{escape(', '.join(f'{k}={v}' for k, v in check.items() if k != 'status'))}</td></tr>"
        for name, check in report.checks.items()
    )
    items = "".join(
        f"<li class='{cls}'>{escape(msg)}</li>"
        for cls, messages in (("error", report.errors), ("warning", report.warnings), ("tip", report.recommendations))
        for msg in messages
    )
    color = _STATUS_COLORS.get(report.overall_status, "#111827")
    return f"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Pricing Health</title>
  <style>
    body {{ font-family: Inter, system-ui, -apple-system, 'Segoe UI', Roboto, 'Helvetica Neue', Arial; background:#f3f4f6; padding:24px; }}
    .container {{ max-width:1100px; margin:0 auto; }}
    .card {{ background:white;padding:20px;border-radius:8px; box-shadow:0 1px 3px rgba(0,0,0,0.06); margin-bottom:20px }}
    .value {{ font-size:28px; font-weight:700; color:{color} }}
    table {{ width:100%; border-collapse:collapse; background:white; border-radius:8px; overflow:hidden }}
    th, td {{ padding:12px; text-align:left; border-bottom:1px solid #eef2f7 }}
    thead {{ background:#f9fafb }}
    li.error {{ color:#dc2626 }} li.warning {{ color:#d97706 }} li.tip {{ color:#2563eb }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Pricing Health</h1>
    <div class="card"><div>Overall status</div><div class="value">{report.overall_status}</div></div>
    <table>
      <thead><tr><th>Check</th><th>Status</th><th>Details</th></tr></thead>
      <tbody>{rows}</tbody>
    </table>
    <ul class="card">{items}</ul>
  </div>
</body>
</html>
"""


@router.get("/matrices")
def list_matrices(services: PricingServices = Depends(get_services)):
    valid = services.parameters.load().size_keys()
    result = []
    for storage_key, name in services.matrices.persisted().items():
        key = normalize(name)
        result.append({
            "storage_key": storage_key,
            "book_size": key,
            "canonical": storage_key == services.matrices.storage_key(key),
            "configured": key in valid,
        })
    return result


@router.post("/matrices/cleanup-orphans")
def cleanup_orphans(services: PricingServices = Depends(get_services)):
    removed = services.matrices.cleanup_orphans()
    return {"removed": removed}


@router.post("/matrices/migrate-keys", response_model=MigrationReport)
def migrate_keys(services: PricingServices = Depends(get_services)):
    return services.matrices.migrate_legacy_keys()


@router.put("/matrices/{book_size}", response_model=SaveResult)
def save_matrix(book_size: str, matrix: PricingMatrix, services: PricingServices = Depends(get_services)):
    result = services.matrices.save(book_size, matrix)
    if not result.saved:
        return JSONResponse(status_code=422, content=result.model_dump(mode="json"))
    return result


@router.get("/matrices/{book_size}")
def get_matrix(book_size: str, services: PricingServices = Depends(get_services)):
    lookup = services.matrices.lookup(book_size)
    if lookup.status == LookupStatus.MALFORMED:
        failure = ValidationResult.fail(ErrorKind.MALFORMED_MATRIX, f"stored matrix for {lookup.key!r} is unreadable")
        return JSONResponse(status_code=422, content=failure.model_dump(mode="json"))
    if lookup.status == LookupStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"no pricing matrix for book size {lookup.key!r}")
    return {"book_size": lookup.key, "matrix": lookup.matrix.model_dump(mode="json", by_alias=True)}


@router.delete("/matrices/{book_size}")
def delete_matrix(book_size: str, services: PricingServices = Depends(get_services)):
    if not services.matrices.delete(book_size):
        raise HTTPException(status_code=404, detail=f"no pricing matrix for book size {normalize(book_size)!r}")
    return {"deleted": True, "book_size": normalize(book_size)}


@router.post("/cache/clear")
def clear_cache(req: Optional[CacheClearRequest] = None, services: PricingServices = Depends(get_services)):
    book_size = req.book_size if req else None
    services.matrices.clear_cache(book_size)
    logger.info("Cleared matrix cache book_size=%s", book_size or "<all>")
    return {"cleared": normalize(book_size) if book_size else "all"}


@router.get("/health")
def health(request: Request, services: PricingServices = Depends(get_services)) -> Any:
    report = run_health_check(services)
    accept = request.headers.get("accept", "")
    if "text/html" in accept:
        return HTMLResponse(content=_render_health_html(report))
    return report
