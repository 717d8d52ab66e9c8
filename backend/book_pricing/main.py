import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from book_pricing.api import admin, parameters, pricing
from book_pricing.api.deps import get_services
from book_pricing.models.selection import ErrorKind
from book_pricing.services.storage import StorageError

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:80").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Book Pricing Engine")

# CORS for the admin panel and order form
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
app.include_router(parameters.router, prefix="/parameters", tags=["parameters"])


@app.on_event("startup")
def on_startup():
    store = get_services().store
    if hasattr(store, "create_tables"):
        store.create_tables()
    logger.info("Book pricing engine started")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage unavailable for %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "allowed": False,
            "reason": ErrorKind.STORAGE_ERROR.value,
            "message": "pricing storage is unavailable, try again later",
            "suggestions": [],
        },
    )


@app.get("/")
async def root():
    return {"status": "ok", "service": "book-pricing-engine"}
