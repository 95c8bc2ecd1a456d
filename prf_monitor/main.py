import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from prf_monitor.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _seed_admin_user() -> None:
    """Create the configured admin account if it is missing."""
    from prf_monitor.database import SessionLocal
    from prf_monitor.services.auth_service import ensure_default_admin

    db = SessionLocal()
    try:
        ensure_default_admin(db)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Could not seed the admin user (schema not migrated?): %s", exc)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    _seed_admin_user()
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    detail,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "success": False,
        "error": {"message": message, "status_code": status_code},
        "detail": detail,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(body), headers=headers
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(
        request, exc.status_code, message, exc.detail, headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.debug("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
    return _error_response(request, 422, "Validation failed", exc.errors())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(request, 500, "Internal server error", "Internal server error")


@app.get("/api/health")
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from prf_monitor.routers import auth  # noqa: E402

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])

# Chart of Accounts
from prf_monitor.routers import coa  # noqa: E402

app.include_router(
    coa.router,
    prefix="/api/coa",
    tags=["Chart of Accounts"],
)

# Budgets and cost-code reconciliation
from prf_monitor.routers import budgets  # noqa: E402

app.include_router(
    budgets.router,
    prefix="/api/budgets",
    tags=["Budgets"],
)

# Purchase requests
from prf_monitor.routers import prfs  # noqa: E402

app.include_router(
    prfs.router,
    prefix="/api/prfs",
    tags=["PRFs"],
)

# Bulk PRF import
from prf_monitor.routers import imports  # noqa: E402

app.include_router(
    imports.router,
    prefix="/api/import",
    tags=["Import"],
)

# Reports
from prf_monitor.routers import reports  # noqa: E402

app.include_router(
    reports.router,
    prefix="/api/reports",
    tags=["Reports"],
)

# Data-quality checks
from prf_monitor.routers import reconciliation  # noqa: E402

app.include_router(
    reconciliation.router,
    prefix="/api/reconciliation",
    tags=["Reconciliation"],
)
