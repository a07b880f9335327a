import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onetouch.config import settings
from onetouch.middleware.exceptions import register_exception_handlers
from onetouch.middleware.rate_limit import RateLimitMiddleware
from onetouch.middleware.security import SecurityHeadersMiddleware
from onetouch.routers import (
    accounts,
    audit_logs,
    categories,
    companies,
    contracts,
    health,
    items,
    offices,
    partners,
    reports,
)
from onetouch.utils.cache import close_redis

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"OneTouch API starting ({settings.environment})")
    yield
    await close_redis()
    logger.info("OneTouch API stopped")


app = FastAPI(
    title="OneTouch",
    description="Facility management: inventory, incident reports and partner routing",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (last added runs outermost) ───────────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    RateLimitMiddleware,
    default_limit=100,  # 100 requests per minute (anonymous/IP)
    authenticated_limit=500,  # 500 requests per minute (bearer token)
    default_window=60,
    exempt_paths=["/health", "/health/ready", "/docs", "/openapi.json"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(categories.router, prefix="/api/categories", tags=["categories"])
app.include_router(companies.router, prefix="/api/companies", tags=["companies"])
app.include_router(offices.router, prefix="/api/offices", tags=["offices"])
app.include_router(accounts.router, prefix="/api/accounts", tags=["accounts"])
app.include_router(audit_logs.router, prefix="/api/audit-logs", tags=["audit"])
app.include_router(items.router, prefix="/api/items", tags=["items"])
app.include_router(partners.router, prefix="/api/partners", tags=["partners"])
app.include_router(contracts.router, prefix="/api/contracts", tags=["contracts"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
