"""
CRM Backend: customers, inventory, repairs, leads, appointments and orders
for a small store.

ARCHITECTURE:
- FastAPI routers per resource under /api
- SQLAlchemy models, SQLite by default
- AccessPolicy: one role x resource table consulted by every route

ORDER MODEL:
- OrderService places an order, prices it and decrements stock in one
  transaction; any failure leaves catalog and orders untouched
- Order items keep the price at sale time; invoices never reprice
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm.api.routes import appointments, auth, customers, dashboard, leads, orders, products, repairs
from crm.core.config import settings
from crm.core.exceptions import CRMError, http_exception_for
from crm.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables (and demo data on an empty database) before serving."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(
    title="CRM API",
    description="Customers, inventory, repairs and orders with role-based access.",
    version="0.1.0",
    lifespan=lifespan,
)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,
    expose_headers=["Content-Type", "Content-Disposition"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(CRMError)
async def crm_error_handler(request: Request, exc: CRMError):
    http_exc = http_exception_for(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail},
        headers=http_exc.headers,
    )


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])
app.include_router(products.router, prefix="/api/products", tags=["products"])
app.include_router(repairs.router, prefix="/api/repairs", tags=["repairs"])
app.include_router(leads.router, prefix="/api/leads", tags=["leads"])
app.include_router(appointments.router, prefix="/api/appointments", tags=["appointments"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])


@app.get("/health")
def health():
    return {"status": "ok"}
