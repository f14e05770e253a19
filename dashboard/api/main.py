"""
Proanbud — API Server
======================

Quote, customer and analytics API over the account document store.
Every request is scoped to the account named in the X-Account-Id header.

Route groups:
  /api/health              - Health check
  /api/quotes/*            - Quotes (CRUD, search, status, stats)
  /api/customers/*         - Customers (CRUD, search, counter reconcile)
  /api/analytics/*         - Summary, period views, KPIs, chart, activity
  /api/business            - Business profile
  /api/user-settings       - Personal settings
  /ws/analytics            - WebSocket live analytics feed
"""

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from proanbud.analytics.service import AnalyticsService
from proanbud.crm.business import BusinessSettingsService
from proanbud.crm.customers import CustomerService
from proanbud.crm.quotes import QuoteService
from proanbud.crm.user_settings import UserSettingsService
from proanbud.lib.document_store import create_store
from proanbud.lib.errors import (
    AUTHORIZATION,
    CONNECTIVITY,
    MALFORMED_RECORD,
    NOT_FOUND,
    VALIDATION,
    ProanbudError,
)
from proanbud.lib.logger import setup_logger

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

logger = setup_logger("api")

VERSION = "1.0.0"

STATUS_BY_CATEGORY = {
    CONNECTIVITY: 503,
    AUTHORIZATION: 403,
    MALFORMED_RECORD: 422,
    NOT_FOUND: 404,
    VALIDATION: 400,
}


def attach_services(app: FastAPI, store) -> None:
    """Build the service layer over store and hang it on app.state."""
    customers = CustomerService(store)
    user_settings = UserSettingsService(store)
    app.state.store = store
    app.state.customers = customers
    app.state.quotes = QuoteService(store, customers)
    app.state.business = BusinessSettingsService(store)
    app.state.user_settings = user_settings
    app.state.analytics = AnalyticsService(store, user_settings=user_settings)


# ─── Lifespan ─────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app):
    """Application startup and shutdown."""
    logger.info("Starting Proanbud API...")

    # Tests attach their own store before startup
    if getattr(app.state, "store", None) is None:
        attach_services(app, create_store())
    logger.info("Document store: %s", type(app.state.store).__name__)

    if not app.state.store.ping():
        logger.warning("Document store did not answer the connectivity probe")

    logger.info("Proanbud API ready")
    yield

    from dashboard.api.websocket import ws_manager
    ws_manager.close_all()
    logger.info("Shutting down Proanbud API...")


# ─── App Setup ────────────────────────────────────────────────

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8001"
).split(",")

app = FastAPI(
    title="Proanbud",
    version=VERSION,
    description="Quotes, customers and sales analytics for Norwegian contractors",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from dashboard.api.middleware import AccountMiddleware

require_account = os.getenv("REQUIRE_ACCOUNT", "true").lower() == "true"
app.add_middleware(AccountMiddleware, require_account=require_account)


# ─── Errors ───────────────────────────────────────────────────

@app.exception_handler(ProanbudError)
async def proanbud_error_handler(request: Request, exc: ProanbudError):
    status = STATUS_BY_CATEGORY.get(exc.category, 500)
    if exc.code == "UNAUTHENTICATED":
        status = 401
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ─── Include Routers ──────────────────────────────────────────

from dashboard.api.routers.analytics import router as analytics_router
from dashboard.api.routers.business import router as business_router
from dashboard.api.routers.customers import router as customers_router
from dashboard.api.routers.quotes import router as quotes_router
from dashboard.api.routers.user_settings import router as user_settings_router

app.include_router(quotes_router)
app.include_router(customers_router)
app.include_router(analytics_router)
app.include_router(business_router)
app.include_router(user_settings_router)


# ─── WebSocket ────────────────────────────────────────────────

from dashboard.api.websocket import websocket_endpoint

app.add_api_websocket_route("/ws/analytics", websocket_endpoint)


# ─── Health ───────────────────────────────────────────────────

@app.get("/api/health", tags=["system"])
async def health(request: Request):
    """Health check with store status."""
    from dashboard.api.websocket import ws_manager

    store = getattr(request.app.state, "store", None)
    store_ok = bool(store is not None and store.ping())

    return {
        "status": "healthy" if store_ok else "degraded",
        "service": "Proanbud",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store": {
            "backend": type(store).__name__ if store is not None else None,
            "connected": store_ok,
        },
        "websocket_connections": ws_manager.connection_count,
    }
