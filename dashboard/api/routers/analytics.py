"""
Proanbud — Analytics Router
============================
Cached analytics summary, period views and dashboard read-models.

Endpoints:
  POST /api/analytics/initialize   - First-login setup (profile, empty summary, user settings)
  GET  /api/analytics              - Full summary (recomputed when stale)
  POST /api/analytics/refresh      - Force a recompute
  GET  /api/analytics/period/{p}   - View for 7dager/30dager/1aar/frastart
  GET  /api/analytics/kpis         - Dashboard KPI cards
  GET  /api/analytics/chart        - 12-month revenue chart
  GET  /api/analytics/activity     - Recent activity feed
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from dashboard.api.middleware import get_account
from proanbud.lib.account import AccountContext
from proanbud.lib.logger import setup_logger

logger = setup_logger("analytics_router")

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("/initialize")
async def initialize(
    request: Request,
    name: str = Query("", description="Display name for default user settings"),
    ctx: AccountContext = Depends(get_account),
):
    created = request.app.state.analytics.initialize_account(ctx, name=name)
    return {"account_id": ctx.account_id, "created": created}


@router.get("")
async def get_analytics(request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.analytics.get_analytics(ctx).model_dump()


@router.post("/refresh")
async def refresh(request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.analytics.update_analytics(ctx).model_dump()


@router.get("/period/{period}")
async def period_view(period: str, request: Request, ctx: AccountContext = Depends(get_account)):
    """Summary narrowed to a time window (aliases 7d/30d/1y/all accepted)."""
    return request.app.state.analytics.get_period_view(ctx, period).model_dump()


@router.get("/kpis")
async def kpis(request: Request, ctx: AccountContext = Depends(get_account)):
    cards = request.app.state.analytics.get_dashboard_kpis(ctx)
    return {"results": [c.model_dump() for c in cards]}


@router.get("/chart")
async def chart(request: Request, ctx: AccountContext = Depends(get_account)):
    points = request.app.state.analytics.get_chart_data(ctx)
    return {"results": [p.model_dump() for p in points]}


@router.get("/activity")
async def activity(request: Request, ctx: AccountContext = Depends(get_account)):
    items = request.app.state.analytics.get_activity_feed(ctx)
    return {"results": [i.model_dump() for i in items]}
