"""
Proanbud — Quotes Router
=========================
Quote endpoints for the caller's account (X-Account-Id).

Endpoints:
  GET    /api/quotes               - List quotes (newest first), optional search/status
  GET    /api/quotes/stats         - Status breakdown and win rate
  GET    /api/quotes/{id}          - Single quote
  POST   /api/quotes               - Create quote
  PATCH  /api/quotes/{id}          - Partial update
  PATCH  /api/quotes/{id}/status   - Change status only
  DELETE /api/quotes/{id}          - Delete quote
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from dashboard.api.middleware import get_account
from models.crm_models import QuoteCreate, QuoteUpdate
from proanbud.lib.account import AccountContext
from proanbud.lib.logger import setup_logger

logger = setup_logger("quotes_router")

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


class StatusChange(BaseModel):
    status: str = Field(..., description="pending, won or lost (venter/vunnet/tapt accepted)")


@router.get("")
async def list_quotes(
    request: Request,
    search: Optional[str] = Query(None, description="Match customer name, project or description"),
    status: Optional[str] = Query(None, description="pending, won or lost (venter/vunnet/tapt accepted)"),
    limit: int = Query(50, ge=1, le=1000, description="Max results"),
    ctx: AccountContext = Depends(get_account),
):
    """List quotes with optional search or status filter."""
    quotes = request.app.state.quotes
    if search:
        results = quotes.search_quotes(ctx, search)[:limit]
    elif status:
        results = quotes.get_quotes_by_status(ctx, status)[:limit]
    else:
        results = quotes.list_quotes_paginated(ctx, limit=limit)
    return {"results": [q.model_dump(mode="json") for q in results], "count": len(results)}


@router.get("/stats")
async def quote_stats(request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.quotes.get_quote_stats(ctx).model_dump()


@router.get("/{quote_id}")
async def get_quote(quote_id: str, request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.quotes.get_quote(ctx, quote_id).model_dump(mode="json")


@router.post("", status_code=201)
async def create_quote(body: QuoteCreate, request: Request, ctx: AccountContext = Depends(get_account)):
    quote_id = request.app.state.quotes.create_quote(ctx, body)
    request.app.state.analytics.update_analytics(ctx)
    return {"id": quote_id}


@router.patch("/{quote_id}")
async def update_quote(
    quote_id: str,
    body: QuoteUpdate,
    request: Request,
    ctx: AccountContext = Depends(get_account),
):
    quote = request.app.state.quotes.update_quote(ctx, quote_id, body)
    request.app.state.analytics.update_analytics(ctx)
    return quote.model_dump(mode="json")


@router.patch("/{quote_id}/status")
async def change_status(
    quote_id: str,
    body: StatusChange,
    request: Request,
    ctx: AccountContext = Depends(get_account),
):
    quote = request.app.state.quotes.update_quote_status(ctx, quote_id, body.status)
    request.app.state.analytics.update_analytics(ctx)
    return quote.model_dump(mode="json")


@router.delete("/{quote_id}")
async def delete_quote(quote_id: str, request: Request, ctx: AccountContext = Depends(get_account)):
    request.app.state.quotes.delete_quote(ctx, quote_id)
    request.app.state.analytics.update_analytics(ctx)
    return {"status": "deleted", "id": quote_id}
