"""
Proanbud — Customers Router
============================
Customer endpoints for the caller's account.

Endpoints:
  GET    /api/customers             - List customers (newest first), optional search
  GET    /api/customers/{id}        - Single customer
  POST   /api/customers             - Create customer
  PATCH  /api/customers/{id}        - Partial update
  DELETE /api/customers/{id}        - Delete customer
  POST   /api/customers/reconcile   - Rebuild quote counters from the quotes
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from dashboard.api.middleware import get_account
from models.crm_models import CustomerCreate, CustomerUpdate
from proanbud.lib.account import AccountContext
from proanbud.lib.logger import setup_logger

logger = setup_logger("customers_router")

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("")
async def list_customers(
    request: Request,
    search: Optional[str] = Query(None, description="Match name or email"),
    limit: int = Query(50, ge=1, le=1000, description="Max results"),
    ctx: AccountContext = Depends(get_account),
):
    customers = request.app.state.customers
    if search:
        results = customers.search_customers(ctx, search)[:limit]
    else:
        results = customers.list_customers_paginated(ctx, limit=limit)
    return {"results": [c.model_dump() for c in results], "count": len(results)}


@router.post("/reconcile")
async def reconcile(request: Request, ctx: AccountContext = Depends(get_account)):
    """Recompute quote_count / won_count for every customer."""
    corrected = request.app.state.customers.reconcile_counters(ctx)
    return {"corrected": corrected, "count": len(corrected)}


@router.get("/{customer_id}")
async def get_customer(customer_id: str, request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.customers.get_customer(ctx, customer_id).model_dump()


@router.post("", status_code=201)
async def create_customer(body: CustomerCreate, request: Request, ctx: AccountContext = Depends(get_account)):
    customer_id = request.app.state.customers.create_customer(ctx, body)
    request.app.state.analytics.update_analytics(ctx)
    return {"id": customer_id}


@router.patch("/{customer_id}")
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    request: Request,
    ctx: AccountContext = Depends(get_account),
):
    customers = request.app.state.customers
    customers.update_customer(ctx, customer_id, body)
    return customers.get_customer(ctx, customer_id).model_dump()


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, request: Request, ctx: AccountContext = Depends(get_account)):
    request.app.state.customers.delete_customer(ctx, customer_id)
    request.app.state.analytics.update_analytics(ctx)
    return {"status": "deleted", "id": customer_id}
