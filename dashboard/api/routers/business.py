"""
Proanbud — Business Profile Router
===================================

Endpoints:
  GET   /api/business   - Stored profile (404 if never saved)
  PUT   /api/business   - Replace the profile
  PATCH /api/business   - Merge set fields into the profile
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dashboard.api.middleware import get_account
from models.crm_models import BusinessSettings, BusinessSettingsUpdate
from proanbud.lib.account import AccountContext
from proanbud.lib.errors import NotFoundError

router = APIRouter(prefix="/api/business", tags=["business"])


@router.get("")
async def get_settings(request: Request, ctx: AccountContext = Depends(get_account)):
    settings = request.app.state.business.get_business_settings(ctx)
    if settings is None:
        raise NotFoundError("businessSettings", ctx.account_id,
                            user_message="Bedriftsinnstillinger er ikke lagret ennå")
    return settings.model_dump()


@router.put("")
async def save_settings(body: BusinessSettings, request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.business.save_business_settings(ctx, body).model_dump()


@router.patch("")
async def update_settings(body: BusinessSettingsUpdate, request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.business.update_business_settings(ctx, body).model_dump()
