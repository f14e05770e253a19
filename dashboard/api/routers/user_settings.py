"""
Proanbud — User Settings Router
================================

Endpoints:
  GET   /api/user-settings   - Settings of the caller (404 if never written)
  PUT   /api/user-settings   - Replace all settings
  PATCH /api/user-settings   - Change selected settings
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dashboard.api.middleware import get_account
from models.crm_models import UserSettings, UserSettingsUpdate
from proanbud.lib.account import AccountContext
from proanbud.lib.errors import NotFoundError

router = APIRouter(prefix="/api/user-settings", tags=["user-settings"])


@router.get("")
async def get_user_settings(request: Request, ctx: AccountContext = Depends(get_account)):
    settings = request.app.state.user_settings.get_user_settings(ctx)
    if settings is None:
        raise NotFoundError("userSettings", ctx.account_id,
                            user_message="Brukerinnstillinger er ikke lagret ennå")
    return settings.model_dump()


@router.put("")
async def save_user_settings(body: UserSettings, request: Request, ctx: AccountContext = Depends(get_account)):
    return request.app.state.user_settings.save_user_settings(ctx, body).model_dump()


@router.patch("")
async def update_user_settings(body: UserSettingsUpdate, request: Request,
                               ctx: AccountContext = Depends(get_account)):
    return request.app.state.user_settings.update_user_settings(ctx, body).model_dump()
