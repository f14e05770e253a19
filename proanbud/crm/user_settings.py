"""
Proanbud — User Settings
=========================
Personal preferences under accounts/{id}/userSettings: contact details,
notification switches, language and time zone.

Usage:
    from proanbud.crm.user_settings import UserSettingsService

    settings = UserSettingsService(store)
    settings.initialize_user_settings(ctx, name="Ola Nordmann")
"""
from __future__ import annotations

from typing import Optional

import pydantic

from models.crm_models import UserSettings, UserSettingsUpdate
from proanbud.lib.account import USER_SETTINGS, AccountContext
from proanbud.lib.document_store import SERVER_TIMESTAMP, DocumentStore, now_ms
from proanbud.lib.errors import MalformedRecordError
from proanbud.lib.logger import setup_logger
from proanbud.lib.operations import store_operation

logger = setup_logger("user_settings")


class UserSettingsService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _load(self, ctx: AccountContext) -> Optional[UserSettings]:
        value = self.store.read_all(ctx.path(USER_SETTINGS)).value
        if value is None:
            return None
        try:
            return UserSettings.model_validate(value)
        except pydantic.ValidationError as e:
            raise MalformedRecordError("userSettings", ctx.account_id, str(e)) from e

    @store_operation("hente brukerinnstillinger")
    def get_user_settings(self, ctx: AccountContext) -> Optional[UserSettings]:
        return self._load(ctx)

    @store_operation("lagre brukerinnstillinger")
    def save_user_settings(self, ctx: AccountContext, settings: UserSettings) -> UserSettings:
        """Replace all settings; last_updated is set by the store."""
        data = settings.model_dump(exclude={"last_updated"})
        data["last_updated"] = SERVER_TIMESTAMP
        self.store.write(ctx.path(USER_SETTINGS), data)
        return self._load(ctx)

    @store_operation("oppdatere brukerinnstillinger")
    def update_user_settings(self, ctx: AccountContext, updates: UserSettingsUpdate) -> UserSettings:
        """
        Merge the fields that were set. Fields sent as null are ignored;
        a missing settings node is created with defaults first.
        """
        data = updates.model_dump(exclude_none=True)
        if self._load(ctx) is None:
            return self.save_user_settings(ctx, UserSettings(**data))
        data["last_updated"] = SERVER_TIMESTAMP
        self.store.patch(ctx.path(USER_SETTINGS), data)
        return self._load(ctx)

    @store_operation("initialisere brukerinnstillinger")
    def initialize_user_settings(self, ctx: AccountContext, name: str = "", email: str = None) -> bool:
        """
        Write default settings unless the account already has some.

        Returns:
            True if defaults were written, False if settings already existed.
        """
        if self.store.read_all(ctx.path(USER_SETTINGS)).exists:
            return False

        defaults = UserSettings(
            name=name or "",
            email=email or ctx.user_email or "",
            last_updated=now_ms(),
        )
        self.store.write(ctx.path(USER_SETTINGS), defaults.model_dump())
        logger.info("Default user settings written for %s", ctx.account_id)
        return True
