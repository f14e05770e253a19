"""
Company profile stored under accounts/{id}/businessSettings.
"""
from __future__ import annotations

from typing import Optional

import pydantic

from models.crm_models import BusinessSettings, BusinessSettingsUpdate
from proanbud.lib.account import BUSINESS_SETTINGS, AccountContext
from proanbud.lib.document_store import SERVER_TIMESTAMP, DocumentStore
from proanbud.lib.errors import MalformedRecordError
from proanbud.lib.logger import setup_logger
from proanbud.lib.operations import store_operation

logger = setup_logger("business")


class BusinessSettingsService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _read(self, ctx: AccountContext) -> Optional[BusinessSettings]:
        snapshot = self.store.read_all(ctx.path(BUSINESS_SETTINGS))
        if not snapshot.exists:
            return None
        if not isinstance(snapshot.value, dict):
            raise MalformedRecordError("businessSettings", ctx.account_id, "not an object")
        try:
            return BusinessSettings.model_validate(snapshot.value)
        except pydantic.ValidationError as e:
            raise MalformedRecordError("businessSettings", ctx.account_id, str(e)) from e

    @store_operation("hente bedriftsinnstillinger")
    def get_business_settings(self, ctx: AccountContext) -> Optional[BusinessSettings]:
        """Stored profile, or None if the account has never saved one."""
        return self._read(ctx)

    @store_operation("lagre bedriftsinnstillinger")
    def save_business_settings(self, ctx: AccountContext, settings: BusinessSettings) -> BusinessSettings:
        """Replace the whole profile. created_at is kept from the first save."""
        existing = self._read(ctx)
        data = settings.model_dump(exclude={"last_updated", "created_at"})
        data["last_updated"] = SERVER_TIMESTAMP
        if existing is not None and existing.created_at:
            data["created_at"] = existing.created_at
        else:
            data["created_at"] = SERVER_TIMESTAMP

        self.store.write(ctx.path(BUSINESS_SETTINGS), data)
        logger.info("Saved business settings for %s", ctx.account_id)
        return self._read(ctx)

    @store_operation("oppdatere bedriftsinnstillinger")
    def update_business_settings(self, ctx: AccountContext, updates: BusinessSettingsUpdate) -> BusinessSettings:
        """Merge the set fields into the profile, creating it with defaults if absent."""
        existing = self._read(ctx)
        if existing is None:
            merged = BusinessSettings(**updates.model_dump(exclude_unset=True))
            return self.save_business_settings(ctx, merged)

        data = updates.model_dump(exclude_unset=True)
        data["last_updated"] = SERVER_TIMESTAMP
        self.store.patch(ctx.path(BUSINESS_SETTINGS), data)
        return self._read(ctx)
