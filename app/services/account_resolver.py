from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status

from app.core.config import Settings
from app.schemas.attendance import PLATFORM_INTEGRATION_TYPES, LivePlatform
from app.services.attendance_store import AttendanceStore

logger = logging.getLogger(__name__)


class AccountResolver:
    def __init__(self, settings: Settings, store: AttendanceStore) -> None:
        self.settings = settings
        self.store = store

    def resolve(self, *, platform: LivePlatform, explicit_account_id: str | None) -> str:
        account_id = (explicit_account_id or "").strip()
        if account_id:
            return account_id

        if self.settings.legacy_integration_account_lookup_enabled:
            integrations = self.store.find_connected_integrations(
                integration_type=PLATFORM_INTEGRATION_TYPES[platform],
                limit=2,
            )
            if len(integrations) == 1:
                legacy_account_id = str(integrations[0].get("account_id") or "").strip()
                if legacy_account_id:
                    logger.info(
                        "Account resolved from connected integration platform=%s account_id=%s",
                        platform.value,
                        legacy_account_id,
                    )
                    return legacy_account_id
            elif integrations:
                logger.warning(
                    "Account lookup is ambiguous; several connected integrations platform=%s",
                    platform.value,
                )

        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Account not found",
        )

    def get_integration_config(self, *, platform: LivePlatform, account_id: str | None) -> dict[str, Any]:
        if not account_id:
            return {}
        integration = self.store.get_connected_integration(
            account_id=account_id,
            integration_type=PLATFORM_INTEGRATION_TYPES[platform],
        )
        if not integration or not isinstance(integration.get("config"), dict):
            return {}
        return dict(integration["config"])
