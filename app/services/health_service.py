from datetime import UTC, datetime

from app.core.config import Settings
from app.schemas.health import HealthResponse, WebhookReadiness


class HealthService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def get_status(self) -> HealthResponse:
        return HealthResponse(
            service=self.settings.app_name,
            version=self.settings.app_version,
            attendance_store=self.settings.attendance_store,
            webhooks=WebhookReadiness(
                zoom_signing_secret_configured=bool(self.settings.zoom_webhook_secret.strip()),
                zoom_signature_verification_enabled=self.settings.zoom_signature_verification_enabled,
                google_meet_shared_secret_configured=bool(self.settings.google_meet_webhook_secret.strip()),
            ),
            timestamp=datetime.now(UTC),
        )
