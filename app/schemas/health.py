from datetime import datetime

from pydantic import BaseModel


class WebhookReadiness(BaseModel):
    zoom_signing_secret_configured: bool
    zoom_signature_verification_enabled: bool
    google_meet_shared_secret_configured: bool


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    attendance_store: str
    webhooks: WebhookReadiness
    timestamp: datetime
