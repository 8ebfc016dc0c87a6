import logging
from collections.abc import Callable

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.schemas.attendance import (
    GoogleMeetWebhookResponse,
    ZoomUrlValidationResponse,
    ZoomWebhookResponse,
)
from app.services.attendance_webhook_service import (
    AttendanceWebhookResult,
    AttendanceWebhookService,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/zoom", response_model=None)
async def receive_zoom_webhook(
    request: Request,
    account_id: str | None = None,
) -> ZoomWebhookResponse | ZoomUrlValidationResponse | JSONResponse:
    raw_body = await request.body()
    logger.info(
        "Webhook received provider=zoom path=%s has_account_id=%s has_signature=%s",
        str(request.url.path),
        bool(account_id),
        bool(request.headers.get("x-zm-signature")),
    )
    result = _process_webhook(
        provider="zoom",
        request=request,
        handler=lambda: AttendanceWebhookService(get_settings()).process_zoom_webhook(
            raw_body=raw_body,
            account_id=account_id,
            signature=request.headers.get("x-zm-signature"),
            timestamp=request.headers.get("x-zm-request-timestamp"),
        ),
    )
    if isinstance(result, JSONResponse):
        return result
    if result.challenge:
        return result.challenge
    return ZoomWebhookResponse(
        success=True,
        event=result.provider_event_type,
        outcome=result.outcome,
    )


@router.post("/google-meet", response_model=None)
async def receive_google_meet_webhook(
    request: Request,
    account_id: str | None = None,
) -> GoogleMeetWebhookResponse | JSONResponse:
    raw_body = await request.body()
    logger.info(
        "Webhook received provider=google_meet path=%s has_account_id=%s",
        str(request.url.path),
        bool(account_id),
    )
    result = _process_webhook(
        provider="google_meet",
        request=request,
        handler=lambda: AttendanceWebhookService(get_settings()).process_google_meet_webhook(
            raw_body=raw_body,
            account_id=account_id,
            shared_secret=_extract_shared_secret(request),
        ),
    )
    if isinstance(result, JSONResponse):
        return result
    return GoogleMeetWebhookResponse(
        success=True,
        event_type=result.provider_event_type,
        outcome=result.outcome,
    )


def _process_webhook(
    provider: str,
    request: Request,
    handler: Callable[[], AttendanceWebhookResult],
) -> AttendanceWebhookResult | JSONResponse:
    try:
        result = handler()
    except HTTPException as exc:
        logger.warning(
            "Webhook rejected provider=%s path=%s status_code=%s detail=%s",
            provider,
            str(request.url.path),
            exc.status_code,
            exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    except Exception:
        logger.exception(
            "Webhook processing failed provider=%s path=%s",
            provider,
            str(request.url.path),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Request failed"},
        )

    logger.info(
        "Webhook processed provider=%s path=%s event=%s outcome=%s account_id=%s",
        provider,
        str(request.url.path),
        result.provider_event_type,
        result.outcome,
        result.account_id,
    )
    return result


def _extract_shared_secret(request: Request) -> str | None:
    x_webhook_secret = request.headers.get("x-webhook-secret")
    if x_webhook_secret:
        return x_webhook_secret.strip()

    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    auth_scheme, _, auth_token = authorization.partition(" ")
    if auth_scheme.lower() != "bearer":
        return None

    token = auth_token.strip()
    return token or None
