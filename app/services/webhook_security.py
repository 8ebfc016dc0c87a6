from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import UTC, datetime

from app.schemas.attendance import ZoomUrlValidationResponse

ZOOM_SIGNATURE_VERSION = "v0"

logger = logging.getLogger(__name__)


def compute_hmac_sha256_hex(secret: str, message: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def build_url_validation_response(secret: str, plain_token: object) -> ZoomUrlValidationResponse:
    """Answer the one-time endpoint validation handshake.

    Providers retry non-2xx answers aggressively, so a malformed challenge
    still gets a well-formed body computed over an empty token.
    """
    if not isinstance(plain_token, str) or not plain_token:
        logger.warning(
            "Malformed url validation challenge has_token=%s token_type=%s",
            bool(plain_token),
            type(plain_token).__name__,
        )
        plain_token = ""

    return ZoomUrlValidationResponse(
        plain_token=plain_token,
        encrypted_token=compute_hmac_sha256_hex(secret, plain_token),
    )


def verify_zoom_signature(
    *,
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None,
    secret: str,
    tolerance_seconds: int,
    now: datetime | None = None,
) -> bool:
    if not signature or not timestamp or not secret:
        return False

    try:
        request_timestamp = int(timestamp.strip())
    except ValueError:
        return False

    current_timestamp = int((now or datetime.now(UTC)).timestamp())
    if abs(current_timestamp - request_timestamp) > tolerance_seconds:
        logger.info(
            "Signature timestamp outside tolerance skew_seconds=%s tolerance_seconds=%s",
            current_timestamp - request_timestamp,
            tolerance_seconds,
        )
        return False

    try:
        body_text = raw_body.decode("utf-8")
    except UnicodeDecodeError:
        return False

    message = f"{ZOOM_SIGNATURE_VERSION}:{timestamp.strip()}:{body_text}"
    expected_signature = f"{ZOOM_SIGNATURE_VERSION}={compute_hmac_sha256_hex(secret, message)}"
    return hmac.compare_digest(expected_signature, signature.strip())


def build_zoom_signature(*, raw_body: bytes, timestamp: int, secret: str) -> str:
    message = f"{ZOOM_SIGNATURE_VERSION}:{timestamp}:{raw_body.decode('utf-8')}"
    return f"{ZOOM_SIGNATURE_VERSION}={compute_hmac_sha256_hex(secret, message)}"


def shared_secret_matches(provided: str | None, expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def sanitize_text(value: str | None, max_length: int) -> str:
    if not value:
        return ""
    return value[:max_length].replace("<", "").replace(">", "").strip()
