"""Shared plumbing for the HTTP handlers."""

import base64
import json
import logging

from ..clients import FalClient, SupabaseClient
from ..config import FAL_API_KEY, SUPABASE_SERVICE_KEY, SUPABASE_URL
from ..errors import (
    BeforeAfterError,
    InsufficientCreditsError,
    NotFoundError,
    RemoteError,
    ValidationError,
)
from ..models.session import UploadSession
from ..services.credits import CreditService
from ..services.enhancement import EnhancementService
from ..stores import SupabaseCreditStore, SupabaseJobStore

logger = logging.getLogger(__name__)


def parse_body(event: dict) -> dict:
    """Request body from an HTTP or SQS event."""
    if "Records" in event:
        return json.loads(event["Records"][0]["body"])

    body = event.get("body") or "{}"
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8")
    if isinstance(body, dict):
        return body
    return json.loads(body)


def session_from_event(event: dict) -> UploadSession:
    """Authenticated user from the authorizer claims. A user_id in the body is never trusted."""
    claims = (event.get("requestContext") or {}).get("authorizer", {}).get("claims", {})
    user_id = claims.get("sub")
    if not user_id:
        raise ValidationError("Missing user")
    return UploadSession(user_id=user_id)


def respond(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def error_response(error: Exception) -> dict:
    """Map package errors onto HTTP status codes."""
    match error:
        case InsufficientCreditsError():
            return respond(402, {
                "error": str(error),
                "creditsRemaining": error.credits_remaining,
                "creditsRequired": error.credits_required,
            })
        case ValidationError():
            return respond(400, {"error": str(error)})
        case NotFoundError():
            return respond(404, {"error": str(error)})
        case RemoteError():
            return respond(503, {"error": "AI service temporarily unavailable", "details": str(error)})
        case BeforeAfterError():
            return respond(500, {"error": str(error)})
        case _:
            logger.exception("Unexpected handler error")
            return respond(500, {"error": "Internal server error"})


def build_enhancement_service() -> EnhancementService:
    supabase = SupabaseClient(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return EnhancementService(
        fal=FalClient(FAL_API_KEY),
        jobs=SupabaseJobStore(supabase),
        credits=build_credit_service(supabase),
        uploader=supabase,
    )


def build_credit_service(supabase: SupabaseClient | None = None) -> CreditService:
    supabase = supabase or SupabaseClient(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return CreditService(SupabaseCreditStore(supabase))
