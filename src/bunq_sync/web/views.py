"""
Views for the HTTP trigger.

Request: JSON body ``{"mode": ..., "household_id": ..., "date_from": ...}``;
mode and household_id may also come as query parameters. Response:
``{"ok": true, ...}`` or ``{"ok": false, "error": ...}`` with a non-2xx status.
"""

import json
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from ..bunq_client import BunqError
from ..config import ConfigValidationError, load_config
from ..services import (
    BankSyncService,
    CategoryResolutionError,
    ConnectionNotFoundError,
    IdentityBootstrapError,
    InvalidRequestError,
    SessionRenewalError,
)
from ..state_store import StateStore

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

# Exception type → HTTP status, checked in order
ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (InvalidRequestError, 400),
    (ConfigValidationError, 400),
    (ConnectionNotFoundError, 404),
    (CategoryResolutionError, 422),
    (IdentityBootstrapError, 502),
    (SessionRenewalError, 502),
    (BunqError, 502),
)


def _with_cors(response: HttpResponse) -> HttpResponse:
    for header, value in CORS_HEADERS.items():
        response[header] = value
    return response


def _json(payload: dict, status: int = 200) -> HttpResponse:
    return _with_cors(JsonResponse(payload, status=status))


def _parse_body(request: HttpRequest) -> dict:
    """JSON body as a dict; anything else counts as an empty body."""
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Ignoring non-JSON request body")
        return {}
    return body if isinstance(body, dict) else {}


def build_service() -> BankSyncService:
    """Build the orchestrator from the configured config file and environment."""
    config = load_config(getattr(settings, "BUNQ_SYNC_CONFIG", "config.yaml"))
    return BankSyncService.from_config(config, StateStore(config.state_db_path))


@csrf_exempt
def poll_bunq(request: HttpRequest) -> HttpResponse:
    """Run one worker invocation."""
    if request.method == "OPTIONS":
        return _with_cors(HttpResponse(status=200))

    if request.method not in ("GET", "POST"):
        return _json({"ok": False, "error": f"Method {request.method} not allowed"}, status=405)

    body = _parse_body(request)
    mode = body.get("mode") or request.GET.get("mode")
    household_id = body.get("household_id") or request.GET.get("household_id")
    date_from = body.get("date_from") or request.GET.get("date_from")

    try:
        service = build_service()
        payload = service.run(mode, household_id=household_id, date_from=date_from)
    except Exception as e:
        for error_type, status in ERROR_STATUS:
            if isinstance(e, error_type):
                logger.error("poll-bunq %s failed (%d): %s", mode or "auto", status, e)
                return _json({"ok": False, "error": str(e)}, status=status)
        logger.exception("poll-bunq error")
        return _json({"ok": False, "error": str(e)}, status=500)

    return _json(payload)
