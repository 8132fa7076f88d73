# finance/api.py

import json
import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from finance.models import InvoiceSequence
from finance.services.invoice_settings import (
    get_invoice_settings,
    serialize_settings,
    update_invoice_settings,
)
from finance.services.numbering import SequenceConflictError, generate_invoice_number

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "Invoice settings not configured or inactive"

# preview responses only show the number and the counter after it
PREVIEW_FIELDS = ("invoice_number", "next_sequence_no")


# ============================================================
# Helpers
# ============================================================

def _error(message: str, *, status: int = 400, **extra) -> JsonResponse:
    return JsonResponse({"success": False, "error": message, **extra}, status=status)


def _server_error(message: str, exc: Exception) -> JsonResponse:
    return JsonResponse(
        {"success": False, "error": message, "message": str(exc)},
        status=500,
    )


def _request_data(request):
    """
    JSON body for API clients, regular form data otherwise.
    Raises ValueError on a malformed JSON body.
    """
    if request.content_type == "application/json":
        if not request.body:
            return {}
        data = json.loads(request.body)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data
    return request.POST


def _first_message(message_dict: dict) -> str:
    for messages in message_dict.values():
        if messages:
            return str(messages[0])
    return "Invalid invoice settings"


# ============================================================
# API endpoints
# ============================================================

@csrf_exempt
@require_http_methods(["GET", "POST", "PUT"])
def invoice_settings_api(request):
    """
    GET  /finance/invoice-settings/  → settings + current sequence preview
    PUT  /finance/invoice-settings/  → validate and save settings
    POST /finance/invoice-settings/  → same as PUT (form posts)
    """
    if request.method == "GET":
        try:
            settings, preview = get_invoice_settings()
        except DatabaseError as exc:
            logger.exception("Error fetching invoice settings")
            return _server_error("Failed to fetch invoice settings", exc)
        return JsonResponse({"success": True, "data": serialize_settings(settings, preview)})

    try:
        data = _request_data(request)
    except ValueError:
        return _error("Invalid JSON body")

    try:
        settings, preview = update_invoice_settings(data, actor=request.user)
    except ValidationError as exc:
        return _error(_first_message(exc.message_dict), errors=exc.message_dict)
    except DatabaseError as exc:
        logger.exception("Error updating invoice settings")
        return _server_error("Failed to update invoice settings", exc)

    return JsonResponse(
        {
            "success": True,
            "message": "Invoice settings updated successfully",
            "data": serialize_settings(settings, preview),
        }
    )


@csrf_exempt
@require_http_methods(["GET", "POST"])
def invoice_number_api(request):
    """
    GET  /finance/invoice-settings/generate/ → preview, never consumes a number
    POST /finance/invoice-settings/generate/ → issue the next number

    {
      "success": true,
      "data": {"invoice_number": "INV-2024-25-0001", "next_sequence_no": 2}
    }
    """
    increment = request.method == "POST"

    try:
        result = generate_invoice_number(increment=increment)
    except (DatabaseError, SequenceConflictError) as exc:
        logger.exception("Error generating invoice number")
        return _server_error("Failed to generate invoice number", exc)

    if result is None:
        return _error(NOT_CONFIGURED_ERROR)

    data = result.as_dict()
    if not increment:
        data = {key: data[key] for key in PREVIEW_FIELDS}
    return JsonResponse({"success": True, "data": data})


@require_GET
def invoice_sequence_list_api(request):
    """
    GET /finance/invoice-settings/sequences/ → every financial year counter.
    """
    results = [
        {
            "financial_year": seq.financial_year,
            "current_sequence_no": seq.current_sequence_no,
            "last_issued_no": seq.last_issued_no,
            "updated_at": seq.updated_at.isoformat(),
        }
        for seq in InvoiceSequence.objects.all()
    ]
    return JsonResponse({"count": len(results), "results": results})
