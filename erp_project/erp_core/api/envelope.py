"""
Response envelope shared by every API view:

    {"success": true,  "data": ...}
    {"success": false, "error": "..."}
"""
import datetime
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import ProtectedError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response

from ..exceptions import (AlreadyPostedDifferentPayload, TenantAccessError,
                          UnbalancedJournalError)

logger = logging.getLogger(__name__)


def ok(data=None, status=status.HTTP_200_OK, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return Response(body, status=status)


def fail(message, status=status.HTTP_400_BAD_REQUEST, details=None):
    body = {"success": False, "error": message}
    if details is not None:
        body["details"] = details
    return Response(body, status=status)


# ---------- Query parameters ----------
def parse_date(request, name):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return datetime.date.fromisoformat(raw)
    except ValueError:
        raise exceptions.ParseError(f"{name} must be a date (YYYY-MM-DD)")


def parse_decimal(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise exceptions.ParseError(f"{name} must be a number")


def parse_bool(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return None
    return raw.lower() in ("1", "true", "yes")


def _positive_int(request, name, default):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise exceptions.ParseError(f"{name} must be an integer")
    if value < 1:
        raise exceptions.ParseError(f"{name} must be at least 1")
    return value


def paginate(request, queryset):
    """Slice a queryset by ?page=&page_size=, returning (items, pagination)."""
    page = _positive_int(request, "page", 1)
    page_size = min(
        _positive_int(request, "page_size", settings.ERP_DEFAULT_PAGE_SIZE),
        settings.ERP_MAX_PAGE_SIZE,
    )
    total = queryset.count()
    start = (page - 1) * page_size
    items = list(queryset[start:start + page_size])
    pagination = {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": (total + page_size - 1) // page_size,
    }
    return items, pagination


# ---------- Exception mapping ----------
def _first_message(detail):
    """Dig the first human readable string out of a DRF error structure."""
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if key in ("non_field_errors", "detail"):
                return message
            return f"{key}: {message}"
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    return str(detail)


def _django_messages(exc: DjangoValidationError):
    if hasattr(exc, "error_dict"):
        return [
            f"{field}: {msg}" if field != "__all__" else msg
            for field, errors in exc.message_dict.items()
            for msg in errors
        ]
    return list(exc.messages)


def envelope_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER: every failure leaves as an envelope."""
    if isinstance(exc, (exceptions.ValidationError, exceptions.ParseError)):
        detail = exc.detail
        details = detail if isinstance(detail, (dict, list)) else None
        return fail(_first_message(detail), status.HTTP_400_BAD_REQUEST, details=details)

    if isinstance(exc, DjangoValidationError):
        return fail("; ".join(_django_messages(exc)), status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, ProtectedError):
        return fail("Record is referenced by other records", status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, (UnbalancedJournalError, AlreadyPostedDifferentPayload)):
        return fail(str(exc), status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return fail(
            str(exc.detail) if exc.detail else "Authentication required",
            status.HTTP_401_UNAUTHORIZED,
        )

    if isinstance(exc, (exceptions.PermissionDenied, TenantAccessError)):
        return fail(str(getattr(exc, "detail", exc)), status.HTTP_403_FORBIDDEN)

    if isinstance(exc, (Http404, exceptions.NotFound)):
        message = str(getattr(exc, "detail", "") or exc) or "Not found"
        return fail(message, status.HTTP_404_NOT_FOUND)

    if isinstance(exc, exceptions.APIException):
        # MethodNotAllowed, Throttled, UnsupportedMediaType ...
        return fail(str(exc.detail), exc.status_code)

    logger.exception("Unhandled API error in %s", context.get("view"))
    return fail("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
