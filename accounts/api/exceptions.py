import logging

from rest_framework import status
from rest_framework.views import exception_handler as drf_exception_handler

from accounts.api.responses import api_response

logger = logging.getLogger(__name__)


def _message_for_status(status_code):
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "Bad request."
    if status_code == status.HTTP_404_NOT_FOUND:
        return "Resource not found."
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return "Method not allowed."
    if status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE:
        return "Unsupported media type."
    if status_code >= 500:
        return "Internal server error."
    return "Request failed."


def _normalize_detail(payload):
    if isinstance(payload, dict) and set(payload.keys()) == {"detail"}:
        return payload["detail"]
    return payload


def custom_exception_handler(exc, context):
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.exception(
            "event=unhandled_api_exception view=%s error=%s",
            context.get("view").__class__.__name__,
            exc.__class__.__name__,
        )
        return api_response(
            detail=str(exc),
            message="Internal server error.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            data=None,
        )

    return api_response(
        detail=_normalize_detail(response.data),
        message=_message_for_status(response.status_code),
        status_code=response.status_code,
        data=None,
    )
