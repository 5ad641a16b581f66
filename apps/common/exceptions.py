import logging

from rest_framework import exceptions
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ApiError(exceptions.APIException):
    """Business-rule failure carrying extra keys for the error envelope."""

    status_code = 400
    default_detail = "Request could not be processed"

    def __init__(self, message=None, status_code=None, **extra):
        super().__init__(detail=message or self.default_detail)
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


def api_exception_handler(exc, context):
    """Render every DRF error as {"success": false, "message": ...}."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(exc, exceptions.ValidationError):
        body = {"success": False, "message": "Validation errors", "errors": data}
    elif isinstance(data, dict) and "detail" in data:
        body = {"success": False, "message": str(data["detail"])}
    else:
        body = {"success": False, "message": str(data)}

    if isinstance(exc, exceptions.Throttled):
        body["message"] = "Too many requests, please try again later."
        body["retryAfter"] = exc.wait
    body.update(getattr(exc, "extra", {}))

    if response.status_code >= 500:
        logger.error(f"API error {response.status_code} on {context['request'].path}: {body['message']}")

    response.data = body
    return response
