"""
HOS engine exceptions and the API exception handler.

Every condition raised by the ledger, amendment workflow, rule-set registry
and calculator is a subclass of HOSEngineError. Each carries enough context
(driver, entry, offending timestamp) for the caller to decide whether to
retry or to present the condition to a person.
"""

from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError


class HOSEngineError(Exception):
    """Base class for all HOS engine errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "hos_error"

    def __init__(self, message, driver_id=None, entry_id=None, timestamp=None, **context):
        super().__init__(message)
        self.message = message
        self.driver_id = driver_id
        self.entry_id = entry_id
        self.timestamp = timestamp
        self.context = context

    def to_dict(self):
        """Return the error context in a JSON-ready form."""
        data = {}
        if self.driver_id is not None:
            data["driver_id"] = str(self.driver_id)
        if self.entry_id is not None:
            data["entry_id"] = str(self.entry_id)
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp.isoformat()
        for key, value in self.context.items():
            data[key] = value.isoformat() if hasattr(value, "isoformat") else str(value)
        return data


class ConflictError(HOSEngineError):
    """Out-of-order or concurrent append for a driver."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class AlreadyCertifiedError(HOSEngineError):
    """Entry was certified before."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "already_certified"


class OpenEntryError(HOSEngineError):
    """Operation needs a closed entry but the entry is still open."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "open_entry"


class UnknownRuleSetError(HOSEngineError):
    """No rule set is registered (or in force) under the requested key."""

    default_code = "unknown_rule_set"


class InvalidTransitionError(HOSEngineError):
    """State machine transition is not allowed."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_transition"


class SelfApprovalError(InvalidTransitionError):
    """Amendment decided by the entry author or by the requester."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "self_approval"


class ValidationError(HOSEngineError):
    """Malformed input."""

    default_code = "validation_error"


class EntryNotFoundError(HOSEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "entry_not_found"


class AmendmentNotFoundError(HOSEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "amendment_not_found"


class ViolationNotFoundError(HOSEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "violation_not_found"


class ViolationPersistenceError(HOSEngineError):
    """Detected violations could not be stored."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "violation_persistence_failed"


def hos_exception_handler(exc, context):
    """
    Exception handler giving engine and DRF errors one response format.

    Engine errors become {"status": "error", "message", "code", "context"}
    with the status code declared on the exception class. Everything else
    goes through DRF's default handler and is reshaped the same way.
    """
    from rest_framework.response import Response
    from rest_framework.views import exception_handler

    if isinstance(exc, HOSEngineError):
        return Response(
            {
                "status": "error",
                "message": exc.message,
                "code": exc.default_code,
                "context": exc.to_dict(),
            },
            status=exc.status_code,
        )

    response = exception_handler(exc, context)

    if response is not None:
        custom_response_data = {
            "status": "error",
            "message": str(exc.detail) if hasattr(exc, "detail") else str(exc),
        }

        # Field errors from serializers keep their structure
        if isinstance(exc, DRFValidationError):
            if isinstance(exc.detail, dict):
                custom_response_data["errors"] = exc.detail
            else:
                custom_response_data["errors"] = {"non_field_errors": exc.detail}

        if hasattr(exc, "default_code"):
            custom_response_data["code"] = exc.default_code

        response.data = custom_response_data

    return response
