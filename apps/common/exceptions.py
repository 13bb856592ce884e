"""
Error taxonomy shared by the ledger, allocation and settlement services.

Every domain error is an APIException so services can raise it directly and
DRF renders it through ``api_exception_handler`` without view-level mapping.
"""

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class ResourceNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found."
    default_code = "not_found"


class InsufficientStock(APIException):
    """
    Raised when a reservation or negative adjustment exceeds what a batch holds.

    ``available`` and ``requested`` are kept on the instance and rendered in the
    error body so the caller can correct the request.
    """

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"

    def __init__(self, *, batch_id, available, requested, field="quantity"):
        self.batch_id = batch_id
        self.available = available
        self.requested = requested
        self.field = field
        label = "free quantity" if field == "free_quantity" else "quantity"
        super().__init__(
            f"Insufficient {label} in batch {batch_id}. Available: {available}, requested: {requested}."
        )


class OwnershipMismatch(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Batch does not belong to the requested variant."
    default_code = "ownership_mismatch"


class InvalidStateTransition(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid state transition."
    default_code = "invalid_state"


class OrderEditLocked(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Order editing is locked. Provide the order edit password."
    default_code = "order_edit_locked"


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {"non_field_errors": response.data}

    if isinstance(exc, InsufficientStock):
        fields = {
            "batch_id": exc.batch_id,
            "available": exc.available,
            "requested": exc.requested,
            "field": exc.field,
        }

    response.data = {
        "success": False,
        "code": getattr(exc, "default_code", "error"),
        "detail": detail,
        "fields": fields,
    }
    return response
