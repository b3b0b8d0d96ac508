"""
Error types shared by the payroll and social charges apps.

Validation failures use ``rest_framework.exceptions.ValidationError`` and
missing records use ``rest_framework.exceptions.NotFound``; the two classes
below cover the server-side failures.
"""
from rest_framework import status
from rest_framework.exceptions import APIException


class RecalculationError(APIException):
    """The ledger rows of an employee-project pair could not be loaded."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to recalculate social charges balances."
    default_code = "recalculation_error"


class PersistenceError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "A storage error occurred."
    default_code = "persistence_error"
