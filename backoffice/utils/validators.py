"""
Input validation utilities
"""
from datetime import date

from backoffice.exceptions import ValidationError

ENTITY_TYPES = {"customer", "company"}
PAYMENT_METHODS = {"cash", "bank", "upi", "card", "other"}
ORDER_STATUSES = {"pending", "in_progress", "completed", "cancelled"}
MEAL_TYPES = ("lunch", "dinner")


def validate_date_range(start_date: date, end_date: date) -> tuple[date, date]:
    """Reject ranges whose end precedes the start"""
    if end_date < start_date:
        raise ValidationError("End date must not be before start date")
    return start_date, end_date


def validate_year_month(year: int, month: int) -> tuple[int, int]:
    if not year or not month or month < 1 or month > 12:
        raise ValidationError("Invalid year or month")
    return year, month


def validate_entity_type(entity_type: str) -> str:
    if entity_type not in ENTITY_TYPES:
        raise ValidationError("Invalid entityType")
    return entity_type


def validate_payment_method(method: str) -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method. Must be one of: {sorted(PAYMENT_METHODS)}")
    return method


def validate_order_status(status: str) -> str:
    if status not in ORDER_STATUSES:
        raise ValidationError("Valid status is required")
    return status
