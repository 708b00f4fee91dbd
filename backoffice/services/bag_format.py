"""
Bag-format codec.

A bag format is the compact notation staff use for a customer's meal bags:
``NONVEG[,NONVEG...][+VEG]``. ``"5,5+7"`` is two non-veg drops of 5 plus 7 veg
(10 non-veg, 7 veg, 17 total); ``"12"`` is 12 non-veg; ``""`` is no order.
Parsing never raises: anything unreadable counts as zero bags.
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel

from backoffice.exceptions import ValidationError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_LEADING_DIGITS = re.compile(r"\d+")


class ParsedBagFormat(BaseModel):
    non_veg_count: int = 0
    veg_count: int = 0
    total_count: int = 0


class BagFormatValidation(BaseModel):
    is_valid: bool
    parsed: Optional[ParsedBagFormat] = None
    error: Optional[str] = None


def _parse_count(token: str) -> int:
    """Leading digits of a token; anything else counts as 0"""
    match = _LEADING_DIGITS.match(token)
    return int(match.group()) if match else 0


def _sum_counts(segment: str) -> int:
    return sum(_parse_count(token) for token in segment.split(","))


def parse_bag_format(bag_format: Any) -> ParsedBagFormat:
    """Parse a bag format into non-veg, veg and total counts"""
    try:
        cleaned = _WHITESPACE.sub("", bag_format).lower()
        parts = cleaned.split("+")

        non_veg = _sum_counts(parts[0])
        # Veg side is a single number; segments after a second '+' are ignored
        veg = _parse_count(parts[1]) if len(parts) > 1 else 0

        return ParsedBagFormat(
            non_veg_count=non_veg,
            veg_count=veg,
            total_count=non_veg + veg,
        )
    except Exception as e:
        logger.warning(f"Unparseable bag format {bag_format!r}: {e}")
        return ParsedBagFormat()


def format_bag_display(non_veg_count: int, veg_count: int) -> str:
    """Inverse display helper: "12" or "10+7" """
    if veg_count == 0:
        return str(non_veg_count)
    return f"{non_veg_count}+{veg_count}"


def calculate_nea_end_time(start_time: datetime, duration_hours: int = 4) -> datetime:
    """Consume-by time of the NEA food-safety window"""
    return start_time + timedelta(hours=duration_hours)


def validate_and_parse_bag_format(bag_format: Any) -> BagFormatValidation:
    """Validation gate for bag formats typed in by staff"""
    if not bag_format or not isinstance(bag_format, str):
        return BagFormatValidation(
            is_valid=False, error="Bag format is required and must be a string"
        )

    parsed = parse_bag_format(bag_format)
    if parsed.total_count == 0:
        return BagFormatValidation(
            is_valid=False, error="Bag format must contain at least one item"
        )

    return BagFormatValidation(is_valid=True, parsed=parsed)


def validate_daily_food_value(bag_format: str, label: str = "bag format") -> str:
    """Daily-food template edit: blank clears the meal, anything else must validate"""
    if bag_format is None or bag_format.strip() == "":
        return ""

    validation = validate_and_parse_bag_format(bag_format)
    if not validation.is_valid:
        raise ValidationError(f"Invalid {label}: {validation.error}")
    return bag_format.strip()
