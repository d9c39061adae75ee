"""
Common validators and utilities for the fleet compliance backend.

This module contains shared validation logic used by the ELD ledger, the
HOS calculator and their API serializers.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import BaseValidator

from .exceptions import ValidationError


class GPSCoordinateValidator(BaseValidator):
    """
    Validator for GPS coordinates (latitude/longitude).

    Ensures coordinates are within valid ranges:
    - Latitude: -90 to 90 degrees
    - Longitude: -180 to 180 degrees
    """

    def __init__(self, coordinate_type="latitude"):
        self.coordinate_type = coordinate_type

        if coordinate_type == "latitude":
            self.limit_value = (-90, 90)
            self.message = "Latitude must be between -90 and 90 degrees."
        elif coordinate_type == "longitude":
            self.limit_value = (-180, 180)
            self.message = "Longitude must be between -180 and 180 degrees."
        else:
            raise ValueError("coordinate_type must be 'latitude' or 'longitude'")

    def compare(self, value, limit_value):
        min_val, max_val = limit_value
        return not (min_val <= float(value) <= max_val)

    def clean(self, value):
        return float(value)


def validate_latitude(value):
    """Validate latitude coordinate."""
    validator = GPSCoordinateValidator("latitude")
    validator(value)


def validate_longitude(value):
    """Validate longitude coordinate."""
    validator = GPSCoordinateValidator("longitude")
    validator(value)


def validate_timezone_name(value):
    """Validate an IANA time zone name such as 'America/Chicago'."""
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise DjangoValidationError(f"Unknown time zone: {value}")


def resolve_timezone(value):
    """Return a tzinfo for a zone name, passing tzinfo objects through."""
    if value is None or hasattr(value, "utcoffset"):
        return value
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {value}", zone=value)


def ensure_aware(value, field_name, driver_id=None):
    """
    Reject naive datetimes.

    Regulatory records are kept as absolute instants; a naive value cannot be
    placed on a driver's timeline without guessing an offset.
    """
    if value is None:
        return value
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationError(
            f"{field_name} must be timezone-aware",
            driver_id=driver_id,
            field=field_name,
        )
    return value
