"""Shared validation utilities"""

import re
from datetime import time
from typing import Optional, Union


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number to E.164-like storage format.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number (+ followed by 7 to 15 digits)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if not 7 <= len(digits) <= 15:
        raise ValueError("Phone number must contain between 7 and 15 digits")

    return f"+{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def parse_clock_time(value: Union[str, time]) -> time:
    """
    Parse a wall-clock time of day.

    Accepts "HH:MM" or "HH:MM:00" strings and time objects. Bookings work at
    minute resolution, so a non-zero seconds part is rejected rather than
    rounded away.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise ValueError("Time must not have seconds")
        return value.replace(tzinfo=None)

    match = re.fullmatch(r"\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*", str(value))
    if not match:
        raise ValueError("Time must be in HH:MM format")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError("Time must be a valid time of day")
    if match.group(3) and int(match.group(3)) != 0:
        raise ValueError("Time must not have seconds")

    return time(hour, minute)
