"""
Shared validators for input sanitization and security.

Used from pydantic ``field_validator`` hooks: raising ValueError there turns
into a 422 response with the message.
"""

import re
from typing import Optional

from shared.config.constants import Limits

# Free text that ends up in staff consoles, tickets and receipts
SCRIPT_TAG_PATTERN = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r"on\w+\s*=", re.IGNORECASE)

# Control characters except tab/newline/carriage return
CONTROL_CHARS_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def validate_notes(value: Optional[str], max_length: int) -> Optional[str]:
    """
    Validate a free-text note (customer or item notes).

    Args:
        value: The note (can be None)
        max_length: Maximum allowed length after trimming

    Returns:
        The trimmed note, or None when empty

    Raises:
        ValueError: If the note is too long or contains markup that could run
            in a browser
    """
    if value is None:
        return None

    value = CONTROL_CHARS_PATTERN.sub("", value).strip()
    if not value:
        return None

    if len(value) > max_length:
        raise ValueError(f"Notes too long (maximum {max_length} characters)")

    if SCRIPT_TAG_PATTERN.search(value) or EVENT_HANDLER_PATTERN.search(value):
        raise ValueError("Invalid characters in notes")

    return value


def validate_quantity(
    quantity: int,
    min_val: int = Limits.MIN_QUANTITY,
    max_val: int = Limits.MAX_QUANTITY,
) -> int:
    """
    Validate quantity is within acceptable range.

    Raises:
        ValueError: If quantity is outside allowed range
    """
    if quantity < min_val:
        raise ValueError(f"Minimum quantity is {min_val}")
    if quantity > max_val:
        raise ValueError(f"Maximum quantity is {max_val}")
    return quantity

