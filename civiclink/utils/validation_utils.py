"""
civiclink/utils/validation_utils.py

Purpose: Input validation and normalization

- Credential normalization (phone, email, voter ID)
- Indian mobile number and EPIC number formats
- ObjectId coercion for civic references
- Input sanitization
"""

import re
from typing import Optional, Any

from bson import ObjectId
from bson.errors import InvalidId


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# EPIC (voter ID) numbers: 3 letters followed by 7 digits
VOTER_ID_PATTERN = r"^[A-Z]{3}[0-9]{7}$"


def is_set(value: Optional[str]) -> bool:
    """
    Empty strings and None are both treated as "not set".
    """
    return value is not None and value != ""


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Trims and lowercases an email address.

    Args:
        email: Raw email input

    Returns:
        Normalized email, "" for blank input, None when absent
    """
    if email is None:
        return None
    return email.strip().lower()


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Canonicalizes an Indian mobile number to E.164 ("+91" + 10 digits).

    "9990001111", "09990001111", "919990001111" and "+91 99900-01111"
    all become "+919990001111". Input that is not a recognizable Indian
    mobile number is only stripped of spaces, dashes and brackets, so
    validation can reject it.
    """
    if phone is None:
        return None
    phone = re.sub(r"[\s\-\(\)]", "", phone.strip())

    digits = phone[1:] if phone.startswith("+") else phone
    if len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]

    if re.match(r"^[6-9]\d{9}$", digits):
        return f"+91{digits}"
    return phone


def normalize_voter_id(voter_id: Optional[str]) -> Optional[str]:
    if voter_id is None:
        return None
    return voter_id.strip().upper()


def validate_email(email: str) -> bool:
    if not email:
        return False
    return bool(re.match(EMAIL_PATTERN, email.strip()))


def validate_phone_number(phone: str) -> bool:
    """
    Validates Indian phone number format.

    Args:
        phone: Phone number string

    Returns:
        True if valid Indian mobile number
    """
    if not phone:
        return False

    phone = re.sub(r"[\s\-\(\)\+]", "", phone)

    # Remove country code if present
    if len(phone) == 12 and phone.startswith("91"):
        phone = phone[2:]

    # Starts with 6-9, 10 digits total
    return bool(re.match(r"^[6-9]\d{9}$", phone))


def validate_voter_id(voter_id: str) -> bool:
    """
    Validates EPIC number format, e.g. ABC1234567.
    """
    if not voter_id:
        return False
    return bool(re.match(VOTER_ID_PATTERN, voter_id.strip().upper()))


def to_object_id(value: Any) -> Optional[ObjectId]:
    """
    Coerces a reference to an ObjectId.

    Args:
        value: ObjectId, 24-char hex string or None

    Returns:
        ObjectId, or None for empty input

    Raises:
        ValueError: If the value is not a valid ObjectId
    """
    if value is None or value == "":
        return None
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as e:
        raise ValueError(f"Invalid id: {value}") from e


def sanitize_input(text: str, max_length: int = 1000) -> str:
    """
    Sanitizes free-text profile input.

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    text = text[:max_length]
    text = re.sub(r"[<>{}\[\]]", "", text)
    text = " ".join(text.split())

    return text.strip()
