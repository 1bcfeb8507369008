"""
Format checks behind the validity dimension of record quality.

Each ``validate_*`` function raises ValidationError on a bad value;
``check_format`` turns that into an optional message for scoring.
"""

from typing import Any, Callable, Dict, Optional
from datetime import date, datetime
import re

import phonenumbers


class ValidationError(Exception):
    """Raised when a value does not have the expected format."""
    pass


_EMAIL = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_URL = re.compile(r"^(https?://)?([a-z0-9-]+\.)+[a-z]{2,}(:\d+)?(/\S*)?$", re.IGNORECASE)
_VAT_PATTERNS = (
    re.compile(r"^DE\d{9}$"),
    re.compile(r"^ATU\d{8}$"),
    re.compile(r"^CHE\d{9}(MWST)?$"),
)
_POSTAL = re.compile(r"^\d{4,5}$")


def validate_email(value: str) -> None:
    if not isinstance(value, str) or not _EMAIL.match(value.strip()):
        raise ValidationError("Invalid email address")


def validate_phone(value: str, region: str = "DE") -> None:
    """Check that a phone number is dialable.

    Args:
        value: Phone number in any common notation
        region: Region assumed for numbers without country prefix

    Raises:
        ValidationError: If the number cannot be parsed or is not valid
            for its region
    """
    try:
        number = phonenumbers.parse(str(value), region)
    except phonenumbers.NumberParseException:
        raise ValidationError("Invalid phone number format")
    if not phonenumbers.is_valid_number(number):
        raise ValidationError("Invalid phone number")


def canonical_phone(value: Any, region: str = "DE") -> str:
    """E.164 form of a phone number, the input text if it cannot be parsed.

    ``030-123-456`` and ``+49 30 123456`` both become ``+4930123456``.
    """
    text = str(value).strip()
    try:
        number = phonenumbers.parse(text, region)
    except phonenumbers.NumberParseException:
        return text
    if not phonenumbers.is_possible_number(number):
        return text
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def validate_date(value: Any) -> None:
    """Accept date objects and ISO 8601 strings.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, (date, datetime)):
        return
    if not isinstance(value, str):
        raise ValidationError("Date must be a date or an ISO date string")
    try:
        datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid date format, expected ISO 8601")


def validate_number(value: Any) -> None:
    """Validate a number or numeric string.

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError("Value must be a number")
    if isinstance(value, (int, float)):
        return
    try:
        float(str(value).strip().replace(",", "."))
    except ValueError:
        raise ValidationError("Value must be a number")


def validate_url(value: str) -> None:
    """Validate a web address, scheme optional."""
    if not isinstance(value, str) or not _URL.match(value.strip()):
        raise ValidationError("Invalid URL")


def validate_postal_code(value: Any) -> None:
    """Validate a DACH postal code (4 or 5 digits)."""
    text = re.sub(r"\s", "", str(value))
    if not _POSTAL.match(text):
        raise ValidationError("Invalid postal code format")


def validate_vat_id(value: str) -> None:
    """Validate a German, Austrian or Swiss VAT id."""
    text = re.sub(r"\s", "", str(value)).upper()
    if not any(p.match(text) for p in _VAT_PATTERNS):
        raise ValidationError("Invalid VAT ID format")


def validate_ean(value: Any) -> None:
    """Validate an EAN-8 or EAN-13 code including its check digit.

    Raises:
        ValidationError: If length or checksum is wrong
    """
    digits = [int(c) for c in re.sub(r"\D", "", str(value))]
    if len(digits) not in (8, 13):
        raise ValidationError("Invalid EAN length")
    # Weights alternate 3, 1 starting next to the check digit
    body = digits[:-1]
    total = sum(d * (3 if i % 2 == 0 else 1) for i, d in enumerate(reversed(body)))
    if (10 - total % 10) % 10 != digits[-1]:
        raise ValidationError("Invalid EAN checksum")


VALIDATORS: Dict[str, Callable[..., None]] = {
    "email": validate_email,
    "phone": validate_phone,
    "date": validate_date,
    "number": validate_number,
    "url": validate_url,
    "postal_code": validate_postal_code,
    "vat_id": validate_vat_id,
    "ean": validate_ean,
}


def check_format(field_type: str, value: Any, region: str = "DE") -> Optional[str]:
    """Run the validator for a field type.

    Returns:
        None if the value passes (or the type has no validator), else the
        validation message
    """
    validate = VALIDATORS.get(field_type)
    if validate is None:
        return None
    try:
        if validate is validate_phone:
            validate(value, region)
        else:
            validate(value)
    except ValidationError as e:
        return str(e)
    return None
