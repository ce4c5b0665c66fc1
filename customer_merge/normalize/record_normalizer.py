"""
Match-key normalization for CustomerMerge.

Builds the exact-match keys used by the matcher: the normalized phone and
the lowercase full-name key.
"""

import re
from typing import Optional

from customer_merge.models import CustomerRecord

_PHONE_NOISE = re.compile(r"[\s\-()]")


def normalize_phone(phone: Optional[str]) -> str:
    """
    Strip whitespace and the characters ``-``, ``(`` and ``)`` from a phone.

    Args:
        phone: Raw phone string

    Returns:
        Normalized phone, empty if nothing is left
    """
    if not phone:
        return ""
    return _PHONE_NOISE.sub("", str(phone))


def normalize_name_part(value: Optional[str]) -> str:
    """Lowercase and trim one name component."""
    if not value:
        return ""
    return str(value).lower().strip()


def name_key(first_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Build the full-name key used by the exact-name pass.

    Args:
        first_name: Raw first name
        last_name: Raw last name

    Returns:
        ``"first last"`` lowercased and trimmed, empty if both parts are blank
    """
    return f"{normalize_name_part(first_name)} {normalize_name_part(last_name)}".strip()


def record_phone_key(record: CustomerRecord) -> str:
    return normalize_phone(record.phone)


def record_name_key(record: CustomerRecord) -> str:
    return name_key(record.first_name, record.last_name)
