"""
Phone Number Helpers
"""
import random
import re
from typing import List, Optional


def normalize_phone_number(phone: str) -> str:
    """
    Normalize phone number to E.164 format.

    Handles common formats:
    - (555) 123-4567 -> +15551234567 (assumes US if no country code)
    - 555.123.4567 -> +15551234567
    - +44 20 7946 0958 -> +442079460958

    Raises:
        ValueError: If phone is invalid
    """
    if not phone:
        raise ValueError("Phone number is empty")

    has_plus = phone.strip().startswith('+')
    cleaned = re.sub(r'[^\d]', '', phone)

    if not cleaned:
        raise ValueError("Phone number contains no digits")
    if len(cleaned) < 7:
        raise ValueError("Phone number too short (minimum 7 digits)")
    if len(cleaned) > 15:
        raise ValueError("Phone number too long (maximum 15 digits)")

    if has_plus:
        return f"+{cleaned}"
    if len(cleaned) == 10:
        return f"+1{cleaned}"
    return f"+{cleaned}"


def parse_number_pool(raw: Optional[str]) -> List[str]:
    """Comma-separated caller ids -> normalized list, invalid entries dropped."""
    numbers = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            numbers.append(normalize_phone_number(part))
        except ValueError:
            continue
    return numbers


def pick_caller_id(pool: List[str], rng: Optional[random.Random] = None) -> str:
    if not pool:
        raise ValueError("No caller id configured")
    return (rng or random).choice(pool)
