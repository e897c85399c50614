"""Lead quality scoring.

Additive rubric, each component awarded at most once, total capped at 100:

    email (valid)                      30
    phone (valid)                      25
    first and last name                20  (only one of them: 10)
    address with city and state        15
    demographics with more than 2 keys 10
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

MAX_SCORE = 100

EMAIL_POINTS = 30
PHONE_POINTS = 25
FULL_NAME_POINTS = 20
PARTIAL_NAME_POINTS = 10
ADDRESS_POINTS = 15
DEMOGRAPHICS_POINTS = 10

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[0-9\s\-()]{10,}$")


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.fullmatch(value))


def is_valid_phone(value: Any) -> bool:
    return isinstance(value, str) and bool(_PHONE_RE.fullmatch(value))


def quality_breakdown(lead: Mapping[str, Any] | None) -> dict[str, int]:
    lead = lead or {}
    breakdown = {
        "email": 0,
        "phone": 0,
        "name": 0,
        "address": 0,
        "demographics": 0,
    }
    if lead.get("email") and is_valid_email(lead["email"]):
        breakdown["email"] = EMAIL_POINTS
    if lead.get("phone") and is_valid_phone(lead["phone"]):
        breakdown["phone"] = PHONE_POINTS

    first_name = lead.get("first_name")
    last_name = lead.get("last_name")
    if first_name and last_name:
        breakdown["name"] = FULL_NAME_POINTS
    elif first_name or last_name:
        breakdown["name"] = PARTIAL_NAME_POINTS

    address = lead.get("address")
    if isinstance(address, Mapping) and address.get("city") and address.get("state"):
        breakdown["address"] = ADDRESS_POINTS

    demographics = lead.get("demographics")
    if isinstance(demographics, Mapping) and len(demographics) > 2:
        breakdown["demographics"] = DEMOGRAPHICS_POINTS
    return breakdown


def calculate_quality_score(lead: Mapping[str, Any] | None) -> int:
    return min(sum(quality_breakdown(lead).values()), MAX_SCORE)


def extract_location(lead: Mapping[str, Any] | None) -> str | None:
    """Resolve the region used for geo filtering: address.state, then state."""
    if not lead:
        return None
    address = lead.get("address")
    if isinstance(address, Mapping) and address.get("state"):
        return address["state"]
    return lead.get("state") or None
