"""
Platform field-length limits and truncation helpers.

Generic ad fields (headline, description, display_url, ...) are mapped to
the platform's own field names before the limit lookup, e.g. a Reddit
headline is checked as 'title'.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

AD_FIELDS = ("headline", "description", "display_url", "final_url", "call_to_action")

ELLIPSIS = "..."

PLATFORM_LIMITS: Dict[str, Dict[str, int]] = {
    "google": {
        "headline": 30,
        "description": 90,
        "display_url": 30,      # path1 (15) + path2 (15)
    },
    "facebook": {
        "headline": 40,
        "primary_text": 125,
        "description": 30,
    },
    "reddit": {
        "title": 300,
        "text": 500,
    },
}

# generic field -> platform field
FIELD_MAPPING: Dict[str, Dict[str, str]] = {
    "reddit": {
        "headline": "title",
        "description": "text",
    },
}


@dataclass
class FieldLengthResult:
    valid: bool
    overflow: int
    length: int
    limit: Optional[int] = None


@dataclass
class AllFieldsLengthResult:
    all_valid: bool
    total_overflow: int
    invalid_fields: List[str] = field(default_factory=list)
    fields: Dict[str, FieldLengthResult] = field(default_factory=dict)


def get_field_limit(platform: str, field_name: str) -> Optional[int]:
    """Character limit for a generic or platform field name, None if undefined."""
    limits = PLATFORM_LIMITS.get(platform)
    if limits is None:
        return None
    mapped = FIELD_MAPPING.get(platform, {}).get(field_name, field_name)
    return limits.get(mapped)


def check_field_length(value: str, platform: str, field_name: str) -> FieldLengthResult:
    length = len(value or "")
    limit = get_field_limit(platform, field_name)
    if limit is None:
        return FieldLengthResult(valid=True, overflow=0, length=length, limit=None)
    overflow = max(0, length - limit)
    return FieldLengthResult(valid=overflow == 0, overflow=overflow, length=length, limit=limit)


def check_all_field_lengths(ad: Mapping[str, Any], platform: str) -> AllFieldsLengthResult:
    """Check every ad field the ad sets; unset (None) fields are skipped."""
    result = AllFieldsLengthResult(all_valid=True, total_overflow=0)
    for name in AD_FIELDS:
        value = ad.get(name)
        if value is None:
            continue
        check = check_field_length(str(value), platform, name)
        result.fields[name] = check
        if not check.valid:
            result.all_valid = False
            result.total_overflow += check.overflow
            result.invalid_fields.append(name)
    return result


# ─────────────────────────────────────────────────────────────
# Truncation
# ─────────────────────────────────────────────────────────────
def truncate_text(text: str, limit: int) -> str:
    """Character truncation with a 3-char ellipsis; limits <= 3 cut bare."""
    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:max(limit, 0)]
    return text[:limit - len(ELLIPSIS)] + ELLIPSIS


def truncate_to_word_boundary(text: str, limit: int) -> str:
    """Cut at the last space before the truncation point, else truncate_text()."""
    if len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return truncate_text(text, limit)

    cut = text[:limit - len(ELLIPSIS)]
    last_space = cut.rfind(" ")
    if last_space <= 0:
        return truncate_text(text, limit)
    return cut[:last_space].rstrip() + ELLIPSIS
