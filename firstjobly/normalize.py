import json
from datetime import date, datetime
from typing import Any, List, Optional

from .errors import ValidationError
from .schema import OPTIONAL_STR_FIELDS, REQUIRED_MESSAGE, JobPosting, validate_posting


def clean_skills(items) -> List[str]:
    """Keep non-blank strings, trimmed, in their original order."""
    return [s.strip() for s in items if isinstance(s, str) and s.strip()]


def normalize_skills(value: Any) -> List[str]:
    """
    Accepts a list, a JSON array string or a comma-separated string.
    Any other shape yields an empty list; this never raises.
    """
    if isinstance(value, (list, tuple)):
        return clean_skills(value)
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return clean_skills(value.split(","))
        if isinstance(parsed, list):
            return clean_skills(parsed)
        if parsed is None or isinstance(parsed, dict):
            return []
        # JSON scalar such as "42" or "true" is kept as text
        return clean_skills(value.split(","))
    return []


def normalize_optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    if not isinstance(value, str):
        value = str(value)
    return value if value.strip() else None


def normalize_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def normalize_posting(payload: Any) -> JobPosting:
    """Turn a loosely typed payload into a JobPosting or raise ValidationError."""
    errors = validate_posting(payload)
    if errors:
        if not isinstance(payload, dict):
            raise ValidationError(errors[0])
        raise ValidationError(REQUIRED_MESSAGE)

    optional = {f: normalize_optional_text(payload.get(f)) for f in OPTIONAL_STR_FIELDS}
    return JobPosting(
        title=payload["title"],
        description=payload["description"],
        skills=normalize_skills(payload.get("skills")),
        posted_date=normalize_date(payload.get("posted_date")),
        **optional,
    )
