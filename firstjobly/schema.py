from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Dict, List, Optional

REQUIRED_STR_FIELDS = ["title", "description"]
OPTIONAL_STR_FIELDS = [
    "company_name",
    "company_logo",
    "job_req_id",
    "apply_link",
    "location",
    "experience",
    "remote_type",
    "time_type",
]
# Never changed by an upsert
WRITE_ONCE_FIELDS = ["id", "created_at", "job_req_id"]

REQUIRED_MESSAGE = "title and description are required"


@dataclass
class JobPosting:
    """A job posting as stored and served."""

    title: str
    description: str
    company_name: Optional[str] = None
    company_logo: Optional[str] = None
    job_req_id: Optional[str] = None
    apply_link: Optional[str] = None
    location: Optional[str] = None
    experience: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    remote_type: Optional[str] = None
    time_type: Optional[str] = None
    posted_date: Optional[date] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def column_values(self) -> Dict[str, Any]:
        """Values for an INSERT; store-assigned columns are left out."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in ("id", "created_at")
        }

    def assigned_fields(self) -> List[str]:
        """Mutable fields that carry a value and may overwrite stored data."""
        names = []
        for f in fields(self):
            if f.name in WRITE_ONCE_FIELDS:
                continue
            value = getattr(self, f.name)
            if value is None or (f.name == "skills" and not value):
                continue
            names.append(f.name)
        return names

    @classmethod
    def from_row(cls, row) -> "JobPosting":
        """Build from a result row mapping."""
        names = {f.name for f in fields(cls)}
        data = {k: v for k, v in dict(row).items() if k in names}
        if data.get("skills") is None:
            data["skills"] = []
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation used in API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "company_name": self.company_name,
            "company_logo": self.company_logo,
            "job_req_id": self.job_req_id,
            "apply_link": self.apply_link,
            "location": self.location,
            "experience": self.experience,
            "skills": list(self.skills),
            "remote_type": self.remote_type,
            "time_type": self.time_type,
            "posted_date": self.posted_date.isoformat() if self.posted_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_posting(data: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Only title and description are mandatory; everything else is coerced
    by the normalizer.
    """
    if not isinstance(data, dict):
        return ["payload must be a JSON object"]

    errors: List[str] = []
    for f in REQUIRED_STR_FIELDS:
        if f not in data or data[f] is None:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")
    return errors
