import hashlib
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500


def compute_title_hash(title: str) -> str:
    """SHA-256 hex digest of the trimmed title, used as the duplicate key"""
    return hashlib.sha256(title.strip().encode("utf-8")).hexdigest()


def is_valid_task_id(value: Any) -> bool:
    """Check that value is a canonical task id (UUID string)"""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def clean_text(text: Optional[str]) -> Optional[str]:
    """Trim surrounding whitespace, leaving non-strings alone"""
    if isinstance(text, str):
        return text.strip()
    return text


def normalize_task_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of fields with title and description trimmed"""
    normalized = dict(fields)
    for key in ("title", "description"):
        if key in normalized:
            normalized[key] = clean_text(normalized[key])
    return normalized


def validate_task_fields(fields: Dict[str, Any]) -> List[str]:
    """
    Validate a complete set of task fields.

    Returns every violated rule in field order; an empty list means the
    fields are valid. Lengths are measured after trimming.
    """
    errors: List[str] = []

    title = clean_text(fields.get("title"))
    if not isinstance(title, str) or not title:
        errors.append("Title is required")
    elif len(title) < TITLE_MIN_LENGTH:
        errors.append(f"Title needs to be at least {TITLE_MIN_LENGTH} characters")
    elif len(title) > TITLE_MAX_LENGTH:
        errors.append(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")

    description = clean_text(fields.get("description"))
    if description is not None:
        if not isinstance(description, str):
            errors.append("Description must be a string")
        elif len(description) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")

    if "completed" in fields and not isinstance(fields["completed"], bool):
        errors.append("Completed must be a boolean")

    return errors


def iso_utc(d: Optional[datetime]) -> Optional[str]:
    """ISO-8601 UTC string with millisecond precision and a trailing Z"""
    if d is None:
        return None
    if d.tzinfo:
        d = d.astimezone(timezone.utc).replace(tzinfo=None)
    return d.isoformat(timespec="milliseconds") + "Z"
