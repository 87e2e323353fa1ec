"""Keyword fallback for job-email parsing when the LLM is unavailable."""

import re
from typing import Dict, Optional

from models import Urgency

TITLE_PREFIX_PATTERN = re.compile(r"^\s*(urgent:|re:|fwd:)\s*", re.IGNORECASE)

URGENCY_PATTERN = re.compile(
    r"\b(ASAP|urgent|urgently|immediate|immediately|emergency cover|as soon as possible)\b",
    re.IGNORECASE,
)

# "Speciality: Cardiology" style lines in NHS vacancy emails
FIELD_PATTERNS = {
    "specialization": re.compile(r"^\s*-?\s*(?:speciality|specialty|specialization)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE),
    "grade": re.compile(r"^\s*-?\s*grade\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE),
    "location": re.compile(r"^\s*-?\s*location\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE),
    "salary": re.compile(r"^\s*-?\s*(?:rate|salary)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE),
}

DESCRIPTION_CHARS = 200


def clean_title(subject: str) -> str:
    """Strip a leading "Urgent:", "Re:" or "Fwd:" from an email subject."""
    return TITLE_PREFIX_PATTERN.sub("", subject or "", count=1).strip()


def get_urgency(text: str) -> Urgency:
    """Return "high" when the text carries an urgency signal, else "medium"."""
    if not text or not text.strip():
        return "medium"
    return "high" if URGENCY_PATTERN.search(text) else "medium"


def extract_field(body: str, name: str) -> Optional[str]:
    match = FIELD_PATTERNS[name].search(body or "")
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def fallback_parse(subject: str, body: str) -> Dict[str, object]:
    """Best-effort job fields from an email's subject and body."""
    parsed: Dict[str, object] = {
        "title": clean_title(subject),
        "description": (body or "")[:DESCRIPTION_CHARS] + "...",
        "urgency": get_urgency(f"{subject or ''} {body or ''}"),
    }
    for name in FIELD_PATTERNS:
        value = extract_field(body, name)
        if value:
            parsed[name] = value
    return parsed
