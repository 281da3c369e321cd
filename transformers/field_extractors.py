"""
Field extraction utilities for time-tracking rows
"""
import re
from datetime import datetime
from typing import Iterable, List, Optional

from config import NOTES_SEPARATOR

# Issue-tracker keys such as ABC-123, and bare #123 references
TICKET_ID_PATTERN = re.compile(r'\b[A-Z][A-Z0-9]+-\d+\b|#\d+')

# Slash dates are read month-first; day-first only when month-first cannot fit
DATE_FORMATS = [
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d %H:%M',
    '%Y-%m-%dT%H:%M:%S.%f',
    '%Y-%m-%dT%H:%M:%S',
    '%m/%d/%Y %H:%M:%S',
    '%m/%d/%Y %H:%M',
    '%m/%d/%Y %I:%M:%S %p',
    '%m/%d/%Y %I:%M %p',
    '%d/%m/%Y %H:%M:%S',
    '%d/%m/%Y %H:%M',
    '%d.%m.%Y %H:%M:%S',
    '%d.%m.%Y %H:%M',
]


def split_tags(name_field: str) -> List[str]:
    """Split a comma-separated tag field, dropping empty tags"""
    if not name_field:
        return []
    return [tag.strip() for tag in name_field.split(',') if tag.strip()]


def extract_ticket_ids(*texts: Optional[str]) -> List[str]:
    """
    Extract ticket identifiers from free text

    Returns:
        Identifiers in order of first appearance, without duplicates
    """
    found = []
    for text in texts:
        if not text:
            continue
        for match in TICKET_ID_PATTERN.findall(text):
            if match not in found:
                found.append(match)
    return found


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an export timestamp; returns None when nothing fits"""
    if not value or not value.strip():
        return None
    value = value.strip()

    try:
        # Python < 3.11 does not accept a trailing 'Z'
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    # Trim fractional seconds longer than strptime's six digits
    match = re.match(r'^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})\.\d+$', value)
    if match:
        return datetime.strptime(match.group(1), '%Y-%m-%dT%H:%M:%S')
    return None


def parse_billable(value: Optional[str]) -> Optional[bool]:
    if not value or not value.strip():
        return None
    v = value.strip().lower()
    if v in ('yes', 'y', 'true', '1'):
        return True
    if v in ('no', 'n', 'false', '0'):
        return False
    return None


def fold_extras_into_notes(notes: Optional[str], extras: List[str]) -> str:
    """Append tags beyond the fourth level to the notes"""
    notes = notes or ''
    if extras:
        notes += ' | ' + ', '.join(extras)
    return notes


def merge_notes(parts: Iterable[Optional[str]], separator: str = NOTES_SEPARATOR) -> str:
    """Join note fragments, leaving out None and blank parts"""
    return separator.join(part for part in parts if part is not None and part.strip())


def format_task_title(title: str, ticket_ids: Optional[List[str]] = None) -> str:
    """Prefix a new task title with its ticket ids: 'ID1, ID2 : title'"""
    if ticket_ids:
        return f"{', '.join(ticket_ids)} : {title}"
    return title
