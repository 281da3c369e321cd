"""
Read time-tracking exports into WorkEntry rows

Two layouts are understood:
  1) ManicTime CSV: a header row with Name, Start, End, Notes (and optionally
     Billable) columns; the Name column holds "Company, Project, Group, Task".
  2) Legacy: tags;start;end;notes, one entry per line.
"""
import csv
import io
import os
from typing import List, Optional

from models import WorkEntry
from transformers.field_extractors import (
    extract_ticket_ids,
    fold_extras_into_notes,
    parse_billable,
    parse_date,
    split_tags
)
from utils import logger


def build_entry(name_field: str, start: str, end: str, notes: str, billable: str = '') -> WorkEntry:
    """
    Turn the raw fields of one record into a WorkEntry

    Tags beyond the fourth are folded into the notes. With only three tags the
    group label doubles as the task label.
    """
    tags = split_tags(name_field)
    company = tags[0] if len(tags) > 0 else ''
    project = tags[1] if len(tags) > 1 else ''
    group = tags[2] if len(tags) > 2 else ''
    task = tags[3] if len(tags) > 3 else group
    extras = tags[4:]

    notes = (notes or '').strip()
    return WorkEntry(
        company=company,
        project=project,
        group=group,
        task=task,
        extras=extras,
        start=parse_date(start),
        end=parse_date(end),
        notes=fold_extras_into_notes(notes, extras),
        billable=parse_billable(billable),
        ticket_ids=extract_ticket_ids(task, ', '.join(extras), notes),
    )


def _is_manictime_header(line: str) -> bool:
    lowered = line.lower()
    return 'name' in lowered and 'start' in lowered


def _column(header: List[str], predicate) -> Optional[int]:
    for idx, name in enumerate(header):
        if predicate(name.strip().lower()):
            return idx
    return None


def _field(row: List[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(row):
        return ''
    return row[idx]


def _read_manictime(content: str) -> List[WorkEntry]:
    entries = []
    reader = csv.reader(io.StringIO(content))

    header = None
    for row in reader:
        if any(cell.strip() for cell in row):
            header = row
            break
    if header is None:
        return entries

    name_idx = _column(header, lambda h: h == 'name')
    start_idx = _column(header, lambda h: h == 'start')
    end_idx = _column(header, lambda h: h == 'end')
    notes_idx = _column(header, lambda h: 'note' in h)
    billable_idx = _column(header, lambda h: h == 'billable')

    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if row[0].lstrip().startswith('#'):
            continue
        entries.append(build_entry(
            _field(row, name_idx),
            _field(row, start_idx),
            _field(row, end_idx),
            _field(row, notes_idx),
            _field(row, billable_idx),
        ))
    return entries


def _read_legacy(lines: List[str]) -> List[WorkEntry]:
    entries = []
    for raw in lines:
        stripped = raw.strip()
        if not stripped or stripped.startswith('#') or stripped.lower().startswith('tags'):
            continue

        parts = raw.split(';')
        if len(parts) >= 4:
            entries.append(build_entry(parts[0], parts[1].strip(), parts[2].strip(), parts[3]))
            continue

        # Comma fallback: the last three fields are start, end and notes
        comma_parts = raw.split(',')
        if len(comma_parts) >= 4:
            tags = ','.join(comma_parts[:-3])
            entries.append(build_entry(tags, comma_parts[-3].strip(), comma_parts[-2].strip(), comma_parts[-1]))
            continue

        logger.warning(f"Skipping malformed line: {raw}")
    return entries


def read_work_entries(path: str) -> List[WorkEntry]:
    """
    Parse a time-tracking export

    Args:
        path: Path to the CSV file

    Returns:
        Entries in file order

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input file not found: {path}")

    with open(path, 'r', encoding='utf-8-sig', newline='') as f:
        content = f.read()

    lines = content.splitlines()
    first = next((line for line in lines if line.strip()), None)
    if first is None:
        return []

    if _is_manictime_header(first):
        entries = _read_manictime(content)
        logger.info(f"Read {len(entries)} entries from ManicTime export {path}")
    else:
        entries = _read_legacy(lines)
        logger.info(f"Read {len(entries)} entries from {path}")
    return entries
