"""
Field extraction and name matching for time-tracking rows
"""
from .field_extractors import (
    split_tags,
    extract_ticket_ids,
    parse_date,
    parse_billable,
    fold_extras_into_notes,
    merge_notes,
    format_task_title
)
from .mappers import (
    normalize_name,
    is_close,
    pick_best_match,
    find_ticket_match
)

__all__ = [
    'split_tags',
    'extract_ticket_ids',
    'parse_date',
    'parse_billable',
    'fold_extras_into_notes',
    'merge_notes',
    'format_task_title',
    'normalize_name',
    'is_close',
    'pick_best_match',
    'find_ticket_match'
]
