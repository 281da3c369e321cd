"""
Readers for time-tracking exports
"""
from .csv_reader import build_entry, read_work_entries

__all__ = ['build_entry', 'read_work_entries']
