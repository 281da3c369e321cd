"""
Import functionality for booking time-tracking rows in Teamleader
"""
from .resolver import EntityResolver
from .teamleader_importer import import_to_teamleader, process_entry

__all__ = ['EntityResolver', 'import_to_teamleader', 'process_entry']
