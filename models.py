"""
Data models for import rows, remote entities and run tracking
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from utils import logger

# Nested references that point at an entity's parent, most specific first
PARENT_REFERENCE_FIELDS = ('group', 'project', 'company', 'customer')
PARENT_ID_FIELDS = ('group_id', 'project_id', 'company_id', 'customer_id')


@dataclass
class WorkEntry:
    """One parsed row of the time-tracking export"""
    company: str = ''
    project: str = ''
    group: str = ''
    task: str = ''
    extras: List[str] = field(default_factory=list)
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    notes: str = ''
    billable: Optional[bool] = None
    ticket_ids: List[str] = field(default_factory=list)

    def labels(self) -> str:
        return f"{self.company} / {self.project} / {self.group} / {self.task}"


def _reference_id(value: Any) -> Optional[str]:
    """Pull an id out of a typed reference ({'type': ..., 'id': ...}) or a bare id"""
    if isinstance(value, dict):
        ref_id = value.get('id')
        return str(ref_id) if ref_id not in (None, '') else None
    if isinstance(value, (str, int)) and value != '':
        return str(value)
    return None


@dataclass
class RemoteEntity:
    """
    Stable shape for every company, project, project group and task returned
    by the Teamleader API, whatever the endpoint calls its fields.
    """
    id: str
    name: str = ''
    parent_ref: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> Optional['RemoteEntity']:
        """
        Decode one API record

        Accepts 'name' or 'title' for the display name and reads the parent from
        nested typed references ('group', 'project', 'company', 'customer') or
        from plain '*_id' fields.

        Returns:
            RemoteEntity, or None if the record carries no id
        """
        if not isinstance(item, dict):
            return None
        entity_id = item.get('id')
        if entity_id in (None, ''):
            return None

        name = item.get('name')
        if name is None:
            name = item.get('title')
        if name is None:
            name = ''

        parent_ref = None
        for key in PARENT_REFERENCE_FIELDS + PARENT_ID_FIELDS:
            if key in item:
                parent_ref = _reference_id(item[key])
                if parent_ref:
                    break

        return cls(
            id=str(entity_id),
            name=str(name),
            parent_ref=parent_ref,
            type=item.get('type'),
        )

    @classmethod
    def list_from_api(cls, items: List[Dict[str, Any]]) -> List['RemoteEntity']:
        entities = []
        for item in items or []:
            entity = cls.from_api(item)
            if entity is not None:
                entities.append(entity)
        return entities


@dataclass
class ProjectResolutionResult:
    """
    Outcome of resolving a 'Project' label. When used_project_group is set the
    label matched a project group, and project_id is that group's project.
    """
    project_id: Optional[str] = None
    used_project_group: bool = False
    project_group_id: Optional[str] = None
    project_group_name: Optional[str] = None


@dataclass
class ImportSummary:
    """Track import statistics"""
    total_rows: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def add_success(self):
        self.total_rows += 1
        self.processed += 1

    def add_skip(self, reason: str):
        self.total_rows += 1
        self.skipped += 1
        self.errors.append(reason)

    def add_failure(self, error_msg: str):
        self.total_rows += 1
        self.failed += 1
        self.errors.append(error_msg)

    def print_summary(self):
        """Print import summary report"""
        logger.info("\n" + "="*60)
        logger.info("IMPORT SUMMARY")
        logger.info("="*60)
        logger.info(f"Total Rows: {self.total_rows}")
        logger.info(f"Processed: {self.processed}")
        logger.info(f"Skipped: {self.skipped}")
        logger.info(f"Failed: {self.failed}")
        if self.errors:
            logger.info(f"\nProblems ({len(self.errors)}):")
            for i, error in enumerate(self.errors, 1):
                logger.info(f"  {i}. {error}")
        logger.info("="*60 + "\n")
