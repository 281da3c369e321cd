"""
Pytest configuration and fixtures for all tests.

This file ensures the project root is in the Python path
so that imports work correctly for all test modules.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to Python path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest

from models import RemoteEntity


class FakeDirectory:
    """
    In-memory stand-in for TeamleaderClient. Records every call so tests can
    assert which remote operations happened.
    """

    def __init__(self):
        self.companies: List[RemoteEntity] = []
        self.projects: Dict[str, List[RemoteEntity]] = {}
        self.groups: Dict[str, List[RemoteEntity]] = {}
        self.tasks: Dict[str, List[RemoteEntity]] = {}
        self.calls: List[tuple] = []
        self.failing: Dict[str, Exception] = {}  # operation name -> exception to raise
        self.time_entries: List[dict] = []
        self.time_entry_result = True
        self._next_id = 1000

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def _call(self, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.failing:
            raise self.failing[name]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def search_companies(self, term):
        self._call('search_companies', term)
        return list(self.companies)

    def list_projects(self, company_id):
        self._call('list_projects', company_id)
        return list(self.projects.get(company_id, []))

    def list_project_groups(self, project_id):
        self._call('list_project_groups', project_id)
        return list(self.groups.get(project_id, []))

    def list_tasks(self, group_id, project_id=None, only_open=False):
        self._call('list_tasks', group_id, project_id, only_open)
        return list(self.tasks.get(group_id, []))

    def create_company(self, name):
        self._call('create_company', name)
        entity = RemoteEntity(id=self._new_id('company'), name=name)
        self.companies.append(entity)
        return entity.id

    def create_project(self, company_id, name):
        self._call('create_project', company_id, name)
        entity = RemoteEntity(id=self._new_id('project'), name=name, parent_ref=company_id)
        self.projects.setdefault(company_id, []).append(entity)
        return entity.id

    def create_project_group(self, project_id, title):
        self._call('create_project_group', project_id, title)
        entity = RemoteEntity(id=self._new_id('group'), name=title, parent_ref=project_id)
        self.groups.setdefault(project_id, []).append(entity)
        return entity.id

    def create_task(self, group_id, title, project_id=None, ticket_ids=None):
        self._call('create_task', group_id, title, project_id, ticket_ids)
        entity = RemoteEntity(id=self._new_id('task'), name=title, parent_ref=group_id)
        self.tasks.setdefault(group_id, []).append(entity)
        return entity.id

    def get_task(self, task_id):
        self._call('get_task', task_id)
        for tasks in self.tasks.values():
            for task in tasks:
                if task.id == task_id:
                    return task
        return None

    def create_time_entry(self, task, start, end, description, billable=None):
        self._call('create_time_entry', task.id)
        self.time_entries.append({
            'task': task,
            'start': start,
            'end': end,
            'description': description,
            'billable': billable,
        })
        return self.time_entry_result


@pytest.fixture
def project_root_path():
    """Return the project root path."""
    return project_root


@pytest.fixture
def directory():
    return FakeDirectory()
