"""
Teamleader Focus API client for interacting with the Teamleader API
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from config import DEFAULT_BASE_URL, DEFAULT_PAGE_SIZE, MAX_PAGES, REQUEST_TIMEOUT
from models import RemoteEntity
from transformers.field_extractors import format_task_title
from utils import logger, retry_with_backoff, rate_limit

# Task statuses that still accept time
OPEN_TASK_STATUSES = ['to_do', 'in_progress', 'on_hold']


class TeamleaderClient:
    """Handle Teamleader API interactions"""

    def __init__(self, access_token: str, base_url: Optional[str] = None):
        """
        Initialize Teamleader client

        Args:
            access_token: OAuth bearer token
            base_url: API root, defaults to https://api.focus.teamleader.eu
        """
        if not access_token:
            raise ValueError("Teamleader access token not provided.")

        self.access_token = access_token
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/') + '/'
        self.headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'Authorization': f'Bearer {access_token}'
        }
        logger.info(f"Teamleader client initialized for {self.base_url}")

    @retry_with_backoff()
    @rate_limit
    def _post(self, endpoint: str, payload: Optional[Dict] = None) -> Dict:
        """
        POST a request to a Teamleader endpoint

        Args:
            endpoint: Endpoint name, e.g. 'companies.list'
            payload: JSON body

        Returns:
            Decoded response body (empty dict for 204 responses)

        Raises:
            requests.exceptions.RequestException: On transport errors and non-2xx responses
            ValueError: If the response carries API errors
        """
        try:
            response = requests.post(
                f'{self.base_url}{endpoint}',
                headers=self.headers,
                json=payload or {},
                timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.debug(f"Request to {endpoint} failed: {e}")
            if getattr(e, 'response', None) is not None:
                logger.debug(f"Response: {e.response.text}")
            raise

        if response.status_code == 204 or not response.content:
            return {}

        result = response.json()
        if isinstance(result, dict) and result.get('errors'):
            error_msg = [err.get('title') or err.get('detail') for err in result['errors'] if isinstance(err, dict)]
            raise ValueError(f"Teamleader API error on {endpoint}: {error_msg}")
        return result if isinstance(result, dict) else {'data': result}

    def _list_all(self, endpoint: str, payload: Optional[Dict] = None) -> List[Dict]:
        """
        Fetch every page of a *.list endpoint

        Returns:
            Raw records from all pages
        """
        records = []
        page = 1
        while page <= MAX_PAGES:
            body = dict(payload or {})
            body['page'] = {'size': DEFAULT_PAGE_SIZE, 'number': page}
            result = self._post(endpoint, body)
            data = result.get('data') or []
            if not isinstance(data, list):
                break
            records.extend(data)
            logger.debug(f"{endpoint}: page {page} returned {len(data)} records")
            if len(data) < DEFAULT_PAGE_SIZE:
                break
            page += 1
        else:
            logger.warning(f"{endpoint}: stopped after {MAX_PAGES} pages")
        return records

    def _created_id(self, endpoint: str, result: Dict) -> str:
        """Extract the id of a newly created entity, raising if there is none"""
        data = result.get('data') if isinstance(result, dict) else None
        if isinstance(data, list):
            data = data[0] if data else None
        entity = RemoteEntity.from_api(data) if isinstance(data, dict) else None
        if entity is None:
            raise ValueError(f"Teamleader API returned no id for {endpoint}")
        return entity.id

    # ------------------------------------------------------------------
    # Directory lookups used by the resolver
    # ------------------------------------------------------------------

    def search_companies(self, term: str) -> List[RemoteEntity]:
        """Search companies by name"""
        records = self._list_all('companies.list', {'filter': {'term': term}})
        return RemoteEntity.list_from_api(records)

    def list_projects(self, company_id: str) -> List[RemoteEntity]:
        """List the projects whose customer is the given company"""
        records = self._list_all('projects-v2/projects.list', {
            'filter': {'customers': [{'type': 'company', 'id': company_id}]}
        })
        return RemoteEntity.list_from_api(records)

    def list_project_groups(self, project_id: str) -> List[RemoteEntity]:
        """List the groups of one project"""
        records = self._list_all('projects-v2/projectGroups.list', {
            'filter': {'project_ids': [project_id]}
        })
        entities = RemoteEntity.list_from_api(records)
        for entity in entities:
            if not entity.parent_ref:
                entity.parent_ref = project_id
        return entities

    def list_tasks(self, group_id: str, project_id: Optional[str] = None, only_open: bool = False) -> List[RemoteEntity]:
        """
        List tasks in a project group

        Args:
            group_id: Project group id
            project_id: Optional project id to narrow the search further
            only_open: Leave out tasks that are done
        """
        filters: Dict[str, Any] = {'group_ids': [group_id]}
        if project_id:
            filters['project_ids'] = [project_id]
        if only_open:
            filters['statuses'] = OPEN_TASK_STATUSES
        records = self._list_all('projects-v2/tasks.list', {'filter': filters})
        return RemoteEntity.list_from_api(records)

    def get_task(self, task_id: str) -> Optional[RemoteEntity]:
        """Fetch a single task, or None if it cannot be read"""
        try:
            result = self._post('projects-v2/tasks.info', {'id': task_id})
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Error getting Teamleader task {task_id}: {e}")
            return None
        return RemoteEntity.from_api(result.get('data'))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_company(self, name: str) -> str:
        """
        Create a company

        Returns:
            Id of the new company
        """
        if not name or not name.strip():
            raise ValueError("Company name is required")
        result = self._post('companies.add', {'name': name.strip()})
        company_id = self._created_id('companies.add', result)
        logger.info(f"Created Teamleader company: {name} (ID: {company_id})")
        return company_id

    def create_project(self, company_id: str, name: str) -> str:
        """Create a project with the company as its customer"""
        result = self._post('projects-v2/projects.create', {
            'title': name.strip(),
            'customers': [{'type': 'company', 'id': company_id}]
        })
        project_id = self._created_id('projects-v2/projects.create', result)
        logger.info(f"Created Teamleader project: {name} (ID: {project_id})")
        return project_id

    def create_project_group(self, project_id: str, title: str) -> str:
        """Create a group inside a project"""
        result = self._post('projects-v2/projectGroups.create', {
            'project_id': project_id,
            'title': title.strip()
        })
        group_id = self._created_id('projects-v2/projectGroups.create', result)
        logger.info(f"Created Teamleader project group: {title} (ID: {group_id})")
        return group_id

    def create_task(self, group_id: str, title: str, project_id: Optional[str] = None,
                    ticket_ids: Optional[List[str]] = None) -> str:
        """
        Create a task in a project group

        Args:
            group_id: Project group id
            title: Task title
            project_id: Project the group belongs to
            ticket_ids: Ticket ids to put in front of the title

        Returns:
            Id of the new task
        """
        full_title = format_task_title(title.strip(), ticket_ids)
        payload = {'group_id': group_id, 'title': full_title}
        if project_id:
            payload['project_id'] = project_id
        result = self._post('projects-v2/tasks.create', payload)
        task_id = self._created_id('projects-v2/tasks.create', result)
        logger.info(f"Created Teamleader task: {full_title} (ID: {task_id})")
        return task_id

    def create_time_entry(self, task: RemoteEntity, start: Optional[datetime], end: Optional[datetime],
                          description: str, billable: Optional[bool] = None) -> bool:
        """
        Book time against a task

        Args:
            task: Task to book on
            start: Start of the tracked period
            end: End of the tracked period
            description: Free-text notes
            billable: Invoiceable flag, left to the account default when None

        Returns:
            True if Teamleader accepted the entry
        """
        payload: Dict[str, Any] = {
            'subject': {'type': task.type or 'nextgenTask', 'id': task.id},
            'started_at': _format_timestamp(start),
            'ended_at': _format_timestamp(end),
            'description': description or ''
        }
        if billable is not None:
            payload['invoiceable'] = billable

        try:
            self._post('timeTracking.add', payload)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error creating Teamleader time entry for task {task.id}: {e}")
            return False
        logger.debug(f"Created Teamleader time entry on task {task.id} ({payload['started_at']} - {payload['ended_at']})")
        return True

    # ------------------------------------------------------------------
    # Listing commands
    # ------------------------------------------------------------------

    def list_companies(self) -> List[RemoteEntity]:
        return RemoteEntity.list_from_api(self._list_all('companies.list'))

    def list_all_projects(self) -> List[RemoteEntity]:
        return RemoteEntity.list_from_api(self._list_all('projects-v2/projects.list'))

    def list_all_project_groups(self) -> List[RemoteEntity]:
        return RemoteEntity.list_from_api(self._list_all('projects-v2/projectGroups.list'))

    def list_all_tasks(self) -> List[RemoteEntity]:
        return RemoteEntity.list_from_api(self._list_all('projects-v2/tasks.list'))

    def list_time_tracking(self) -> List[Dict]:
        """Raw time-tracking records, newest first as returned by the API"""
        return self._list_all('timeTracking.list')


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """ISO 8601 with offset; naive timestamps are taken as local time"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.astimezone()
    return value.isoformat(timespec='seconds')
