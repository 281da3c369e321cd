"""
Map CSV hierarchy labels onto Teamleader companies, projects, project groups
and tasks, creating what is missing when the creation policy allows it
"""
from typing import Callable, Dict, List, Optional

import requests

from config import CreationPolicy
from models import ProjectResolutionResult, RemoteEntity
from transformers.mappers import find_ticket_match, pick_best_match
from utils import logger


class EntityResolver:
    """
    Get-or-create for the four hierarchy levels of one import run.

    Every lookup is cached per (parent, name) for the lifetime of the resolver,
    including lookups that ended in "not found". Failed create calls are not
    cached, so a later row tries again.

    The caches are plain dicts and assume a single worker. Parallel workers
    would need a lock per cache key around the whole get-or-create, otherwise
    two rows with the same unresolved (parent, name) both create the entity.
    """

    def __init__(self, client, policy: Optional[CreationPolicy] = None):
        self.client = client
        self.policy = policy or CreationPolicy()
        self._company_cache: Dict[str, Optional[str]] = {}
        self._project_cache: Dict[str, ProjectResolutionResult] = {}
        self._group_cache: Dict[str, Optional[str]] = {}  # key: projectId|groupName
        self._task_cache: Dict[str, Optional[str]] = {}  # key: groupId|taskName

    def _candidates(self, description: str, fetch: Callable[..., List[RemoteEntity]], *args, **kwargs) -> List[RemoteEntity]:
        """Run a list/search call; an unreachable directory counts as no candidates"""
        try:
            return fetch(*args, **kwargs) or []
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Could not list {description}, continuing without candidates: {e}")
            return []

    def resolve_company(self, name: str) -> Optional[str]:
        if name in self._company_cache:
            return self._company_cache[name]

        candidates = self._candidates(f"companies matching '{name}'", self.client.search_companies, name)
        match = pick_best_match(candidates, name)
        if match is not None:
            logger.debug(f"Company '{name}' matched existing '{match.name}' ({match.id})")
            company_id = match.id
        elif self.policy.create_companies:
            logger.info(f"Company '{name}' not found, creating it")
            company_id = self.client.create_company(name)
        else:
            logger.debug(f"Company '{name}' not found and creation is disabled")
            company_id = None

        self._company_cache[name] = company_id
        return company_id

    def resolve_project(self, company_id: str, name: str) -> ProjectResolutionResult:
        key = f"{company_id}|{name}"
        if key in self._project_cache:
            return self._project_cache[key]

        projects = self._candidates(f"projects of company {company_id}", self.client.list_projects, company_id)
        match = pick_best_match(projects, name)
        if match is not None:
            logger.debug(f"Project '{name}' matched existing '{match.name}' ({match.id})")
            result = ProjectResolutionResult(project_id=match.id)
        else:
            result = self._match_project_group(projects, name)
            if result is None:
                if self.policy.create_projects:
                    logger.info(f"Project '{name}' not found for company {company_id}, creating it")
                    result = ProjectResolutionResult(project_id=self.client.create_project(company_id, name))
                else:
                    logger.debug(f"Project '{name}' not found and creation is disabled")
                    result = ProjectResolutionResult()

        self._project_cache[key] = result
        return result

    def _match_project_group(self, projects: List[RemoteEntity], name: str) -> Optional[ProjectResolutionResult]:
        """
        Look for a project group named like the project label under any of the
        company's projects. Some accounts keep per-client buckets as groups of
        one shared project rather than as projects.
        """
        groups = []
        for project in projects:
            for group in self._candidates(f"groups of project {project.id}", self.client.list_project_groups, project.id):
                if not group.parent_ref:
                    group.parent_ref = project.id
                groups.append(group)

        match = pick_best_match(groups, name)
        if match is None:
            return None

        logger.info(f"Project '{name}' matched project group '{match.name}' ({match.id}) of project {match.parent_ref}")
        return ProjectResolutionResult(
            project_id=match.parent_ref,
            used_project_group=True,
            project_group_id=match.id,
            project_group_name=match.name,
        )

    def resolve_group(self, project_id: str, name: str) -> Optional[str]:
        key = f"{project_id}|{name}"
        if key in self._group_cache:
            return self._group_cache[key]

        candidates = self._candidates(f"groups of project {project_id}", self.client.list_project_groups, project_id)
        match = pick_best_match(candidates, name)
        if match is not None:
            logger.debug(f"Group '{name}' matched existing '{match.name}' ({match.id})")
            group_id = match.id
        elif self.policy.create_groups:
            logger.info(f"Group '{name}' not found in project {project_id}, creating it")
            group_id = self.client.create_project_group(project_id, name)
        else:
            logger.debug(f"Group '{name}' not found and creation is disabled")
            group_id = None

        self._group_cache[key] = group_id
        return group_id

    def resolve_task(self, group_id: str, name: str, project_id: Optional[str] = None,
                     ticket_ids: Optional[List[str]] = None) -> Optional[str]:
        """
        Find or create a task in a group

        A task whose name mentions one of the ticket ids wins over any fuzzy
        name match.
        """
        key = f"{group_id}|{name}"
        if key in self._task_cache:
            return self._task_cache[key]

        candidates = self._candidates(f"tasks of group {group_id}", self.client.list_tasks,
                                      group_id, project_id, only_open=True)
        match = find_ticket_match(candidates, ticket_ids)
        if match is not None:
            logger.debug(f"Task '{name}' matched '{match.name}' ({match.id}) by ticket id")
        else:
            match = pick_best_match(candidates, name)

        if match is not None:
            task_id = match.id
        elif self.policy.create_tasks:
            logger.info(f"Task '{name}' not found in group {group_id}, creating it")
            task_id = self.client.create_task(group_id, name, project_id, ticket_ids)
        else:
            logger.debug(f"Task '{name}' not found and creation is disabled")
            task_id = None

        self._task_cache[key] = task_id
        return task_id
