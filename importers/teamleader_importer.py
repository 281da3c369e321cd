"""
Import time-tracking rows into Teamleader
"""
from typing import Iterable, Optional

import requests

from config import CreationPolicy
from models import ImportSummary, RemoteEntity, WorkEntry
from transformers.field_extractors import merge_notes
from utils import logger

from .resolver import EntityResolver


def process_entry(resolver: EntityResolver, client, entry: WorkEntry, summary: ImportSummary) -> bool:
    """
    Resolve one row down to a task and book its time

    When the project label turned out to be a project group, the row shifts one
    level: the group label becomes the task, the task label moves into the
    notes (dropped if it repeats the group label) and the matched project group
    is used as the group without another lookup.

    Returns:
        True if the time entry was created
    """
    labels = entry.labels()
    if not all(label.strip() for label in (entry.company, entry.project, entry.group, entry.task)):
        logger.warning(f"Skipping entry with missing hierarchy labels: {labels}")
        summary.add_skip(f"Missing hierarchy labels: {labels}")
        return False

    if entry.start is None or entry.end is None:
        logger.warning(f"Skipping entry with missing or unreadable start/end time: {labels}")
        summary.add_skip(f"Missing start/end time: {labels}")
        return False

    company_id = resolver.resolve_company(entry.company)
    if not company_id:
        logger.error(f"Skipping entry: Company '{entry.company}' not found and creation is disabled. ({labels})")
        summary.add_skip(f"Company '{entry.company}' not found: {labels}")
        return False

    project_result = resolver.resolve_project(company_id, entry.project)
    if not project_result.project_id:
        logger.error(f"Skipping entry: Project '{entry.project}' not found for company '{entry.company}' and creation is disabled. ({labels})")
        summary.add_skip(f"Project '{entry.project}' not found: {labels}")
        return False

    group_value = entry.group
    task_value = entry.task
    notes_value = entry.notes
    if project_result.used_project_group:
        group_value = project_result.project_group_name or entry.group
        task_value = entry.group
        notes_value = merge_notes([None if entry.task == entry.group else entry.task, entry.notes])
        group_id = project_result.project_group_id
        logger.debug(f"Project '{entry.project}' is project group '{group_value}': task '{task_value}', task label moved to notes")
    else:
        group_id = resolver.resolve_group(project_result.project_id, group_value)

    if not group_id:
        logger.error(f"Skipping entry: Group '{group_value}' not found for project '{entry.project}' and creation is disabled. ({labels})")
        summary.add_skip(f"Group '{group_value}' not found: {labels}")
        return False

    task_id = resolver.resolve_task(group_id, task_value, project_result.project_id, entry.ticket_ids)
    if not task_id:
        logger.error(f"Skipping entry: Task '{task_value}' not found and creation is disabled. ({labels})")
        summary.add_skip(f"Task '{task_value}' not found: {labels}")
        return False

    task = client.get_task(task_id) or RemoteEntity(id=task_id, name=task_value)
    if client.create_time_entry(task, entry.start, entry.end, notes_value, billable=entry.billable):
        logger.info(f"Time entry created on '{task.name}' ({entry.start} - {entry.end})")
        summary.add_success()
        return True

    logger.warning(f"Failed to create time entry for {entry.company}/{entry.project}/{group_value}/{task_value}.")
    summary.add_failure(f"Time entry not created: {labels}")
    return False


def import_to_teamleader(client, entries: Iterable[WorkEntry], policy: Optional[CreationPolicy] = None,
                         summary: Optional[ImportSummary] = None) -> ImportSummary:
    """
    Import all entries in file order

    A row that fails (for example because Teamleader rejects a create call) is
    logged and counted; the run carries on with the next row.

    Args:
        client: TeamleaderClient (or anything with the same methods)
        entries: Parsed rows
        policy: Creation policy for this run
        summary: Summary to update, a new one if omitted

    Returns:
        The run's ImportSummary
    """
    summary = summary or ImportSummary()
    resolver = EntityResolver(client, policy)

    for idx, entry in enumerate(entries, 1):
        logger.info(f"Processing #{idx}: {entry.labels()} / {entry.start}")
        try:
            process_entry(resolver, client, entry, summary)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to import entry #{idx} ({entry.labels()}): {e}")
            summary.add_failure(f"Entry #{idx} ({entry.labels()}): {e}")

    logger.info(f"Done. Processed {summary.processed} entries.")
    return summary
