"""
Tests for row processing and the import loop
"""
from datetime import datetime

import pytest
import requests

from config import CreationPolicy
from importers import EntityResolver, import_to_teamleader, process_entry
from models import ImportSummary, RemoteEntity, WorkEntry


def make_entry(company="ACME", project="CRM", group="Backend", task="Bugfix", notes="Fixed it", **kwargs):
    return WorkEntry(
        company=company,
        project=project,
        group=group,
        task=task,
        start=datetime(2024, 5, 6, 9, 0),
        end=datetime(2024, 5, 6, 10, 30),
        notes=notes,
        **kwargs
    )


@pytest.fixture
def acme(directory):
    """ACME with a shared 'Support' project whose groups stand in for client projects"""
    directory.companies = [RemoteEntity(id="acme", name="ACME")]
    directory.projects["acme"] = [RemoteEntity(id="support", name="Support")]
    directory.groups["support"] = [RemoteEntity(id="g-crm", name="CRM", parent_ref="support")]
    return directory


class TestProcessEntry:

    def test_regular_row(self, directory):
        directory.companies = [RemoteEntity(id="acme", name="ACME")]
        directory.projects["acme"] = [RemoteEntity(id="crm", name="CRM")]
        directory.groups["crm"] = [RemoteEntity(id="g1", name="Backend")]
        directory.tasks["g1"] = [RemoteEntity(id="t1", name="Bugfix")]
        summary = ImportSummary()

        assert process_entry(EntityResolver(directory), directory, make_entry(), summary) is True

        entry = directory.time_entries[0]
        assert entry['task'].id == "t1"
        assert entry['description'] == "Fixed it"
        assert summary.processed == 1

    def test_project_group_row_is_relabelled(self, acme):
        summary = ImportSummary()
        entry = make_entry(project="CRM", group="Backend", task="Bugfix", notes="Fixed it")

        assert process_entry(EntityResolver(acme), acme, entry, summary) is True

        # The group label became the task, created in the matched project group
        assert ('create_task', 'g-crm', 'Backend', 'support', []) in acme.calls
        # No group lookup by name happened
        assert acme.count('create_project_group') == 0
        assert ('list_project_groups', 'g-crm') not in acme.calls
        posted = acme.time_entries[0]
        assert posted['task'].name == "Backend"
        assert posted['description'] == "Bugfix\r\nFixed it"

    def test_project_group_row_drops_duplicate_task(self, acme):
        entry = make_entry(project="CRM", group="Backend", task="Backend", notes="Fixed it")
        process_entry(EntityResolver(acme), acme, entry, ImportSummary())
        assert acme.time_entries[0]['description'] == "Fixed it"

    def test_project_group_row_without_notes(self, acme):
        entry = make_entry(project="CRM", group="Backend", task="Bugfix", notes="  ")
        process_entry(EntityResolver(acme), acme, entry, ImportSummary())
        assert acme.time_entries[0]['description'] == "Bugfix"

    def test_project_group_reuses_existing_task(self, acme):
        acme.tasks["g-crm"] = [RemoteEntity(id="t-backend", name="Backend work")]
        process_entry(EntityResolver(acme), acme, make_entry(project="CRM"), ImportSummary())
        assert acme.time_entries[0]['task'].id == "t-backend"
        assert acme.count('create_task') == 0

    def test_skips_when_company_cannot_be_created(self, directory):
        resolver = EntityResolver(directory, CreationPolicy(create_companies=False))
        summary = ImportSummary()
        assert process_entry(resolver, directory, make_entry(), summary) is False
        assert summary.skipped == 1
        assert directory.count('list_projects') == 0

    def test_skips_when_project_cannot_be_created(self, directory):
        directory.companies = [RemoteEntity(id="acme", name="ACME")]
        resolver = EntityResolver(directory, CreationPolicy(create_projects=False))
        summary = ImportSummary()
        assert process_entry(resolver, directory, make_entry(), summary) is False
        assert summary.skipped == 1
        assert "CRM" in summary.errors[0]

    def test_skips_when_group_cannot_be_created(self, directory):
        resolver = EntityResolver(directory, CreationPolicy(create_groups=False))
        summary = ImportSummary()
        assert process_entry(resolver, directory, make_entry(), summary) is False
        assert summary.skipped == 1
        assert directory.count('list_tasks') == 0

    def test_skips_when_task_cannot_be_created(self, directory):
        resolver = EntityResolver(directory, CreationPolicy(create_tasks=False))
        summary = ImportSummary()
        assert process_entry(resolver, directory, make_entry(), summary) is False
        assert directory.count('create_task') == 0
        assert directory.count('create_time_entry') == 0

    def test_skips_row_with_blank_label(self, directory):
        summary = ImportSummary()
        assert process_entry(EntityResolver(directory), directory, make_entry(group="", task=""), summary) is False
        assert summary.skipped == 1
        assert directory.calls == []

    def test_skips_row_without_times_before_resolving(self, directory):
        summary = ImportSummary()
        entry = make_entry()
        entry.end = None
        assert process_entry(EntityResolver(directory), directory, entry, summary) is False
        assert summary.skipped == 1
        assert "start/end" in summary.errors[0]
        assert directory.calls == []

    def test_ticket_ids_are_passed_to_task_lookup(self, directory):
        entry = make_entry(ticket_ids=["ABC-12"])
        process_entry(EntityResolver(directory), directory, entry, ImportSummary())
        create_calls = [call for call in directory.calls if call[0] == 'create_task']
        assert create_calls[0][4] == ["ABC-12"]

    def test_failed_time_entry_counts_as_failure(self, directory):
        directory.time_entry_result = False
        summary = ImportSummary()
        assert process_entry(EntityResolver(directory), directory, make_entry(), summary) is False
        assert summary.failed == 1
        assert summary.processed == 0

    def test_billable_flag_is_forwarded(self, directory):
        process_entry(EntityResolver(directory), directory, make_entry(billable=True), ImportSummary())
        assert directory.time_entries[0]['billable'] is True


class TestImportToTeamleader:

    def test_identical_rows_resolve_once(self, directory):
        summary = import_to_teamleader(directory, [make_entry(), make_entry(), make_entry()])
        assert summary.processed == 3
        assert directory.count('create_company') == 1
        assert directory.count('create_project') == 1
        assert directory.count('create_project_group') == 1
        assert directory.count('create_task') == 1
        assert directory.count('search_companies') == 1
        assert directory.count('create_time_entry') == 3

    def test_create_failure_skips_row_and_continues(self, directory):
        directory.failing['create_company'] = ValueError("Teamleader API error")
        entries = [make_entry(company="Broken"), make_entry(company="Broken")]
        summary = import_to_teamleader(directory, entries)
        assert summary.failed == 2
        assert summary.processed == 0

        del directory.failing['create_company']
        summary = import_to_teamleader(directory, [make_entry(company="Fine")])
        assert summary.processed == 1

    def test_transport_error_on_create_does_not_abort_run(self, directory):
        directory.companies = [RemoteEntity(id="acme", name="ACME"), RemoteEntity(id="other", name="Globex")]
        directory.failing['create_project'] = requests.exceptions.HTTPError("500")
        directory.projects["other"] = [RemoteEntity(id="p1", name="CRM")]
        summary = import_to_teamleader(directory, [make_entry(company="ACME"), make_entry(company="Globex")])
        assert summary.failed == 1
        assert summary.processed == 1

    def test_rows_processed_in_file_order(self, directory):
        import_to_teamleader(directory, [make_entry(notes="first"), make_entry(notes="second")])
        assert [e['description'] for e in directory.time_entries] == ["first", "second"]

    def test_uses_given_summary(self, directory):
        summary = ImportSummary()
        result = import_to_teamleader(directory, [make_entry()], CreationPolicy(), summary)
        assert result is summary
        assert summary.total_rows == 1
