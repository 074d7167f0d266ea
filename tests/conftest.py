"""Shared fixtures: an in-memory fetcher serving canned ClickUp listings."""

import pytest

from clickup_archiver.fetchers.base_fetcher import BaseFetcher, FetchResult
from clickup_archiver.models import ContentNode

_MISSING = object()


class FakeFetcher(BaseFetcher):
    """
    Fetcher backed by plain dicts.

    Each table maps an id to either the raw listing, a FetchResult (returned
    as is) or a callable producing the result. An id missing from a table
    reads as an unsupported capability.
    """

    def __init__(self, workspaces=None, **tables):
        super().__init__({})
        self.workspaces = workspaces if workspaces is not None else []
        self.tables = tables
        self.calls = []

    def _result(self, table, key, wrap):
        self.calls.append((table, key))
        value = self.tables.get(table, {}).get(key, _MISSING)
        if value is _MISSING:
            return FetchResult.unsupported(f"{table}({key})")
        if isinstance(value, FetchResult):
            return value
        if callable(value):
            return value()
        return FetchResult.success(wrap(value))

    def calls_to(self, table):
        return [key for name, key in self.calls if name == table]

    def fetch_workspaces(self):
        self.calls.append(('workspaces', None))
        if isinstance(self.workspaces, FetchResult):
            return self.workspaces
        return FetchResult.success({'teams': self.workspaces})

    def fetch_spaces(self, workspace_id):
        return self._result('spaces', workspace_id, lambda v: {'spaces': v})

    def fetch_folders(self, space_id):
        return self._result('folders', space_id, lambda v: {'folders': v})

    def fetch_space_lists(self, space_id):
        return self._result('space_lists', space_id, lambda v: {'lists': v})

    def fetch_folder_lists(self, folder_id):
        return self._result('folder_lists', folder_id, lambda v: {'lists': v})

    def fetch_tasks(self, list_id, page=0):
        self.calls.append(('tasks_page', (list_id, page)))

        def wrap(value):
            pages = value if value and isinstance(value[0], list) else [value]
            return {'tasks': pages[page], 'last_page': page >= len(pages) - 1}

        return self._result('tasks', list_id, wrap)

    def fetch_task(self, task_id):
        return self._result('task_details', task_id, lambda v: v)

    def fetch_views(self, space_id):
        return self._result('views', space_id, lambda v: {'views': v})

    def fetch_folder_documents(self, folder_id):
        return self._result('folder_docs', folder_id, lambda v: {'docs': v})

    def fetch_list_documents(self, list_id):
        return self._result('list_docs', list_id, lambda v: {'documents': v})

    def fetch_document(self, document_id, workspace_id):
        def wrap(value):
            return value if isinstance(value, ContentNode) else ContentNode.from_api(value)

        return self._result('documents', document_id, wrap)


@pytest.fixture
def fake_fetcher():
    """Factory building a FakeFetcher from keyword tables."""
    return FakeFetcher


@pytest.fixture
def crawl_config(tmp_path):
    """Configuration writing into tmp_path with pacing disabled."""
    return {
        'crawl': {'include_docs': True, 'include_tasks': True},
        'export': {'output_directory': str(tmp_path / 'archive')},
        'advanced': {'document_delay': 0, 'task_detail_delay': 0, 'space_delay': 0}
    }
