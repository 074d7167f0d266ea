"""API fetcher implementation for retrieving ClickUp content via REST API."""

from typing import Any, Dict, Optional

from .. import clickup_client
from ..models import ContentNode, PageNode
from .base_fetcher import BaseFetcher, FetchResult, capture, first_success


class ApiFetcher(BaseFetcher):
    """Fetches ClickUp hierarchy, tasks and docs through the v2/v3 REST API."""

    def __init__(self, config: Dict[str, Any], logger=None, client: Optional["clickup_client.ClickUpClient"] = None):
        """
        Initialize API fetcher with configuration.

        Args:
            config: Configuration dictionary with clickup and advanced settings
            logger: Logger instance (optional)
            client: Pre-built client (optional, built from config otherwise)
        """
        super().__init__(config, logger)

        clickup_config = config.get('clickup', {})
        if client is None and not clickup_config.get('api_token'):
            raise ValueError("clickup.api_token is required for API fetcher")

        self.client = client or clickup_client.ClickUpClient.from_config(config)
        self.stats = {
            'api_calls': 0,
            'unsupported': 0,
            'rate_limited': 0,
            'failed': 0
        }

        self.logger.debug(f"Initialized ApiFetcher for {self.client.base_url}")

    def _call(self, call) -> FetchResult:
        """Run one client call through ``capture`` and count its outcome."""
        self.stats['api_calls'] += 1
        result = capture(call)
        if result.is_rate_limited:
            self.stats['rate_limited'] += 1
        elif not result.ok:
            self.stats[result.status.value] += 1
            self._log_progress(f"Fetch {result.status.value}: {result.error}", 'debug')
        return result

    def fetch_workspaces(self) -> FetchResult:
        return self._call(self.client.get_workspaces)

    def fetch_spaces(self, workspace_id: str) -> FetchResult:
        return self._call(lambda: self.client.get_spaces(workspace_id))

    def fetch_folders(self, space_id: str) -> FetchResult:
        return self._call(lambda: self.client.get_folders(space_id))

    def fetch_space_lists(self, space_id: str) -> FetchResult:
        return self._call(lambda: self.client.get_lists_in_space(space_id))

    def fetch_folder_lists(self, folder_id: str) -> FetchResult:
        return self._call(lambda: self.client.get_lists(folder_id))

    def fetch_tasks(self, list_id: str, page: int = 0) -> FetchResult:
        return self._call(lambda: self.client.get_tasks(list_id, page=page))

    def fetch_task(self, task_id: str) -> FetchResult:
        """
        Fetch a fully detailed task.

        The detail endpoint sometimes wraps the record in a ``task`` key; the
        returned data is always the bare task dict.
        """
        result = self._call(lambda: self.client.get_task(task_id))
        if result.ok and isinstance(result.data, dict) and isinstance(result.data.get('task'), dict):
            return FetchResult.success(result.data['task'])
        return result

    def fetch_views(self, space_id: str) -> FetchResult:
        return self._call(lambda: self.client.get_views(space_id))

    def fetch_folder_documents(self, folder_id: str) -> FetchResult:
        """List docs of a folder, trying the singular then the plural endpoint."""
        return first_success([
            lambda: self._call(lambda: self.client.get_folder_documents(folder_id, 'doc')),
            lambda: self._call(lambda: self.client.get_folder_documents(folder_id, 'docs'))
        ])

    def fetch_list_documents(self, list_id: str) -> FetchResult:
        """List docs of a list, trying the singular then the plural endpoint."""
        return first_success([
            lambda: self._call(lambda: self.client.get_list_documents(list_id, 'doc')),
            lambda: self._call(lambda: self.client.get_list_documents(list_id, 'docs'))
        ])

    def _fetch_view_metadata(self, document_id: str) -> FetchResult:
        """Doc metadata through the view endpoint (``{"view": {...}}``)."""
        result = self._call(lambda: self.client.get_view(document_id))
        if not result.ok:
            return result
        if isinstance(result.data, dict) and isinstance(result.data.get('view'), dict):
            return FetchResult.success(result.data['view'])
        return FetchResult.unsupported(f"View {document_id} has no view payload")

    def fetch_document(self, document_id: str, workspace_id: str) -> FetchResult:
        """
        Fetch a doc with its pages attached.

        Metadata comes from ``/view/{id}`` or, failing that, ``/doc/{id}``.
        Pages come from the v3 API and need the workspace id.

        Args:
            document_id: Doc ID
            workspace_id: Workspace that owns the doc

        Returns:
            FetchResult whose data is a ContentNode with ``pages`` set
        """
        metadata = first_success([
            lambda: self._fetch_view_metadata(document_id),
            lambda: self._call(lambda: self.client.get_doc(document_id))
        ])
        if not metadata.ok:
            return metadata
        if not isinstance(metadata.data, dict):
            return FetchResult.failed(f"Unexpected metadata payload for doc {document_id}")

        node = ContentNode.from_api(metadata.data)
        if not node.id or node.id == 'None':
            node.id = str(document_id)

        if not workspace_id:
            node.pages = []
            return FetchResult.success(node)

        pages_result = self._call(lambda: self.client.get_document_pages(workspace_id, document_id))
        if not pages_result.ok:
            return pages_result

        raw_pages = pages_result.data or []
        if not raw_pages:
            return FetchResult.failed(
                f"Could not fetch pages for doc '{node.name}' (ID: {document_id}) "
                f"from /workspaces/{workspace_id}/docs/{document_id}/pages"
            )

        node.pages = [PageNode.from_api(page) for page in raw_pages if isinstance(page, dict)]
        self._log_progress(f"Fetched doc '{node.name}' with {len(node.pages)} page(s)", 'debug')
        return FetchResult.success(node)


__all__ = ['ApiFetcher']
