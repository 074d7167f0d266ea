"""ClickUp REST API client with token authentication and retry logic."""

import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .fetchers.base_fetcher import RateLimitSignal, RemoteFetchFailure

logger = logging.getLogger('clickup_archiver.client')

DEFAULT_BASE_URL = "https://api.clickup.com/api/v2"
DEFAULT_BASE_URL_V3 = "https://api.clickup.com/api/v3"


class ClickUpClient:
    """ClickUp v2/v3 REST API client with authentication, retry logic, and error handling."""

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        base_url_v3: str = DEFAULT_BASE_URL_V3,
        verify_ssl: bool = True,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_factor: float = 2.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_token: Personal API token (``pk_...``)
            base_url: v2 API base URL
            base_url_v3: v3 API base URL (doc pages live there)
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            max_retries: Maximum retry attempts for transient server errors
            retry_backoff_factor: Exponential backoff factor
            session: Optional pre-built session (tests)
        """
        if not api_token:
            raise ValueError("ClickUp client requires an api_token")

        self.base_url = base_url.rstrip('/')
        self.base_url_v3 = base_url_v3.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.request_count = 0

        self.session = session or requests.Session()
        self.session.headers['Authorization'] = api_token
        self.session.headers['Content-Type'] = 'application/json'

        # Configure SSL verification
        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # 429 is raised to the caller, never retried here
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            respect_retry_after_header=False,
            raise_on_status=False
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ClickUpClient':
        """Build a client from the ``clickup`` and ``advanced`` config sections."""
        clickup_config = config.get('clickup', {})
        advanced_config = config.get('advanced', {})
        return cls(
            api_token=clickup_config.get('api_token'),
            base_url=clickup_config.get('base_url', DEFAULT_BASE_URL),
            base_url_v3=clickup_config.get('base_url_v3', DEFAULT_BASE_URL_V3),
            verify_ssl=clickup_config.get('verify_ssl', True),
            timeout=int(advanced_config.get('request_timeout', 30)),
            max_retries=int(advanced_config.get('max_retries', 3)),
            retry_backoff_factor=float(advanced_config.get('retry_backoff_factor', 2.0))
        )

    def _make_request(
        self,
        method: str,
        endpoint: str,
        base_url: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make an HTTP request and return the decoded JSON body.

        Args:
            method: HTTP method
            endpoint: API path (e.g. "/team")
            base_url: Base URL override (v3 endpoints)
            params: Query parameters

        Returns:
            Decoded JSON payload

        Raises:
            RateLimitSignal: For 429 responses
            RemoteFetchFailure: For any other HTTP or transport error
        """
        url = f"{base_url or self.base_url}{endpoint}"
        start_time = time.time()
        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise RemoteFetchFailure(f"Timeout calling {url}: {e}", endpoint=endpoint) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise RemoteFetchFailure(f"Request to {url} failed: {e}", endpoint=endpoint) from e
        finally:
            self.request_count += 1

        elapsed = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After')
            logger.warning(f"Rate limited (429): {method} {url}"
                           + (f", Retry-After={retry_after}" if retry_after else ""))
            raise RateLimitSignal(
                f"ClickUp API error: 429 {response.reason} - rate limited",
                status_code=429,
                endpoint=endpoint
            )

        if not response.ok:
            error_details = self._error_details(response)
            message = f"ClickUp API error: {response.status_code} {response.reason}{error_details}"
            if response.status_code in (404, 405):
                logger.debug(message)
            else:
                logger.error(f"HTTP Error {response.status_code}: {method} {url}{error_details}")
            raise RemoteFetchFailure(message, status_code=response.status_code, endpoint=endpoint)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteFetchFailure(
                f"Invalid JSON from {url}: {response.text[:200]}",
                status_code=response.status_code,
                endpoint=endpoint
            ) from e

    @staticmethod
    def _error_details(response: requests.Response) -> str:
        """Extract a short error message from an error response."""
        try:
            error_json = response.json()
        except ValueError:
            text = (response.text or '').strip()
            return f" - {text[:500]}" if text else ""

        if isinstance(error_json, dict):
            for key in ('err', 'error', 'message', 'ECODE'):
                if error_json.get(key):
                    return f" - {error_json[key]}"
        return f" - {json.dumps(error_json)[:500]}"

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a v2 endpoint."""
        return self._make_request('GET', endpoint, params=params)

    def get_v3(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a v3 endpoint."""
        return self._make_request('GET', endpoint, base_url=self.base_url_v3, params=params)

    def get_workspaces(self) -> Dict[str, Any]:
        """Fetch workspaces (``{"teams": [...]}``)."""
        return self.get('/team')

    def get_spaces(self, workspace_id: str) -> Dict[str, Any]:
        return self.get(f'/team/{workspace_id}/space', params={'archived': 'false'})

    def get_folders(self, space_id: str) -> Dict[str, Any]:
        return self.get(f'/space/{space_id}/folder', params={'archived': 'false'})

    def get_lists(self, folder_id: str) -> Dict[str, Any]:
        return self.get(f'/folder/{folder_id}/list', params={'archived': 'false'})

    def get_lists_in_space(self, space_id: str) -> Dict[str, Any]:
        return self.get(f'/space/{space_id}/list', params={'archived': 'false'})

    def get_views(self, space_id: str) -> Dict[str, Any]:
        return self.get(f'/space/{space_id}/view')

    def get_view(self, view_id: str) -> Dict[str, Any]:
        return self.get(f'/view/{view_id}')

    def get_doc(self, doc_id: str) -> Dict[str, Any]:
        return self.get(f'/doc/{doc_id}')

    def get_tasks(self, list_id: str, page: int = 0, include_subtasks: bool = True) -> Dict[str, Any]:
        """
        Fetch one page of tasks of a list with as much detail as the bulk endpoint offers.

        Args:
            list_id: List ID
            page: Zero-based page number (100 tasks per page)
            include_subtasks: Include subtasks as separate rows

        Returns:
            Payload with ``tasks`` and ``last_page``
        """
        params = {
            'archived': 'false',
            'include_closed': 'true',
            'include_markdown_description': 'true',
            'page': page
        }
        if include_subtasks:
            params['subtasks'] = 'true'
        return self.get(f'/list/{list_id}/task', params=params)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        """Fetch a task with all available details."""
        return self.get(
            f'/task/{task_id}',
            params={'include_subtasks': 'true', 'include_markdown_description': 'true'}
        )

    def get_folder_documents(self, folder_id: str, resource: str = 'doc') -> Dict[str, Any]:
        """Fetch docs attached to a folder (``resource`` is ``doc`` or ``docs``)."""
        return self.get(f'/folder/{folder_id}/{resource}')

    def get_list_documents(self, list_id: str, resource: str = 'doc') -> Dict[str, Any]:
        """Fetch docs attached to a list (``resource`` is ``doc`` or ``docs``)."""
        return self.get(f'/list/{list_id}/{resource}')

    def get_document_pages(self, workspace_id: str, document_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the pages of a doc from the v3 API.

        The endpoint returns either a bare list, ``{"pages": [...]}`` or a
        single page under ``pages``; all shapes are normalized to a list.
        """
        result = self.get_v3(f'/workspaces/{workspace_id}/docs/{document_id}/pages')
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            pages = result.get('pages')
            if isinstance(pages, list):
                return pages
            if isinstance(pages, dict):
                return [pages]
        return []


__all__ = ['ClickUpClient', 'DEFAULT_BASE_URL', 'DEFAULT_BASE_URL_V3']
