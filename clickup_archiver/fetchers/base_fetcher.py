"""Abstract base fetcher interface, fetch results and fetch errors."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional


class FetcherError(Exception):
    """Base exception for fetcher-related errors."""
    pass


class RemoteFetchFailure(FetcherError):
    """A single remote call failed. Recoverable: the item is skipped."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class RateLimitSignal(RemoteFetchFailure):
    """The remote service answered 429. Recoverable: the walk continues."""
    pass


class StructuralConfigurationFailure(FetcherError):
    """A mandatory identifier is missing; the enclosing subtree cannot be crawled."""
    pass


class FetchStatus(Enum):
    """Outcome of one remote capability call."""
    OK = "ok"
    UNSUPPORTED = "unsupported"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    """Result of a fetch: data on success, otherwise the reason it is absent."""

    status: FetchStatus
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, data: Any) -> 'FetchResult':
        return cls(FetchStatus.OK, data=data)

    @classmethod
    def unsupported(cls, error: Optional[str] = None) -> 'FetchResult':
        return cls(FetchStatus.UNSUPPORTED, error=error)

    @classmethod
    def rate_limited(cls, error: Optional[str] = None) -> 'FetchResult':
        return cls(FetchStatus.RATE_LIMITED, error=error)

    @classmethod
    def failed(cls, error: Optional[str] = None) -> 'FetchResult':
        return cls(FetchStatus.FAILED, error=error)

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK

    @property
    def is_rate_limited(self) -> bool:
        return self.status is FetchStatus.RATE_LIMITED

    def items(self, key: Optional[str] = None) -> list:
        """
        Child descriptors carried by a listing result.

        A result that is not OK has no children, so an unsupported capability
        reads as an empty listing.
        """
        if not self.ok or self.data is None:
            return []
        data = self.data
        if key is not None and isinstance(data, dict):
            data = data.get(key)
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return [data]
        return []


def capture(call: Callable[[], Any]) -> FetchResult:
    """
    Run one client call and turn its outcome into a FetchResult.

    404/405 become UNSUPPORTED, 429 becomes RATE_LIMITED and every other
    RemoteFetchFailure becomes FAILED.
    """
    try:
        return FetchResult.success(call())
    except RateLimitSignal as e:
        return FetchResult.rate_limited(str(e))
    except RemoteFetchFailure as e:
        if e.status_code in (404, 405):
            return FetchResult.unsupported(str(e))
        return FetchResult.failed(str(e))


def first_success(strategies: Iterable[Callable[[], FetchResult]]) -> FetchResult:
    """
    Try alternate endpoint strategies in order and keep the first success.

    A rate-limited attempt stops the chain since the next strategy would hit
    the same limit. When nothing succeeds the last non-OK result is returned.
    """
    last = FetchResult.unsupported("no strategy available")
    for strategy in strategies:
        result = strategy()
        if result.ok or result.is_rate_limited:
            return result
        last = result
    return last


class BaseFetcher(ABC):
    """Abstract base class for ClickUp content fetchers."""

    def __init__(self, config: Dict[str, Any], logger=None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config
        self.logger = logger or logging.getLogger('clickup_archiver.fetcher')

    @abstractmethod
    def fetch_workspaces(self) -> FetchResult:
        """List workspaces (``teams``) visible to the token."""
        pass

    @abstractmethod
    def fetch_spaces(self, workspace_id: str) -> FetchResult:
        """List spaces of a workspace."""
        pass

    @abstractmethod
    def fetch_folders(self, space_id: str) -> FetchResult:
        """List folders of a space."""
        pass

    @abstractmethod
    def fetch_space_lists(self, space_id: str) -> FetchResult:
        """List the lists that sit directly in a space."""
        pass

    @abstractmethod
    def fetch_folder_lists(self, folder_id: str) -> FetchResult:
        """List the lists of a folder."""
        pass

    @abstractmethod
    def fetch_tasks(self, list_id: str, page: int = 0) -> FetchResult:
        """Fetch one page of tasks of a list."""
        pass

    @abstractmethod
    def fetch_task(self, task_id: str) -> FetchResult:
        """Fetch a fully detailed task."""
        pass

    @abstractmethod
    def fetch_views(self, space_id: str) -> FetchResult:
        """List views of a space (doc views carry doc ids)."""
        pass

    @abstractmethod
    def fetch_folder_documents(self, folder_id: str) -> FetchResult:
        """List docs attached to a folder."""
        pass

    @abstractmethod
    def fetch_list_documents(self, list_id: str) -> FetchResult:
        """List docs attached to a list."""
        pass

    @abstractmethod
    def fetch_document(self, document_id: str, workspace_id: str) -> FetchResult:
        """Fetch a doc with its pages; data is a ContentNode."""
        pass

    def _log_progress(self, message: str, level: str = 'info') -> None:
        """
        Log progress message at specified level.

        Args:
            message: Message to log
            level: Log level (debug, info, warning, error)
        """
        log_method = getattr(self.logger, level, self.logger.info)
        log_method(message)


__all__ = [
    'BaseFetcher',
    'FetchResult',
    'FetchStatus',
    'FetcherError',
    'RateLimitSignal',
    'RemoteFetchFailure',
    'StructuralConfigurationFailure',
    'capture',
    'first_success'
]
