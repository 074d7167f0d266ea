"""Fetchers package for retrieving ClickUp content via the REST API."""

from .base_fetcher import (
    BaseFetcher,
    FetcherError,
    FetchResult,
    FetchStatus,
    RateLimitSignal,
    RemoteFetchFailure,
    StructuralConfigurationFailure,
    capture,
    first_success
)
from .api_fetcher import ApiFetcher


class FetcherFactory:
    """Factory for creating fetcher instances based on configuration."""

    @staticmethod
    def create_fetcher(config: dict, logger):
        """Create the fetcher for a configuration.

        Args:
            config: Configuration dictionary
            logger: Logger instance

        Returns:
            BaseFetcher instance

        Raises:
            ValueError: If the configuration has no API token
        """
        return ApiFetcher(config, logger)


__all__ = [
    'ApiFetcher',
    'BaseFetcher',
    'FetchResult',
    'FetchStatus',
    'FetcherError',
    'FetcherFactory',
    'RateLimitSignal',
    'RemoteFetchFailure',
    'StructuralConfigurationFailure',
    'capture',
    'first_success'
]
