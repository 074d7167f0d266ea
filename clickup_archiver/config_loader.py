"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from .clickup_client import DEFAULT_BASE_URL, DEFAULT_BASE_URL_V3

DEFAULT_CONFIG: Dict[str, Any] = {
    'clickup': {
        'api_token': None,
        'base_url': DEFAULT_BASE_URL,
        'base_url_v3': DEFAULT_BASE_URL_V3,
        'verify_ssl': True
    },
    'crawl': {
        'workspace_id': None,
        'space_id': None,
        'include_docs': True,
        'include_tasks': True
    },
    'export': {
        'output_directory': './output'
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 2.0,
        'document_delay': 0.6,
        'task_detail_delay': 0.1,
        'space_delay': 1.0
    },
    'logging': {
        'level': None,
        'file': None
    }
}

# CLI attribute -> config path; a falsy attribute leaves the config value alone
CLI_OVERRIDES = {
    'token': 'clickup.api_token',
    'space': 'crawl.space_id',
    'workspace': 'crawl.workspace_id',
    'output': 'export.output_directory',
    'log_file': 'logging.file',
    'log_level': 'logging.level'
}

# Tri-state CLI flags: None means "not given"
CLI_FLAGS = {
    'include_docs': 'crawl.include_docs',
    'include_tasks': 'crawl.include_tasks'
}

# Environment fallbacks consulted when neither CLI nor config file set a value
ENV_FALLBACKS = {
    'clickup.api_token': 'CLICKUP_API_TOKEN',
    'crawl.space_id': 'CLICKUP_SPACE_ID',
    'crawl.workspace_id': 'CLICKUP_WORKSPACE_ID',
    'export.output_directory': 'OUTPUT_DIR'
}

# path -> (minimum, strictly greater than minimum, integer only)
NUMERIC_FIELDS = {
    'advanced.request_timeout': (0, True, False),
    'advanced.max_retries': (0, False, True),
    'advanced.retry_backoff_factor': (0, False, False),
    'advanced.document_delay': (0, False, False),
    'advanced.task_detail_delay': (0, False, False),
    'advanced.space_delay': (0, False, False)
}


class ConfigLoader:
    """Handles loading, defaulting, merging and validation of the archive configuration."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Read a YAML config file and expand ``${VAR}`` references.

        References to unset variables are left as written so validation can
        name the missing variable.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            ValueError: If the file does not hold a mapping
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")

        return cls._expand_env(config_data)

    @classmethod
    def apply_defaults(cls, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Return a copy of ``config`` with every missing section/key defaulted."""
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in (config or {}).items():
            if values is None:
                continue
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = copy.deepcopy(values)
        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Raises:
            ValueError: On the first invalid value found
        """
        cls._validate_required_field(config, 'clickup.api_token')

        for field in ('clickup.base_url', 'clickup.base_url_v3'):
            url = get_nested(config, field)
            if url:
                cls._validate_url(url, field)

        enabled = []
        for field in CLI_FLAGS.values():
            value = get_nested(config, field, True)
            if not isinstance(value, bool):
                raise ValueError(f"{field} must be a boolean")
            enabled.append(value)
        if not any(enabled):
            raise ValueError("At least one of crawl.include_docs and crawl.include_tasks must be enabled")

        cls._validate_required_field(config, 'export.output_directory')
        output_dir = get_nested(config, 'export.output_directory')
        if os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        for field, (minimum, exclusive, integer) in NUMERIC_FIELDS.items():
            value = get_nested(config, field, DEFAULT_CONFIG['advanced'][field.split('.')[1]])
            cls._validate_number(value, field, minimum, exclusive, integer)

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments and environment fallbacks.

        Precedence is CLI, then config file, then environment, then defaults.
        A config value still holding an unexpanded ``${VAR}`` counts as unset.

        Args:
            config: Base configuration dictionary
            args: Parsed CLI arguments

        Returns:
            Merged configuration dictionary with defaults applied
        """
        merged = copy.deepcopy(config or {})
        for path, env_name in ENV_FALLBACKS.items():
            current = get_nested(merged, path)
            unset = current in (None, '') or (isinstance(current, str) and cls.ENV_VAR_PATTERN.search(current))
            if unset and os.getenv(env_name):
                set_nested(merged, path, os.getenv(env_name))

        merged = cls.apply_defaults(merged)

        for attribute, path in CLI_OVERRIDES.items():
            value = getattr(args, attribute, None)
            if value:
                set_nested(merged, path, value)

        for attribute, path in CLI_FLAGS.items():
            value = getattr(args, attribute, None)
            if value is not None:
                set_nested(merged, path, value)

        return merged

    @classmethod
    def _expand_env(cls, data: Any) -> Any:
        """Expand ``${VAR}`` in every string of a nested structure."""
        if isinstance(data, dict):
            return {key: cls._expand_env(value) for key, value in data.items()}
        if isinstance(data, list):
            return [cls._expand_env(item) for item in data]
        if isinstance(data, str):
            return cls.ENV_VAR_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(0)), data)
        return data

    @classmethod
    def _validate_required_field(cls, config: dict, field: str) -> None:
        """Validate that a required field has a value and no unexpanded variable."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str):
            match = cls.ENV_VAR_PATTERN.search(value)
            if match:
                raise ValueError(
                    f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                    f"Please set the {match.group(1)} environment variable or provide a value in config file."
                )

    @staticmethod
    def _validate_number(value: Any, field: str, minimum: float, exclusive: bool, integer: bool) -> None:
        kinds = int if integer else (int, float)
        if isinstance(value, bool) or not isinstance(value, kinds):
            raise ValueError(f"{field} must be {'an integer' if integer else 'a number'}")
        if value < minimum or (exclusive and value == minimum):
            raise ValueError(f"{field} must be {'greater than' if exclusive else 'at least'} {minimum}")

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "clickup.api_token")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value


def set_nested(config: dict, path: str, value: Any) -> None:
    """Set a dot-notation path, creating intermediate sections."""
    *parents, leaf = path.split('.')
    for key in parents:
        if not isinstance(config.get(key), dict):
            config[key] = {}
        config = config[key]
    config[leaf] = value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'ENV_FALLBACKS', 'get_nested', 'set_nested']
