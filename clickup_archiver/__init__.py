"""ClickUp Markdown Archiver

A standalone tool for archiving a ClickUp workspace to the local filesystem:
docs and their pages become markdown files, tasks and task lists become CSV
files, one directory per space.

Basic Usage:
    1. Copy config.yaml.example to config.yaml (or set CLICKUP_API_TOKEN)
    2. Run: clickup-archive --space <space id>
    3. Or archive everything the token can see: clickup-archive

Example Configuration (config.yaml):
    clickup:
        api_token: ${CLICKUP_API_TOKEN}

    export:
        output_directory: "./output"
"""

__version__ = "1.0.0"
__description__ = "Archive ClickUp docs as markdown and tasks as CSV"

from .models import (
    ContentNode,
    CrawlOutcome,
    ExportScope,
    PageNode,
    SpaceDescriptor,
    TaskList
)
from .config_loader import ConfigLoader, get_nested
from .logger import setup_logging, ProgressTracker, log_section, log_config

# Expose main entry point for CLI
from .archive import main as cli_main

__all__ = [
    # Version info
    '__version__',
    '__description__',

    # Core data models
    'ContentNode',
    'CrawlOutcome',
    'ExportScope',
    'PageNode',
    'SpaceDescriptor',
    'TaskList',

    # Configuration
    'ConfigLoader',
    'get_nested',

    # Logging
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',

    # CLI entry point
    'cli_main',
]
