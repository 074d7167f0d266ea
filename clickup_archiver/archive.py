#!/usr/bin/env python3
"""
ClickUp Markdown Archiver - Main CLI Entry Point

This script provides the command-line interface for archiving a ClickUp
workspace: docs become markdown files, tasks and task lists become CSV files,
one directory per space.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Optional

import yaml

from . import __version__
from .config_loader import ConfigLoader
from .fetchers import FetcherError, FetcherFactory
from .logger import LOG_LEVELS, log_config, log_section, setup_logging
from .orchestrator import CrawlOrchestrator, CrawlReport

DEFAULT_CONFIG_PATH = 'config.yaml'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='clickup-archive',
        description="Archive ClickUp docs as markdown and tasks as CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Archive every space of every workspace
  clickup-archive --token pk_xxx

  # Archive a single space
  clickup-archive --token pk_xxx --space 90123456

  # Show workspaces and spaces the token can see
  clickup-archive --list-workspaces

  # Tasks only, with a JSON run report
  clickup-archive --no-include-docs --report-path report.json

Environment variables:
  CLICKUP_API_TOKEN, CLICKUP_SPACE_ID, CLICKUP_WORKSPACE_ID, OUTPUT_DIR
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH} if present)'
    )

    parser.add_argument(
        '--token',
        type=str,
        help='ClickUp API token (or CLICKUP_API_TOKEN)'
    )

    parser.add_argument(
        '--space',
        type=str,
        help='Only archive this space ID (or CLICKUP_SPACE_ID)'
    )

    parser.add_argument(
        '--workspace',
        type=str,
        help='Only archive spaces of this workspace ID (or CLICKUP_WORKSPACE_ID)'
    )

    parser.add_argument(
        '--output',
        type=str,
        help='Output directory (or OUTPUT_DIR, default: ./output)'
    )

    parser.add_argument(
        '--list-workspaces',
        action='store_true',
        help='List workspaces and their spaces, then exit'
    )

    parser.add_argument(
        '--include-docs',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Export docs as markdown (default: yes)'
    )

    parser.add_argument(
        '--include-tasks',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Export tasks and task lists as CSV (default: yes)'
    )

    parser.add_argument(
        '--report-path',
        type=str,
        help='Write a JSON run report to this path'
    )

    parser.add_argument(
        '--summary-csv',
        type=str,
        help='Write per-space counts as CSV to this path'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        help='Explicit log level, overrides -v and logging.level'
    )

    return parser


def load_configuration(args: argparse.Namespace) -> dict:
    """Load the config file (if any) and merge CLI arguments and environment into it."""
    config_path = args.config
    if config_path is None and os.path.exists(DEFAULT_CONFIG_PATH):
        config_path = DEFAULT_CONFIG_PATH

    config = ConfigLoader.load(config_path) if config_path else {}
    return ConfigLoader.merge_with_args(config, args)


def list_workspaces(config: dict, logger: logging.Logger) -> int:
    """Print workspaces and their spaces."""
    fetcher = FetcherFactory.create_fetcher(config, logger)
    orchestrator = CrawlOrchestrator(config, fetcher, logger)
    workspaces = orchestrator.describe_workspaces()

    if not workspaces:
        print("No workspaces visible to this token")
        return 0

    for workspace in workspaces:
        print(f"{workspace['name']} ({workspace['id']})")
        for space in workspace['spaces']:
            print(f"  - {space['name']} ({space['id']})")
    return 0


def run_archive(config: dict, args: argparse.Namespace, logger: logging.Logger) -> int:
    """Run the crawl and report the outcome. Returns the exit code."""
    start_time = time.time()

    fetcher = FetcherFactory.create_fetcher(config, logger)
    orchestrator = CrawlOrchestrator(config, fetcher, logger)

    crawl_config = config.get('crawl', {})
    outcomes = orchestrator.run(
        space_id=crawl_config.get('space_id') or None,
        workspace_id=crawl_config.get('workspace_id') or None
    )

    report_generator = CrawlReport(logger)
    report = report_generator.generate_report(
        outcomes,
        duration=time.time() - start_time,
        output_directory=str(orchestrator.output_directory)
    )
    print("\n" + report_generator.format_console_report(report))

    if args.report_path:
        report_generator.export_json_report(report, args.report_path)
    if args.summary_csv:
        report_generator.export_csv_summary(report, args.summary_csv)

    if not outcomes:
        logger.warning("Nothing was archived")
        return 1
    if report['summary']['spaces_failed'] > 0:
        logger.error(f"{report['summary']['spaces_failed']} space(s) failed")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)

        logging_config = config.get('logging', {})
        setup_logging(
            verbosity=args.verbose,
            log_file=logging_config.get('file'),
            level=logging_config.get('level') if args.log_level or not args.verbose else None
        )
        logger = logging.getLogger('clickup_archiver.cli')

        log_section("ClickUp Markdown Archiver")
        logger.info(f"Version: {__version__}")

        ConfigLoader.validate(config)

        token = config['clickup']['api_token']
        if not str(token).startswith('pk_'):
            logger.warning("API token does not start with 'pk_'; personal API tokens usually do")

        log_config(config)

        if args.list_workspaces:
            return list_workspaces(config, logger)

        return run_archive(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid configuration file: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nArchive interrupted by user", file=sys.stderr)
        return 130
    except FetcherError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
