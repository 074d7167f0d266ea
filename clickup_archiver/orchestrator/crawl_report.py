"""Crawl report generation from per-space outcomes."""

import csv
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..logger import format_elapsed
from ..models import CrawlOutcome

COUNTERS = ('documents', 'pages', 'tasks', 'task_lists', 'rate_limited', 'failed_items')


class CrawlReport:
    """Aggregates crawl outcomes into a report and renders or exports it."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('clickup_archiver.report')

    def generate_report(
        self,
        outcomes: List[CrawlOutcome],
        duration: float = 0.0,
        output_directory: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build the report dictionary for a run.

        Args:
            outcomes: One outcome per crawled space
            duration: Run duration in seconds
            output_directory: Archive root

        Returns:
            Report with ``summary``, ``spaces`` and ``failed_spaces``
        """
        totals = {name: 0 for name in COUNTERS}
        for outcome in outcomes:
            for name in COUNTERS:
                totals[name] += int(outcome.counts.get(name, 0))

        failed = [outcome for outcome in outcomes if not outcome.success]

        summary = {
            'spaces_total': len(outcomes),
            'spaces_succeeded': len(outcomes) - len(failed),
            'spaces_failed': len(failed),
            'duration_seconds': round(duration, 2),
            'duration_formatted': format_elapsed(duration),
            'output_directory': str(output_directory) if output_directory else None,
            'generated_at': datetime.utcnow().isoformat()
        }
        summary.update(totals)

        return {
            'summary': summary,
            'spaces': [outcome.to_dict() for outcome in outcomes],
            'failed_spaces': [
                {'id': outcome.item_id, 'name': outcome.name, 'error': outcome.error}
                for outcome in failed
            ]
        }

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """Render the report as plain text for the console."""
        summary = report.get('summary', {})
        lines = [
            "=" * 60,
            "CLICKUP ARCHIVE REPORT",
            "=" * 60,
            f"Spaces: {summary.get('spaces_succeeded', 0)}/{summary.get('spaces_total', 0)} succeeded",
            f"Docs: {summary.get('documents', 0)}",
            f"Pages: {summary.get('pages', 0)}",
            f"Tasks: {summary.get('tasks', 0)}",
            f"Task lists: {summary.get('task_lists', 0)}",
        ]
        if summary.get('rate_limited'):
            lines.append(f"Rate limited requests: {summary['rate_limited']}")
        if summary.get('failed_items'):
            lines.append(f"Skipped items: {summary['failed_items']}")
        lines.append(f"Duration: {summary.get('duration_formatted', '0.0s')}")
        if summary.get('output_directory'):
            lines.append(f"Output directory: {summary['output_directory']}")

        if report.get('spaces'):
            lines.append("")
            lines.append("Per space:")
            for space in report['spaces']:
                counts = space.get('counts', {})
                status = "OK" if space.get('success') else "FAILED"
                lines.append(
                    f"  [{status}] {space.get('name')} ({space.get('item_id')}): "
                    f"{counts.get('documents', 0)} doc(s), {counts.get('pages', 0)} page(s), "
                    f"{counts.get('tasks', 0)} task(s), {counts.get('task_lists', 0)} list(s)"
                )

        if report.get('failed_spaces'):
            lines.append("")
            lines.append("Failed spaces:")
            for failed in report['failed_spaces']:
                lines.append(f"  - {failed['name']} ({failed['id']}): {failed['error']}")

        lines.append("=" * 60)
        return "\n".join(lines)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Crawl report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)
            self.logger.info(f"JSON report exported to {filepath}")
        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")

    def export_csv_summary(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export per-space counts to CSV.

        Args:
            report: Crawl report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(['space_id', 'space_name', 'success', *COUNTERS, 'error'])
                for space in report.get('spaces', []):
                    counts = space.get('counts', {})
                    writer.writerow([
                        space.get('item_id'),
                        space.get('name'),
                        space.get('success'),
                        *[counts.get(name, 0) for name in COUNTERS],
                        space.get('error') or ''
                    ])
            self.logger.info(f"CSV summary exported to {filepath}")
        except OSError as e:
            self.logger.error(f"Failed to export CSV summary: {str(e)}")


__all__ = ['CrawlReport']
