"""
Orchestration package for coordinating the crawl.

This package walks the ClickUp hierarchy space by space, hands docs and
tasks to the exporters and aggregates per-space outcomes into a report.
"""

from .crawl_orchestrator import CrawlOrchestrator, Pacer, WalkProgress
from .crawl_report import CrawlReport

__all__ = [
    'CrawlOrchestrator',
    'CrawlReport',
    'Pacer',
    'WalkProgress'
]
