"""
Crawl orchestrator for archiving a ClickUp workspace.

This module walks workspaces → spaces → folders → lists → tasks and
spaces → docs → pages, strictly sequentially, and hands what it finds to the
exporters:

- tasks are streamed one by one into ``<space>/tasks.csv``
- task lists are written in one batch to ``<space>/task_lists.csv``
- docs are merged from every index they show up in, completed with their
  pages, structured into a forest and written as markdown

Remote capabilities that do not exist for a node count as "no children".
Rate limits are logged with progress counters and the walk moves on to the
next item; other per-item failures skip only that item. A failure of a whole
space is recorded as a failed outcome and the next space is crawled.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..exporters import CsvExporter, MarkdownExporter
from ..fetchers.base_fetcher import (
    BaseFetcher,
    FetcherError,
    FetchResult,
    FetchStatus,
    StructuralConfigurationFailure
)
from ..logger import ProgressTracker, log_section
from ..models import ContentNode, CrawlOutcome, ExportScope, SpaceDescriptor, TaskList
from ..tree_builder import build_forest

logger = logging.getLogger('clickup_archiver.orchestrator')

# A task missing any of these is re-fetched through the detail endpoint
REQUIRED_TASK_FIELDS = ('subtasks', 'description', 'markdown_description')

TASKS_FILENAME = 'tasks.csv'
TASK_LISTS_FILENAME = 'task_lists.csv'


def task_is_complete(task: Dict[str, Any]) -> bool:
    """Check whether a bulk task record already carries every detail field."""
    return all(task.get(name) not in (None, '') for name in REQUIRED_TASK_FIELDS)


class Pacer:
    """Fixed delay between requests of one kind."""

    def __init__(self, delay: float, sleep: Callable[[float], None] = time.sleep):
        self.delay = max(0.0, float(delay or 0))
        self._sleep = sleep
        self.pauses = 0

    def pause(self) -> None:
        if self.delay > 0:
            self._sleep(self.delay)
        self.pauses += 1


@dataclass
class WalkProgress:
    """Counters of one space walk, used for rate-limit progress lines."""

    lists_total: int = 0
    lists_processed: int = 0
    tasks_processed: int = 0
    documents_processed: int = 0
    rate_limited: int = 0
    failed_items: int = 0
    current_list: Optional[str] = None

    def describe(self, item_index: Optional[int] = None, item_total: Optional[int] = None) -> str:
        parts = [f"Lists: {self.lists_processed}/{self.lists_total}"]
        if self.current_list:
            parts.append(f"List: {self.current_list}")
        if item_index is not None and item_total is not None:
            parts.append(f"Tasks in list: {item_index + 1}/{item_total}")
        parts.append(f"Total processed: {self.tasks_processed}")
        return ", ".join(parts)


class CrawlOrchestrator:
    """Central coordinator walking ClickUp spaces and exporting their docs and tasks."""

    def __init__(
        self,
        config: Dict[str, Any],
        fetcher: BaseFetcher,
        logger: Optional[logging.Logger] = None,
        output_dir: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize crawl orchestrator.

        Args:
            config: Configuration dictionary
            fetcher: Fetcher used for every remote call
            logger: Optional logger instance
            output_dir: Optional output directory override
            sleep: Sleep function used for pacing (tests pass a no-op)
        """
        self.config = config
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger('clickup_archiver.orchestrator')

        crawl_config = config.get('crawl', {})
        advanced_config = config.get('advanced', {})

        self.scopes = set()
        if crawl_config.get('include_docs', True):
            self.scopes.add(ExportScope.DOCS)
        if crawl_config.get('include_tasks', True):
            self.scopes.add(ExportScope.TASKS)

        self.markdown_exporter = MarkdownExporter(config, self.logger, output_dir=output_dir)
        self.output_directory = self.markdown_exporter.output_directory

        self.document_pacer = Pacer(advanced_config.get('document_delay', 0.6), sleep)
        self.task_pacer = Pacer(advanced_config.get('task_detail_delay', 0.1), sleep)
        self.space_pacer = Pacer(advanced_config.get('space_delay', 1.0), sleep)

        self.outcomes: List[CrawlOutcome] = []
        self._listing_cache: Dict[Any, List[Dict[str, Any]]] = {}

        self.logger.info(
            f"CrawlOrchestrator initialized: output={self.output_directory}, "
            f"scopes={sorted(scope.value for scope in self.scopes)}"
        )

    @property
    def include_docs(self) -> bool:
        return ExportScope.DOCS in self.scopes

    @property
    def include_tasks(self) -> bool:
        return ExportScope.TASKS in self.scopes

    def run(self, space_id: Optional[str] = None, workspace_id: Optional[str] = None) -> List[CrawlOutcome]:
        """
        Crawl one space, or every space of one or all workspaces.

        Each space is isolated: its failure is recorded as a failed outcome
        and the remaining spaces are still crawled.

        Args:
            space_id: Only crawl this space
            workspace_id: Only crawl spaces of this workspace

        Returns:
            One CrawlOutcome per space

        Raises:
            FetcherError: If workspaces or spaces cannot be listed at all
        """
        log_section("Crawl")
        spaces = self.resolve_spaces(space_id=space_id, workspace_id=workspace_id)

        if not spaces:
            self.logger.warning("No spaces found to crawl")
            return self.outcomes

        with ProgressTracker(len(spaces), "spaces", log_every=1) as tracker:
            for index, space in enumerate(spaces):
                if index > 0:
                    self.space_pacer.pause()
                outcome = self._crawl_space_isolated(space)
                tracker.increment(success=outcome.success)

        self.markdown_exporter.log_export_summary()
        return self.outcomes

    def resolve_spaces(self, space_id: Optional[str] = None, workspace_id: Optional[str] = None) -> List[SpaceDescriptor]:
        """
        Resolve the spaces a run covers together with their owning workspaces.

        A requested space that no visible workspace owns is still returned,
        without a workspace id; crawling its docs then fails for that space.
        """
        workspaces = self.list_workspaces()
        if workspace_id:
            workspaces = [ws for ws in workspaces if str(ws.get('id')) == str(workspace_id)] or [{'id': workspace_id}]

        spaces: List[SpaceDescriptor] = []
        for workspace in workspaces:
            ws_id = str(workspace.get('id'))
            result = self.fetcher.fetch_spaces(ws_id)
            if not result.ok:
                self.logger.warning(f"Could not list spaces of workspace {ws_id}: {result.error}")
                continue
            for data in result.items('spaces'):
                space = SpaceDescriptor.from_api(data, workspace_id=ws_id)
                if space_id is None or space.id == str(space_id):
                    spaces.append(space)

        if space_id is not None and not spaces:
            self.logger.warning(f"Space {space_id} not found in any visible workspace")
            spaces.append(SpaceDescriptor(id=str(space_id), name=str(space_id), workspace_id=workspace_id))

        self.logger.info(f"Resolved {len(spaces)} space(s) to crawl")
        return spaces

    def list_workspaces(self) -> List[Dict[str, Any]]:
        """List workspaces (``teams``) visible to the token."""
        result = self.fetcher.fetch_workspaces()
        if not result.ok:
            raise FetcherError(f"Could not list workspaces ({result.status.value}): {result.error}")
        return result.items('teams')

    def describe_workspaces(self) -> List[Dict[str, Any]]:
        """Workspaces with their spaces, for ``--list-workspaces``."""
        described = []
        for workspace in self.list_workspaces():
            ws_id = str(workspace.get('id'))
            spaces = self.fetcher.fetch_spaces(ws_id).items('spaces')
            described.append({
                'id': ws_id,
                'name': workspace.get('name') or '',
                'spaces': [{'id': str(s.get('id')), 'name': s.get('name') or ''} for s in spaces]
            })
        return described

    def _crawl_space_isolated(self, space: SpaceDescriptor) -> CrawlOutcome:
        """Crawl a space, turning any failure into a failed outcome."""
        try:
            outcome = self.crawl_space(space)
        except StructuralConfigurationFailure as e:
            self.logger.error(f"Cannot crawl space '{space.name}' ({space.id}): {e}")
            outcome = CrawlOutcome(scope='space', item_id=space.id, name=space.name)
            outcome.mark_failed(e)
        except Exception as e:
            self.logger.error(f"Error crawling space '{space.name}' ({space.id}): {e}", exc_info=True)
            outcome = CrawlOutcome(scope='space', item_id=space.id, name=space.name)
            outcome.mark_failed(e)

        self.outcomes.append(outcome)
        return outcome

    def crawl_space(self, space: SpaceDescriptor) -> CrawlOutcome:
        """
        Crawl one space and write its archive.

        Args:
            space: Space to crawl

        Returns:
            Outcome with per-space counts

        Raises:
            StructuralConfigurationFailure: If docs are requested but the
                space has no workspace id
        """
        if self.include_docs and not space.workspace_id:
            raise StructuralConfigurationFailure(
                f"Workspace ID is required to fetch doc content of space {space.id}"
            )

        self.logger.info(f"Crawling space: {space.name} ({space.id})")
        self._listing_cache.clear()

        outcome = CrawlOutcome(scope='space', item_id=space.id, name=space.name)
        progress = WalkProgress()
        space_dir = self.markdown_exporter.space_directory(space.name)

        if self.include_tasks:
            task_lists = self.collect_task_lists(space, progress)
            outcome.counts['tasks'] = self._export_tasks(space, space_dir, task_lists, progress)
            outcome.counts['task_lists'] = self._export_task_lists(task_lists, space_dir)

        if self.include_docs:
            self.logger.info("  Searching for docs...")
            documents = self.discover_documents(space, progress)
            if not documents:
                self.logger.info("  No docs found in this space")
            else:
                self.logger.info(f"  Found {len(documents)} doc(s)")
                completed = self._complete_documents(documents, space, progress)
                roots = build_forest(completed)
                export_stats = self.markdown_exporter.export_documents(roots, space_dir)
                outcome.counts['documents'] = export_stats['documents_exported']
                outcome.counts['pages'] = export_stats['pages_exported']
                progress.failed_items += len(export_stats['errors'])

        outcome.counts['rate_limited'] = progress.rate_limited
        outcome.counts['failed_items'] = progress.failed_items
        self.logger.info(
            f"Space '{space.name}' done: {outcome.counts['documents']} doc(s), "
            f"{outcome.counts['pages']} page(s), {outcome.counts['tasks']} task(s), "
            f"{outcome.counts['task_lists']} list(s)"
        )
        return outcome

    # ------------------------------------------------------------------
    # Hierarchy listings
    # ------------------------------------------------------------------

    def _listing(self, key: Any, fetch: Callable[[], FetchResult], items_key: str,
                 progress: WalkProgress, label: str) -> List[Dict[str, Any]]:
        """Fetch and cache one child listing; any non-OK result reads as empty."""
        if key in self._listing_cache:
            return self._listing_cache[key]

        result = fetch()
        self._note_result(result, progress, label)
        items = [item for item in result.items(items_key) if isinstance(item, dict)]
        if result.ok:
            self._listing_cache[key] = items
        return items

    def _note_result(self, result: FetchResult, progress: WalkProgress, label: str,
                     item_index: Optional[int] = None, item_total: Optional[int] = None) -> None:
        """Log a non-OK result and count it in the walk progress."""
        if result.ok:
            return
        if result.is_rate_limited:
            progress.rate_limited += 1
            self.logger.warning(f"Rate limited! {progress.describe(item_index, item_total)} ({label})")
        elif result.status is FetchStatus.UNSUPPORTED:
            self.logger.debug(f"{label}: not available")
        else:
            progress.failed_items += 1
            self.logger.warning(f"Error fetching {label}: {result.error}")

    def _space_folders(self, space: SpaceDescriptor, progress: WalkProgress) -> List[Dict[str, Any]]:
        return self._listing(('folders', space.id), lambda: self.fetcher.fetch_folders(space.id),
                             'folders', progress, f"folders of space {space.id}")

    def _space_lists(self, space: SpaceDescriptor, progress: WalkProgress) -> List[Dict[str, Any]]:
        return self._listing(('space_lists', space.id), lambda: self.fetcher.fetch_space_lists(space.id),
                             'lists', progress, f"lists of space {space.id}")

    def _folder_lists(self, folder: Dict[str, Any], progress: WalkProgress) -> List[Dict[str, Any]]:
        folder_id = str(folder.get('id'))
        return self._listing(('folder_lists', folder_id), lambda: self.fetcher.fetch_folder_lists(folder_id),
                             'lists', progress, f"lists of folder {folder.get('name') or folder_id}")

    def collect_task_lists(self, space: SpaceDescriptor, progress: Optional[WalkProgress] = None) -> List[TaskList]:
        """
        Collect the lists of a space: lists directly in the space, then the
        lists of every folder. A list seen twice keeps its later record.
        """
        progress = progress or WalkProgress()
        collected: Dict[str, TaskList] = {}

        for data in self._space_lists(space, progress):
            task_list = TaskList.from_api(data)
            collected[task_list.id] = task_list

        for folder in self._space_folders(space, progress):
            for data in self._folder_lists(folder, progress):
                task_list = TaskList.from_api(data)
                collected[task_list.id] = task_list

        progress.lists_total = len(collected)
        return list(collected.values())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def iter_space_tasks(
        self,
        space: SpaceDescriptor,
        progress: Optional[WalkProgress] = None,
        task_lists: Optional[List[TaskList]] = None
    ) -> Iterator[Dict[str, Any]]:
        """
        Yield every task of a space, one at a time.

        Tasks missing detail fields are completed through the detail
        endpoint; when that fails the bulk record is yielded instead.

        Args:
            space: Space to walk
            progress: Walk counters (a fresh one when omitted)
            task_lists: Lists to walk (collected when omitted)
        """
        progress = progress or WalkProgress()
        if task_lists is None:
            task_lists = self.collect_task_lists(space, progress)
        progress.lists_total = len(task_lists)

        for task_list in task_lists:
            progress.current_list = task_list.name or task_list.id
            yield from self._iter_list_tasks(task_list, progress)
            progress.lists_processed += 1

        progress.current_list = None

    def _iter_list_tasks(self, task_list: TaskList, progress: WalkProgress) -> Iterator[Dict[str, Any]]:
        """Yield the tasks of one list, page by page."""
        page = 0
        while True:
            result = self.fetcher.fetch_tasks(task_list.id, page=page)
            if not result.ok:
                self._note_result(result, progress, f"tasks of list {task_list.id}")
                return

            tasks = [task for task in result.items('tasks') if isinstance(task, dict)]
            for index, task in enumerate(tasks):
                yield self._complete_task(task, progress, index, len(tasks))

            last_page = not isinstance(result.data, dict) or result.data.get('last_page') is not False
            if not tasks or last_page:
                return
            page += 1

    def _complete_task(self, task: Dict[str, Any], progress: WalkProgress,
                       index: int, total: int) -> Dict[str, Any]:
        """Return the detailed record of a task, or the bulk record if that cannot be had."""
        final_task = task
        task_id = task.get('id')

        if not task_is_complete(task) and task_id is not None:
            result = self.fetcher.fetch_task(str(task_id))
            self.task_pacer.pause()
            if result.ok and isinstance(result.data, dict) and result.data:
                final_task = result.data
            else:
                self._note_result(result, progress, f"task {task_id}", index, total)

        progress.tasks_processed += 1
        return final_task

    def _export_tasks(self, space: SpaceDescriptor, space_dir: Path,
                      task_lists: List[TaskList], progress: WalkProgress) -> int:
        """Stream every task of a space into ``tasks.csv``."""
        self.logger.info(f"  Exporting tasks of {len(task_lists)} list(s)...")
        exporter = CsvExporter(space_dir, logger=self.logger)
        writer = exporter.open_stream(TASKS_FILENAME)
        try:
            for task in self.iter_space_tasks(space, progress, task_lists=task_lists):
                writer.observe(task)
        finally:
            count = exporter.close_stream(writer)

        if count == 0:
            self.logger.info("  No tasks found in this space")
        return count

    def _export_task_lists(self, task_lists: List[TaskList], space_dir: Path) -> int:
        """Write every list of a space to ``task_lists.csv`` in one batch."""
        exporter = CsvExporter(space_dir, logger=self.logger)
        exporter.export_batch([task_list.raw for task_list in task_lists], TASK_LISTS_FILENAME)
        return len(task_lists)

    # ------------------------------------------------------------------
    # Docs
    # ------------------------------------------------------------------

    def discover_documents(self, space: SpaceDescriptor, progress: Optional[WalkProgress] = None) -> List[ContentNode]:
        """
        Merge doc descriptors from every index of a space.

        Indexes are read in order: doc views of the space, docs of each
        folder, docs of each list in the space, docs of each list in a
        folder. A doc found by several indexes keeps the descriptor of the
        index read last.
        """
        progress = progress or WalkProgress()
        merged: Dict[str, ContentNode] = {}

        def merge(descriptors: List[Dict[str, Any]]) -> None:
            for data in descriptors:
                if not isinstance(data, dict) or data.get('id') in (None, ''):
                    continue
                node = ContentNode.from_api(data)
                if node.id in merged:
                    self.logger.debug(f"Doc {node.id} discovered again, keeping the later descriptor")
                merged[node.id] = node

        views = self.fetcher.fetch_views(space.id)
        self._note_result(views, progress, f"views of space {space.id}")
        merge([view for view in views.items('views') if isinstance(view, dict) and view.get('type') == 'doc'])

        folders = self._space_folders(space, progress)
        for folder in folders:
            result = self.fetcher.fetch_folder_documents(str(folder.get('id')))
            self._note_result(result, progress, f"docs of folder {folder.get('id')}")
            merge(self._document_items(result))

        for task_list in self._space_lists(space, progress):
            result = self.fetcher.fetch_list_documents(str(task_list.get('id')))
            self._note_result(result, progress, f"docs of list {task_list.get('id')}")
            merge(self._document_items(result))

        for folder in folders:
            for task_list in self._folder_lists(folder, progress):
                result = self.fetcher.fetch_list_documents(str(task_list.get('id')))
                self._note_result(result, progress, f"docs of list {task_list.get('id')}")
                merge(self._document_items(result))

        return list(merged.values())

    @staticmethod
    def _document_items(result: FetchResult) -> List[Dict[str, Any]]:
        return result.items('documents') or result.items('docs')

    def _complete_documents(self, documents: List[ContentNode], space: SpaceDescriptor,
                            progress: WalkProgress) -> List[ContentNode]:
        """Attach pages to every doc that has none yet, keeping the partial doc on failure."""
        completed: List[ContentNode] = []

        for document in documents:
            if document.is_complete():
                completed.append(document)
                continue

            result = self.fetcher.fetch_document(document.id, space.workspace_id)
            self.document_pacer.pause()
            progress.documents_processed += 1

            if result.ok and isinstance(result.data, ContentNode):
                detailed = result.data
                if not detailed.name:
                    detailed.name = document.name
                self.logger.info(f"  Fetched: {detailed.name} ({len(detailed.pages or [])} page(s))")
                completed.append(detailed)
            else:
                self._note_result(result, progress, f"doc {document.id}")
                completed.append(document)

        return completed


__all__ = [
    'CrawlOrchestrator',
    'Pacer',
    'REQUIRED_TASK_FIELDS',
    'WalkProgress',
    'task_is_complete'
]
