"""Markdown exporter writing ClickUp docs and pages to the local filesystem."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..converters import MarkupRenderer
from ..models import ContentNode, PageNode
from ..tree_builder import layout_pages

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 100

EMPTY_PAGE_NOTE = "> ⚠️ **Note**: This page has no content.\n"
EMPTY_DOCUMENT_NOTE = "> ⚠️ **Note**: This document has no pages.\n"


def sanitize_filename(name: Optional[str], fallback: str = "Untitled") -> str:
    """
    Convert a display name to a filesystem-safe file or directory name.

    Args:
        name: Display name from ClickUp
        fallback: Name used when nothing usable is left

    Returns:
        Sanitized name
    """
    if not name:
        return fallback

    # Replace characters that are invalid in paths
    sanitized = INVALID_FILENAME_CHARS.sub('_', name.strip())

    # Collapse whitespace and separator runs
    sanitized = re.sub(r'\s+', '_', sanitized)
    sanitized = re.sub(r'_{2,}', '_', sanitized)

    # Truncate to reasonable length
    if len(sanitized) > MAX_FILENAME_LENGTH:
        sanitized = sanitized[:MAX_FILENAME_LENGTH]

    # Ensure it's not empty or a relative path component
    if not sanitized.strip('._'):
        return fallback

    return sanitized


class MarkdownExporter:
    """
    Writes doc forests to markdown files.

    Layout:
    1. One directory per space (created by the caller via ``space_directory``)
    2. One directory per doc holding one ``.md`` file per page
    3. Sub-pages in a subdirectory named after their parent page
    4. Child docs inside the parent doc's directory
    5. Docs without pages written as a single placeholder file
    """

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None, output_dir: Optional[str] = None):
        """
        Initialize the markdown exporter.

        Args:
            config: Configuration dictionary with export settings
            logger: Logger instance
            output_dir: Optional output directory override (takes precedence over config)
        """
        self.config = config
        self.logger = logger or logging.getLogger('clickup_archiver.exporters.markdown_exporter')

        export_config = config.get('export', {})
        self.output_directory = Path(output_dir) if output_dir else Path(export_config.get('output_directory', './output'))

        self.renderer = MarkupRenderer(logger=self.logger)

        # Paths written during this run, used to keep same-named pages apart
        self._written_paths: Set[Path] = set()

        self.stats = {
            'documents_exported': 0,
            'pages_exported': 0,
            'empty_documents': 0,
            'total_errors': 0
        }

    def space_directory(self, space_name: str) -> Path:
        """Create and return the directory for a space."""
        space_dir = self.output_directory / sanitize_filename(space_name, fallback="Space")
        space_dir.mkdir(parents=True, exist_ok=True)
        return space_dir

    def export_documents(self, roots: List[ContentNode], space_dir: Path) -> Dict[str, Any]:
        """
        Export a forest of docs below ``space_dir``.

        Args:
            roots: Root docs as returned by ``build_forest``
            space_dir: Directory of the space

        Returns:
            Export statistics for this forest
        """
        export_stats = {
            'documents_exported': 0,
            'pages_exported': 0,
            'errors': []
        }

        for root in roots:
            self._export_document_node(root, space_dir, export_stats)

        self.stats['documents_exported'] += export_stats['documents_exported']
        self.stats['pages_exported'] += export_stats['pages_exported']
        self.stats['total_errors'] += len(export_stats['errors'])
        return export_stats

    def _export_document_node(self, node: ContentNode, base_path: Path, export_stats: Dict[str, Any]) -> None:
        """Write a doc, then its child docs inside the doc's directory."""
        try:
            export_stats['pages_exported'] += self.save_document(node, base_path, export_stats['errors'])
            export_stats['documents_exported'] += 1
        except Exception as e:
            self.logger.error(f"Error exporting doc '{node.name}' (ID: {node.id}): {e}", exc_info=True)
            export_stats['errors'].append({
                'document_id': node.id,
                'document_name': node.name,
                'error': str(e)
            })

        if node.children:
            children_path = base_path / sanitize_filename(node.name)
            children_path.mkdir(parents=True, exist_ok=True)
            for child in node.children:
                self._export_document_node(child, children_path, export_stats)

    def save_document(self, node: ContentNode, base_path: Path, errors: Optional[List[Dict[str, Any]]] = None) -> int:
        """
        Write every page of a doc.

        A page that cannot be written is logged, appended to ``errors`` and
        skipped; the remaining pages are still written.

        Args:
            node: Doc with pages attached
            base_path: Directory the doc's own directory is created in
            errors: Optional list collecting per-page failures

        Returns:
            Number of page files written
        """
        if not node.pages:
            file_path = self._unique_path(base_path / f"{sanitize_filename(node.name)}.md", node.id)
            base_path.mkdir(parents=True, exist_ok=True)
            file_path.write_text(f"# {node.name or 'Untitled'}\n\n{EMPTY_DOCUMENT_NOTE}", encoding='utf-8')
            self.stats['empty_documents'] += 1
            self.logger.info(f"Saved: {file_path}")
            return 0

        doc_path = base_path / sanitize_filename(node.name)
        doc_path.mkdir(parents=True, exist_ok=True)

        layout = layout_pages(node.id, node.pages)
        written = 0
        for placement in layout.placements:
            if placement.slot_parent is None:
                target_dir = doc_path
            else:
                target_dir = doc_path / sanitize_filename(placement.slot_parent.name or 'Untitled Page')
            try:
                self.save_page(placement.page, target_dir)
            except OSError as e:
                self.logger.error(f"Error writing page '{placement.page.name}' (ID: {placement.page.id}): {e}")
                if errors is not None:
                    errors.append({
                        'document_id': node.id,
                        'page_id': placement.page.id,
                        'page_name': placement.page.name,
                        'error': str(e)
                    })
                continue
            written += 1

        self.logger.debug(f"Doc '{node.name}' exported: {written}/{len(node.pages)} pages")
        return written

    def save_page(self, page: PageNode, target_dir: Path) -> Path:
        """Write one page as ``<name>.md`` inside ``target_dir``."""
        target_dir.mkdir(parents=True, exist_ok=True)
        title = page.name or 'Untitled Page'
        file_path = self._unique_path(target_dir / f"{sanitize_filename(title)}.md", page.id)

        markdown = f"# {title}\n\n"
        body = self.renderer.render(page.content) if page.has_content() else ''
        if body.strip():
            markdown += body
        else:
            markdown += EMPTY_PAGE_NOTE

        file_path.write_text(markdown, encoding='utf-8')
        self.logger.info(f"  Saved page: {file_path}")
        return file_path

    def _unique_path(self, path: Path, item_id: str) -> Path:
        """Suffix the item id when another item already took this path."""
        if path in self._written_paths:
            path = path.with_name(f"{path.stem}-{sanitize_filename(item_id)}{path.suffix}")
            self.logger.debug(f"Name collision, writing to {path.name}")
        self._written_paths.add(path)
        return path

    def log_export_summary(self) -> None:
        """Log final export statistics."""
        self.logger.info("=" * 60)
        self.logger.info("MARKDOWN EXPORT SUMMARY")
        self.logger.info("=" * 60)
        self.logger.info(f"Docs exported: {self.stats['documents_exported']}")
        self.logger.info(f"Pages exported: {self.stats['pages_exported']}")
        if self.stats['empty_documents'] > 0:
            self.logger.info(f"Docs without pages: {self.stats['empty_documents']}")
        self.logger.info(f"Total errors: {self.stats['total_errors']}")
        self.logger.info(f"Output directory: {self.output_directory}")
        self.logger.info("=" * 60)


__all__ = ['MarkdownExporter', 'sanitize_filename']
