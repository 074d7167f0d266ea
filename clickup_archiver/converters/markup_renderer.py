"""Rich-text document tree to markdown conversion.

ClickUp rich text arrives as a typed node tree (``doc`` → ``paragraph`` →
``text`` with ``marks`` ...). The renderer walks that tree by recursive
descent and never raises on shapes it does not recognise: unknown nodes fall
back to the concatenation of the text they contain.

Nested lists inside a list item are flattened into the item's text rather
than rendered as sub-lists.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger('clickup_archiver.converters.markup_renderer')


class NodeKind(Enum):
    """Closed set of node categories the renderer understands."""
    DOCUMENT = "document"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BULLET_LIST = "bulletList"
    ORDERED_LIST = "orderedList"
    LIST_ITEM = "listItem"
    TEXT = "text"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, node: Dict[str, Any]) -> 'NodeKind':
        """Classify a node dict by its ``type`` tag."""
        node_type = node.get('type')
        if node_type in ('doc', 'document'):
            return cls.DOCUMENT
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == node_type:
                return kind
        return cls.UNKNOWN


class MarkupRenderer:
    """Converts typed rich-text nodes to markdown text."""

    BLOCK_SEPARATOR = "\n\n"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('clickup_archiver.converters.markup_renderer')
        self.stats = {
            'nodes_rendered': 0,
            'unknown_nodes': 0
        }

    def render(self, content: Any) -> str:
        """
        Render page content to markdown.

        Args:
            content: Markdown string, node dict, list of nodes, or None

        Returns:
            Markdown text (strings are returned unchanged)
        """
        if content is None:
            return ''
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            blocks = [self.render(item) for item in content]
            return self.BLOCK_SEPARATOR.join(block for block in blocks if block)
        if isinstance(content, dict):
            return self._render_node(content)
        return str(content)

    def _render_node(self, node: Dict[str, Any]) -> str:
        self.stats['nodes_rendered'] += 1
        kind = NodeKind.of(node)

        if kind in (NodeKind.DOCUMENT, NodeKind.PARAGRAPH):
            return self.render(node.get('content'))

        if kind is NodeKind.HEADING:
            level = self._heading_level(node)
            return f"{'#' * level} {self.extract_text(node)}"

        if kind in (NodeKind.BULLET_LIST, NodeKind.ORDERED_LIST):
            return self._render_list(node)

        if kind is NodeKind.LIST_ITEM:
            return f"- {self._list_item_text(node)}"

        if kind is NodeKind.TEXT:
            return self._render_text(node)

        # Unknown node type: keep whatever text it holds
        self.stats['unknown_nodes'] += 1
        self.logger.debug(f"Unknown node type '{node.get('type')}', flattening to text")
        return self.extract_text(node)

    def _render_text(self, node: Dict[str, Any]) -> str:
        """Apply marks in encounter order by nested wrapping."""
        text = node.get('text')
        text = '' if text is None else str(text)

        marks = node.get('marks')
        if not isinstance(marks, list):
            return text

        for mark in marks:
            mark_type = mark.get('type') if isinstance(mark, dict) else mark
            if mark_type == 'bold':
                text = f"**{text}**"
            elif mark_type == 'italic':
                text = f"*{text}*"
            elif mark_type == 'code':
                text = f"`{text}`"
            elif mark_type == 'link':
                attrs = mark.get('attrs') if isinstance(mark, dict) else None
                href = attrs.get('href', '') if isinstance(attrs, dict) else ''
                text = f"[{text}]({href or ''})"
        return text

    def _render_list(self, node: Dict[str, Any]) -> str:
        items = node.get('content')
        if not isinstance(items, list):
            return ''

        lines: List[str] = []
        for item in items:
            if isinstance(item, dict) and NodeKind.of(item) is NodeKind.LIST_ITEM:
                lines.append(f"- {self._list_item_text(item)}")
        return "\n".join(lines)

    def _list_item_text(self, item: Dict[str, Any]) -> str:
        children = item.get('content')
        if not isinstance(children, list):
            return self.extract_text(children)
        return ' '.join(self.extract_text(child) for child in children)

    @staticmethod
    def _heading_level(node: Dict[str, Any]) -> int:
        attrs = node.get('attrs')
        level = attrs.get('level') if isinstance(attrs, dict) else None
        try:
            return max(1, int(level))
        except (TypeError, ValueError):
            return 1

    def extract_text(self, node: Any) -> str:
        """Depth-first concatenation of every text leaf under ``node``."""
        if node is None:
            return ''
        if isinstance(node, str):
            return node
        if isinstance(node, list):
            return ''.join(self.extract_text(item) for item in node)
        if isinstance(node, dict):
            text = node.get('text')
            if text:
                return str(text)
            return self.extract_text(node.get('content'))
        return str(node)


def render_markdown(content: Any) -> str:
    """Convenience wrapper rendering content with a fresh renderer."""
    return MarkupRenderer().render(content)


__all__ = ['MarkupRenderer', 'NodeKind', 'render_markdown']
