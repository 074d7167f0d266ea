"""Converters package for ClickUp rich text to Markdown conversion."""

import logging

from .markup_renderer import MarkupRenderer, NodeKind, render_markdown


def convert_page_content(page, logger=None) -> str:
    """
    Convenience function to render a PageNode's content as markdown.

    Args:
        page: PageNode whose ``content`` is a markdown string or a node tree
        logger: Optional logger instance (uses module logger if not provided)

    Returns:
        Markdown text for the page body

    Example:
        >>> from clickup_archiver.converters import convert_page_content
        >>> from clickup_archiver.models import PageNode
        >>> page = PageNode(id='p1', name='Intro', content={'type': 'doc', 'content': []})
        >>> convert_page_content(page)
        ''
    """
    if logger is None:
        logger = logging.getLogger('clickup_archiver.converters')

    renderer = MarkupRenderer(logger=logger)
    return renderer.render(page.content)


__all__ = [
    'convert_page_content',
    'render_markdown',
    'MarkupRenderer',
    'NodeKind'
]
