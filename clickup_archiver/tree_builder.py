"""
Hierarchy reconstruction for ClickUp docs and pages.

ClickUp returns docs and pages as flat collections where each item carries an
optional parent reference. This module rebuilds the parent/child structure:

- build_forest: docs (or any node with ``id``/``parent_id``/``children``)
  become a forest of root nodes with children attached.
- layout_pages: pages of a single doc are placed into the directory slots
  used by the markdown exporter (doc root, sub-page directory, or orphan
  re-attachment).

A parent reference that points outside the collection makes the node a root.
That includes docs whose real parent lives in a different source collection,
which therefore show up as extra roots; this is a known limitation.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .models import ContentNode, PageNode

logger = logging.getLogger('clickup_archiver.tree_builder')


def build_forest(nodes: Iterable[ContentNode]) -> List[ContentNode]:
    """
    Reconstruct parent-child relationships from a flat list of nodes.

    Every input node appears in the output exactly once, either as a root or
    as a child of the node its ``parent_id`` names. Children keep their
    encounter order.

    Args:
        nodes: Nodes with ``id`` and optional ``parent_id`` references

    Returns:
        List of root nodes with children populated
    """
    nodes = list(nodes)
    if not nodes:
        return []

    # Build lookup dict for fast access
    node_map: Dict[str, ContentNode] = {}
    for node in nodes:
        if node.id in node_map and node_map[node.id] is not node:
            logger.warning(f"Duplicate node id {node.id} - keeping the later occurrence")
        node_map[node.id] = node

    # Reset children lists so repeated builds stay idempotent
    unique_nodes = [node for node in nodes if node_map[node.id] is node]
    for node in unique_nodes:
        node.children = []

    roots: List[ContentNode] = []
    for node in unique_nodes:
        parent = node_map.get(node.parent_id) if node.parent_id else None
        if parent is None or parent is node:
            if node.parent_id and parent is None:
                logger.debug(f"Parent {node.parent_id} not found for node {node.id}, treating as root")
            roots.append(node)
        else:
            parent.add_child(node)

    _promote_unreachable(unique_nodes, roots, node_map)

    logger.debug(f"Built forest from {len(unique_nodes)} nodes: {len(roots)} roots")
    return roots


def _promote_unreachable(
    nodes: List[ContentNode],
    roots: List[ContentNode],
    node_map: Dict[str, ContentNode]
) -> None:
    """Break parent cycles so that every node is reachable from some root."""
    reached: Set[str] = set()

    def mark(node: ContentNode) -> None:
        stack = [node]
        while stack:
            current = stack.pop()
            if current.id in reached:
                continue
            reached.add(current.id)
            stack.extend(current.children)

    for root in roots:
        mark(root)

    for node in nodes:
        if node.id in reached:
            continue
        parent = node_map[node.parent_id]
        parent.children = [child for child in parent.children if child is not node]
        logger.warning(f"Parent cycle detected at node {node.id}, promoting it to root")
        roots.append(node)
        mark(node)


@dataclass
class PagePlacement:
    """One page and the slot it is written to.

    ``slot_parent`` is None for the doc's own directory; otherwise the page is
    written into the subdirectory named after ``slot_parent``.
    """

    page: PageNode
    slot_parent: Optional[PageNode] = None


@dataclass
class PageLayout:
    """Placement of every page of one doc into exactly one output slot."""

    owner_id: str
    placements: List[PagePlacement] = field(default_factory=list)
    claimed: Set[str] = field(default_factory=set)

    def claim(self, page: PageNode, slot_parent: Optional[PageNode] = None) -> bool:
        """Place a page unless its id was already placed."""
        if page.id in self.claimed:
            return False
        self.claimed.add(page.id)
        self.placements.append(PagePlacement(page=page, slot_parent=slot_parent))
        return True

    @property
    def root_pages(self) -> List[PageNode]:
        return [p.page for p in self.placements if p.slot_parent is None]

    def pages_in_slot(self, parent_id: str) -> List[PageNode]:
        return [
            p.page for p in self.placements
            if p.slot_parent is not None and p.slot_parent.id == parent_id
        ]


def layout_pages(owner_id: str, pages: Iterable[PageNode]) -> PageLayout:
    """
    Classify the pages of one doc into root pages, sub-pages and orphans.

    - Root pages: no parent reference, or the parent is the owning doc.
    - Sub-pages: the parent is one of the root pages.
    - Orphans: everything else. An orphan whose parent exists anywhere in the
      collection goes into that parent's slot; otherwise it becomes an extra
      root page.

    Root and sub-page claiming happens before orphan resolution so an orphan
    never takes a slot from an already placed page.

    Args:
        owner_id: ID of the doc that owns the pages
        pages: Pages of that doc in API order

    Returns:
        PageLayout with one placement per distinct page id
    """
    pages = list(pages)
    layout = PageLayout(owner_id=owner_id)

    page_map: Dict[str, PageNode] = {}
    for page in pages:
        page_map.setdefault(page.id, page)

    roots = [p for p in pages if not p.parent_id or p.parent_id == owner_id]
    for page in roots:
        layout.claim(page)

    for root in layout.root_pages:
        for page in pages:
            if page.parent_id == root.id:
                layout.claim(page, slot_parent=root)

    for page in pages:
        if page.id in layout.claimed:
            continue
        parent = page_map.get(page.parent_id) if page.parent_id else None
        if parent is not None and parent is not page:
            logger.debug(f"Orphan page {page.id} re-attached under page {parent.id}")
            layout.claim(page, slot_parent=parent)
        else:
            logger.debug(f"Orphan page {page.id} has no parent in doc {owner_id}, placing at root")
            layout.claim(page)

    return layout


__all__ = ['PageLayout', 'PagePlacement', 'build_forest', 'layout_pages']
