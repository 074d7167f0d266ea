"""Data models for the ClickUp workspace archive pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger('clickup_archiver')


class ExportScope(Enum):
    """Archive outputs that can be switched on or off per run."""
    DOCS = "docs"
    TASKS = "tasks"


def _parent_ref(data: Dict[str, Any]) -> Optional[str]:
    """Read a parent reference from either a flat or a nested API shape."""
    parent_id = data.get('parent_id')
    if parent_id is None:
        parent = data.get('parent')
        if isinstance(parent, dict):
            parent_id = parent.get('id')
    return str(parent_id) if parent_id not in (None, '') else None


@dataclass
class PageNode:
    """A single page of a ClickUp doc."""

    id: str
    name: str
    content: Any = ''
    parent_id: Optional[str] = None
    date_created: Any = 0
    date_updated: Any = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'PageNode':
        """Build a page from a v3 pages payload entry."""
        return cls(
            id=str(data.get('id')),
            name=data.get('name') or '',
            content=data.get('content') or '',
            parent_id=_parent_ref(data),
            date_created=data.get('date_created') or 0,
            date_updated=data.get('date_updated') or data.get('date_edited') or 0
        )

    def has_content(self) -> bool:
        """Check whether the page carries any non-blank content."""
        if self.content is None:
            return False
        if isinstance(self.content, str):
            return self.content.strip() != ''
        return bool(self.content)


@dataclass
class ContentNode:
    """A ClickUp doc (content container) that may own pages and child docs."""

    id: str
    name: str
    type: str = 'doc'
    parent_id: Optional[str] = None
    children: List['ContentNode'] = field(default_factory=list)
    pages: Optional[List[PageNode]] = None
    date_created: Any = ''
    date_updated: Any = ''

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'ContentNode':
        """Build a doc descriptor from a view, doc or search payload."""
        node = cls(
            id=str(data.get('id')),
            name=data.get('name') or '',
            type=data.get('type') or 'doc',
            parent_id=_parent_ref(data),
            date_created=data.get('date_created') or '',
            date_updated=data.get('date_updated') or data.get('date_created') or ''
        )
        raw_pages = data.get('pages')
        if isinstance(raw_pages, list):
            node.pages = [PageNode.from_api(p) for p in raw_pages if isinstance(p, dict)]
        return node

    def is_complete(self) -> bool:
        """A doc is complete once its pages have been fetched."""
        return self.pages is not None

    def add_child(self, child: 'ContentNode') -> None:
        """Add a child doc."""
        self.children.append(child)

    def get_all_descendants(self, include_self: bool = False) -> List['ContentNode']:
        """Get all descendant docs recursively."""
        descendants = []
        if include_self:
            descendants.append(self)

        for child in self.children:
            descendants.append(child)
            descendants.extend(child.get_all_descendants())

        return descendants

    def __eq__(self, other: Any) -> bool:
        """Compare docs by ID."""
        if not isinstance(other, ContentNode):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        """Hash doc by ID."""
        return hash(self.id)


@dataclass
class TaskList:
    """A ClickUp list. `raw` is the API payload exported as a CSV row."""

    id: str
    name: str
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TaskList':
        return cls(id=str(data.get('id')), name=data.get('name') or '', raw=data)


@dataclass
class SpaceDescriptor:
    """A ClickUp space together with the workspace that owns it."""

    id: str
    name: str
    workspace_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], workspace_id: Optional[str] = None) -> 'SpaceDescriptor':
        return cls(
            id=str(data.get('id')),
            name=data.get('name') or 'Space',
            workspace_id=workspace_id
        )


@dataclass
class CrawlOutcome:
    """Per-space success/failure record used for logging and reporting."""

    scope: str
    item_id: str
    name: str
    success: bool = True
    error: Optional[str] = None
    counts: Dict[str, int] = field(default_factory=dict)
    timestamp: Optional[str] = None

    def __post_init__(self) -> None:
        """Initialize default counters and timestamp."""
        if not self.counts:
            self.counts = {
                'documents': 0,
                'pages': 0,
                'tasks': 0,
                'task_lists': 0,
                'rate_limited': 0,
                'failed_items': 0
            }
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat()

    def increment(self, counter: str, amount: int = 1) -> None:
        self.counts[counter] = self.counts.get(counter, 0) + amount

    def mark_failed(self, error: Any) -> None:
        """Record a subtree-fatal failure."""
        self.success = False
        self.error = str(error)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize outcome to dictionary."""
        return {
            'scope': self.scope,
            'item_id': self.item_id,
            'name': self.name,
            'success': self.success,
            'error': self.error,
            'counts': dict(self.counts),
            'timestamp': self.timestamp
        }


__all__ = [
    'ContentNode',
    'CrawlOutcome',
    'ExportScope',
    'PageNode',
    'SpaceDescriptor',
    'TaskList'
]
