"""Lineage tree builder: flat version list to forest and deterministic layout."""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from app.core.config import settings
from app.core.errors import ConsistencyError
from app.schemas.version import Version

logger = logging.getLogger(__name__)


@dataclass
class VersionNode:
    version: Version
    children: list["VersionNode"] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.version.id


@dataclass
class Forest:
    roots: list[VersionNode]
    nodes: dict[int, VersionNode]
    orphans: list[int] = field(default_factory=list)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def parent_of(self, version_id: int) -> Optional[VersionNode]:
        node = self.nodes.get(version_id)
        if node is None or node.version.prev_version is None:
            return None
        return self.nodes.get(node.version.prev_version)


@dataclass(frozen=True)
class PositionedNode:
    id: int
    version: Version
    x: float
    y: float
    depth: int


@dataclass(frozen=True)
class Edge:
    source: int
    target: int


@dataclass
class TreeLayout:
    nodes: list[PositionedNode]
    edges: list[Edge]

    def position_of(self, version_id: int) -> Optional[PositionedNode]:
        for node in self.nodes:
            if node.id == version_id:
                return node
        return None


class LineageTreeBuilder:
    """Builds a forest keyed by parent pointers and lays it out top-down."""

    def __init__(self, row_height: Optional[float] = None, sibling_width: Optional[float] = None):
        self.row_height = row_height if row_height is not None else settings.TREE_ROW_HEIGHT
        self.sibling_width = sibling_width if sibling_width is not None else settings.TREE_SIBLING_WIDTH

    def build(self, versions: Sequence[Version], strict: bool = False) -> Forest:
        """Group versions into a forest.

        Duplicate ids collapse to the first record. A version whose parent is
        missing, or was created after it, is an orphan: listed in
        ``Forest.orphans`` and kept as an extra root, or a ConsistencyError
        when ``strict`` is set.
        """
        ordered = sorted(versions, key=lambda v: v.created_at)

        nodes: dict[int, VersionNode] = {}
        position: dict[int, int] = {}
        for version in ordered:
            if version.id in nodes:
                continue
            position[version.id] = len(nodes)
            nodes[version.id] = VersionNode(version)

        roots: list[VersionNode] = []
        orphan_roots: list[VersionNode] = []
        orphans: list[int] = []
        for version_id, node in nodes.items():
            parent_id = node.version.prev_version
            if parent_id is None:
                roots.append(node)
            elif parent_id in nodes and position[parent_id] < position[version_id]:
                nodes[parent_id].children.append(node)
            else:
                if strict:
                    raise ConsistencyError(
                        f"Version {version_id} references parent {parent_id} which is not in the fetched set",
                        extra={"version_id": version_id, "parent_version_id": parent_id},
                    )
                logger.warning("Version %s has no usable parent %s; shown as a root", version_id, parent_id)
                orphans.append(version_id)
                orphan_roots.append(node)

        return Forest(roots=roots + orphan_roots, nodes=nodes, orphans=orphans)

    def layout(self, forest: Forest) -> TreeLayout:
        """Depth-first layout: y from depth, x spread evenly around the parent."""
        positioned: list[PositionedNode] = []
        edges: list[Edge] = []

        root_xs = self._spread(0.0, len(forest.roots))
        stack: list[tuple[VersionNode, int, float]] = [
            (root, 0, x) for root, x in reversed(list(zip(forest.roots, root_xs)))
        ]
        while stack:
            node, depth, x = stack.pop()
            positioned.append(PositionedNode(node.id, node.version, x, depth * self.row_height, depth))

            child_xs = self._spread(x, len(node.children))
            for child in node.children:
                edges.append(Edge(source=node.id, target=child.id))
            for child, child_x in reversed(list(zip(node.children, child_xs))):
                stack.append((child, depth + 1, child_x))

        return TreeLayout(nodes=positioned, edges=edges)

    def _spread(self, center: float, count: int) -> list[float]:
        start = center - (count - 1) * self.sibling_width / 2
        return [start + index * self.sibling_width for index in range(count)]
