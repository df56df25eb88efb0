"""Tests for lineage forest construction and layout."""

import pytest
from conftest import make_version

from app.core.errors import ConsistencyError
from pipeline.lineage.tree import LineageTreeBuilder


@pytest.fixture
def builder():
    return LineageTreeBuilder(row_height=200, sibling_width=300)


def test_siblings_are_ordered_and_symmetric(builder):
    versions = [make_version(1), make_version(2, parent=1), make_version(3, parent=1)]

    forest = builder.build(versions)
    assert [r.id for r in forest.roots] == [1]
    assert [c.id for c in forest.roots[0].children] == [2, 3]

    layout = builder.layout(forest)
    root, first, second = (layout.position_of(i) for i in (1, 2, 3))
    assert (root.x, root.y) == (0, 0)
    assert first.y == second.y == 200
    assert first.x == -150
    assert second.x == 150
    assert [(e.source, e.target) for e in layout.edges] == [(1, 2), (1, 3)]


def test_children_follow_creation_order_not_input_order(builder):
    versions = [make_version(3, parent=1), make_version(1), make_version(2, parent=1)]
    forest = builder.build(versions)
    assert [c.id for c in forest.roots[0].children] == [2, 3]


def test_duplicate_ids_collapse_to_one_node(builder):
    versions = [make_version(1), make_version(2, parent=1), make_version(2, parent=1), make_version(1)]
    forest = builder.build(versions)
    assert forest.node_count == 2
    assert len(forest.roots[0].children) == 1
    assert len(builder.layout(forest).edges) == 1


def test_every_child_parent_is_in_forest(builder):
    versions = [
        make_version(1), make_version(2, parent=1), make_version(3, parent=2),
        make_version(4, parent=2), make_version(5, parent=1),
    ]
    forest = builder.build(versions)
    for version_id, node in forest.nodes.items():
        if node.version.prev_version is not None:
            assert forest.parent_of(version_id).id == node.version.prev_version


def test_depth_first_layout(builder):
    versions = [
        make_version(1), make_version(2, parent=1), make_version(3, parent=2), make_version(4, parent=1),
    ]
    layout = builder.layout(builder.build(versions))

    assert [n.id for n in layout.nodes] == [1, 2, 3, 4]
    grandchild = layout.position_of(3)
    assert grandchild.depth == 2
    assert grandchild.y == 400
    assert grandchild.x == layout.position_of(2).x == -150


def test_multiple_roots_are_spread_at_depth_zero(builder):
    versions = [make_version(1), make_version(2), make_version(3, parent=2)]
    layout = builder.layout(builder.build(versions))
    assert layout.position_of(1).x == -150
    assert layout.position_of(2).x == 150
    assert layout.position_of(3).x == 150
    assert layout.position_of(3).y == 200


def test_layout_is_deterministic(builder):
    versions = [make_version(i, parent=(i // 2 or None) if i > 1 else None) for i in range(1, 8)]
    first = builder.layout(builder.build(versions))
    second = builder.layout(builder.build(versions))
    assert [(n.id, n.x, n.y) for n in first.nodes] == [(n.id, n.x, n.y) for n in second.nodes]


def test_orphan_becomes_extra_root(builder):
    versions = [make_version(1), make_version(2, parent=1), make_version(5, parent=4)]
    forest = builder.build(versions)

    assert forest.orphans == [5]
    assert [r.id for r in forest.roots] == [1, 5]
    assert forest.node_count == 3


def test_orphan_in_strict_mode_raises(builder):
    versions = [make_version(1), make_version(5, parent=4)]
    with pytest.raises(ConsistencyError) as exc_info:
        builder.build(versions, strict=True)
    assert exc_info.value.detail["version_id"] == 5


def test_parent_created_after_child_is_treated_as_orphan(builder):
    versions = [make_version(2, parent=3), make_version(3)]
    forest = builder.build(versions)
    assert forest.orphans == [2]
    assert [r.id for r in forest.roots] == [3, 2]


def test_empty_input(builder):
    forest = builder.build([])
    layout = builder.layout(forest)
    assert forest.roots == []
    assert layout.nodes == []
    assert layout.edges == []
