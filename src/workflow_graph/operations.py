"""
Node operations: add, delete, duplicate, update, and move.

Each operation composes the grouping resolver, the edge classifier, and the
graph helpers so the workflow stays consistent after a structural edit:
composite nodes are deleted, duplicated, and moved together with their
children, and deleting a node bridges its predecessors to its successors.
"""

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from .clipboard import remap_edges
from .config import DEFAULT_LAYOUT, LayoutConfig
from .edges import create_edge, create_reconnection_edges, compute_reconnect_for_removed_set
from .graph import deselect_all, find_connected_edges, index_nodes, induced_subgraph
from .grouping import find_child_nodes, find_parent_node, store_relative_position
from .ids import build_id_mapping, generate_node_id
from .models import (
    TOOL_TYPE_PREFIX,
    Edge,
    GraphEdit,
    Node,
    NodeType,
    Position,
    as_edges,
    as_nodes,
)

logger = logging.getLogger(__name__)

COPY_LABEL_SUFFIX = " (Copy)"


def _default_label(node_type: str) -> str:
    if node_type.startswith(TOOL_TYPE_PREFIX):
        words = node_type[len(TOOL_TYPE_PREFIX):].split("-")
        return " ".join(word.capitalize() for word in words)
    return node_type.capitalize()


def has_start_node(nodes: Sequence[Node]) -> bool:
    """Check whether the workflow already has a Start node."""
    return any(node.type == NodeType.START.value for node in nodes)


def can_be_duplicated(node: Node) -> bool:
    """Check whether a node may be duplicated (Start nodes may not)."""
    return node.type != NodeType.START.value


def create_node(
    node_type: str,
    position: Position | Mapping[str, Any] | None = None,
    data: Mapping[str, Any] | None = None,
) -> Node:
    """
    Create a node of the given type with a fresh ID.

    ``tool-*`` types (e.g. ``tool-web-search``) become ``tool`` nodes that
    record the full tool identifier in ``data["toolId"]``.

    Args:
        node_type: Node type or tool identifier
        position: Canvas position (default: origin)
        data: Extra payload merged over the defaults

    Returns:
        The new Node
    """
    if position is None:
        position = Position()
    elif not isinstance(position, Position):
        position = Position.model_validate(position)

    node_data: dict[str, Any] = {"label": _default_label(node_type)}
    resolved_type = node_type
    if node_type.startswith(TOOL_TYPE_PREFIX):
        resolved_type = NodeType.TOOL.value
        node_data["toolId"] = node_type
    node_data.update(data or {})

    return Node(
        id=generate_node_id(resolved_type),
        type=resolved_type,
        position=position,
        data=node_data,
    )


def add_node(
    node_type: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    position: Position | Mapping[str, Any] | None = None,
    data: Mapping[str, Any] | None = None,
    edges: Sequence[Edge | Mapping[str, Any]] = (),
) -> GraphEdit:
    """
    Add a new node to the workflow.

    A workflow has at most one Start node; adding a second one is refused.

    Args:
        node_type: Node type or tool identifier
        nodes: All nodes in the workflow
        position: Canvas position (default: origin)
        data: Extra payload for the node
        edges: All edges in the workflow, passed through unchanged

    Returns:
        GraphEdit with the node appended
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    if node_type == NodeType.START.value and has_start_node(nodes):
        logger.warning("Prevented adding a second Start node")
        return GraphEdit.unchanged(nodes, edges, reason="A workflow can only have one Start node")

    node = create_node(node_type, position, data)
    logger.info(f"Added node '{node.id}' ({node.type})")
    return GraphEdit(nodes=[*nodes, node], edges=edges, affected_node_ids=[node.id])


def delete_node(
    node_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> GraphEdit:
    """
    Delete a node together with its grouped children.

    Every edge touching a removed node is dropped. The main node's
    predecessors are then reconnected to its successors so a chain stays
    linked.

    Args:
        node_id: The ID of the node to delete
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        GraphEdit without the deleted nodes; unchanged for an unknown ID
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    node = index_nodes(nodes).get(node_id)
    if node is None:
        logger.debug(f"Delete skipped: unknown node '{node_id}'")
        return GraphEdit.unchanged(nodes, edges, reason=f"Node '{node_id}' not found")

    removed = {node_id} | find_child_nodes(node_id, node.type, edges, nodes)
    connected = find_connected_edges(edges, node_id)

    remaining_nodes = [n for n in nodes if n.id not in removed]
    remaining_edges = [e for e in edges if e.source not in removed and e.target not in removed]
    bridges = create_reconnection_edges(connected.incoming, connected.outgoing, remaining_edges, remaining_nodes)

    if len(removed) > 1:
        logger.info(f"Deleted '{node_id}' ({node.type}) with {len(removed) - 1} child node(s)")
    else:
        logger.info(f"Deleted '{node_id}' with {len(bridges)} reconnection edge(s)")
    return GraphEdit(
        nodes=remaining_nodes,
        edges=[*remaining_edges, *bridges],
        affected_node_ids=[n.id for n in nodes if n.id in removed],
        affected_edge_ids=[e.id for e in bridges],
    )


def delete_nodes(
    node_ids: Collection[str],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> GraphEdit:
    """
    Delete a multi-node selection together with grouped children.

    The removed set is reconnected only when exactly one flow edge enters
    it and exactly one leaves it.

    Args:
        node_ids: IDs of the selected nodes
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        GraphEdit without the deleted nodes; unchanged if none of the IDs exist
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    index = index_nodes(nodes)

    removed: set[str] = set()
    for node_id in node_ids:
        node = index.get(node_id)
        if node is not None:
            removed.add(node_id)
            removed |= find_child_nodes(node_id, node.type, edges, nodes)

    if not removed:
        logger.debug(f"Delete skipped: none of {sorted(node_ids)} exist")
        return GraphEdit.unchanged(nodes, edges, reason="No matching nodes to delete")

    remaining_nodes = [n for n in nodes if n.id not in removed]
    remaining_edges = [e for e in edges if e.source not in removed and e.target not in removed]

    bridges: list[Edge] = []
    reconnect = compute_reconnect_for_removed_set(edges, removed)
    if reconnect is not None:
        source, target = reconnect
        bridges.append(
            create_edge(source, target, {e.id for e in remaining_edges}, source_node=index[source])
        )

    logger.info(f"Deleted {len(removed)} node(s) with {len(bridges)} reconnection edge(s)")
    return GraphEdit(
        nodes=remaining_nodes,
        edges=[*remaining_edges, *bridges],
        affected_node_ids=[n.id for n in nodes if n.id in removed],
        affected_edge_ids=[e.id for e in bridges],
    )


def duplicate_node(
    node_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
    layout: LayoutConfig | None = None,
) -> GraphEdit:
    """
    Duplicate a node together with its grouped children and internal edges.

    The copies keep their relative layout, are shifted by
    ``layout.duplicate_offset``, and come back selected. Only the main
    node's label gets the `` (Copy)`` suffix. Start nodes are never
    duplicated.

    Args:
        node_id: The ID of the node to duplicate
        nodes: All nodes in the workflow
        edges: All edges in the workflow
        layout: Layout settings (default: ``DEFAULT_LAYOUT``)

    Returns:
        GraphEdit with the duplicates appended; unchanged when refused
    """
    layout = layout or DEFAULT_LAYOUT
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    node = index_nodes(nodes).get(node_id)

    if node is None:
        logger.debug(f"Duplicate skipped: unknown node '{node_id}'")
        return GraphEdit.unchanged(nodes, edges, reason=f"Node '{node_id}' not found")
    if not can_be_duplicated(node):
        logger.warning("Prevented duplicating the Start node")
        return GraphEdit.unchanged(nodes, edges, reason="The Start node cannot be duplicated")

    group = {node_id} | find_child_nodes(node_id, node.type, edges, nodes)
    group_nodes, group_edges = induced_subgraph(group, nodes, edges)

    mapping = build_id_mapping(group_nodes, {n.id for n in nodes})
    offset = layout.duplicate_offset
    new_nodes: list[Node] = []
    for original in group_nodes:
        data = dict(original.data)
        if original.id == node_id:
            data["label"] = f"{original.label}{COPY_LABEL_SUFFIX}"
        new_nodes.append(
            original.model_copy(
                update={
                    "id": mapping[original.id],
                    "position": original.position.offset(offset.x, offset.y),
                    "selected": True,
                    "data": data,
                }
            )
        )

    new_edges = remap_edges(group_edges, mapping, {e.id for e in edges})

    logger.info(f"Duplicated {len(new_nodes)} node(s) and {len(new_edges)} edge(s) from '{node_id}'")
    return GraphEdit(
        nodes=[*deselect_all(nodes), *new_nodes],
        edges=[*edges, *new_edges],
        affected_node_ids=[n.id for n in new_nodes],
        affected_edge_ids=[e.id for e in new_edges],
    )


def update_node(
    node_id: str,
    data: Mapping[str, Any],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]] = (),
) -> GraphEdit:
    """
    Merge new payload values into a node's data.

    Returns:
        GraphEdit with the updated node; unchanged for an unknown ID
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    if node_id not in index_nodes(nodes):
        logger.debug(f"Update skipped: unknown node '{node_id}'")
        return GraphEdit.unchanged(nodes, edges, reason=f"Node '{node_id}' not found")

    updated = [
        n.model_copy(update={"data": {**n.data, **data}}) if n.id == node_id else n
        for n in nodes
    ]
    logger.debug(f"Updated node '{node_id}' ({', '.join(data)})")
    return GraphEdit(nodes=updated, edges=edges, affected_node_ids=[node_id])


def move_node(
    node_id: str,
    position: Position | Mapping[str, Any],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> GraphEdit:
    """
    Move a node, dragging its grouped children along.

    Children keep their offset to the moved node. When the moved node is
    itself a child, its cached offset to its owner is refreshed.

    Args:
        node_id: The ID of the node to move
        position: New canvas position of the node
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        GraphEdit with the moved nodes; unchanged for an unknown ID
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    index = index_nodes(nodes)
    node = index.get(node_id)
    if node is None:
        logger.debug(f"Move skipped: unknown node '{node_id}'")
        return GraphEdit.unchanged(nodes, edges, reason=f"Node '{node_id}' not found")

    if not isinstance(position, Position):
        position = Position.model_validate(position)
    dx = position.x - node.position.x
    dy = position.y - node.position.y

    children = find_child_nodes(node_id, node.type, edges, nodes)
    moved_node = node.model_copy(update={"position": position})

    parent_id = find_parent_node(node_id, edges, nodes)
    if parent_id is not None and parent_id not in children:
        parent = index[parent_id]
        relative = Position(x=position.x - parent.position.x, y=position.y - parent.position.y)
        moved_node = store_relative_position(moved_node, relative)

    moved: list[Node] = []
    for n in nodes:
        if n.id == node_id:
            n = moved_node
        elif n.id in children:
            n = n.model_copy(update={"position": n.position.offset(dx, dy)})
        moved.append(n)

    logger.debug(f"Moved '{node_id}' by ({dx}, {dy}) with {len(children)} child node(s)")
    return GraphEdit(
        nodes=moved,
        edges=edges,
        affected_node_ids=[n.id for n in nodes if n.id == node_id or n.id in children],
    )
