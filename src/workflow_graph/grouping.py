"""
Grouping resolver: parent/child relationships between nodes.

Composite constructs move, copy, duplicate, and delete as a unit:

- Agent + the tools attached to its tool/chat-model/memory handles
- While/ForEach + the loop body between its ``loop`` and ``back`` handles
- IfElse + the nodes owned by exactly one of its branches
- Loop + End-loop pairs sharing a ``pairId``

Each rule is a pure "children-of" function registered in ``CHILD_RESOLVERS``
under the node type it applies to. Unknown types fall back to detecting the
same handle patterns on their edges. ``find_child_nodes`` is the single
entry point used by copy, duplicate, delete, and move.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from .graph import index_nodes, reachable_from, to_digraph
from .models import (
    ATTACHMENT_HANDLES,
    BRANCH_HANDLES,
    Edge,
    Handle,
    Node,
    NodeType,
    Position,
)

logger = logging.getLogger(__name__)

RELATIVE_POSITION_KEY = "parentRelativePosition"

ChildResolver = Callable[[str, Sequence[Edge], Mapping[str, Node]], list[str]]


# ==================== Relation finders ====================


def find_tool_nodes_for_agent(agent_node_id: str, edges: Iterable[Edge]) -> list[str]:
    """
    Find all nodes attached to an agent's tool/chat-model/memory handles.

    Args:
        agent_node_id: The ID of the agent node
        edges: All edges in the workflow

    Returns:
        Attached node IDs in edge order
    """
    attached: list[str] = []
    for edge in edges:
        if edge.target == agent_node_id and edge.target_handle in ATTACHMENT_HANDLES:
            if edge.source not in attached:
                attached.append(edge.source)
    return attached


def find_loop_block_nodes(
    loop_node_id: str,
    edges: Sequence[Edge],
    require_return: bool = True,
) -> list[str]:
    """
    Find all nodes in the body of a While/ForEach construct.

    The body is every node reachable from the construct's ``loop`` handle
    without passing through the construct itself. When ``require_return``
    is set and the construct already receives ``back`` edges, the body is
    narrowed to the nodes that can reach one of those edges, which drops
    exits that leave the loop.

    Args:
        loop_node_id: The ID of the while/foreach node
        edges: All edges in the workflow
        require_return: Whether to keep only nodes that return via ``back``

    Returns:
        Body node IDs in BFS order
    """
    starts = [
        edge.target
        for edge in edges
        if edge.source == loop_node_id and edge.source_handle == Handle.LOOP.value
    ]
    if not starts:
        return []

    blocked = {loop_node_id}
    graph = to_digraph(edges)
    forward = reachable_from(graph, starts, blocked)
    if not require_return:
        return forward

    returns = [
        edge.source
        for edge in edges
        if edge.target == loop_node_id and edge.target_handle == Handle.BACK.value
    ]
    if not returns:
        return forward

    backward = set(reachable_from(graph.reverse(copy=False), returns, blocked))
    return [node_id for node_id in forward if node_id in backward]


def find_branch_nodes(ifelse_node_id: str, branch_handle: str, edges: Sequence[Edge]) -> list[str]:
    """
    Find all nodes reachable from one branch of an IfElse node.

    Edges into a ``back`` handle return control to an enclosing loop and are
    not followed.

    Args:
        ifelse_node_id: The ID of the ifelse node
        branch_handle: ``"true"`` or ``"false"``
        edges: All edges in the workflow

    Returns:
        Node IDs reachable from the branch, in BFS order
    """
    starts = [
        edge.target
        for edge in edges
        if edge.source == ifelse_node_id and edge.source_handle == branch_handle
    ]
    flow_edges = [edge for edge in edges if edge.target_handle != Handle.BACK.value]
    return reachable_from(to_digraph(flow_edges), starts, {ifelse_node_id})


def find_end_loop_for_pair(loop_node_id: str, nodes: Mapping[str, Node]) -> str | None:
    """Find the ``end-loop`` node sharing the loop node's ``pairId``."""
    loop_node = nodes.get(loop_node_id)
    if loop_node is None:
        return None
    pair_id = loop_node.data.get("pairId")
    if not pair_id:
        return None
    for node in nodes.values():
        if node.type == NodeType.END_LOOP.value and node.data.get("pairId") == pair_id:
            return node.id
    return None


# ==================== Children-of rules ====================


def _agent_children(node_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node]) -> list[str]:
    return find_tool_nodes_for_agent(node_id, edges)


def _loop_block_children(node_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node]) -> list[str]:
    return find_loop_block_nodes(node_id, edges)


def _branch_children(node_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node]) -> list[str]:
    # Nodes reachable from both branches sit at or after the merge point
    true_branch = find_branch_nodes(node_id, Handle.TRUE.value, edges)
    false_branch = find_branch_nodes(node_id, Handle.FALSE.value, edges)
    shared = set(true_branch) & set(false_branch)
    return [n for n in true_branch + false_branch if n not in shared]


def _loop_pair_children(node_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node]) -> list[str]:
    end_loop_id = find_end_loop_for_pair(node_id, nodes)
    if end_loop_id is None:
        return []
    body = reachable_from(
        to_digraph(e for e in edges if e.source != end_loop_id),
        [edge.target for edge in edges if edge.source == node_id],
        {node_id},
    )
    return [n for n in body if n != end_loop_id] + [end_loop_id]


def _detected_children(node_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node]) -> list[str]:
    """Apply every rule whose handle pattern appears on the node's edges."""
    children: list[str] = []
    children.extend(find_tool_nodes_for_agent(node_id, edges))
    children.extend(find_loop_block_nodes(node_id, edges))
    if any(e.source == node_id and e.source_handle in BRANCH_HANDLES for e in edges):
        children.extend(_branch_children(node_id, edges, nodes))
    return children


CHILD_RESOLVERS: dict[str, ChildResolver] = {
    NodeType.AGENT.value: _agent_children,
    NodeType.WHILE.value: _loop_block_children,
    NodeType.FOREACH.value: _loop_block_children,
    NodeType.IFELSE.value: _branch_children,
    NodeType.LOOP.value: _loop_pair_children,
}


# ==================== Public API ====================


def is_parent_node(node: Node, edges: Iterable[Edge]) -> bool:
    """
    Check whether a node heads a composite construct.

    Known composite types always qualify; other types qualify when their
    edges show an attachment input, a ``loop`` output, or branch outputs.

    Args:
        node: The node to check
        edges: All edges in the workflow

    Returns:
        True if the node appears to be a parent node
    """
    if node.type.lower() in CHILD_RESOLVERS:
        return True

    for edge in edges:
        if edge.target == node.id and edge.target_handle in ATTACHMENT_HANDLES:
            return True
        if edge.source == node.id and (
            edge.source_handle == Handle.LOOP.value or edge.source_handle in BRANCH_HANDLES
        ):
            return True
    return False


def direct_child_nodes(
    node_id: str,
    node_type: str | None,
    edges: Sequence[Edge],
    nodes: Mapping[str, Node],
) -> list[str]:
    """One level of the children-of relation for a node."""
    resolver = CHILD_RESOLVERS.get((node_type or "").lower())
    if resolver is None:
        node = nodes.get(node_id)
        if node is None or not is_parent_node(node, edges):
            return []
        resolver = _detected_children
    return [child for child in resolver(node_id, edges, nodes) if child != node_id]


def find_child_nodes(
    node_id: str,
    node_type: str | None,
    edges: Sequence[Edge],
    nodes: Sequence[Node],
) -> set[str]:
    """
    Find every node that belongs to a node's composite group.

    The children-of rules are re-applied to each child found, so an agent
    inside a loop body brings its tools along. The traversal is bounded by
    a visited set and terminates on cyclic loop bodies.

    Args:
        node_id: The ID of the parent node
        node_type: The type of the parent node
        edges: All edges in the workflow
        nodes: All nodes in the workflow

    Returns:
        Set of child node IDs (the parent itself excluded)
    """
    index = index_nodes(nodes)
    found: set[str] = set()
    pending = [(node_id, node_type)]

    while pending:
        current_id, current_type = pending.pop()
        for child_id in direct_child_nodes(current_id, current_type, edges, index):
            if child_id == node_id or child_id in found:
                continue
            found.add(child_id)
            child = index.get(child_id)
            pending.append((child_id, child.type if child else None))

    return found


def get_node_group(
    node_id: str,
    node_type: str | None,
    edges: Sequence[Edge],
    nodes: Sequence[Node],
) -> dict[str, Any]:
    """
    Get the complete node group (parent + all children).

    Returns:
        Dictionary with ``parent_id``, ``child_ids``, and ``all_ids``
    """
    child_ids = sorted(find_child_nodes(node_id, node_type, edges, nodes))
    return {
        "parent_id": node_id,
        "child_ids": child_ids,
        "all_ids": [node_id, *child_ids],
    }


def is_child_of(child_node_id: str, parent_node_id: str, edges: Sequence[Edge], nodes: Sequence[Node]) -> bool:
    """Check whether ``child_node_id`` belongs to ``parent_node_id``'s group."""
    parent = index_nodes(nodes).get(parent_node_id)
    if parent is None:
        return False
    return child_node_id in find_child_nodes(parent.id, parent.type, edges, nodes)


def find_parent_node(child_node_id: str, edges: Sequence[Edge], nodes: Sequence[Node]) -> str | None:
    """
    Find the innermost composite node owning a child.

    When groups are nested (a loop body inside a loop body) the owner with
    the smallest group wins.

    Returns:
        The parent node ID, or None if the node is not grouped
    """
    owner: str | None = None
    owner_size = 0
    for node in nodes:
        if node.id == child_node_id or not is_parent_node(node, edges):
            continue
        children = find_child_nodes(node.id, node.type, edges, nodes)
        if child_node_id in children and (owner is None or len(children) < owner_size):
            owner = node.id
            owner_size = len(children)
    return owner


# ==================== Relative positions ====================


def get_relative_position(child: Node, parent: Node) -> Position:
    """
    Get the offset of a child node to its parent.

    The cached ``parentRelativePosition`` wins over the current positions.
    """
    stored = child.data.get(RELATIVE_POSITION_KEY)
    if isinstance(stored, Mapping) and "x" in stored and "y" in stored:
        x = stored["x"] if isinstance(stored["x"], (int, float)) else 0
        y = stored["y"] if isinstance(stored["y"], (int, float)) else 0
        return Position(x=x, y=y)
    return Position(x=child.position.x - parent.position.x, y=child.position.y - parent.position.y)


def store_relative_position(node: Node, relative: Position) -> Node:
    """Return ``node`` with its cached parent offset set to ``relative``."""
    data = {**node.data, RELATIVE_POSITION_KEY: {"x": relative.x, "y": relative.y}}
    return node.model_copy(update={"data": data})


def store_relative_positions(nodes: Sequence[Node], edges: Sequence[Edge]) -> list[Node]:
    """
    Cache the parent offset of every grouped child that lacks one.

    Args:
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        New node list; nodes that already carry an offset are unchanged
    """
    # child id -> (innermost owner, owner group size)
    owners: dict[str, tuple[Node, int]] = {}
    for node in nodes:
        if not is_parent_node(node, edges):
            continue
        children = find_child_nodes(node.id, node.type, edges, nodes)
        for child_id in children:
            current = owners.get(child_id)
            if current is None or len(children) < current[1]:
                owners[child_id] = (node, len(children))

    updated: list[Node] = []
    for node in nodes:
        owner = owners.get(node.id)
        if owner is not None and RELATIVE_POSITION_KEY not in node.data:
            node = store_relative_position(node, get_relative_position(node, owner[0]))
        updated.append(node)
    return updated
