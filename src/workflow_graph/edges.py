"""
Edge classifier: connection legality and edge typing.

Edge classes are derived from handle names rather than node types, so any
node type that reuses the ``tool``/``loop``/``back`` handles is classified
the same way. Connection attempts are checked in priority order:

1. only tool-type nodes may attach to an agent's tool/chat-model/memory inputs
2. tool-type nodes may only attach to those inputs
3. a tool belongs to at most one agent
4. loop handles only join a loop construct to its own body

Rejections carry a user-facing reason and never modify the graph.
"""

import logging
from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Any

from .graph import index_nodes
from .grouping import find_loop_block_nodes
from .ids import unique_edge_id
from .models import (
    ATTACHMENT_HANDLES,
    LOOP_CONSTRUCT_TYPES,
    TOOL_TYPE_PREFIX,
    ConnectionAttempt,
    ConnectionResult,
    Edge,
    EdgeType,
    GraphEdit,
    Handle,
    Node,
    NodeType,
    as_edges,
    as_nodes,
)

logger = logging.getLogger(__name__)

_EDGE_ID_SUFFIXES = {
    EdgeType.LOOP: "-loop",
    EdgeType.LOOP_BACK: "-back",
}


# ==================== Predicates ====================


def is_tool_node(node: Node | None) -> bool:
    """Check whether a node is a tool (``tool`` or any ``tool-*`` type)."""
    if node is None:
        return False
    return node.type == NodeType.TOOL.value or node.type.startswith(TOOL_TYPE_PREFIX)


def is_attachment_handle(handle: str | None) -> bool:
    """Check whether a handle is an agent tool/chat-model/memory input."""
    return handle in ATTACHMENT_HANDLES


def is_loop_construct(node: Node | None) -> bool:
    """Check whether a node carries the ``loop``/``back`` handle pair."""
    return node is not None and node.type.lower() in LOOP_CONSTRUCT_TYPES


def edge_type_for(source_node: Node | None, source_handle: str | None, target_handle: str | None) -> EdgeType:
    """
    Derive the semantic class of a connection from its handles.

    Args:
        source_node: The source node (None if unknown)
        source_handle: Output port on the source node
        target_handle: Input port on the target node

    Returns:
        LOOP_BACK for edges touching a ``back`` handle, LOOP for edges
        touching a ``loop`` handle, TOOL for tool attachments, else DEFAULT
    """
    if Handle.BACK.value in (source_handle, target_handle):
        return EdgeType.LOOP_BACK
    if Handle.LOOP.value in (source_handle, target_handle):
        return EdgeType.LOOP
    if is_tool_node(source_node) and is_attachment_handle(target_handle):
        return EdgeType.TOOL
    return EdgeType.DEFAULT


def is_simple_flow_edge(edge: Edge) -> bool:
    """Check whether an edge is a plain handle-less flow edge."""
    if edge.source_handle or edge.target_handle:
        return False
    return edge.type == EdgeType.DEFAULT


# ==================== Construction ====================


def create_edge(
    source: str,
    target: str,
    taken: Collection[str],
    source_handle: str | None = None,
    target_handle: str | None = None,
    edge_type: EdgeType | None = None,
    data: Mapping[str, Any] | None = None,
    source_node: Node | None = None,
) -> Edge:
    """
    Create an edge with an ID that is unique among ``taken``.

    Args:
        source: Source node ID
        target: Target node ID
        taken: Edge IDs already in use
        source_handle: Output port on the source node
        target_handle: Input port on the target node
        edge_type: Edge class; derived from the handles when omitted
        data: Edge payload
        source_node: Source node, used to derive the edge class

    Returns:
        The new Edge
    """
    if edge_type is None:
        edge_type = edge_type_for(source_node, source_handle, target_handle)
    return Edge(
        id=unique_edge_id(source, target, taken, _EDGE_ID_SUFFIXES.get(edge_type, "")),
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        type=edge_type,
        data=dict(data or {}),
    )


# ==================== Classification ====================


def classify_connection(
    attempt: ConnectionAttempt | Mapping[str, Any],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> ConnectionResult:
    """
    Decide whether a connection is legal and which edge class it gets.

    Re-creating an existing connection (including re-attaching a tool to
    the agent handle it already uses) is allowed and reports the existing
    edge in ``existing_edge_id`` so callers do not duplicate it.

    Args:
        attempt: The connection gesture from the editor
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        ConnectionResult with the verdict, reason, edge type, and handles
    """
    if not isinstance(attempt, ConnectionAttempt):
        attempt = ConnectionAttempt.model_validate(attempt)
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    index = index_nodes(nodes)

    source = index.get(attempt.source)
    target = index.get(attempt.target)
    source_handle = attempt.source_handle
    target_handle = attempt.target_handle

    if source is None:
        return ConnectionResult.reject(f"Source node '{attempt.source}' does not exist.")
    if target is None:
        return ConnectionResult.reject(f"Target node '{attempt.target}' does not exist.")
    if source.id == target.id:
        return ConnectionResult.reject("A node cannot be connected to itself.")

    source_is_tool = is_tool_node(source)
    to_attachment = is_attachment_handle(target_handle)

    if to_attachment and not source_is_tool:
        return ConnectionResult.reject(
            "Only Tool nodes can be connected to Agent tool handles. "
            "Use a tool from the Tools tab instead of a regular node."
        )

    if source_is_tool and not to_attachment:
        return ConnectionResult.reject(
            "Tool nodes can only be connected to the Tool input handle of an Agent node."
        )

    if source_is_tool:
        for edge in edges:
            if edge.source != source.id or not is_attachment_handle(edge.target_handle):
                continue
            if edge.target == target.id and edge.target_handle == target_handle:
                return ConnectionResult(
                    allowed=True,
                    edge_type=EdgeType.TOOL,
                    source_handle=source_handle,
                    target_handle=target_handle,
                    existing_edge_id=edge.id,
                )
            owner = index.get(edge.target)
            owner_label = owner.label if owner else edge.target
            return ConnectionResult.reject(
                f"Tool '{source.label}' is already attached to '{owner_label}'. "
                "A tool can only be attached to one agent."
            )

    if source_handle == Handle.BACK.value or target_handle == Handle.LOOP.value:
        return ConnectionResult.reject(
            "Loop handles cannot be connected in that direction: 'loop' is an output and 'back' is an input."
        )

    if source_handle == Handle.LOOP.value and not is_loop_construct(source):
        return ConnectionResult.reject("Only While and ForEach nodes have a loop output.")

    if target_handle == Handle.BACK.value:
        if not is_loop_construct(target):
            return ConnectionResult.reject("Only While and ForEach nodes accept loop-back connections.")
        body = find_loop_block_nodes(target.id, edges, require_return=False)
        if source.id not in body:
            return ConnectionResult.reject(
                "A loop-back connection must come from a node inside the same loop body."
            )

    edge_type = edge_type_for(source, source_handle, target_handle)

    for edge in edges:
        if (
            edge.source == source.id
            and edge.target == target.id
            and edge.source_handle == source_handle
            and edge.target_handle == target_handle
        ):
            return ConnectionResult(
                allowed=True,
                edge_type=edge_type,
                source_handle=source_handle,
                target_handle=target_handle,
                existing_edge_id=edge.id,
            )

    return ConnectionResult(
        allowed=True,
        edge_type=edge_type,
        source_handle=source_handle,
        target_handle=target_handle,
    )


def find_chain_tail(start_id: str, edges: Sequence[Edge], nodes: Mapping[str, Node], stop_id: str) -> str:
    """
    Follow a linear chain of flow edges and return its last node.

    The walk continues while the current node has exactly one outgoing flow
    edge into a node that has no other incoming edge. It never enters
    ``stop_id`` or an End node.

    Args:
        start_id: First node of the chain
        edges: All edges in the workflow
        nodes: Node index of the workflow
        stop_id: Node the walk must not enter (the loop construct)

    Returns:
        ID of the chain's last node
    """
    in_degree: dict[str, int] = {}
    for edge in edges:
        in_degree[edge.target] = in_degree.get(edge.target, 0) + 1

    current = start_id
    visited = {start_id}
    while True:
        nexts = [
            edge.target
            for edge in edges
            if edge.source == current and edge.type == EdgeType.DEFAULT and edge.target != stop_id
        ]
        if len(nexts) != 1:
            return current
        nxt = nexts[0]
        node = nodes.get(nxt)
        if nxt in visited or in_degree.get(nxt, 0) != 1 or node is None or node.type == NodeType.END.value:
            return current
        visited.add(nxt)
        current = nxt


def find_loop_node_for(node_id: str, nodes: Sequence[Node], edges: Sequence[Edge]) -> str | None:
    """
    Find the loop construct whose body contains a node.

    With nested loops the innermost construct (smallest body) wins.

    Args:
        node_id: The ID of the body node
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        The loop construct's node ID, or None if the node is in no loop body
    """
    owner: str | None = None
    owner_size = 0
    for node in nodes:
        if node.id == node_id or not is_loop_construct(node):
            continue
        body = find_loop_block_nodes(node.id, edges)
        if node_id in body and (owner is None or len(body) < owner_size):
            owner = node.id
            owner_size = len(body)
    return owner


def connect(
    attempt: ConnectionAttempt | Mapping[str, Any],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> GraphEdit:
    """
    Apply a connection attempt to the graph.

    Connecting a loop construct's ``loop`` output to a node without loop
    handles also creates the matching ``back`` edge from the end of the
    chain starting at that node. Loop constructs connected as a body get
    no automatic back edge; the caller supplies it.

    Args:
        attempt: The connection gesture from the editor
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        GraphEdit with the new edge(s); unchanged when the attempt is
        rejected or the connection already exists
    """
    if not isinstance(attempt, ConnectionAttempt):
        attempt = ConnectionAttempt.model_validate(attempt)
    nodes = as_nodes(nodes)
    edges = as_edges(edges)

    result = classify_connection(attempt, nodes, edges)
    if not result.allowed:
        logger.warning(f"Rejected connection '{attempt.source}' -> '{attempt.target}': {result.reason}")
        return GraphEdit.unchanged(nodes, edges, reason=result.reason, connection=result)

    if result.existing_edge_id is not None:
        logger.debug(f"Connection already exists as edge '{result.existing_edge_id}'")
        return GraphEdit.unchanged(nodes, edges, reason="Connection already exists", connection=result)

    index = index_nodes(nodes)
    taken = {edge.id for edge in edges}
    new_edge = create_edge(
        attempt.source,
        attempt.target,
        taken,
        source_handle=result.source_handle,
        target_handle=result.target_handle,
        edge_type=result.edge_type,
    )
    taken.add(new_edge.id)
    created = [new_edge]

    if result.edge_type == EdgeType.LOOP and not is_loop_construct(index[attempt.target]):
        tail = find_chain_tail(attempt.target, [*edges, new_edge], index, attempt.source)
        has_back = any(
            edge.source == tail and edge.target == attempt.source and edge.target_handle == Handle.BACK.value
            for edge in edges
        )
        if not has_back:
            created.append(
                create_edge(
                    tail,
                    attempt.source,
                    taken,
                    target_handle=Handle.BACK.value,
                    edge_type=EdgeType.LOOP_BACK,
                )
            )
            logger.debug(f"Completed loop '{attempt.source}' with back edge from '{tail}'")

    logger.info(
        f"Connected '{attempt.source}' -> '{attempt.target}' "
        f"({result.edge_type.value}, {len(created)} edge(s) created)"
    )
    return GraphEdit(
        nodes=nodes,
        edges=[*edges, *created],
        affected_edge_ids=[edge.id for edge in created],
        connection=result,
    )


# ==================== Bulk maintenance ====================


def normalize_edges(
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> list[Edge]:
    """
    Re-derive the edge class of every edge after a bulk edit.

    Idempotent: running it on its own output changes nothing.

    Args:
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        New edge list with corrected types
    """
    index = index_nodes(as_nodes(nodes))
    normalized: list[Edge] = []
    updated = 0
    for edge in as_edges(edges):
        edge_type = edge_type_for(index.get(edge.source), edge.source_handle, edge.target_handle)
        if edge.type != edge_type:
            edge = edge.model_copy(update={"type": edge_type})
            updated += 1
        normalized.append(edge)

    if updated:
        logger.debug(f"Normalized {updated} of {len(normalized)} edge type(s)")
    return normalized


def create_reconnection_edges(
    incoming: Iterable[Edge],
    outgoing: Iterable[Edge],
    existing: Sequence[Edge],
    nodes: Sequence[Node],
) -> list[Edge]:
    """
    Bridge the gap left by a deleted node.

    Every surviving predecessor is connected to every surviving successor,
    keeping the predecessor's source handle and the successor's target
    handle. Tool attachments, self-loops, and pairs that are already
    connected are skipped.

    Args:
        incoming: Edges that entered the deleted node
        outgoing: Edges that left the deleted node
        existing: Edges remaining after the deletion
        nodes: Nodes remaining after the deletion

    Returns:
        The bridging edges
    """
    index = index_nodes(nodes)
    taken = {edge.id for edge in existing}
    connected = {(edge.source, edge.target) for edge in existing}
    outgoing = list(outgoing)
    bridges: list[Edge] = []

    for in_edge in incoming:
        if in_edge.source not in index or in_edge.type == EdgeType.TOOL:
            continue
        for out_edge in outgoing:
            if out_edge.target not in index or out_edge.type == EdgeType.TOOL:
                continue
            pair = (in_edge.source, out_edge.target)
            if pair[0] == pair[1] or pair in connected:
                continue
            bridge = create_edge(
                in_edge.source,
                out_edge.target,
                taken,
                source_handle=in_edge.source_handle,
                target_handle=out_edge.target_handle,
                source_node=index[in_edge.source],
            )
            bridges.append(bridge)
            taken.add(bridge.id)
            connected.add(pair)

    return bridges


def compute_reconnect_for_removed_set(edges: Sequence[Edge], removed_node_ids: Collection[str]) -> tuple[str, str] | None:
    """
    Compute the single bridge for a removed subgraph.

    A bridge exists only when exactly one simple flow edge enters the
    removed set and exactly one leaves it, which keeps a linear chain
    intact.

    Args:
        edges: All edges before the removal
        removed_node_ids: IDs of the removed nodes

    Returns:
        ``(source, target)`` to reconnect, or None
    """
    removed = set(removed_node_ids)
    incoming = [e for e in edges if is_simple_flow_edge(e) and e.source not in removed and e.target in removed]
    outgoing = [e for e in edges if is_simple_flow_edge(e) and e.source in removed and e.target not in removed]

    if len(incoming) != 1 or len(outgoing) != 1:
        return None

    source = incoming[0].source
    target = outgoing[0].target
    if source == target:
        return None

    if any(e.source == source and e.target == target and is_simple_flow_edge(e) for e in edges):
        return None

    return source, target
