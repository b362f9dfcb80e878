"""
Graph model query helpers.

Pure functions over a ``(nodes, edges)`` snapshot: lookups, neighbourhood
queries, BFS/DFS reachability, induced subgraphs, integrity validation, and
the bridge to NetworkX used by the reachability analyzer. None of them
mutate their inputs.
"""

import logging
from collections.abc import Collection, Iterable, Sequence
from typing import NamedTuple

import networkx as nx

from .exceptions import (
    DanglingEdgeError,
    DuplicateEdgeError,
    DuplicateNodeError,
    NodeNotFoundError,
)
from .models import Edge, Node

logger = logging.getLogger(__name__)


class ConnectedEdges(NamedTuple):
    """Edges incident to a node, split by direction."""

    incoming: list[Edge]
    outgoing: list[Edge]


# ==================== Lookups ====================


def index_nodes(nodes: Iterable[Node]) -> dict[str, Node]:
    """Map node IDs to nodes."""
    return {node.id: node for node in nodes}


def get_node(node_id: str, nodes: Iterable[Node]) -> Node:
    """
    Get a node by ID.

    Args:
        node_id: Node identifier
        nodes: Nodes of the graph snapshot

    Returns:
        The Node object

    Raises:
        NodeNotFoundError: If node doesn't exist
    """
    for node in nodes:
        if node.id == node_id:
            return node
    raise NodeNotFoundError(f"Node '{node_id}' not found in graph")


def find_edge(edge_id: str, edges: Iterable[Edge]) -> Edge | None:
    """Return the edge with ``edge_id``, or None."""
    for edge in edges:
        if edge.id == edge_id:
            return edge
    return None


def find_connected_edges(edges: Iterable[Edge], node_id: str) -> ConnectedEdges:
    """
    Find all edges connected to a node.

    Args:
        edges: Edges of the graph snapshot
        node_id: Node identifier

    Returns:
        ConnectedEdges with the incoming and outgoing edges in input order
    """
    incoming: list[Edge] = []
    outgoing: list[Edge] = []
    for edge in edges:
        if edge.target == node_id:
            incoming.append(edge)
        if edge.source == node_id:
            outgoing.append(edge)
    return ConnectedEdges(incoming=incoming, outgoing=outgoing)


def to_digraph(edges: Iterable[Edge]) -> nx.DiGraph:
    """
    Build a NetworkX DiGraph from edge endpoints alone.

    Parallel edges collapse to one; successor order follows the first edge
    seen for each pair.
    """
    graph = nx.DiGraph()
    graph.add_edges_from((edge.source, edge.target) for edge in edges)
    return graph


# ==================== Traversal ====================


def find_downstream_nodes(start_node_id: str, edges: Iterable[Edge]) -> set[str]:
    """
    Find all nodes reachable from a node (BFS).

    Args:
        start_node_id: Node to start from
        edges: Edges of the graph snapshot

    Returns:
        Set of reachable node IDs, including the start node
    """
    graph = to_digraph(edges)
    if start_node_id not in graph:
        return {start_node_id}
    return {start_node_id} | nx.descendants(graph, start_node_id)


def find_upstream_nodes(node_id: str, nodes: Iterable[Node], edges: Iterable[Edge]) -> list[str]:
    """
    Find all ancestors of a node by reverse-edge DFS.

    Edges whose endpoints are not part of the snapshot are ignored. The node
    itself is only reported when it lies on a cycle.

    Args:
        node_id: Node whose ancestors are collected
        nodes: Nodes of the graph snapshot
        edges: Edges of the graph snapshot

    Returns:
        Ancestor IDs in discovery order
    """
    graph = nx.DiGraph(to_networkx(nodes, edges))
    if node_id not in graph:
        return []

    upstream = list(nx.dfs_preorder_nodes(graph.reverse(copy=False), node_id))[1:]
    descendants = nx.descendants(graph, node_id)
    if any(pred == node_id or pred in descendants for pred in graph.predecessors(node_id)):
        upstream.append(node_id)
    return upstream


def reachable_from(
    graph: nx.DiGraph,
    starts: Iterable[str],
    blocked: Collection[str] = (),
) -> list[str]:
    """
    BFS over a graph without entering ``blocked`` nodes.

    Pass ``graph.reverse(copy=False)`` to walk edges backwards.

    Args:
        graph: Graph to traverse
        starts: Nodes the traversal begins at (blocked starts are skipped)
        blocked: Nodes that are never visited or traversed through

    Returns:
        Visited node IDs in BFS order, starts included
    """
    blocked = set(blocked)
    sources = [start for start in dict.fromkeys(starts) if start not in blocked]
    if not sources:
        return []

    view = nx.subgraph_view(graph, filter_node=lambda n: n not in blocked)
    layers = nx.bfs_layers(view, [start for start in sources if start in view])
    # First layer is the sources themselves, including ones without edges
    next(layers, None)
    order = list(sources)
    for layer in layers:
        order.extend(layer)
    return order


# ==================== Subgraphs ====================


def induced_subgraph(
    node_ids: Collection[str],
    nodes: Iterable[Node],
    edges: Iterable[Edge],
) -> tuple[list[Node], list[Edge]]:
    """
    Extract the subgraph induced by a node set.

    Args:
        node_ids: IDs of the nodes to keep
        nodes: Nodes of the graph snapshot
        edges: Edges of the graph snapshot

    Returns:
        Tuple of (nodes in input order, edges with both endpoints kept)
    """
    ids = set(node_ids)
    sub_nodes = [node for node in nodes if node.id in ids]
    sub_edges = [edge for edge in edges if edge.source in ids and edge.target in ids]
    return sub_nodes, sub_edges


def deselect_all(nodes: Iterable[Node]) -> list[Node]:
    """Return the nodes with ``selected`` cleared."""
    return [node.model_copy(update={"selected": False}) if node.selected else node for node in nodes]


def to_networkx(nodes: Iterable[Node], edges: Iterable[Edge]) -> nx.MultiDiGraph:
    """
    Convert a snapshot to a NetworkX MultiDiGraph.

    Nodes are keyed by ID with their ``type`` as attribute; edges are keyed
    by edge ID and carry their handles and edge type. Edges whose endpoints
    are missing from ``nodes`` are skipped.

    Args:
        nodes: Nodes of the graph snapshot
        edges: Edges of the graph snapshot

    Returns:
        NetworkX MultiDiGraph
    """
    graph = nx.MultiDiGraph()
    for node in nodes:
        graph.add_node(node.id, type=node.type)
    for edge in edges:
        if edge.source not in graph or edge.target not in graph:
            continue
        graph.add_edge(
            edge.source,
            edge.target,
            key=edge.id,
            source_handle=edge.source_handle,
            target_handle=edge.target_handle,
            edge_type=edge.type,
        )
    return graph


# ==================== Validation ====================


def validate_graph(nodes: Sequence[Node], edges: Sequence[Edge]) -> bool:
    """
    Check the structural integrity of a snapshot.

    Args:
        nodes: Nodes of the graph snapshot
        edges: Edges of the graph snapshot

    Returns:
        True if the snapshot is consistent

    Raises:
        DuplicateNodeError: If two nodes share an ID
        DuplicateEdgeError: If two edges share an ID
        DanglingEdgeError: If an edge references a missing node
    """
    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise DuplicateNodeError(f"Node with ID '{node.id}' appears more than once")
        node_ids.add(node.id)

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise DuplicateEdgeError(f"Edge with ID '{edge.id}' appears more than once")
        edge_ids.add(edge.id)
        if edge.source not in node_ids:
            raise DanglingEdgeError(f"Edge '{edge.id}' references missing source node '{edge.source}'")
        if edge.target not in node_ids:
            raise DanglingEdgeError(f"Edge '{edge.id}' references missing target node '{edge.target}'")

    logger.debug(f"Validated graph with {len(node_ids)} nodes and {len(edge_ids)} edges")
    return True
