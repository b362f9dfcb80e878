"""
Reachability and dominance analysis for the variable picker.

Every ancestor of a node is classified as *guaranteed* (it lies on every path
from the workflow's entry points to the node, so its output is always
available) or *conditional* (some path bypasses it).

Dominators are computed with NetworkX over the subgraph induced by the
node's ancestors plus the node itself. Entry points are the members of the
source strongly-connected components of that subgraph, so a cycle with no
outside predecessor still gets one; a virtual root feeds all of them.
Every edge counts, attachment edges included: a tool wired into an agent is
an ancestor of the agent and of everything after it.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import networkx as nx

from .graph import find_upstream_nodes, index_nodes, to_networkx
from .models import (
    Edge,
    Node,
    NodeType,
    UpstreamClassification,
    as_edges,
    as_nodes,
)

logger = logging.getLogger(__name__)

# Tuple sentinel so it can never collide with a string node ID
VIRTUAL_ROOT = ("__root__",)


def find_ancestors(
    target_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> list[str]:
    """
    Find every node with a path to the target.

    Args:
        target_id: The node whose ancestors are collected
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        Ancestor IDs in discovery order (the target itself excluded)
    """
    upstream = find_upstream_nodes(target_id, as_nodes(nodes), as_edges(edges))
    return [node_id for node_id in upstream if node_id != target_id]


def build_upstream_graph(
    target_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> nx.DiGraph:
    """
    Build the subgraph induced by the target and its ancestors.

    Parallel edges are collapsed; an unknown target yields an empty graph.

    Returns:
        NetworkX DiGraph
    """
    graph = nx.DiGraph(to_networkx(as_nodes(nodes), as_edges(edges)))
    if target_id not in graph:
        return nx.DiGraph()

    members = nx.ancestors(graph, target_id) | {target_id}
    return nx.DiGraph(graph.subgraph(members))


def get_entry_nodes(graph: nx.DiGraph) -> list:
    """
    Get the entry points of a graph.

    Entry points are the members of strongly-connected components that no
    other component has an edge into. In an acyclic graph these are the
    nodes with in-degree 0.

    Args:
        graph: NetworkX DiGraph

    Returns:
        Sorted list of entry node IDs
    """
    if graph.number_of_nodes() == 0:
        return []
    condensed = nx.condensation(graph)
    entries: list = []
    for component in condensed.nodes():
        if condensed.in_degree(component) == 0:
            entries.extend(condensed.nodes[component]["members"])
    return sorted(entries)


def _dominator_chain(node: Any, idom: Mapping[Any, Any]) -> set:
    dominators = {node}
    current = node
    while current in idom and idom[current] != current:
        current = idom[current]
        if current == VIRTUAL_ROOT:
            break
        dominators.add(current)
    return dominators


def dominator_sets(
    target_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> dict[str, set[str]]:
    """
    Compute the dominator set of every node upstream of the target.

    ``dom(n)`` always contains ``n`` itself; the virtual root is never
    reported.

    Args:
        target_id: The node whose upstream subgraph is analysed
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        Dictionary mapping node ID to its dominators (empty for an unknown
        target)
    """
    graph = build_upstream_graph(target_id, nodes, edges)
    if graph.number_of_nodes() == 0:
        return {}

    entries = get_entry_nodes(graph)
    graph.add_node(VIRTUAL_ROOT)
    graph.add_edges_from((VIRTUAL_ROOT, entry) for entry in entries)

    idom = nx.immediate_dominators(graph, VIRTUAL_ROOT)
    return {
        node: _dominator_chain(node, idom)
        for node in graph.nodes()
        if node != VIRTUAL_ROOT
    }


def classify_upstream(
    target_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> UpstreamClassification:
    """
    Classify the ancestors of a node as guaranteed or conditional.

    Nodes that cannot reach the target are in neither set. An unknown
    target yields an empty classification.

    Args:
        target_id: The node whose ancestors are classified
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        UpstreamClassification for the target
    """
    nodes = as_nodes(nodes)
    edges = as_edges(edges)
    index = index_nodes(nodes)

    if target_id not in index:
        logger.debug(f"Upstream classification skipped: unknown node '{target_id}'")
        return UpstreamClassification(target=target_id)

    ancestors = find_ancestors(target_id, nodes, edges)
    if not ancestors:
        return UpstreamClassification(target=target_id)

    dominators = dominator_sets(target_id, nodes, edges).get(target_id, set())
    guaranteed = {node_id for node_id in dominators if node_id != target_id}
    conditional = set(ancestors) - guaranteed
    start_nodes = {node_id for node_id in ancestors if index[node_id].type == NodeType.START.value}

    logger.debug(
        f"Upstream of '{target_id}': {len(guaranteed)} guaranteed, {len(conditional)} conditional"
    )
    return UpstreamClassification(
        target=target_id,
        ancestors=ancestors,
        guaranteed=guaranteed,
        conditional=conditional,
        start_nodes=start_nodes,
    )
