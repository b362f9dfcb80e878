"""
ID generation for pasted, duplicated, and connected graph elements.

IDs come from ``uuid4`` rather than counters or clocks, so generation is
reentrant and two pastes in the same tick never collide.
"""

from collections.abc import Collection, Iterable
from uuid import uuid4

from .models import Edge


def generate_node_id(node_type: str | None) -> str:
    """
    Generate a fresh node ID prefixed with the node type.

    Args:
        node_type: Type of the node (used as a readable prefix)

    Returns:
        New node ID, e.g. ``agent-3f9c2a1b7d4e``
    """
    return f"{node_type or 'node'}-{uuid4().hex[:12]}"


def unique_edge_id(source: str, target: str, taken: Collection[str], suffix: str = "") -> str:
    """
    Generate an edge ID that does not collide with ``taken``.

    Collisions (parallel edges between the same pair of nodes) are resolved
    by appending ``-1``, ``-2``, ... to the base ID.

    Args:
        source: Source node ID
        target: Target node ID
        taken: Edge IDs already in use
        suffix: Optional suffix for the base ID

    Returns:
        Edge ID not present in ``taken``
    """
    base = Edge.generate_edge_id(source, target, suffix)
    edge_id = base
    counter = 0
    while edge_id in taken:
        counter += 1
        edge_id = f"{base}-{counter}"
    return edge_id


def build_id_mapping(nodes: Iterable, existing_ids: Collection[str] = ()) -> dict[str, str]:
    """
    Build a fresh ``old_id -> new_id`` mapping for a set of nodes.

    Args:
        nodes: Nodes that are about to be re-instantiated
        existing_ids: Node IDs already present in the target graph

    Returns:
        Bijection from every node's ID to a new, unused ID
    """
    mapping: dict[str, str] = {}
    used = set(existing_ids)
    for node in nodes:
        new_id = generate_node_id(node.type)
        while new_id in used:
            new_id = generate_node_id(node.type)
        used.add(new_id)
        mapping[node.id] = new_id
    return mapping
