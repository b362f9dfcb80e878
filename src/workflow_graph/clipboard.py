"""
Clipboard engine: copy, paste at a position, and paste into an edge.

A copy captures the induced subgraph of the selection (expanded through the
grouping resolver) as a ``ClipboardSnapshot``. Pastes re-instantiate the
snapshot under a fresh ID mapping and never consume it, so the same snapshot
can be pasted any number of times.

There is no module-level clipboard: callers keep the snapshot returned by
``copy_nodes`` themselves or use a ``Clipboard`` instance as a single slot.
"""

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from .config import DEFAULT_LAYOUT, LayoutConfig
from .edges import edge_type_for, is_attachment_handle, is_tool_node
from .graph import deselect_all, index_nodes, induced_subgraph
from .grouping import find_child_nodes
from .ids import build_id_mapping, unique_edge_id
from .models import (
    ClipboardSnapshot,
    Edge,
    EdgeType,
    GraphEdit,
    Handle,
    Node,
    Position,
    as_edges,
    as_nodes,
)

logger = logging.getLogger(__name__)


def _as_position(position: Position | Mapping[str, Any]) -> Position:
    return position if isinstance(position, Position) else Position.model_validate(position)


# ==================== Copy ====================


def copy_nodes(
    selected_ids: Collection[str],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
) -> ClipboardSnapshot | None:
    """
    Copy the selected nodes together with their grouped children.

    Args:
        selected_ids: IDs of the selected nodes
        nodes: All nodes in the workflow
        edges: All edges in the workflow

    Returns:
        Snapshot of the induced subgraph, or None if nothing was copied
    """
    if not selected_ids:
        return None

    nodes = as_nodes(nodes)
    edges = as_edges(edges)

    to_copy = set(selected_ids)
    for node in nodes:
        if node.id in selected_ids:
            to_copy |= find_child_nodes(node.id, node.type, edges, nodes)

    copied_nodes, copied_edges = induced_subgraph(to_copy, nodes, edges)
    if not copied_nodes:
        logger.debug(f"Selection {sorted(selected_ids)} matched no nodes; nothing copied")
        return None

    origin = Position(
        x=min(node.position.x for node in copied_nodes),
        y=min(node.position.y for node in copied_nodes),
    )
    logger.info(f"Copied {len(copied_nodes)} nodes and {len(copied_edges)} edges")
    return ClipboardSnapshot(nodes=copied_nodes, edges=copied_edges, origin_offset=origin)


# ==================== Paste at position ====================


def remap_edges(
    snapshot_edges: Sequence[Edge],
    mapping: Mapping[str, str],
    taken: set[str],
) -> list[Edge]:
    """Rewrite snapshot edges through an ID mapping, dropping edges that leave it."""
    remapped: list[Edge] = []
    for edge in snapshot_edges:
        source = mapping.get(edge.source)
        target = mapping.get(edge.target)
        if source is None or target is None:
            continue
        edge_id = unique_edge_id(source, target, taken)
        taken.add(edge_id)
        remapped.append(
            edge.model_copy(update={"id": edge_id, "source": source, "target": target, "data": dict(edge.data)})
        )
    return remapped


def paste_nodes(
    snapshot: ClipboardSnapshot | None,
    position: Position | Mapping[str, Any],
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
    layout: LayoutConfig | None = None,
) -> GraphEdit:
    """
    Paste a snapshot with its top-left corner at a canvas position.

    Pasted nodes are offset by ``layout.paste_jitter`` so they never sit
    exactly on top of the originals. They come back selected while every
    pre-existing node is deselected.

    Args:
        snapshot: Snapshot produced by ``copy_nodes``
        position: Canvas position to paste at
        nodes: All nodes in the workflow
        edges: All edges in the workflow
        layout: Layout settings (default: ``DEFAULT_LAYOUT``)

    Returns:
        GraphEdit with the pasted nodes and edges appended
    """
    layout = layout or DEFAULT_LAYOUT
    nodes = as_nodes(nodes)
    edges = as_edges(edges)

    if snapshot is None or snapshot.is_empty:
        logger.debug("Paste skipped: clipboard is empty")
        return GraphEdit.unchanged(nodes, edges, reason="Clipboard is empty")

    target = _as_position(position)
    dx = target.x - snapshot.origin_offset.x + layout.paste_jitter
    dy = target.y - snapshot.origin_offset.y + layout.paste_jitter

    mapping = build_id_mapping(snapshot.nodes, {node.id for node in nodes})
    pasted_nodes = [
        node.model_copy(
            update={
                "id": mapping[node.id],
                "position": node.position.offset(dx, dy),
                "selected": True,
                "data": dict(node.data),
            }
        )
        for node in snapshot.nodes
    ]

    taken = {edge.id for edge in edges}
    pasted_edges = remap_edges(snapshot.edges, mapping, taken)

    logger.info(f"Pasted {len(pasted_nodes)} nodes and {len(pasted_edges)} edges")
    return GraphEdit(
        nodes=[*deselect_all(nodes), *pasted_nodes],
        edges=[*edges, *pasted_edges],
        affected_node_ids=[node.id for node in pasted_nodes],
        affected_edge_ids=[edge.id for edge in pasted_edges],
    )


# ==================== Paste between ====================


def find_entry_and_exit_nodes(nodes: Sequence[Node], edges: Sequence[Edge]) -> tuple[Node, Node] | None:
    """
    Find where a subgraph is spliced into an edge.

    Checked in order:

    1. a single node is both entry and exit
    2. a node whose in-subgraph in-degree is the unique maximum and greater
       than one (a fan-in construct such as an agent with its tools) is both
       entry and exit
    3. a loop construct whose ``loop`` output and ``back`` input both stay
       inside the subgraph is both entry and exit
    4. otherwise the subgraph is treated as a chain: the entry is the first
       node with no incoming flow edge and the exit is the first node with
       no outgoing flow edge. Without any entry the first and last nodes in
       input order are used; without any exit the entry doubles as the exit

    Attachment edges are ignored when looking for the chain ends, and nodes
    attached to an agent are never picked as chain ends.

    Args:
        nodes: Snapshot nodes
        edges: Snapshot edges

    Returns:
        Tuple of (entry node, exit node), or None for an empty subgraph
    """
    if not nodes:
        return None
    if len(nodes) == 1:
        return nodes[0], nodes[0]

    node_ids = {node.id for node in nodes}
    internal = [edge for edge in edges if edge.source in node_ids and edge.target in node_ids]

    in_degree = {node.id: 0 for node in nodes}
    for edge in internal:
        in_degree[edge.target] += 1

    max_in = max(in_degree.values())
    central = [node for node in nodes if in_degree[node.id] == max_in]
    if max_in > 1 and len(central) == 1:
        logger.debug(f"Splicing at central node '{central[0].id}' (in-degree {max_in})")
        return central[0], central[0]

    for node in nodes:
        has_loop = any(e.source == node.id and e.source_handle == Handle.LOOP.value for e in internal)
        has_back = any(e.target == node.id and e.target_handle == Handle.BACK.value for e in internal)
        if has_loop and has_back:
            logger.debug(f"Splicing at loop construct '{node.id}'")
            return node, node

    flow = [edge for edge in internal if not is_attachment_handle(edge.target_handle)]
    attached = {edge.source for edge in internal if is_attachment_handle(edge.target_handle)}
    candidates = [node for node in nodes if node.id not in attached] or list(nodes)

    entry = next((n for n in candidates if not any(e.target == n.id for e in flow)), None)
    if entry is None:
        logger.debug("No chain entry found; using first and last nodes")
        return nodes[0], nodes[-1]

    exit_node = next((n for n in candidates if not any(e.source == n.id for e in flow)), entry)
    logger.debug(f"Splicing chain from '{entry.id}' to '{exit_node.id}'")
    return entry, exit_node


def paste_nodes_between(
    snapshot: ClipboardSnapshot | None,
    source_id: str,
    target_id: str,
    edge_id: str,
    nodes: Sequence[Node | Mapping[str, Any]],
    edges: Sequence[Edge | Mapping[str, Any]],
    layout: LayoutConfig | None = None,
) -> GraphEdit:
    """
    Splice a snapshot into the edge between two nodes.

    The edge ``source -> target`` is replaced by
    ``source -> entry' -> ... -> exit' -> target``. The new boundary edges
    keep the replaced edge's source/target handles and data. Pasted nodes
    are laid out on a horizontal line centred on the midpoint between the
    two endpoints.

    Args:
        snapshot: Snapshot produced by ``copy_nodes``
        source_id: Source node of the edge
        target_id: Target node of the edge
        edge_id: ID of the edge to splice into
        nodes: All nodes in the workflow
        edges: All edges in the workflow
        layout: Layout settings (default: ``DEFAULT_LAYOUT``)

    Returns:
        GraphEdit with the spliced graph; unchanged when the clipboard is
        empty, the endpoints/edge cannot be found, or the splice would wire
        a tool node into ordinary flow
    """
    layout = layout or DEFAULT_LAYOUT
    nodes = as_nodes(nodes)
    edges = as_edges(edges)

    if snapshot is None or snapshot.is_empty:
        logger.debug("Paste between skipped: clipboard is empty")
        return GraphEdit.unchanged(nodes, edges, reason="Clipboard is empty")

    index = index_nodes(nodes)
    source = index.get(source_id)
    target = index.get(target_id)
    spliced = next((edge for edge in edges if edge.id == edge_id), None)

    if source is None or target is None or spliced is None:
        logger.warning(f"Paste between skipped: unknown node or edge ({source_id}, {target_id}, {edge_id})")
        return GraphEdit.unchanged(nodes, edges, reason="Source, target, or edge not found")
    if spliced.source != source_id or spliced.target != target_id:
        logger.warning(f"Paste between skipped: edge '{edge_id}' does not join '{source_id}' and '{target_id}'")
        return GraphEdit.unchanged(nodes, edges, reason="Edge does not connect the given nodes")
    if spliced.type == EdgeType.TOOL or is_attachment_handle(spliced.target_handle):
        logger.warning(f"Paste between skipped: '{edge_id}' is a tool attachment")
        return GraphEdit.unchanged(nodes, edges, reason="Nodes cannot be pasted into a tool attachment")

    entry, exit_node = find_entry_and_exit_nodes(snapshot.nodes, snapshot.edges)
    if is_tool_node(entry) or is_tool_node(exit_node):
        logger.warning(f"Paste between skipped: snapshot would connect a tool node into '{edge_id}'")
        return GraphEdit.unchanged(nodes, edges, reason="Tool nodes can only connect to an Agent's tool input")

    mid_x = (source.position.x + target.position.x) / 2
    mid_y = (source.position.y + target.position.y) / 2
    spacing = layout.paste_between_spacing
    start_x = mid_x - (len(snapshot.nodes) - 1) * spacing / 2

    mapping = build_id_mapping(snapshot.nodes, index.keys())
    pasted_nodes = [
        node.model_copy(
            update={
                "id": mapping[node.id],
                "position": Position(x=start_x + i * spacing, y=mid_y),
                "selected": True,
                "data": dict(node.data),
            }
        )
        for i, node in enumerate(snapshot.nodes)
    ]
    pasted_index = index_nodes(pasted_nodes)

    remaining = [edge for edge in edges if edge.id != edge_id]
    taken = {edge.id for edge in remaining}

    entry_id = mapping[entry.id]
    exit_id = mapping[exit_node.id]

    incoming = Edge(
        id=unique_edge_id(source_id, entry_id, taken),
        source=source_id,
        target=entry_id,
        source_handle=spliced.source_handle,
        type=edge_type_for(source, spliced.source_handle, None),
        data=dict(spliced.data),
    )
    taken.add(incoming.id)

    internal = remap_edges(snapshot.edges, mapping, taken)

    outgoing = Edge(
        id=unique_edge_id(exit_id, target_id, taken),
        source=exit_id,
        target=target_id,
        target_handle=spliced.target_handle,
        type=edge_type_for(pasted_index[exit_id], None, spliced.target_handle),
        data=dict(spliced.data),
    )
    taken.add(outgoing.id)

    new_edges = [incoming, *internal, outgoing]
    logger.info(
        f"Pasted {len(pasted_nodes)} nodes between '{source_id}' and '{target_id}' "
        f"(entry '{entry.id}', exit '{exit_node.id}')"
    )
    return GraphEdit(
        nodes=[*deselect_all(nodes), *pasted_nodes],
        edges=[*remaining, *new_edges],
        affected_node_ids=[node.id for node in pasted_nodes],
        affected_edge_ids=[edge.id for edge in new_edges],
    )


# ==================== Clipboard slot ====================


class Clipboard:
    """
    Single-slot clipboard owned by the caller.

    The last successful ``copy`` replaces the stored snapshot; pastes read
    it without consuming it. Independent instances never share state.
    """

    def __init__(self, snapshot: ClipboardSnapshot | None = None):
        """
        Initialize a clipboard.

        Args:
            snapshot: Optional snapshot to start with
        """
        self._snapshot = snapshot

    @property
    def snapshot(self) -> ClipboardSnapshot | None:
        """The stored snapshot, if any."""
        return self._snapshot

    def has_data(self) -> bool:
        """Check whether a snapshot is stored."""
        return self._snapshot is not None

    def clear(self) -> None:
        """Drop the stored snapshot."""
        self._snapshot = None

    def copy(
        self,
        selected_ids: Collection[str],
        nodes: Sequence[Node | Mapping[str, Any]],
        edges: Sequence[Edge | Mapping[str, Any]],
    ) -> ClipboardSnapshot | None:
        """
        Copy a selection into the slot.

        An empty selection leaves the stored snapshot untouched.

        Returns:
            The new snapshot, or None if nothing was copied
        """
        snapshot = copy_nodes(selected_ids, nodes, edges)
        if snapshot is not None:
            self._snapshot = snapshot
        return snapshot

    def paste(
        self,
        position: Position | Mapping[str, Any],
        nodes: Sequence[Node | Mapping[str, Any]],
        edges: Sequence[Edge | Mapping[str, Any]],
        layout: LayoutConfig | None = None,
    ) -> GraphEdit:
        """Paste the stored snapshot at a canvas position."""
        return paste_nodes(self._snapshot, position, nodes, edges, layout)

    def paste_between(
        self,
        source_id: str,
        target_id: str,
        edge_id: str,
        nodes: Sequence[Node | Mapping[str, Any]],
        edges: Sequence[Edge | Mapping[str, Any]],
        layout: LayoutConfig | None = None,
    ) -> GraphEdit:
        """Splice the stored snapshot into an edge."""
        return paste_nodes_between(self._snapshot, source_id, target_id, edge_id, nodes, edges, layout)
