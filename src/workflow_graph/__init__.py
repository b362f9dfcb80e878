"""
workflow-graph-engine: structural editing algorithms for visual workflow graphs.

This package keeps a workflow's node/edge graph consistent under the edits a
visual editor exposes: copy, paste, paste-between, grouped delete/duplicate/move,
connection legality checks, and guaranteed/conditional upstream analysis.
"""

from workflow_graph.clipboard import (
    Clipboard,
    copy_nodes,
    find_entry_and_exit_nodes,
    paste_nodes,
    paste_nodes_between,
)
from workflow_graph.config import DEFAULT_LAYOUT, LayoutConfig
from workflow_graph.edges import (
    classify_connection,
    connect,
    edge_type_for,
    find_loop_node_for,
    is_tool_node,
    normalize_edges,
)
from workflow_graph.exceptions import (
    DanglingEdgeError,
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidSnapshotError,
    NodeNotFoundError,
    WorkflowGraphError,
)
from workflow_graph.graph import (
    find_connected_edges,
    find_downstream_nodes,
    find_upstream_nodes,
    validate_graph,
)
from workflow_graph.grouping import (
    find_child_nodes,
    find_parent_node,
    get_node_group,
    is_parent_node,
)
from workflow_graph.models import (
    ClipboardSnapshot,
    ConnectionAttempt,
    ConnectionResult,
    Edge,
    EdgeType,
    GraphEdit,
    Handle,
    Node,
    NodeType,
    Position,
    UpstreamClassification,
)
from workflow_graph.operations import (
    add_node,
    delete_node,
    delete_nodes,
    duplicate_node,
    move_node,
    update_node,
)
from workflow_graph.reachability import classify_upstream, dominator_sets

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Node operations
    "add_node",
    "delete_node",
    "delete_nodes",
    "duplicate_node",
    "update_node",
    "move_node",
    # Clipboard
    "Clipboard",
    "copy_nodes",
    "paste_nodes",
    "paste_nodes_between",
    "find_entry_and_exit_nodes",
    # Connections
    "classify_connection",
    "connect",
    "edge_type_for",
    "is_tool_node",
    "normalize_edges",
    "find_loop_node_for",
    # Grouping
    "find_child_nodes",
    "find_parent_node",
    "get_node_group",
    "is_parent_node",
    # Graph queries
    "find_connected_edges",
    "find_downstream_nodes",
    "find_upstream_nodes",
    "validate_graph",
    # Reachability
    "classify_upstream",
    "dominator_sets",
    # Configuration
    "LayoutConfig",
    "DEFAULT_LAYOUT",
    # Data models
    "Node",
    "NodeType",
    "Edge",
    "EdgeType",
    "Handle",
    "Position",
    "ClipboardSnapshot",
    "ConnectionAttempt",
    "ConnectionResult",
    "GraphEdit",
    "UpstreamClassification",
    # Exceptions
    "WorkflowGraphError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "DuplicateEdgeError",
    "DanglingEdgeError",
    "InvalidSnapshotError",
]
