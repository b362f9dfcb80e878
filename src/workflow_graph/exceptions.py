"""
Exceptions for workflow-graph-engine package.

Editing operations never raise for missing inputs (they report a no-op
instead); these exceptions are reserved for malformed graphs and payloads.
"""


class WorkflowGraphError(Exception):
    """Base exception for workflow graph errors."""

    pass


class NodeNotFoundError(WorkflowGraphError):
    """Raised when a node is not found in the graph."""

    pass


class DuplicateNodeError(WorkflowGraphError):
    """Raised when a graph snapshot contains two nodes with the same ID."""

    pass


class DuplicateEdgeError(WorkflowGraphError):
    """Raised when a graph snapshot contains two edges with the same ID."""

    pass


class DanglingEdgeError(WorkflowGraphError):
    """Raised when an edge references a node missing from the snapshot."""

    pass


class InvalidSnapshotError(WorkflowGraphError):
    """Raised when a serialized clipboard snapshot cannot be loaded."""

    pass
