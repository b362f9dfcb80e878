"""
Data models for workflow-graph-engine package.

This module defines the core data structures:
- Position: Canvas coordinates of a node
- Node: A typed vertex of the workflow graph
- Edge: A directed, handle-qualified connection between two nodes
- ClipboardSnapshot: The induced subgraph captured by a copy
- ConnectionAttempt / ConnectionResult: Drag-to-connect requests and verdicts
- GraphEdit: The replacement graph returned by every structural edit
- UpstreamClassification: Guaranteed / conditional ancestors of a node

Models are frozen: engine functions derive new instances with
``model_copy`` and never mutate what the caller passed in. Both snake_case
field names and the editor's camelCase keys (``sourceHandle``...) are accepted.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import InvalidSnapshotError


class Handle(str, Enum):
    """Named ports with engine-level meaning."""

    TOOL = "tool"
    CHAT_MODEL = "chat-model"
    MEMORY = "memory"
    LOOP = "loop"
    BACK = "back"
    TRUE = "true"
    FALSE = "false"


class NodeType(str, Enum):
    """Node types the engine has rules for."""

    START = "start"
    END = "end"
    AGENT = "agent"
    TOOL = "tool"
    WHILE = "while"
    FOREACH = "foreach"
    IFELSE = "ifelse"
    LOOP = "loop"
    END_LOOP = "end-loop"
    HTTP_REQUEST = "http-request"


class EdgeType(str, Enum):
    """Semantic class of an edge."""

    DEFAULT = "default"
    LOOP = "loop"
    LOOP_BACK = "loop_back"
    TOOL = "tool"

    @property
    def is_loop(self) -> bool:
        """Whether the edge belongs to a loop construct (either direction)."""
        return self in (EdgeType.LOOP, EdgeType.LOOP_BACK)


# Agent inputs that only tool-type nodes may attach to
ATTACHMENT_HANDLES = frozenset(
    {Handle.TOOL.value, Handle.CHAT_MODEL.value, Handle.MEMORY.value}
)
LOOP_HANDLES = frozenset({Handle.LOOP.value, Handle.BACK.value})
BRANCH_HANDLES = (Handle.TRUE.value, Handle.FALSE.value)

# Node types that carry the loop / back handle pair
LOOP_CONSTRUCT_TYPES = frozenset({NodeType.WHILE.value, NodeType.FOREACH.value})

TOOL_TYPE_PREFIX = "tool-"

# Edge type names written by older editor versions
_LEGACY_EDGE_TYPES = {
    "buttonEdge": EdgeType.DEFAULT,
    "loopEdge": EdgeType.LOOP,
    "toolEdge": EdgeType.TOOL,
}


def clean_handle(value: Any) -> str | None:
    """Normalize a handle identifier; persisted graphs store ``"null"``."""
    if isinstance(value, Enum):
        value = value.value
    if value is None or value == "" or value == "null":
        return None
    return str(value)


class Position(BaseModel):
    """Canvas coordinates."""

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> "Position":
        """Return this position moved by ``(dx, dy)``."""
        return Position(x=self.x + dx, y=self.y + dy)

    model_config = ConfigDict(frozen=True)


class Node(BaseModel):
    """
    Represents a node in the workflow graph.

    ``type`` selects grouping rules and the handle set. ``data`` is opaque to
    the engine except for ``parentRelativePosition``, the cached offset of a
    child to the composite node that owns it.
    """

    id: str = Field(
        ...,
        description="Unique identifier of the node within its graph",
        min_length=1,
    )
    type: str = Field(
        default="default",
        description="Node type (start, agent, tool, while, ...)",
    )
    position: Position = Field(
        default_factory=Position,
        description="Canvas position of the node",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Node payload (label, configuration, engine-owned fields)",
    )
    selected: bool = Field(
        default=False,
        description="Whether the node is part of the current selection",
    )

    @field_validator("type", mode="before")
    @classmethod
    def default_node_type(cls, v: Any) -> Any:
        """Untyped nodes from the editor get the ``default`` type."""
        if v is None:
            return "default"
        if isinstance(v, Enum):
            return v.value
        return v

    @property
    def label(self) -> str:
        """Display label, falling back to the node type."""
        return str(self.data.get("label") or self.type)

    def to_dict(self) -> dict[str, Any]:
        """Convert the node to the editor's JSON shape."""
        return self.model_dump(by_alias=True, mode="json")

    model_config = ConfigDict(frozen=True, extra="allow")


class Edge(BaseModel):
    """
    Represents a directed connection between two node handles.

    ``(source, source_handle) -> (target, target_handle)`` identifies the
    connection; an absent handle is the node's default port.
    """

    id: str = Field(
        ...,
        description="Unique identifier of the edge within its graph",
        min_length=1,
    )
    source: str = Field(
        ...,
        description="ID of the source node",
        min_length=1,
    )
    target: str = Field(
        ...,
        description="ID of the target node",
        min_length=1,
    )
    source_handle: str | None = Field(
        default=None,
        alias="sourceHandle",
        description="Output port on the source node",
    )
    target_handle: str | None = Field(
        default=None,
        alias="targetHandle",
        description="Input port on the target node",
    )
    type: EdgeType = Field(
        default=EdgeType.DEFAULT,
        description="Semantic class of the edge",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Edge payload",
    )

    @field_validator("source_handle", "target_handle", mode="before")
    @classmethod
    def normalize_handle(cls, v: Any) -> str | None:
        """Map empty and ``"null"`` handles to ``None``."""
        return clean_handle(v)

    @field_validator("type", mode="before")
    @classmethod
    def parse_edge_type(cls, v: Any) -> Any:
        """Accept legacy and unknown editor edge types."""
        if v is None:
            return EdgeType.DEFAULT
        if isinstance(v, EdgeType):
            return v
        if v in _LEGACY_EDGE_TYPES:
            return _LEGACY_EDGE_TYPES[v]
        try:
            return EdgeType(v)
        except ValueError:
            return EdgeType.DEFAULT

    @classmethod
    def generate_edge_id(cls, source: str, target: str, suffix: str = "") -> str:
        """
        Generate the base edge ID for a connection.

        Args:
            source: Source node ID
            target: Target node ID
            suffix: Optional suffix appended to the ID

        Returns:
            Generated edge ID
        """
        return f"{source}-{target}{suffix}"

    def to_dict(self) -> dict[str, Any]:
        """Convert the edge to the editor's JSON shape."""
        return self.model_dump(by_alias=True, mode="json")

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)


class ClipboardSnapshot(BaseModel):
    """
    The induced subgraph captured by a copy.

    ``origin_offset`` is the top-left corner of the copied nodes and is used
    to compute paste deltas.
    """

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    origin_offset: Position = Field(
        default_factory=Position,
        alias="offset",
        description="(min x, min y) over the copied node positions",
    )

    @property
    def is_empty(self) -> bool:
        """Whether the snapshot holds no nodes."""
        return not self.nodes

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the snapshot to a JSON-compatible dictionary.

        Returns:
            Dictionary in the editor's camelCase shape.
        """
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClipboardSnapshot":
        """
        Load a snapshot produced by ``to_dict``.

        Args:
            data: Dictionary containing snapshot data

        Returns:
            ClipboardSnapshot instance

        Raises:
            InvalidSnapshotError: If the payload is not a valid snapshot
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidSnapshotError(f"Invalid clipboard snapshot: {e}") from e

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ConnectionAttempt(BaseModel):
    """A drag-to-connect gesture from the editor."""

    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target_handle: str | None = Field(default=None, alias="targetHandle")

    @field_validator("source_handle", "target_handle", mode="before")
    @classmethod
    def normalize_handle(cls, v: Any) -> str | None:
        """Map empty and ``"null"`` handles to ``None``."""
        return clean_handle(v)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ConnectionResult(BaseModel):
    """Verdict of the edge classifier for a connection attempt."""

    allowed: bool
    reason: str | None = Field(
        default=None,
        description="User-facing explanation when the connection is rejected",
    )
    edge_type: EdgeType | None = None
    source_handle: str | None = None
    target_handle: str | None = None
    existing_edge_id: str | None = Field(
        default=None,
        description="Set when the attempt re-creates an edge that already exists",
    )

    @classmethod
    def reject(cls, reason: str) -> "ConnectionResult":
        """Build a rejection with a human-readable reason."""
        return cls(allowed=False, reason=reason)

    model_config = ConfigDict(frozen=True)


class GraphEdit(BaseModel):
    """
    Replacement graph returned by a structural edit.

    ``changed`` is False for no-op calls (unknown IDs, empty clipboard,
    refused operations); ``nodes``/``edges`` then equal the inputs.
    """

    nodes: list[Node]
    edges: list[Edge]
    changed: bool = True
    affected_node_ids: list[str] = Field(
        default_factory=list,
        description="IDs of the nodes created, removed, or moved by the edit",
    )
    affected_edge_ids: list[str] = Field(
        default_factory=list,
        description="IDs of the edges created by the edit",
    )
    reason: str | None = Field(
        default=None,
        description="Why nothing changed, for no-op edits",
    )
    connection: ConnectionResult | None = None

    @classmethod
    def unchanged(
        cls,
        nodes: list[Node],
        edges: list[Edge],
        reason: str | None = None,
        connection: ConnectionResult | None = None,
    ) -> "GraphEdit":
        """Build a no-op result that hands the input graph back."""
        return cls(
            nodes=list(nodes),
            edges=list(edges),
            changed=False,
            reason=reason,
            connection=connection,
        )

    model_config = ConfigDict(frozen=True)


class UpstreamClassification(BaseModel):
    """
    Ancestors of a node split by reliability.

    ``guaranteed`` ancestors lie on every path from the workflow's entry
    points to the node; ``conditional`` ones depend on a branch being taken.
    ``start_nodes`` are the Start-typed ancestors, which the variable picker
    lists in their own section.
    """

    target: str
    ancestors: list[str] = Field(default_factory=list)
    guaranteed: set[str] = Field(default_factory=set)
    conditional: set[str] = Field(default_factory=set)
    start_nodes: set[str] = Field(default_factory=set)

    model_config = ConfigDict(frozen=True)


def as_nodes(nodes: Iterable[Node | Mapping[str, Any]]) -> list[Node]:
    """Coerce editor dictionaries to ``Node`` models."""
    return [n if isinstance(n, Node) else Node.model_validate(n) for n in nodes]


def as_edges(edges: Iterable[Edge | Mapping[str, Any]]) -> list[Edge]:
    """Coerce editor dictionaries to ``Edge`` models."""
    return [e if isinstance(e, Edge) else Edge.model_validate(e) for e in edges]
