"""
Unit tests for data models.
"""

import pytest
from pydantic import ValidationError
from workflow_graph.config import DEFAULT_LAYOUT, LayoutConfig
from workflow_graph.exceptions import InvalidSnapshotError
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
    as_edges,
    as_nodes,
    clean_handle,
)


class TestNode:
    """Tests for Node model."""

    def test_node_creation_defaults(self):
        """Test creating a node with only an ID."""
        node = Node(id="n1")
        assert node.type == "default"
        assert node.position == Position(x=0, y=0)
        assert node.data == {}
        assert node.selected is False

    def test_node_type_from_enum(self):
        """Test that enum node types are stored as their value."""
        node = Node(id="n1", type=NodeType.AGENT)
        assert node.type == "agent"

    def test_node_type_none(self):
        """Test that a null type falls back to default."""
        node = Node.model_validate({"id": "n1", "type": None})
        assert node.type == "default"

    def test_node_empty_id(self):
        """Test that an empty node ID is rejected."""
        with pytest.raises(ValidationError):
            Node(id="")

    def test_node_label_fallback(self):
        """Test that the label falls back to the node type."""
        assert Node(id="n1", type="agent", data={"label": "Writer"}).label == "Writer"
        assert Node(id="n2", type="agent").label == "agent"

    def test_node_is_frozen(self):
        """Test that nodes cannot be mutated in place."""
        node = Node(id="n1")
        with pytest.raises(ValidationError):
            node.type = "agent"

    def test_node_extra_fields_kept(self):
        """Test that editor-specific fields survive validation."""
        node = Node.model_validate({"id": "n1", "type": "agent", "width": 120})
        assert node.to_dict()["width"] == 120


class TestEdge:
    """Tests for Edge model."""

    def test_edge_camel_case_aliases(self):
        """Test that the editor's camelCase handle keys are accepted."""
        edge = Edge.model_validate(
            {"id": "e1", "source": "a", "target": "b", "sourceHandle": "loop", "targetHandle": "back"}
        )
        assert edge.source_handle == "loop"
        assert edge.target_handle == "back"

    def test_edge_snake_case_fields(self):
        """Test that snake_case field names are accepted too."""
        edge = Edge(id="e1", source="a", target="b", target_handle="tool")
        assert edge.target_handle == "tool"

    def test_null_handles_normalized(self):
        """Test that persisted 'null' and empty handles become None."""
        edge = Edge.model_validate(
            {"id": "e1", "source": "a", "target": "b", "sourceHandle": "null", "targetHandle": ""}
        )
        assert edge.source_handle is None
        assert edge.target_handle is None

    def test_handle_enum_normalized(self):
        """Test that Handle enum members are stored as plain strings."""
        edge = Edge(id="e1", source="a", target="b", target_handle=Handle.TOOL)
        assert edge.target_handle == "tool"
        assert isinstance(edge.target_handle, str)

    def test_legacy_edge_types(self):
        """Test that legacy editor edge types map to edge classes."""
        assert Edge(id="e1", source="a", target="b", type="buttonEdge").type == EdgeType.DEFAULT
        assert Edge(id="e2", source="a", target="b", type="loopEdge").type == EdgeType.LOOP
        assert Edge(id="e3", source="a", target="b", type="toolEdge").type == EdgeType.TOOL

    def test_unknown_edge_type(self):
        """Test that unknown edge types fall back to default."""
        assert Edge(id="e1", source="a", target="b", type="fancy").type == EdgeType.DEFAULT

    def test_edge_to_dict_uses_aliases(self):
        """Test that serialization uses the editor's key names."""
        edge = Edge(id="e1", source="a", target="b", source_handle="loop", type=EdgeType.LOOP)
        data = edge.to_dict()
        assert data["sourceHandle"] == "loop"
        assert data["targetHandle"] is None
        assert data["type"] == "loop"

    def test_generate_edge_id(self):
        """Test base edge ID generation."""
        assert Edge.generate_edge_id("a", "b") == "a-b"
        assert Edge.generate_edge_id("a", "b", "-loop") == "a-b-loop"

    def test_is_loop(self):
        """Test the loop edge class."""
        assert EdgeType.LOOP.is_loop
        assert EdgeType.LOOP_BACK.is_loop
        assert not EdgeType.TOOL.is_loop
        assert not EdgeType.DEFAULT.is_loop


class TestHelpers:
    """Tests for model helpers."""

    def test_clean_handle(self):
        """Test handle normalization."""
        assert clean_handle(None) is None
        assert clean_handle("null") is None
        assert clean_handle("") is None
        assert clean_handle(Handle.BACK) == "back"
        assert clean_handle("tool") == "tool"

    def test_position_offset(self):
        """Test moving a position."""
        assert Position(x=1, y=2).offset(10, 20) == Position(x=11, y=22)

    def test_as_nodes_and_edges_accept_dicts(self):
        """Test coercion of editor dictionaries."""
        nodes = as_nodes([{"id": "a"}, Node(id="b")])
        edges = as_edges([{"id": "e1", "source": "a", "target": "b"}])
        assert [n.id for n in nodes] == ["a", "b"]
        assert edges[0].source == "a"

    def test_connection_attempt_aliases(self):
        """Test connection attempts from the editor."""
        attempt = ConnectionAttempt.model_validate(
            {"source": "a", "target": "b", "sourceHandle": None, "targetHandle": "null"}
        )
        assert attempt.target_handle is None

    def test_connection_result_reject(self):
        """Test building a rejection."""
        result = ConnectionResult.reject("nope")
        assert result.allowed is False
        assert result.reason == "nope"
        assert result.edge_type is None

    def test_graph_edit_unchanged(self):
        """Test building a no-op edit."""
        nodes = [Node(id="a")]
        edit = GraphEdit.unchanged(nodes, [], reason="nothing to do")
        assert edit.changed is False
        assert edit.nodes == nodes
        assert edit.reason == "nothing to do"


class TestClipboardSnapshot:
    """Tests for ClipboardSnapshot serialization."""

    def test_round_trip(self):
        """Test that to_dict output loads back into an equal snapshot."""
        snapshot = ClipboardSnapshot(
            nodes=[Node(id="a", position=Position(x=5, y=6))],
            edges=[],
            origin_offset=Position(x=5, y=6),
        )
        data = snapshot.to_dict()
        assert data["offset"] == {"x": 5.0, "y": 6.0}
        assert ClipboardSnapshot.from_dict(data) == snapshot

    def test_invalid_payload(self):
        """Test that malformed payloads raise InvalidSnapshotError."""
        with pytest.raises(InvalidSnapshotError):
            ClipboardSnapshot.from_dict({"nodes": [{"id": ""}], "edges": []})

    def test_is_empty(self):
        """Test the empty check."""
        assert ClipboardSnapshot().is_empty
        assert not ClipboardSnapshot(nodes=[Node(id="a")]).is_empty


class TestLayoutConfig:
    """Tests for layout settings."""

    def test_defaults(self):
        """Test the default layout constants."""
        assert DEFAULT_LAYOUT.paste_jitter == 50
        assert DEFAULT_LAYOUT.paste_between_spacing == 200
        assert DEFAULT_LAYOUT.duplicate_offset == Position(x=200, y=100)

    def test_spacing_must_be_positive(self):
        """Test that zero spacing is rejected."""
        with pytest.raises(ValidationError):
            LayoutConfig(paste_between_spacing=0)
