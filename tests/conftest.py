"""
Pytest configuration and fixtures for workflow graph tests.

This module provides:
- Node/edge factories
- Small reference workflows (linear chain, agent with tools, loop, diamond)
"""

from typing import Any

import pytest
from workflow_graph.models import Edge, Node, Position


def _make_node(node_id: str, node_type: str = "default", x: float = 0, y: float = 0, **data: Any) -> Node:
    return Node(id=node_id, type=node_type, position=Position(x=x, y=y), data=data)


def _make_edge(
    source: str,
    target: str,
    source_handle: str | None = None,
    target_handle: str | None = None,
    edge_id: str | None = None,
    **kwargs: Any,
) -> Edge:
    return Edge(
        id=edge_id or f"edge-{source}-{target}",
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        **kwargs,
    )


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_node():
    """Factory for nodes: make_node(id, type, x, y, **data)."""
    return _make_node


@pytest.fixture
def make_edge():
    """Factory for edges: make_edge(source, target, source_handle, target_handle)."""
    return _make_edge


# ============================================================================
# Reference workflows
# ============================================================================


@pytest.fixture
def linear_workflow() -> tuple[list[Node], list[Edge]]:
    """start-1 -> agent-1 -> http-1 -> end-1."""
    nodes = [
        _make_node("start-1", "start", 0, 0, label="Start"),
        _make_node("agent-1", "agent", 200, 0, label="Agent"),
        _make_node("http-1", "http-request", 400, 0, label="HTTP"),
        _make_node("end-1", "end", 600, 0, label="End"),
    ]
    edges = [
        _make_edge("start-1", "agent-1", edge_id="edge-start-agent"),
        _make_edge("agent-1", "http-1", edge_id="edge-agent-http"),
        _make_edge("http-1", "end-1", edge_id="edge-http-end"),
    ]
    return nodes, edges


@pytest.fixture
def agent_workflow() -> tuple[list[Node], list[Edge]]:
    """start-1 -> agent-1 -> end-1 with tool-1 (tool) and tool-2 (memory) attached."""
    nodes = [
        _make_node("start-1", "start", 0, 0, label="Start"),
        _make_node("agent-1", "agent", 200, 0, label="Agent"),
        _make_node("tool-1", "tool", 150, 150, label="Search"),
        _make_node("tool-2", "tool", 250, 150, label="Memory"),
        _make_node("end-1", "end", 400, 0, label="End"),
    ]
    edges = [
        _make_edge("start-1", "agent-1", edge_id="edge-start-agent"),
        _make_edge("tool-1", "agent-1", target_handle="tool", edge_id="edge-tool1-agent", type="tool"),
        _make_edge("tool-2", "agent-1", target_handle="memory", edge_id="edge-tool2-agent", type="tool"),
        _make_edge("agent-1", "end-1", edge_id="edge-agent-end"),
    ]
    return nodes, edges


@pytest.fixture
def loop_workflow() -> tuple[list[Node], list[Edge]]:
    """start-1 -> while-1 {loop: a -> b, b -back-> while-1} -> end-1."""
    nodes = [
        _make_node("start-1", "start", 0, 0),
        _make_node("while-1", "while", 200, 0),
        _make_node("a", "default", 200, 200),
        _make_node("b", "default", 400, 200),
        _make_node("end-1", "end", 400, 0),
    ]
    edges = [
        _make_edge("start-1", "while-1", edge_id="edge-start-while"),
        _make_edge("while-1", "a", source_handle="loop", edge_id="edge-while-a", type="loop"),
        _make_edge("a", "b", edge_id="edge-a-b"),
        _make_edge("b", "while-1", target_handle="back", edge_id="edge-b-while", type="loop_back"),
        _make_edge("while-1", "end-1", edge_id="edge-while-end"),
    ]
    return nodes, edges


@pytest.fixture
def diamond_workflow() -> tuple[list[Node], list[Edge]]:
    """start-1 -> {a, b} -> target."""
    nodes = [
        _make_node("start-1", "start"),
        _make_node("a"),
        _make_node("b"),
        _make_node("target"),
    ]
    edges = [
        _make_edge("start-1", "a"),
        _make_edge("start-1", "b"),
        _make_edge("a", "target"),
        _make_edge("b", "target"),
    ]
    return nodes, edges
