#!/usr/bin/env python3
"""
Example: Editor Session - Structural Edits on a Workflow

This example walks through the edits a visual editor sends to the engine:
connect an agent to its tools, copy the agent, splice the copy into an edge,
and ask which upstream nodes are guaranteed to have run.
"""

import logging

from workflow_graph import (
    Clipboard,
    Edge,
    Node,
    Position,
    classify_upstream,
    connect,
    delete_node,
    validate_graph,
)


def main():
    """Build a small workflow and apply a series of edits to it."""
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    nodes = [
        Node(id="start-1", type="start", position=Position(x=0, y=0), data={"label": "Start"}),
        Node(id="agent-1", type="agent", position=Position(x=200, y=0), data={"label": "Researcher"}),
        Node(id="tool-1", type="tool", position=Position(x=200, y=150), data={"label": "Web Search"}),
        Node(id="http-1", type="http-request", position=Position(x=400, y=0), data={"label": "Notify"}),
        Node(id="end-1", type="end", position=Position(x=600, y=0), data={"label": "End"}),
    ]
    edges = [
        Edge(id="edge-start-agent", source="start-1", target="agent-1"),
        Edge(id="edge-agent-http", source="agent-1", target="http-1"),
        Edge(id="edge-http-end", source="http-1", target="end-1"),
    ]

    # Attach the tool to the agent
    edit = connect({"source": "tool-1", "target": "agent-1", "targetHandle": "tool"}, nodes, edges)
    nodes, edges = edit.nodes, edit.edges
    print(f"✓ Tool attached ({edit.connection.edge_type.value} edge)")

    # A second agent cannot borrow the same tool
    nodes.append(Node(id="agent-2", type="agent", position=Position(x=400, y=300)))
    edit = connect({"source": "tool-1", "target": "agent-2", "targetHandle": "tool"}, nodes, edges)
    print(f"✗ Rejected: {edit.reason}")
    nodes = delete_node("agent-2", nodes, edges).nodes

    # Copy the agent (its tool comes along) and splice it before the End node
    clipboard = Clipboard()
    snapshot = clipboard.copy(["agent-1"], nodes, edges)
    print(f"\nCopied {len(snapshot.nodes)} nodes and {len(snapshot.edges)} edges")

    edit = clipboard.paste_between("http-1", "end-1", "edge-http-end", nodes, edges)
    nodes, edges = edit.nodes, edit.edges
    validate_graph(nodes, edges)
    print(f"✓ Spliced {len(edit.affected_node_ids)} nodes between http-1 and end-1")

    print("\nEdges:")
    for edge in edges:
        print(f"  {edge.source} -> {edge.target} ({edge.type.value})")

    # Which nodes always run before End?
    result = classify_upstream("end-1", nodes, edges)
    print("\nUpstream of end-1:")
    print(f"  Guaranteed:  {sorted(result.guaranteed)}")
    print(f"  Conditional: {sorted(result.conditional)}")


if __name__ == "__main__":
    main()
