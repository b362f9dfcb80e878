"""
Tests for the grouping resolver.
"""

from workflow_graph.grouping import (
    CHILD_RESOLVERS,
    RELATIVE_POSITION_KEY,
    find_branch_nodes,
    find_child_nodes,
    find_loop_block_nodes,
    find_parent_node,
    find_tool_nodes_for_agent,
    get_node_group,
    get_relative_position,
    is_child_of,
    is_parent_node,
    store_relative_positions,
)
from workflow_graph.models import Position


class TestAgentGrouping:
    """Tests for agent + attached tools."""

    def test_tools_are_children(self, agent_workflow):
        """Test that tools on any attachment handle belong to the agent."""
        nodes, edges = agent_workflow
        assert find_child_nodes("agent-1", "agent", edges, nodes) == {"tool-1", "tool-2"}

    def test_find_tool_nodes_for_agent(self, agent_workflow):
        """Test listing attached tools in edge order."""
        _, edges = agent_workflow
        assert find_tool_nodes_for_agent("agent-1", edges) == ["tool-1", "tool-2"]

    def test_flow_neighbours_not_children(self, agent_workflow):
        """Test that the agent's flow predecessors and successors are not grouped."""
        nodes, edges = agent_workflow
        children = find_child_nodes("agent-1", "agent", edges, nodes)
        assert "start-1" not in children
        assert "end-1" not in children


class TestLoopGrouping:
    """Tests for while/foreach loop bodies."""

    def test_body_is_children(self, loop_workflow):
        """Test that the loop body belongs to the construct."""
        nodes, edges = loop_workflow
        assert find_child_nodes("while-1", "while", edges, nodes) == {"a", "b"}

    def test_exit_not_in_body(self, loop_workflow, make_node, make_edge):
        """Test that a node leaving the body without returning is excluded."""
        nodes, edges = loop_workflow
        nodes = [*nodes, make_node("x")]
        edges = [*edges, make_edge("a", "x")]
        assert find_child_nodes("while-1", "while", edges, nodes) == {"a", "b"}

    def test_body_without_back_edge(self, make_node, make_edge):
        """Test that an unfinished loop owns everything reachable from its loop handle."""
        nodes = [make_node("foreach-1", "foreach"), make_node("a"), make_node("b")]
        edges = [make_edge("foreach-1", "a", source_handle="loop"), make_edge("a", "b")]
        assert find_child_nodes("foreach-1", "foreach", edges, nodes) == {"a", "b"}

    def test_cyclic_body_terminates(self, make_node, make_edge):
        """Test that a cycle inside the body does not loop forever."""
        nodes = [make_node("while-1", "while"), make_node("a"), make_node("b")]
        edges = [
            make_edge("while-1", "a", source_handle="loop"),
            make_edge("a", "b"),
            make_edge("b", "a"),
            make_edge("b", "while-1", target_handle="back"),
        ]
        assert find_child_nodes("while-1", "while", edges, nodes) == {"a", "b"}

    def test_agent_in_body_brings_tools(self, make_node, make_edge):
        """Test that the closure picks up tools of an agent inside the body."""
        nodes = [make_node("while-1", "while"), make_node("agent-2", "agent"), make_node("tool-3", "tool")]
        edges = [
            make_edge("while-1", "agent-2", source_handle="loop"),
            make_edge("agent-2", "while-1", target_handle="back"),
            make_edge("tool-3", "agent-2", target_handle="tool"),
        ]
        assert find_child_nodes("while-1", "while", edges, nodes) == {"agent-2", "tool-3"}

    def test_find_loop_block_nodes_no_loop(self, linear_workflow):
        """Test that a node without a loop handle has no body."""
        _, edges = linear_workflow
        assert find_loop_block_nodes("agent-1", edges) == []


class TestBranchGrouping:
    """Tests for ifelse branches."""

    def test_branch_children_exclude_merge(self, make_node, make_edge):
        """Test that nodes reached from both branches are not grouped."""
        nodes = [
            make_node("if-1", "ifelse"),
            make_node("a"),
            make_node("b"),
            make_node("m"),
            make_node("end-1", "end"),
        ]
        edges = [
            make_edge("if-1", "a", source_handle="true"),
            make_edge("if-1", "b", source_handle="false"),
            make_edge("a", "m"),
            make_edge("b", "m"),
            make_edge("m", "end-1"),
        ]
        assert find_branch_nodes("if-1", "true", edges) == ["a", "m", "end-1"]
        assert find_child_nodes("if-1", "ifelse", edges, nodes) == {"a", "b"}


class TestLoopPairGrouping:
    """Tests for loop/end-loop pairs."""

    def test_pair_children(self, make_node, make_edge):
        """Test that nodes between a loop and its end-loop are grouped."""
        nodes = [
            make_node("loop-1", "loop", pairId="p1"),
            make_node("x"),
            make_node("end-loop-1", "end-loop", pairId="p1"),
            make_node("after"),
        ]
        edges = [
            make_edge("loop-1", "x"),
            make_edge("x", "end-loop-1"),
            make_edge("end-loop-1", "after"),
        ]
        assert find_child_nodes("loop-1", "loop", edges, nodes) == {"x", "end-loop-1"}

    def test_unpaired_loop(self, make_node, make_edge):
        """Test that a loop without its end-loop has no children."""
        nodes = [make_node("loop-1", "loop", pairId="p1"), make_node("x")]
        edges = [make_edge("loop-1", "x")]
        assert find_child_nodes("loop-1", "loop", edges, nodes) == set()


class TestDetection:
    """Tests for handle-pattern detection on unknown types."""

    def test_unknown_type_with_attachments(self, make_node, make_edge):
        """Test that a custom node with tool inputs groups its tools."""
        nodes = [make_node("sup-1", "supervisor"), make_node("tool-1", "tool")]
        edges = [make_edge("tool-1", "sup-1", target_handle="tool")]
        assert is_parent_node(nodes[0], edges)
        assert find_child_nodes("sup-1", "supervisor", edges, nodes) == {"tool-1"}

    def test_plain_node_has_no_children(self, linear_workflow):
        """Test that types without a rule have no children."""
        nodes, edges = linear_workflow
        assert not is_parent_node(nodes[2], edges)
        assert find_child_nodes("http-1", "http-request", edges, nodes) == set()

    def test_rule_table(self):
        """Test that composite types are registered in the rule table."""
        assert set(CHILD_RESOLVERS) == {"agent", "while", "foreach", "ifelse", "loop"}


class TestGroupQueries:
    """Tests for parent lookups and groups."""

    def test_get_node_group(self, agent_workflow):
        """Test the parent + children group."""
        nodes, edges = agent_workflow
        group = get_node_group("agent-1", "agent", edges, nodes)
        assert group["parent_id"] == "agent-1"
        assert group["child_ids"] == ["tool-1", "tool-2"]
        assert group["all_ids"] == ["agent-1", "tool-1", "tool-2"]

    def test_find_parent_node(self, agent_workflow):
        """Test finding the owner of a child."""
        nodes, edges = agent_workflow
        assert find_parent_node("tool-1", edges, nodes) == "agent-1"
        assert find_parent_node("start-1", edges, nodes) is None

    def test_innermost_parent_wins(self, make_node, make_edge):
        """Test that nested loops report the innermost owner."""
        nodes = [make_node("outer", "while"), make_node("inner", "while"), make_node("x")]
        edges = [
            make_edge("outer", "inner", source_handle="loop"),
            make_edge("inner", "x", source_handle="loop"),
            make_edge("x", "inner", target_handle="back"),
            make_edge("inner", "outer", target_handle="back"),
        ]
        assert find_child_nodes("outer", "while", edges, nodes) == {"inner", "x"}
        assert find_parent_node("x", edges, nodes) == "inner"

    def test_is_child_of(self, agent_workflow):
        """Test the membership check."""
        nodes, edges = agent_workflow
        assert is_child_of("tool-2", "agent-1", edges, nodes)
        assert not is_child_of("end-1", "agent-1", edges, nodes)
        assert not is_child_of("tool-2", "missing", edges, nodes)


class TestRelativePositions:
    """Tests for cached child offsets."""

    def test_store_relative_positions(self, agent_workflow):
        """Test caching the offset of each tool to its agent."""
        nodes, edges = agent_workflow
        updated = {n.id: n for n in store_relative_positions(nodes, edges)}
        assert updated["tool-1"].data[RELATIVE_POSITION_KEY] == {"x": -50.0, "y": 150.0}
        assert updated["tool-2"].data[RELATIVE_POSITION_KEY] == {"x": 50.0, "y": 150.0}
        assert RELATIVE_POSITION_KEY not in updated["start-1"].data

    def test_cached_offset_wins(self, make_node):
        """Test that a cached offset is preferred over current positions."""
        parent = make_node("agent-1", "agent", 0, 0)
        child = make_node("tool-1", "tool", 500, 500, **{RELATIVE_POSITION_KEY: {"x": 10, "y": 20}})
        assert get_relative_position(child, parent) == Position(x=10, y=20)
