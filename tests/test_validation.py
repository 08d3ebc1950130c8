import pytest

from conftest import handles, make_lattice
from refinym.validation import InvariantViolationError, assert_coloring_valid, type_parents_per_node


def check(graph, node_map, clusters, parents, nodes=None):
    assert_coloring_valid(graph,
                          [handles(node_map, *c) for c in clusters],
                          [handles(node_map, *p) for p in parents],
                          nodes)


def assert_rejected(graph, node_map, clusters, parents, rule=None):
    with pytest.raises(InvariantViolationError) as excinfo:
        check(graph, node_map, clusters, parents)
    if rule is not None:
        assert excinfo.value.rule == rule
    return excinfo.value


ALL_TEN = ["n1", "n2", "n3", "n4", "n5", "n6", "n7", "n8", "n9", "n10"]


class TestTenNodeDag:

    def test_single_cluster(self, ten_node_dag):
        graph, node_map = ten_node_dag
        check(graph, node_map, [ALL_TEN], [["n10"]])

    def test_single_cluster_with_wrong_parents(self, ten_node_dag):
        graph, node_map = ten_node_dag
        assert_rejected(graph, node_map, [ALL_TEN], [["n1"]], rule="parentless_is_parent")
        assert_rejected(graph, node_map, [ALL_TEN], [["n1", "n7"]], rule="parentless_is_parent")

    def test_split_on_n6_in_either_order(self, ten_node_dag):
        graph, node_map = ten_node_dag
        rest = ["n1", "n2", "n3", "n4", "n5", "n7", "n10"]
        split_off = ["n6", "n8", "n9"]
        check(graph, node_map, [rest, split_off], [["n10"], ["n9", "n6"]])
        check(graph, node_map, [split_off, rest], [["n9", "n6"], ["n10"]])

    def test_split_on_n8(self, ten_node_dag):
        graph, node_map = ten_node_dag
        rest = ["n1", "n2", "n3", "n4", "n5", "n6", "n7", "n9", "n10"]
        check(graph, node_map, [rest, ["n8"]], [["n10"], ["n8"]])

    def test_node_in_two_clusters(self, ten_node_dag):
        graph, node_map = ten_node_dag
        error = assert_rejected(graph, node_map,
                                [["n6", "n8", "n9"], ["n1", "n2", "n3", "n4", "n5", "n7", "n9", "n10"]],
                                [["n9", "n6"], ["n10"]],
                                rule="partition")
        assert "[INVARIANT:partition]" in str(error)

    def test_split_into_two_unrelated_parts(self, ten_node_dag):
        graph, node_map = ten_node_dag
        assert_rejected(graph, node_map,
                        [["n1", "n6", "n8", "n9"], ["n2", "n3", "n4", "n5", "n7", "n9", "n10"]],
                        [["n9", "n6", "n1"], ["n10"]])

    def test_split_that_misses_n2_and_n3(self, ten_node_dag):
        graph, node_map = ten_node_dag
        # n1 keeps implementing the {n2, n3} type while the rest of its cluster does not
        assert_rejected(graph, node_map,
                        [["n2", "n3"], ["n1", "n4", "n5", "n6", "n7", "n8", "n9", "n10"]],
                        [["n2", "n3"], ["n10"]],
                        rule="homogeneous")

    def test_correct_split_in_four(self, ten_node_dag):
        graph, node_map = ten_node_dag
        check(graph, node_map,
              [["n3", "n4", "n5", "n7", "n10"], ["n6", "n9"], ["n1", "n2"], ["n8"]],
              [["n10"], ["n6", "n9"], ["n1", "n2"], ["n8"]])

    def test_missing_node(self, ten_node_dag):
        graph, node_map = ten_node_dag
        assert_rejected(graph, node_map, [ALL_TEN[1:]], [["n10"]], rule="partition")
        # restricting the universe makes the same colouring acceptable
        check(graph, node_map, [ALL_TEN[1:]], [["n10"]], nodes=handles(node_map, *ALL_TEN[1:]))


class TestChain:

    def test_interleaved_clusters(self, chain):
        graph, node_map = chain
        assert_rejected(graph, node_map, [["n1", "n3"], ["n2"]], [["n1"], ["n2"]])

    def test_parent_outside_its_cluster(self, chain):
        graph, node_map = chain
        assert_rejected(graph, node_map, [["n1", "n2"], ["n3"]], [["n1"], ["n2"]], rule="parents_in_cluster")
        assert_rejected(graph, node_map, [["n1", "n2"], ["n3"]], [["n2"], ["n1"]], rule="parents_in_cluster")
        assert_rejected(graph, node_map, [["n1", "n2"], ["n3"]], [["n1"], ["n1"]], rule="parents_in_cluster")

    def test_root_not_a_parent(self, chain):
        graph, node_map = chain
        assert_rejected(graph, node_map, [["n1", "n2"], ["n3"]], [["n2"], ["n3"]], rule="parentless_is_parent")

    def test_unanchored_cluster(self, chain):
        graph, node_map = chain
        assert_rejected(graph, node_map, [["n1", "n2"], ["n3"]], [["n1"], []], rule="anchored")

    def test_length_mismatch(self, chain):
        graph, node_map = chain
        assert_rejected(graph, node_map, [["n1", "n2", "n3"]], [["n1"], []], rule="lengths")

    def test_cyclic_clusters(self):
        # x <-> y split into two clusters that are each other's parent
        graph, node_map = make_lattice({"x": {"y"}, "y": {"x"}})
        assert_rejected(graph, node_map, [["x"], ["y"]], [["x"], ["y"]], rule="acyclic")


def test_type_parents_per_node(ten_node_dag):
    graph, node_map = ten_node_dag
    anchors = handles(node_map, "n10", "n6", "n9")
    type_parents = type_parents_per_node(graph, anchors)
    assert type_parents[node_map["n10"]] == handles(node_map, "n10")
    assert type_parents[node_map["n8"]] == handles(node_map, "n6", "n10")
    assert type_parents[node_map["n9"]] == handles(node_map, "n9", "n6", "n10")
    assert type_parents[node_map["n1"]] == handles(node_map, "n10")
