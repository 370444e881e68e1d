# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Subset graph construction, reachability and region values."""

import pytest

from loanck.builder import BodyBuilder
from loanck.cfg import Loan, LoanKind
from loanck.liveness import LivenessAnalyzer
from loanck.places import Place
from loanck.subset_graph import Node, SubsetGraph, build_subset_graph, resolve_region_values
from loanck.test_support import I32, names, pt, ref, two_branch_reassign_body
from loanck.types import Region


def _edge_names(graph: SubsetGraph):
	return {(str(src), str(dst)) for src, dst in graph.edges}


def _loan(name: str, block: str = "bb0", index: int = 0) -> Loan:
	return Loan(name, pt(block, index), Place("x"), LoanKind.SHARED)


def test_two_branch_graph_edges():
	body = two_branch_reassign_body()
	graph = build_subset_graph(body)
	assert _edge_names(graph) == {("L0", "'p"), ("L1", "'q"), ("'q", "'p")}
	assert graph.origins(Node.of_region(body.region("'q")), Node.of_region(body.region("'p"))) == frozenset({pt("bb1", 0)})


def test_loans_reaching_follows_region_edges():
	body = two_branch_reassign_body()
	graph = build_subset_graph(body)
	assert names(graph.loans_reaching(body.region("'p"))) == ["L0", "L1"]
	assert names(graph.loans_reaching(body.region("'q"))) == ["L1"]
	assert graph.can_reach(body.loan("L1"), body.region("'p"))
	assert not graph.can_reach(body.loan("L0"), body.region("'q"))


def test_parallel_obligations_collapse_into_one_edge():
	graph = SubsetGraph()
	a = graph.add_region(Region("'a"))
	b = graph.add_region(Region("'b"))
	assert graph.add_edge(a, b, pt("bb0", 0))
	assert not graph.add_edge(a, b, pt("bb1", 0))
	assert len(graph.edges) == 1
	assert graph.origins(a, b) == frozenset({pt("bb0", 0), pt("bb1", 0)})


def test_cycles_terminate_and_share_loans():
	graph = SubsetGraph()
	ra, rb, rc = Region("'a"), Region("'b"), Region("'c")
	a, b, c = graph.add_region(ra), graph.add_region(rb), graph.add_region(rc)
	graph.add_edge(a, b)
	graph.add_edge(b, c)
	graph.add_edge(c, a)
	loan = _loan("L0")
	graph.add_edge(graph.add_loan(loan), b)
	for region in (ra, rb, rc):
		assert graph.loans_reaching(region) == frozenset({loan})
	assert graph.reachable_from(a) == frozenset({a, b, c})
	assert graph.reaching(a) == frozenset({a, b, c, Node.of_loan(loan)})


def test_new_edges_invalidate_cached_reachability():
	graph = SubsetGraph()
	ra, rb = Region("'a"), Region("'b")
	a, b = graph.add_region(ra), graph.add_region(rb)
	loan = _loan("L0")
	graph.add_edge(graph.add_loan(loan), a)
	assert graph.loans_reaching(rb) == frozenset()
	graph.add_edge(a, b)
	assert graph.loans_reaching(rb) == frozenset({loan})


def test_adding_edges_never_shrinks_reachable_loans():
	body = two_branch_reassign_body()
	graph = build_subset_graph(body)
	before = {r: graph.loans_reaching(r) for r in body.regions.values()}
	graph.add_edge(Node.of_region(body.region("'p")), Node.of_region(body.region("'q")))
	for region, loans in before.items():
		assert loans <= graph.loans_reaching(region)
	assert names(graph.loans_reaching(body.region("'q"))) == ["L0", "L1"]


def test_graph_misuse_is_an_internal_error():
	graph = SubsetGraph()
	a = graph.add_region(Region("'a"))
	loan_node = graph.add_loan(_loan("L0"))
	with pytest.raises(AssertionError, match="targets a loan"):
		graph.add_edge(a, loan_node)
	with pytest.raises(AssertionError, match="nonexistent node"):
		graph.add_edge(a, Node.of_region(Region("'zz")))
	with pytest.raises(AssertionError, match="nonexistent region"):
		graph.region("'zz")
	with pytest.raises(AssertionError, match="nonexistent loan"):
		graph.loan("L9")
	with pytest.raises(AssertionError, match="nonexistent region"):
		graph.loans_reaching(Region("'zz"))
	with pytest.raises(AssertionError, match="conflicting universality"):
		graph.add_region(Region("'a", universal=True))


def test_signature_bounds_become_edges_without_origin_point():
	b = BodyBuilder("f")
	ra = b.region("'a", universal=True)
	rb = b.region("'b", universal=True)
	b.param("a", ref(ra))
	b.bound(ra, rb)
	b.block("bb0").ret()
	graph = build_subset_graph(b.build())
	assert _edge_names(graph) == {("'a", "'b")}
	assert graph.origins(Node.of_region(ra), Node.of_region(rb)) == frozenset({None})


def test_self_obligations_are_dropped():
	b = BodyBuilder("f")
	rp = b.region("'p")
	b.declare("x", I32)
	b.declare("p", ref(rp))
	bb0 = b.block("bb0")
	bb0.outlives(rp, rp)
	bb0.ret()
	assert build_subset_graph(b.build()).edges == ()


def test_region_values_close_points_over_outgoing_edges():
	body = two_branch_reassign_body()
	graph = build_subset_graph(body)
	liveness = LivenessAnalyzer().analyze(body)
	values = resolve_region_values(body, graph, liveness)
	rp, rq = body.region("'p"), body.region("'q")
	assert values[rp].points == liveness.region_points(rp)
	assert values[rq].points == liveness.region_points(rq) | liveness.region_points(rp)
	assert pt("bb1", 0) in values[rq].points
	assert pt("bb1", 0) not in values[rp].points
	assert names(values[rp].loans) == ["L0", "L1"]


def test_universal_region_value_holds_every_point():
	b = BodyBuilder("f")
	ra = b.region("'a", universal=True)
	rp = b.region("'p")
	b.param("a", ref(ra))
	b.declare("p", ref(rp))
	bb0 = b.block("bb0")
	bb0.outlives(rp, ra)
	bb0.ret()
	body = b.build()
	values = resolve_region_values(body, build_subset_graph(body), LivenessAnalyzer().analyze(body))
	assert values[ra].points == frozenset(body.points)
	# 'p flows into 'a, so it must cover every point 'a does.
	assert values[rp].points == frozenset(body.points)
