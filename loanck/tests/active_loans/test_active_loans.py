# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Active-loan dataflow: kills, joins, convergence and monotonicity."""

import time

import pytest

from loanck.active_loans import ActiveLoanEngine
from loanck.builder import BodyBuilder, Operand
from loanck.conflicts import find_conflicts
from loanck.fixpoint import AnalysisAborted
from loanck.liveness import LivenessAnalyzer
from loanck.places import FieldProj, Place
from loanck.subset_graph import Node, build_subset_graph
from loanck.test_support import (
	branching_body,
	conflict_sites,
	loop_body,
	names,
	pt,
	ref,
	straight_line_body,
	two_branch_reassign_body,
)
from loanck.types import AdtTy


def _engine(body, **kwargs):
	liveness = LivenessAnalyzer().analyze(body)
	return ActiveLoanEngine(body, liveness, build_subset_graph(body), **kwargs)


def test_conditional_reassignment_kills_only_where_old_loan_is_dead():
	body = two_branch_reassign_body()
	active = _engine(body).run()
	# Reassigned branch: only q is live entering `p = copy q`, so L0 dies there.
	assert active.names_at(pt("bb1", 0)) == ["L1"]
	assert active.names_at(pt("bb1", 1)) == ["L1"]
	# Untouched branch and join: both loans still reachable through 'p.
	assert active.names_at(pt("bb2", 0)) == ["L0", "L1"]
	assert active.names_at(pt("bb3", 0)) == ["L0", "L1"]

	assert conflict_sites(find_conflicts(body, active)) == [
		("bb2[0]", "L1", "y"),
		("bb3[0]", "L1", "y"),
	]


def test_loan_is_not_in_force_at_its_own_issue_point():
	body = straight_line_body()
	active = _engine(body).run()
	assert active.names_at(pt("bb0", 1)) == []
	assert names(active.out[pt("bb0", 1)]) == ["L0"]
	assert active.names_at(pt("bb0", 2)) == ["L0"]
	# p is dead after the use.
	assert active.names_at(pt("bb0", 4)) == []


def test_overwriting_the_borrowed_place_kills_the_loan_after_the_check():
	b = BodyBuilder("f")
	rp = b.region("'p")
	b.declare("s", AdtTy("Pair"))
	b.declare("p", ref(rp))
	bb0 = b.block("bb0")
	bb0.borrow("p", Place("s").with_projection(FieldProj("a")))
	bb0.assign("s", Operand.const())
	bb0.use(Operand.copy_of("p"))
	bb0.ret()
	body = b.build()
	active = _engine(body).run()
	assert active.names_at(pt("bb0", 1)) == ["L0"]
	assert active.names_at(pt("bb0", 2)) == []
	assert conflict_sites(find_conflicts(body, active)) == [("bb0[1]", "L0", "s")]


def test_loan_survives_the_back_edge_through_accumulator():
	body = loop_body()
	active = _engine(body).run()
	assert active.names_at(pt("bb1", 0)) == ["L0"]
	assert active.names_at(pt("bb0", 0)) == []
	assert conflict_sites(find_conflicts(body, active)) == [("bb1[0]", "L0", "v")]


def test_relevant_loans_come_from_live_regions():
	body = two_branch_reassign_body()
	engine = _engine(body)
	assert names(engine.relevant_at(pt("bb1", 0))) == ["L1"]
	assert names(engine.relevant_at(pt("bb0", 2))) == ["L0", "L1"]
	assert names(engine.relevant_at(pt("bb0", 0))) == []


@pytest.mark.parametrize("make", [straight_line_body, two_branch_reassign_body, loop_body, branching_body])
def test_sets_only_grow_and_converge_within_bound(make):
	body = make()
	trace = []
	result = _engine(body).run(trace=trace)
	for before, after in zip(trace, trace[1:]):
		for point in body.points:
			assert before[point] <= after[point]
	assert result.sweeps <= len(body.points)
	assert trace[-1] == result.active


@pytest.mark.parametrize("make", [straight_line_body, two_branch_reassign_body, loop_body])
def test_rerun_from_own_output_is_unchanged(make):
	body = make()
	engine = _engine(body)
	first = engine.run()
	again = engine.run(seed=first)
	assert again.sweeps == 0
	assert again.active == first.active
	assert again.out == first.out


def test_extra_successor_never_shrinks_active_sets():
	base = branching_body()
	more = branching_body(extra_edge=True)
	base_active = _engine(base).run()
	more_active = _engine(more).run()
	for point in base.points:
		assert set(base_active.names_at(point)) <= set(more_active.names_at(point))
	assert base_active.names_at(pt("bb0", 2)) == ["L0"]
	assert more_active.names_at(pt("bb0", 2)) == ["L0", "L1"]


def test_extra_graph_edge_never_shrinks_active_sets():
	body = two_branch_reassign_body()
	liveness = LivenessAnalyzer().analyze(body)
	plain = ActiveLoanEngine(body, liveness, build_subset_graph(body)).run()
	graph = build_subset_graph(body)
	graph.add_edge(Node.of_region(body.region("'p")), Node.of_region(body.region("'q")))
	wider = ActiveLoanEngine(body, liveness, graph).run()
	for point in body.points:
		assert plain.at(point) <= wider.at(point)
	assert wider.names_at(pt("bb1", 1)) == ["L0", "L1"]


def test_expired_deadline_aborts():
	with pytest.raises(AnalysisAborted):
		_engine(straight_line_body(), deadline=time.monotonic() - 1.0).run()


def test_liveness_of_another_body_is_rejected():
	body = straight_line_body()
	other = LivenessAnalyzer().analyze(two_branch_reassign_body())
	with pytest.raises(AssertionError, match="belongs to"):
		ActiveLoanEngine(body, other, build_subset_graph(body))


def test_unknown_point_is_an_internal_error():
	active = _engine(straight_line_body()).run()
	with pytest.raises(AssertionError, match="no active-loan set"):
		active.at(pt("bb5", 0))
