# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""Backward liveness, drop-liveness and region liveness."""

import time

import pytest

from loanck.builder import BodyBuilder, Operand
from loanck.fixpoint import AnalysisAborted
from loanck.liveness import LivenessAnalyzer
from loanck.test_support import (
	I32,
	branching_body,
	drop_body,
	loop_body,
	pt,
	ref,
	straight_line_body,
	two_branch_reassign_body,
)
from loanck.types import AdtTy


def test_straight_line_liveness():
	body = straight_line_body()
	live = LivenessAnalyzer().analyze(body)
	assert live.live_at(pt("bb0", 0)) == frozenset()
	assert live.live_at(pt("bb0", 1)) == frozenset()
	assert live.live_at(pt("bb0", 2)) == frozenset({"p"})
	assert live.live_at(pt("bb0", 3)) == frozenset({"p"})
	assert live.live_at(pt("bb0", 4)) == frozenset()
	rp = body.region("'p")
	assert live.region_points(rp) == frozenset({pt("bb0", 2), pt("bb0", 3)})
	assert live.live_out[pt("bb0", 1)] == frozenset({"p"})


def test_reassignment_ends_liveness_of_old_value():
	body = two_branch_reassign_body()
	live = LivenessAnalyzer().analyze(body)
	assert live.live_at(pt("bb0", 2)) == frozenset({"p", "q"})
	assert live.live_at(pt("bb1", 0)) == frozenset({"q"})
	assert live.live_at(pt("bb1", 1)) == frozenset({"p"})
	assert live.live_at(pt("bb2", 0)) == frozenset({"p"})
	assert live.regions_live_at(pt("bb1", 0)) == frozenset({body.region("'q")})


def test_loop_keeps_accumulator_live_around_back_edge():
	body = loop_body()
	live = LivenessAnalyzer().analyze(body)
	assert live.live_at(pt("bb1", 0)) == frozenset({"w"})
	assert live.live_at(pt("bb1", 3)) == frozenset({"w"})
	assert live.live_at(pt("bb1", 2)) == frozenset({"w", "t"})


def test_universal_regions_are_live_everywhere():
	b = BodyBuilder("f")
	ra = b.region("'a", universal=True)
	b.param("a", ref(ra))
	b.declare("x", I32)
	bb0 = b.block("bb0")
	bb0.assign("x", Operand.const())
	bb0.ret()
	body = b.build()
	live = LivenessAnalyzer().analyze(body)
	for point in body.points:
		assert ra in live.regions_live_at(point)


def test_precise_drop_keeps_only_destructor_regions_live():
	narrow = drop_body(narrow=True)
	rr = narrow.region("'r")
	at_write = pt("bb0", 2)

	live = LivenessAnalyzer().analyze(narrow)
	assert live.live_at(at_write) == frozenset()
	assert live.drop_live_in[at_write] == frozenset({"v"})
	assert rr not in live.regions_live_at(at_write)

	assert rr in LivenessAnalyzer(precise_drops=False).analyze(narrow).regions_live_at(at_write)
	wide = drop_body(narrow=False)
	assert wide.region("'r") in LivenessAnalyzer().analyze(wide).regions_live_at(at_write)


def test_dropping_a_reference_keeps_nothing_live():
	b = BodyBuilder("f")
	rp = b.region("'p")
	b.declare("p", ref(rp))
	b.declare("v", AdtTy("Box", (ref(rp),)))
	bb0 = b.block("bb0")
	bb0.drop("p")
	bb0.ret()
	body = b.build()
	live = LivenessAnalyzer().analyze(body)
	assert live.regions_live_at(pt("bb0", 0)) == frozenset()
	assert live.drop_live_in[pt("bb0", 0)] == frozenset({"p"})


def test_sets_only_grow_across_sweeps():
	body = loop_body()
	trace = []
	LivenessAnalyzer().analyze(body, trace=trace)
	assert trace
	for before, after in zip(trace, trace[1:]):
		for point in body.points:
			assert before[point] <= after[point]


@pytest.mark.parametrize("make", [straight_line_body, two_branch_reassign_body, loop_body])
def test_converged_result_is_a_fixpoint(make):
	body = make()
	analyzer = LivenessAnalyzer()
	first = analyzer.analyze(body)
	again = analyzer.analyze(body, seed=first)
	assert again.sweeps == 0
	assert again.live_in == first.live_in
	assert again.live_regions == first.live_regions
	assert first.sweeps <= len(body.points)


def test_extra_successor_never_shrinks_live_sets():
	base = LivenessAnalyzer().analyze(branching_body())
	more = LivenessAnalyzer().analyze(branching_body(extra_edge=True))
	for point in base.body.points:
		assert base.live_at(point) <= more.live_at(point)
	assert more.live_at(pt("bb0", 2)) == frozenset({"p", "q"})
	assert base.live_at(pt("bb0", 2)) == frozenset({"p"})


def test_expired_deadline_aborts():
	with pytest.raises(AnalysisAborted, match="deadline"):
		LivenessAnalyzer(deadline=time.monotonic() - 1.0).analyze(straight_line_body())


def test_sweep_limit_violation_is_an_internal_error():
	with pytest.raises(AssertionError, match="did not converge"):
		LivenessAnalyzer(max_sweeps=0).analyze(straight_line_body())


def test_unknown_point_lookup_is_an_internal_error():
	live = LivenessAnalyzer().analyze(straight_line_body())
	with pytest.raises(AssertionError, match="no liveness"):
		live.live_at(pt("bb3", 0))
