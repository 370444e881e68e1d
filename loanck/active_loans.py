# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Active-loan dataflow: which loans may still alias their borrowed place.

Forward gen/kill over points, union at joins:

  In(p)     = ∪ Out(q) for q in predecessors(p)
  Active(p) = In(p) \\ KillDead(p)
  Out(p)    = (Active(p) \\ KillAssign(p)) ∪ Gen(p)

KillDead(p) holds the loans that no region live on entry to `p` can reach in
the subset graph: no live local's type can alias them any more. This is what
makes a flow-insensitive graph precise per point. KillAssign(p) holds the
loans whose borrowed place runs through the place overwritten at `p`. A loan
is never killed at the point that issues it.

Both kill sets depend only on liveness and the graph, which are fixed before
this pass runs, so the transfer functions are monotone and the fixpoint is
reached within one changing sweep per point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from loanck.cfg import FunctionBody, Loan, Point
from loanck.fixpoint import PointArena, SweepBudget
from loanck.liveness import LivenessResult
from loanck.places import is_prefix_of
from loanck.subset_graph import SubsetGraph

LOG = logging.getLogger(__name__)


@dataclass
class ActiveLoans:
	"""Per-point active-loan sets for one body."""

	body: FunctionBody
	active: Dict[Point, FrozenSet[Loan]]
	out: Dict[Point, FrozenSet[Loan]]
	sweeps: int

	def at(self, point: Point) -> FrozenSet[Loan]:
		"""Loans in force while `point` executes (before its own loan is issued)."""
		try:
			return self.active[point]
		except KeyError:
			raise AssertionError(f"no active-loan set for point {point} in '{self.body.name}' (analysis bug)") from None

	def names_at(self, point: Point) -> List[str]:
		return sorted(loan.name for loan in self.at(point))


class ActiveLoanEngine:
	"""
	Forward gen/kill fixpoint over a body, given its liveness and subset graph.

	Entry point:
	  run() -> ActiveLoans

	The engine touches the subset graph only through `loans_reaching(region)`,
	evaluated once per point up front.
	"""

	def __init__(
		self,
		body: FunctionBody,
		liveness: LivenessResult,
		graph: SubsetGraph,
		*,
		max_sweeps: Optional[int] = None,
		deadline: Optional[float] = None,
	) -> None:
		if liveness.body is not body:
			raise AssertionError(f"liveness result belongs to '{liveness.body.name}', not '{body.name}' (analysis bug)")
		self.body = body
		self.liveness = liveness
		self.graph = graph
		self.max_sweeps = max_sweeps
		self.deadline = deadline
		self._relevant: Dict[Point, FrozenSet[Loan]] = {}
		self._gen: Dict[Point, FrozenSet[Loan]] = {}
		self._kill_assign: Dict[Point, FrozenSet[Loan]] = {}
		self._prepare()

	def _prepare(self) -> None:
		loans = self.body.loans
		for loan in loans:
			self.graph.loan(loan.name)
		for point in self.body.points:
			stmt = self.body.at(point)
			relevant: set = set()
			for region in self.liveness.regions_live_at(point):
				relevant |= self.graph.loans_reaching(region)
			self._relevant[point] = frozenset(relevant)
			gen = frozenset({stmt.loan.loan}) if stmt.loan is not None else frozenset()
			self._gen[point] = gen
			if stmt.assigned is not None:
				self._kill_assign[point] = frozenset(
					loan for loan in loans if loan not in gen and is_prefix_of(stmt.assigned, loan.place)
				)
			else:
				self._kill_assign[point] = frozenset()

	def relevant_at(self, point: Point) -> FrozenSet[Loan]:
		"""Loans reachable from some region live on entry to `point`."""
		return self._relevant[point]

	def run(
		self,
		*,
		seed: Optional[ActiveLoans] = None,
		trace: Optional[List[Dict[Point, FrozenSet[Loan]]]] = None,
	) -> ActiveLoans:
		body = self.body
		points = body.points
		out: PointArena[Loan] = PointArena(points)
		active: PointArena[Loan] = PointArena(points)
		if seed is not None:
			for point in points:
				out[point] = seed.out[point]
				active[point] = seed.active[point]

		order = body.reverse_postorder()
		budget = SweepBudget(f"active loans of '{body.name}'", self.max_sweeps if self.max_sweeps is not None else len(points), deadline=self.deadline)
		while True:
			changed = False
			for point in order:
				incoming: set = set()
				for pred in body.predecessors(point):
					incoming |= out[pred]
				new_active = frozenset(incoming) & self._relevant[point]
				new_out = (new_active - self._kill_assign[point]) | self._gen[point]
				if new_active != active[point]:
					active[point] = new_active
					changed = True
				if new_out != out[point]:
					out[point] = new_out
					changed = True
			if trace is not None:
				trace.append(active.snapshot())
			budget.tick(changed)
			if not changed:
				break
		LOG.debug("active loans of '%s' converged after %d changing sweeps", body.name, budget.sweeps)
		return ActiveLoans(body=body, active=active.snapshot(), out=out.snapshot(), sweeps=budget.sweeps)


__all__ = ["ActiveLoans", "ActiveLoanEngine"]
