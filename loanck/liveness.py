# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Liveness analysis: which locals (and so which regions) may still be used.

Backward dataflow over points:

  LiveOnExit(p)  = ∪ LiveOnEntry(s) for s in successors(p)
  LiveOnEntry(p) = (LiveOnExit(p) \\ {write(p)}) ∪ reads(p)

Drop-liveness is tracked alongside with the same equations, seeded by drop
points instead of reads. A drop keeps only the regions its destructor may
touch live (the "precise drops" refinement); a use keeps every region of the
local's type live. Universal regions are live everywhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from loanck.cfg import FunctionBody, Point
from loanck.fixpoint import PointArena, SweepBudget
from loanck.types import Region

LOG = logging.getLogger(__name__)


@dataclass
class LivenessResult:
	"""Per-point liveness facts for one body (all sets are on entry unless noted)."""

	body: FunctionBody
	live_in: Dict[Point, FrozenSet[str]]
	live_out: Dict[Point, FrozenSet[str]]
	drop_live_in: Dict[Point, FrozenSet[str]]
	live_regions: Dict[Point, FrozenSet[Region]]
	sweeps: int

	def live_at(self, point: Point) -> FrozenSet[str]:
		"""Locals whose current value may be used on some path from `point`."""
		return self._lookup(self.live_in, point)

	def regions_live_at(self, point: Point) -> FrozenSet[Region]:
		return self._lookup(self.live_regions, point)

	def region_points(self, region: Region) -> FrozenSet[Point]:
		"""Points at whose entry `region` is live."""
		return frozenset(p for p, regions in self.live_regions.items() if region in regions)

	def _lookup(self, table: Dict[Point, FrozenSet], point: Point) -> FrozenSet:
		try:
			return table[point]
		except KeyError:
			raise AssertionError(f"no liveness for point {point} in '{self.body.name}' (analysis bug)") from None


class LivenessAnalyzer:
	"""
	Run the backward liveness fixpoint for a FunctionBody.

	Entry point:
	  analyze(body) -> LivenessResult

	`seed` restarts the fixpoint from a previous result (used to check that a
	converged result is stable); `trace` collects a snapshot of the use-live
	sets after every sweep.
	"""

	def __init__(self, *, precise_drops: bool = True, max_sweeps: Optional[int] = None, deadline: Optional[float] = None) -> None:
		self.precise_drops = precise_drops
		self.max_sweeps = max_sweeps
		self.deadline = deadline

	def analyze(
		self,
		body: FunctionBody,
		*,
		seed: Optional[LivenessResult] = None,
		trace: Optional[List[Dict[Point, FrozenSet[str]]]] = None,
	) -> LivenessResult:
		points = body.points
		live_in: PointArena[str] = PointArena(points)
		drop_in: PointArena[str] = PointArena(points)
		if seed is not None:
			for point in points:
				live_in[point] = seed.live_in[point]
				drop_in[point] = seed.drop_live_in[point]

		# Post-order visits successors before predecessors on acyclic paths.
		order = tuple(reversed(body.reverse_postorder()))
		budget = SweepBudget(f"liveness of '{body.name}'", self.max_sweeps if self.max_sweeps is not None else len(points), deadline=self.deadline)
		while True:
			changed = False
			for point in order:
				stmt = body.at(point)
				killed = {stmt.write} if stmt.write is not None else set()
				out = _union(live_in[s] for s in body.successors(point))
				drop_out = _union(drop_in[s] for s in body.successors(point))
				new_in = frozenset((out - killed) | stmt.reads)
				new_drop_in = frozenset((drop_out - killed) | stmt.drops)
				if new_in != live_in[point]:
					live_in[point] = new_in
					changed = True
				if new_drop_in != drop_in[point]:
					drop_in[point] = new_drop_in
					changed = True
			if trace is not None:
				trace.append(live_in.snapshot())
			budget.tick(changed)
			if not changed:
				break
		LOG.debug("liveness of '%s' converged after %d changing sweeps", body.name, budget.sweeps)

		live_out: Dict[Point, FrozenSet[str]] = {}
		live_regions: Dict[Point, FrozenSet[Region]] = {}
		universal = frozenset(body.universal_regions)
		for point in points:
			live_out[point] = _union(live_in[s] for s in body.successors(point))
			regions = set(universal)
			for name in live_in[point]:
				regions.update(body.variables[name].regions)
			for name in drop_in[point]:
				regions.update(body.variables[name].drop_regions(self.precise_drops))
			live_regions[point] = frozenset(regions)

		return LivenessResult(
			body=body,
			live_in=live_in.snapshot(),
			live_out=live_out,
			drop_live_in=drop_in.snapshot(),
			live_regions=live_regions,
			sweeps=budget.sweeps,
		)


def _union(sets) -> FrozenSet[str]:
	out: set = set()
	for s in sets:
		out |= s
	return frozenset(out)


__all__ = ["LivenessResult", "LivenessAnalyzer"]
