# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Analysis pipeline for one function body, and a batch runner for many.

Pipeline placement:
  FunctionBody -> liveness -> subset graph -> active loans -> conflicts

Each run owns all of its state, so bodies can be analysed on separate threads
with nothing shared. A run that hits its deadline reports status UNKNOWN and
no conflict list at all; an aborted monotone fixpoint under-approximates, and
reading it as "no conflicts" would hide real errors.
"""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Sequence

from loanck.active_loans import ActiveLoanEngine, ActiveLoans
from loanck.cfg import FunctionBody
from loanck.conflicts import Conflict, find_conflicts
from loanck.fixpoint import AnalysisAborted
from loanck.liveness import LivenessAnalyzer, LivenessResult
from loanck.subset_graph import RegionValue, SubsetGraph, build_subset_graph, resolve_region_values
from loanck.types import Region

LOG = logging.getLogger(__name__)


class AnalysisStatus(Enum):
	COMPLETE = auto()
	UNKNOWN = auto()


@dataclass(frozen=True)
class AnalysisOptions:
	"""
	Run configuration.

	precise_drops: drops keep only destructor-visible regions live
	deadline:      wall-clock seconds allowed per body (None = unbounded)
	max_sweeps:    override of the per-point convergence bound
	"""

	precise_drops: bool = True
	deadline: Optional[float] = None
	max_sweeps: Optional[int] = None


@dataclass
class AnalysisResult:
	"""Everything one run produces; `conflicts` is None unless COMPLETE."""

	body: FunctionBody
	status: AnalysisStatus
	liveness: Optional[LivenessResult] = None
	graph: Optional[SubsetGraph] = None
	region_values: Dict[Region, RegionValue] = field(default_factory=dict)
	active: Optional[ActiveLoans] = None
	conflicts: Optional[List[Conflict]] = None
	reason: str = ""

	@property
	def complete(self) -> bool:
		return self.status is AnalysisStatus.COMPLETE

	def to_json(self) -> Dict[str, Any]:
		"""Deterministic JSON-friendly rendering of every output."""
		payload: Dict[str, Any] = {
			"function": self.body.name,
			"status": self.status.name.lower(),
		}
		if not self.complete:
			payload["reason"] = self.reason
			return payload
		assert self.liveness is not None and self.active is not None and self.graph is not None
		points = self.body.points
		payload["liveness"] = {str(p): sorted(self.liveness.live_at(p)) for p in points}
		payload["live_regions"] = {str(p): sorted(r.name for r in self.liveness.regions_live_at(p)) for p in points}
		payload["active_loans"] = {str(p): self.active.names_at(p) for p in points}
		payload["subset_edges"] = [[str(src), str(dst)] for src, dst in self.graph.edges]
		payload["regions"] = {
			region.name: {
				"loans": sorted(loan.name for loan in value.loans),
				"points": [str(p) for p in points if p in value.points],
			}
			for region, value in sorted(self.region_values.items(), key=lambda kv: kv[0].name)
		}
		payload["conflicts"] = [c.to_json() for c in self.conflicts or []]
		return payload

	def to_json_bytes(self) -> bytes:
		"""Canonical encoding: stable key order, no insignificant whitespace."""
		return json.dumps(self.to_json(), sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def analyze_body(body: FunctionBody, options: AnalysisOptions | None = None) -> AnalysisResult:
	"""
	Run liveness, subset graph construction, active-loan dataflow and conflict
	detection over one body.

	Internal invariant violations propagate as AssertionError.
	"""
	options = options or AnalysisOptions()
	deadline = time.monotonic() + options.deadline if options.deadline is not None else None
	try:
		liveness = LivenessAnalyzer(
			precise_drops=options.precise_drops,
			max_sweeps=options.max_sweeps,
			deadline=deadline,
		).analyze(body)
		graph = build_subset_graph(body)
		active = ActiveLoanEngine(body, liveness, graph, max_sweeps=options.max_sweeps, deadline=deadline).run()
		conflicts = find_conflicts(body, active)
	except AnalysisAborted as err:
		LOG.warning("analysis of '%s' aborted: %s", body.name, err)
		return AnalysisResult(body=body, status=AnalysisStatus.UNKNOWN, reason=str(err))
	region_values = resolve_region_values(body, graph, liveness)
	LOG.debug("'%s': %d loans, %d conflicts", body.name, len(body.loans), len(conflicts))
	return AnalysisResult(
		body=body,
		status=AnalysisStatus.COMPLETE,
		liveness=liveness,
		graph=graph,
		region_values=region_values,
		active=active,
		conflicts=conflicts,
	)


def analyze_bodies(
	bodies: Sequence[FunctionBody],
	options: AnalysisOptions | None = None,
	*,
	jobs: int = 1,
) -> List[AnalysisResult]:
	"""
	Analyse independent bodies, optionally on `jobs` worker threads.

	Results come back in input order regardless of scheduling.
	"""
	if jobs <= 1 or len(bodies) <= 1:
		return [analyze_body(body, options) for body in bodies]
	with ThreadPoolExecutor(max_workers=jobs, thread_name_prefix="loanck") as pool:
		return list(pool.map(lambda body: analyze_body(body, options), bodies))


__all__ = [
	"AnalysisStatus",
	"AnalysisOptions",
	"AnalysisResult",
	"analyze_body",
	"analyze_bodies",
]
