# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Subset/outlives graph: where loans may flow, for the whole body at once.

Nodes are regions and loans. Edges mean "may flow into":

  Loan(L)    -> Region(R)   L is assigned into a place whose type mentions R
  Region(R1) -> Region(R2)  obligation `R1: R2` (every loan of R1 is in R2)

The graph is flow-insensitive: an edge generated at one point
holds at every point. Each edge remembers the points that generated it so
dumps can explain it, but reachability ignores them. Per-point precision is
recovered later by intersecting with liveness (see active_loans.py), and the
only thing that pass asks of this graph is `loans_reaching(region)`.

Reachability uses explicit worklists; region constraints may be cyclic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from loanck.cfg import FunctionBody, Loan, Point
from loanck.liveness import LivenessResult
from loanck.types import Region

LOG = logging.getLogger(__name__)


class NodeKind(Enum):
	REGION = auto()
	LOAN = auto()


@dataclass(frozen=True)
class Node:
	"""Graph node: a region or a loan, identified by kind and name."""

	kind: NodeKind
	name: str

	@classmethod
	def of_region(cls, region: Region) -> "Node":
		return cls(NodeKind.REGION, region.name)

	@classmethod
	def of_loan(cls, loan: Loan) -> "Node":
		return cls(NodeKind.LOAN, loan.name)

	def __lt__(self, other: "Node") -> bool:
		return (self.kind.value, self.name) < (other.kind.value, other.name)

	def __str__(self) -> str:
		return self.name


class SubsetGraph:
	"""Directed graph over regions and loans with deduplicated edges."""

	def __init__(self) -> None:
		self._regions: Dict[str, Region] = {}
		self._loans: Dict[str, Loan] = {}
		self._succs: Dict[Node, Set[Node]] = {}
		self._preds: Dict[Node, Set[Node]] = {}
		self._origins: Dict[Tuple[Node, Node], Set[Optional[Point]]] = {}
		self._loans_reaching: Dict[Region, FrozenSet[Loan]] = {}

	def add_region(self, region: Region) -> Node:
		known = self._regions.setdefault(region.name, region)
		if known != region:
			raise AssertionError(f"region {region.name} registered with conflicting universality (analysis bug)")
		node = Node.of_region(region)
		self._succs.setdefault(node, set())
		self._preds.setdefault(node, set())
		return node

	def add_loan(self, loan: Loan) -> Node:
		known = self._loans.setdefault(loan.name, loan)
		if known != loan:
			raise AssertionError(f"loan {loan.name} registered twice with different facts (analysis bug)")
		node = Node.of_loan(loan)
		self._succs.setdefault(node, set())
		self._preds.setdefault(node, set())
		return node

	def add_edge(self, src: Node, dst: Node, point: Optional[Point] = None) -> bool:
		"""
		Add `src -> dst`; parallel obligations collapse into one edge.

		Returns True when the edge is new.
		"""
		self._require(src)
		self._require(dst)
		if dst.kind is NodeKind.LOAN:
			raise AssertionError(f"edge {src} -> {dst} targets a loan (analysis bug)")
		self._origins.setdefault((src, dst), set()).add(point)
		if dst in self._succs[src]:
			return False
		self._succs[src].add(dst)
		self._preds[dst].add(src)
		self._loans_reaching.clear()
		return True

	@property
	def nodes(self) -> Tuple[Node, ...]:
		return tuple(sorted(self._succs))

	@property
	def edges(self) -> Tuple[Tuple[Node, Node], ...]:
		return tuple(sorted((src, dst) for src, dsts in self._succs.items() for dst in dsts))

	def origins(self, src: Node, dst: Node) -> FrozenSet[Optional[Point]]:
		"""Points that generated the edge (`None` for signature bounds)."""
		return frozenset(self._origins.get((src, dst), ()))

	def region(self, name: str) -> Region:
		try:
			return self._regions[name]
		except KeyError:
			raise AssertionError(f"reference to nonexistent region '{name}' in subset graph (analysis bug)") from None

	def loan(self, name: str) -> Loan:
		try:
			return self._loans[name]
		except KeyError:
			raise AssertionError(f"reference to nonexistent loan '{name}' in subset graph (analysis bug)") from None

	def reachable_from(self, node: Node) -> FrozenSet[Node]:
		"""Nodes reachable from `node` (including itself)."""
		return self._walk(node, self._succs)

	def reaching(self, node: Node) -> FrozenSet[Node]:
		"""Nodes that can reach `node` (including itself)."""
		return self._walk(node, self._preds)

	def can_reach(self, loan: Loan, region: Region) -> bool:
		return loan in self.loans_reaching(region)

	def loans_reaching(self, region: Region) -> FrozenSet[Loan]:
		"""Loans with a path to `region`; the single query the dataflow engine makes."""
		cached = self._loans_reaching.get(region)
		if cached is not None:
			return cached
		node = Node.of_region(region)
		if self._regions.get(region.name) != region:
			raise AssertionError(f"reference to nonexistent region {region} in subset graph (analysis bug)")
		loans = frozenset(self._loans[n.name] for n in self.reaching(node) if n.kind is NodeKind.LOAN)
		self._loans_reaching[region] = loans
		return loans

	def _require(self, node: Node) -> None:
		if node not in self._succs:
			raise AssertionError(f"reference to nonexistent node {node} in subset graph (analysis bug)")

	def _walk(self, start: Node, adjacency: Dict[Node, Set[Node]]) -> FrozenSet[Node]:
		self._require(start)
		seen: Set[Node] = {start}
		work: List[Node] = [start]
		while work:
			cur = work.pop()
			for nxt in adjacency[cur]:
				if nxt not in seen:
					seen.add(nxt)
					work.append(nxt)
		return frozenset(seen)


def build_subset_graph(body: FunctionBody) -> SubsetGraph:
	"""Single pass over the body's loan issues and region obligations."""
	graph = SubsetGraph()
	for region in body.regions.values():
		graph.add_region(region)
	for sc in body.bounds:
		graph.add_edge(Node.of_region(sc.sub), Node.of_region(sc.sup), None)
	for point in body.points:
		stmt = body.at(point)
		if stmt.loan is not None:
			loan_node = graph.add_loan(stmt.loan.loan)
			for region in stmt.loan.regions:
				graph.add_edge(loan_node, Node.of_region(region), point)
		for sc in stmt.subsets:
			if sc.sub == sc.sup:
				continue
			graph.add_edge(Node.of_region(sc.sub), Node.of_region(sc.sup), point)
	LOG.debug("subset graph of '%s': %d nodes, %d edges", body.name, len(graph.nodes), len(graph.edges))
	return graph


@dataclass(frozen=True)
class RegionValue:
	"""
	Final value of a region in both views.

	loans:  loans that may flow into the region (loan-set view)
	points: points the region must cover (point-set view): where it is live,
	        plus wherever a region it flows into is live
	"""

	region: Region
	loans: FrozenSet[Loan]
	points: FrozenSet[Point]


def resolve_region_values(body: FunctionBody, graph: SubsetGraph, liveness: LivenessResult) -> Dict[Region, RegionValue]:
	all_points = frozenset(body.points)
	live_points: Dict[Region, FrozenSet[Point]] = {}
	for region in body.regions.values():
		live_points[region] = all_points if region.universal else liveness.region_points(region)

	values: Dict[Region, RegionValue] = {}
	for region in body.regions.values():
		points: Set[Point] = set()
		for node in graph.reachable_from(Node.of_region(region)):
			points |= live_points[graph.region(node.name)]
		values[region] = RegionValue(region=region, loans=graph.loans_reaching(region), points=frozenset(points))
	return values


__all__ = [
	"NodeKind",
	"Node",
	"SubsetGraph",
	"build_subset_graph",
	"RegionValue",
	"resolve_region_values",
]
