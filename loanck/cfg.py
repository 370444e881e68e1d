# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
CFG model: the input contract handed to the analysis by elaboration.

A function body is a set of basic blocks; every statement and every
terminator occupies one `Point`. Each point carries its facts directly:

  - reads / write / drops: variable names for liveness
  - accesses: places touched and how (read, exclusive write, move, storage death)
  - loan: the loan issued here (if any) and the regions it flows into
  - subsets: region obligations generated here
  - assigned: the place overwritten here (kills loans borrowed through it)

There are **no semantics** here beyond indexing: successor/predecessor
relations per point, reverse post-order and reachability. A body is
validated once at construction and is immutable afterwards; malformed input
is an elaboration bug and raises AssertionError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, FrozenSet, List, Optional, Tuple

from loanck.core.span import Span
from loanck.places import Place
from loanck.types import Region, Ty, has_drop_glue, regions_of


@dataclass(frozen=True, order=True)
class Point:
	"""Statement/terminator slot: `index` within `block` (terminator is last)."""

	block: str
	index: int

	def __str__(self) -> str:
		return f"{self.block}[{self.index}]"


class AccessKind(Enum):
	"""How a point touches a place."""

	READ = auto()
	WRITE = auto()          # assignment or mutable borrow (exclusive)
	MOVE = auto()
	STORAGE_DEAD = auto()   # the local's storage goes away


@dataclass(frozen=True)
class Access:
	"""
	One memory access at a point.

	Shallow accesses (assignment, storage death) only disturb the place itself,
	not memory reached through a dereference of it.
	"""

	place: Place
	kind: AccessKind
	shallow: bool = False


class LoanKind(Enum):
	"""Shared (`&`) or mutable (`&mut`) borrow."""

	SHARED = auto()
	MUT = auto()


@dataclass(frozen=True)
class Loan:
	"""A single borrow event: issued at `point`, borrowing `place`."""

	name: str
	point: Point
	place: Place
	kind: LoanKind

	def __str__(self) -> str:
		return self.name


@dataclass(frozen=True)
class LoanIssue:
	"""Loan issued at a point together with the regions it is assigned into."""

	loan: Loan
	regions: Tuple[Region, ...]


@dataclass(frozen=True)
class SubsetConstraint:
	"""
	`sub: sup`: every loan reaching `sub` must reach `sup`.

	`point` is where the obligation arose; signature-level bounds have none.
	"""

	sub: Region
	sup: Region
	point: Optional[Point] = None

	def __str__(self) -> str:
		at = f" @ {self.point}" if self.point is not None else ""
		return f"{self.sub}: {self.sup}{at}"


@dataclass(frozen=True)
class Variable:
	"""
	A local binding with its type.

	`drops` optionally narrows which regions a destructor may touch; `None`
	means "all regions of the type, if the type has drop glue at all".
	"""

	name: str
	ty: Ty
	drops: Optional[Tuple[Region, ...]] = None
	param: bool = False

	@property
	def regions(self) -> Tuple[Region, ...]:
		return regions_of(self.ty)

	def drop_regions(self, precise: bool = True) -> Tuple[Region, ...]:
		"""Regions that dropping this value keeps live."""
		if not precise:
			return self.regions
		if self.drops is not None:
			return self.drops
		return self.regions if has_drop_glue(self.ty) else ()


@dataclass(frozen=True)
class Statement:
	"""A straight-line statement and the facts it contributes at its point."""

	kind: str
	reads: FrozenSet[str] = frozenset()
	write: Optional[str] = None
	drops: FrozenSet[str] = frozenset()
	accesses: Tuple[Access, ...] = ()
	loan: Optional[LoanIssue] = None
	subsets: Tuple[SubsetConstraint, ...] = ()
	assigned: Optional[Place] = None
	text: str = ""
	span: Span = field(default_factory=Span)


@dataclass(frozen=True)
class Terminator(Statement):
	"""Block terminator: "goto", "branch", "return" or "unreachable"."""

	targets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BasicBlock:
	"""Basic block: statements followed by a single terminator."""

	name: str
	statements: Tuple[Statement, ...]
	terminator: Terminator

	def __len__(self) -> int:
		return len(self.statements) + 1

	def at(self, index: int) -> Statement:
		if index == len(self.statements):
			return self.terminator
		return self.statements[index]


@dataclass
class FunctionBody:
	"""
	One function's CFG with typed locals and region placeholders.

	Blocks are keyed by name in layout order; `entry` names the entry block.
	`bounds` holds signature-level region obligations (no point).
	"""

	name: str
	variables: Dict[str, Variable]
	regions: Dict[str, Region]
	blocks: Dict[str, BasicBlock]
	entry: str
	bounds: Tuple[SubsetConstraint, ...] = ()
	span: Span = field(default_factory=Span)
	_points: Tuple[Point, ...] = field(init=False, repr=False, compare=False)
	_succs: Dict[Point, Tuple[Point, ...]] = field(init=False, repr=False, compare=False)
	_preds: Dict[Point, Tuple[Point, ...]] = field(init=False, repr=False, compare=False)
	_loans: Dict[str, Loan] = field(init=False, repr=False, compare=False)

	def __post_init__(self) -> None:
		validate_body(self)
		points: List[Point] = []
		for blk in self.blocks.values():
			points.extend(Point(blk.name, idx) for idx in range(len(blk)))
		self._points = tuple(points)

		succs: Dict[Point, List[Point]] = {p: [] for p in points}
		preds: Dict[Point, List[Point]] = {p: [] for p in points}
		for blk in self.blocks.values():
			n = len(blk.statements)
			for idx in range(n):
				succs[Point(blk.name, idx)].append(Point(blk.name, idx + 1))
			term = Point(blk.name, n)
			for target in blk.terminator.targets:
				dst = Point(target, 0)
				if dst not in succs[term]:
					succs[term].append(dst)
		for src, dsts in succs.items():
			for dst in dsts:
				preds[dst].append(src)
		self._succs = {p: tuple(v) for p, v in succs.items()}
		self._preds = {p: tuple(v) for p, v in preds.items()}

		loans: Dict[str, Loan] = {}
		for p in points:
			issue = self.at(p).loan
			if issue is not None:
				loans[issue.loan.name] = issue.loan
		self._loans = loans

	@property
	def points(self) -> Tuple[Point, ...]:
		"""All points in block layout order."""
		return self._points

	@property
	def entry_point(self) -> Point:
		return Point(self.entry, 0)

	@property
	def loans(self) -> Tuple[Loan, ...]:
		"""Loans in issue-point layout order."""
		return tuple(self._loans.values())

	@property
	def universal_regions(self) -> Tuple[Region, ...]:
		return tuple(r for r in self.regions.values() if r.universal)

	def at(self, point: Point) -> Statement:
		"""Statement or terminator occupying `point`."""
		blk = self.blocks.get(point.block)
		if blk is None or not 0 <= point.index < len(blk):
			raise AssertionError(f"reference to nonexistent point {point} in '{self.name}' (analysis bug)")
		return blk.at(point.index)

	def successors(self, point: Point) -> Tuple[Point, ...]:
		try:
			return self._succs[point]
		except KeyError:
			raise AssertionError(f"reference to nonexistent point {point} in '{self.name}' (analysis bug)") from None

	def predecessors(self, point: Point) -> Tuple[Point, ...]:
		try:
			return self._preds[point]
		except KeyError:
			raise AssertionError(f"reference to nonexistent point {point} in '{self.name}' (analysis bug)") from None

	def loan(self, name: str) -> Loan:
		try:
			return self._loans[name]
		except KeyError:
			raise AssertionError(f"reference to nonexistent loan '{name}' in '{self.name}' (analysis bug)") from None

	def region(self, name: str) -> Region:
		try:
			return self.regions[name]
		except KeyError:
			raise AssertionError(f"reference to nonexistent region '{name}' in '{self.name}' (analysis bug)") from None

	def subset_constraints(self) -> Tuple[SubsetConstraint, ...]:
		"""Signature bounds followed by per-point obligations in layout order."""
		out: List[SubsetConstraint] = list(self.bounds)
		for p in self._points:
			out.extend(self.at(p).subsets)
		return tuple(out)

	def reverse_postorder(self) -> Tuple[Point, ...]:
		"""
		Points in reverse post-order from the entry.

		Unreachable points follow in layout order so every point still gets a
		dataflow slot.
		"""
		seen = {self.entry_point}
		order: List[Point] = []
		stack: List[Tuple[Point, int]] = [(self.entry_point, 0)]
		while stack:
			point, child = stack[-1]
			succs = self._succs[point]
			if child < len(succs):
				stack[-1] = (point, child + 1)
				nxt = succs[child]
				if nxt not in seen:
					seen.add(nxt)
					stack.append((nxt, 0))
				continue
			stack.pop()
			order.append(point)
		order.reverse()
		order.extend(p for p in self._points if p not in seen)
		return tuple(order)

	def reachable_points(self) -> FrozenSet[Point]:
		seen = {self.entry_point}
		work = [self.entry_point]
		while work:
			point = work.pop()
			for nxt in self._succs[point]:
				if nxt not in seen:
					seen.add(nxt)
					work.append(nxt)
		return frozenset(seen)


def validate_body(body: FunctionBody) -> None:
	"""
	Check the structural invariants elaboration promises.

	Raises AssertionError on the first violation; these are never user errors.
	"""
	where = f"in '{body.name}'"
	if body.entry not in body.blocks:
		raise AssertionError(f"entry block '{body.entry}' missing {where} (elaboration bug)")
	for name, region in body.regions.items():
		if region.name != name:
			raise AssertionError(f"region table key '{name}' != '{region.name}' {where} (elaboration bug)")
	for var in body.variables.values():
		for region in var.regions + (var.drops or ()):
			if body.regions.get(region.name) != region:
				raise AssertionError(f"variable '{var.name}' mentions undeclared region {region} {where} (elaboration bug)")
	for bound in body.bounds:
		_check_constraint(body, bound, where)

	loan_names: set[str] = set()
	for name, blk in body.blocks.items():
		if blk.name != name:
			raise AssertionError(f"block table key '{name}' != '{blk.name}' {where} (elaboration bug)")
		if not isinstance(blk.terminator, Terminator):
			raise AssertionError(f"block '{name}' has no terminator {where} (elaboration bug)")
		for target in blk.terminator.targets:
			if target not in body.blocks:
				raise AssertionError(f"block '{name}' jumps to unknown block '{target}' {where} (elaboration bug)")
		for idx in range(len(blk)):
			point = Point(name, idx)
			stmt = blk.at(idx)
			if isinstance(stmt, Terminator) != (idx == len(blk.statements)):
				raise AssertionError(f"terminator out of place at {point} {where} (elaboration bug)")
			names = set(stmt.reads) | set(stmt.drops)
			if stmt.write is not None:
				names.add(stmt.write)
			names.update(acc.place.base for acc in stmt.accesses)
			if stmt.assigned is not None:
				names.add(stmt.assigned.base)
			for var in names:
				if var not in body.variables:
					raise AssertionError(f"unknown variable '{var}' at {point} {where} (elaboration bug)")
			for sc in stmt.subsets:
				if sc.point != point:
					raise AssertionError(f"obligation {sc} recorded at {point} {where} (elaboration bug)")
				_check_constraint(body, sc, where)
			if stmt.loan is not None:
				loan = stmt.loan.loan
				if loan.point != point:
					raise AssertionError(f"loan {loan.name} claims point {loan.point} but sits at {point} {where} (elaboration bug)")
				if loan.name in loan_names:
					raise AssertionError(f"loan {loan.name} issued twice {where} (elaboration bug)")
				if loan.place.base not in body.variables:
					raise AssertionError(f"loan {loan.name} borrows unknown variable '{loan.place.base}' {where} (elaboration bug)")
				for region in stmt.loan.regions:
					if body.regions.get(region.name) != region:
						raise AssertionError(f"loan {loan.name} flows into undeclared region {region} {where} (elaboration bug)")
				loan_names.add(loan.name)


def _check_constraint(body: FunctionBody, sc: SubsetConstraint, where: str) -> None:
	for region in (sc.sub, sc.sup):
		if body.regions.get(region.name) != region:
			raise AssertionError(f"obligation {sc} mentions undeclared region {region} {where} (elaboration bug)")


__all__ = [
	"Point",
	"AccessKind",
	"Access",
	"LoanKind",
	"Loan",
	"LoanIssue",
	"SubsetConstraint",
	"Variable",
	"Statement",
	"Terminator",
	"BasicBlock",
	"FunctionBody",
	"validate_body",
]
