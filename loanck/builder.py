# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Helper to construct a FunctionBody incrementally.

This is the elaboration-side half of the CFG contract: callers describe
statements by shape (borrow, assignment, call, drop, ...) and the builder
derives the per-point facts the analysis consumes:

  - reads/write/drops for liveness
  - accesses for conflict detection
  - loan issues and region obligations for the subset graph

Entry point:
  - create a BodyBuilder, declare regions and locals
  - add blocks via `block(name)` and append statements/terminators
  - call `build()` to get a validated, immutable FunctionBody

Problems a user could cause (unknown names, ill-typed borrows, unterminated
blocks) raise BuildError; the text parser turns those into diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from loanck.core.span import Span
from loanck.cfg import (
	Access,
	AccessKind,
	BasicBlock,
	FunctionBody,
	Loan,
	LoanIssue,
	LoanKind,
	Point,
	Statement,
	SubsetConstraint,
	Terminator,
	Variable,
)
from loanck.places import DerefProj, IndexKind, IndexProj, Place
from loanck.types import RefTy, Region, Ty, TypeShapeError, has_drop_glue, regions_of, relate_types


class BuildError(ValueError):
	"""
	User-facing error while assembling a body (bad name, ill-typed borrow).

	`loc` is whatever location the caller passed along (a Span or parser meta).
	"""

	def __init__(self, message: str, *, loc: object | None = None) -> None:
		super().__init__(message)
		self.loc = loc


@dataclass(frozen=True)
class Operand:
	"""Value operand: copy/move of a place, or a constant (place is None)."""

	place: Optional[Place] = None
	move: bool = False

	@classmethod
	def copy_of(cls, place: Union[Place, str]) -> "Operand":
		return cls(_as_place(place), move=False)

	@classmethod
	def move_of(cls, place: Union[Place, str]) -> "Operand":
		return cls(_as_place(place), move=True)

	@classmethod
	def const(cls) -> "Operand":
		return cls()

	def __str__(self) -> str:
		if self.place is None:
			return "const"
		return f"{'move' if self.move else 'copy'} {self.place}"


PlaceLike = Union[Place, str]


def _as_place(place: PlaceLike) -> Place:
	return Place(place) if isinstance(place, str) else place


class BodyBuilder:
	"""Builder for one function body."""

	def __init__(self, name: str, *, span: Span | None = None) -> None:
		self.name = name
		self.span = span or Span()
		self._regions: Dict[str, Region] = {}
		self._vars: Dict[str, Variable] = {}
		self._blocks: Dict[str, "BlockBuilder"] = {}
		self._bounds: List[SubsetConstraint] = []
		self._loan_counter = 0
		self.entry: Optional[str] = None

	def region(self, name: str, *, universal: bool = False, loc: object | None = None) -> Region:
		"""Declare (or look up) a region by name."""
		existing = self._regions.get(name)
		if existing is not None:
			if existing.universal != universal:
				raise BuildError(f"region {name} declared both universal and local", loc=loc)
			return existing
		region = Region(name, universal=universal)
		self._regions[name] = region
		return region

	def find_region(self, name: str) -> Optional[Region]:
		return self._regions.get(name)

	def lookup_region(self, name: str, *, loc: object | None = None) -> Region:
		region = self._regions.get(name)
		if region is None:
			raise BuildError(f"unknown region {name}", loc=loc)
		return region

	def declare(
		self,
		name: str,
		ty: Ty,
		*,
		drops: Optional[Sequence[Region]] = None,
		param: bool = False,
		loc: object | None = None,
	) -> Variable:
		"""Declare a local (or parameter) of type `ty`."""
		if name in self._vars:
			raise BuildError(f"variable '{name}' declared twice", loc=loc)
		for region in regions_of(ty):
			self._adopt_region(region, loc)
		if drops is not None:
			mentioned = set(regions_of(ty))
			for region in drops:
				if region not in mentioned:
					raise BuildError(f"drops({region}) names a region not in the type of '{name}'", loc=loc)
		var = Variable(name=name, ty=ty, drops=tuple(drops) if drops is not None else None, param=param)
		self._vars[name] = var
		return var

	def param(self, name: str, ty: Ty, *, loc: object | None = None) -> Variable:
		return self.declare(name, ty, param=True, loc=loc)

	def bound(self, sub: Region, sup: Region, *, loc: object | None = None) -> None:
		"""Signature-level obligation `sub: sup` (holds everywhere)."""
		self._adopt_region(sub, loc)
		self._adopt_region(sup, loc)
		sc = SubsetConstraint(sub, sup, None)
		if sc not in self._bounds:
			self._bounds.append(sc)

	def var(self, name: str, *, loc: object | None = None) -> Variable:
		var = self._vars.get(name)
		if var is None:
			raise BuildError(f"unknown variable '{name}'", loc=loc)
		return var

	def block(self, name: str, *, loc: object | None = None) -> "BlockBuilder":
		"""Create a new block; the first one created is the entry."""
		if name in self._blocks:
			raise BuildError(f"block '{name}' defined twice", loc=loc)
		blk = BlockBuilder(self, name)
		self._blocks[name] = blk
		if self.entry is None:
			self.entry = name
		return blk

	def next_loan_name(self) -> str:
		name = f"L{self._loan_counter}"
		self._loan_counter += 1
		return name

	def place_type(self, place: Place, *, loc: object | None = None) -> Optional[Ty]:
		"""
		Type of `place` when it can be derived from local types alone.

		Derefs of references are followed; field and index projections need
		layout information the body does not carry, so they yield None.
		"""
		ty: Optional[Ty] = self.var(place.base, loc=loc).ty
		for proj in place.projections:
			if isinstance(proj, DerefProj) and isinstance(ty, RefTy):
				ty = ty.inner
			else:
				return None
		return ty

	def build(self) -> FunctionBody:
		if self.entry is None:
			raise BuildError(f"function '{self.name}' has no blocks", loc=self.span)
		blocks: Dict[str, BasicBlock] = {}
		for name, blk in self._blocks.items():
			if blk.terminator is None:
				raise BuildError(f"block '{name}' has no terminator", loc=blk.loc)
			for target in blk.terminator.targets:
				if target not in self._blocks:
					raise BuildError(f"block '{name}' jumps to unknown block '{target}'", loc=blk.terminator.span)
			blocks[name] = BasicBlock(name=name, statements=tuple(blk.statements), terminator=blk.terminator)
		return FunctionBody(
			name=self.name,
			variables=dict(self._vars),
			regions=dict(self._regions),
			blocks=blocks,
			entry=self.entry,
			bounds=tuple(self._bounds),
			span=self.span,
		)

	def _adopt_region(self, region: Region, loc: object | None) -> None:
		known = self._regions.get(region.name)
		if known is None:
			self._regions[region.name] = region
		elif known != region:
			raise BuildError(f"region {region.name} declared both universal and local", loc=loc)


class BlockBuilder:
	"""Appends statements to one block, deriving the facts for each point."""

	def __init__(self, body: BodyBuilder, name: str) -> None:
		self.body = body
		self.name = name
		self.statements: List[Statement] = []
		self.terminator: Optional[Terminator] = None
		self.loc: object | None = None

	# Statements

	def borrow(self, dest: PlaceLike, place: PlaceLike, *, mut: bool = False, span: Span | None = None) -> Loan:
		"""`dest = &place` / `dest = &mut place`: issue a loan flowing into dest's region."""
		dest = _as_place(dest)
		place = _as_place(place)
		point = self._point()
		dest_ty = self.body.place_type(dest, loc=span)
		if not isinstance(dest_ty, RefTy):
			raise BuildError(f"borrow assigned into '{dest}', which is not a reference", loc=span)
		if mut and not dest_ty.mutable:
			raise BuildError(f"mutable borrow assigned into shared reference '{dest}'", loc=span)
		target = dest_ty.region

		loan = Loan(
			name=self.body.next_loan_name(),
			point=point,
			place=place,
			kind=LoanKind.MUT if mut else LoanKind.SHARED,
		)
		edges: List[Tuple[Region, Region]] = []
		# Reborrowing through `*r` keeps the loans behind `r` reachable.
		for deref_base in place.deref_bases():
			base_ty = self.body.place_type(deref_base, loc=span)
			if isinstance(base_ty, RefTy):
				edges.append((base_ty.region, target))
		borrowed_ty = self.body.place_type(place, loc=span)
		if borrowed_ty is not None:
			edges.extend(self._relate(borrowed_ty, dest_ty.inner, span))
			if mut:
				edges.extend(self._relate(dest_ty.inner, borrowed_ty, span))

		reads, accesses = self._lvalue_facts(place, span)
		dest_reads, dest_accesses, write = self._dest_facts(dest, span)
		sigil = "&mut " if mut else "&"
		self._push(
			Statement(
				kind="borrow",
				reads=frozenset(reads | dest_reads),
				write=write,
				accesses=tuple(accesses + [Access(place, AccessKind.WRITE if mut else AccessKind.READ)] + dest_accesses),
				loan=LoanIssue(loan, (target,)),
				subsets=self._subsets(edges, point),
				assigned=dest,
				text=f"{dest} = {sigil}{place}",
				span=span or Span(),
			)
		)
		return loan

	def assign(self, dest: PlaceLike, src: Operand, *, span: Span | None = None) -> None:
		"""`dest = copy src` / `dest = move src` / `dest = const`."""
		dest = _as_place(dest)
		point = self._point()
		reads, accesses = self._operand_facts([src], span)
		edges: List[Tuple[Region, Region]] = []
		if src.place is not None:
			src_ty = self.body.place_type(src.place, loc=span)
			dest_ty = self.body.place_type(dest, loc=span)
			if src_ty is not None and dest_ty is not None:
				edges = self._relate(src_ty, dest_ty, span)
		dest_reads, dest_accesses, write = self._dest_facts(dest, span)
		self._push(
			Statement(
				kind="assign",
				reads=frozenset(reads | dest_reads),
				write=write,
				accesses=tuple(accesses + dest_accesses),
				subsets=self._subsets(edges, point),
				assigned=dest,
				text=f"{dest} = {src}",
				span=span or Span(),
			)
		)

	def call(
		self,
		dest: PlaceLike,
		func: str,
		operands: Sequence[Operand],
		*,
		where: Iterable[Tuple[Region, Region]] = (),
		span: Span | None = None,
	) -> None:
		"""`dest = call func(ops...)`; `where` carries the instantiated signature bounds."""
		dest = _as_place(dest)
		point = self._point()
		reads, accesses = self._operand_facts(operands, span)
		dest_reads, dest_accesses, write = self._dest_facts(dest, span)
		edges = list(where)
		for sub, sup in edges:
			self.body.lookup_region(sub.name, loc=span)
			self.body.lookup_region(sup.name, loc=span)
		args = ", ".join(str(op) for op in operands)
		self._push(
			Statement(
				kind="call",
				reads=frozenset(reads | dest_reads),
				write=write,
				accesses=tuple(accesses + dest_accesses),
				subsets=self._subsets(edges, point),
				assigned=dest,
				text=f"{dest} = call {func}({args})",
				span=span or Span(),
			)
		)

	def use(self, *operands: Operand, span: Span | None = None) -> None:
		"""Read (or move) operands without storing the result anywhere."""
		reads, accesses = self._operand_facts(operands, span)
		self._push(
			Statement(
				kind="use",
				reads=frozenset(reads),
				accesses=tuple(accesses),
				text=f"use({', '.join(str(op) for op in operands)})",
				span=span or Span(),
			)
		)

	def drop(self, var: str, *, span: Span | None = None) -> None:
		"""Scope-exit drop: runs the destructor (if any) of `var`."""
		decl = self.body.var(var, loc=span)
		accesses: Tuple[Access, ...] = ()
		if has_drop_glue(decl.ty):
			accesses = (Access(Place(var), AccessKind.WRITE),)
		self._push(
			Statement(
				kind="drop",
				drops=frozenset({var}),
				accesses=accesses,
				text=f"drop({var})",
				span=span or Span(),
			)
		)

	def storage_dead(self, var: str, *, span: Span | None = None) -> None:
		"""End of the local's storage: outstanding loans of it must be dead."""
		self.body.var(var, loc=span)
		place = Place(var)
		self._push(
			Statement(
				kind="storage_dead",
				write=var,
				accesses=(Access(place, AccessKind.STORAGE_DEAD, shallow=True),),
				assigned=place,
				text=f"storage_dead({var})",
				span=span or Span(),
			)
		)

	def outlives(self, sub: Region, sup: Region, *, span: Span | None = None) -> None:
		"""Standalone obligation `sub: sup` generated at this point."""
		self.body.lookup_region(sub.name, loc=span)
		self.body.lookup_region(sup.name, loc=span)
		self._push(
			Statement(
				kind="outlives",
				subsets=self._subsets([(sub, sup)], self._point()),
				text=f"{sub}: {sup}",
				span=span or Span(),
			)
		)

	def nop(self, *, span: Span | None = None) -> None:
		self._push(Statement(kind="nop", text="nop", span=span or Span()))

	# Terminators

	def goto(self, target: str, *, span: Span | None = None) -> None:
		self._terminate(Terminator(kind="goto", targets=(target,), text=f"goto {target}", span=span or Span()))

	def branch(self, targets: Sequence[str], *, cond: Operand | None = None, span: Span | None = None) -> None:
		reads: Set[str] = set()
		accesses: List[Access] = []
		if cond is not None:
			reads, accesses = self._operand_facts([cond], span)
		shown = f" {cond}" if cond is not None else ""
		self._terminate(
			Terminator(
				kind="branch",
				targets=tuple(targets),
				reads=frozenset(reads),
				accesses=tuple(accesses),
				text=f"branch{shown} -> {', '.join(targets)}",
				span=span or Span(),
			)
		)

	def ret(self, *, span: Span | None = None) -> None:
		self._terminate(Terminator(kind="return", text="return", span=span or Span()))

	def unreachable(self, *, span: Span | None = None) -> None:
		self._terminate(Terminator(kind="unreachable", text="unreachable", span=span or Span()))

	# Fact derivation

	def _point(self) -> Point:
		return Point(self.name, len(self.statements))

	def _push(self, stmt: Statement) -> None:
		if self.terminator is not None:
			raise BuildError(f"statement after terminator in block '{self.name}'", loc=stmt.span)
		self.statements.append(stmt)

	def _terminate(self, term: Terminator) -> None:
		if self.terminator is not None:
			raise BuildError(f"block '{self.name}' terminated twice", loc=term.span)
		self.terminator = term

	def _relate(self, src: Ty, dst: Ty, span: Span | None) -> List[Tuple[Region, Region]]:
		try:
			return relate_types(src, dst)
		except TypeShapeError as err:
			raise BuildError(str(err), loc=span) from err

	def _subsets(self, edges: Iterable[Tuple[Region, Region]], point: Point) -> Tuple[SubsetConstraint, ...]:
		out: List[SubsetConstraint] = []
		for sub, sup in edges:
			sc = SubsetConstraint(sub, sup, point)
			if sc not in out:
				out.append(sc)
		return tuple(out)

	def _lvalue_facts(self, place: Place, span: Span | None) -> Tuple[Set[str], List[Access]]:
		"""
		Reads needed just to locate `place`: every dereferenced reference and
		every variable index along the projection chain.
		"""
		self.body.var(place.base, loc=span)
		reads: Set[str] = set()
		accesses: List[Access] = []
		for deref_base in place.deref_bases():
			reads.add(deref_base.base)
			accesses.append(Access(deref_base, AccessKind.READ))
		for proj in place.projections:
			if isinstance(proj, IndexProj) and proj.kind is IndexKind.ANY and proj.var is not None:
				self.body.var(proj.var, loc=span)
				reads.add(proj.var)
				accesses.append(Access(Place(proj.var), AccessKind.READ))
		return reads, accesses

	def _operand_facts(self, operands: Iterable[Operand], span: Span | None) -> Tuple[Set[str], List[Access]]:
		reads: Set[str] = set()
		accesses: List[Access] = []
		for op in operands:
			if op.place is None:
				continue
			op_reads, op_accesses = self._lvalue_facts(op.place, span)
			reads |= op_reads
			reads.add(op.place.base)
			accesses.extend(op_accesses)
			accesses.append(Access(op.place, AccessKind.MOVE if op.move else AccessKind.READ))
		return reads, accesses

	def _dest_facts(self, dest: Place, span: Span | None) -> Tuple[Set[str], List[Access], Optional[str]]:
		"""Facts for an assignment target; only a bare local ends liveness."""
		reads, accesses = self._lvalue_facts(dest, span)
		accesses.append(Access(dest, AccessKind.WRITE, shallow=True))
		write = dest.base if dest.is_local else None
		return reads, accesses, write


__all__ = ["BuildError", "Operand", "BodyBuilder", "BlockBuilder"]
