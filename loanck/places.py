# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Places: the "where" of values that loans borrow from and accesses touch.

A place is a local plus a chain of projections, so `(*p).items[0]` is base `p`
with projections `*`, `.items`, `[0]`. The conflict reporter asks one question
of two places: may they name overlapping storage?
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Tuple


class IndexKind(Enum):
	"""Coarse-grained index classification to keep Place hashable."""

	ANY = auto()       # Unknown / non-constant index; conservatively overlaps.
	CONST = auto()     # Known constant index.


@dataclass(frozen=True)
class FieldProj:
	"""Field access projection (e.g., `.name`)."""

	name: str


@dataclass(frozen=True)
class IndexProj:
	"""
	Index projection (e.g., `[i]`).

	`value` is only set for CONST indices; a variable index is recorded as ANY
	and keeps the index variable name for rendering.
	"""

	kind: IndexKind
	value: Optional[int] = None
	var: Optional[str] = None


@dataclass(frozen=True)
class DerefProj:
	"""Dereference projection (`*p`)."""
	pass


Projection = FieldProj | IndexProj | DerefProj


@dataclass(frozen=True)
class Place:
	"""A borrowable/assignable storage location rooted at a local."""

	base: str
	projections: Tuple[Projection, ...] = field(default_factory=tuple)

	def with_projection(self, proj: Projection) -> "Place":
		"""Return a new Place with an additional projection appended."""
		return Place(self.base, self.projections + (proj,))

	@property
	def is_local(self) -> bool:
		"""True for a bare local (no projections)."""
		return not self.projections

	def prefixes(self) -> Tuple["Place", ...]:
		"""All prefixes from the bare local up to (and including) self."""
		return tuple(Place(self.base, self.projections[:n]) for n in range(len(self.projections) + 1))

	def deref_bases(self) -> Tuple["Place", ...]:
		"""Places that are dereferenced on the way to self (`p` for `(*p).f`)."""
		out = []
		for idx, proj in enumerate(self.projections):
			if isinstance(proj, DerefProj):
				out.append(Place(self.base, self.projections[:idx]))
		return tuple(out)

	def __str__(self) -> str:
		text = self.base
		prev_deref = False
		for proj in self.projections:
			if isinstance(proj, DerefProj):
				text = f"*{text}"
				prev_deref = True
				continue
			if prev_deref:
				text = f"({text})"
				prev_deref = False
			if isinstance(proj, FieldProj):
				text = f"{text}.{proj.name}"
			elif proj.kind is IndexKind.CONST:
				text = f"{text}[{proj.value}]"
			else:
				text = f"{text}[{proj.var or '_'}]"
		return text


def is_prefix_of(prefix: Place, place: Place) -> bool:
	"""True when `prefix` names `place` or an enclosing place of it."""
	if prefix.base != place.base:
		return False
	n = len(prefix.projections)
	return place.projections[:n] == prefix.projections


def places_overlap(a: Place, b: Place) -> bool:
	"""
	Return True when two places may refer to overlapping storage.

	Rules:
	- Different bases never overlap.
	- Prefix overlap counts: `x` overlaps `x.field` and `x[0]`.
	- Field projections are disjoint when the field names differ.
	- Index projections are disjoint only for two different CONST indices.
	- Any projection-kind mismatch at the same depth is treated as overlapping.
	"""
	if a.base != b.base:
		return False

	ap = a.projections
	bp = b.projections
	for idx in range(min(len(ap), len(bp))):
		pa = ap[idx]
		pb = bp[idx]
		if pa == pb:
			continue
		if isinstance(pa, FieldProj) and isinstance(pb, FieldProj):
			return False
		if isinstance(pa, IndexProj) and isinstance(pb, IndexProj):
			if pa.kind is IndexKind.CONST and pb.kind is IndexKind.CONST:
				return pa.value == pb.value
			return True
		return True

	# One place is a prefix of the other (or identical).
	return True


def shallow_reaches(written: Place, borrowed: Place) -> bool:
	"""
	Overlap test for a shallow write (assignment, storage death).

	Overwriting `p` replaces the pointer, not the memory behind it, so a loan
	of `*p` (or anything reached through that deref) is not disturbed.
	"""
	if not places_overlap(written, borrowed):
		return False
	if not is_prefix_of(written, borrowed):
		return True
	rest = borrowed.projections[len(written.projections):]
	return not any(isinstance(proj, DerefProj) for proj in rest)


__all__ = [
	"IndexKind",
	"FieldProj",
	"IndexProj",
	"DerefProj",
	"Projection",
	"Place",
	"is_prefix_of",
	"places_overlap",
	"shallow_reaches",
]
