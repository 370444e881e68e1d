# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Local variable types with region placeholders.

Only as much of a type system as region inference needs: which regions a
type mentions (and in what order), how two types' regions line up when a
value of one flows into a place of the other, and whether dropping a value
may run a destructor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple, Union


@dataclass(frozen=True)
class Region:
	"""
	An inference variable standing for an unknown lifetime.

	Universal regions come from outside the body (parameters, `'static`) and
	must hold at every point of it.
	"""

	name: str
	universal: bool = False

	def __str__(self) -> str:
		return self.name


STATIC = Region("'static", universal=True)


class Ty:
	"""Base class for local types."""
	pass


@dataclass(frozen=True)
class ScalarTy(Ty):
	"""Plain value without regions or drop glue (`i32`, `bool`)."""

	name: str

	def __str__(self) -> str:
		return self.name


@dataclass(frozen=True)
class RefTy(Ty):
	"""`&'r T` / `&'r mut T`."""

	region: Region
	inner: Ty
	mutable: bool = False

	def __str__(self) -> str:
		mut = "mut " if self.mutable else ""
		return f"&{self.region} {mut}{self.inner}"


@dataclass(frozen=True)
class AdtTy(Ty):
	"""Named aggregate with region/type arguments (`Vec<&'r i32>`)."""

	name: str
	args: Tuple[Union[Ty, Region], ...] = field(default_factory=tuple)

	def __str__(self) -> str:
		if not self.args:
			return self.name
		return f"{self.name}<{', '.join(str(a) for a in self.args)}>"


class TypeShapeError(ValueError):
	"""Two types that must line up region-for-region have different shapes."""


def regions_of(ty: Union[Ty, Region]) -> Tuple[Region, ...]:
	"""Regions mentioned by `ty`, outermost first, without duplicates."""
	out: List[Region] = []
	stack: List[Union[Ty, Region]] = [ty]
	while stack:
		cur = stack.pop()
		if isinstance(cur, Region):
			if cur not in out:
				out.append(cur)
		elif isinstance(cur, RefTy):
			stack.append(cur.inner)
			stack.append(cur.region)
		elif isinstance(cur, AdtTy):
			stack.extend(reversed(cur.args))
	return tuple(out)


def has_drop_glue(ty: Ty) -> bool:
	"""References and scalars drop trivially; aggregates may run a destructor."""
	return isinstance(ty, AdtTy)


def relate_types(src: Ty, dst: Ty) -> List[Tuple[Region, Region]]:
	"""
	Region edges required for a value of type `src` to flow into `dst`.

	Each pair `(a, b)` means every loan reaching `a` must reach `b`. Shared
	references and aggregate arguments are covariant; the referent of a
	mutable reference is invariant and yields edges both ways.
	"""
	edges: List[Tuple[Region, Region]] = []
	_relate(src, dst, edges, invariant=False)
	return edges


def _relate(src: Union[Ty, Region], dst: Union[Ty, Region], edges: List[Tuple[Region, Region]], *, invariant: bool) -> None:
	if isinstance(src, Region) and isinstance(dst, Region):
		_push(edges, (src, dst))
		if invariant:
			_push(edges, (dst, src))
		return
	if isinstance(src, ScalarTy) and isinstance(dst, ScalarTy):
		if src.name != dst.name:
			raise TypeShapeError(f"type mismatch: '{src}' vs '{dst}'")
		return
	if isinstance(src, RefTy) and isinstance(dst, RefTy):
		if src.mutable != dst.mutable:
			raise TypeShapeError(f"mutability mismatch: '{src}' vs '{dst}'")
		_relate(src.region, dst.region, edges, invariant=invariant)
		_relate(src.inner, dst.inner, edges, invariant=invariant or src.mutable)
		return
	if isinstance(src, AdtTy) and isinstance(dst, AdtTy):
		if src.name != dst.name or len(src.args) != len(dst.args):
			raise TypeShapeError(f"type mismatch: '{src}' vs '{dst}'")
		for a, b in zip(src.args, dst.args):
			_relate(a, b, edges, invariant=invariant)
		return
	raise TypeShapeError(f"type mismatch: '{src}' vs '{dst}'")


def _push(edges: List[Tuple[Region, Region]], edge: Tuple[Region, Region]) -> None:
	if edge[0] != edge[1] and edge not in edges:
		edges.append(edge)


__all__ = [
	"Region",
	"STATIC",
	"Ty",
	"ScalarTy",
	"RefTy",
	"AdtTy",
	"TypeShapeError",
	"regions_of",
	"has_drop_glue",
	"relate_types",
]
