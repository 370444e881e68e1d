# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Plumbing shared by the two dataflow solvers.

- PointArena: per-run mutable storage indexed by Point. Every analysis run
  owns its arenas, so runs over different functions share nothing.
- SweepBudget: counts sweeps that changed something and enforces the
  convergence bound (one changing sweep per point at most) plus an optional
  wall-clock deadline.
"""

from __future__ import annotations

import time
from typing import Dict, FrozenSet, Generic, Iterable, List, Optional, Tuple, TypeVar

from loanck.cfg import Point

T = TypeVar("T")


class AnalysisAborted(Exception):
	"""
	The run hit its deadline before reaching a fixpoint.

	A partial monotone result under-approximates the real one, so callers must
	treat the run as "unknown", never as "no conflicts".
	"""


class PointArena(Generic[T]):
	"""Dense per-point slots for one dataflow run."""

	def __init__(self, points: Iterable[Point], initial: FrozenSet[T] = frozenset()) -> None:
		self._index: Dict[Point, int] = {}
		for idx, point in enumerate(points):
			self._index[point] = idx
		self._slots: List[FrozenSet[T]] = [initial] * len(self._index)

	def __len__(self) -> int:
		return len(self._slots)

	def __getitem__(self, point: Point) -> FrozenSet[T]:
		return self._slots[self._slot(point)]

	def __setitem__(self, point: Point, value: FrozenSet[T]) -> None:
		self._slots[self._slot(point)] = value

	def _slot(self, point: Point) -> int:
		idx = self._index.get(point)
		if idx is None:
			raise AssertionError(f"dataflow arena has no slot for point {point} (analysis bug)")
		return idx

	def snapshot(self) -> Dict[Point, FrozenSet[T]]:
		return {point: self._slots[idx] for point, idx in self._index.items()}

	def items(self) -> Tuple[Tuple[Point, FrozenSet[T]], ...]:
		return tuple((point, self._slots[idx]) for point, idx in self._index.items())


class SweepBudget:
	"""
	Convergence guard for round-robin solvers.

	`limit` bounds the number of sweeps that changed any slot; exceeding it
	means the transfer functions are not monotone, which is a bug.
	"""

	def __init__(self, what: str, limit: int, *, deadline: Optional[float] = None) -> None:
		self.what = what
		self.limit = limit
		self.deadline = deadline  # absolute time.monotonic() value
		self.sweeps = 0

	def check_deadline(self) -> None:
		if self.deadline is not None and time.monotonic() >= self.deadline:
			raise AnalysisAborted(f"{self.what}: deadline reached after {self.sweeps} sweeps")

	def tick(self, changed: bool) -> None:
		self.check_deadline()
		if not changed:
			return
		self.sweeps += 1
		if self.sweeps > self.limit:
			raise AssertionError(
				f"{self.what} did not converge within {self.limit} sweeps (non-monotone transfer; analysis bug)"
			)


__all__ = ["AnalysisAborted", "PointArena", "SweepBudget"]
