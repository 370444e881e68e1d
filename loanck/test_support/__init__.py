# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Shared helpers for tests that need function bodies.

These helpers avoid re-spelling region/type construction and provide a few
canonical bodies (straight-line borrow, loop, conditional reassignment) that
several test areas exercise from different angles.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from loanck.builder import BodyBuilder, Operand
from loanck.cfg import FunctionBody, Loan, Point
from loanck.conflicts import Conflict
from loanck.types import AdtTy, RefTy, Region, ScalarTy, Ty

I32 = ScalarTy("i32")


def ref(region: Region, inner: Ty = I32, *, mut: bool = False) -> RefTy:
	"""`&'r T` (or `&'r mut T`), defaulting the referent to i32."""
	return RefTy(region, inner, mutable=mut)


def pt(block: str, index: int) -> Point:
	return Point(block, index)


def names(loans: Iterable[Loan]) -> List[str]:
	"""Sorted loan names from any iterable of loans."""
	return sorted(loan.name for loan in loans)


def conflict_sites(conflicts: Iterable[Conflict]) -> List[Tuple[str, str, str]]:
	"""(point, loan, place) triples, handy for exact assertions."""
	return [(str(c.point), c.loan.name, str(c.place)) for c in conflicts]


def straight_line_body() -> FunctionBody:
	"""
	x = const; p = &x; x = const; use(copy p); return

	The write to `x` happens while `p` (and so the loan) is still live.
	"""
	b = BodyBuilder("straight")
	rp = b.region("'p")
	b.declare("x", I32)
	b.declare("p", ref(rp))
	bb0 = b.block("bb0")
	bb0.assign("x", Operand.const())
	bb0.borrow("p", "x")
	bb0.assign("x", Operand.const())
	bb0.use(Operand.copy_of("p"))
	bb0.ret()
	return b.build()


def two_branch_reassign_body() -> FunctionBody:
	"""
	Conditional reassignment of `p` from a loan of `x` to a loan of `y`.

	  bb0: p = &x (L0); q = &y (L1); branch -> bb1, bb2
	  bb1: p = copy q; x = const; goto bb3     (reassigned branch)
	  bb2: y = const; goto bb3                 (untouched branch)
	  bb3: y = const; use(copy p); return      (join)

	Expected conflicts: the write to `y` in bb2 and at the join (both against
	L1); the write to `x` in bb1 is fine because only `q` is live on entry to
	`p = copy q`, and `'q` is not reachable from L0.
	"""
	b = BodyBuilder("two_branch")
	rp = b.region("'p")
	rq = b.region("'q")
	b.declare("x", I32)
	b.declare("y", I32)
	b.declare("p", ref(rp))
	b.declare("q", ref(rq))

	bb0 = b.block("bb0")
	bb1 = b.block("bb1")
	bb2 = b.block("bb2")
	bb3 = b.block("bb3")

	bb0.borrow("p", "x")
	bb0.borrow("q", "y")
	bb0.branch(["bb1", "bb2"])

	bb1.assign("p", Operand.copy_of("q"))
	bb1.assign("x", Operand.const())
	bb1.goto("bb3")

	bb2.assign("y", Operand.const())
	bb2.goto("bb3")

	bb3.assign("y", Operand.const())
	bb3.use(Operand.copy_of("p"))
	bb3.ret()
	return b.build()


TWO_BRANCH_REASSIGN_TEXT = """\
# p starts out borrowing x, is pointed at y's loan in one branch only
fn two_branch() {
	let x: i32;
	let y: i32;
	let p: &'p i32;
	let q: &'q i32;
	bb0: {
		p = &x;
		q = &y;
		branch -> bb1, bb2;
	}
	bb1: {
		p = copy q;
		x = const;
		goto bb3;
	}
	bb2: {
		y = const;
		goto bb3;
	}
	bb3: {
		y = const;
		use(copy p);
		return;
	}
}
"""


def loop_body() -> FunctionBody:
	"""
	A loan taken inside a loop flows into an accumulator that stays live
	around the back edge, so the next iteration's write to `v` conflicts.

	  bb0: w = const; goto bb1
	  bb1: v = const; t = &v (L0); w = call push(move w, copy t) where 't: 'w
	       branch -> bb1, bb2
	  bb2: use(copy w); return
	"""
	b = BodyBuilder("looping")
	rt = b.region("'t")
	rw = b.region("'w")
	b.declare("v", I32)
	b.declare("t", ref(rt))
	b.declare("w", AdtTy("Vec", (ref(rw),)))
	bb0 = b.block("bb0")
	bb1 = b.block("bb1")
	bb2 = b.block("bb2")
	bb0.assign("w", Operand.const())
	bb0.goto("bb1")
	bb1.assign("v", Operand.const())
	bb1.borrow("t", "v")
	bb1.call("w", "push", [Operand.move_of("w"), Operand.copy_of("t")], where=[(rt, rw)])
	bb1.branch(["bb1", "bb2"])
	bb2.use(Operand.copy_of("w"))
	bb2.ret()
	return b.build()


def branching_body(*, extra_edge: bool = False) -> FunctionBody:
	"""
	Same points either way; `extra_edge` only adds bb3 as a branch target.

	  bb0: p = &x (L0); q = &y (L1); branch -> bb1, bb2 [, bb3]
	  bb1: use(copy p); return
	  bb2: y = const; return
	  bb3: use(copy q); goto bb1
	"""
	b = BodyBuilder("branching")
	rp = b.region("'p")
	rq = b.region("'q")
	b.declare("x", I32)
	b.declare("y", I32)
	b.declare("p", ref(rp))
	b.declare("q", ref(rq))
	bb0 = b.block("bb0")
	bb1 = b.block("bb1")
	bb2 = b.block("bb2")
	bb3 = b.block("bb3")
	bb0.borrow("p", "x")
	bb0.borrow("q", "y")
	bb0.branch(["bb1", "bb2", "bb3"] if extra_edge else ["bb1", "bb2"])
	bb1.use(Operand.copy_of("p"))
	bb1.ret()
	bb2.assign("y", Operand.const())
	bb2.ret()
	bb3.use(Operand.copy_of("q"))
	bb3.goto("bb1")
	return b.build()


def drop_body(*, narrow: bool) -> FunctionBody:
	"""
	A loan stored into an aggregate that is only dropped afterwards.

	  bb0: t = &x (L0); v = call push(copy t) where 't: 'r; x = const; drop(v); return

	With `narrow`, `v` is declared `drops()`: its destructor touches no
	region, so the write to `x` is fine under precise drops.
	"""
	b = BodyBuilder("dropping")
	rt = b.region("'t")
	rr = b.region("'r")
	b.declare("x", I32)
	b.declare("t", ref(rt))
	b.declare("v", AdtTy("Vec", (ref(rr),)), drops=[] if narrow else None)
	bb0 = b.block("bb0")
	bb0.borrow("t", "x")
	bb0.call("v", "push", [Operand.copy_of("t")], where=[(rt, rr)])
	bb0.assign("x", Operand.const())
	bb0.drop("v")
	bb0.ret()
	return b.build()


def point_texts(body: FunctionBody) -> Dict[str, str]:
	"""`bb[i]` -> statement text, for readable failure output."""
	return {str(p): body.at(p).text for p in body.points}


__all__ = [
	"I32",
	"ref",
	"pt",
	"names",
	"conflict_sites",
	"straight_line_body",
	"two_branch_reassign_body",
	"TWO_BRANCH_REASSIGN_TEXT",
	"loop_body",
	"branching_body",
	"drop_body",
	"point_texts",
]
