# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Conflict reporter: accesses that collide with an active loan.

Rules, per access at a point against each loan active there:
- The places must overlap (shallow accesses ignore memory behind a deref).
- A read only conflicts with a mutable loan.
- Writes, mutable borrows, moves and storage death conflict with any loan.

Every colliding (point, loan, place, access) is returned; nothing is merged
or suppressed. Turning records into diagnostics is the driver's business,
`conflict_to_diagnostic` is provided for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from loanck.active_loans import ActiveLoans
from loanck.cfg import Access, AccessKind, FunctionBody, Loan, LoanKind, Point
from loanck.core.diagnostics import Diagnostic
from loanck.places import Place, places_overlap, shallow_reaches


@dataclass(frozen=True)
class Conflict:
	"""An access at `point` to `place` that collides with active `loan`."""

	point: Point
	loan: Loan
	place: Place
	kind: AccessKind

	def to_json(self) -> dict:
		return {
			"point": str(self.point),
			"loan": self.loan.name,
			"place": str(self.place),
			"access": self.kind.name.lower(),
		}


def access_conflicts(access: Access, loan: Loan) -> bool:
	"""Decide whether one access collides with one active loan."""
	if access.shallow:
		overlap = shallow_reaches(access.place, loan.place)
	else:
		overlap = places_overlap(access.place, loan.place)
	if not overlap:
		return False
	if access.kind is AccessKind.READ:
		return loan.kind is LoanKind.MUT
	return True


def find_conflicts(body: FunctionBody, active: ActiveLoans) -> List[Conflict]:
	"""All conflicts in the body, in point layout order then loan issue order."""
	if active.body is not body:
		raise AssertionError(f"active-loan sets belong to '{active.body.name}', not '{body.name}' (analysis bug)")
	loan_order = {loan: idx for idx, loan in enumerate(body.loans)}
	records: List[Conflict] = []
	seen: set = set()
	for point in body.points:
		in_force = sorted(active.at(point), key=lambda ln: loan_order[ln])
		if not in_force:
			continue
		for access in body.at(point).accesses:
			for loan in in_force:
				if not access_conflicts(access, loan):
					continue
				record = Conflict(point=point, loan=loan, place=access.place, kind=access.kind)
				if record not in seen:
					seen.add(record)
					records.append(record)
	return records


def conflict_to_diagnostic(body: FunctionBody, conflict: Conflict) -> Diagnostic:
	"""Render a conflict record as a borrowcheck-phase diagnostic."""
	stmt = body.at(conflict.point)
	loan = conflict.loan
	name = str(conflict.place)
	if conflict.kind is AccessKind.READ:
		code = "E_READ_WHILE_MUT_BORROWED"
		message = f"cannot read '{name}' while it is mutably borrowed"
	elif conflict.kind is AccessKind.MOVE:
		code = "E_MOVE_WHILE_BORROWED"
		message = f"cannot move out of '{name}' while it is borrowed"
	elif conflict.kind is AccessKind.STORAGE_DEAD:
		code = "E_BORROWED_VALUE_DROPPED"
		message = f"'{name}' does not live long enough: it is still borrowed when its storage ends"
	elif stmt.kind == "borrow" and stmt.loan is not None and stmt.loan.loan.place == conflict.place:
		code = "E_MUT_BORROW_WHILE_BORROWED"
		message = f"cannot borrow '{name}' as mutable while it is borrowed"
	elif stmt.kind == "drop":
		code = "E_DROP_WHILE_BORROWED"
		message = f"cannot drop '{name}' while it is borrowed"
	else:
		code = "E_WRITE_WHILE_BORROWED"
		message = f"cannot write to '{name}' while it is borrowed"
	sigil = "&mut " if loan.kind is LoanKind.MUT else "&"
	issue = body.at(loan.point)
	notes = [f"loan {loan.name} ({sigil}{loan.place}) issued at {loan.point}"]
	if issue.span.known:
		notes.append(f"borrow site: {issue.span.render()}")
	return Diagnostic(message=message, code=code, phase="borrowcheck", span=stmt.span, notes=notes)


__all__ = ["Conflict", "access_conflicts", "find_conflicts", "conflict_to_diagnostic"]
