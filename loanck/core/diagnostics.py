# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Diagnostic structure shared by the parser and the conflict reporter.

Borrow conflicts are not exceptions: the analysis returns them as values and
only the driver turns them into diagnostics for presentation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .span import Span


@dataclass
class Diagnostic:
	"""A user-facing finding (error/warning) with a stable code."""

	message: str
	code: str | None = None
	# Phase label: "parser" for malformed input, "borrowcheck" for conflicts,
	# "driver" for runs that did not complete.
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	def to_json(self) -> Dict[str, Any]:
		"""Render to a JSON-friendly dict (phase/code/message/file/line/column)."""
		return {
			"phase": self.phase,
			"code": self.code,
			"message": self.message,
			"severity": self.severity,
			"file": self.span.file,
			"line": self.span.line,
			"column": self.span.column,
			"notes": list(self.notes),
		}

	def render(self) -> str:
		"""Single-line human form: `file:line:col: severity: message`."""
		code = f" [{self.code}]" if self.code else ""
		return f"{self.span.render()}: {self.severity}{code}: {self.message}"


__all__ = ["Diagnostic"]
