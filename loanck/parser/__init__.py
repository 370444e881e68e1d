# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Textual CFG input for the driver and the tests.

Parses the text format and hands back validated FunctionBody values plus any
parser-phase diagnostics. Malformed input never escapes as a traceback:
lark's UnexpectedInput, CfgSyntaxError and BuildError are all pinned to a
Span and reported as diagnostics.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

from lark.exceptions import UnexpectedInput

from loanck.builder import BuildError
from loanck.cfg import FunctionBody
from loanck.core.diagnostics import Diagnostic
from loanck.core.span import Span

from .parser import CfgSyntaxError, build_bodies, parse_tree


def parse_cfg_text(source: str, *, path: Optional[str] = None) -> Tuple[List[FunctionBody], List[Diagnostic]]:
	"""
	Parse every function body in `source`.

	Returns `(bodies, diagnostics)`; when diagnostics are non-empty the body
	list is empty, so a partially parsed file is never analysed.
	"""
	try:
		tree = parse_tree(source)
	except UnexpectedInput as err:
		span = Span(
			file=path,
			line=getattr(err, "line", None),
			column=getattr(err, "column", None),
		)
		return [], [Diagnostic(message=_first_line(str(err)), code="E_PARSE", phase="parser", span=span)]
	try:
		bodies = build_bodies(tree, path=path)
	except (CfgSyntaxError, BuildError) as err:
		span = Span.from_loc(getattr(err, "loc", None), file=path)
		return [], [Diagnostic(message=str(err), code="E_CFG", phase="parser", span=span)]
	return bodies, []


def parse_cfg_file(path: Path) -> Tuple[List[FunctionBody], List[Diagnostic]]:
	"""Read and parse a CFG file; an unreadable file becomes a diagnostic."""
	try:
		source = path.read_text(encoding="utf-8")
	except OSError as err:
		return [], [Diagnostic(message=f"cannot read input: {err.strerror or err}", code="E_IO", phase="parser", span=Span(file=str(path)))]
	return parse_cfg_text(source, path=str(path))


def _first_line(text: str) -> str:
	return text.strip().splitlines()[0] if text.strip() else "syntax error"


__all__ = ["CfgSyntaxError", "parse_cfg_text", "parse_cfg_file"]
