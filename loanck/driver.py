# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
Command-line driver: parse textual CFG files, analyse every function body,
report borrow conflicts.

Exit codes:
  0  every body analysed, no conflicts
  1  parse errors or at least one conflict
  2  no conflicts found, but some run was aborted (result unknown)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from loanck.cfg import FunctionBody, LoanKind
from loanck.conflicts import conflict_to_diagnostic
from loanck.core.diagnostics import Diagnostic
from loanck.parser import parse_cfg_file
from loanck.pipeline import AnalysisOptions, AnalysisResult, analyze_bodies

LOG = logging.getLogger(__name__)

DUMP_KINDS = ("liveness", "loans", "regions", "graph")


def _aborted_diagnostic(result: AnalysisResult) -> Diagnostic:
	return Diagnostic(
		message=f"analysis of '{result.body.name}' did not finish; result unknown ({result.reason})",
		code="E_ANALYSIS_ABORTED",
		phase="driver",
		span=result.body.span,
	)


def collect_diagnostics(results: List[AnalysisResult]) -> List[Diagnostic]:
	"""Conflict diagnostics (and aborted-run notices) in input order."""
	out: List[Diagnostic] = []
	for result in results:
		if not result.complete:
			out.append(_aborted_diagnostic(result))
			continue
		for conflict in result.conflicts or []:
			out.append(conflict_to_diagnostic(result.body, conflict))
	return out


def exit_code_for(parse_diags: List[Diagnostic], results: List[AnalysisResult]) -> int:
	if parse_diags:
		return 1
	if any(r.complete and r.conflicts for r in results):
		return 1
	if any(not r.complete for r in results):
		return 2
	return 0


def render_dump(kind: str, result: AnalysisResult) -> List[str]:
	"""Human-readable dump of one analysis output for one body."""
	body = result.body
	lines = [f"== {kind} of {body.name} =="]
	if not result.complete:
		lines.append(f"  (unknown: {result.reason})")
		return lines
	assert result.liveness is not None and result.active is not None and result.graph is not None
	if kind == "liveness":
		for point in body.points:
			live = ", ".join(sorted(result.liveness.live_at(point))) or "-"
			regions = ", ".join(sorted(r.name for r in result.liveness.regions_live_at(point))) or "-"
			lines.append(f"  {point}: {body.at(point).text:<28} live {{{live}}} regions {{{regions}}}")
	elif kind == "loans":
		for loan in body.loans:
			lines.append(f"  {loan.name} = &{'mut ' if loan.kind is LoanKind.MUT else ''}{loan.place} @ {loan.point}")
		for point in body.points:
			names = ", ".join(result.active.names_at(point)) or "-"
			lines.append(f"  {point}: {body.at(point).text:<28} active {{{names}}}")
	elif kind == "regions":
		for region in sorted(result.region_values, key=lambda r: r.name):
			value = result.region_values[region]
			loans = ", ".join(sorted(loan.name for loan in value.loans)) or "-"
			points = ", ".join(str(p) for p in body.points if p in value.points) or "-"
			scope = " (universal)" if value.region.universal else ""
			lines.append(f"  {value.region.name}{scope}: loans {{{loans}}} points {{{points}}}")
	elif kind == "graph":
		for src, dst in result.graph.edges:
			origins = sorted(str(p) if p is not None else "signature" for p in result.graph.origins(src, dst))
			lines.append(f"  {src} -> {dst}  [{', '.join(origins)}]")
	else:
		raise AssertionError(f"unknown dump kind '{kind}' (driver bug)")
	return lines


def _configure_logging(verbosity: int) -> None:
	if verbosity >= 2:
		level = logging.DEBUG
	elif verbosity == 1:
		level = logging.INFO
	else:
		level = logging.ERROR
	logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def main(argv: list[str] | None = None) -> int:
	"""
	Parse CFG files, analyse every function body and report conflicts.

	With --json, prints a single object (exit_code, diagnostics, functions) on
	stdout; otherwise prints `file:line:col: severity: message` lines to stderr
	and any requested dumps to stdout.
	"""
	parser = argparse.ArgumentParser(prog="loanck", description="Region inference and loan conflict checker for textual CFGs")
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to CFG text file(s)")
	parser.add_argument(
		"--imprecise-drops",
		action="store_true",
		help="Treat every drop as a use of all regions of the dropped value",
	)
	parser.add_argument(
		"--deadline",
		type=float,
		default=None,
		metavar="SECONDS",
		help="Wall-clock budget per function body; an expired run reports an unknown result",
	)
	parser.add_argument("--jobs", type=int, default=1, metavar="N", help="Analyse up to N function bodies concurrently")
	parser.add_argument("--json", action="store_true", help="Emit diagnostics and results as JSON")
	parser.add_argument(
		"--dump",
		dest="dumps",
		action="append",
		choices=DUMP_KINDS,
		default=[],
		help="Print an analysis output per function (repeatable; text mode only)",
	)
	parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (repeat for debug output)")
	args = parser.parse_args(argv)
	_configure_logging(args.verbose)

	if args.deadline is not None and args.deadline < 0:
		parser.error("--deadline must be non-negative")
	if args.jobs < 1:
		parser.error("--jobs must be at least 1")

	bodies: List[FunctionBody] = []
	parse_diags: List[Diagnostic] = []
	for path in args.source:
		file_bodies, diags = parse_cfg_file(path)
		bodies.extend(file_bodies)
		parse_diags.extend(diags)

	results: List[AnalysisResult] = []
	if not parse_diags:
		options = AnalysisOptions(precise_drops=not args.imprecise_drops, deadline=args.deadline)
		LOG.info("analysing %d function bodies with %d job(s)", len(bodies), args.jobs)
		results = analyze_bodies(bodies, options, jobs=args.jobs)

	diagnostics = parse_diags + collect_diagnostics(results)
	exit_code = exit_code_for(parse_diags, results)

	if args.json:
		payload: Dict[str, Any] = {
			"exit_code": exit_code,
			"diagnostics": [d.to_json() for d in diagnostics],
			"functions": [r.to_json() for r in results],
		}
		print(json.dumps(payload, sort_keys=True))
		return exit_code

	for result in results:
		for kind in args.dumps:
			for line in render_dump(kind, result):
				print(line)
	for diag in diagnostics:
		print(diag.render(), file=sys.stderr)
		for note in diag.notes:
			print(f"  note: {note}", file=sys.stderr)
	return exit_code


__all__ = ["main", "collect_diagnostics", "exit_code_for", "render_dump", "DUMP_KINDS"]
