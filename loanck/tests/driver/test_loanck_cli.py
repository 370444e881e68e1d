# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
from __future__ import annotations

import json
from pathlib import Path

import pytest

from loanck.driver import main as loanck_main
from loanck.test_support import TWO_BRANCH_REASSIGN_TEXT

CLEAN_TEXT = """
fn clean() {
	let x: i32;
	let p: &'p i32;
	bb0: {
		p = &x;
		use(copy p);
		x = const;
		return;
	}
}
"""

DROP_TEXT = """
fn dropping() {
	let x: i32;
	let t: &'t i32;
	let v: Vec<&'r i32> drops();
	bb0: {
		t = &x;
		v = call push(copy t) where 't: 'r;
		x = const;
		drop(v);
		return;
	}
}
"""


def _write_file(path: Path, text: str) -> Path:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(text, encoding="utf-8")
	return path


def _run_json(argv: list[str], capsys: pytest.CaptureFixture[str]) -> tuple[int, dict]:
	rc = loanck_main([*argv, "--json"])
	out = capsys.readouterr().out
	payload = json.loads(out) if out.strip() else {}
	return rc, payload


def test_conflicts_exit_one_with_json_diagnostics(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "two.cfg", TWO_BRANCH_REASSIGN_TEXT)
	rc, payload = _run_json([str(src)], capsys)
	assert rc == 1
	assert payload["exit_code"] == 1
	diags = payload["diagnostics"]
	assert [d["code"] for d in diags] == ["E_WRITE_WHILE_BORROWED", "E_WRITE_WHILE_BORROWED"]
	assert [d["line"] for d in diags] == [18, 22]
	assert all(d["file"] == str(src) for d in diags)
	assert all(d["phase"] == "borrowcheck" for d in diags)
	assert payload["functions"][0]["status"] == "complete"


def test_clean_input_exits_zero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "clean.cfg", CLEAN_TEXT)
	assert loanck_main([str(src)]) == 0
	captured = capsys.readouterr()
	assert captured.err == ""
	assert captured.out == ""


def test_text_mode_renders_location_code_and_notes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "two.cfg", TWO_BRANCH_REASSIGN_TEXT)
	assert loanck_main([str(src)]) == 1
	err = capsys.readouterr().err.splitlines()
	assert err[0] == f"{src}:18:3: error [E_WRITE_WHILE_BORROWED]: cannot write to 'y' while it is borrowed"
	assert "  note: loan L1 (&y) issued at bb0[1]" in err
	assert f"  note: borrow site: {src}:9:3" in err


def test_parse_error_exits_one(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "bad.cfg", "fn broken( {\n")
	rc, payload = _run_json([str(src)], capsys)
	assert rc == 1
	assert payload["diagnostics"][0]["phase"] == "parser"
	assert payload["functions"] == []


def test_expired_deadline_exits_two(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "two.cfg", TWO_BRANCH_REASSIGN_TEXT)
	rc, payload = _run_json([str(src), "--deadline", "0"], capsys)
	assert rc == 2
	assert [d["code"] for d in payload["diagnostics"]] == ["E_ANALYSIS_ABORTED"]
	assert payload["functions"][0]["status"] == "unknown"


def test_imprecise_drops_flag(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "drop.cfg", DROP_TEXT)
	rc, _ = _run_json([str(src)], capsys)
	assert rc == 0
	rc, payload = _run_json([str(src), "--imprecise-drops"], capsys)
	assert rc == 1
	assert payload["diagnostics"][0]["message"] == "cannot write to 'x' while it is borrowed"


def test_dump_active_loans(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	src = _write_file(tmp_path / "two.cfg", TWO_BRANCH_REASSIGN_TEXT)
	loanck_main([str(src), "--dump", "loans", "--dump", "graph"])
	out = capsys.readouterr().out.splitlines()
	assert "== loans of two_branch ==" in out
	assert "== graph of two_branch ==" in out
	assert "  L1 = &y @ bb0[1]" in out
	(line,) = [ln for ln in out if ln.startswith("  bb1[1]:")]
	assert line.endswith("active {L1}")
	assert "  'q -> 'p  [bb1[0]]" in out


def test_jobs_and_repeated_runs_are_deterministic(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
	first = _write_file(tmp_path / "a.cfg", TWO_BRANCH_REASSIGN_TEXT)
	second = _write_file(tmp_path / "b.cfg", CLEAN_TEXT + DROP_TEXT)
	argv = [str(first), str(second)]
	rc_seq, seq = _run_json(argv, capsys)
	rc_par, par = _run_json([*argv, "--jobs", "3"], capsys)
	assert rc_seq == rc_par == 1
	assert seq == par
	assert [f["function"] for f in par["functions"]] == ["two_branch", "clean", "dropping"]


def test_bad_option_values_are_rejected(tmp_path: Path) -> None:
	src = _write_file(tmp_path / "clean.cfg", CLEAN_TEXT)
	with pytest.raises(SystemExit):
		loanck_main([str(src), "--jobs", "0"])
	with pytest.raises(SystemExit):
		loanck_main([str(src), "--dump", "everything"])
