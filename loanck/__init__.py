# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
# author: Sławomir Liszniański; created: 2026-10-18
"""
loanck: region inference and loan conflict checking over function CFGs.

The analysis consumes a FunctionBody (see cfg.py / builder.py) and runs
liveness, subset graph construction, active-loan dataflow and conflict
detection; `analyze_body` in pipeline.py runs all four.
"""

from loanck.pipeline import AnalysisOptions, AnalysisResult, AnalysisStatus, analyze_bodies, analyze_body

__all__ = ["AnalysisOptions", "AnalysisResult", "AnalysisStatus", "analyze_body", "analyze_bodies"]
