# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
refc command line: run one or more refc files in a single interpreter.

Program output goes to stdout. With --json, output lines and diagnostics are
collected into one JSON object instead:

	{"exit_code": 1, "output": [...], "diagnostics": [{phase, code, message, ...}]}
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, TextIO

from lark.exceptions import UnexpectedInput

from refine.core.diagnostics import Diagnostic, has_errors
from refine.core.errors import RefineError, StackUnderflowError
from refine.core.span import Span

from .interp import DEFAULT_MAX_CALL_DEPTH, Interpreter
from .parser import RefcParseError, parse_program


def _env_max_call_depth() -> int:
	raw = os.environ.get("REFC_MAX_CALL_DEPTH", "").strip()
	if raw.isdigit() and int(raw) > 0:
		return int(raw)
	return DEFAULT_MAX_CALL_DEPTH


@dataclass
class RunOptions:
	json: bool = False
	max_call_depth: int = field(default_factory=_env_max_call_depth)


@dataclass
class RunResult:
	exit_code: int
	output: List[str] = field(default_factory=list)
	diagnostics: List[Diagnostic] = field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"exit_code": self.exit_code,
			"output": list(self.output),
			"diagnostics": [d.to_dict() for d in self.diagnostics],
		}


def _syntax_diagnostic(err: UnexpectedInput, path: str) -> Diagnostic:
	message = str(err).strip().splitlines()[0] if str(err).strip() else "syntax error"
	return Diagnostic(
		message=message,
		code="syntax",
		phase="parser",
		span=Span(file=path, line=getattr(err, "line", None), column=getattr(err, "column", None)),
	)


def _error_diagnostic(err: RefineError, path: str) -> Diagnostic:
	return Diagnostic(
		message=err.message,
		code=err.reason_code,
		phase="runtime",
		span=Span.from_loc(err.span, file=path),
	)


def run_paths(paths: List[Path], options: RunOptions, *, out: Optional[TextIO] = None) -> RunResult:
	"""
	Parse every file, then run them in order.

	Nothing runs when any file fails to read or parse. Execution stops at the
	first runtime error.
	"""
	diagnostics: List[Diagnostic] = []
	programs = []
	for path in paths:
		try:
			source = path.read_text(encoding="utf-8")
		except (OSError, UnicodeDecodeError) as err:
			diagnostics.append(
				Diagnostic(message=f"cannot read file: {err}", code="io", phase="io", span=Span(file=str(path)))
			)
			return RunResult(exit_code=2, diagnostics=diagnostics)
		try:
			programs.append((str(path), parse_program(source)))
		except UnexpectedInput as err:
			diagnostics.append(_syntax_diagnostic(err, str(path)))
		except RefcParseError as err:
			diagnostics.append(
				Diagnostic(message=str(err), code="syntax", phase="parser", span=Span.from_loc(err.loc, file=str(path)))
			)
	if has_errors(diagnostics):
		return RunResult(exit_code=1, diagnostics=diagnostics)

	interp = Interpreter(max_call_depth=options.max_call_depth, out=out)
	for path_str, program in programs:
		try:
			interp.run_program(program, file=path_str)
		except StackUnderflowError:
			raise
		except RefineError as err:
			diagnostics.append(_error_diagnostic(err, path_str))
			break
	return RunResult(exit_code=1 if has_errors(diagnostics) else 0, output=list(interp.output), diagnostics=diagnostics)


def main(argv: list[str] | None = None) -> int:
	"""
	Run refc files. Human-readable diagnostics go to stderr; with --json a
	single JSON object (exit_code, output, diagnostics) goes to stdout.
	"""
	parser = argparse.ArgumentParser(prog="refc", description="Run refc programs with scoped method overrides")
	parser.add_argument("source", type=Path, nargs="+", help="Path(s) to refc source file(s)")
	parser.add_argument(
		"--json",
		action="store_true",
		help="Emit output and diagnostics as a single JSON object on stdout",
	)
	parser.add_argument(
		"--max-call-depth",
		type=int,
		default=None,
		help=f"Maximum nested refc method calls (default: $REFC_MAX_CALL_DEPTH or {DEFAULT_MAX_CALL_DEPTH})",
	)
	args = parser.parse_args(argv)

	options = RunOptions(json=args.json)
	if args.max_call_depth is not None:
		if args.max_call_depth <= 0:
			parser.error("--max-call-depth must be positive")
		options.max_call_depth = args.max_call_depth

	result = run_paths(list(args.source), options, out=None if options.json else sys.stdout)
	if options.json:
		print(json.dumps(result.to_dict()))
	else:
		for diag in result.diagnostics:
			print(diag.format_human(), file=sys.stderr)
	return result.exit_code


__all__ = ["RunOptions", "RunResult", "run_paths", "main"]
