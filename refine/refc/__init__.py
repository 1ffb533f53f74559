# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
refc: a small interpreted language whose method calls go through the
override resolver. Used to exercise scoping end to end.
"""

from .interp import Interpreter, RefcRuntimeError
from .parser import RefcParseError, parse_program

__all__ = ["Interpreter", "RefcParseError", "RefcRuntimeError", "parse_program"]
