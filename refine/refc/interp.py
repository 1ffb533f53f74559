# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tree-walking interpreter for refc programs.

All method calls go through the ActivationManager, so refc code observes
exactly the library's scoping rules:

- each file runs in its own FILE region; `using` at file level lasts until
  the end of the file,
- class and interface bodies are CLASS/MODULE regions defining their type, so
  `using` there attaches the set to the type,
- every method call opens a METHOD region; method bodies run under the frames
  captured where the method was defined,
- `eval_in T { ... }` evaluates its block in the context of T.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

from refine.activation import ActivationManager
from refine.core.errors import RefineError
from refine.core.span import Span
from refine.core.types_core import ClassRef, Instance, TypeId, TypeKind
from refine.override_set import OverrideSet
from refine.resolver import Invocation
from refine.scope_stack import ScopeKind

from .ast import (
	AssignStmt,
	Binary,
	Block,
	Call,
	ClassDef,
	EvalInStmt,
	Expr,
	ExprStmt,
	FieldAssignStmt,
	FieldRef,
	IfStmt,
	IncludeStmt,
	InterfaceDef,
	LetStmt,
	Literal,
	Located,
	MethodDef,
	Name,
	OverridesDef,
	PrintStmt,
	Program,
	ReturnStmt,
	SelfRef,
	SuperCall,
	Unary,
	UsingStmt,
)

DEFAULT_MAX_CALL_DEPTH = 64


class RefcRuntimeError(RefineError):
	"""Interpreter fault in user code (bad operands, unknown names, ...)."""

	reason_code = "runtime"


class _Return(Exception):
	def __init__(self, value: Any) -> None:
		super().__init__()
		self.value = value


@dataclass
class _Frame:
	self_value: Any
	locals: Dict[str, Any] = field(default_factory=dict)
	# Set inside method bodies; `super(...)` goes through it.
	call: Optional[Invocation] = None


def _truthy(value: Any) -> bool:
	return value is not None and value is not False


def _is_int(value: Any) -> bool:
	return isinstance(value, int) and not isinstance(value, bool)


class Interpreter:
	def __init__(self, *, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH, out: Optional[TextIO] = None) -> None:
		self.manager = ActivationManager()
		self.types = self.manager.types
		self.max_call_depth = max_call_depth
		self.output: List[str] = []
		self.override_sets: Dict[str, OverrideSet] = {}
		self._out = out
		self._depth = 0
		self._file: Optional[str] = None
		self._object = self.types.new_class("Object")
		self._install_builtins()

	def run_program(self, program: Program, *, file: str = "<input>") -> None:
		"""Run one file's items in a fresh FILE region."""
		self._file = file
		frame = _Frame(self_value=None)
		try:
			with self.manager.region(ScopeKind.FILE):
				for item in program.items:
					self._exec_item(item, frame, owner=None)
		except _Return:
			raise RefcRuntimeError("return outside of a method", span=Span(file=file)) from None

	# Items

	def _exec_item(self, item: object, frame: _Frame, *, owner: Optional[TypeId]) -> None:
		if isinstance(item, ClassDef):
			self._exec_class(item)
		elif isinstance(item, InterfaceDef):
			self._exec_interface(item)
		elif isinstance(item, OverridesDef):
			self._exec_overrides(item)
		elif isinstance(item, MethodDef):
			self._define_method(item, owner)
		elif isinstance(item, IncludeStmt):
			self._exec_include(item, owner)
		else:
			self._exec_stmt(item, frame)

	def _exec_class(self, node: ClassDef) -> None:
		parent_id: Optional[TypeId] = None
		if node.parent is not None:
			parent_id = self._resolve_type(node.parent, node.loc)
			if self.types.get(parent_id).kind is not TypeKind.CLASS:
				raise self._error(f"superclass '{node.parent}' is not a class", node.loc)
		existing = self.types.lookup_name(node.name)
		if existing is not None:
			td = self.types.get(existing)
			if td.kind not in (TypeKind.CLASS, TypeKind.BUILTIN):
				raise self._error(f"'{node.name}' is not a class", node.loc)
			if parent_id is not None and td.parent != parent_id:
				raise self._error(f"superclass mismatch for class '{node.name}'", node.loc)
			type_id = existing
		else:
			type_id = self.types.new_class(node.name, parent_id if parent_id is not None else self._object)
		self._exec_type_body(node.body, type_id, ScopeKind.CLASS)

	def _exec_interface(self, node: InterfaceDef) -> None:
		existing = self.types.lookup_name(node.name)
		if existing is not None:
			if self.types.get(existing).kind is not TypeKind.INTERFACE:
				raise self._error(f"'{node.name}' is not an interface", node.loc)
			type_id = existing
		else:
			type_id = self.types.new_interface(node.name)
		self._exec_type_body(node.body, type_id, ScopeKind.MODULE)

	def _exec_type_body(self, body: List[object], type_id: TypeId, kind: ScopeKind) -> None:
		td = self.types.get(type_id)
		frame = _Frame(self_value=ClassRef(type_id) if td.metaclass is not None else None)
		with self.manager.region(kind, defining=type_id):
			for item in body:
				self._exec_item(item, frame, owner=type_id)

	def _define_method(self, node: MethodDef, owner: Optional[TypeId]) -> None:
		if owner is None:
			raise self._error(f"method '{node.name}' defined outside of a class", node.loc)
		target = owner
		if node.is_class_method:
			td = self.types.get(owner)
			if td.metaclass is None:
				raise self._error(f"{td.kind.name.lower()} '{td.name}' has no class-level methods", node.loc)
			target = td.metaclass
		self.manager.define_method(target, node.name, self._make_impl(node))

	def _exec_include(self, node: IncludeStmt, owner: Optional[TypeId]) -> None:
		if owner is None or self.types.get(owner).kind is TypeKind.INTERFACE:
			raise self._error("include is only allowed in a class body", node.loc)
		iface = self._resolve_type(node.name, node.loc)
		if self.types.get(iface).kind is not TypeKind.INTERFACE:
			raise self._error(f"'{node.name}' is not an interface", node.loc)
		self.types.include(owner, iface)

	def _exec_overrides(self, node: OverridesDef) -> None:
		entries = []
		for on in node.targets:
			type_id = self._resolve_type(on.type_name, on.loc)
			if on.is_meta:
				td = self.types.get(type_id)
				if td.metaclass is None:
					raise self._error(f"{td.kind.name.lower()} '{td.name}' has no class-level methods", on.loc)
				type_id = td.metaclass
			for method in on.methods:
				entries.append((type_id, method.name, self._make_impl(method)))
		try:
			self.override_sets[node.name] = self.manager.define_overrides(entries, label=node.name)
		except RefineError as err:
			self._pin(err, node.loc)
			raise

	def _make_impl(self, node: MethodDef):
		file = self._file

		def _impl(call: Invocation, receiver: Any, *args: Any) -> Any:
			return self._invoke_method(node, file, call, receiver, args)

		return _impl

	def _invoke_method(self, node: MethodDef, file: Optional[str], call: Invocation, receiver: Any, args: tuple) -> Any:
		if len(args) != len(node.params):
			raise RefcRuntimeError(
				f"wrong number of arguments for '{node.name}' (given {len(args)}, expected {len(node.params)})",
				method_name=node.name,
			)
		if self._depth >= self.max_call_depth:
			raise RefcRuntimeError(f"call depth limit exceeded ({self.max_call_depth})", method_name=node.name)
		frame = _Frame(self_value=receiver, locals=dict(zip(node.params, args)), call=call)
		saved_file = self._file
		self._file = file
		self._depth += 1
		try:
			with self.manager.region(ScopeKind.METHOD):
				self._exec_block(node.body, frame)
		except _Return as ret:
			return ret.value
		finally:
			self._depth -= 1
			self._file = saved_file
		return None

	# Statements

	def _exec_block(self, block: Block, frame: _Frame) -> None:
		for stmt in block.statements:
			self._exec_stmt(stmt, frame)

	def _exec_stmt(self, stmt: object, frame: _Frame) -> None:
		if isinstance(stmt, LetStmt):
			frame.locals[stmt.name] = self._eval(stmt.value, frame)
		elif isinstance(stmt, AssignStmt):
			if stmt.name not in frame.locals:
				raise self._error(f"assignment to undeclared variable '{stmt.name}'", stmt.loc)
			frame.locals[stmt.name] = self._eval(stmt.value, frame)
		elif isinstance(stmt, FieldAssignStmt):
			target = self._field_owner(frame, stmt.field, stmt.loc)
			target.fields[stmt.field] = self._eval(stmt.value, frame)
		elif isinstance(stmt, ReturnStmt):
			raise _Return(self._eval(stmt.value, frame) if stmt.value is not None else None)
		elif isinstance(stmt, PrintStmt):
			self._emit(" ".join(self._to_s(self._eval(arg, frame), arg.loc) for arg in stmt.args))
		elif isinstance(stmt, UsingStmt):
			self._exec_using(stmt)
		elif isinstance(stmt, IfStmt):
			if _truthy(self._eval(stmt.cond, frame)):
				self._exec_block(stmt.then_block, frame)
			elif stmt.else_block is not None:
				self._exec_block(stmt.else_block, frame)
		elif isinstance(stmt, EvalInStmt):
			self._exec_eval_in(stmt, frame)
		elif isinstance(stmt, ExprStmt):
			self._eval(stmt.expr, frame)
		else:
			raise RefcRuntimeError(f"unsupported statement {type(stmt).__name__}")

	def _exec_using(self, stmt: UsingStmt) -> None:
		override_set = self.override_sets.get(stmt.name)
		if override_set is None:
			raise self._error(f"unknown override set '{stmt.name}'", stmt.loc)
		try:
			self.manager.activate(override_set)
		except RefineError as err:
			self._pin(err, stmt.loc)
			raise

	def _exec_eval_in(self, stmt: EvalInStmt, frame: _Frame) -> None:
		type_id = self._resolve_type(stmt.type_name, stmt.loc)
		td = self.types.get(type_id)
		# Locals are shared with the enclosing frame; only `self` changes.
		inner = _Frame(
			self_value=ClassRef(type_id) if td.metaclass is not None else None,
			locals=frame.locals,
			call=frame.call,
		)
		block = self.manager.capture(lambda: self._exec_block(stmt.body, inner))
		self.manager.evaluate_in(type_id, block)

	# Expressions

	def _eval(self, expr: Expr, frame: _Frame) -> Any:
		if isinstance(expr, Literal):
			return expr.value
		if isinstance(expr, Name):
			return self._eval_name(expr, frame)
		if isinstance(expr, SelfRef):
			return frame.self_value
		if isinstance(expr, FieldRef):
			return self._field_owner(frame, expr.name, expr.loc).fields.get(expr.name)
		if isinstance(expr, Call):
			receiver = self._eval(expr.receiver, frame)
			args = [self._eval(arg, frame) for arg in expr.args]
			return self._dispatch(receiver, expr.method, args, expr.loc)
		if isinstance(expr, SuperCall):
			return self._eval_super(expr, frame)
		if isinstance(expr, Unary):
			return self._eval_unary(expr, frame)
		if isinstance(expr, Binary):
			return self._eval_binary(expr, frame)
		raise RefcRuntimeError(f"unsupported expression {type(expr).__name__}")

	def _eval_name(self, expr: Name, frame: _Frame) -> Any:
		if expr.ident in frame.locals:
			return frame.locals[expr.ident]
		type_id = self.types.lookup_name(expr.ident)
		if type_id is None:
			raise self._error(f"undefined variable '{expr.ident}'", expr.loc)
		if self.types.get(type_id).metaclass is None:
			raise self._error(f"interface '{expr.ident}' cannot be used as a value", expr.loc)
		return ClassRef(type_id)

	def _eval_super(self, expr: SuperCall, frame: _Frame) -> Any:
		if frame.call is None:
			raise self._error("super called outside of a method", expr.loc)
		args = [self._eval(arg, frame) for arg in expr.args]
		try:
			return frame.call.call_shadowed(*args)
		except RefineError as err:
			self._pin(err, expr.loc)
			raise

	def _eval_unary(self, expr: Unary, frame: _Frame) -> Any:
		value = self._eval(expr.operand, frame)
		if expr.op == "!":
			return not _truthy(value)
		if not _is_int(value):
			raise self._error(f"bad operand type for unary -: {self._type_name(value)}", expr.loc)
		return -value

	def _eval_binary(self, expr: Binary, frame: _Frame) -> Any:
		left = self._eval(expr.left, frame)
		if expr.op == "&&":
			return self._eval(expr.right, frame) if _truthy(left) else left
		if expr.op == "||":
			return left if _truthy(left) else self._eval(expr.right, frame)
		right = self._eval(expr.right, frame)
		op = expr.op
		if op == "==":
			return self._equals(left, right)
		if op == "!=":
			return not self._equals(left, right)
		if op == "+" and isinstance(left, str) and isinstance(right, str):
			return left + right
		if op in ("<", "<=", ">", ">=") and isinstance(left, str) and isinstance(right, str):
			return self._compare(op, left, right)
		if not (_is_int(left) and _is_int(right)):
			raise self._error(
				f"unsupported operand types for {op}: {self._type_name(left)} and {self._type_name(right)}",
				expr.loc,
			)
		if op == "+":
			return left + right
		if op == "-":
			return left - right
		if op == "*":
			return left * right
		if op in ("/", "%"):
			if right == 0:
				raise self._error("division by zero", expr.loc)
			return left // right if op == "/" else left % right
		return self._compare(op, left, right)

	@staticmethod
	def _compare(op: str, left: Any, right: Any) -> bool:
		if op == "<":
			return left < right
		if op == "<=":
			return left <= right
		if op == ">":
			return left > right
		return left >= right

	@staticmethod
	def _equals(left: Any, right: Any) -> bool:
		if isinstance(left, bool) or isinstance(right, bool):
			return left is right
		if isinstance(left, Instance) or isinstance(right, Instance):
			return left is right
		return type(left) is type(right) and left == right

	# Dispatch helpers

	def _dispatch(self, receiver: Any, method: str, args: List[Any], loc: Located) -> Any:
		try:
			return self.manager.dispatch(receiver, method, *args)
		except RefineError as err:
			self._pin(err, loc)
			raise
		except RecursionError:
			raise self._error("call depth limit exceeded (interpreter stack)", loc) from None

	def _to_s(self, value: Any, loc: Located) -> str:
		text = self._dispatch(value, "to_s", [], loc)
		if not isinstance(text, str):
			raise self._error(f"to_s for {self._type_name(value)} returned {self._type_name(text)}, not String", loc)
		return text

	def _field_owner(self, frame: _Frame, name: str, loc: Located) -> Instance:
		if not isinstance(frame.self_value, Instance):
			raise self._error(f"field '@{name}' used outside of an instance method", loc)
		return frame.self_value

	def _resolve_type(self, name: str, loc: Located) -> TypeId:
		type_id = self.types.lookup_name(name)
		if type_id is None:
			raise self._error(f"unknown type '{name}'", loc)
		return type_id

	def _type_name(self, value: Any) -> str:
		return self.types.name_of(self.types.type_of(value))

	def _emit(self, line: str) -> None:
		self.output.append(line)
		if self._out is not None:
			self._out.write(line + "\n")

	def _span(self, loc: Located) -> Span:
		return Span(file=self._file, line=loc.line, column=loc.column)

	def _error(self, message: str, loc: Located) -> RefcRuntimeError:
		return RefcRuntimeError(message, span=self._span(loc))

	def _pin(self, err: RefineError, loc: Located) -> None:
		if err.span is None:
			err.span = self._span(loc)

	# Builtins

	def _install_builtins(self) -> None:
		types = self.types
		define = self.manager.define_method
		obj_meta = types.metaclass_of(self._object)

		def _new(call: Invocation, cls: ClassRef, *args: Any) -> Instance:
			inst = Instance(cls.type_id)
			if self.manager.resolver.resolve(cls.type_id, "initialize").candidates:
				call.dispatch(inst, "initialize", *args)
			elif args:
				raise RefcRuntimeError(
					f"wrong number of arguments for 'new' (given {len(args)}, expected 0)",
					type_name=types.name_of(cls.type_id),
					method_name="new",
				)
			return inst

		define(obj_meta, "new", _new)
		define(obj_meta, "to_s", lambda call, cls: types.name_of(cls.type_id))
		define(self._object, "to_s", lambda call, inst: f"#<{types.name_of(inst.type_id)}>")

		int_ty = types.ensure_int()
		define(int_ty, "succ", lambda call, n: n + 1)
		define(int_ty, "pred", lambda call, n: n - 1)
		define(int_ty, "abs", lambda call, n: abs(n))
		define(int_ty, "to_s", lambda call, n: str(n))

		str_ty = types.ensure_string()
		define(str_ty, "length", lambda call, s: len(s))
		define(str_ty, "upcase", lambda call, s: s.upper())
		define(str_ty, "downcase", lambda call, s: s.lower())
		define(str_ty, "reverse", lambda call, s: s[::-1])
		define(str_ty, "to_s", lambda call, s: s)

		define(types.ensure_bool(), "to_s", lambda call, b: "true" if b else "false")
		define(types.ensure_nil(), "to_s", lambda call, _nil: "nil")


__all__ = ["DEFAULT_MAX_CALL_DEPTH", "Interpreter", "RefcRuntimeError"]
