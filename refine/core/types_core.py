# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Minimal host type model used by the resolver and the refc interpreter.

TypeIds are opaque ints indexing into a TypeTable. Every class gets a paired
metaclass so class-level methods live in their own (type, method) namespace.
Interfaces are groupings of methods mixed into classes; they take part in
ancestor walks but can never be override targets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple


TypeId = int  # opaque handle into the TypeTable


class TypeKind(Enum):
	"""Kinds of types understood by the host type model."""

	CLASS = auto()
	METACLASS = auto()
	INTERFACE = auto()
	BUILTIN = auto()


@dataclass
class TypeDef:
	"""Definition of a type stored in the TypeTable."""

	kind: TypeKind
	name: str
	parent: Optional[TypeId] = None
	# Interfaces mixed in, in include order.
	includes: List[TypeId] = field(default_factory=list)
	# CLASS/BUILTIN <-> METACLASS pairing.
	metaclass: Optional[TypeId] = None
	instance_type: Optional[TypeId] = None

	@property
	def is_dispatch_bearing(self) -> bool:
		return self.kind is not TypeKind.INTERFACE


@dataclass(eq=False)
class Instance:
	"""A host object: a type plus mutable fields."""

	type_id: TypeId
	fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ClassRef:
	"""A class used as a receiver; dispatches through its metaclass."""

	type_id: TypeId


class TypeTable:
	"""
	Type table that owns TypeIds and answers hierarchy questions.

	`ancestors` is the walker the resolver calls outbound; it returns the type
	itself first, then its interfaces (most recently included first), then the
	parent's ancestors.
	"""

	def __init__(self) -> None:
		self._defs: Dict[TypeId, TypeDef] = {}
		self._by_name: Dict[str, TypeId] = {}
		self._next_id: TypeId = 1  # reserve 0 for "invalid"
		self._int_type: TypeId | None = None
		self._string_type: TypeId | None = None
		self._bool_type: TypeId | None = None
		self._nil_type: TypeId | None = None

	def new_class(self, name: str, parent: Optional[TypeId] = None) -> TypeId:
		"""Register a class (and its metaclass) and return the class TypeId."""
		if parent is not None:
			self._require_kind(parent, TypeKind.CLASS, TypeKind.BUILTIN)
		return self._add_with_meta(TypeKind.CLASS, name, parent)

	def new_interface(self, name: str) -> TypeId:
		"""Register an interface (a mixin grouping; not overridable)."""
		return self._add(TypeKind.INTERFACE, name, None)

	def new_builtin(self, name: str) -> TypeId:
		"""Register a builtin scalar type (Int, String, ...)."""
		return self._add_with_meta(TypeKind.BUILTIN, name, None)

	def ensure_int(self) -> TypeId:
		"""Return a stable Int TypeId, creating it once."""
		if self._int_type is None:
			self._int_type = self.new_builtin("Int")
		return self._int_type

	def ensure_string(self) -> TypeId:
		"""Return a stable String TypeId, creating it once."""
		if self._string_type is None:
			self._string_type = self.new_builtin("String")
		return self._string_type

	def ensure_bool(self) -> TypeId:
		"""Return a stable Bool TypeId, creating it once."""
		if self._bool_type is None:
			self._bool_type = self.new_builtin("Bool")
		return self._bool_type

	def ensure_nil(self) -> TypeId:
		"""Return a stable Nil TypeId, creating it once."""
		if self._nil_type is None:
			self._nil_type = self.new_builtin("Nil")
		return self._nil_type

	def include(self, type_id: TypeId, interface_id: TypeId) -> None:
		"""Mix an interface into a class; including twice is a no-op."""
		self._require_kind(interface_id, TypeKind.INTERFACE)
		td = self.get(type_id)
		if interface_id not in td.includes:
			td.includes.append(interface_id)

	def get(self, type_id: TypeId) -> TypeDef:
		"""Fetch the TypeDef for a given TypeId."""
		return self._defs[type_id]

	def has(self, type_id: TypeId) -> bool:
		return type_id in self._defs

	def lookup_name(self, name: str) -> TypeId | None:
		return self._by_name.get(name)

	def metaclass_of(self, type_id: TypeId) -> TypeId:
		td = self.get(type_id)
		if td.metaclass is None:
			raise KeyError(f"type {td.name} has no metaclass")
		return td.metaclass

	def name_of(self, type_id: TypeId) -> str:
		return self.get(type_id).name

	def ancestors(self, type_id: TypeId) -> Tuple[TypeId, ...]:
		"""Linearized ancestry, nearest first, each type at most once."""
		out: List[TypeId] = []
		cur: TypeId | None = type_id
		while cur is not None:
			td = self.get(cur)
			if cur not in out:
				out.append(cur)
			for iface in reversed(td.includes):
				if iface not in out:
					out.append(iface)
			cur = td.parent
		return tuple(out)

	def is_subtype(self, sub: TypeId, sup: TypeId) -> bool:
		return sup in self.ancestors(sub)

	def type_of(self, value: Any) -> TypeId:
		"""Map a host value onto its dispatch type."""
		if isinstance(value, Instance):
			return value.type_id
		if isinstance(value, ClassRef):
			return self.metaclass_of(value.type_id)
		# bool before int: bool is an int subclass.
		if isinstance(value, bool):
			return self.ensure_bool()
		if isinstance(value, int):
			return self.ensure_int()
		if isinstance(value, str):
			return self.ensure_string()
		if value is None:
			return self.ensure_nil()
		raise TypeError(f"value of Python type {type(value).__name__} has no host type")

	def _require_kind(self, type_id: TypeId, *kinds: TypeKind) -> None:
		td = self.get(type_id)
		if td.kind not in kinds:
			expected = "/".join(k.name.lower() for k in kinds)
			raise TypeError(f"type {td.name} is a {td.kind.name.lower()}, expected {expected}")

	def _add_with_meta(self, kind: TypeKind, name: str, parent: Optional[TypeId]) -> TypeId:
		ty_id = self._add(kind, name, parent)
		# Metaclasses mirror the class hierarchy.
		meta_parent = self.get(parent).metaclass if parent is not None else None
		meta_id = self._add(TypeKind.METACLASS, f"{name}.class", meta_parent)
		self._defs[ty_id].metaclass = meta_id
		self._defs[meta_id].instance_type = ty_id
		return ty_id

	def _add(self, kind: TypeKind, name: str, parent: Optional[TypeId]) -> TypeId:
		ty_id = self._next_id
		self._next_id += 1
		self._defs[ty_id] = TypeDef(kind=kind, name=name, parent=parent)
		if kind is not TypeKind.METACLASS:
			self._by_name[name] = ty_id
		return ty_id


__all__ = ["TypeId", "TypeKind", "TypeDef", "TypeTable", "Instance", "ClassRef"]
