# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Base dispatch table: the methods types define for themselves.

Overrides never touch this table. The resolver only reads from it, walking the
receiver's ancestry after every active override has been considered.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

from refine.core.types_core import TypeId

if TYPE_CHECKING:
	from refine.scope_stack import ActivationFrame

# impl(call: Invocation, receiver, *args) -> result
Implementation = Callable[..., Any]


@dataclass(frozen=True)
class MethodDef:
	"""A base method plus the frames that were active where it was defined."""

	type_id: TypeId
	name: str
	fn: Implementation
	lexical: Tuple["ActivationFrame", ...] = ()


class MethodTable:
	"""
	Store base methods keyed by (type, name).

	Redefining a method replaces it; that is the host's own open-class
	behaviour and is independent of overrides.
	"""

	def __init__(self) -> None:
		self._methods: Dict[Tuple[TypeId, str], MethodDef] = {}

	def define(
		self,
		type_id: TypeId,
		name: str,
		fn: Implementation,
		*,
		lexical: Tuple["ActivationFrame", ...] = (),
	) -> MethodDef:
		decl = MethodDef(type_id=type_id, name=name, fn=fn, lexical=tuple(lexical))
		self._methods[(type_id, name)] = decl
		return decl

	def lookup(self, type_id: TypeId, name: str) -> Optional[MethodDef]:
		return self._methods.get((type_id, name))

	def __len__(self) -> int:
		return len(self._methods)


__all__ = ["Implementation", "MethodDef", "MethodTable"]
