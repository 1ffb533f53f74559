# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Outbound interfaces the resolver needs from its host.

The bundled TypeTable and MethodTable implement these; another runtime can
plug in its own type hierarchy and base dispatch table as long as it honours
the same shape. TypeIds are treated as opaque hashable handles.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Tuple

from refine.core.types_core import TypeDef, TypeId
from refine.method_table import MethodDef


class HostTypes(Protocol):
	"""Type-hierarchy walker and receiver classifier."""

	def type_of(self, value: Any) -> TypeId:
		"""Return the dispatch type of a receiver."""
		...

	def ancestors(self, type_id: TypeId) -> Tuple[TypeId, ...]:
		"""
		Return `type_id` followed by its ancestors, nearest first.

		Each type must appear at most once.
		"""
		...

	def get(self, type_id: TypeId) -> TypeDef:
		...

	def has(self, type_id: TypeId) -> bool:
		...


class BaseDispatch(Protocol):
	"""The host's own (non-overridden) dispatch table."""

	def lookup(self, type_id: TypeId, name: str) -> Optional[MethodDef]:
		"""Return the method defined directly on `type_id`, or None."""
		...


__all__ = ["HostTypes", "BaseDispatch"]
