# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Immutable bundles of method overrides.

An OverrideSet maps (target type, method name) to an implementation. It is
built in one `define_overrides` call and never changes afterwards; the set
object itself is the handle passed to activation.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, Mapping, Optional, Tuple

from refine.core.errors import DuplicateOverrideError, InvalidTargetError
from refine.core.types_core import TypeId
from refine.method_table import Implementation

if TYPE_CHECKING:
	from refine.host_protocol import HostTypes
	from refine.scope_stack import ActivationFrame

OverrideKey = Tuple[TypeId, str]

_set_ids = itertools.count(1)


@dataclass(frozen=True)
class Override:
	"""One (target type, method name, implementation) triple."""

	target_type: TypeId
	method_name: str
	fn: Implementation
	# Frames active where the owning set was defined.
	lexical: Tuple["ActivationFrame", ...] = ()

	@property
	def key(self) -> OverrideKey:
		return (self.target_type, self.method_name)


class OverrideSet:
	"""
	Immutable override bundle; identity is the set id.

	Two sets with the same contents are still different handles: activation
	and resolution compare sets by identity.
	"""

	__slots__ = ("_id", "_label", "_overrides")

	def __init__(self, overrides: Mapping[OverrideKey, Override], *, label: Optional[str] = None) -> None:
		set_id = next(_set_ids)
		object.__setattr__(self, "_id", set_id)
		object.__setattr__(self, "_label", label or f"overrides#{set_id}")
		object.__setattr__(self, "_overrides", MappingProxyType(dict(overrides)))

	def __setattr__(self, name: str, value: object) -> None:
		raise AttributeError(f"OverrideSet is immutable (cannot set {name!r})")

	def __delattr__(self, name: str) -> None:
		raise AttributeError(f"OverrideSet is immutable (cannot delete {name!r})")

	@property
	def set_id(self) -> int:
		return self._id

	@property
	def label(self) -> str:
		return self._label

	def lookup(self, target_type: TypeId, method_name: str) -> Optional[Override]:
		"""Pure read: the override for exactly this key, if any."""
		return self._overrides.get((target_type, method_name))

	def keys(self) -> Tuple[OverrideKey, ...]:
		return tuple(self._overrides.keys())

	def targets(self) -> frozenset[TypeId]:
		return frozenset(ty for ty, _ in self._overrides)

	def __contains__(self, key: object) -> bool:
		return key in self._overrides

	def __len__(self) -> int:
		return len(self._overrides)

	def __repr__(self) -> str:
		return f"OverrideSet({self._label!r}, {len(self._overrides)} overrides)"


def _check_target(types: "HostTypes", target_type: TypeId, method_name: str) -> None:
	if not types.has(target_type):
		raise InvalidTargetError(
			f"cannot override '{method_name}' on unknown type id {target_type}",
			method_name=method_name,
		)
	td = types.get(target_type)
	if not td.is_dispatch_bearing:
		raise InvalidTargetError(
			f"cannot override '{method_name}' on {td.kind.name.lower()} '{td.name}': "
			"only concrete dispatch-bearing types can be override targets",
			type_name=td.name,
			method_name=method_name,
		)


def define_overrides(
	types: "HostTypes",
	entries: Iterable[Tuple[TypeId, str, Implementation]],
	*,
	label: Optional[str] = None,
	lexical: Iterable["ActivationFrame"] = (),
) -> OverrideSet:
	"""
	Build a new OverrideSet from a batch of (target, method, impl) declarations.

	Rejects duplicate keys within the batch and targets that are not
	dispatch-bearing. `lexical` is the frame sequence (outermost first) that
	override bodies run under, in addition to the set itself.
	"""
	frames = tuple(lexical)
	overrides: dict[OverrideKey, Override] = {}
	for target_type, method_name, fn in entries:
		_check_target(types, target_type, method_name)
		key = (target_type, method_name)
		if key in overrides:
			raise DuplicateOverrideError(
				f"'{method_name}' is overridden twice for '{types.get(target_type).name}' in one definition",
				type_name=types.get(target_type).name,
				method_name=method_name,
			)
		overrides[key] = Override(target_type=target_type, method_name=method_name, fn=fn, lexical=frames)
	return OverrideSet(overrides, label=label)


__all__ = ["Override", "OverrideKey", "OverrideSet", "define_overrides"]
