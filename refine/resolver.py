# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scoped dispatch atop the base MethodTable.

Resolution for `dispatch(receiver, name)` walks the receiver's ancestry,
nearest type first. For each type `T` on that walk the candidates for
`(T, name)` are, in order:
- frames on the calling context's ScopeStack, most recent first,
- sticky sets attached to the receiver's type or any ancestor (nearest type
  first, most recently attached first),
- the base method defined on `T`.

An override of an ancestor's method therefore never hides a method the
receiver's own class defines; it applies once lookup reaches that ancestor.

An OverrideSet contributes at most one candidate per key, so activating a set
twice is invisible. The winning implementation runs under its own lexical
frames (plus its defining set, for overrides); the caller's frames never leak
into it. Calling the shadowed version is always explicit via
`Invocation.call_shadowed`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, List, Optional, Set, Tuple

from refine.core.errors import NoMethodError
from refine.core.types_core import TypeId, TypeKind
from refine.host_protocol import BaseDispatch, HostTypes
from refine.method_table import Implementation
from refine.override_set import Override, OverrideSet
from refine.scope_stack import ActivationFrame, ScopeKind, ScopeStack
from refine.sticky import StickyAttachments


class CandidateSource(Enum):
	FRAME = auto()
	STICKY = auto()
	BASE = auto()


@dataclass(frozen=True)
class Candidate:
	"""One implementation in the resolution chain."""

	fn: Implementation
	lexical: Tuple[ActivationFrame, ...]
	source: CandidateSource
	# Type the implementation was defined on (an ancestor of the receiver type).
	owner_type: TypeId
	override_set: Optional[OverrideSet] = None

	@property
	def is_override(self) -> bool:
		return self.override_set is not None


@dataclass(frozen=True)
class MethodResolution:
	"""Candidate chain for one (type, method) in one calling context."""

	type_id: TypeId
	method_name: str
	candidates: Tuple[Candidate, ...]

	@property
	def winner(self) -> Optional[Candidate]:
		return self.candidates[0] if self.candidates else None


class Invocation:
	"""
	Handle passed as the first argument to every implementation.

	Gives the body its defining OverrideSet, explicit access to the shadowed
	implementation, and dispatch from the body's own lexical context.
	"""

	def __init__(self, resolver: "Resolver", resolution: MethodResolution, index: int, receiver: Any) -> None:
		self._resolver = resolver
		self._resolution = resolution
		self._index = index
		self.receiver = receiver

	@property
	def method_name(self) -> str:
		return self._resolution.method_name

	@property
	def candidate(self) -> Candidate:
		return self._resolution.candidates[self._index]

	@property
	def override_set(self) -> Optional[OverrideSet]:
		return self.candidate.override_set

	@property
	def has_shadowed(self) -> bool:
		return self._index + 1 < len(self._resolution.candidates)

	def call_shadowed(self, *args: Any) -> Any:
		"""Invoke the next-outer override or the base implementation."""
		if not self.has_shadowed:
			types = self._resolver.types
			raise NoMethodError(
				f"no shadowed implementation of '{self.method_name}' for "
				f"{types.get(self._resolution.type_id).name}",
				type_name=types.get(self._resolution.type_id).name,
				method_name=self.method_name,
			)
		return self._resolver.invoke(self._resolution, self._index + 1, self.receiver, args)

	def dispatch(self, receiver: Any, method_name: str, *args: Any) -> Any:
		return self._resolver.dispatch(receiver, method_name, *args)


class Resolver:
	def __init__(
		self,
		types: HostTypes,
		methods: BaseDispatch,
		stack: ScopeStack,
		sticky: StickyAttachments,
	) -> None:
		self.types = types
		self.methods = methods
		self.stack = stack
		self.sticky = sticky

	def dispatch(self, receiver: Any, method_name: str, *args: Any) -> Any:
		type_id = self.types.type_of(receiver)
		resolution = self.resolve(type_id, method_name)
		if not resolution.candidates:
			name = self.types.get(type_id).name
			raise NoMethodError(
				f"undefined method '{method_name}' for {name}",
				type_name=name,
				method_name=method_name,
			)
		return self.invoke(resolution, 0, receiver, args)

	def resolve(self, type_id: TypeId, method_name: str) -> MethodResolution:
		ancestry = self.types.ancestors(type_id)
		frames = self.stack.top_down()
		sticky_sets: List[OverrideSet] = []
		for owner in self._sticky_owners(ancestry):
			for override_set in reversed(self.sticky.for_type(owner)):
				if all(s is not override_set for s in sticky_sets):
					sticky_sets.append(override_set)

		candidates: List[Candidate] = []
		for ty in ancestry:
			# A set contributes at most one candidate per key.
			seen: Set[int] = set()
			for frame in frames:
				cand = self._from_set(frame.override_set, ty, method_name, CandidateSource.FRAME, seen)
				if cand is not None:
					candidates.append(cand)
			for override_set in sticky_sets:
				cand = self._from_set(override_set, ty, method_name, CandidateSource.STICKY, seen)
				if cand is not None:
					candidates.append(cand)
			decl = self.methods.lookup(ty, method_name)
			if decl is not None:
				candidates.append(
					Candidate(fn=decl.fn, lexical=decl.lexical, source=CandidateSource.BASE, owner_type=ty)
				)

		return MethodResolution(type_id=type_id, method_name=method_name, candidates=tuple(candidates))

	def invoke(self, resolution: MethodResolution, index: int, receiver: Any, args: Tuple[Any, ...]) -> Any:
		cand = resolution.candidates[index]
		frames = cand.lexical
		if cand.override_set is not None:
			frames = frames + (ActivationFrame(cand.override_set, ScopeKind.METHOD),)
		call = Invocation(self, resolution, index, receiver)
		with self.stack.replaced(frames):
			return cand.fn(call, receiver, *args)

	def _sticky_owners(self, ancestry: Tuple[TypeId, ...]) -> List[TypeId]:
		# Class-level receivers also see sets attached to their instance types.
		owners = list(ancestry)
		for ty in ancestry:
			td = self.types.get(ty)
			if td.kind is TypeKind.METACLASS and td.instance_type is not None:
				owners.append(td.instance_type)
		return owners

	@staticmethod
	def _from_set(
		override_set: OverrideSet,
		ty: TypeId,
		method_name: str,
		source: CandidateSource,
		seen: Set[int],
	) -> Optional[Candidate]:
		if override_set.set_id in seen:
			return None
		ov: Optional[Override] = override_set.lookup(ty, method_name)
		if ov is None:
			return None
		seen.add(override_set.set_id)
		return Candidate(
			fn=ov.fn,
			lexical=ov.lexical,
			source=source,
			owner_type=ty,
			override_set=override_set,
		)


__all__ = [
	"CandidateSource",
	"Candidate",
	"MethodResolution",
	"Invocation",
	"Resolver",
]
