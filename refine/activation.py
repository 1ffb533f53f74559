# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Activation regions and propagation rules.

A Region owns the frames activated inside it and pops all of them when it
exits, on every exit path. Propagation beyond plain push/pop:

- lexical: nested regions see outer frames without re-activation; methods and
  override sets defined through the manager capture the frames active at
  their definition and run under them,
- subclass/reopen: activation inside a region that is defining type T
  attaches the set to T; the resolver consults it for T and all subtypes,
- dynamic re-entry: `reenter(T)` and `evaluate_in(T, block)` push T's sticky
  sets for the duration of the re-entered execution.

Only instance dispatch is affected by activating a set. Class-level methods
live on the metaclass and must be targeted there explicitly.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable, Iterator, List, Optional, Set, Tuple

from refine.core.errors import InactiveRegionError
from refine.core.types_core import TypeId, TypeKind, TypeTable
from refine.method_table import Implementation, MethodDef, MethodTable
from refine.override_set import OverrideSet, define_overrides
from refine.resolver import Resolver
from refine.scope_stack import ActivationFrame, ScopeKind, ScopeStack
from refine.sticky import StickyAttachments


class RegionState(Enum):
	INACTIVE = auto()
	ACTIVE = auto()
	CLOSED = auto()


def _execution_key() -> Tuple[int, Optional[int]]:
	try:
		task = asyncio.current_task()
	except RuntimeError:
		task = None
	return threading.get_ident(), (id(task) if task is not None else None)


class Region:
	"""
	A lexical or dynamic activation region.

	INACTIVE -> ACTIVE on entry, ACTIVE -> CLOSED on exit; a region is never
	re-entered.
	"""

	def __init__(
		self,
		stack: ScopeStack,
		sticky: StickyAttachments,
		kind: ScopeKind,
		*,
		parent: Optional["Region"] = None,
		defining: Optional[TypeId] = None,
		attaches: bool = True,
	) -> None:
		self.kind = kind
		self.parent = parent
		self.defining = defining
		self.state = RegionState.INACTIVE
		self._stack = stack
		self._sticky = sticky
		self._attaches = attaches
		self._frames: List[ActivationFrame] = []
		self._activated: Set[int] = set()
		self._owner: Tuple[int, Optional[int]] | None = None

	@property
	def defining_type(self) -> Optional[TypeId]:
		"""Type whose definition this region belongs to, if any."""
		if not self._attaches:
			return None
		if self.defining is not None:
			return self.defining
		if self.kind is ScopeKind.METHOD or self.parent is None:
			return None
		return self.parent.defining_type

	@property
	def frames(self) -> Tuple[ActivationFrame, ...]:
		return tuple(self._frames)

	def activate(self, override_set: OverrideSet) -> bool:
		"""
		Make `override_set` visible for the rest of this region.

		Returns False when the region already activated the set (no new frame).
		"""
		if self.state is not RegionState.ACTIVE:
			raise InactiveRegionError(
				f"cannot activate {override_set.label}: {self.kind.name.lower()} region is {self.state.name.lower()}"
			)
		if self._stack.current_region is not self or _execution_key() != self._owner:
			raise InactiveRegionError(
				f"cannot activate {override_set.label}: region is not the innermost region of this execution context"
			)
		if override_set.set_id in self._activated:
			return False
		frame = ActivationFrame(override_set, self.kind)
		self._stack.push(frame)
		self._frames.append(frame)
		self._activated.add(override_set.set_id)
		owner = self.defining_type
		if owner is not None:
			self._sticky.attach(owner, override_set)
		return True

	def _enter(self) -> None:
		if self.state is not RegionState.INACTIVE:
			raise InactiveRegionError(f"{self.kind.name.lower()} region cannot be entered twice")
		self.state = RegionState.ACTIVE
		self._owner = _execution_key()

	def _exit(self) -> None:
		self.state = RegionState.CLOSED
		while self._frames:
			self._stack.pop(expected=self._frames.pop())


@dataclass(frozen=True)
class CapturedBlock:
	"""A deferred body plus the frames active where it was captured."""

	fn: Callable[..., Any]
	frames: Tuple[ActivationFrame, ...]


class ActivationManager:
	"""
	Front door for hosts: owns the type table, base methods, scope stack,
	sticky attachments and the resolver built over them.
	"""

	def __init__(self, types: Optional[TypeTable] = None, methods: Optional[MethodTable] = None) -> None:
		self.types = types if types is not None else TypeTable()
		self.methods = methods if methods is not None else MethodTable()
		self.stack = ScopeStack()
		self.sticky = StickyAttachments()
		self.resolver = Resolver(self.types, self.methods, self.stack, self.sticky)

	@contextmanager
	def region(self, kind: ScopeKind = ScopeKind.FILE, *, defining: Optional[TypeId] = None) -> Iterator[Region]:
		with self._open(kind, defining=defining, attaches=True) as region:
			yield region

	def current_region(self) -> Optional[Region]:
		return self.stack.current_region

	def activate(self, override_set: OverrideSet) -> bool:
		"""Activate into the innermost region of the current execution context."""
		region = self.current_region()
		if region is None:
			raise InactiveRegionError(f"cannot activate {override_set.label} outside an activation region")
		return region.activate(override_set)

	def define_overrides(
		self,
		entries: Iterable[Tuple[TypeId, str, Implementation]],
		*,
		label: Optional[str] = None,
	) -> OverrideSet:
		"""Build an OverrideSet whose bodies see the frames active right now."""
		return define_overrides(self.types, entries, label=label, lexical=self.stack.snapshot())

	def define_method(self, type_id: TypeId, name: str, fn: Implementation) -> MethodDef:
		"""Register a base method whose body sees the frames active right now."""
		return self.methods.define(type_id, name, fn, lexical=self.stack.snapshot())

	def sticky_sets(self, type_id: TypeId) -> Tuple[OverrideSet, ...]:
		"""Sets sticky on `type_id` and its ancestors, farthest ancestor first."""
		out: List[OverrideSet] = []
		for ty in reversed(self.types.ancestors(type_id)):
			for override_set in self.sticky.for_type(ty):
				if all(s is not override_set for s in out):
					out.append(override_set)
		return tuple(out)

	@contextmanager
	def reenter(self, type_id: TypeId) -> Iterator[Region]:
		"""Re-push the sticky sets of `type_id` (and ancestors) for the body."""
		kind = ScopeKind.MODULE if self.types.get(type_id).kind is TypeKind.INTERFACE else ScopeKind.CLASS
		with self._open(kind, defining=None, attaches=False) as region:
			for override_set in self.sticky_sets(type_id):
				region.activate(override_set)
			yield region

	def capture(self, fn: Callable[..., Any]) -> CapturedBlock:
		return CapturedBlock(fn=fn, frames=self.stack.snapshot())

	def evaluate_in(self, type_id: TypeId, block: CapturedBlock, *args: Any) -> Any:
		"""Run a captured block in the context of `type_id`."""
		with self.stack.replaced(block.frames):
			with self.reenter(type_id):
				return block.fn(*args)

	def dispatch(self, receiver: Any, method_name: str, *args: Any) -> Any:
		return self.resolver.dispatch(receiver, method_name, *args)

	@contextmanager
	def _open(self, kind: ScopeKind, *, defining: Optional[TypeId], attaches: bool) -> Iterator[Region]:
		region = Region(
			self.stack,
			self.sticky,
			kind,
			parent=self.stack.current_region,
			defining=defining,
			attaches=attaches,
		)
		region._enter()
		try:
			with self.stack.entered_region(region):
				yield region
		finally:
			region._exit()


__all__ = ["RegionState", "Region", "CapturedBlock", "ActivationManager"]
