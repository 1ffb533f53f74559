# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-execution-context stack of activation frames.

The stack lives in a `contextvars.ContextVar` holding an immutable tuple, so
each thread and each asyncio task has its own stack. A task spawned from a
region starts with a snapshot of its parent's frames; pushes and pops it
performs are never observed by the parent or by sibling tasks. Threads do
not copy contextvars: a thread starts empty unless its target runs under
`contextvars.copy_context().run`.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable, Iterator, Optional, Tuple

from refine.core.errors import StackUnderflowError
from refine.override_set import OverrideSet

_stack_ids = itertools.count(1)


class ScopeKind(Enum):
	"""Which kind of region pushed a frame."""

	FILE = auto()
	MODULE = auto()
	CLASS = auto()
	METHOD = auto()


@dataclass(frozen=True, eq=False)
class ActivationFrame:
	"""
	One activation of an OverrideSet.

	Frames compare by identity: a fresh frame is created for every activation
	and never reused by another region.
	"""

	override_set: OverrideSet
	kind: ScopeKind

	def __repr__(self) -> str:
		return f"ActivationFrame({self.override_set.label}, {self.kind.name})"


class ScopeStack:
	"""
	Ordered frames for the current execution context (outermost first).

	Only the ActivationManager and the Resolver mutate the stack. The stack also
	tracks the innermost open region of the context, so a body run under
	`replaced` frames cannot activate into a region of its caller.
	"""

	def __init__(self, name: Optional[str] = None) -> None:
		name = name or f"refine.scope_stack.{next(_stack_ids)}"
		self._var: ContextVar[Tuple[ActivationFrame, ...]] = ContextVar(name, default=())
		self._region_var: ContextVar[Any] = ContextVar(f"{name}.region", default=None)

	def push(self, frame: ActivationFrame) -> None:
		self._var.set(self._var.get() + (frame,))

	def pop(self, expected: Optional[ActivationFrame] = None) -> ActivationFrame:
		"""
		Remove and return the most recent frame.

		With `expected`, the top frame must be that exact frame; anything else
		means a region is popping a frame it did not push.
		"""
		frames = self._var.get()
		if not frames:
			raise StackUnderflowError("pop on an empty scope stack")
		top = frames[-1]
		if expected is not None and top is not expected:
			raise StackUnderflowError(
				f"pop expected {expected!r} but the top of the scope stack is {top!r}"
			)
		self._var.set(frames[:-1])
		return top

	def top_down(self) -> Tuple[ActivationFrame, ...]:
		"""Frames most recent first."""
		return tuple(reversed(self._var.get()))

	def snapshot(self) -> Tuple[ActivationFrame, ...]:
		"""Frames outermost first; safe to keep (the tuple never changes)."""
		return self._var.get()

	@contextmanager
	def replaced(self, frames: Iterable[ActivationFrame]) -> Iterator[None]:
		"""Run the body under exactly `frames`, restoring the caller's stack on exit."""
		token = self._var.set(tuple(frames))
		region_token = self._region_var.set(None)
		try:
			yield
		finally:
			self._region_var.reset(region_token)
			self._var.reset(token)

	@property
	def current_region(self) -> Any:
		return self._region_var.get()

	@contextmanager
	def entered_region(self, region: Any) -> Iterator[None]:
		token = self._region_var.set(region)
		try:
			yield
		finally:
			self._region_var.reset(token)

	def __len__(self) -> int:
		return len(self._var.get())


__all__ = ["ScopeKind", "ActivationFrame", "ScopeStack"]
