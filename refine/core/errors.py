# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured errors raised by the override resolver.

Every error carries a stable `reason_code` so hosts can map failures onto
their own diagnostics without matching on message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from .span import Span


@dataclass(eq=False)
class RefineError(Exception):
	"""Base class for resolver errors; never retried by the library."""

	reason_code: ClassVar[str] = "refine-error"

	message: str
	type_name: str | None = None
	method_name: str | None = None
	span: Span | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"type_name": self.type_name,
			"method_name": self.method_name,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.type_name is not None and self.method_name is not None:
			parts.append(f"target={self.type_name}#{self.method_name}")
		elif self.type_name is not None:
			parts.append(f"target={self.type_name}")
		return " ".join(parts)


class DuplicateOverrideError(RefineError):
	"""The same (type, method) pair was declared twice in one definition batch."""

	reason_code = "duplicate-override"


class InvalidTargetError(RefineError):
	"""Override target is not a concrete dispatch-bearing type."""

	reason_code = "invalid-target"


class NoMethodError(RefineError):
	"""Neither an active override nor a base implementation matched."""

	reason_code = "no-method"


class StackUnderflowError(RefineError):
	"""
	A frame was popped without a matching push.

	This is a host bookkeeping bug; the library never catches it.
	"""

	reason_code = "stack-underflow"


class InactiveRegionError(RefineError):
	"""Activation was attempted outside an active region."""

	reason_code = "inactive-region"


__all__ = [
	"RefineError",
	"DuplicateOverrideError",
	"InvalidTargetError",
	"NoMethodError",
	"StackUnderflowError",
	"InactiveRegionError",
]
