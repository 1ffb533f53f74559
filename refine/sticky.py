# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-type sticky override attachments.

Process-wide and append-only: writers serialize on a lock and replace the
per-type tuple; readers take no lock and always see a complete tuple.
"""

from __future__ import annotations

import threading
from typing import Dict, Tuple

from refine.core.types_core import TypeId
from refine.override_set import OverrideSet


class StickyAttachments:
	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._by_type: Dict[TypeId, Tuple[OverrideSet, ...]] = {}

	def attach(self, type_id: TypeId, override_set: OverrideSet) -> bool:
		"""Attach a set to a type; returns False if it was already attached."""
		with self._lock:
			current = self._by_type.get(type_id, ())
			if any(s is override_set for s in current):
				return False
			self._by_type[type_id] = current + (override_set,)
			return True

	def for_type(self, type_id: TypeId) -> Tuple[OverrideSet, ...]:
		"""Sets attached to exactly `type_id`, in attachment order."""
		return self._by_type.get(type_id, ())


__all__ = ["StickyAttachments"]
