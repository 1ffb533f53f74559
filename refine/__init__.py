# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
refine: scoped method overrides for dynamic-dispatch hosts.

An OverrideSet redefines methods of existing types; activating it in a
region makes the redefinitions visible to dispatch from inside that region
only. The base dispatch table is never modified.

Layout:
  core:          spans, diagnostics, errors, TypeTable host type model
  method_table:  base (non-overridden) methods
  override_set:  immutable override bundles
  scope_stack:   per-execution-context activation frames
  resolver:      candidate chain and dispatch
  activation:    regions, sticky attachment, dynamic re-entry
  refc:          small interpreted language built on the above
"""

from refine.activation import ActivationManager, CapturedBlock, Region, RegionState
from refine.core.errors import (
	DuplicateOverrideError,
	InactiveRegionError,
	InvalidTargetError,
	NoMethodError,
	RefineError,
	StackUnderflowError,
)
from refine.core.types_core import ClassRef, Instance, TypeKind, TypeTable
from refine.method_table import MethodTable
from refine.override_set import Override, OverrideSet, define_overrides
from refine.resolver import Invocation, MethodResolution, Resolver
from refine.scope_stack import ActivationFrame, ScopeKind, ScopeStack

__all__ = [
	"ActivationFrame",
	"ActivationManager",
	"CapturedBlock",
	"ClassRef",
	"DuplicateOverrideError",
	"InactiveRegionError",
	"Instance",
	"InvalidTargetError",
	"Invocation",
	"MethodResolution",
	"MethodTable",
	"NoMethodError",
	"Override",
	"OverrideSet",
	"RefineError",
	"Region",
	"RegionState",
	"Resolver",
	"ScopeKind",
	"ScopeStack",
	"StackUnderflowError",
	"TypeKind",
	"TypeTable",
	"define_overrides",
]
