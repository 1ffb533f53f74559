"""
refine.core: shared types, spans, diagnostics and errors.

Modules:
  - span: source locations
  - diagnostics: Diagnostic records rendered by the CLI
  - errors: RefineError and the resolver's error kinds
  - types_core: TypeId/TypeTable host type model
"""

__all__ = [
	"span",
	"diagnostics",
	"errors",
	"types_core",
]
