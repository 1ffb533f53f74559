# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
refc source -> AST.

The grammar lives beside this module in `grammar.lark`. The lark tree is
walked by hand (`_build_*`) into the dataclasses of `refine.refc.ast`; every
node keeps a `Located` so diagnostics can point at the source.
"""

from __future__ import annotations

import codecs
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree

from .ast import (
	AssignStmt,
	Binary,
	Block,
	Call,
	ClassDef,
	EvalInStmt,
	Expr,
	ExprStmt,
	FieldAssignStmt,
	FieldRef,
	IfStmt,
	IncludeStmt,
	InterfaceDef,
	LetStmt,
	Literal,
	Located,
	MethodDef,
	Name,
	OnBlock,
	OverridesDef,
	PrintStmt,
	Program,
	ReturnStmt,
	SelfRef,
	SuperCall,
	Unary,
	UsingStmt,
)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="program",
	propagate_positions=True,
	maybe_placeholders=False,
)

_BINARY_OPS = {
	"or_op": "||",
	"and_op": "&&",
	"eq": "==",
	"ne": "!=",
	"lt": "<",
	"le": "<=",
	"gt": ">",
	"ge": ">=",
	"add": "+",
	"sub": "-",
	"mul": "*",
	"div": "/",
	"mod": "%",
}


class RefcParseError(ValueError):
	"""
	User-facing error raised by the AST builder (not by the grammar).

	The CLI turns it into a parser-phase diagnostic pinned at `loc`.
	"""

	def __init__(self, message: str, *, loc: Optional[Located]) -> None:
		super().__init__(message)
		self.loc = loc


def parse_program(source: str) -> Program:
	tree = _PARSER.parse(source)
	return _build_program(tree)


def _name(node: Tree | Token) -> str:
	if isinstance(node, Tree):
		data = node.data
		if isinstance(data, Token):
			return data.value
		return data
	if isinstance(node, Token):
		return node.type
	return str(node)


def _loc(node: Tree | Token) -> Located:
	if isinstance(node, Token):
		return Located(line=node.line or 0, column=node.column or 0)
	meta = node.meta
	return Located(line=getattr(meta, "line", 0), column=getattr(meta, "column", 0))


def _tokens(tree: Tree, kind: str = "NAME") -> List[Token]:
	return [c for c in tree.children if isinstance(c, Token) and c.type == kind]


def _subtrees(tree: Tree, kind: str) -> List[Tree]:
	return [c for c in tree.children if isinstance(c, Tree) and _name(c) == kind]


def _decode_string_token(tok: Token) -> str:
	"""Decode a STRING token using Python-style escapes, keeping non-ASCII text intact."""
	content = tok.value[1:-1]
	try:
		# Characters outside latin-1 become \u escapes so they survive decoding.
		return codecs.decode(content.encode("latin-1", "backslashreplace"), "unicode_escape")
	except UnicodeError as err:
		raise RefcParseError(f"invalid string literal {tok.value}: {err.reason}", loc=_loc(tok)) from err


def _build_program(tree: Tree) -> Program:
	return Program(items=[_build_item(child) for child in tree.children if isinstance(child, Tree)])


def _build_item(node: Tree) -> object:
	kind = _name(node)
	if kind == "class_def":
		return _build_class_def(node)
	if kind == "interface_def":
		return _build_interface_def(node)
	if kind == "overrides_def":
		return _build_overrides_def(node)
	if kind in ("method_def", "class_method_def"):
		return _build_method_def(node)
	if kind == "include_stmt":
		return IncludeStmt(loc=_loc(node), name=str(_tokens(node)[0]))
	return _build_stmt(node)


def _build_class_def(node: Tree) -> ClassDef:
	name = str(_tokens(node)[0])
	parent: Optional[str] = None
	body: List[object] = []
	for child in node.children:
		if not isinstance(child, Tree):
			continue
		if _name(child) == "superclass":
			parent = str(_tokens(child)[0])
		else:
			body.append(_build_item(child))
	if parent == name:
		raise RefcParseError(f"class '{name}' cannot inherit from itself", loc=_loc(node))
	return ClassDef(loc=_loc(node), name=name, parent=parent, body=body)


def _build_interface_def(node: Tree) -> InterfaceDef:
	name = str(_tokens(node)[0])
	body = [_build_item(child) for child in node.children if isinstance(child, Tree)]
	return InterfaceDef(loc=_loc(node), name=name, body=body)


def _build_method_def(node: Tree) -> MethodDef:
	name = str(_tokens(node)[0])
	params: List[str] = []
	for params_node in _subtrees(node, "params"):
		for tok in _tokens(params_node):
			if str(tok) in params:
				raise RefcParseError(f"duplicate parameter '{tok}' in method '{name}'", loc=_loc(tok))
			params.append(str(tok))
	body = _build_block(_subtrees(node, "block")[0])
	return MethodDef(
		loc=_loc(node),
		name=name,
		params=params,
		body=body,
		is_class_method=_name(node) == "class_method_def",
	)


def _build_overrides_def(node: Tree) -> OverridesDef:
	name = str(_tokens(node)[0])
	targets: List[OnBlock] = []
	for child in node.children:
		if not isinstance(child, Tree):
			continue
		type_name = str(_tokens(child)[0])
		methods = [_build_method_def(m) for m in _subtrees(child, "method_def")]
		targets.append(
			OnBlock(loc=_loc(child), type_name=type_name, methods=methods, is_meta=_name(child) == "on_meta_block")
		)
	return OverridesDef(loc=_loc(node), name=name, targets=targets)


def _build_block(node: Tree) -> Block:
	return Block(statements=[_build_stmt(child) for child in node.children if isinstance(child, Tree)])


def _build_stmt(node: Tree) -> object:
	kind = _name(node)
	loc = _loc(node)
	if kind == "let_stmt":
		return LetStmt(loc=loc, name=str(_tokens(node)[0]), value=_build_expr(_expr_children(node)[0]))
	if kind == "assign_stmt":
		return AssignStmt(loc=loc, name=str(_tokens(node)[0]), value=_build_expr(_expr_children(node)[0]))
	if kind == "field_assign_stmt":
		field_tok = _tokens(node, "FIELD")[0]
		return FieldAssignStmt(loc=loc, field=str(field_tok)[1:], value=_build_expr(_expr_children(node)[0]))
	if kind == "return_stmt":
		exprs = _expr_children(node)
		return ReturnStmt(loc=loc, value=_build_expr(exprs[0]) if exprs else None)
	if kind == "print_stmt":
		return PrintStmt(loc=loc, args=_build_args(node))
	if kind == "using_stmt":
		return UsingStmt(loc=loc, name=str(_tokens(node)[0]))
	if kind == "if_stmt":
		return _build_if(node)
	if kind == "eval_in_stmt":
		return EvalInStmt(loc=loc, type_name=str(_tokens(node)[0]), body=_build_block(_subtrees(node, "block")[0]))
	if kind == "expr_stmt":
		return ExprStmt(loc=loc, expr=_build_expr(_expr_children(node)[0]))
	if kind in ("class_def", "interface_def", "overrides_def", "method_def", "class_method_def", "include_stmt"):
		return _build_item(node)
	raise RefcParseError(f"unexpected construct '{kind}'", loc=loc)


def _build_if(node: Tree) -> IfStmt:
	children = [c for c in node.children if isinstance(c, (Tree, Token))]
	cond = _build_expr(children[0])
	then_block = _build_block(children[1])
	else_block: Optional[Block] = None
	if len(children) > 2:
		clause = children[2]
		target = next(c for c in clause.children if isinstance(c, Tree))
		if _name(target) == "block":
			else_block = _build_block(target)
		else:
			else_block = Block(statements=[_build_if(target)])
	return IfStmt(loc=_loc(node), cond=cond, then_block=then_block, else_block=else_block)


def _expr_children(node: Tree) -> List[Tree | Token]:
	"""Children that are expressions (the statement's own NAME/FIELD tokens excluded)."""
	out: List[Tree | Token] = []
	for child in node.children:
		if isinstance(child, Token) and child.type in ("NAME", "FIELD"):
			continue
		out.append(child)
	return out


def _build_args(node: Tree) -> List[Expr]:
	args_nodes = _subtrees(node, "args")
	if not args_nodes:
		return []
	return [_build_expr(c) for c in args_nodes[0].children]


def _build_expr(node: Tree | Token) -> Expr:
	if isinstance(node, Token):
		raise RefcParseError(f"unexpected token '{node}'", loc=_loc(node))
	kind = _name(node)
	loc = _loc(node)
	if kind == "int_lit":
		return Literal(loc=loc, value=int(node.children[0]))
	if kind == "str_lit":
		return Literal(loc=loc, value=_decode_string_token(node.children[0]))
	if kind == "true_lit":
		return Literal(loc=loc, value=True)
	if kind == "false_lit":
		return Literal(loc=loc, value=False)
	if kind == "nil_lit":
		return Literal(loc=loc, value=None)
	if kind == "self_ref":
		return SelfRef(loc=loc)
	if kind == "name_ref":
		return Name(loc=loc, ident=str(node.children[0]))
	if kind == "field_ref":
		return FieldRef(loc=loc, name=str(node.children[0])[1:])
	if kind == "super_call":
		return SuperCall(loc=loc, args=_build_args(node))
	if kind == "call":
		receiver = node.children[0]
		method = next(c for c in node.children[1:] if isinstance(c, Token) and c.type == "NAME")
		return Call(loc=_loc(method), receiver=_build_expr(receiver), method=str(method), args=_build_args(node))
	if kind == "neg":
		return Unary(loc=loc, op="-", operand=_build_expr(node.children[0]))
	if kind == "not_op":
		return Unary(loc=loc, op="!", operand=_build_expr(node.children[0]))
	if kind in _BINARY_OPS:
		left, right = node.children
		return Binary(loc=loc, op=_BINARY_OPS[kind], left=_build_expr(left), right=_build_expr(right))
	raise RefcParseError(f"unsupported expression '{kind}'", loc=loc)


__all__ = ["RefcParseError", "parse_program"]
