from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class Located:
	line: int
	column: int


@dataclass
class Block:
	statements: List["Stmt"]


class Stmt:
	loc: Located


class Expr:
	loc: Located


# Items


@dataclass
class MethodDef:
	loc: Located
	name: str
	params: List[str]
	body: Block
	is_class_method: bool = False


@dataclass
class IncludeStmt(Stmt):
	loc: Located
	name: str


@dataclass
class ClassDef(Stmt):
	loc: Located
	name: str
	parent: Optional[str]
	body: List[object] = field(default_factory=list)


@dataclass
class InterfaceDef(Stmt):
	loc: Located
	name: str
	body: List[object] = field(default_factory=list)


@dataclass
class OnBlock:
	loc: Located
	type_name: str
	methods: List[MethodDef]
	is_meta: bool = False


@dataclass
class OverridesDef(Stmt):
	loc: Located
	name: str
	targets: List[OnBlock]


# Statements


@dataclass
class LetStmt(Stmt):
	loc: Located
	name: str
	value: Expr


@dataclass
class AssignStmt(Stmt):
	loc: Located
	name: str
	value: Expr


@dataclass
class FieldAssignStmt(Stmt):
	loc: Located
	field: str
	value: Expr


@dataclass
class ReturnStmt(Stmt):
	loc: Located
	value: Optional[Expr]


@dataclass
class PrintStmt(Stmt):
	loc: Located
	args: List[Expr]


@dataclass
class UsingStmt(Stmt):
	loc: Located
	name: str


@dataclass
class IfStmt(Stmt):
	loc: Located
	cond: Expr
	then_block: Block
	else_block: Optional[Block] = None


@dataclass
class EvalInStmt(Stmt):
	loc: Located
	type_name: str
	body: Block


@dataclass
class ExprStmt(Stmt):
	loc: Located
	expr: Expr


# Expressions


@dataclass
class Literal(Expr):
	loc: Located
	value: Any


@dataclass
class Name(Expr):
	loc: Located
	ident: str


@dataclass
class SelfRef(Expr):
	loc: Located


@dataclass
class FieldRef(Expr):
	loc: Located
	name: str


@dataclass
class Call(Expr):
	loc: Located
	receiver: Expr
	method: str
	args: List[Expr]


@dataclass
class SuperCall(Expr):
	loc: Located
	args: List[Expr]


@dataclass
class Unary(Expr):
	loc: Located
	op: str
	operand: Expr


@dataclass
class Binary(Expr):
	loc: Located
	op: str
	left: Expr
	right: Expr


@dataclass
class Program:
	items: List[object]
