"""AST node definitions.

Statements and expressions are two closed families; the evaluator keeps one
handler per class and dispatches on the exact node type.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple


class Stmt:
    """Base for statement nodes."""

    __slots__ = ()


class Expr:
    """Base for expression nodes."""

    __slots__ = ()


# --- Statements ---


@dataclass(frozen=True)
class Block(Stmt):
    body: Tuple[Stmt, ...]
    line: int = 0


@dataclass(frozen=True)
class If(Stmt):
    cond: Expr
    then: Stmt
    otherwise: Optional[Stmt] = None
    line: int = 0


@dataclass(frozen=True)
class While(Stmt):
    cond: Expr
    body: Stmt
    line: int = 0


@dataclass(frozen=True)
class DoWhile(Stmt):
    body: Stmt
    cond: Expr
    line: int = 0


@dataclass(frozen=True)
class For(Stmt):
    init: Optional[Stmt]
    cond: Optional[Expr]
    step: Optional[Expr]
    body: Stmt
    line: int = 0


@dataclass(frozen=True)
class Return(Stmt):
    value: Optional[Expr] = None
    line: int = 0


@dataclass(frozen=True)
class ExprStmt(Stmt):
    expr: Expr
    line: int = 0


@dataclass(frozen=True)
class VarDecl(Stmt):
    type_name: str
    name: str
    init: Optional[Expr] = None
    size: Optional[Expr] = None
    items: Optional[Tuple[Expr, ...]] = None
    by_ref: bool = False
    const: bool = False
    line: int = 0


# --- Expressions ---


@dataclass(frozen=True)
class Binary(Expr):
    op: str
    left: Expr
    right: Expr
    line: int = 0


@dataclass(frozen=True)
class Unary(Expr):
    # "!", "-", "++", "--" or "&" (address-of)
    op: str
    operand: Expr
    line: int = 0


@dataclass(frozen=True)
class Postfix(Expr):
    op: str
    operand: Expr
    line: int = 0


@dataclass(frozen=True)
class Literal(Expr):
    value: Any
    line: int = 0


@dataclass(frozen=True)
class Variable(Expr):
    name: str
    line: int = 0


@dataclass(frozen=True)
class Call(Expr):
    name: str
    args: Tuple[Expr, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class Member(Expr):
    base: Expr
    name: str
    line: int = 0


@dataclass(frozen=True)
class Index(Expr):
    base: Expr
    index: Expr
    line: int = 0


@dataclass(frozen=True)
class Assign(Expr):
    target: Expr
    value: Expr
    op: str = "="
    line: int = 0


@dataclass(frozen=True)
class Conditional(Expr):
    cond: Expr
    then: Expr
    otherwise: Expr
    line: int = 0
