from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Tuple

from .nodes import Stmt, VarDecl


@dataclass(frozen=True)
class Param:
    type_name: str
    name: str
    by_ref: bool = False


@dataclass(frozen=True)
class FunctionDef:
    name: str
    return_type: str
    params: Tuple[Param, ...]
    body: Stmt
    returns_ref: bool = False
    line: int = 0


@dataclass
class StructDef:
    name: str
    # Insertion order is declaration order.
    members: Dict[str, str] = field(default_factory=dict)


@dataclass
class EnumDef:
    name: str
    members: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Diagnostic:
    line: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass
class Program:
    functions: Dict[str, FunctionDef] = field(default_factory=dict)
    structs: Dict[str, StructDef] = field(default_factory=dict)
    enums: Dict[str, EnumDef] = field(default_factory=dict)
    globals: List[VarDecl] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass(frozen=True)
class Intrinsic:
    """A built-in callable; arguments at `by_ref` positions arrive as References."""

    name: str
    func: Callable[..., Any]
    arity: int
    by_ref: FrozenSet[int] = frozenset()
