import logging
import math
import operator
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import RuntimeConfig
from .exceptions import ScriptHalted
from .models import Diagnostic, FunctionDef, Intrinsic
from .nodes import (
    Assign,
    Binary,
    Block,
    Call,
    Conditional,
    DoWhile,
    Expr,
    ExprStmt,
    For,
    If,
    Index,
    Literal,
    Member,
    Postfix,
    Return,
    Stmt,
    Unary,
    VarDecl,
    Variable,
    While,
)
from .scope import Environment, Frame
from .types import TypeCanon
from .values import (
    ArrayValue,
    Reference,
    Slot,
    StructValue,
    copy_value,
    deref,
    to_number,
    truthy,
)

logger = logging.getLogger(__name__)


def _divide(left: float, right: float) -> float:
    return left / right if right != 0 else 0.0


def _modulo(left: float, right: float) -> int:
    a, b = TypeCanon.to_int(left), TypeCanon.to_int(right)
    return int(math.fmod(a, b)) if b != 0 else 0


BINARY_OPS: Dict[str, Callable[[float, float], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "%": _modulo,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


class Evaluator:
    """Walks statement and expression trees against an Environment.

    Statement execution checks the cancellation event and the optional
    deadline before every statement; loops yield through `pause()` between iterations. Once the
    current frame's return flag is set, every remaining statement in that
    frame is skipped.
    """

    def __init__(
        self,
        env: Environment,
        config: RuntimeConfig,
        cancel: threading.Event,
        on_suspend: Optional[Callable[[], None]] = None,
    ):
        self.env = env
        self.config = config
        self.cancel = cancel
        self.on_suspend = on_suspend
        # Monotonic time after which execution halts; None means unbounded.
        self.deadline: Optional[float] = None
        self.intrinsics: Dict[str, Intrinsic] = {}
        self.diagnostics: List[Diagnostic] = []
        self._reported: set = set()

        self._statements: Dict[type, Callable[[Any], None]] = {
            Block: self._block,
            If: self._if,
            While: self._while,
            DoWhile: self._do_while,
            For: self._for,
            Return: self._return,
            ExprStmt: self._expr_stmt,
            VarDecl: self._var_decl,
        }
        self._expressions: Dict[type, Callable[[Any], Any]] = {
            Binary: self._binary,
            Unary: self._unary,
            Postfix: self._postfix,
            Literal: self._literal,
            Variable: self._variable,
            Call: self._call_value,
            Member: self._read_location,
            Index: self._read_location,
            Assign: self._assign,
            Conditional: self._conditional,
        }
        self._locators: Dict[type, Callable[[Any, bool], Optional[Slot]]] = {
            Variable: self._locate_variable,
            Member: self._locate_member,
            Index: self._locate_index,
            Unary: self._locate_unary,
            Call: self._locate_call,
        }

    # --- Suspension ---

    def sleep(self, seconds: float) -> None:
        if self.deadline is not None:
            remaining = self.deadline - time.monotonic()
            if seconds >= remaining:
                self.cancel.wait(max(remaining, 0.0))
                raise ScriptHalted()
        if self.cancel.wait(seconds):
            raise ScriptHalted()
        if self.on_suspend is not None:
            self.on_suspend()

    def pause(self) -> None:
        self.sleep(self.config.loop_yield)

    def report(self, line: int, message: str) -> None:
        key = (line, message)
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning("line %s: %s", line, message)
        self.diagnostics.append(Diagnostic(line, message))

    # --- Statements ---

    def halted(self) -> bool:
        if self.cancel.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def execute(self, stmt: Stmt) -> None:
        if self.halted():
            raise ScriptHalted()
        if self._returning():
            return
        self._statements[type(stmt)](stmt)

    def _returning(self) -> bool:
        frame = self.env.current_frame
        return frame is not None and frame.returned

    def _block(self, node: Block) -> None:
        for stmt in node.body:
            self.execute(stmt)
            if self._returning():
                return

    def _if(self, node: If) -> None:
        if truthy(self.evaluate(node.cond)):
            self.execute(node.then)
        elif node.otherwise is not None:
            self.execute(node.otherwise)

    def _while(self, node: While) -> None:
        while truthy(self.evaluate(node.cond)):
            self.execute(node.body)
            if self._returning():
                return
            self.pause()

    def _do_while(self, node: DoWhile) -> None:
        while True:
            self.execute(node.body)
            if self._returning() or not truthy(self.evaluate(node.cond)):
                return
            self.pause()

    def _for(self, node: For) -> None:
        if node.init is not None:
            self.execute(node.init)
        while node.cond is None or truthy(self.evaluate(node.cond)):
            self.execute(node.body)
            if self._returning():
                return
            if node.step is not None:
                self.evaluate(node.step)
            self.pause()

    def _return(self, node: Return) -> None:
        frame = self.env.current_frame
        if frame is None:
            return
        func = self.env.functions.get(frame.function)
        if node.value is not None:
            if func is not None and func.returns_ref:
                slot = self.locate(node.value)
                frame.return_value = Reference(slot if slot is not None else Slot())
            else:
                value = self.evaluate(node.value)
                if func is not None:
                    if func.return_type == "void":
                        value = None
                    else:
                        value = TypeCanon.coerce(self.env.storage_type(func.return_type), value)
                frame.return_value = value
        frame.returned = True

    def _expr_stmt(self, node: ExprStmt) -> None:
        self.evaluate(node.expr)

    def _var_decl(self, node: VarDecl) -> None:
        if node.by_ref:
            target = self.locate(node.init, create=True) if node.init is not None else None
            self.env.declare(node.name, target if target is not None else self.env.new_slot(node.type_name))
            return
        if node.size is not None:
            size = TypeCanon.to_int(self.evaluate(node.size))
            array = self.env.new_array(node.type_name, min(max(size, 0), self.config.max_array_size))
            for slot, item in zip(array.items, node.items or ()):
                slot.store(self.evaluate(item))
            self.env.declare(node.name, Slot(self.env.storage_type(node.type_name), array))
            return
        slot = self.env.new_slot(node.type_name)
        if node.init is not None:
            slot.store(self.evaluate(node.init))
        self.env.declare(node.name, slot)

    # --- Expressions ---

    def evaluate(self, expr: Expr) -> Any:
        return self._expressions[type(expr)](expr)

    def _literal(self, node: Literal) -> Any:
        return node.value

    def _variable(self, node: Variable) -> Any:
        slot = self.env.lookup(node.name)
        return copy_value(slot.value) if slot is not None else None

    def _read_location(self, node: Expr) -> Any:
        slot = self.locate(node)
        return copy_value(slot.value) if slot is not None else None

    def _binary(self, node: Binary) -> Any:
        if node.op == "&&":
            return truthy(self.evaluate(node.left)) and truthy(self.evaluate(node.right))
        if node.op == "||":
            return truthy(self.evaluate(node.left)) or truthy(self.evaluate(node.right))
        left = to_number(self.evaluate(node.left))
        right = to_number(self.evaluate(node.right))
        return BINARY_OPS[node.op](left, right)

    def _unary(self, node: Unary) -> Any:
        if node.op == "!":
            return not truthy(self.evaluate(node.operand))
        if node.op == "-":
            return -to_number(self.evaluate(node.operand))
        if node.op == "&":
            slot = self.locate(node.operand, create=True)
            return Reference(slot if slot is not None else Slot())
        return self._step(node.operand, node.op, prefix=True)

    def _postfix(self, node: Postfix) -> Any:
        return self._step(node.operand, node.op, prefix=False)

    def _step(self, target: Expr, op: str, prefix: bool) -> Any:
        slot = self.locate(target, create=True) or Slot()
        before = copy_value(slot.value)
        after = slot.store(to_number(before) + (1.0 if op == "++" else -1.0))
        return after if prefix else before

    def _assign(self, node: Assign) -> Any:
        value = self.evaluate(node.value)
        slot = self.locate(node.target, create=True) or Slot()
        if node.op != "=":
            value = BINARY_OPS[node.op[0]](to_number(slot.value), to_number(value))
        return copy_value(slot.store(value))

    def _conditional(self, node: Conditional) -> Any:
        if truthy(self.evaluate(node.cond)):
            return self.evaluate(node.then)
        return self.evaluate(node.otherwise)

    # --- Addressable locations ---

    def locate(self, expr: Expr, create: bool = False) -> Optional[Slot]:
        """Resolve `expr` to the slot that stores it.

        Variables, members and elements resolve to their owning slot (None
        when missing or out of bounds); any other expression yields a
        temporary slot holding its value.
        """
        locator = self._locators.get(type(expr))
        if locator is None:
            return Slot("", self.evaluate(expr))
        return locator(expr, create)

    def _locate_variable(self, node: Variable, create: bool) -> Optional[Slot]:
        return self.env.bind(node.name) if create else self.env.lookup(node.name)

    def _locate_member(self, node: Member, create: bool) -> Optional[Slot]:
        base = self.locate(node.base)
        value = deref(base.value) if base is not None else None
        if isinstance(value, StructValue):
            return value.fields.get(node.name)
        return None

    def _locate_index(self, node: Index, create: bool) -> Optional[Slot]:
        base = self.locate(node.base)
        index = TypeCanon.to_int(self.evaluate(node.index))
        value = deref(base.value) if base is not None else None
        if isinstance(value, ArrayValue):
            return value.slot_at(index)
        return None

    def _locate_unary(self, node: Unary, create: bool) -> Optional[Slot]:
        if node.op == "&":
            return self.locate(node.operand, create)
        return Slot("", self.evaluate(node))

    def _locate_call(self, node: Call, create: bool) -> Optional[Slot]:
        result = self._call(node)
        if isinstance(result, Reference):
            return result.slot
        return Slot("", result)

    # --- Calls ---

    def _call_value(self, node: Call) -> Any:
        return copy_value(deref(self._call(node)))

    def _call(self, node: Call) -> Any:
        intrinsic = self.intrinsics.get(node.name)
        if intrinsic is not None:
            return intrinsic.func(*self._intrinsic_args(intrinsic, node.args))
        func = self.env.functions.get(node.name)
        if func is None:
            self.report(node.line, f"Unknown function '{node.name}'")
            return None
        return self.invoke(func, self._bind_arguments(func, node.args), node.line)

    def _intrinsic_args(self, intrinsic: Intrinsic, args: Sequence[Expr]) -> List[Any]:
        values: List[Any] = []
        for position, arg in enumerate(args):
            if position >= intrinsic.arity:
                self.evaluate(arg)
            elif position in intrinsic.by_ref:
                slot = self.locate(arg)
                values.append(Reference(slot if slot is not None else Slot()))
            else:
                values.append(self.evaluate(arg))
        values.extend([0.0] * (intrinsic.arity - len(values)))
        return values

    def _bind_arguments(self, func: FunctionDef, args: Sequence[Expr]) -> Dict[str, Slot]:
        bindings: Dict[str, Slot] = {}
        for position, param in enumerate(func.params):
            arg = args[position] if position < len(args) else None
            if param.by_ref:
                slot = self.locate(arg, create=True) if arg is not None else None
                bindings[param.name] = slot if slot is not None else self.env.new_slot(param.type_name)
            else:
                slot = self.env.new_slot(param.type_name)
                if arg is not None:
                    slot.store(self.evaluate(arg))
                bindings[param.name] = slot
        for arg in args[len(func.params):]:
            self.evaluate(arg)
        return bindings

    def invoke(self, func: FunctionDef, bindings: Dict[str, Slot], line: int = 0) -> Any:
        if len(self.env.frames) >= self.config.max_call_depth:
            self.report(line, f"Call depth limit reached calling '{func.name}'")
            return None
        frame = Frame(func.name, bindings)
        self.env.push_frame(frame)
        try:
            self.execute(func.body)
        finally:
            self.env.pop_frame()
        return frame.return_value

    def call_function(self, name: str) -> Any:
        """Invoke a user function with no arguments; missing functions return void."""
        func = self.env.functions.get(name)
        if func is None:
            return None
        return deref(self.invoke(func, self._bind_arguments(func, ())))
