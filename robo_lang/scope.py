from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import EnumDef, FunctionDef, Program, StructDef
from .types import TypeCanon
from .values import ArrayValue, Pile, Slot, StructValue

# Arduino-style constants every script can use.
BUILTIN_CONSTANTS = {"HIGH": 1, "LOW": 0, "OUTPUT": 1, "INPUT": 0, "INPUT_PULLUP": 2}


@dataclass
class Frame:
    function: str
    locals: Dict[str, Slot] = field(default_factory=dict)
    returned: bool = False
    return_value: Any = None


class Environment:
    """Definition tables, globals and the call stack of one loaded program.

    Only the thread executing the script touches the call stack and frame
    bindings.
    """

    def __init__(self):
        self.globals: Dict[str, Slot] = {}
        self.functions: Dict[str, FunctionDef] = {}
        self.structs: Dict[str, StructDef] = {}
        self.enums: Dict[str, EnumDef] = {}
        self.frames: List[Frame] = []

    @classmethod
    def from_program(cls, program: Program) -> "Environment":
        env = cls()
        env.functions = dict(program.functions)
        env.structs = dict(program.structs)
        env.enums = dict(program.enums)
        for name, value in BUILTIN_CONSTANTS.items():
            env.globals[name] = Slot("int", value)
        for enum in env.enums.values():
            for name, value in enum.members.items():
                env.globals[name] = Slot("int", value)
        return env

    # --- Frames ---

    @property
    def current_frame(self) -> Optional[Frame]:
        return self.frames[-1] if self.frames else None

    def push_frame(self, frame: Frame) -> None:
        self.frames.append(frame)

    def pop_frame(self) -> None:
        if self.frames:
            self.frames.pop()

    # --- Bindings ---

    def lookup(self, name: str) -> Optional[Slot]:
        frame = self.current_frame
        if frame is not None and name in frame.locals:
            return frame.locals[name]
        return self.globals.get(name)

    def declare(self, name: str, slot: Slot) -> None:
        frame = self.current_frame
        if frame is not None:
            frame.locals[name] = slot
        else:
            self.globals[name] = slot

    def bind(self, name: str) -> Slot:
        """Return the slot for `name`, creating an untyped one in the current scope."""
        slot = self.lookup(name)
        if slot is None:
            slot = Slot()
            self.declare(name, slot)
        return slot

    # --- Types ---

    def storage_type(self, type_name: str) -> str:
        return "int" if type_name in self.enums else type_name

    def default_value(self, type_name: str, _seen: frozenset = frozenset()) -> Any:
        if type_name in TypeCanon.INTEGER or type_name in self.enums:
            return 0
        if type_name in TypeCanon.FLOAT:
            return 0.0
        if type_name in TypeCanon.BOOL:
            return False
        if type_name in TypeCanon.PILE:
            return Pile()
        struct = self.structs.get(type_name)
        if struct is not None and type_name not in _seen:
            seen = _seen | {type_name}
            return StructValue(
                type_name,
                {
                    member: Slot(self.storage_type(member_type), self.default_value(member_type, seen))
                    for member, member_type in struct.members.items()
                },
            )
        if type_name in TypeCanon.VOID:
            return None
        return 0

    def new_slot(self, type_name: str) -> Slot:
        return Slot(self.storage_type(type_name), self.default_value(type_name))

    def new_array(self, type_name: str, size: int) -> ArrayValue:
        return ArrayValue([self.new_slot(type_name) for _ in range(size)])
