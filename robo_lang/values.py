"""Runtime value model.

Scalars are plain Python values (None for void, bool, int, float). Structs,
arrays and piles are mutable containers whose elements live in Slots, and a
Reference holds the Slot it denotes rather than a position inside a
container.
"""

from typing import Any, Dict, List, Optional

from .types import TypeCanon


class Slot:
    """A storage cell with a declared type."""

    __slots__ = ("type_name", "value")

    def __init__(self, type_name: str = "", value: Any = None):
        self.type_name = type_name
        self.value = value

    def store(self, value: Any) -> Any:
        value = deref(value)
        current = self.value
        if isinstance(current, (StructValue, ArrayValue, Pile)):
            # Containers only take values of their own shape.
            if _same_shape(current, value):
                self.value = copy_value(value)
            return self.value
        self.value = TypeCanon.coerce(self.type_name, copy_value(value))
        return self.value

    def __repr__(self) -> str:
        return f"Slot({self.type_name!r}, {self.value!r})"


class Reference:
    __slots__ = ("slot",)

    def __init__(self, slot: Slot):
        self.slot = slot

    def __repr__(self) -> str:
        return f"Reference({self.slot!r})"


class StructValue:
    __slots__ = ("type_name", "fields")

    def __init__(self, type_name: str, fields: Optional[Dict[str, Slot]] = None):
        self.type_name = type_name
        self.fields: Dict[str, Slot] = fields if fields is not None else {}

    def __repr__(self) -> str:
        return f"StructValue({self.type_name!r}, {self.fields!r})"


class ArrayValue:
    __slots__ = ("items",)

    def __init__(self, items: Optional[List[Slot]] = None):
        self.items: List[Slot] = items if items is not None else []

    def slot_at(self, index: int) -> Optional[Slot]:
        if 0 <= index < len(self.items):
            return self.items[index]
        return None

    def __repr__(self) -> str:
        return f"ArrayValue({self.items!r})"


class Pile:
    """LIFO stack of ints."""

    __slots__ = ("items",)

    def __init__(self, items: Optional[List[int]] = None):
        self.items: List[int] = items if items is not None else []

    def push(self, value: Any) -> None:
        self.items.append(TypeCanon.to_int(deref(value)))

    def pop(self) -> int:
        return self.items.pop() if self.items else 0

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return f"Pile({self.items!r})"


def _same_shape(current: Any, value: Any) -> bool:
    if isinstance(current, StructValue):
        return isinstance(value, StructValue) and value.type_name == current.type_name
    return type(current) is type(value)


def deref(value: Any) -> Any:
    while isinstance(value, Reference):
        value = value.slot.value
    return value


def copy_value(value: Any) -> Any:
    if isinstance(value, StructValue):
        return StructValue(
            value.type_name,
            {name: Slot(s.type_name, copy_value(s.value)) for name, s in value.fields.items()},
        )
    if isinstance(value, ArrayValue):
        return ArrayValue([Slot(s.type_name, copy_value(s.value)) for s in value.items])
    if isinstance(value, Pile):
        return Pile(list(value.items))
    return value


def to_number(value: Any) -> float:
    return TypeCanon.to_float(deref(value))


def truthy(value: Any) -> bool:
    value = deref(value)
    if value is None:
        return False
    if isinstance(value, (bool, int, float)):
        return value != 0
    return True


def to_python(value: Any) -> Any:
    value = deref(value)
    if isinstance(value, StructValue):
        return {name: to_python(s.value) for name, s in value.fields.items()}
    if isinstance(value, ArrayValue):
        return [to_python(s.value) for s in value.items]
    if isinstance(value, Pile):
        return list(value.items)
    return value


def format_value(value: Any) -> str:
    value = deref(value)
    if value is None:
        return "void"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return f"{value:g}"
    return str(to_python(value))
