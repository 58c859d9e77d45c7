import math
from typing import Any


class TypeCanon:
    """Primitive type families and the coercions applied when storing."""

    INTEGER = {"int", "long"}
    FLOAT = {"float"}
    BOOL = {"bool"}
    VOID = {"void"}
    PILE = {"pile"}

    @classmethod
    def coerce(cls, type_name: str, value: Any) -> Any:
        """Convert `value` for storage in a slot declared as `type_name`.

        Non-scalar declared types keep the value unchanged.
        """
        if type_name in cls.INTEGER:
            return cls.to_int(value)
        if type_name in cls.FLOAT:
            return cls.to_float(value)
        if type_name in cls.BOOL:
            return cls.to_float(value) != 0.0
        return value

    @staticmethod
    def to_float(value: Any) -> float:
        if isinstance(value, (bool, int, float)):
            return float(value)
        return 0.0

    @classmethod
    def to_int(cls, value: Any) -> int:
        # Truncates toward zero; inf and nan read as 0.
        result = cls.to_float(value)
        return int(result) if math.isfinite(result) else 0
