import os
import tomllib
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .exceptions import RoboError

_ENV_KEYS = {
    "max_call_depth": "ROBO_MAX_CALL_DEPTH",
    "loop_yield_ms": "ROBO_LOOP_YIELD_MS",
    "turn_ms": "ROBO_TURN_MS",
    "init_budget_ms": "ROBO_INIT_BUDGET_MS",
}


@dataclass(frozen=True)
class RuntimeConfig:
    max_call_depth: int = 256
    loop_yield_ms: float = 1.0
    # 90 degrees at full opposite wheel speeds (180 deg/s).
    turn_ms: float = 500.0
    init_budget_ms: float = 1000.0
    sound_cm_per_us: float = 0.034
    max_array_size: int = 65536
    max_nesting: int = 64

    @property
    def loop_yield(self) -> float:
        return max(self.loop_yield_ms, 0.0) / 1000.0

    @property
    def init_budget(self) -> float:
        return max(self.init_budget_ms, 0.0) / 1000.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], base: Optional["RuntimeConfig"] = None) -> "RuntimeConfig":
        base = base or cls()
        known = {f.name for f in fields(cls)}
        updates: Dict[str, Any] = {}
        for key, raw in values.items():
            if key not in known:
                raise RoboError(f"Unknown runtime setting '{key}'")
            current = getattr(base, key)
            try:
                updates[key] = type(current)(raw)
            except (TypeError, ValueError) as e:
                raise RoboError(f"Invalid value for '{key}': {raw!r}") from e
        return replace(base, **updates)

    @classmethod
    def from_env(cls, base: Optional["RuntimeConfig"] = None) -> "RuntimeConfig":
        values = {key: os.environ[var] for key, var in _ENV_KEYS.items() if var in os.environ}
        return cls.from_mapping(values, base)

    @classmethod
    def from_toml(cls, path: str) -> "RuntimeConfig":
        with open(path, "rb") as f:
            data = tomllib.load(f)
        runtime = data.get("runtime", {})
        if not isinstance(runtime, dict):
            raise RoboError("[runtime] must be a table")
        return cls.from_env(cls.from_mapping(runtime))
