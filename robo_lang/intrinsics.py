import logging
from typing import Any, Callable, Dict, Optional

from .config import RuntimeConfig
from .hardware import MOTOR_PATTERNS, HardwareBus
from .interfaces import IOHandler
from .models import Intrinsic
from .types import TypeCanon
from .values import Pile, Reference, deref, format_value, to_number

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    return TypeCanon.to_int(deref(value))


class Intrinsics:
    """The fixed catalogue of built-in calls available to every script.

    `sleep` suspends the executing script thread and raises ScriptHalted
    when a stop is requested while waiting.
    """

    def __init__(
        self,
        bus: HardwareBus,
        config: RuntimeConfig,
        sleep: Callable[[float], None],
        io: IOHandler,
    ):
        self.bus = bus
        self.config = config
        self.sleep = sleep
        self.io = io

    def register_into(self, table: Dict[str, Intrinsic]) -> None:
        def add(name: str, func: Callable[..., Any], arity: int, by_ref=frozenset()):
            table[name] = Intrinsic(name, func, arity, frozenset(by_ref))

        add("digitalWrite", self._write_pin, 2)
        add("analogWrite", self._write_pin, 2)
        add("pinMode", self._pin_mode, 2)
        add("delay", self._delay, 1)
        add("delayMicroseconds", self._delay_microseconds, 1)
        add("pulseIn", self._pulse_in, 3)
        add("push", self._push, 2, by_ref={0})
        add("pop", self._pop, 1, by_ref={0})
        add("forward", self._motion("forward"), 0)
        add("backward", self._motion("backward"), 0)
        add("stop", self._motion("stop"), 0)
        add("left", self._turn("left"), 0)
        add("right", self._turn("right"), 0)
        add("print", self._print, 1)
        add("println", self._print, 1)

    # --- Pins ---

    def _write_pin(self, pin: Any, value: Any) -> None:
        self.bus.write_pin(_as_int(pin), _as_int(value))

    @staticmethod
    def _pin_mode(pin: Any, mode: Any) -> None:
        return None

    # --- Timing ---

    def _delay(self, ms: Any) -> None:
        self.sleep(max(to_number(ms), 0.0) / 1000.0)

    def _delay_microseconds(self, us: Any) -> None:
        self.sleep(max(to_number(us), 0.0) / 1_000_000.0)

    # --- Sonar ---

    def _pulse_in(self, channel: Any, level: Any, timeout: Any) -> float:
        """Echo duration in microseconds for the distance injected on `channel`.

        The pulse covers the round trip, so duration = distance * 2 / speed
        of sound. Returns 0 for an unset channel or when the duration exceeds
        a positive `timeout`.
        """
        distance = self.bus.read_sensor(_as_int(channel))
        if distance is None:
            return 0.0
        duration = max(distance, 0.0) * 2.0 / self.config.sound_cm_per_us
        limit = to_number(timeout)
        if limit > 0 and duration > limit:
            return 0.0
        return duration

    # --- Piles ---

    @staticmethod
    def _pile(ref: Any) -> Optional[Pile]:
        if isinstance(ref, Reference) and isinstance(ref.slot.value, Pile):
            return ref.slot.value
        return None

    def _push(self, ref: Any, value: Any) -> None:
        pile = self._pile(ref)
        if pile is not None:
            pile.push(value)

    def _pop(self, ref: Any) -> int:
        pile = self._pile(ref)
        return pile.pop() if pile is not None else 0

    # --- Motion ---

    def _motion(self, name: str) -> Callable[[], None]:
        pattern = MOTOR_PATTERNS[name]

        def drive() -> None:
            self.bus.write_pins(pattern)

        return drive

    def _turn(self, name: str) -> Callable[[], None]:
        pattern = MOTOR_PATTERNS[name]

        def turn() -> None:
            self.bus.write_pins(pattern)
            try:
                self.sleep(self.config.turn_ms / 1000.0)
            finally:
                self.bus.write_pins(MOTOR_PATTERNS["stop"])

        return turn

    # --- Output ---

    def _print(self, value: Any) -> None:
        try:
            self.io.emit(">", format_value(value))
        except Exception as e:
            logger.warning("Script output failed: %s", e)
