import threading
from typing import Dict, Mapping, Optional

# Differential drive wiring: each motor has a forward and a backward pin.
LEFT_FORWARD_PIN = 5
LEFT_BACKWARD_PIN = 6
RIGHT_FORWARD_PIN = 9
RIGHT_BACKWARD_PIN = 10

FULL_SPEED = 255

MOTOR_PATTERNS: Dict[str, Dict[int, int]] = {
    "forward": {
        LEFT_FORWARD_PIN: FULL_SPEED,
        LEFT_BACKWARD_PIN: 0,
        RIGHT_FORWARD_PIN: FULL_SPEED,
        RIGHT_BACKWARD_PIN: 0,
    },
    "backward": {
        LEFT_FORWARD_PIN: 0,
        LEFT_BACKWARD_PIN: FULL_SPEED,
        RIGHT_FORWARD_PIN: 0,
        RIGHT_BACKWARD_PIN: FULL_SPEED,
    },
    "left": {
        LEFT_FORWARD_PIN: 0,
        LEFT_BACKWARD_PIN: FULL_SPEED,
        RIGHT_FORWARD_PIN: FULL_SPEED,
        RIGHT_BACKWARD_PIN: 0,
    },
    "right": {
        LEFT_FORWARD_PIN: FULL_SPEED,
        LEFT_BACKWARD_PIN: 0,
        RIGHT_FORWARD_PIN: 0,
        RIGHT_BACKWARD_PIN: FULL_SPEED,
    },
    "stop": {
        LEFT_FORWARD_PIN: 0,
        LEFT_BACKWARD_PIN: 0,
        RIGHT_FORWARD_PIN: 0,
        RIGHT_BACKWARD_PIN: 0,
    },
}


class HardwareBus:
    """Pin outputs, sensor inputs and queued host variable writes.

    Shared between the script thread and the host simulation; one lock
    covers all three stores and is only held for the duration of a single
    read or write.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pins: Dict[int, int] = {}
        self._sensors: Dict[int, float] = {}
        self._injections: Dict[str, float] = {}

    def reset(self) -> None:
        """Clear pins and pending injections; sensor readings belong to the host."""
        with self._lock:
            self._pins.clear()
            self._injections.clear()

    # --- Pins ---

    def write_pin(self, pin: int, value: int) -> None:
        with self._lock:
            self._pins[pin] = value

    def write_pins(self, pattern: Mapping[int, int]) -> None:
        with self._lock:
            self._pins.update(pattern)

    def read_pin(self, pin: int) -> int:
        with self._lock:
            return self._pins.get(pin, 0)

    def pins(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._pins)

    # --- Sensors ---

    def set_sensor(self, channel: int, distance: float) -> None:
        with self._lock:
            self._sensors[channel] = distance

    def read_sensor(self, channel: int) -> Optional[float]:
        with self._lock:
            return self._sensors.get(channel)

    # --- Host variable injection ---

    def inject(self, name: str, value: float) -> None:
        with self._lock:
            self._injections[name] = value

    def drain_injections(self) -> Dict[str, float]:
        with self._lock:
            pending, self._injections = self._injections, {}
        return pending
