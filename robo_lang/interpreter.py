import logging
import sys
import threading
import time
from typing import Any, Dict, List, Optional

from .config import RuntimeConfig
from .evaluator import Evaluator
from .exceptions import RoboError, ScriptHalted
from .hardware import HardwareBus
from .interfaces import ConsoleIO, IOHandler
from .intrinsics import Intrinsics
from .models import Diagnostic, Program
from .parser import parse
from .scope import Environment
from .values import Slot, to_python

logger = logging.getLogger(__name__)


class RoboInterpreter:
    """Loads a robot script and runs it on a background thread.

    The driver is Idle until `start()` spawns the execution thread, which
    calls `setup()` once and then `loop()` until `stop()` is requested.
    Pins, sensors and queued variable writes live on the HardwareBus, the
    only state shared with the host thread.
    """

    def __init__(
        self,
        config: Optional[RuntimeConfig] = None,
        io_handler: Optional[IOHandler] = None,
        bus: Optional[HardwareBus] = None,
    ):
        self.config = config if config is not None else RuntimeConfig()
        self.io = io_handler if io_handler is not None else ConsoleIO()
        self.bus = bus if bus is not None else HardwareBus()

        self._control = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._program = Program()
        self._evaluator = self._build_evaluator(Environment())

        try:
            sys.setrecursionlimit(
                max(sys.getrecursionlimit(), self.config.max_call_depth * 20 + 1000)
            )
        except Exception:
            pass

    def _build_evaluator(self, env: Environment) -> Evaluator:
        evaluator = Evaluator(env, self.config, threading.Event(), on_suspend=self._apply_injections)
        Intrinsics(self.bus, self.config, evaluator.sleep, self.io).register_into(evaluator.intrinsics)
        return evaluator

    # --- Lifecycle ---

    def load(self, source: str) -> List[Diagnostic]:
        """Replace the loaded program with `source`; returns the parse diagnostics.

        Global initializers run here, under the `init_budget` deadline and the
        evaluator's cancel event, so `stop()` from another thread or the
        budget running out halts them instead of blocking the caller.
        """
        self.stop()
        with self._control:
            self._program = parse(source, self.config.max_nesting)
            self.bus.reset()
            self._evaluator = self._build_evaluator(Environment.from_program(self._program))
            self._initialize_globals(self._evaluator)
        logger.info(
            "Loaded script: %d functions, %d globals, %d diagnostics",
            len(self._program.functions),
            len(self._program.globals),
            len(self._program.diagnostics),
        )
        return list(self._program.diagnostics)

    def _initialize_globals(self, evaluator: Evaluator) -> None:
        env = evaluator.env
        evaluator.deadline = time.monotonic() + self.config.init_budget
        try:
            for position, decl in enumerate(self._program.globals):
                try:
                    evaluator.execute(decl)
                except ScriptHalted:
                    evaluator.report(decl.line, f"Global '{decl.name}' initializer halted before completing")
                    for rest in self._program.globals[position:]:
                        if rest.size is not None:
                            env.globals[rest.name] = Slot(env.storage_type(rest.type_name), env.new_array(rest.type_name, 0))
                        else:
                            env.globals[rest.name] = env.new_slot(rest.type_name)
                    break
                except Exception as e:
                    logger.warning("Global '%s' failed to initialize: %s", decl.name, e)
                    evaluator.report(decl.line, f"Global '{decl.name}' failed to initialize: {e}")
        finally:
            evaluator.deadline = None
            env.frames.clear()

    def start(self) -> None:
        with self._control:
            if self._thread is not None and self._thread.is_alive():
                logger.debug("start() ignored: script already running")
                return
            # Writes queued while a previous run was shutting down land now,
            # before setup() runs.
            self._apply_injections()
            cancel = threading.Event()
            self._evaluator.cancel = cancel
            self._thread = threading.Thread(
                target=self._run, args=(self._evaluator,), name="robo-script", daemon=True
            )
            self._thread.start()
        logger.info("Script started")

    def stop(self) -> None:
        """Halt the script thread, a host `call()` or global initialization."""
        self._evaluator.cancel.set()
        with self._control:
            thread = self._thread
            if thread is None:
                return
            self._evaluator.cancel.set()
            thread.join()
            self._thread = None
        logger.info("Script stopped")

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run(self, evaluator: Evaluator) -> None:
        try:
            evaluator.call_function("setup")
            while True:
                evaluator.call_function("loop")
                evaluator.pause()
        except ScriptHalted:
            logger.debug("Script thread halted")
        except Exception as e:
            logger.exception("Script thread crashed")
            evaluator.report(0, f"Script fault: {type(e).__name__}: {e}")
        finally:
            evaluator.env.frames.clear()

    # --- Hardware ---

    def set_sensor_value(self, channel: int, distance: float) -> None:
        self.bus.set_sensor(int(channel), float(distance))

    def get_pin_value(self, pin: int) -> int:
        return self.bus.read_pin(int(pin))

    def set_pin_value(self, pin: int, value: int) -> None:
        self.bus.write_pin(int(pin), int(value))

    def pins(self) -> Dict[int, int]:
        return self.bus.pins()

    # --- Globals ---

    def set_variable(self, name: str, value: float) -> None:
        """Overwrite an already-declared global; unknown names are ignored.

        While the script runs the write is queued and applied at its next
        delay or loop yield.
        """
        if name not in self._evaluator.env.globals:
            return
        if self.is_running():
            self.bus.inject(name, float(value))
        else:
            self._evaluator.env.globals[name].store(float(value))

    def _apply_injections(self) -> None:
        for name, value in self.bus.drain_injections().items():
            slot = self._evaluator.env.globals.get(name)
            if slot is not None:
                slot.store(value)

    def get_variable(self, name: str) -> Any:
        slot = self._evaluator.env.globals.get(name)
        return to_python(slot.value) if slot is not None else None

    def call(self, name: str) -> Any:
        """Run a user function synchronously on the calling thread.

        `stop()` from another thread halts it, in which case None is returned.
        """
        if self.is_running():
            raise RoboError(f"Cannot call '{name}' while the script is running")
        if name not in self._evaluator.env.functions:
            raise RoboError(f"Unknown function '{name}'")
        self._evaluator.cancel = threading.Event()
        try:
            return to_python(self._evaluator.call_function(name))
        except ScriptHalted:
            logger.debug("call(%r) halted by stop()", name)
            return None
        finally:
            self._evaluator.env.frames.clear()

    # --- Introspection ---

    @property
    def program(self) -> Program:
        return self._program

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._program.diagnostics) + list(self._evaluator.diagnostics)
