import sys
from abc import ABC, abstractmethod


def _resolve_print():
    robo_mod = sys.modules.get("robo")
    return getattr(robo_mod, "print", print)


class IOHandler(ABC):
    """Abstracts script output so interpreters can be hosted in different frontends."""

    @abstractmethod
    def emit(self, symbol: str, message: str) -> None: ...


class ConsoleIO(IOHandler):
    """Console-backed output used by the CLI."""

    def emit(self, symbol: str, message: str) -> None:
        line = f"{symbol} {message}"
        try:
            _resolve_print()(line)
        except UnicodeEncodeError:
            _resolve_print()(line.encode("ascii", errors="replace").decode("ascii"))


class NullIO(IOHandler):
    """Discards everything; for embedding hosts with no console."""

    def emit(self, symbol: str, message: str) -> None:
        pass
