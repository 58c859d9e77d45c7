from .grammar import TOKEN_GRAMMAR, KEYWORDS, TYPE_KEYWORDS
from .exceptions import RoboError, ScriptHalted
from .interfaces import IOHandler, ConsoleIO, NullIO
from .config import RuntimeConfig
from .lexer import Token, tokenize
from .models import (
    Diagnostic,
    EnumDef,
    FunctionDef,
    Intrinsic,
    Param,
    Program,
    StructDef,
)
from .parser import Parser, parse
from .types import TypeCanon
from .values import ArrayValue, Pile, Reference, Slot, StructValue
from .scope import Environment, Frame
from .hardware import HardwareBus, MOTOR_PATTERNS
from .intrinsics import Intrinsics
from .evaluator import Evaluator
from .interpreter import RoboInterpreter

__all__ = [
    "TOKEN_GRAMMAR",
    "KEYWORDS",
    "TYPE_KEYWORDS",
    "RoboError",
    "ScriptHalted",
    "IOHandler",
    "ConsoleIO",
    "NullIO",
    "RuntimeConfig",
    "Token",
    "tokenize",
    "Diagnostic",
    "EnumDef",
    "FunctionDef",
    "Intrinsic",
    "Param",
    "Program",
    "StructDef",
    "Parser",
    "parse",
    "TypeCanon",
    "ArrayValue",
    "Pile",
    "Reference",
    "Slot",
    "StructValue",
    "Environment",
    "Frame",
    "HardwareBus",
    "MOTOR_PATTERNS",
    "Intrinsics",
    "Evaluator",
    "RoboInterpreter",
]
