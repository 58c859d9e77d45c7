import logging
from dataclasses import dataclass
from typing import List

from lark import Lark
from lark.exceptions import UnexpectedInput

from .grammar import KEYWORDS, TOKEN_GRAMMAR

logger = logging.getLogger(__name__)

TK_IDENT = "IDENT"
TK_KEYWORD = "KEYWORD"
TK_NUMBER = "NUMBER"
TK_OP = "OP"
TK_INVALID = "INVALID"
TK_EOF = "EOF"

_SUFFIX_CHARS = "fFuUlL"

_lexer = Lark(TOKEN_GRAMMAR, parser="lalr", lexer="basic")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    number: float = 0.0
    line: int = 0

    def is_symbol(self, text: str) -> bool:
        return self.kind in (TK_OP, TK_KEYWORD) and self.text == text


def _classify(raw) -> Token:
    text = str(raw)
    line = raw.line or 0
    if raw.type == "NAME":
        kind = TK_KEYWORD if text in KEYWORDS else TK_IDENT
        return Token(kind, text, 0.0, line)
    if raw.type == "NUMBER":
        return Token(TK_NUMBER, text, float(text.rstrip(_SUFFIX_CHARS)), line)
    if raw.type == "OP":
        return Token(TK_OP, text, 0.0, line)
    return Token(TK_INVALID, text, 0.0, line)


def tokenize(source: str) -> List[Token]:
    """Lex `source` into a flat token list that always ends with EOF.

    Characters outside the language come back as INVALID tokens instead of
    raising; the parser drops them.
    """
    tokens: List[Token] = []
    last_line = 1
    try:
        for raw in _lexer.lex(source):
            tok = _classify(raw)
            last_line = tok.line or last_line
            tokens.append(tok)
    except UnexpectedInput as e:
        logger.debug("Lexing stopped at line %s: %s", getattr(e, "line", "?"), e)
    tokens.append(Token(TK_EOF, "", 0.0, last_line))
    return tokens
