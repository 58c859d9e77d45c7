import logging
from typing import List, Optional, Tuple

from .grammar import TYPE_KEYWORDS
from .lexer import (
    TK_EOF,
    TK_IDENT,
    TK_INVALID,
    TK_KEYWORD,
    TK_NUMBER,
    TK_OP,
    Token,
    tokenize,
)
from .models import Diagnostic, EnumDef, FunctionDef, Param, Program, StructDef
from .nodes import (
    Assign,
    Binary,
    Block,
    Call,
    Conditional,
    DoWhile,
    Expr,
    ExprStmt,
    For,
    If,
    Index,
    Literal,
    Member,
    Postfix,
    Return,
    Stmt,
    Unary,
    VarDecl,
    Variable,
    While,
)

logger = logging.getLogger(__name__)

ASSIGN_OPS = ("=", "+=", "-=", "*=", "/=")
RELATIONAL_OPS = ("<", ">", "<=", ">=", "==", "!=")
PREFIX_OPS = ("!", "-", "++", "--", "&")
EXPR_START_WORDS = ("true", "false")


class Parser:
    """Recursive-descent parser for robot scripts.

    Never raises on malformed input: missing punctuation and unexpected
    tokens are recorded as diagnostics on the resulting Program and parsing
    carries on. Struct and enum names only count as type names after their
    declaration has been parsed.
    """

    def __init__(self, tokens: List[Token], max_nesting: int = 64):
        self.program = Program()
        self.tokens: List[Token] = []
        for tok in tokens:
            if tok.kind == TK_INVALID:
                self._note(tok.line, f"Ignored unrecognized character '{tok.text}'")
            else:
                self.tokens.append(tok)
        if not self.tokens or self.tokens[-1].kind != TK_EOF:
            last = self.tokens[-1].line if self.tokens else 1
            self.tokens.append(Token(TK_EOF, "", 0.0, last))
        self.pos = 0
        self.max_nesting = max_nesting
        self._depth = 0
        self._anonymous_enums = 0

    # --- Helpers ---

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != TK_EOF:
            self.pos += 1
        return tok

    def at(self, text: str, offset: int = 0) -> bool:
        return self.peek(offset).is_symbol(text)

    def at_eof(self) -> bool:
        return self.current().kind == TK_EOF

    def match(self, text: str) -> bool:
        if self.at(text):
            self.advance()
            return True
        return False

    def expect(self, text: str) -> bool:
        if self.match(text):
            return True
        tok = self.current()
        self._note(tok.line, f"Expected '{text}' but found '{tok.text or 'end of input'}'")
        return False

    def _note(self, line: int, message: str) -> None:
        logger.debug("line %s: %s", line, message)
        self.program.diagnostics.append(Diagnostic(line, message))

    def _skip(self) -> None:
        tok = self.advance()
        self._note(tok.line, f"Skipped unexpected '{tok.text}'")

    # --- Types ---

    def is_type_name(self, offset: int = 0) -> bool:
        tok = self.peek(offset)
        if tok.kind == TK_KEYWORD:
            return tok.text in TYPE_KEYWORDS
        return tok.kind == TK_IDENT and (
            tok.text in self.program.structs or tok.text in self.program.enums
        )

    def at_declaration(self) -> bool:
        tok = self.current()
        if tok.is_symbol("const"):
            return True
        if tok.is_symbol("struct") or tok.is_symbol("enum"):
            return self.peek(1).kind == TK_IDENT
        if tok.kind == TK_KEYWORD:
            return tok.text in TYPE_KEYWORDS
        if self.is_type_name():
            nxt = self.peek(1)
            return nxt.kind == TK_IDENT or nxt.is_symbol("&")
        return False

    def parse_type(self) -> Tuple[str, bool]:
        const = self.match("const")
        if self.at("struct") or self.at("enum"):
            self.advance()
        return self.advance().text, const

    # --- Top Level ---

    def parse_program(self) -> Program:
        while not self.at_eof():
            start = self.pos
            self.parse_global()
            if self.pos == start:
                self._skip()
        return self.program

    def parse_global(self) -> None:
        if self.at("struct") and self.peek(1).kind == TK_IDENT and self.at("{", 2):
            self.parse_struct()
            return
        if self.at("enum") and (
            self.at("{", 1) or (self.peek(1).kind == TK_IDENT and self.at("{", 2))
        ):
            self.parse_enum()
            return
        if self.match(";") or not self.at_declaration():
            return

        line = self.current().line
        type_name, const = self.parse_type()
        by_ref = self.match("&")
        name = self.current()
        if name.kind == TK_IDENT and self.at("(", 1):
            self.advance()
            self.advance()
            self.parse_function(type_name, by_ref, name)
            return
        self.program.globals.extend(self.parse_declarators(type_name, const, line, by_ref))

    def parse_function(self, return_type: str, returns_ref: bool, name: Token) -> None:
        params = self.parse_params()
        if self.match(";"):
            # Prototype; calls resolve at run time.
            return
        if not self.at("{"):
            self._note(name.line, f"Function '{name.text}' has no body")
            return
        body = self.parse_block()
        self.program.functions[name.text] = FunctionDef(
            name=name.text,
            return_type=return_type,
            params=tuple(params),
            body=body,
            returns_ref=returns_ref,
            line=name.line,
        )

    def parse_params(self) -> List[Param]:
        params: List[Param] = []
        if self.at("void") and self.at(")", 1):
            self.advance()
        while not self.at(")") and not self.at_eof():
            if not (
                self.is_type_name()
                or self.at("const")
                or self.at("struct")
                or self.at("enum")
            ):
                self._skip()
                continue
            type_name, _ = self.parse_type()
            by_ref = self.match("&")
            name = self.current()
            if name.kind != TK_IDENT:
                self._note(name.line, f"Expected a parameter name after '{type_name}'")
                break
            self.advance()
            if self.match("["):
                # Arrays are passed by reference.
                if not self.at("]"):
                    self.parse_expression()
                self.expect("]")
                by_ref = True
            params.append(Param(type_name, name.text, by_ref))
            if not self.match(","):
                break
        self.expect(")")
        return params

    def parse_struct(self) -> None:
        self.advance()
        struct = StructDef(self.advance().text)
        self.expect("{")
        while not self.at("}") and not self.at_eof():
            start = self.pos
            if self.is_type_name() or self.at("const") or self.at("struct") or self.at("enum"):
                type_name, _ = self.parse_type()
                while True:
                    member = self.current()
                    if member.kind != TK_IDENT:
                        self._note(member.line, f"Expected a member name in struct '{struct.name}'")
                        break
                    self.advance()
                    struct.members[member.text] = type_name
                    if not self.match(","):
                        break
                self.expect(";")
            if self.pos == start:
                self._skip()
        self.expect("}")
        self.match(";")
        self.program.structs[struct.name] = struct

    def parse_enum(self) -> None:
        self.advance()
        if self.current().kind == TK_IDENT:
            name = self.advance().text
        else:
            self._anonymous_enums += 1
            name = f"enum#{self._anonymous_enums}"
        enum = EnumDef(name)
        self.expect("{")
        next_value = 0
        while not self.at("}") and not self.at_eof():
            member = self.current()
            if member.kind != TK_IDENT:
                self._skip()
                continue
            self.advance()
            if self.match("="):
                next_value = self.parse_enum_value(enum, next_value)
            enum.members[member.text] = next_value
            next_value += 1
            if not self.match(","):
                break
        self.expect("}")
        self.match(";")
        self.program.enums[name] = enum

    def parse_enum_value(self, enum: EnumDef, fallback: int) -> int:
        negative = self.match("-")
        tok = self.current()
        if tok.kind == TK_NUMBER:
            self.advance()
            value = int(tok.number)
        elif tok.kind == TK_IDENT and tok.text in enum.members:
            self.advance()
            value = enum.members[tok.text]
        else:
            self._note(tok.line, f"Expected an enumerator value but found '{tok.text}'")
            return fallback
        return -value if negative else value

    def parse_declarators(
        self, type_name: str, const: bool, line: int, by_ref: bool = False
    ) -> List[VarDecl]:
        decls: List[VarDecl] = []
        while True:
            name = self.current()
            if name.kind != TK_IDENT:
                self._note(name.line, f"Expected a variable name after '{type_name}'")
                break
            self.advance()
            size: Optional[Expr] = None
            is_array = self.match("[")
            if is_array:
                if not self.at("]"):
                    size = self.parse_expression()
                self.expect("]")
            init: Optional[Expr] = None
            items = None
            if self.match("="):
                if self.at("{"):
                    items = self.parse_init_list()
                else:
                    init = self.parse_expression()
            if is_array and size is None:
                size = Literal(float(len(items or ())), name.line)
            decls.append(
                VarDecl(
                    type_name=type_name,
                    name=name.text,
                    init=init,
                    size=size,
                    items=items if is_array else None,
                    by_ref=by_ref,
                    const=const,
                    line=name.line or line,
                )
            )
            if not self.match(","):
                break
            by_ref = self.match("&")
        self.expect(";")
        return decls

    def parse_init_list(self) -> Tuple[Expr, ...]:
        self.expect("{")
        items: List[Expr] = []
        while not self.at("}") and not self.at_eof():
            items.append(self.parse_expression())
            if not self.match(","):
                break
        self.expect("}")
        return tuple(items)

    # --- Statements ---

    def parse_block(self) -> Block:
        line = self.current().line
        self.expect("{")
        body: List[Stmt] = []
        while not self.at("}") and not self.at_eof():
            start = self.pos
            body.append(self.parse_statement())
            if self.pos == start:
                self._skip()
        self.expect("}")
        return Block(tuple(body), line)

    def parse_statement(self) -> Stmt:
        tok = self.current()
        if self._depth >= self.max_nesting:
            self._note(tok.line, "Statement nested too deeply")
            return Block((), tok.line)
        self._depth += 1
        try:
            return self._parse_statement(tok)
        finally:
            self._depth -= 1

    def _parse_statement(self, tok: Token) -> Stmt:
        if self.at("{"):
            return self.parse_block()
        if self.match(";"):
            return Block((), tok.line)
        if self.at("if"):
            return self.parse_if()
        if self.at("while"):
            return self.parse_while()
        if self.at("do"):
            return self.parse_do_while()
        if self.at("for"):
            return self.parse_for()
        if self.at("return"):
            return self.parse_return()
        if self.at_declaration():
            return self.parse_local_declaration()
        if self._at_expr_start():
            expr = self.parse_expression()
            self.expect(";")
            return ExprStmt(expr, tok.line)
        if not self.at("}") and not self.at_eof():
            self._skip()
        return Block((), tok.line)

    def _at_expr_start(self) -> bool:
        tok = self.current()
        if tok.kind in (TK_IDENT, TK_NUMBER):
            return True
        if tok.kind == TK_KEYWORD:
            return tok.text in EXPR_START_WORDS
        return tok.kind == TK_OP and (tok.text == "(" or tok.text in PREFIX_OPS)

    def parse_local_declaration(self) -> Stmt:
        line = self.current().line
        type_name, const = self.parse_type()
        by_ref = self.match("&")
        decls = self.parse_declarators(type_name, const, line, by_ref)
        if len(decls) == 1:
            return decls[0]
        return Block(tuple(decls), line)

    def parse_if(self) -> If:
        line = self.advance().line
        self.expect("(")
        cond = self.parse_expression()
        self.expect(")")
        then = self.parse_statement()
        otherwise = self.parse_statement() if self.match("else") else None
        return If(cond, then, otherwise, line)

    def parse_while(self) -> While:
        line = self.advance().line
        self.expect("(")
        cond = self.parse_expression()
        self.expect(")")
        return While(cond, self.parse_statement(), line)

    def parse_do_while(self) -> DoWhile:
        line = self.advance().line
        body = self.parse_statement()
        self.expect("while")
        self.expect("(")
        cond = self.parse_expression()
        self.expect(")")
        self.expect(";")
        return DoWhile(body, cond, line)

    def parse_for(self) -> For:
        line = self.advance().line
        self.expect("(")
        init: Optional[Stmt] = None
        if self.match(";"):
            pass
        elif self.at_declaration():
            init = self.parse_local_declaration()
        else:
            init = ExprStmt(self.parse_expression(), line)
            self.expect(";")
        cond = None if self.at(";") else self.parse_expression()
        self.expect(";")
        step = None if self.at(")") else self.parse_expression()
        self.expect(")")
        return For(init, cond, step, self.parse_statement(), line)

    def parse_return(self) -> Return:
        line = self.advance().line
        value = None if self.at(";") else self.parse_expression()
        self.expect(";")
        return Return(value, line)

    # --- Expressions ---

    def parse_expression(self) -> Expr:
        tok = self.current()
        if self._depth >= self.max_nesting:
            self._note(tok.line, "Expression nested too deeply")
            return Literal(None, tok.line)
        self._depth += 1
        try:
            return self.parse_assignment()
        finally:
            self._depth -= 1

    def parse_assignment(self) -> Expr:
        """Assignment = Conditional ( AssignOp Assignment )?"""
        target = self.parse_conditional()
        tok = self.current()
        if tok.kind == TK_OP and tok.text in ASSIGN_OPS:
            self.advance()
            value = self.parse_expression()
            return Assign(target, value, tok.text, tok.line)
        return target

    def parse_conditional(self) -> Expr:
        cond = self.parse_or()
        if self.at("?"):
            line = self.advance().line
            then = self.parse_expression()
            self.expect(":")
            otherwise = self.parse_expression()
            return Conditional(cond, then, otherwise, line)
        return cond

    def parse_or(self) -> Expr:
        left = self.parse_and()
        while self.at("||"):
            line = self.advance().line
            left = Binary("||", left, self.parse_and(), line)
        return left

    def parse_and(self) -> Expr:
        left = self.parse_relational()
        while self.at("&&"):
            line = self.advance().line
            left = Binary("&&", left, self.parse_relational(), line)
        return left

    def parse_relational(self) -> Expr:
        left = self.parse_additive()
        while self.current().kind == TK_OP and self.current().text in RELATIONAL_OPS:
            tok = self.advance()
            left = Binary(tok.text, left, self.parse_additive(), tok.line)
        return left

    def parse_additive(self) -> Expr:
        left = self.parse_multiplicative()
        while self.at("+") or self.at("-"):
            tok = self.advance()
            left = Binary(tok.text, left, self.parse_multiplicative(), tok.line)
        return left

    def parse_multiplicative(self) -> Expr:
        left = self.parse_unary()
        while self.at("*") or self.at("/") or self.at("%"):
            tok = self.advance()
            left = Binary(tok.text, left, self.parse_unary(), tok.line)
        return left

    def parse_unary(self) -> Expr:
        tok = self.current()
        if tok.kind == TK_OP and tok.text in PREFIX_OPS:
            if self._depth >= self.max_nesting:
                self._note(tok.line, "Expression nested too deeply")
                return Literal(None, tok.line)
            self.advance()
            self._depth += 1
            try:
                operand = self.parse_unary()
            finally:
                self._depth -= 1
            return Unary(tok.text, operand, tok.line)
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """Postfix = Primary ( '.' NAME | '[' Expr ']' | '++' | '--' )*"""
        expr = self.parse_primary()
        while True:
            tok = self.current()
            if self.match("."):
                name = self.current()
                if name.kind != TK_IDENT:
                    self._note(name.line, "Expected a member name after '.'")
                    break
                self.advance()
                expr = Member(expr, name.text, tok.line)
            elif self.match("["):
                index = self.parse_expression()
                self.expect("]")
                expr = Index(expr, index, tok.line)
            elif tok.is_symbol("++") or tok.is_symbol("--"):
                self.advance()
                expr = Postfix(tok.text, expr, tok.line)
            else:
                return expr
        return expr

    def _at_cast(self) -> bool:
        inner = self.peek(1)
        if not self.at(")", 2):
            return False
        if inner.kind == TK_KEYWORD:
            return inner.text in TYPE_KEYWORDS
        return inner.kind == TK_IDENT and inner.text in self.program.enums

    def parse_primary(self) -> Expr:
        tok = self.current()
        if tok.kind == TK_NUMBER:
            self.advance()
            return Literal(tok.number, tok.line)
        if tok.is_symbol("true") or tok.is_symbol("false"):
            self.advance()
            return Literal(tok.text == "true", tok.line)
        if tok.kind == TK_IDENT:
            self.advance()
            if self.match("("):
                return Call(tok.text, tuple(self.parse_arguments()), tok.line)
            return Variable(tok.text, tok.line)
        if tok.is_symbol("("):
            if self._at_cast():
                # `(int) x` reads as plain `x`.
                self.advance()
                self.advance()
                self.advance()
                if self._depth >= self.max_nesting:
                    self._note(tok.line, "Expression nested too deeply")
                    return Literal(None, tok.line)
                self._depth += 1
                try:
                    return self.parse_unary()
                finally:
                    self._depth -= 1
            self.advance()
            expr = self.parse_expression()
            self.expect(")")
            return expr
        self._note(tok.line, f"Expected an expression but found '{tok.text or 'end of input'}'")
        return Literal(None, tok.line)

    def parse_arguments(self) -> List[Expr]:
        args: List[Expr] = []
        if self.match(")"):
            return args
        while not self.at_eof():
            args.append(self.parse_expression())
            if not self.match(","):
                break
        self.expect(")")
        return args


def parse(source: str, max_nesting: int = 64) -> Program:
    parser = Parser(tokenize(source), max_nesting=max_nesting)
    try:
        return parser.parse_program()
    except RecursionError:
        parser._note(parser.current().line, "Program nested too deeply; parsing stopped")
        return parser.program
