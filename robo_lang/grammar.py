# Terminals only: the lexer runs lark's basic lexer and the parser is
# hand-written, so `start` exists just to keep every terminal alive.
TOKEN_GRAMMAR = r"""
    start: (NAME | NUMBER | OP | UNKNOWN)*

    NAME.2: /[A-Za-z_]\w*/
    NUMBER.2: /(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?[fFuUlL]*/
    OP.2: /&&|\|\||\+\+|--|==|!=|<=|>=|\+=|-=|\*=|\/=|[-+*\/%=<>!&.,;:?(){}\[\]]/
    UNKNOWN: /\S/

    LINE_COMMENT.3: /\/\/[^\n]*/
    BLOCK_COMMENT.3: /\/\*[\s\S]*?(\*\/|\Z)/
    DIRECTIVE.3: /#[^\n]*/
    WS: /\s+/

    %ignore WS
    %ignore LINE_COMMENT
    %ignore BLOCK_COMMENT
    %ignore DIRECTIVE
"""

TYPE_KEYWORDS = frozenset({"int", "float", "long", "bool", "void", "pile"})

KEYWORDS = TYPE_KEYWORDS | frozenset(
    {
        "if",
        "else",
        "while",
        "do",
        "for",
        "return",
        "const",
        "enum",
        "struct",
        "true",
        "false",
    }
)
