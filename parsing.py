"""
Oris Programming Language Parser
Tokenizer, syntax tree and pyparsing grammar producing a lazy stream of nodes
"""

import re
import sys
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterator, List, Optional, Tuple, Union

# Import pyparsing with error handling
try:
    from pyparsing import (
        Forward, Keyword, Literal, Located, MatchFirst, Opt, ParseBaseException,
        ParserElement, Regex, StringEnd, Suppress, ZeroOrMore,
    )
    # Enable packrat parsing for performance
    ParserElement.enable_packrat()
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import OrisError, OrisLexError, OrisParseError
from utilities import INT_MAX
from values import quote_str


# ============================================================================
# SYNTAX TREE
# ============================================================================
# Every node records `pos`, the byte offset it is reported at: the first byte
# of literals and identifiers, the operator of unary/binary expressions, the
# opening bracket of calls and indexing, and the keyword of let/return/fn/if.

@dataclass(frozen=True)
class Ident:
    name: str
    pos: int


@dataclass(frozen=True)
class IntLit:
    value: int
    pos: int


@dataclass(frozen=True)
class BoolLit:
    value: bool
    pos: int


@dataclass(frozen=True)
class StrLit:
    value: str
    pos: int


@dataclass(frozen=True)
class SeqLit:
    elements: Tuple[Any, ...]
    pos: int


@dataclass(frozen=True)
class MapLit:
    entries: Tuple[Tuple[Any, Any], ...]
    pos: int


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any
    pos: int


@dataclass(frozen=True)
class Binary:
    left: Any
    op: str
    right: Any
    pos: int


@dataclass(frozen=True)
class Call:
    target: Any
    args: Tuple[Any, ...]
    pos: int


@dataclass(frozen=True)
class Index:
    base: Any
    subscript: Any
    pos: int


@dataclass(frozen=True)
class Block:
    nodes: Tuple[Any, ...]
    pos: int


@dataclass(frozen=True)
class Function:
    params: Tuple[Ident, ...]
    body: Block
    pos: int


@dataclass(frozen=True)
class If:
    condition: Any
    consequence: Block
    alternative: Optional[Block]
    pos: int


@dataclass(frozen=True)
class Let:
    ident: Ident
    value: Any
    pos: int


@dataclass(frozen=True)
class ReturnStmt:
    value: Optional[Any]
    pos: int


Expr = Union[Ident, IntLit, BoolLit, StrLit, SeqLit, MapLit, Unary, Binary, Call, Index, Function, If]
Node = Union[Expr, Let, ReturnStmt]


# ============================================================================
# SOURCE TEXT
# ============================================================================

class SourceText:
    """Decoded source plus the table mapping character indexes to byte offsets"""

    def __init__(self, source: Union[bytes, str]):
        if isinstance(source, bytes):
            try:
                text = source.decode("utf-8")
            except UnicodeDecodeError as e:
                raise OrisLexError.unexpected(source[e.start], e.start) from None
        else:
            text = source
        self.text = text
        self.size = len(text.encode("utf-8"))
        self._offsets = None
        if not text.isascii():
            offsets = [0]
            for ch in text:
                offsets.append(offsets[-1] + len(ch.encode("utf-8")))
            self._offsets = offsets

    def byte_offset(self, index: int) -> int:
        if self._offsets is None:
            return index
        return self._offsets[index]


# ============================================================================
# TOKENIZER
# ============================================================================

@dataclass(frozen=True)
class Token:
    """Oris token; `pos` is a byte offset, `end` the character index after it"""
    kind: str
    value: Any
    pos: int
    end: int

    def __str__(self) -> str:
        if self.kind in ("Ident", "Str"):
            return f"{self.kind}({quote_str(self.value)})"
        if self.kind == "Int":
            return f"Int({self.value})"
        return self.kind


class OrisTokenizer:
    """Oris tokenizer, used for token listings and to classify parse failures"""

    KEYWORDS = {
        'let': 'Let', 'true': 'True', 'false': 'False', 'fn': 'Fn',
        'return': 'Return', 'if': 'If', 'else': 'Else',
    }

    # Longest symbols first
    PUNCTUATION = [
        ('==', 'Eq'), ('!=', 'Ne'), ('<=', 'Le'), ('>=', 'Ge'),
        (',', 'Comma'), (':', 'Colon'), (';', 'Semicolon'),
        ('(', 'LeftParen'), (')', 'RightParen'),
        ('[', 'LeftBracket'), (']', 'RightBracket'),
        ('{', 'LeftBrace'), ('}', 'RightBrace'),
        ('+', 'Plus'), ('-', 'Hyphen'), ('*', 'Asterisk'), ('/', 'Slash'),
        ('=', 'Assign'), ('!', 'Bang'), ('<', 'Lt'), ('>', 'Gt'),
    ]

    def __init__(self):
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Oris"""
        self.trivia_pattern = re.compile(r'(?:[ \t\n\r\f]+|#[^\n]*)*')
        self.atom_pattern = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
        self.digits_pattern = re.compile(r'[0-9]+')
        self.atom_tail_pattern = re.compile(r'[A-Za-z0-9_]')

    def next_token(self, source: SourceText, index: int) -> Optional[Token]:
        """Lex the token starting at or after `index`; None at end of input"""
        text = source.text
        index = self.trivia_pattern.match(text, index).end()
        if index >= len(text):
            return None

        ch = text[index]
        pos = source.byte_offset(index)

        if ch == '"':
            close = text.find('"', index + 1)
            if close < 0:
                raise OrisLexError.quote(pos)
            return Token("Str", text[index + 1:close], pos, close + 1)

        if '0' <= ch <= '9':
            end = self.digits_pattern.match(text, index).end()
            value = int(text[index:end])
            if value > INT_MAX:
                raise OrisLexError.overflow(pos)
            if end < len(text) and self.atom_tail_pattern.match(text, end):
                raise OrisLexError.bad_digit(text[end], source.byte_offset(end))
            return Token("Int", value, pos, end)

        atom = self.atom_pattern.match(text, index)
        if atom:
            word = atom.group(0)
            if word in self.KEYWORDS:
                return Token(self.KEYWORDS[word], word, pos, atom.end())
            return Token("Ident", word, pos, atom.end())

        for symbol, kind in self.PUNCTUATION:
            if text.startswith(symbol, index):
                return Token(kind, symbol, pos, index + len(symbol))

        raise OrisLexError.unexpected(ch.encode("utf-8")[0], pos)

    def tokenize(self, source: Union[bytes, str, SourceText]) -> List[Token]:
        if not isinstance(source, SourceText):
            source = SourceText(source)
        tokens = []
        index = 0
        while True:
            token = self.next_token(source, index)
            if token is None:
                return tokens
            tokens.append(token)
            index = token.end


def is_identifier(name: str) -> bool:
    """True when `name` lexes as one identifier token (and not a keyword)"""
    return re.fullmatch(r'[A-Za-z_][A-Za-z0-9_]*', name) is not None and name not in OrisTokenizer.KEYWORDS


# ============================================================================
# GRAMMAR
# ============================================================================

@dataclass(frozen=True)
class _Operator:
    symbol: str
    pos: int


@dataclass(frozen=True)
class _CallSuffix:
    args: Tuple[Any, ...]
    pos: int


@dataclass(frozen=True)
class _IndexSuffix:
    subscript: Any
    pos: int


class OrisGrammar:
    """
    Oris grammar definition using pyparsing

    Precedence, loosest first: comparison, additive, multiplicative, prefix
    `-`/`!`, postfix call and index. Binary operators are left associative.

    Elements reached only after a construct is recognised (the `=` of a
    `let`, the operand after an operator, a closing bracket...) carry a fail
    action that turns the failure into an OrisParseError naming what was
    expected and the token actually found there.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.tokenizer = OrisTokenizer()
        # Set for each node parsed; parse actions read them to compute positions
        self.source: Optional[SourceText] = None
        self.base = 0
        self._setup_grammar()

    # ==================== POSITIONS AND ERRORS ====================

    def _pos(self, loc: int) -> int:
        return self.source.byte_offset(self.base + loc)

    def syntax_error(self, loc: int, expected: str) -> OrisError:
        """Build the error for a failure at `loc`; lexical errors take precedence"""
        token = self.tokenizer.next_token(self.source, self.base + loc)
        if token is None:
            return OrisParseError.miss(expected, self.source.size)
        return OrisParseError.mismatch(expected, token, token.pos)

    def _fail(self, expected: str, s, loc, expr, err):
        if isinstance(err, OrisError):
            return
        raise self.syntax_error(getattr(err, "loc", loc), expected)

    def _expect(self, element: ParserElement, expected: str) -> ParserElement:
        return element.copy().set_fail_action(partial(self._fail, expected))

    def _token(self, symbol: str, name: str, expected: bool = False) -> ParserElement:
        element = Literal(symbol).set_name(name)
        if expected:
            element = self._expect(element, name)
        return Suppress(element)

    # ==================== GRAMMAR ====================

    def _setup_grammar(self):
        """Setup the Oris grammar"""

        # Forward declarations for recursive structures
        expression = Forward()
        unary = Forward()
        statement = Forward()

        # Keywords
        let_kw = Keyword("let")
        return_kw = Keyword("return")
        fn_kw = Keyword("fn")
        if_kw = Keyword("if")
        else_kw = Keyword("else")
        true_kw = Keyword("true")
        false_kw = Keyword("false")
        any_keyword = MatchFirst([Keyword(word) for word in OrisTokenizer.KEYWORDS])

        # Literals and identifiers
        # Positioned on the Regex; the And starts with a NotAny, which does not skip whitespace
        name = Regex(r"[A-Za-z_][A-Za-z0-9_]*").set_parse_action(lambda s, l, t: Ident(t[0], self._pos(l)))
        identifier = (~any_keyword + name).set_name("identifier")

        int_literal = Regex(r"[0-9]+(?![A-Za-z0-9_])").set_parse_action(self._make_int)
        str_literal = Regex(r'"[^"]*"').set_parse_action(lambda s, l, t: StrLit(t[0][1:-1], self._pos(l)))
        bool_literal = (true_kw | false_kw).set_parse_action(
            lambda s, l, t: BoolLit(t[0] == "true", self._pos(l)))

        def operator(pattern: str) -> ParserElement:
            return Regex(pattern).set_parse_action(lambda s, l, t: _Operator(t[0], self._pos(l)))

        compare_op = operator(r"==|!=|<=|>=|<|>")
        additive_op = operator(r"[+-]")
        multiplicative_op = operator(r"[*/]")
        prefix_op = operator(r"-|!(?!=)")
        assign = Regex(r"=(?!=)").set_name("Assign")

        def comma_separated(element: ParserElement, close: str, close_name: str) -> ParserElement:
            # `close` directly, or element ("," element)* close; no trailing comma
            return (
                self._token(close, close_name)
                | (element + ZeroOrMore(self._token(",", "Comma") - element)
                   - self._token(close, close_name, expected=True))
            )

        required_expression = self._expect(expression, "expression")

        # Blocks: `{ node* }`
        block_end = Literal("}") | StringEnd()
        block = (
            self._token("{", "LeftBrace", expected=True)
            - ZeroOrMore(~block_end + self._expect(statement, "expression"))
            - self._token("}", "RightBrace", expected=True)
        ).set_parse_action(lambda s, l, t: Block(tuple(t), self._pos(l)))

        # Compound primaries
        function_expr = (
            Suppress(fn_kw)
            - self._token("(", "LeftParen", expected=True)
            - comma_separated(self._expect(identifier, "identifier"), ")", "RightParen")
            - block
        ).set_parse_action(self._make_function)

        if_expr = (
            Suppress(if_kw) - required_expression - block - Opt(Suppress(else_kw) - block)
        ).set_parse_action(self._make_if)

        group = self._token("(", "LeftParen") - required_expression - self._token(")", "RightParen", expected=True)

        seq_literal = (
            self._token("[", "LeftBracket") - comma_separated(required_expression, "]", "RightBracket")
        ).set_parse_action(lambda s, l, t: SeqLit(tuple(t), self._pos(l)))

        map_entry = required_expression - self._token(":", "Colon", expected=True) - required_expression
        map_literal = (
            self._token("{", "LeftBrace") - comma_separated(map_entry, "}", "RightBrace")
        ).set_parse_action(self._make_map)

        primary = MatchFirst([
            int_literal, str_literal, bool_literal, function_expr, if_expr,
            identifier, group, seq_literal, map_literal,
        ]).set_name("expression")

        # Postfix: calls and indexing
        call_suffix = (
            self._token("(", "LeftParen") - comma_separated(required_expression, ")", "RightParen")
        ).set_parse_action(lambda s, l, t: _CallSuffix(tuple(t), self._pos(l)))
        index_suffix = (
            self._token("[", "LeftBracket") - required_expression - self._token("]", "RightBracket", expected=True)
        ).set_parse_action(lambda s, l, t: _IndexSuffix(t[0], self._pos(l)))
        postfix = (primary + ZeroOrMore(call_suffix | index_suffix)).set_parse_action(self._make_postfix)

        # Prefix and binary operators
        unary <<= (
            (prefix_op - self._expect(unary, "expression")).set_parse_action(self._make_unary)
            | postfix
        )
        multiplicative = (
            unary + ZeroOrMore(multiplicative_op - self._expect(unary, "expression"))
        ).set_parse_action(self._fold_binary)
        additive = (
            multiplicative + ZeroOrMore(additive_op - self._expect(multiplicative, "expression"))
        ).set_parse_action(self._fold_binary)
        comparison = (
            additive + ZeroOrMore(compare_op - self._expect(additive, "expression"))
        ).set_parse_action(self._fold_binary)
        expression <<= comparison

        # Statements
        semicolon = Opt(self._token(";", "Semicolon"))
        let_stmt = (
            Suppress(let_kw)
            - self._expect(identifier, "identifier")
            - Suppress(self._expect(assign, "Assign"))
            - required_expression
            + semicolon
        ).set_parse_action(lambda s, l, t: Let(t[0], t[1], self._pos(l)))
        return_stmt = (
            Suppress(return_kw)
            - (self._token(";", "Semicolon") | required_expression + semicolon)
        ).set_parse_action(lambda s, l, t: ReturnStmt(t[0] if t else None, self._pos(l)))
        expression_stmt = expression + semicolon

        statement <<= let_stmt | return_stmt | expression_stmt

        self.expression = expression
        self.statement = statement
        self.node = Located(statement)
        self.node.parse_with_tabs()

    # ==================== PARSE ACTIONS ====================

    def _make_int(self, s, l, t):
        value = int(t[0])
        if value > INT_MAX:
            raise OrisLexError.overflow(self._pos(l))
        return IntLit(value, self._pos(l))

    def _make_function(self, s, l, t):
        return Function(tuple(t[:-1]), t[-1], self._pos(l))

    def _make_if(self, s, l, t):
        alternative = t[2] if len(t) > 2 else None
        return If(t[0], t[1], alternative, self._pos(l))

    def _make_map(self, s, l, t):
        entries = tuple((t[i], t[i + 1]) for i in range(0, len(t), 2))
        return MapLit(entries, self._pos(l))

    def _make_postfix(self, s, l, t):
        node = t[0]
        for suffix in t[1:]:
            if isinstance(suffix, _CallSuffix):
                node = Call(node, suffix.args, suffix.pos)
            else:
                node = Index(node, suffix.subscript, suffix.pos)
        return node

    def _make_unary(self, s, l, t):
        return Unary(t[0].symbol, t[1], t[0].pos)

    def _fold_binary(self, s, l, t):
        node = t[0]
        for i in range(1, len(t), 2):
            op = t[i]
            node = Binary(node, op.symbol, t[i + 1], op.pos)
        return node

    # ==================== ENTRY POINT ====================

    def parse_node(self, source: SourceText, text: str, index: int) -> Tuple[Node, int]:
        """Parse one top-level node starting at character `index` of `text`"""
        self.source = source
        self.base = index
        try:
            result = self.node.parse_string(text[index:])
        except ParseBaseException as exc:
            raise self.syntax_error(exc.loc, "expression") from None
        return result["value"][0], index + result["locn_end"]


class OrisParser:
    """Oris parser producing top-level nodes lazily"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = OrisGrammar(debug)
        self.tokenizer = self.grammar.tokenizer
        self._trivia = re.compile(r'[ \t\n\r\f]*')

    def parse(self, source: Union[bytes, str]) -> Iterator[Node]:
        """
        Yield the top-level nodes of `source` one at a time.

        A lexical or syntax error is raised when iteration reaches it, so the
        nodes before it can already have been evaluated.
        """
        source_text = SourceText(source)
        text = self._preprocess_text(source_text.text)
        index = 0

        while True:
            index = self._trivia.match(text, index).end()
            if index >= len(text):
                return

            node, index = self.grammar.parse_node(source_text, text, index)
            if self.debug:
                print(f"Parsed {type(node).__name__} at byte {node.pos}", file=sys.stderr)
            yield node

    def _preprocess_text(self, text: str) -> str:
        """Blank out comments (and form feeds) keeping every character index"""
        def blank(match):
            chunk = match.group(0)
            return chunk if chunk.startswith('"') else ' ' * len(chunk)

        return re.sub(r'"[^"]*"|#[^\n]*|\f', blank, text)

    def parse_program(self, source: Union[bytes, str]) -> List[Node]:
        return list(self.parse(source))

    def parse_file(self, filepath: str) -> List[Node]:
        with open(filepath, 'rb') as f:
            return self.parse_program(f.read())

    def tokenize(self, source: Union[bytes, str]) -> List[Token]:
        return self.tokenizer.tokenize(source)


def create_parser(debug: bool = False) -> OrisParser:
    """Factory function returning a parser"""
    return OrisParser(debug=debug)


def create_debug_parser() -> OrisParser:
    """Factory function returning a debug parser"""
    return OrisParser(debug=True)


# ============================================================================
# DEBUG OUTPUT
# ============================================================================

def pretty_print_ast(node: Any, indent: int = 0) -> str:
    """Pretty print a syntax tree, one node per line"""
    pad = "  " * indent

    if isinstance(node, Ident):
        return f"{pad}Ident {node.name} @{node.pos}"
    if isinstance(node, IntLit):
        return f"{pad}Int {node.value} @{node.pos}"
    if isinstance(node, BoolLit):
        return f"{pad}Bool {'true' if node.value else 'false'} @{node.pos}"
    if isinstance(node, StrLit):
        return f"{pad}Str {quote_str(node.value)} @{node.pos}"

    if isinstance(node, Unary):
        header, children = f"Unary {node.op}", [node.operand]
    elif isinstance(node, Binary):
        header, children = f"Binary {node.op}", [node.left, node.right]
    elif isinstance(node, SeqLit):
        header, children = "Seq", list(node.elements)
    elif isinstance(node, MapLit):
        header, children = "Map", [part for entry in node.entries for part in entry]
    elif isinstance(node, Call):
        header, children = "Call", [node.target, *node.args]
    elif isinstance(node, Index):
        header, children = "Index", [node.base, node.subscript]
    elif isinstance(node, Function):
        params = ", ".join(param.name for param in node.params)
        header, children = f"Fn ({params})", list(node.body.nodes)
    elif isinstance(node, If):
        header, children = "If", [node.condition, node.consequence]
        if node.alternative is not None:
            children.append(node.alternative)
    elif isinstance(node, Block):
        header, children = "Block", list(node.nodes)
    elif isinstance(node, Let):
        header, children = f"Let {node.ident.name}", [node.value]
    elif isinstance(node, ReturnStmt):
        header, children = "Return", [] if node.value is None else [node.value]
    else:
        return f"{pad}{node!r}"

    lines = [f"{pad}{header} @{node.pos}"]
    lines.extend(pretty_print_ast(child, indent + 1) for child in children)
    return '\n'.join(lines)
