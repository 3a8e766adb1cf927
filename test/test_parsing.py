"""
Parsing tests for the Oris language
Tests the grammar, node positions and syntax/lexical error reporting
"""

import pytest
from error_handling import OrisLexError, OrisParseError
from parsing import (
    Binary, Block, BoolLit, Call, Function, Ident, If, Index, IntLit, Let,
    MapLit, OrisTokenizer, ReturnStmt, SeqLit, StrLit, Unary, pretty_print_ast,
)


def parse_one(parser, code):
  nodes = parser.parse_program(code)
  assert len(nodes) == 1
  return nodes[0]


class TestLiterals:
  """Test literal and identifier parsing"""

  def test_int(self, parser):
    assert parse_one(parser, "42") == IntLit(42, 0)

  def test_largest_int(self, parser):
    assert parse_one(parser, "2147483647") == IntLit(2147483647, 0)

  def test_bools(self, parser):
    assert parser.parse_program("true false") == [BoolLit(True, 0), BoolLit(False, 5)]

  def test_string_has_no_escapes(self, parser):
    assert parse_one(parser, r'"a\n"') == StrLit("a\\n", 0)

  def test_identifier(self, parser):
    assert parse_one(parser, "  _foo1") == Ident("_foo1", 2)

  def test_keyword_prefix_is_identifier(self, parser):
    assert parse_one(parser, "letter") == Ident("letter", 0)

  def test_seq(self, parser):
    node = parse_one(parser, "[1, x]")
    assert node == SeqLit((IntLit(1, 1), Ident("x", 4)), 0)
    assert parse_one(parser, "[]") == SeqLit((), 0)

  def test_map(self, parser):
    node = parse_one(parser, '{"a": 1, 2: b}')
    assert isinstance(node, MapLit)
    assert node.entries == (
        (StrLit("a", 1), IntLit(1, 6)),
        (IntLit(2, 9), Ident("b", 12)),
    )
    assert parse_one(parser, "{}") == MapLit((), 0)


class TestPrecedence:
  """Test operator precedence and associativity"""

  def test_multiplication_binds_tighter(self, parser):
    node = parse_one(parser, "1 + 2 * 3")
    assert node == Binary(IntLit(1, 0), "+", Binary(IntLit(2, 4), "*", IntLit(3, 8), 6), 2)

  def test_left_associative(self, parser):
    node = parse_one(parser, "8 - 4 - 2")
    assert node.op == "-"
    assert node.left == Binary(IntLit(8, 0), "-", IntLit(4, 4), 2)
    assert node.right == IntLit(2, 8)

  def test_comparison_is_loosest(self, parser):
    node = parse_one(parser, "a + 1 < b * 2")
    assert node.op == "<"
    assert node.left.op == "+"
    assert node.right.op == "*"

  def test_chained_comparison_folds_left(self, parser):
    node = parse_one(parser, "1 < 2 == true")
    assert node.op == "=="
    assert node.left.op == "<"

  def test_prefix_binds_tighter_than_binary(self, parser):
    node = parse_one(parser, "!a == b")
    assert node == Binary(Unary("!", Ident("a", 1), 0), "==", Ident("b", 6), 3)

  def test_postfix_binds_tighter_than_prefix(self, parser):
    node = parse_one(parser, "-xs[0]")
    assert node == Unary("-", Index(Ident("xs", 1), IntLit(0, 4), 3), 0)

  def test_parentheses(self, parser):
    node = parse_one(parser, "(1 + 2) * 3")
    assert node.op == "*"
    assert node.left.op == "+"

  def test_postfix_chain(self, parser):
    node = parse_one(parser, "f(1)(2)[0]")
    assert isinstance(node, Index)
    assert node.pos == 7
    assert isinstance(node.base, Call)
    assert node.base.pos == 4
    assert node.base.target == Call(Ident("f", 0), (IntLit(1, 2),), 1)


class TestStatements:
  """Test statements and the lazy node stream"""

  def test_let(self, parser):
    assert parse_one(parser, "let x = 1;") == Let(Ident("x", 4), IntLit(1, 8), 0)

  def test_semicolons_are_optional(self, parser):
    nodes = parser.parse_program("let x = 1 let y = 2\nx")
    assert [type(node) for node in nodes] == [Let, Let, Ident]

  def test_return(self, parser):
    assert parse_one(parser, "return 1;") == ReturnStmt(IntLit(1, 7), 0)
    assert parse_one(parser, "return;") == ReturnStmt(None, 0)

  def test_function(self, parser):
    node = parse_one(parser, "fn(a, b) { a + b }")
    assert isinstance(node, Function)
    assert node.params == (Ident("a", 3), Ident("b", 6))
    assert node.body == Block((Binary(Ident("a", 11), "+", Ident("b", 15), 13),), 9)
    assert node.pos == 0

  def test_empty_function(self, parser):
    assert parse_one(parser, "fn() {}") == Function((), Block((), 5), 0)

  def test_if_else(self, parser):
    node = parse_one(parser, "if x { 1 } else { 2 }")
    assert isinstance(node, If)
    assert node.condition == Ident("x", 3)
    assert node.consequence.nodes == (IntLit(1, 7),)
    assert node.alternative.nodes == (IntLit(2, 18),)

  def test_if_without_else(self, parser):
    assert parse_one(parser, "if x { 1 }").alternative is None

  def test_block_statements(self, parser):
    node = parse_one(parser, "fn() { let a = 1; return a; }")
    assert [type(stmt) for stmt in node.body.nodes] == [Let, ReturnStmt]

  def test_comments_are_skipped(self, parser):
    nodes = parser.parse_program("# first\n1 # trailing\n# last")
    assert nodes == [IntLit(1, 8)]

  def test_positions_are_byte_offsets(self, parser):
    node = parse_one(parser, '"é" + x')
    assert node.pos == 5
    assert node.right == Ident("x", 7)

  def test_parse_is_lazy(self, parser):
    nodes = parser.parse("1; let = 2")
    assert next(nodes) == IntLit(1, 0)
    with pytest.raises(OrisParseError):
      next(nodes)

  def test_pretty_print(self, parser):
    text = pretty_print_ast(parse_one(parser, "let x = -1"))
    assert text.splitlines() == ["Let x @0", "  Unary - @8", "    Int 1 @9"]


class TestSyntaxErrors:
  """Test expected/found reporting"""

  @pytest.mark.parametrize("code, message, pos", [
      ("let x = ;", "expect expression, found Semicolon", 8),
      ("let = 1", 'expect identifier, found Assign', 4),
      ("let x 1", "expect Assign, found Int(1)", 6),
      ("fn(x { }", "expect RightParen, found LeftBrace", 5),
      ("fn(x) x", 'expect LeftBrace, found Ident("x")', 6),
      ("[1,]", "expect expression, found RightBracket", 3),
      ("{1 2}", "expect Colon, found Int(2)", 3),
      ("}", "expect expression, found RightBrace", 0),
      ("1 + )", "expect expression, found RightParen", 4),
  ])
  def test_mismatch(self, parser, code, message, pos):
    with pytest.raises(OrisParseError) as exc_info:
      parser.parse_program(code)
    assert exc_info.value.message == message
    assert exc_info.value.pos == pos

  @pytest.mark.parametrize("code, message", [
      ("(1 + 2", "miss RightParen"),
      ("fn(x) { x", "miss RightBrace"),
      ("[1, 2", "miss RightBracket"),
      ("let x =", "miss expression"),
      ("1 *", "miss expression"),
  ])
  def test_missing_at_end(self, parser, code, message):
    with pytest.raises(OrisParseError) as exc_info:
      parser.parse_program(code)
    assert exc_info.value.message == message
    assert exc_info.value.pos == len(code)


class TestLexErrors:
  """Test lexical errors surfacing through the parser"""

  def test_unterminated_string(self, parser):
    with pytest.raises(OrisLexError) as exc_info:
      parser.parse_program('let s = "abc')
    assert exc_info.value.kind == "quote"
    assert exc_info.value.pos == 8

  def test_integer_overflow(self, parser):
    with pytest.raises(OrisLexError) as exc_info:
      parser.parse_program("let n = 2147483648;")
    assert exc_info.value.message == "integer literal is too large"
    assert exc_info.value.pos == 8

  def test_bad_digit(self, parser):
    with pytest.raises(OrisLexError) as exc_info:
      parser.parse_program("12abc")
    assert exc_info.value.message == "bad digit `a` in integer literal"
    assert exc_info.value.pos == 2

  def test_unexpected_byte(self, parser):
    nodes = parser.parse("1 @ 2")
    assert next(nodes) == IntLit(1, 0)
    with pytest.raises(OrisLexError) as exc_info:
      next(nodes)
    assert exc_info.value.message == "unexpected byte (@)0x40"
    assert exc_info.value.pos == 2

  def test_invalid_utf8(self, parser):
    with pytest.raises(OrisLexError) as exc_info:
      parser.parse_program(b"1 + \xff")
    assert exc_info.value.kind == "unexpected"
    assert exc_info.value.pos == 4


class TestTokenizer:

  def test_token_kinds(self):
    tokens = OrisTokenizer().tokenize('let f = fn(a) { a >= "s" };')
    assert [str(token) for token in tokens] == [
        "Let", 'Ident("f")', "Assign", "Fn", "LeftParen", 'Ident("a")',
        "RightParen", "LeftBrace", 'Ident("a")', "Ge", 'Str("s")',
        "RightBrace", "Semicolon",
    ]

  def test_token_positions(self):
    tokens = OrisTokenizer().tokenize("x # note\n  12")
    assert [(token.kind, token.pos) for token in tokens] == [("Ident", 0), ("Int", 11)]

  def test_parser_tokenize(self, parser):
    assert [token.kind for token in parser.tokenize("f(1)")] == [
        "Ident", "LeftParen", "Int", "RightParen"]


class TestParseFile:

  def test_reads_bytes(self, parser, tmp_path):
    path = tmp_path / "two.oris"
    path.write_bytes("let s = \"ü\";\ns".encode("utf-8"))
    nodes = parser.parse_file(str(path))
    assert nodes[0] == Let(Ident("s", 4), StrLit("ü", 8), 0)
    assert nodes[1] == Ident("s", 14)
