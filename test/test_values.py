"""
Tests for Oris runtime values
"""

import pytest
from parsing import Block, Function
from stdlib import oris_len
from values import (
    UNIT, Bool, Builtin, Closure, Int, Map, Seq, Str, from_python, quote_str,
    render, to_key, type_name,
)


def make_closure():
  return Closure(Function((), Block((), 0), 0))


class TestEquality:
  """Structural equality, except for closures"""

  def test_scalars(self):
    assert Int(1) == Int(1)
    assert Int(1) != Int(2)
    assert Str("a") == Str("a")
    assert Bool(True) == Bool(True)

  def test_variants_never_equal(self):
    assert Int(1) != Bool(True)
    assert Int(0) != Bool(False)
    assert Str("1") != Int(1)
    assert UNIT != Seq(())

  def test_seq_equality_is_elementwise(self):
    assert Seq((Int(1), Str("a"))) == Seq((Int(1), Str("a")))
    assert Seq((Int(1),)) != Seq((Int(1), Int(1)))

  def test_map_equality_ignores_order(self):
    left = Map({Int(1): Str("a"), Str("k"): Bool(True)})
    right = Map({Str("k"): Bool(True), Int(1): Str("a")})
    assert left == right
    assert left != Map({Int(1): Str("a")})

  def test_map_entries_are_read_only(self):
    entries = {Int(1): Str("a")}
    value = Map(entries)
    entries[Int(2)] = Str("b")
    assert len(value.entries) == 1
    with pytest.raises(TypeError):
      value.entries[Int(3)] = Str("c")

  def test_closure_equality_is_identity(self):
    closure = make_closure()
    assert closure == closure
    assert closure != make_closure()

  def test_builtins_compare_by_function(self):
    assert Builtin("len", oris_len) == Builtin("size", oris_len)
    assert Builtin("len", oris_len) != Builtin("len", print)


class TestKeys:

  def test_scalars_are_keys(self):
    for value in (Int(3), Bool(False), Str("x")):
      assert to_key(value) == value

  def test_other_values_are_not_keys(self):
    for value in (UNIT, Seq(()), Map({}), make_closure(), Builtin("len", oris_len)):
      assert to_key(value) is None


class TestRendering:
  """Test the debug rendering used by print and error messages"""

  def test_scalars(self):
    assert render(Int(-7)) == "-7"
    assert render(Bool(True)) == "true"
    assert render(Bool(False)) == "false"
    assert render(UNIT) == "<unit>"

  def test_strings_are_quoted_and_escaped(self):
    assert render(Str("hi")) == '"hi"'
    assert render(Str('say "x"')) == '"say \\"x\\""'
    assert render(Str("a\nb")) == '"a\\nb"'

  def test_control_characters(self):
    assert quote_str("\x01") == '"\\u{1}"'

  def test_collections(self):
    assert render(Seq((Int(1), Str("a"), Bool(True)))) == '[1, "a", true]'
    assert render(Seq(())) == "[]"
    assert render(Map({Str("a"): Int(1), Int(2): Seq(())})) == '{"a": 1, 2: []}'

  def test_functions(self):
    assert render(make_closure()) == "<closure>"
    assert render(Builtin("len", oris_len)) == "<builtin>"


class TestTypeNames:

  @pytest.mark.parametrize("value, name", [
      (UNIT, "unit"),
      (Int(0), "int"),
      (Bool(True), "bool"),
      (Str(""), "str"),
      (Seq(()), "seq"),
      (Map({}), "map"),
      (Builtin("len", oris_len), "builtin"),
  ])
  def test_type_name(self, value, name):
    assert type_name(value) == name

  def test_closure_type_name(self):
    assert type_name(make_closure()) == "closure"


class TestHostConversion:

  def test_converts_scalars(self):
    assert from_python(True) == Bool(True)
    assert from_python(12) == Int(12)
    assert from_python("s") == Str("s")

  def test_rejects_out_of_range_integers(self):
    with pytest.raises(ValueError):
      from_python(2**31)

  def test_rejects_other_types(self):
    with pytest.raises(TypeError):
      from_python(1.5)
