"""
Oris Standard Library
Builtin functions bound in every session's global frame

Every builtin takes the call position and the evaluated argument list,
validates its own arity and argument types, and returns a value.
"""

from typing import Callable, List, Optional, Tuple

from error_handling import ArgCountError, ArgTypeError, ArgValueError, AssertEqError
from values import UNIT, Int, Map, Seq, Str, Value, render, type_name


def expect_args(pos: Optional[int], args: List[Value], count: int) -> None:
  if len(args) != count:
    raise ArgCountError(count, len(args), pos)


# ============================================================================
# SEQUENCE FUNCTIONS
# ============================================================================

# fn(str | seq | map) -> int
def oris_len(pos: Optional[int], args: List[Value]) -> Value:
  """Element count of a seq or map, byte count of a str"""
  expect_args(pos, args, 1)
  value = args[0]

  if isinstance(value, Str):
    return Int(len(value.value.encode("utf-8")))
  elif isinstance(value, Seq):
    return Int(len(value.items))
  elif isinstance(value, Map):
    return Int(len(value.entries))
  raise ArgTypeError("seq | str | map", value, pos)


# fn([T]) -> T
def oris_head(pos: Optional[int], args: List[Value]) -> Value:
  expect_args(pos, args, 1)
  value = args[0]

  if not isinstance(value, Seq):
    raise ArgTypeError("seq", value, pos)
  if not value.items:
    raise ArgValueError("call head() with an empty seq", pos)
  return value.items[0]


# fn([T]) -> [T]
def oris_tail(pos: Optional[int], args: List[Value]) -> Value:
  expect_args(pos, args, 1)
  value = args[0]

  if not isinstance(value, Seq):
    raise ArgTypeError("seq", value, pos)
  if not value.items:
    raise ArgValueError("call tail() with an empty seq", pos)
  return Seq(value.items[1:])


# fn([T], T...) -> [T]
def oris_append(pos: Optional[int], args: List[Value]) -> Value:
  if len(args) < 2:
    raise ArgCountError(2, len(args), pos)

  first = args[0]
  if not isinstance(first, Seq):
    raise ArgTypeError("append(seq, T...)", first, pos)
  return Seq(first.items + tuple(args[1:]))


# ============================================================================
# I/O AND INTROSPECTION
# ============================================================================

# fn(T...)
def oris_print(pos: Optional[int], args: List[Value]) -> Value:
  """Print each argument's debug rendering on its own line"""
  if not args:
    print()
  for arg in args:
    print(render(arg))
  return UNIT


# fn(T, T)
def oris_assert_eq(pos: Optional[int], args: List[Value]) -> Value:
  expect_args(pos, args, 2)
  left, right = args

  if left != right:
    raise AssertEqError(left, right, pos)
  return UNIT


# fn(T) -> str
def oris_type(pos: Optional[int], args: List[Value]) -> Value:
  expect_args(pos, args, 1)
  return Str(type_name(args[0]))


BUILTINS: List[Tuple[str, Callable]] = [
    ("len", oris_len),
    ("head", oris_head),
    ("tail", oris_tail),
    ("append", oris_append),
    ("print", oris_print),
    ("assert_eq", oris_assert_eq),
    ("type", oris_type),
]
