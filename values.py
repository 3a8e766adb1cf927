"""
Oris runtime values
Tagged value variants, map-key projection and debug rendering
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union


# ============================================================================
# VALUE VARIANTS
# ============================================================================

@dataclass(frozen=True)
class Unit:
  """Marks that no value was produced"""


UNIT = Unit()


@dataclass(frozen=True)
class Int:
  value: int


@dataclass(frozen=True)
class Bool:
  value: bool


@dataclass(frozen=True)
class Str:
  value: str


@dataclass(frozen=True)
class Seq:
  items: Tuple[Any, ...] = ()


@dataclass(frozen=True, eq=False)
class Map:
  """Immutable mapping from Int/Bool/Str keys to values, in insertion order"""
  entries: Mapping[Any, Any] = field(default_factory=dict)

  def __post_init__(self):
    # Read-only view over a private copy
    object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

  def __eq__(self, other):
    if not isinstance(other, Map):
      return NotImplemented
    return self.entries == other.entries


@dataclass(frozen=True, eq=False)
class Builtin:
  """Native function; two builtins are equal when they wrap the same function"""
  name: str
  function: Callable

  def __eq__(self, other):
    if not isinstance(other, Builtin):
      return NotImplemented
    return self.function is other.function

  def __hash__(self):
    return hash(self.function)


@dataclass(eq=False)
class Closure:
  """
  Closure record shared by every holder of the closure value.

  `function` is the parsed `fn` node, `captured` the (ident, value) pairs
  snapshotted when the closure was created, and `undefined` the free
  identifiers that did not resolve at that time. `recursive` is set at most
  once, by the first `let` that binds the closure under one of those names.
  Equality is identity.
  """
  function: Any
  captured: Tuple[Tuple[Any, Any], ...] = ()
  undefined: List[Any] = field(default_factory=list)
  recursive: Optional[Any] = None
  bound: bool = False


Value = Union[Unit, Int, Bool, Str, Seq, Map, Builtin, Closure]
Key = Union[Int, Bool, Str]


# ============================================================================
# KEY PROJECTION
# ============================================================================

def to_key(value: Value) -> Optional[Key]:
  """Project a value onto the subset usable as a map key"""
  if isinstance(value, (Int, Bool, Str)):
    return value
  return None


# ============================================================================
# RENDERING
# ============================================================================

TYPE_NAMES = {
    Unit: "unit",
    Int: "int",
    Bool: "bool",
    Str: "str",
    Seq: "seq",
    Map: "map",
    Builtin: "builtin",
    Closure: "closure",
}

_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
    '\0': '\\0',
}


def type_name(value: Value) -> str:
  return TYPE_NAMES[type(value)]


def quote_str(text: str) -> str:
  """Double-quote a string, escaping quotes, backslashes and control characters"""
  parts = []
  for ch in text:
    if ch in _ESCAPES:
      parts.append(_ESCAPES[ch])
    elif ord(ch) < 0x20 or ord(ch) == 0x7f:
      parts.append(f"\\u{{{ord(ch):x}}}")
    else:
      parts.append(ch)
  return '"' + ''.join(parts) + '"'


def render(value: Value) -> str:
  """
  Debug rendering used by print, the REPL and error messages.

  Examples:
    render(Int(1)) -> "1"
    render(Str("a")) -> '"a"'
    render(Seq((Int(1), Bool(True)))) -> "[1, true]"
  """
  if isinstance(value, Unit):
    return "<unit>"
  elif isinstance(value, Int):
    return str(value.value)
  elif isinstance(value, Bool):
    return "true" if value.value else "false"
  elif isinstance(value, Str):
    return quote_str(value.value)
  elif isinstance(value, Seq):
    return "[" + ", ".join(render(item) for item in value.items) + "]"
  elif isinstance(value, Map):
    pairs = (f"{render(k)}: {render(v)}" for k, v in value.entries.items())
    return "{" + ", ".join(pairs) + "}"
  elif isinstance(value, Closure):
    return "<closure>"
  elif isinstance(value, Builtin):
    return "<builtin>"
  raise TypeError(f"not an Oris value: {value!r}")


# ============================================================================
# HOST CONVERSION
# ============================================================================

def from_python(obj: Any) -> Value:
  """Convert a host bool/int/str into an Oris value; Oris values pass through"""
  if isinstance(obj, (Unit, Int, Bool, Str, Seq, Map, Builtin, Closure)):
    return obj
  # bool first: it is a subclass of int
  if isinstance(obj, bool):
    return Bool(obj)
  if isinstance(obj, int):
    if not -2**31 <= obj <= 2**31 - 1:
      raise ValueError(f"integer {obj} does not fit in 32 bits")
    return Int(obj)
  if isinstance(obj, str):
    return Str(obj)
  raise TypeError(f"cannot bind a host value of type {type(obj).__name__}")
