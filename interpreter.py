"""
Oris Interpreter
Evaluates the node stream from the parser against a session Environment

Every evaluator returns Continue(value) for normal fallthrough or
Return(value) for an early `return`; each caller checks which one it got and
hands a Return straight back up until a call boundary absorbs it. Errors are
raised as OrisError subclasses and abort the whole evaluation.
"""

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

from environment import Environment
from error_handling import (
    ArgCountError, ArgTypeError, ArithError, BinaryError, CallError,
    IndexingError, UnaryError, UndefinedError,
)
from parsing import (
    Binary, Block, BoolLit, Call, Function, Ident, If, Index, IntLit, Let,
    MapLit, OrisParser, ReturnStmt, SeqLit, StrLit, Unary, create_parser,
)
from semantics import bind_recursive, build_closure
from utilities import apply_int_op, fits_int32
from values import (
    UNIT, Bool, Builtin, Closure, Int, Map, Seq, Str, Value, to_key,
)


# ============================================================================
# PROPAGATION STATES
# ============================================================================

@dataclass(frozen=True)
class Continue:
  value: Any


@dataclass(frozen=True)
class Return:
  value: Any


Eval = Union[Continue, Return]


# ============================================================================
# ENTRY POINT
# ============================================================================

# Every Oris call or nesting level costs a dozen or so host frames
DEFAULT_RECURSION_LIMIT = 10000

_default_parser: Optional[OrisParser] = None


@contextmanager
def recursion_limit(limit: int) -> Iterator[None]:
  """Raise the host recursion limit to at least `limit` until the block exits"""
  previous = sys.getrecursionlimit()
  sys.setrecursionlimit(max(previous, limit))
  try:
    yield
  finally:
    sys.setrecursionlimit(previous)


def evaluate(env: Environment, source: Union[bytes, str], debug: bool = False,
             parser: Optional[OrisParser] = None,
             max_depth: int = DEFAULT_RECURSION_LIMIT) -> Value:
  """
  Run every node of `source` in `env` and return the program result.

  The result is the value of the last node, or the value of a top-level
  `return`, which also stops the program. The first lexical, syntax or
  runtime error aborts evaluation; nodes before it have already run.
  Parsing and evaluation run with the host recursion limit raised to at
  least `max_depth`; a program nesting deeper raises RecursionError.
  """
  global _default_parser
  if parser is None:
    if _default_parser is None:
      _default_parser = create_parser()
    parser = _default_parser

  output = UNIT
  with recursion_limit(max_depth):
    for node in parser.parse(source):
      result = eval_node(env, node, debug)
      if isinstance(result, Return):
        return result.value
      output = result.value
  return output


# ============================================================================
# STATEMENTS
# ============================================================================

def eval_node(env: Environment, node, debug: bool = False) -> Eval:
  if isinstance(node, Let):
    return eval_let(env, node, debug)
  elif isinstance(node, ReturnStmt):
    return eval_return(env, node, debug)
  return eval_expr(env, node, debug)


def eval_let(env: Environment, stmt: Let, debug: bool = False) -> Eval:
  if debug:
    print(f"Evaluating: Let {stmt.ident.name}", file=sys.stderr)

  result = eval_expr(env, stmt.value, debug)
  if isinstance(result, Return):
    return result

  value = result.value
  if isinstance(value, Closure):
    if bind_recursive(value, stmt.ident) and debug:
      print(f"  Recursive binding: {stmt.ident.name}", file=sys.stderr)

  env.set(stmt.ident, value)
  return Continue(UNIT)


def eval_return(env: Environment, stmt: ReturnStmt, debug: bool = False) -> Eval:
  if debug:
    print("Evaluating: Return", file=sys.stderr)

  # A bare `return;` does not leave the function
  if stmt.value is None:
    return Continue(UNIT)

  result = eval_expr(env, stmt.value, debug)
  return Return(result.value)


def eval_block(env: Environment, block: Block, debug: bool = False) -> Eval:
  result = UNIT
  for node in block.nodes:
    evaluated = eval_node(env, node, debug)
    if isinstance(evaluated, Return):
      return evaluated
    result = evaluated.value
  return Continue(result)


# ============================================================================
# EXPRESSIONS
# ============================================================================

def eval_expr(env: Environment, expr, debug: bool = False) -> Eval:
  """Evaluate an expression node"""
  if debug:
    print(f"Evaluating: {type(expr).__name__}", file=sys.stderr)

  if isinstance(expr, IntLit):
    return Continue(Int(expr.value))
  elif isinstance(expr, BoolLit):
    return Continue(Bool(expr.value))
  elif isinstance(expr, StrLit):
    return Continue(Str(expr.value))
  elif isinstance(expr, Ident):
    return eval_identifier(env, expr)
  elif isinstance(expr, SeqLit):
    return eval_seq(env, expr, debug)
  elif isinstance(expr, MapLit):
    return eval_map(env, expr, debug)
  elif isinstance(expr, Unary):
    return eval_unary(env, expr, debug)
  elif isinstance(expr, Binary):
    return eval_binary(env, expr, debug)
  elif isinstance(expr, Function):
    return Continue(build_closure(expr, env, debug))
  elif isinstance(expr, Call):
    return eval_call(env, expr, debug)
  elif isinstance(expr, Index):
    return eval_index(env, expr, debug)
  elif isinstance(expr, If):
    return eval_if(env, expr, debug)
  raise TypeError(f"unknown syntax node {type(expr).__name__}")


def eval_identifier(env: Environment, ident: Ident) -> Eval:
  value = env.get(ident.name)
  if value is None:
    raise UndefinedError(ident.name, ident.pos, env.find_similar(ident.name))
  return Continue(value)


def eval_seq(env: Environment, expr: SeqLit, debug: bool = False) -> Eval:
  items = []
  for element in expr.elements:
    result = eval_expr(env, element, debug)
    if isinstance(result, Return):
      return result
    items.append(result.value)
  return Continue(Seq(tuple(items)))


def eval_map(env: Environment, expr: MapLit, debug: bool = False) -> Eval:
  entries: Dict[Any, Value] = {}
  for key_expr, value_expr in expr.entries:
    result = eval_expr(env, key_expr, debug)
    if isinstance(result, Return):
      return result
    key = to_key(result.value)
    if key is None:
      raise ArgTypeError("int | bool | str as map key", result.value, key_expr.pos)

    result = eval_expr(env, value_expr, debug)
    if isinstance(result, Return):
      return result
    entries[key] = result.value
  return Continue(Map(entries))


def eval_unary(env: Environment, expr: Unary, debug: bool = False) -> Eval:
  result = eval_expr(env, expr.operand, debug)
  if isinstance(result, Return):
    return result
  operand = result.value

  if expr.op == "-" and isinstance(operand, Int):
    negated = -operand.value
    if not fits_int32(negated):
      raise ArithError(f"integer overflow in -{operand.value}", expr.pos)
    return Continue(Int(negated))
  elif expr.op == "!" and isinstance(operand, Bool):
    return Continue(Bool(not operand.value))
  raise UnaryError(expr.op, operand, expr.pos)


def eval_binary(env: Environment, expr: Binary, debug: bool = False) -> Eval:
  result = eval_expr(env, expr.left, debug)
  if isinstance(result, Return):
    return result
  left = result.value

  result = eval_expr(env, expr.right, debug)
  if isinstance(result, Return):
    return result
  right = result.value

  return Continue(apply_binary(expr.pos, left, expr.op, right))


def apply_binary(pos: Optional[int], left: Value, op: str, right: Value) -> Value:
  """Apply a binary operator to two values of the same variant"""
  if isinstance(left, Int) and isinstance(right, Int):
    try:
      value = apply_int_op(left.value, op, right.value)
    except ZeroDivisionError:
      raise ArithError("division by zero", pos) from None
    if isinstance(value, bool):
      return Bool(value)
    if not fits_int32(value):
      raise ArithError(f"integer overflow in {left.value} {op} {right.value}", pos)
    return Int(value)

  same_variant = type(left) is type(right) and isinstance(left, (Bool, Str, Seq, Map))
  if same_variant:
    if op == "==":
      return Bool(left == right)
    elif op == "!=":
      return Bool(left != right)
    elif op == "+" and isinstance(left, Str):
      return Str(left.value + right.value)
    elif op == "+" and isinstance(left, Seq):
      return Seq(left.items + right.items)

  raise BinaryError(left, op, right, pos)


def eval_if(env: Environment, expr: If, debug: bool = False) -> Eval:
  result = eval_expr(env, expr.condition, debug)
  if isinstance(result, Return):
    return result

  # Anything other than exactly `true` takes the else path
  if result.value == Bool(True):
    return eval_block(env, expr.consequence, debug)
  elif expr.alternative is not None:
    return eval_block(env, expr.alternative, debug)
  return Continue(UNIT)


def eval_index(env: Environment, expr: Index, debug: bool = False) -> Eval:
  result = eval_expr(env, expr.base, debug)
  if isinstance(result, Return):
    return result
  base = result.value

  result = eval_expr(env, expr.subscript, debug)
  if isinstance(result, Return):
    return result
  subscript = result.value

  if isinstance(base, Seq):
    if isinstance(subscript, Int) and 0 <= subscript.value < len(base.items):
      return Continue(base.items[subscript.value])
  elif isinstance(base, Map):
    key = to_key(subscript)
    if key is not None and key in base.entries:
      return Continue(base.entries[key])
  raise IndexingError(base, subscript, expr.pos)


# ============================================================================
# CALLS
# ============================================================================

def eval_call(env: Environment, expr: Call, debug: bool = False) -> Eval:
  result = eval_expr(env, expr.target, debug)
  if isinstance(result, Return):
    return result
  target = result.value

  args: List[Value] = []
  for arg in expr.args:
    result = eval_expr(env, arg, debug)
    if isinstance(result, Return):
      return result
    args.append(result.value)

  if isinstance(target, Closure):
    return Continue(call_closure(env, target, args, expr.pos, debug))
  elif isinstance(target, Builtin):
    if debug:
      print(f"Calling builtin {target.name} with {len(args)} args", file=sys.stderr)
    return Continue(target.function(expr.pos, args))
  raise CallError(target, expr.pos)


def call_closure(env: Environment, closure: Closure, args: List[Value],
                 pos: Optional[int] = None, debug: bool = False) -> Value:
  """
  Call a closure in a new frame.

  The frame receives, in order, the recursive binding, the captured values
  and the parameters. A `return` inside the body ends the call and does not
  propagate past it.
  """
  params = closure.function.params
  if len(args) != len(params):
    raise ArgCountError(len(params), len(args), pos)

  if debug:
    print(f"Calling closure with {len(args)} args", file=sys.stderr)

  def run_body(env: Environment) -> Value:
    if closure.recursive is not None:
      env.set(closure.recursive, closure)
    for ident, value in closure.captured:
      env.set(ident, value)
    for ident, value in zip(params, args):
      env.set(ident, value)
    return eval_block(env, closure.function.body, debug).value

  return env.enclosed(run_body)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class Interpreter:
  """An evaluation session: one environment reused by every `run`"""

  def __init__(self, env: Optional[Environment] = None, debug: bool = False,
               max_depth: int = DEFAULT_RECURSION_LIMIT):
    self.debug = debug
    self.env = env if env is not None else Environment.with_builtins()
    self.parser = create_parser(debug)
    self.max_depth = max_depth

  def run(self, source: Union[bytes, str]) -> Value:
    return evaluate(self.env, source, self.debug, self.parser, self.max_depth)

  def run_file(self, path: str) -> Value:
    with open(path, 'rb') as f:
      return self.run(f.read())


def create_interpreter(debug: bool = False, bindings: Optional[Dict[str, Any]] = None,
                       max_depth: int = DEFAULT_RECURSION_LIMIT) -> Interpreter:
  """Factory function returning an interpreter with a fresh session environment"""
  return Interpreter(Environment.with_builtins(bindings), debug, max_depth)


def create_debug_interpreter() -> Interpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
