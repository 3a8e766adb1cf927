"""
Oris Semantics Analysis
Free-variable analysis and closure construction
"""

import sys
from typing import Dict, List, Set

from parsing import (
    Binary, Block, BoolLit, Call, Function, Ident, If, Index, IntLit, Let,
    MapLit, ReturnStmt, SeqLit, StrLit, Unary,
)
from values import Closure


# ============================================================================
# FREE-VARIABLE ANALYSIS
# ============================================================================

def analyze_unbounded(function: Function) -> List[Ident]:
  """
  Identifiers read inside `function` that it does not bind itself.

  Parameters form the outermost scope and every block opens a nested one;
  a `let` binds its name after its value has been walked, so the name is
  visible to later siblings only. Nested `fn` literals are opaque: they do
  their own analysis when they are evaluated.

  The result is in first-read order, one entry per name.
  """
  scopes: List[Set[str]] = [{param.name for param in function.params}]
  found: Dict[str, Ident] = {}
  walk_block(function.body, scopes, found)
  return list(found.values())


def is_bound(name: str, scopes: List[Set[str]]) -> bool:
  return any(name in scope for scope in scopes)


def walk_block(block: Block, scopes: List[Set[str]], found: Dict[str, Ident]) -> None:
  scopes.append(set())
  try:
    for node in block.nodes:
      walk_node(node, scopes, found)
  finally:
    scopes.pop()


def walk_node(node, scopes: List[Set[str]], found: Dict[str, Ident]) -> None:
  if isinstance(node, Let):
    walk_node(node.value, scopes, found)
    scopes[-1].add(node.ident.name)
  elif isinstance(node, ReturnStmt):
    if node.value is not None:
      walk_node(node.value, scopes, found)
  elif isinstance(node, Ident):
    if not is_bound(node.name, scopes) and node.name not in found:
      found[node.name] = node
  elif isinstance(node, (IntLit, BoolLit, StrLit, Function)):
    pass
  elif isinstance(node, SeqLit):
    for element in node.elements:
      walk_node(element, scopes, found)
  elif isinstance(node, MapLit):
    for key, value in node.entries:
      walk_node(key, scopes, found)
      walk_node(value, scopes, found)
  elif isinstance(node, Unary):
    walk_node(node.operand, scopes, found)
  elif isinstance(node, Binary):
    walk_node(node.left, scopes, found)
    walk_node(node.right, scopes, found)
  elif isinstance(node, Call):
    walk_node(node.target, scopes, found)
    for arg in node.args:
      walk_node(arg, scopes, found)
  elif isinstance(node, Index):
    walk_node(node.base, scopes, found)
    walk_node(node.subscript, scopes, found)
  elif isinstance(node, If):
    walk_node(node.condition, scopes, found)
    walk_block(node.consequence, scopes, found)
    if node.alternative is not None:
      walk_block(node.alternative, scopes, found)
  else:
    raise TypeError(f"unknown syntax node {type(node).__name__}")


# ============================================================================
# CLOSURE CONSTRUCTION
# ============================================================================

def build_closure(function: Function, env, debug: bool = False) -> Closure:
  """
  Create a closure, capturing the current value of each free identifier.

  Free identifiers that do not resolve yet are recorded as undefined; a
  later `let` may turn one of them into the recursive binding.
  """
  captured = []
  undefined = []
  for ident in analyze_unbounded(function):
    value = env.get(ident.name)
    if value is None:
      undefined.append(ident)
    else:
      captured.append((ident, value))

  if debug:
    names = ", ".join(ident.name for ident, _ in captured)
    print(f"  Captured [{names}], undefined {[ident.name for ident in undefined]}", file=sys.stderr)

  return Closure(function, tuple(captured), undefined)


def bind_recursive(closure: Closure, ident: Ident) -> bool:
  """
  Patch the closure's recursive binding when it is first bound by `let`.

  Only the first binding counts; after it the closure record is never
  modified again. Returns True when the recursive binding was set.
  """
  if closure.bound:
    return False
  closure.bound = True

  for i, pending in enumerate(closure.undefined):
    if pending.name == ident.name:
      closure.recursive = closure.undefined.pop(i)
      return True
  return False
