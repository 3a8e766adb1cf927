"""
Utilities module for the Oris interpreter
Fixed-width integer arithmetic and name-similarity helpers
"""

from typing import Iterable, Optional


INT_MIN = -2**31
INT_MAX = 2**31 - 1


# ==================== 32-BIT ARITHMETIC ====================

def fits_int32(n: int) -> bool:
  return INT_MIN <= n <= INT_MAX


def truncating_div(left: int, right: int) -> int:
  """
  Integer division rounding toward zero

  Examples:
    truncating_div(7, 2) -> 3
    truncating_div(-7, 2) -> -3
  """
  quotient = abs(left) // abs(right)
  if (left < 0) != (right < 0):
    return -quotient
  return quotient


def apply_int_op(left: int, op: str, right: int):
  """
  Apply an arithmetic or comparison operator to two Python ints.

  Returns an int for arithmetic (possibly outside the 32-bit range, the
  caller decides what to do about it) and a bool for comparisons.
  Raises ZeroDivisionError for a zero divisor.
  """
  if op == "+":
    return left + right
  elif op == "-":
    return left - right
  elif op == "*":
    return left * right
  elif op == "/":
    if right == 0:
      raise ZeroDivisionError("division by zero")
    return truncating_div(left, right)
  elif op == "<":
    return left < right
  elif op == "<=":
    return left <= right
  elif op == ">":
    return left > right
  elif op == ">=":
    return left >= right
  elif op == "==":
    return left == right
  elif op == "!=":
    return left != right
  raise ValueError(f"unknown operator {op}")


# ==================== NAME SIMILARITY ====================

def edit_distance(a: str, b: str) -> int:
  """
  Levenshtein distance between two strings

  Examples:
    edit_distance("kitten", "sitting") -> 3
    edit_distance("", "none") -> 4
  """
  row = list(range(len(b) + 1))
  for i, ca in enumerate(a, 1):
    diagonal, row[0] = row[0], i
    for j, cb in enumerate(b, 1):
      if ca == cb:
        current = diagonal
      else:
        current = 1 + min(diagonal, row[j - 1], row[j])
      diagonal, row[j] = row[j], current
  return row[-1]


def closest_match(name: str, candidates: Iterable[str]) -> Optional[str]:
  """
  Find the candidate closest to `name`, or None when nothing is close.

  A candidate counts as close when at most a third of the longer name
  (and at least one character) has to change.
  """
  best = None
  best_distance = None
  for candidate in candidates:
    if candidate == name:
      continue
    distance = edit_distance(name, candidate)
    limit = max(1, max(len(name), len(candidate)) // 3)
    if distance > limit:
      continue
    if best_distance is None or distance < best_distance:
      best, best_distance = candidate, distance
  return best
