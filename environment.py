"""
Oris runtime environment
A stack of call frames over a global frame, with pooled frame storage
"""

from typing import Any, Callable, Dict, List, Optional

from parsing import is_identifier
from stdlib import BUILTINS
from utilities import closest_match
from values import Builtin, Value, from_python


class Environment:
  """
  Binding storage for one evaluation session.

  Only function calls create frames (`enclosed`); blocks and `if` branches
  bind into the frame of their enclosing call. Frames are cleared before they
  are returned to the pool, so no binding survives into a later call.
  """

  def __init__(self, global_frame: Optional[Dict[str, Value]] = None):
    self.global_frame: Dict[str, Value] = global_frame if global_frame is not None else {}
    self.frames: List[Dict[str, Value]] = []
    self._pool: List[Dict[str, Value]] = []

  @classmethod
  def with_builtins(cls, bindings: Optional[Dict[str, Any]] = None) -> "Environment":
    """Create a session environment seeded with the builtin table and host bindings"""
    env = cls({name: Builtin(name, function) for name, function in BUILTINS})
    for name, obj in (bindings or {}).items():
      if not is_identifier(name):
        raise ValueError(f"'{name}' is not a valid Oris identifier")
      env.define(name, from_python(obj))
    return env

  # ==================== LOOKUP / BINDING ====================

  def get(self, name: str) -> Optional[Value]:
    """Search from the innermost call frame out to the global frame"""
    for frame in reversed(self.frames):
      if name in frame:
        return frame[name]
    return self.global_frame.get(name)

  def set(self, ident, value: Value) -> None:
    """Bind `ident` in the topmost frame (the global frame when no call is active)"""
    self.define(ident.name, value)

  def define(self, name: str, value: Value) -> None:
    frame = self.frames[-1] if self.frames else self.global_frame
    frame[name] = value

  # ==================== FRAMES ====================

  def enclosed(self, fn: Callable[["Environment"], Any]) -> Any:
    """Run `fn` inside a fresh frame, which is popped and pooled afterwards"""
    frame = self._pool.pop() if self._pool else {}
    self.frames.append(frame)
    try:
      return fn(self)
    finally:
      frame = self.frames.pop()
      frame.clear()
      self._pool.append(frame)

  @property
  def depth(self) -> int:
    return len(self.frames)

  @property
  def pooled(self) -> int:
    return len(self._pool)

  # ==================== INTROSPECTION ====================

  def names(self) -> List[str]:
    """Every visible binding name, innermost first, without duplicates"""
    seen = {}
    for frame in reversed(self.frames):
      for name in frame:
        seen.setdefault(name, None)
    for name in self.global_frame:
      seen.setdefault(name, None)
    return list(seen)

  def user_bindings(self) -> Dict[str, Value]:
    """Global bindings other than the untouched builtins"""
    return {
        name: value for name, value in self.global_frame.items()
        if not (isinstance(value, Builtin) and value.name == name)
    }

  def find_similar(self, name: str) -> Optional[str]:
    return closest_match(name, self.names())
