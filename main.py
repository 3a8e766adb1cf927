"""
Oris Programming Language - Main Entry Point
A small dynamically typed expression language with closures
"""

import re
import sys
import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from error_handling import OrisError, format_error
from interpreter import DEFAULT_RECURSION_LIMIT, create_interpreter, recursion_limit
from parsing import create_debug_parser, create_parser, is_identifier, pretty_print_ast
from values import UNIT, Bool, Str, Value, from_python, render


VERSION = "Oris v0.1.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Oris Programming Language - expressions, closures and builtins',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.oris              # Run an Oris script
  %(prog)s -i                       # Interactive mode
  %(prog)s --parse script.oris      # Parse and show the syntax tree
  %(prog)s --debug script.oris      # Run with debug output
  %(prog)s -D limit=10 script.oris  # Bind `limit` before running
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Oris script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the syntax tree (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '-D', '--define',
      action='append',
      default=[],
      metavar='NAME=VALUE',
      help='Bind a global before the script runs (int, true/false, or string)'
  )

  parser.add_argument(
      '--recursion-limit',
      type=int,
      default=DEFAULT_RECURSION_LIMIT,
      help='Host recursion limit, bounds how deeply Oris calls can nest'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def parse_defines(defines: List[str]) -> Dict[str, Value]:
  """
  Turn NAME=VALUE options into Oris values

  Examples:
    parse_defines(["n=3", "on=true", "who=ann"]) -> {"n": Int(3), "on": Bool(True), "who": Str("ann")}

  Raises ValueError for a malformed option, a NAME that is not an identifier
  or an integer that does not fit.
  """
  bindings: Dict[str, Value] = {}
  for define in defines:
    name, sep, text = define.partition('=')
    if not sep or not name:
      raise ValueError(f"expected NAME=VALUE, got '{define}'")
    if not is_identifier(name):
      raise ValueError(f"'{name}' is not a valid Oris identifier")
    if text in ("true", "false"):
      bindings[name] = Bool(text == "true")
    elif re.fullmatch(r'[+-]?[0-9]+', text):
      # Rejects integers outside the 32-bit range
      bindings[name] = from_python(int(text))
    else:
      bindings[name] = Str(text)
  return bindings


def read_source(script_path: str) -> Optional[bytes]:
  """Read a script as raw bytes, reporting file errors; None when unreadable"""
  try:
    with open(script_path, 'rb') as f:
      return f.read()
  except FileNotFoundError:
    print(f"Error: Script file '{script_path}' not found", file=sys.stderr)
    print(f"  Hint: Check the file path and make sure the file exists", file=sys.stderr)
  except PermissionError:
    print(f"Error: Permission denied reading '{script_path}'", file=sys.stderr)
    print(f"  Hint: Make sure you have read permissions for this file", file=sys.stderr)
  except IsADirectoryError:
    print(f"Error: '{script_path}' is a directory", file=sys.stderr)
  return None


def parse_file(script_path: str, debug: bool = False,
               max_depth: int = DEFAULT_RECURSION_LIMIT) -> None:
  """Parse an Oris script file and show the syntax tree"""
  source = read_source(script_path)
  if source is None:
    sys.exit(1)

  parser = create_debug_parser() if debug else create_parser()
  print(f"Parsing {script_path}...")
  count = 0
  try:
    with recursion_limit(max_depth):
      for node in parser.parse(source):
        count += 1
        print(f"\nNode {count}:")
        print(pretty_print_ast(node))
  except OrisError as e:
    print(format_error(e, source, script_path), file=sys.stderr)
    sys.exit(1)

  print("=" * 50)
  print(f"Parsed {count} top-level nodes")


def run_script_file(script_path: str, debug: bool = False,
                    bindings: Optional[Dict[str, Any]] = None,
                    max_depth: int = DEFAULT_RECURSION_LIMIT) -> None:
  """Run an Oris script file, printing the program result when there is one"""
  source = read_source(script_path)
  if source is None:
    sys.exit(1)

  interpreter = create_interpreter(debug=debug, bindings=bindings, max_depth=max_depth)
  if debug:
    print(f"Running {script_path}...", file=sys.stderr)

  try:
    result = interpreter.run(source)
  except OrisError as e:
    print(format_error(e, source, script_path), file=sys.stderr)
    sys.exit(1)
  except RecursionError:
    print(f"Error: recursion too deep while running '{script_path}'", file=sys.stderr)
    print(f"  Hint: Raise the limit with --recursion-limit", file=sys.stderr)
    sys.exit(2)

  if result != UNIT:
    print(render(result))


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  # Setup history file
  history_file = os.path.expanduser("~/.oris_history")
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First run, no history yet

  readline.set_history_length(1000)

  completions = [
      # Keywords
      "let", "fn", "if", "else", "return", "true", "false",
      # Builtins
      "len", "head", "tail", "append", "print", "assert_eq", "type",
      # REPL commands
      ":parse", ":env", ":help", "exit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  # Save history on exit
  import atexit
  atexit.register(readline.write_history_file, history_file)


def show_repl_help() -> None:
  print("REPL Commands:")
  print("  :parse <code>     - Show the syntax tree")
  print("  :env              - Show current bindings")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  let x = 5;                      - Binding")
  print("  let add = fn(a, b) { a + b };   - Closure")
  print("  add(1, 2)                       - Call")
  print("  if x > 3 { \"big\" } else { 0 }   - Conditional")
  print("  [1, 2][0]  {\"k\": 1}[\"k\"]         - Seq and map indexing")


def run_interactive_mode(debug: bool = False, bindings: Optional[Dict[str, Any]] = None,
                         max_depth: int = DEFAULT_RECURSION_LIMIT) -> None:
  """Run Oris in interactive mode; every line shares one session environment"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  interpreter = create_interpreter(debug=debug, bindings=bindings, max_depth=max_depth)

  while True:
    try:
      code = input("oris> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    command = code.strip()
    if command == "exit":
      break
    if not command:
      continue

    if command == ":help":
      show_repl_help()
      continue

    if command == ":env":
      bindings_now = interpreter.env.user_bindings()
      if not bindings_now:
        print("  (no user-defined bindings)")
      for name, value in bindings_now.items():
        val_str = render(value)
        if len(val_str) > 60:
          val_str = val_str[:57] + "..."
        print(f"  {name} = {val_str}")
      continue

    if command.startswith(":parse"):
      snippet = command[len(":parse"):].strip()
      try:
        with recursion_limit(interpreter.max_depth):
          for node in interpreter.parser.parse(snippet):
            print(pretty_print_ast(node))
      except OrisError as e:
        print(format_error(e, snippet, "<repl>"))
      continue

    try:
      result = interpreter.run(code)
    except OrisError as e:
      print(format_error(e, code, "<repl>"))
      continue
    except RecursionError:
      print("Error: recursion too deep")
      continue

    if result != UNIT:
      print(f"=> {render(result)}")


def show_language_info() -> None:
  """Show Oris language information"""
  print("Oris Programming Language")
  print("=" * 50)
  print("A small expression language with:")
  print("• 32-bit integers, booleans, strings, seqs and maps")
  print("• First-class closures with captured bindings")
  print("• Recursion through `let` bindings")
  print("• Early `return` from functions")
  print()


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Oris"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  try:
    bindings = parse_defines(args.define)
  except ValueError as e:
    arg_parser.error(str(e))

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist", file=sys.stderr)
      sys.exit(1)

    if args.parse:
      parse_file(args.script, debug=args.debug, max_depth=args.recursion_limit)
    else:
      run_script_file(args.script, debug=args.debug, bindings=bindings,
                      max_depth=args.recursion_limit)

  elif args.interactive:
    run_interactive_mode(debug=args.debug, bindings=bindings, max_depth=args.recursion_limit)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
