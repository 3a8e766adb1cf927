"""
Integration tests running the example programs end to end
"""

import pytest
from pathlib import Path
from environment import Environment
from error_handling import OrisError
from interpreter import evaluate


EXAMPLES = Path(__file__).parent.parent / "examples"


def example_files(kind):
  return sorted((EXAMPLES / kind).glob("*.oris"), key=lambda path: path.name)


class TestPassingPrograms:
  """Every program under examples/pass must run to completion"""

  @pytest.mark.parametrize("path", example_files("pass"), ids=lambda path: path.name)
  def test_runs_cleanly(self, path):
    source = path.read_bytes()
    try:
      evaluate(Environment.with_builtins(), source)
    except OrisError as e:
      line, column = e.line_column(source)
      pytest.fail(f"{path.name}:{line + 1}:{column + 1}: {e}")

  def test_collections_output(self, capsys):
    evaluate(Environment.with_builtins(), (EXAMPLES / "pass" / "collections.oris").read_bytes())
    assert capsys.readouterr().out == '"collections ok"\n[2, 3, 5, 7]\n'


class TestFailingPrograms:
  """Every program under examples/fail must stop with the error in its .oris.error file"""

  @pytest.mark.parametrize("path", example_files("fail"), ids=lambda path: path.name)
  def test_reports_expected_error(self, path):
    source = path.read_bytes()
    expected = path.with_name(path.name + ".error").read_text(encoding="utf-8")
    if expected.endswith("\n"):
      expected = expected[:-1]

    with pytest.raises(OrisError) as exc_info:
      evaluate(Environment.with_builtins(), source)

    error = exc_info.value
    line, column = error.line_column(source)
    assert f"{line + 1}:{column + 1}\n{error}" == expected

  def test_every_failure_has_an_error_file(self):
    for path in example_files("fail"):
      assert path.with_name(path.name + ".error").exists(), path.name

  def test_side_effects_before_the_error(self, capsys):
    with pytest.raises(OrisError):
      evaluate(Environment.with_builtins(), (EXAMPLES / "fail" / "division.oris").read_bytes())
    assert capsys.readouterr().out == '"before"\n'
