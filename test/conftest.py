"""
Test configuration for Oris tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from environment import Environment
from interpreter import create_interpreter
from parsing import create_parser


@pytest.fixture
def env():
  """A fresh session environment with the builtins bound"""
  return Environment.with_builtins()


@pytest.fixture
def parser():
  return create_parser()


@pytest.fixture
def interpreter():
  return create_interpreter()


@pytest.fixture
def examples_dir():
  return project_root / "examples"
