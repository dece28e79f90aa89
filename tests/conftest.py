"""
Shared fixtures for the Formula test suite.
"""

import pytest

from formula import BufferOutput, Interpreter


@pytest.fixture
def output():
	"""Collects everything the interpreter writes."""
	return BufferOutput()


@pytest.fixture
def interpreter(output):
	"""Interpreter without the executing/done banner."""
	return Interpreter(output, banner=False)


@pytest.fixture
def source_file(tmp_path):
	"""Write source text to a temporary file and return its path."""
	def write(text, name="program.formula"):
		path = tmp_path / name
		path.write_text(text, encoding="utf-8")
		return path
	return write
