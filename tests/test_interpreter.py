"""
Tests for the sink-facing interpreter and error formatting.
"""

import logging

import pytest

from formula import (
	BufferOutput,
	ErrorKind,
	ErrorRecord,
	Interpreter,
	Output,
	StreamOutput,
	format_error,
	indent_detail,
)


REDEFINITION_OUTPUT = (
	'Error: variable redefinition: x\n'
	'       line 2: "x := 20"\n'
	'       actual: 10\n'
	'x + 1 = 11\n'
)


class TestFormatting:
	"""Rendering of error records"""

	def test_without_detail(self):
		record = ErrorRecord(3, "y + 1", ErrorKind.UNDEFINED_VARIABLE, "undefined variable: y")
		assert format_error(record) == 'Error: undefined variable: y\n       line 3: "y + 1"\n'

	def test_detail_is_indented_on_every_line(self):
		record = ErrorRecord(1, "a", ErrorKind.SYNTAX, "message", "first\nsecond")
		assert format_error(record) == (
			'Error: message\n'
			'       line 1: "a"\n'
			'       first\n'
			'       second\n'
		)

	def test_indent_detail(self):
		assert indent_detail("x") == "       x"
		assert indent_detail("a\n\nb") == "       a\n       \n       b"


class TestExecute:
	"""execute() results and sink output"""

	def test_redefinition_scenario(self, interpreter, output):
		assert interpreter.execute("x := 10\nx := 20\nx + 1") is False
		assert output.getvalue() == REDEFINITION_OUTPUT

	def test_banner(self, output):
		interpreter = Interpreter(output)
		assert interpreter.execute("a := 6\na * 7\n") is True
		assert output.getvalue() == "executing...\na * 7 = 42\ndone!\n\n"

	def test_result_line_is_stripped(self, interpreter, output):
		interpreter.execute("   2 + 3 * 4   ")
		assert output.getvalue() == "2 + 3 * 4 = 14\n"

	def test_percent_in_line_text_is_not_a_format(self, interpreter, output):
		assert interpreter.execute("5 % 0") is False
		assert output.getvalue() == 'Error: modulo by zero\n       line 1: "5 % 0"\n'

	def test_errors_in_line_order(self, interpreter, output):
		interpreter.execute("y + 1\n# comment\n1 2\nz := q")
		text = output.getvalue()
		assert text.index("line 1:") < text.index("line 3:") < text.index("line 4:")
		assert "Error: undefined variable: y" in text
		assert "Error: unexpected '2' at column 3" in text
		assert 'Error: invalid value: "q"' in text

	def test_emits_while_processing(self):
		seen = []

		class Recording(Output):
			def write(self, text):
				seen.append(text)

		Interpreter(Recording(), banner=False).execute("1\n2 / 0")
		assert seen[0] == "1 = 1\n"
		assert seen[1].startswith("Error: division by zero")

	def test_empty_source_succeeds(self, interpreter, output):
		assert interpreter.execute("") is True
		assert output.getvalue() == ""

	def test_product_beyond_int_string_limit(self, interpreter, output):
		nines = "9" * 3000
		assert interpreter.execute(f"a := {nines}\na * a\nb := 1") is True
		assert output.getvalue() == "a * a = " + "9" * 2999 + "8" + "0" * 2999 + "1\n"

	def test_long_literal_round_trip(self, interpreter, output):
		text = "1" * 5000
		assert interpreter.execute(text) is True
		assert output.getvalue() == f"{text} = {text}\n"

	def test_process_returns_driver(self, interpreter):
		driver = interpreter.process("a := 1\nb := 2")
		assert driver.environment.snapshot() == {"a": "1", "b": "2"}

	def test_output_is_required(self):
		with pytest.raises(TypeError):
			Interpreter(None)

	def test_logs_run_summary(self, interpreter, caplog):
		caplog.set_level(logging.INFO, logger="formula")
		interpreter.execute("1 / 0")
		assert "Executed 1 lines: 1 errors" in caplog.text


class TestSinks:
	"""Output sink implementations"""

	def test_printf_formats_positional_arguments(self):
		output = BufferOutput()
		output.printf("%s and %d\n", "a", 3)
		output.printf("plain\n")
		assert output.getvalue() == "a and 3\nplain\n"
		output.clear()
		assert output.getvalue() == ""

	def test_stream_output_defaults_to_stdout(self, capsys):
		StreamOutput().printf("hello %s\n", "there")
		assert capsys.readouterr().out == "hello there\n"
