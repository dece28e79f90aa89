"""Formula: a line-oriented integer expression language with per-line error reporting.

Each source line is a comment, an assignment (``name := 42``) or an
expression over previously assigned names (``a * b + 3``). Lines are
processed in order; an error on one line is reported and processing
continues with the next.
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TextIO, Tuple, Union

__version__ = "0.1.0"
VERSION = f"v {__version__}"

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diagnostic infrastructure


class ErrorKind(Enum):
	LEX = auto()
	SYNTAX = auto()
	NUMBER_FORMAT = auto()
	REDEFINITION = auto()
	UNDEFINED_VARIABLE = auto()
	ARITHMETIC = auto()


class FormulaError(Exception):
	"""Base class for errors raised while processing a single source line."""

	kind: ErrorKind

	def __init__(self, message: str, *, detail: Optional[str] = None, column: Optional[int] = None) -> None:
		super().__init__(message)
		self.message = message
		self.detail = detail
		self.column = column

	def __str__(self) -> str:
		return self.message


class LexError(FormulaError):
	kind = ErrorKind.LEX

	def __init__(self, character: str, column: int) -> None:
		super().__init__(f"invalid character '{character}' at column {column}", column=column)
		self.character = character


class FormulaSyntaxError(FormulaError):
	kind = ErrorKind.SYNTAX


class NumberFormatError(FormulaError):
	kind = ErrorKind.NUMBER_FORMAT

	def __init__(self, text: str) -> None:
		super().__init__(f'invalid value: "{text}"')
		self.text = text


class RedefinitionError(FormulaError):
	kind = ErrorKind.REDEFINITION

	def __init__(self, name: str, existing: "Value") -> None:
		super().__init__(f"variable redefinition: {name}", detail=f"actual: {existing}")
		self.name = name
		self.existing = existing


class UndefinedVariableError(FormulaError):
	kind = ErrorKind.UNDEFINED_VARIABLE

	def __init__(self, name: str) -> None:
		super().__init__(f"undefined variable: {name}")
		self.name = name


class FormulaArithmeticError(FormulaError):
	kind = ErrorKind.ARITHMETIC


@dataclass
class ErrorRecord:
	line_number: int
	line: str
	kind: ErrorKind
	message: str
	detail: Optional[str] = None


@dataclass
class ResultRecord:
	line_number: int
	line: str
	value: "Value"


Record = Union[ErrorRecord, ResultRecord]


class ExecutionReport:
	"""Ordered outcome of one run: errors, expression results and timing."""

	def __init__(self, listener: Optional[Callable[[Record], None]] = None) -> None:
		self._events: List[Record] = []
		self._listener = listener
		self.duration_ms = 0.0

	@property
	def success(self) -> bool:
		return not self.errors

	@property
	def events(self) -> List[Record]:
		return list(self._events)

	@property
	def errors(self) -> List[ErrorRecord]:
		return [event for event in self._events if isinstance(event, ErrorRecord)]

	@property
	def results(self) -> List[ResultRecord]:
		return [event for event in self._events if isinstance(event, ResultRecord)]

	def report_error(self, line_number: int, line: str, error: FormulaError) -> ErrorRecord:
		record = ErrorRecord(line_number, line, error.kind, error.message, error.detail)
		self._add(record)
		return record

	def report_result(self, line_number: int, line: str, value: "Value") -> ResultRecord:
		record = ResultRecord(line_number, line, value)
		self._add(record)
		return record

	def _add(self, record: Record) -> None:
		self._events.append(record)
		if self._listener is not None:
			self._listener(record)


DETAIL_INDENT = " " * 7
ERROR_FORMAT = 'Error: %s\n' + DETAIL_INDENT + 'line %d: "%s"\n'
RESULT_FORMAT = "%s = %s\n"


def indent_detail(detail: str) -> str:
	return "\n".join(DETAIL_INDENT + part for part in detail.split("\n"))


def format_error(record: ErrorRecord) -> str:
	text = ERROR_FORMAT % (record.message, record.line_number, record.line)
	if record.detail is not None:
		text += indent_detail(record.detail) + "\n"
	return text


# ---------------------------------------------------------------------------
# Values


_NUMERAL = re.compile(r"-?[0-9]+")


class Value:
	"""A runtime value. Integers are the only kind of value at present."""

	@staticmethod
	def parse(text: str) -> "Value":
		"""Parse a decimal numeral with an optional leading '-'."""
		if not _NUMERAL.fullmatch(text):
			raise NumberFormatError(text)
		if text.startswith("-"):
			return IntValue(-_decimal_to_int(text[1:]))
		return IntValue(_decimal_to_int(text))

	def add(self, other: "Value") -> "Value":
		raise NotImplementedError

	def sub(self, other: "Value") -> "Value":
		raise NotImplementedError

	def mul(self, other: "Value") -> "Value":
		raise NotImplementedError

	def div(self, other: "Value") -> "Value":
		raise NotImplementedError

	def rem(self, other: "Value") -> "Value":
		raise NotImplementedError


@dataclass(frozen=True)
class IntValue(Value):
	value: int

	def add(self, other: Value) -> Value:
		return IntValue(self.value + _as_int(other))

	def sub(self, other: Value) -> Value:
		return IntValue(self.value - _as_int(other))

	def mul(self, other: Value) -> Value:
		return IntValue(self.value * _as_int(other))

	def div(self, other: Value) -> Value:
		divisor = _as_int(other)
		if divisor == 0:
			raise FormulaArithmeticError("division by zero")
		return IntValue(_truncating_div(self.value, divisor))

	def rem(self, other: Value) -> Value:
		divisor = _as_int(other)
		if divisor == 0:
			raise FormulaArithmeticError("modulo by zero")
		return IntValue(self.value - divisor * _truncating_div(self.value, divisor))

	def __str__(self) -> str:
		if self.value < 0:
			return "-" + _int_to_decimal(-self.value)
		return _int_to_decimal(self.value)

	def __repr__(self) -> str:
		return f"IntValue({self})"


def _as_int(value: Value) -> int:
	if isinstance(value, IntValue):
		return value.value
	raise TypeError(f"Expected an integer value, got {value.__class__.__name__}.")


def _truncating_div(dividend: int, divisor: int) -> int:
	# Python's // floors; the language rounds toward zero.
	quotient = abs(dividend) // abs(divisor)
	return quotient if (dividend < 0) == (divisor < 0) else -quotient


# CPython caps int <-> str conversion at a few thousand digits. Convert in
# halves so that values of any size keep a decimal form.
_CHUNK_DIGITS = 1000
_CHUNK_LIMIT = 10 ** _CHUNK_DIGITS
_LOG10_2 = 0.30103


def _decimal_to_int(digits: str) -> int:
	if len(digits) <= _CHUNK_DIGITS:
		return int(digits)
	half = len(digits) // 2
	return _decimal_to_int(digits[:-half]) * 10 ** half + _decimal_to_int(digits[-half:])


def _int_to_decimal(number: int, width: int = 0) -> str:
	"""Decimal digits of a non-negative int, zero-padded to ``width``."""
	if number < _CHUNK_LIMIT:
		return str(number).zfill(width)
	half = (int(number.bit_length() * _LOG10_2) + 1) // 2
	high, low = divmod(number, 10 ** half)
	return _int_to_decimal(high, max(width - half, 0)) + _int_to_decimal(low, half)


# ---------------------------------------------------------------------------
# Environment


class Environment:
	"""Append-only name to value table for one execution run."""

	def __init__(self) -> None:
		self._values: Dict[str, Value] = {}

	def define(self, name: str, value: Value) -> None:
		existing = self._values.get(name)
		if existing is not None:
			raise RedefinitionError(name, existing)
		self._values[name] = value

	def lookup(self, name: str) -> Value:
		try:
			return self._values[name]
		except KeyError:
			raise UndefinedVariableError(name) from None

	def names(self) -> List[str]:
		return list(self._values)

	def snapshot(self) -> Dict[str, str]:
		return {name: str(value) for name, value in self._values.items()}

	def __contains__(self, name: object) -> bool:
		return name in self._values

	def __len__(self) -> int:
		return len(self._values)


# ---------------------------------------------------------------------------
# Lexer


class TokenKind(Enum):
	IDENT = auto()
	INT = auto()
	ASSIGN = auto()
	PLUS = auto()
	MINUS = auto()
	STAR = auto()
	SLASH = auto()
	PERCENT = auto()
	EOF = auto()


SYMBOLS: Dict[str, TokenKind] = {
	":=": TokenKind.ASSIGN,
	"+": TokenKind.PLUS,
	"-": TokenKind.MINUS,
	"*": TokenKind.STAR,
	"/": TokenKind.SLASH,
	"%": TokenKind.PERCENT,
}


@dataclass
class Token:
	kind: TokenKind
	lexeme: str
	column: int

	@property
	def end_column(self) -> int:
		return self.column + len(self.lexeme)


def _is_letter(ch: str) -> bool:
	return ch.isascii() and ch.isalpha()


def _is_digit(ch: str) -> bool:
	return ch.isascii() and ch.isdigit()


class Lexer:
	"""Splits a single line into tokens. Columns are 1-based."""

	def __init__(self, line: str) -> None:
		self.line = line
		self.length = len(line)
		self.index = 0

	def tokenize(self, limit: Optional[int] = None) -> List[Token]:
		"""Tokenize the line, or only its first ``limit`` tokens.

		The trailing EOF token sits at the column where lexing stopped.
		"""
		tokens: List[Token] = []
		while not self._is_eof() and (limit is None or len(tokens) < limit):
			ch = self._peek()
			if ch in " \t":
				self._advance()
			elif _is_letter(ch):
				tokens.append(self._consume_identifier())
			elif _is_digit(ch):
				tokens.append(self._consume_number())
			else:
				tokens.append(self._consume_symbol())
		tokens.append(Token(TokenKind.EOF, "", self._column()))
		return tokens

	def _consume_identifier(self) -> Token:
		start = self._column()
		lexeme = self._consume_while(lambda c: _is_letter(c) or _is_digit(c))
		return Token(TokenKind.IDENT, lexeme, start)

	def _consume_number(self) -> Token:
		start = self._column()
		lexeme = self._consume_while(_is_digit)
		return Token(TokenKind.INT, lexeme, start)

	def _consume_symbol(self) -> Token:
		start = self._column()
		ch = self._advance()
		next_ch = self._peek() if not self._is_eof() else ""
		candidate = ch + next_ch
		if next_ch and candidate in SYMBOLS:
			self._advance()
			return Token(SYMBOLS[candidate], candidate, start)
		if ch in SYMBOLS:
			return Token(SYMBOLS[ch], ch, start)
		raise LexError(ch, start)

	def _consume_while(self, predicate: Callable[[str], bool]) -> str:
		start_index = self.index
		while not self._is_eof() and predicate(self._peek()):
			self._advance()
		return self.line[start_index:self.index]

	def _column(self) -> int:
		return self.index + 1

	def _advance(self) -> str:
		ch = self.line[self.index]
		self.index += 1
		return ch

	def _peek(self) -> str:
		return self.line[self.index]

	def _is_eof(self) -> bool:
		return self.index >= self.length


# ---------------------------------------------------------------------------
# AST definitions


class Statement:
	pass


class Expression:
	pass


@dataclass
class Comment(Statement):
	text: str


@dataclass
class Assignment(Statement):
	name: str
	value_text: str
	column: int


@dataclass
class ExpressionStatement(Statement):
	expression: Expression


@dataclass
class Literal(Expression):
	text: str


@dataclass
class Variable(Expression):
	name: str


@dataclass
class BinaryOp(Expression):
	operator: TokenKind
	left: Expression
	right: Expression


OPERATOR_SYMBOLS: Dict[TokenKind, str] = {kind: symbol for symbol, kind in SYMBOLS.items() if kind != TokenKind.ASSIGN}


def render(expression: Expression) -> str:
	"""Fully parenthesised text form of an expression tree."""
	spine: List[BinaryOp] = []
	while isinstance(expression, BinaryOp):
		spine.append(expression)
		expression = expression.left
	if isinstance(expression, Literal):
		text = expression.text
	elif isinstance(expression, Variable):
		text = expression.name
	else:
		raise TypeError(f"Unsupported expression: {expression.__class__.__name__}")
	for operation in reversed(spine):
		text = f"({text} {OPERATOR_SYMBOLS[operation.operator]} {render(operation.right)})"
	return text


# ---------------------------------------------------------------------------
# Parser


UNRECOGNIZED_STATEMENT = "unrecognized statement, expected comment, assignment or expression"

ADDITIVE = (TokenKind.PLUS, TokenKind.MINUS)
MULTIPLICATIVE = (TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT)


def is_comment(line: str) -> bool:
	return not line.strip() or line.startswith("#")


class Parser:
	"""Recursive-descent parser for one tokenized line.

	statement      := assignment | expression
	assignment     := IDENT ':=' value
	expression     := multiplicative (('+' | '-') multiplicative)*
	multiplicative := unary (('*' | '/' | '%') unary)*
	unary          := INT | IDENT

	The value of an assignment is the raw remainder of the line after
	':=', validated later as a numeral.
	"""

	def __init__(self, tokens: List[Token], line: str) -> None:
		self.tokens = tokens
		self.line = line
		self.index = 0

	def parse_statement(self) -> Statement:
		if self._check(TokenKind.IDENT) and self._check_next(TokenKind.ASSIGN):
			return self._parse_assignment()
		if self._check(TokenKind.IDENT) or self._check(TokenKind.INT):
			expression = self._parse_additive()
			self._expect_end()
			return ExpressionStatement(expression)
		raise FormulaSyntaxError(UNRECOGNIZED_STATEMENT, column=self._peek().column)

	def _parse_assignment(self) -> Assignment:
		name = self._advance_token()
		assign = self._advance_token()
		rest = self.line[assign.end_column - 1:]
		value_text = rest.strip(" \t")
		if not value_text:
			raise FormulaSyntaxError("missing value after ':='", column=assign.end_column)
		column = assign.end_column + len(rest) - len(rest.lstrip(" \t"))
		self.index = len(self.tokens) - 1
		return Assignment(name=name.lexeme, value_text=value_text, column=column)

	def _parse_additive(self) -> Expression:
		expr = self._parse_multiplicative()
		while self._peek().kind in ADDITIVE:
			operator = self._advance_token()
			right = self._parse_multiplicative()
			expr = BinaryOp(operator=operator.kind, left=expr, right=right)
		return expr

	def _parse_multiplicative(self) -> Expression:
		expr = self._parse_unary()
		while self._peek().kind in MULTIPLICATIVE:
			operator = self._advance_token()
			right = self._parse_unary()
			expr = BinaryOp(operator=operator.kind, left=expr, right=right)
		return expr

	def _parse_unary(self) -> Expression:
		token = self._peek()
		if token.kind == TokenKind.INT:
			self._advance_token()
			return Literal(token.lexeme)
		if token.kind == TokenKind.IDENT:
			self._advance_token()
			return Variable(token.lexeme)
		if token.kind == TokenKind.EOF:
			raise FormulaSyntaxError(f"missing operand after '{self._previous().lexeme}'", column=token.column)
		raise FormulaSyntaxError(f"unexpected '{token.lexeme}' at column {token.column}", column=token.column)

	def _expect_end(self) -> None:
		token = self._peek()
		if token.kind != TokenKind.EOF:
			raise FormulaSyntaxError(f"unexpected '{token.lexeme}' at column {token.column}", column=token.column)

	# Utility parsing helpers -------------------------------------------------

	def _check(self, kind: TokenKind) -> bool:
		return self._peek().kind == kind

	def _check_next(self, kind: TokenKind) -> bool:
		if self.index + 1 >= len(self.tokens):
			return False
		return self.tokens[self.index + 1].kind == kind

	def _peek(self) -> Token:
		return self.tokens[self.index]

	def _previous(self) -> Token:
		return self.tokens[self.index - 1]

	def _advance_token(self) -> Token:
		token = self.tokens[self.index]
		if token.kind != TokenKind.EOF:
			self.index += 1
		return token


def tokenize_line(line: str) -> List[Token]:
	"""Tokens of a non-comment line.

	A line opening with ``name :=`` is an assignment whatever follows, so
	only those two tokens are lexed and the remainder is left to
	:meth:`Value.parse`.
	"""
	head = Lexer(line).tokenize(limit=2)
	if [token.kind for token in head[:2]] == [TokenKind.IDENT, TokenKind.ASSIGN]:
		return head
	return Lexer(line).tokenize()


def parse_line(line: str) -> Statement:
	if is_comment(line):
		return Comment(line)
	tokens = tokenize_line(line)
	return Parser(tokens, line).parse_statement()


# ---------------------------------------------------------------------------
# Evaluator


OPERATIONS: Dict[TokenKind, str] = {
	TokenKind.PLUS: "add",
	TokenKind.MINUS: "sub",
	TokenKind.STAR: "mul",
	TokenKind.SLASH: "div",
	TokenKind.PERCENT: "rem",
}


class Evaluator:
	def __init__(self, environment: Environment) -> None:
		self.environment = environment

	def evaluate(self, expression: Expression) -> Value:
		# Operators associate to the left, so walk the left spine with a loop.
		spine: List[BinaryOp] = []
		node = expression
		while isinstance(node, BinaryOp):
			spine.append(node)
			node = node.left
		value = self._evaluate_operand(node)
		for operation in reversed(spine):
			right = self.evaluate(operation.right)
			value = getattr(value, OPERATIONS[operation.operator])(right)
		return value

	def _evaluate_operand(self, expression: Expression) -> Value:
		if isinstance(expression, Literal):
			return Value.parse(expression.text)
		if isinstance(expression, Variable):
			return self.environment.lookup(expression.name)
		raise TypeError(f"Unsupported expression: {expression.__class__.__name__}")


# ---------------------------------------------------------------------------
# Driver


class SourceLines:
	"""Restartable, finite sequence of the numbered raw lines of a source text."""

	_LINE_BREAK = re.compile(r"\r\n|\r|\n")

	def __init__(self, source: str) -> None:
		lines = self._LINE_BREAK.split(source)
		if lines[-1] == "":
			lines.pop()
		self._lines = lines

	def line(self, number: int) -> str:
		return self._lines[number - 1]

	def __iter__(self) -> Iterator[Tuple[int, str]]:
		return iter(enumerate(self._lines, start=1))

	def __len__(self) -> int:
		return len(self._lines)


class DriverState(Enum):
	AWAITING_LINE = auto()
	COMMENT = auto()
	ASSIGNING = auto()
	EVALUATING = auto()
	DONE = auto()


class Driver:
	"""Processes the lines of one source text against a fresh environment."""

	def __init__(self, source: str, listener: Optional[Callable[[Record], None]] = None) -> None:
		self.lines = SourceLines(source)
		self.cursor = 0
		self.environment = Environment()
		self.report = ExecutionReport(listener)
		self.state = DriverState.AWAITING_LINE

	def run(self) -> ExecutionReport:
		start = time.perf_counter()
		while self.step():
			pass
		self.report.duration_ms = (time.perf_counter() - start) * 1000
		logger.info("Executed %d lines: %d errors in %.2f ms", len(self.lines), len(self.report.errors), self.report.duration_ms)
		return self.report

	def step(self) -> bool:
		"""Process the next line; returns False once the source is exhausted."""
		if self.cursor >= len(self.lines):
			self.state = DriverState.DONE
			return False
		self.cursor += 1
		line = self.lines.line(self.cursor)
		try:
			self._execute_statement(parse_line(line), line)
		except FormulaError as error:
			logger.debug("line %d: %s error: %s", self.cursor, error.kind.name, error.message)
			self.report.report_error(self.cursor, line, error)
		self.state = DriverState.AWAITING_LINE
		return True

	def _execute_statement(self, statement: Statement, line: str) -> None:
		if isinstance(statement, Comment):
			self.state = DriverState.COMMENT
			logger.debug("line %d: comment", self.cursor)
		elif isinstance(statement, Assignment):
			self.state = DriverState.ASSIGNING
			value = Value.parse(statement.value_text)
			self.environment.define(statement.name, value)
			logger.debug("line %d: %s := %s", self.cursor, statement.name, value)
		elif isinstance(statement, ExpressionStatement):
			self.state = DriverState.EVALUATING
			value = Evaluator(self.environment).evaluate(statement.expression)
			if logger.isEnabledFor(logging.DEBUG):
				logger.debug("line %d: %s = %s", self.cursor, render(statement.expression), value)
			self.report.report_result(self.cursor, line, value)
		else:
			raise TypeError(f"Unsupported statement: {statement.__class__.__name__}")


# ---------------------------------------------------------------------------
# Output sinks


class Output:
	"""Write-only, order-preserving sink for formatted messages."""

	def printf(self, fmt: str, *args: object) -> None:
		self.write(fmt % args if args else fmt)

	def write(self, text: str) -> None:
		raise NotImplementedError


class StreamOutput(Output):
	def __init__(self, stream: Optional[TextIO] = None) -> None:
		self.stream = stream

	def write(self, text: str) -> None:
		(self.stream or sys.stdout).write(text)


class BufferOutput(Output):
	def __init__(self) -> None:
		self._parts: List[str] = []

	def write(self, text: str) -> None:
		self._parts.append(text)

	def getvalue(self) -> str:
		return "".join(self._parts)

	def clear(self) -> None:
		self._parts.clear()


# ---------------------------------------------------------------------------
# Interpreter


HELP = """\
SOURCE
------
source: comment
      | assignment
      | expression
comment: '#' text
assignment: name ':=' value
name: Alpha Alphanumeric...
expression: additive
additive: multiplicative
        | additive + multiplicative
        | additive - multiplicative
multiplicative: unary
              | multiplicative * unary
              | multiplicative / unary
              | multiplicative % unary
unary: value
     | name
value: int
"""


class Interpreter:
	"""Runs source text and reports every error and result to an output sink."""

	def __init__(self, output: Output, *, banner: bool = True) -> None:
		if output is None:
			raise TypeError("output must not be None")
		self.output = output
		self.banner = banner

	def execute(self, source: str) -> bool:
		return self.process(source).report.success

	def process(self, source: str) -> Driver:
		"""Like :meth:`execute`, but return the finished driver."""
		if self.banner:
			self.output.printf("executing...\n")
		driver = Driver(source, listener=self._emit)
		driver.run()
		if self.banner:
			self.output.printf("done!\n\n")
		return driver

	def _emit(self, record: Record) -> None:
		if isinstance(record, ErrorRecord):
			self.output.printf(ERROR_FORMAT, record.message, record.line_number, record.line)
			if record.detail is not None:
				self.output.printf("%s\n", indent_detail(record.detail))
		else:
			self.output.printf(RESULT_FORMAT, record.line.strip(), record.value)


# ---------------------------------------------------------------------------
# Command line


def main(argv: Optional[Sequence[str]] = None) -> int:
	parser = argparse.ArgumentParser(prog="formula", description="Formula line-oriented integer expression interpreter")
	parser.add_argument("source", nargs="?", default="-", help="Source file path; '-' or omitted reads standard input")
	parser.add_argument("-q", "--quiet", action="store_true", help="Omit the executing/done banner")
	parser.add_argument("-v", "--verbose", action="store_true", help="Log every processed line to stderr")
	parser.add_argument("--help-language", action="store_true", help="Print the language help and exit")
	parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
	args = parser.parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

	if args.help_language:
		print(HELP, end="")
		return 0

	if args.source == "-":
		source_text = sys.stdin.read()
	else:
		try:
			with open(args.source, "r", encoding="utf-8") as handle:
				source_text = handle.read()
		except OSError as exc:
			print(f"Failed to read {args.source}: {exc}", file=sys.stderr)
			return 1

	interpreter = Interpreter(StreamOutput(), banner=not args.quiet)
	return 0 if interpreter.execute(source_text) else 1


if __name__ == "__main__":
	raise SystemExit(main())
