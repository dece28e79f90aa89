"""
Tests for the single-line lexer.
"""

import pytest

from formula import ErrorKind, LexError, Lexer, TokenKind, tokenize_line


def kinds(line):
	return [t.kind for t in Lexer(line).tokenize()]


class TestTokens:
	"""Token kinds, lexemes and columns"""

	def test_assignment(self):
		tokens = Lexer("x := 10").tokenize()
		assert [(t.kind, t.lexeme, t.column) for t in tokens] == [
			(TokenKind.IDENT, "x", 1),
			(TokenKind.ASSIGN, ":=", 3),
			(TokenKind.INT, "10", 6),
			(TokenKind.EOF, "", 8),
		]

	def test_operators_without_spaces(self):
		assert kinds("a+b-c*d/e%f") == [
			TokenKind.IDENT, TokenKind.PLUS, TokenKind.IDENT, TokenKind.MINUS,
			TokenKind.IDENT, TokenKind.STAR, TokenKind.IDENT, TokenKind.SLASH,
			TokenKind.IDENT, TokenKind.PERCENT, TokenKind.IDENT, TokenKind.EOF,
		]

	def test_identifier_with_digits(self):
		tokens = Lexer("abc123 9x").tokenize()
		assert [(t.kind, t.lexeme) for t in tokens[:3]] == [
			(TokenKind.IDENT, "abc123"),
			(TokenKind.INT, "9"),
			(TokenKind.IDENT, "x"),
		]

	def test_minus_is_an_operator(self):
		assert kinds("-5") == [TokenKind.MINUS, TokenKind.INT, TokenKind.EOF]

	def test_tabs_are_whitespace(self):
		assert kinds("\tx\t:=\t1") == [TokenKind.IDENT, TokenKind.ASSIGN, TokenKind.INT, TokenKind.EOF]

	def test_empty_line(self):
		tokens = Lexer("").tokenize()
		assert len(tokens) == 1
		assert tokens[0].kind == TokenKind.EOF
		assert tokens[0].column == 1

	def test_end_column(self):
		token = Lexer("  total").tokenize()[0]
		assert token.column == 3
		assert token.end_column == 8

	def test_limit_stops_before_the_rest_of_the_line(self):
		tokens = Lexer("x := 1.5").tokenize(limit=2)
		assert [t.kind for t in tokens] == [TokenKind.IDENT, TokenKind.ASSIGN, TokenKind.EOF]
		assert tokens[-1].column == 5

	def test_tokenize_line_keeps_assignment_head(self):
		assert [t.kind for t in tokenize_line("n := 1,000")] == [TokenKind.IDENT, TokenKind.ASSIGN, TokenKind.EOF]
		assert [t.kind for t in tokenize_line("n + 1")] == [TokenKind.IDENT, TokenKind.PLUS, TokenKind.INT, TokenKind.EOF]

	def test_tokenize_line_lexes_whole_expression(self):
		with pytest.raises(LexError):
			tokenize_line("n + 1.5")


class TestLexErrors:
	"""Characters outside the language"""

	def test_invalid_character_reports_column(self):
		with pytest.raises(LexError) as excinfo:
			Lexer("x $ 1").tokenize()
		error = excinfo.value
		assert error.kind == ErrorKind.LEX
		assert error.character == "$"
		assert error.column == 3
		assert error.message == "invalid character '$' at column 3"

	@pytest.mark.parametrize("line, character", [
		("a = 1", "="),
		("x : 1", ":"),
		("x:", ":"),
		("(1)", "("),
		("1.5", "."),
		("café", "é"),
	])
	def test_rejected_characters(self, line, character):
		with pytest.raises(LexError) as excinfo:
			Lexer(line).tokenize()
		assert excinfo.value.character == character
