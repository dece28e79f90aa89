from __future__ import annotations

import logging
from dataclasses import is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from formula import (
	HELP,
	Assignment,
	BufferOutput,
	Comment,
	ErrorRecord,
	ExpressionStatement,
	FormulaError,
	Interpreter,
	Parser,
	ResultRecord,
	SourceLines,
	TokenKind,
	Value,
	__version__,
	is_comment,
	render,
	tokenize_line,
)


logger = logging.getLogger(__name__)

app = FastAPI(title="Formula Interpreter", version=__version__)

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)


class ExecuteRequest(BaseModel):
	source: str
	# The executing/done lines are noise for API clients.
	banner: bool = False


class ParseRequest(BaseModel):
	source: str


STATEMENT_KINDS = {
	Comment: "comment",
	Assignment: "assignment",
	ExpressionStatement: "expression",
}


def _to_json(obj: Any, *, depth: int = 0, max_depth: int = 64) -> Any:
	"""Best-effort conversion of interpreter artifacts to JSON-safe structures."""
	if depth > max_depth:
		return {"_truncated": True}
	if obj is None:
		return None
	if isinstance(obj, (str, int, float, bool)):
		return obj
	if isinstance(obj, Value):
		return str(obj)
	if isinstance(obj, Enum):
		return obj.name
	if isinstance(obj, list):
		return [_to_json(x, depth=depth + 1, max_depth=max_depth) for x in obj]
	if isinstance(obj, dict):
		return {str(k): _to_json(v, depth=depth + 1, max_depth=max_depth) for k, v in obj.items()}
	if is_dataclass(obj):
		data: Dict[str, Any] = {"_type": obj.__class__.__name__}
		for k, v in obj.__dict__.items():
			data[k] = _to_json(v, depth=depth + 1, max_depth=max_depth)
		return data
	return str(obj)


def _error_json(record: ErrorRecord) -> Dict[str, Any]:
	return {
		"line_number": record.line_number,
		"line": record.line,
		"kind": record.kind.name,
		"message": record.message,
		"detail": record.detail,
	}


def _result_json(record: ResultRecord) -> Dict[str, Any]:
	return {
		"line_number": record.line_number,
		"line": record.line,
		"value": str(record.value),
	}


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
	return HTMLResponse(
		"<h2>Formula Interpreter API</h2><p>POST <code>/api/execute</code> with JSON: <code>{\"source\": \"x := 2\\nx * 21\"}</code></p>"
	)


@app.get("/health")
def health() -> Dict[str, str]:
	return {"status": "ok"}


@app.get("/api/help")
def language_help() -> Dict[str, str]:
	return {"help": HELP}


@app.post("/api/execute")
def execute_source(req: ExecuteRequest) -> Dict[str, Any]:
	output = BufferOutput()
	driver = Interpreter(output, banner=req.banner).process(req.source)
	report = driver.report
	logger.info("execute: %d lines, %d errors", len(driver.lines), len(report.errors))
	return {
		"success": report.success,
		"output": output.getvalue(),
		"duration_ms": report.duration_ms,
		"error_count": len(report.errors),
		"errors": [_error_json(r) for r in report.errors],
		"results": [_result_json(r) for r in report.results],
		"variables": driver.environment.snapshot(),
	}


@app.post("/api/parse")
def parse_source(req: ParseRequest) -> Dict[str, Any]:
	"""Classify, tokenize and parse every line without evaluating anything."""
	lines: List[Dict[str, Any]] = []
	for number, line in SourceLines(req.source):
		entry: Dict[str, Any] = {
			"line_number": number,
			"line": line,
			"kind": None,
			"tokens": [],
			"ast": None,
			"expression": None,
			"error": None,
		}
		if is_comment(line):
			entry["kind"] = STATEMENT_KINDS[Comment]
			lines.append(entry)
			continue
		try:
			tokens = tokenize_line(line)
			entry["tokens"] = [
				{"kind": t.kind.name, "lexeme": t.lexeme, "column": t.column}
				for t in tokens
				if t.kind != TokenKind.EOF
			]
			statement = Parser(tokens, line).parse_statement()
		except FormulaError as error:
			entry["error"] = _parse_error_json(error)
		else:
			entry["kind"] = STATEMENT_KINDS[type(statement)]
			entry["ast"] = _to_json(statement)
			if isinstance(statement, ExpressionStatement):
				entry["expression"] = render(statement.expression)
		lines.append(entry)
	return {"line_count": len(lines), "lines": lines}


def _parse_error_json(error: FormulaError) -> Dict[str, Optional[Any]]:
	return {"kind": error.kind.name, "message": error.message, "column": error.column}


if __name__ == "__main__":
	import uvicorn

	uvicorn.run(app, host="127.0.0.1", port=8000)
