"""Parser for line-oriented API test definition files.

A definitions file is a sequence of records separated by ``---`` lines::

    # comment
    TestCase: Get user
    Method: GET
    URL: https://api.example.com/users/1
    StatusCode: 200
    Headers:
      Accept: application/json
    Assertions:
      JSONPathExists: $.data
      JSONPathValue: $.data.id == 1
      HeaderValue: Content-Type == application/json
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from apitester.errors import ConfigError, ParseError
from apitester.schemas.definitions import (
    HeaderExists,
    HeaderValue,
    JSONPathExists,
    JSONPathValue,
    LiteralValue,
    Method,
    TestCase,
)
from apitester.services.json_path import compile_path

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "---"

TOP_LEVEL_KEYS = (
    "TestCase",
    "Description",
    "Author",
    "Method",
    "URL",
    "StatusCode",
    "Headers",
    "Payload",
    "Assertions",
)
BLOCK_KEYS = ("Headers", "Payload", "Assertions")
REQUIRED_KEYS = ("TestCase", "Method", "URL", "StatusCode")

INT_PATTERN = re.compile(r"[+-]?\d+")
FLOAT_PATTERN = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")
STATUS_PATTERN = re.compile(r"\d{3}")


def parse_literal(text: str) -> LiteralValue:
    """
    Parse an assertion literal.

    Tried in order: integer, float, double-quoted string, boolean; anything
    else is kept as an unquoted string.
    """
    if INT_PATTERN.fullmatch(text):
        return int(text)
    if FLOAT_PATTERN.fullmatch(text):
        return float(text)
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    if text == "true":
        return True
    if text == "false":
        return False
    return text


def _unquote(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


@dataclass
class ParsedDefinitions:
    """Result of parsing a definitions file."""
    test_cases: list[TestCase] = field(default_factory=list)
    # Records excluded from the run because of an invalid assertion path
    rejected: list[ConfigError] = field(default_factory=list)


@dataclass
class _Record:
    """Raw lines of one ``---``-delimited record."""
    number: int  # 1-based position in the file
    lines: list[tuple[int, str]] = field(default_factory=list)


class DefinitionParser:
    """
    Parser for API test definition files.

    Fails fast: the first malformed record aborts the whole file with a
    ParseError. An invalid assertion path only rejects its own record.
    """

    def parse_file(self, path: str | Path) -> ParsedDefinitions:
        """Read a UTF-8 definitions file and parse it."""
        content = Path(path).read_text(encoding="utf-8")
        return self.parse(content)

    def parse(self, content: str) -> ParsedDefinitions:
        """
        Parse definitions text into test cases.

        Args:
            content: Full text of a definitions file

        Returns:
            ParsedDefinitions with test cases in file order

        Raises:
            ParseError: On the first malformed record
        """
        result = ParsedDefinitions()
        seen_names: dict[str, int] = {}

        for record in self._split_records(content):
            try:
                test_case = self._parse_record(record)
            except ConfigError as e:
                result.rejected.append(e)
                name, line_num = e.record, e.line
            else:
                if test_case is None:
                    continue
                result.test_cases.append(test_case)
                name, line_num = test_case.name, test_case.line

            if name in seen_names:
                raise ParseError(
                    line_num,
                    name,
                    f"duplicate test case name (first defined in record #{seen_names[name]})",
                )
            seen_names[name] = record.number

        logger.debug(
            "Parsed %d test case(s), %d rejected",
            len(result.test_cases),
            len(result.rejected),
        )
        return result

    def _split_records(self, content: str) -> list[_Record]:
        """Split content into records at separator lines."""
        records = [_Record(number=1)]
        for i, line in enumerate(content.splitlines()):
            if line.strip() == RECORD_SEPARATOR:
                records.append(_Record(number=len(records) + 1))
                continue
            records[-1].lines.append((i + 1, line))
        return records

    def _parse_record(self, record: _Record) -> TestCase | None:
        """
        Parse a single record.

        Returns None for records holding only blank lines and comments.
        Raises ConfigError (with record and line filled in) when an assertion
        path is invalid and the rest of the record is well formed.
        """
        label = f"record #{record.number}"
        values: dict[str, tuple[int, str]] = {}
        headers: dict[str, str] = {}
        payload: dict[str, str] = {}
        assertions = []
        config_error: ConfigError | None = None

        block = None
        block_indent = None
        start_line = None

        for line_num, line in record.lines:
            stripped = line.strip()

            # Skip comments, including inside blocks
            if stripped.startswith("#"):
                continue

            # A blank line closes the current block
            if not stripped:
                block = None
                continue

            indent = line[: len(line) - len(line.lstrip())]

            if indent:
                if block is None:
                    raise ParseError(
                        line_num, label,
                        "indented line outside of a Headers, Payload or Assertions block",
                    )
                if block_indent is None:
                    block_indent = indent
                elif indent != block_indent:
                    raise ParseError(line_num, label, f"inconsistent indentation in {block} block")

                key, value = self._split_pair(stripped, line_num, label, block)

                if block == "Headers":
                    if key.lower() in (k.lower() for k in headers):
                        raise ParseError(line_num, label, f"duplicate header '{key}'")
                    headers[key] = value
                elif block == "Payload":
                    if key in payload:
                        raise ParseError(line_num, label, f"duplicate payload key '{key}'")
                    payload[key] = value
                else:
                    try:
                        assertions.append(self._parse_assertion(key, value, line_num, label))
                    except ConfigError as e:
                        if config_error is None:
                            e.line = line_num
                            config_error = e
                continue

            # Top-level "Key: value" line
            block = None
            key, sep, value = stripped.partition(":")
            key = key.rstrip()
            value = value.strip()
            if not sep:
                raise ParseError(line_num, label, f"expected 'Key: value', got '{stripped}'")
            if key not in TOP_LEVEL_KEYS:
                raise ParseError(
                    line_num, label,
                    f"unknown key '{key}' (expected one of {', '.join(TOP_LEVEL_KEYS)})",
                )
            if key in values:
                raise ParseError(line_num, label, f"duplicate key '{key}'")

            values[key] = (line_num, value)
            if start_line is None:
                start_line = line_num

            if key == "TestCase":
                if not value:
                    raise ParseError(line_num, label, "test case name must not be empty")
                label = value

            if key in BLOCK_KEYS:
                if value:
                    raise ParseError(line_num, label, f"'{key}:' must not have an inline value")
                block = key
                block_indent = None

        if start_line is None:
            return None

        for required in REQUIRED_KEYS:
            if required not in values:
                raise ParseError(start_line, label, f"missing required field '{required}'")

        method = self._parse_method(*values["Method"], label)
        url = self._parse_url(*values["URL"], label)
        status_code = self._parse_status_code(*values["StatusCode"], label)

        if config_error is not None:
            config_error.record = label
            raise config_error

        description = values.get("Description")
        author = values.get("Author")

        return TestCase(
            name=label,
            description=description[1] if description else None,
            author=author[1] if author else None,
            method=method,
            url=url,
            expected_status_code=status_code,
            headers=headers,
            payload=payload,
            assertions=tuple(assertions),
            line=start_line,
        )

    def _split_pair(self, text: str, line_num: int, label: str, block: str) -> tuple[str, str]:
        """Split a block child line into (sub-key, value)."""
        key, sep, value = text.partition(":")
        key = key.strip()
        if not sep or not key:
            raise ParseError(line_num, label, f"{block} block expects 'key: value', got '{text}'")
        return key, value.strip()

    def _parse_assertion(self, kind: str, value: str, line_num: int, label: str):
        """Build one assertion from its kind name and value text."""
        if kind in ("JSONPathExists", "HeaderExists"):
            if not value:
                raise ParseError(line_num, label, f"{kind} requires a value")
            if kind == "JSONPathExists":
                compile_path(value)
                return JSONPathExists(path=value)
            return HeaderExists(name=value)

        if kind in ("JSONPathValue", "HeaderValue"):
            lhs, sep, rhs = value.partition("==")
            lhs = lhs.strip()
            rhs = rhs.strip()
            if not sep or not lhs or not rhs:
                raise ParseError(line_num, label, f"{kind} expects '<target> == <value>', got '{value}'")
            if kind == "JSONPathValue":
                compile_path(lhs)
                return JSONPathValue(path=lhs, expected=parse_literal(rhs))
            return HeaderValue(name=lhs, expected=_unquote(rhs))

        raise ParseError(
            line_num, label,
            f"unknown assertion '{kind}' "
            "(expected JSONPathExists, JSONPathValue, HeaderExists or HeaderValue)",
        )

    def _parse_method(self, line_num: int, value: str, label: str) -> Method:
        try:
            return Method(value)
        except ValueError:
            allowed = ", ".join(m.value for m in Method)
            raise ParseError(line_num, label, f"unsupported method '{value}' (expected one of {allowed})")

    def _parse_url(self, line_num: int, value: str, label: str) -> str:
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ParseError(line_num, label, f"invalid URL '{value}': {e}")
        if url.scheme not in ("http", "https") or not url.host:
            raise ParseError(line_num, label, f"URL must be absolute http(s), got '{value}'")
        return value

    def _parse_status_code(self, line_num: int, value: str, label: str) -> int:
        if not STATUS_PATTERN.fullmatch(value) or not 100 <= int(value) <= 599:
            raise ParseError(line_num, label, f"status code must be an integer in 100-599, got '{value}'")
        return int(value)
