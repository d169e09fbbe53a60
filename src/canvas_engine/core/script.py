"""Parser for batch design operation scripts.

One operation per line::

    [name=]OP(arg, arg, ...)

``OP`` is one of ``I`` (insert), ``C`` (copy), ``U`` (update), ``R``
(replace), ``M`` (move), ``D`` (delete) or ``G`` (generate placeholder
image). Blank lines and lines starting with ``//`` or ``#`` are ignored.

Arguments are classified into exactly one kind:

* string literal: ``"text"`` or ``'text'`` (JSON5 escapes, plus the HTML
  entities ``&quot; &amp; &lt; &gt; &apos; &#39;`` decoded in one pass);
* structured literal: ``{...}`` or ``[...]``; strict JSON first, then JSON5
  (unquoted identifier keys, single-quoted strings, trailing commas, comments,
  hex numbers, leading/trailing decimal points, ``Infinity``/``NaN``);
* number: optional sign, digits, optional fraction;
* literal: ``true``, ``false``, ``null`` or ``undefined``;
* binding: a bare identifier bound by an earlier line, or ``document``;
* concatenation: ``name+"/suffix"``: the bound id with a path suffix.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

import json5

from canvas_engine.core.errors import ScriptParseError

logger = logging.getLogger(__name__)

MAX_OPERATIONS = 25

OpCode = Literal["I", "C", "U", "R", "M", "D", "G"]
OP_CODES: frozenset[str] = frozenset({"I", "C", "U", "R", "M", "D", "G"})

_CALL_RE = re.compile(r"^(?:(?P<binding>\w+)\s*=\s*)?(?P<op>[A-Z])\(")
_NUMBER_RE = re.compile(r"^[+-]?\d+(\.\d+)?$")
_IDENTIFIER_RE = re.compile(r"^\w+$")
_CONCAT_RE = re.compile(r"^(?P<name>\w+)\s*\+\s*(?P<suffix>\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*'|[\w/.\-]+)$")
_ENTITY_RE = re.compile(r"&(quot|amp|lt|gt|apos|#39);")
_ENTITIES = {"quot": '"', "amp": "&", "lt": "<", "gt": ">", "apos": "'", "#39": "'"}
_OPENERS = {")": "(", "]": "[", "}": "{"}


@dataclass(frozen=True)
class StringArg:
    value: str


@dataclass(frozen=True)
class NumberArg:
    value: int | float


@dataclass(frozen=True)
class JsonArg:
    value: Any


@dataclass(frozen=True)
class LiteralArg:
    """``true``, ``false``, ``null`` or ``undefined``."""

    value: bool | None
    word: str


@dataclass(frozen=True)
class BindingArg:
    name: str


@dataclass(frozen=True)
class ConcatArg:
    name: str
    suffix: str


ParsedArg = StringArg | NumberArg | JsonArg | LiteralArg | BindingArg | ConcatArg


@dataclass(frozen=True)
class ParsedOperation:
    op: OpCode
    args: tuple[ParsedArg, ...]
    line: int
    raw: str
    binding: str | None = None

    def describe(self) -> str:
        prefix = f"{self.binding}=" if self.binding else ""
        return f"{prefix}{self.op}(...) [line {self.line}]"


def _is_instruction(line: str) -> bool:
    return bool(line) and not line.startswith(("//", "#"))


def parse_operations(script: str) -> list[ParsedOperation]:
    """Parse a whole script; raises ``ScriptParseError`` on the first bad line."""
    lines = [raw.strip() for raw in script.split("\n")]
    count = sum(1 for line in lines if _is_instruction(line))
    if count == 0:
        raise ScriptParseError("No operations to execute")
    if count > MAX_OPERATIONS:
        raise ScriptParseError(f"Too many operations ({count}). Maximum is {MAX_OPERATIONS}.")

    operations = [parse_line(line, number) for number, line in enumerate(lines, start=1) if _is_instruction(line)]
    logger.debug("Parsed %d operations", len(operations))
    return operations


def parse_line(raw: str, line: int) -> ParsedOperation:
    match = _CALL_RE.match(raw)
    if match is None:
        raise ScriptParseError(f'Invalid operation syntax: "{raw}"', line)
    op = match.group("op")
    if op not in OP_CODES:
        raise ScriptParseError(f'Unknown operation "{op}" in "{raw}"', line)

    args_text, trailing = _extract_call_args(raw[match.end() :], line)
    if trailing.strip() not in ("", ";"):
        raise ScriptParseError(f'Unexpected text after operation: "{trailing.strip()}"', line)

    args = tuple(classify_token(token, line) for token in split_arguments(args_text, line))
    return ParsedOperation(op=op, args=args, line=line, raw=raw, binding=match.group("binding"))  # type: ignore[arg-type]


def _extract_call_args(body: str, line: int) -> tuple[str, str]:
    """Balance scan: return the text inside the call's parentheses and what follows."""
    stack = ["("]
    quote: str | None = None
    escaped = False
    for index, ch in enumerate(body):
        if quote is not None:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "([{":
            stack.append(ch)
        elif ch in _OPENERS:
            if stack[-1] != _OPENERS[ch]:
                raise ScriptParseError(f"Unbalanced delimiters: unexpected '{ch}'", line)
            stack.pop()
            if not stack:
                return body[:index], body[index + 1 :]
    if quote is not None:
        raise ScriptParseError("Unterminated string literal", line)
    raise ScriptParseError("Unbalanced parentheses", line)


def split_arguments(args_text: str, line: int) -> list[str]:
    """Split on commas at nesting depth zero, outside string literals."""
    if not args_text.strip():
        return []
    tokens: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    escaped = False
    for ch in args_text:
        if quote is not None:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == "," and depth == 0:
            tokens.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tokens.append("".join(current).strip())
    if any(not token for token in tokens):
        raise ScriptParseError("Empty argument", line)
    return tokens


def decode_entities(text: str) -> str:
    return _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(1)], text)


def _decode_string(token: str, line: int) -> str:
    try:
        decoded = json5.loads(token)
    except ValueError as exc:
        raise ScriptParseError(f"Invalid string literal: {token}", line) from exc
    if not isinstance(decoded, str):
        raise ScriptParseError(f"Invalid string literal: {token}", line)
    return decode_entities(decoded)


def parse_structured(token: str) -> Any:
    """Strict JSON first, JSON5 as the relaxed fallback."""
    try:
        return json.loads(token)
    except ValueError:
        return json5.loads(token)


def classify_token(token: str, line: int) -> ParsedArg:
    if token in ("true", "false", "null", "undefined"):
        value = {"true": True, "false": False}.get(token)
        return LiteralArg(value=value, word=token)

    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return StringArg(_decode_string(token, line))

    if (token.startswith("{") and token.endswith("}")) or (token.startswith("[") and token.endswith("]")):
        try:
            return JsonArg(parse_structured(token))
        except ValueError as exc:
            raise ScriptParseError(f"Invalid JSON: {token[:60]}...", line) from exc

    if _NUMBER_RE.match(token):
        return NumberArg(float(token) if "." in token else int(token))

    concat = _CONCAT_RE.match(token)
    if concat is not None:
        suffix = concat.group("suffix")
        if suffix[0] in "\"'":
            suffix = _decode_string(suffix, line)
        return ConcatArg(name=concat.group("name"), suffix=suffix)

    if _IDENTIFIER_RE.match(token):
        return BindingArg(token)

    raise ScriptParseError(f'Cannot classify argument: "{token}"', line)
