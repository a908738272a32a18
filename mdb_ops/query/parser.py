"""
Document literal tokenizer and parser.

Both query dialects are written in a relaxed, shell-style document syntax:
single or double quoted strings, unquoted keys (``$gt``, ``address.city``),
``true``/``false``/``null``, arrays, nested documents, extended JSON wrappers
(``{"$oid": ...}``, ``{"$date": ...}``) and the shell helpers ``ObjectId(..)``,
``ISODate(..)``, ``NumberLong(..)``, ``NumberInt(..)`` and ``NumberDecimal(..)``.

The tokenizer is shared with the object-query translator, which adds
comparison operators and parentheses on top of the same literal forms.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from bson import ObjectId
from bson.binary import UuidRepresentation
from bson.decimal128 import Decimal128
from bson.errors import BSONError
from bson.int64 import Int64
from bson.json_util import JSONMode, JSONOptions, object_hook

from ..exceptions import QuerySyntaxError

JSON_OPTIONS = JSONOptions(
    json_mode=JSONMode.RELAXED,
    uuid_representation=UuidRepresentation.STANDARD,
    tz_aware=False,
)
"""Extended JSON options used to encode bound values and decode wrappers."""

# Token kinds
LBRACE = "LBRACE"
RBRACE = "RBRACE"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
COLON = "COLON"
COMMA = "COMMA"
STRING = "STRING"
NUMBER = "NUMBER"
WORD = "WORD"
OPERATOR = "OPERATOR"
EOF = "EOF"

_PUNCTUATION = {
    "{": LBRACE,
    "}": RBRACE,
    "[": LBRACKET,
    "]": RBRACKET,
    "(": LPAREN,
    ")": RPAREN,
    ":": COLON,
    ",": COMMA,
}

# Longest operators first so "<=" is not read as "<" followed by "="
_OPERATORS = ("==", "!=", "<>", "<=", ">=", "=", "<", ">")

_NUMBER_RE = re.compile(r"-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")
_WORD_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$.]*")

_LITERAL_WORDS = {"true": True, "false": False, "null": None}


@dataclass(frozen=True)
class Token:
    """A lexical token with its decoded value and source position."""

    kind: str
    value: Any
    text: str
    position: int


def fragment_at(text: str, position: int, width: int = 24) -> str:
    """Return the part of ``text`` starting at ``position``, for error messages."""
    fragment = text[position : position + width]
    return fragment if fragment else "<end of query>"


def scan_string(text: str, start: int) -> int:
    """
    Find the end of the quoted string literal starting at ``start``.

    Returns:
        Index just past the closing quote

    Raises:
        QuerySyntaxError: If the literal is not terminated
    """
    quote = text[start]
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1
        index += 1
    raise QuerySyntaxError(
        "Unterminated string literal",
        fragment=fragment_at(text, start),
        query=text,
    )


def decode_string(raw: str) -> str:
    """Decode a single or double quoted literal (quotes included) to its value."""
    body = raw[1:-1]
    if raw[0] == "'":
        # Re-quote as a JSON string: unescape \' and escape bare double quotes
        chars = []
        index = 0
        while index < len(body):
            char = body[index]
            if char == "\\" and index + 1 < len(body):
                following = body[index + 1]
                chars.append("'" if following == "'" else char + following)
                index += 2
                continue
            chars.append('\\"' if char == '"' else char)
            index += 1
        body = "".join(chars)
    try:
        return json.loads(f'"{body}"', strict=False)
    except ValueError as e:
        raise QuerySyntaxError(f"Invalid string literal: {e}", fragment=raw) from e


def tokenize(text: str) -> list[Token]:
    """
    Split a template into tokens.

    Raises:
        QuerySyntaxError: On characters that belong to no token
    """
    tokens: list[Token] = []
    position = 0
    length = len(text)

    while position < length:
        char = text[position]

        if char.isspace():
            position += 1
            continue

        if char in ("'", '"'):
            end = scan_string(text, position)
            raw = text[position:end]
            tokens.append(Token(STRING, decode_string(raw), raw, position))
            position = end
            continue

        if char in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[char], char, char, position))
            position += 1
            continue

        if char.isdigit() or char in "-.":
            match = _NUMBER_RE.match(text, position)
            if match:
                raw = match.group(0)
                is_float = any(c in raw for c in ".eE")
                value = float(raw) if is_float else int(raw)
                tokens.append(Token(NUMBER, value, raw, position))
                position = match.end()
                continue

        operator = next((op for op in _OPERATORS if text.startswith(op, position)), None)
        if operator:
            tokens.append(Token(OPERATOR, operator, operator, position))
            position += len(operator)
            continue

        match = _WORD_RE.match(text, position)
        if match:
            raw = match.group(0)
            tokens.append(Token(WORD, raw, raw, position))
            position = match.end()
            continue

        raise QuerySyntaxError(
            f"Unexpected character {char!r} at position {position}",
            fragment=fragment_at(text, position),
            query=text,
        )

    tokens.append(Token(EOF, None, "", length))
    return tokens


class TokenStream:
    """Cursor over a token list with the helpers both parsers need."""

    def __init__(self, text: str, tokens: list[Token] | None = None):
        self.text = text
        self.tokens = tokens if tokens is not None else tokenize(text)
        self.index = 0

    def peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.peek()
        if token.kind != EOF:
            self.index += 1
        return token

    def at(self, kind: str, value: Any = None) -> bool:
        token = self.peek()
        if token.kind != kind:
            return False
        return value is None or token.value == value

    def expect(self, kind: str, description: str | None = None) -> Token:
        token = self.peek()
        if token.kind != kind:
            raise self.error(f"Expected {description or kind.lower()}", token)
        return self.advance()

    def error(self, message: str, token: Token | None = None) -> QuerySyntaxError:
        token = token or self.peek()
        return QuerySyntaxError(
            f"{message} at position {token.position}",
            fragment=fragment_at(self.text, token.position),
            query=self.text,
        )


class DocumentParser:
    """
    Recursive-descent parser for document literals.

    Example:
        parser = DocumentParser("{'status': 'active', 'age': {'$gt': 30}}")
        parser.parse()
        # {'status': 'active', 'age': {'$gt': 30}}
    """

    def __init__(self, stream: TokenStream):
        self.stream = stream

    def parse(self) -> dict[str, Any]:
        """Parse a whole template that must be exactly one document."""
        document = self.parse_document()
        if not self.stream.at(EOF):
            raise self.stream.error("Unexpected content after document")
        if not isinstance(document, dict):
            raise self.stream.error("Expected a document, got an extended JSON value")
        return document

    def parse_value(self) -> Any:
        token = self.stream.peek()

        if token.kind == LBRACE:
            return self.parse_document()
        if token.kind == LBRACKET:
            return self.parse_array()
        if token.kind in (STRING, NUMBER):
            self.stream.advance()
            return token.value
        if token.kind == WORD:
            if token.value in _LITERAL_WORDS:
                self.stream.advance()
                return _LITERAL_WORDS[token.value]
            if self.stream.peek(1).kind == LPAREN:
                return self.parse_helper()
            raise self.stream.error(f"Unexpected word {token.value!r}", token)

        raise self.stream.error("Expected a value", token)

    def parse_document(self) -> Any:
        opening = self.stream.expect(LBRACE, "'{'")
        document: dict[str, Any] = {}

        if not self.stream.at(RBRACE):
            while True:
                key_token = self.stream.peek()
                if key_token.kind not in (STRING, WORD):
                    raise self.stream.error("Expected a field name", key_token)
                self.stream.advance()
                key = key_token.value
                if key in document:
                    raise self.stream.error(f"Duplicate field {key!r}", key_token)
                self.stream.expect(COLON, "':'")
                document[key] = self.parse_value()
                if self.stream.at(COMMA):
                    self.stream.advance()
                    continue
                break

        if not self.stream.at(RBRACE):
            raise self.stream.error("Unbalanced '{'", opening)
        self.stream.advance()

        try:
            return object_hook(document, JSON_OPTIONS)
        except (BSONError, TypeError, ValueError, KeyError) as e:
            raise self.stream.error(f"Invalid extended JSON value: {e}", opening) from e

    def parse_array(self) -> list[Any]:
        opening = self.stream.expect(LBRACKET, "'['")
        items: list[Any] = []

        if not self.stream.at(RBRACKET):
            while True:
                items.append(self.parse_value())
                if self.stream.at(COMMA):
                    self.stream.advance()
                    continue
                break

        if not self.stream.at(RBRACKET):
            raise self.stream.error("Unbalanced '['", opening)
        self.stream.advance()
        return items

    def parse_helper(self) -> Any:
        name_token = self.stream.advance()
        self.stream.expect(LPAREN, "'('")
        argument = None if self.stream.at(RPAREN) else self.parse_value()
        self.stream.expect(RPAREN, "')'")

        try:
            return _call_helper(name_token.value, argument)
        except (BSONError, TypeError, ValueError) as e:
            raise self.stream.error(
                f"Invalid {name_token.value}() argument: {e}", name_token
            ) from e


def _call_helper(name: str, argument: Any) -> Any:
    if name == "ObjectId":
        return ObjectId(argument) if argument is not None else ObjectId()
    if name == "ISODate":
        if not isinstance(argument, str):
            raise TypeError("ISODate() expects an ISO-8601 string")
        return object_hook({"$date": argument}, JSON_OPTIONS)
    if name == "NumberLong":
        return Int64(int(argument))
    if name == "NumberInt":
        return int(argument)
    if name == "NumberDecimal":
        return Decimal128(str(argument))
    raise ValueError(f"unknown helper {name}()")


def parse_document(text: str) -> dict[str, Any]:
    """
    Parse a document literal.

    Raises:
        QuerySyntaxError: If the text is not exactly one well-formed document
    """
    return DocumentParser(TokenStream(text)).parse()
