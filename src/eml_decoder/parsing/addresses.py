"""
RFC 5322 address list parsing.

A small lexer turns the raw header value into atoms, quoted strings, comments,
domain literals and specials; a recursive parser on top of it implements the
mailbox-list / group grammar. Encoded-words in display names are decoded only
after lexing, so a decoded comma or angle bracket can never split an address.

The parser never raises. Entries it cannot make sense of are dropped.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from ..decoding.encoded_words import ENCODED_WORD_PATTERN, decode_encoded_words
from ..models.email_document import Address

logger = structlog.get_logger(__name__)

ATOM = "atom"
QUOTED = "quoted"
COMMENT = "comment"
DOMAIN_LITERAL = "domain-literal"
SPECIAL = "special"

_SPECIALS = "<>@,;:"
_ATOM_STOP = '()<>@,;:"[]'
_DOT_ATOM_TEXT = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~.-]+$")


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    space_before: bool = False


def _read_delimited(value: str, start: int, closing: str) -> Tuple[str, int]:
    """Read a quoted-string or domain literal body, honouring backslash escapes."""
    buf = []
    i = start + 1
    length = len(value)
    while i < length:
        ch = value[i]
        if ch == "\\" and i + 1 < length:
            buf.append(value[i + 1])
            i += 2
            continue
        if ch == closing:
            return "".join(buf), i + 1
        buf.append(ch)
        i += 1
    return "".join(buf), i


def _read_comment(value: str, start: int) -> Tuple[str, int]:
    """Read a possibly nested comment starting at "("."""
    buf = []
    depth = 0
    i = start
    length = len(value)
    while i < length:
        ch = value[i]
        if ch == "\\" and i + 1 < length:
            buf.append(value[i + 1])
            i += 2
            continue
        if ch == "(":
            depth += 1
            if depth > 1:
                buf.append(ch)
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return "".join(buf), i + 1
            buf.append(ch)
        else:
            buf.append(ch)
        i += 1
    return "".join(buf), i


def tokenize(value: str) -> List[Token]:
    """
    Split a structured header value into lexical tokens.

    Whitespace is not emitted as a token; it is recorded on the following
    token as space_before. Comments count as whitespace for that purpose.
    """
    tokens: List[Token] = []
    i = 0
    length = len(value)
    space = False

    while i < length:
        ch = value[i]

        if ch.isspace():
            space = True
            i += 1
            continue

        if ch == "(":
            text, i = _read_comment(value, i)
            tokens.append(Token(COMMENT, text, space))
            space = True
            continue

        if ch == '"':
            text, i = _read_delimited(value, i, '"')
            tokens.append(Token(QUOTED, text, space))
            space = False
            continue

        if ch == "[":
            text, i = _read_delimited(value, i, "]")
            tokens.append(Token(DOMAIN_LITERAL, f"[{text}]", space))
            space = False
            continue

        if ch in _SPECIALS:
            tokens.append(Token(SPECIAL, ch, space))
            space = False
            i += 1
            continue

        if ch in ")]":
            # unbalanced closer, treated as whitespace
            space = True
            i += 1
            continue

        start = i
        while i < length and not value[i].isspace() and value[i] not in _ATOM_STOP:
            if value.startswith("=?", i):
                word = ENCODED_WORD_PATTERN.match(value, i)
                if word is not None:
                    i = word.end()
                    continue
            i += 1
        tokens.append(Token(ATOM, value[start:i], space))
        space = False

    return tokens


def remove_comments(value: str) -> str:
    """Drop (possibly nested) comments, leaving quoted strings untouched."""
    out = []
    i = 0
    length = len(value)
    while i < length:
        ch = value[i]
        if ch == '"':
            _, end = _read_delimited(value, i, '"')
            out.append(value[i:end])
            i = end
        elif ch == "(":
            _, i = _read_comment(value, i)
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _quote_local_part(text: str) -> str:
    if _DOT_ATOM_TEXT.match(text) and not text.startswith(".") and not text.endswith("."):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _word_text(token: Token) -> str:
    if token.kind == QUOTED:
        return _quote_local_part(token.value)
    return token.value


def _phrase_text(tokens: List[Token]) -> str:
    """Join display-name words with single spaces and decode encoded-words."""
    parts: List[str] = []
    for token in tokens:
        if token.kind == COMMENT:
            continue
        if parts and token.space_before:
            parts.append(" ")
        parts.append(token.value)
    return decode_encoded_words("".join(parts)).strip()


def _is_comma_or_semicolon(token: Token) -> bool:
    return token.kind == SPECIAL and token.value in ",;"


class _AddressListParser:
    """Recursive-descent parser over the token stream of one header value."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def parse(self) -> List[Address]:
        addresses: List[Address] = []
        while self._peek() is not None:
            token = self._peek()
            if _is_comma_or_semicolon(token):
                self.pos += 1
                continue
            start = self.pos
            addresses.extend(self._parse_address())
            if self.pos == start:
                self.pos += 1
        return addresses

    def _parse_address(self) -> List[Address]:
        phrase: List[Token] = []

        while True:
            token = self._peek()
            if token is None or _is_comma_or_semicolon(token):
                break

            if token.kind == SPECIAL:
                self.pos += 1
                if token.value == ":":
                    return self._parse_group()
                if token.value == "<":
                    return self._finish_angle_addr(phrase)
                if token.value == "@":
                    return self._finish_addr_spec(phrase)
                # stray ">"
                continue

            phrase.append(token)
            self.pos += 1

        words = [t for t in phrase if t.kind != COMMENT]
        if len(words) == 1 and words[0].kind in (ATOM, QUOTED):
            # local-only mailbox such as "root"
            return [Address(name="", address=_word_text(words[0]))]
        if words:
            logger.debug("address_dropped", text=" ".join(t.value for t in words))
        return []

    def _parse_group(self) -> List[Address]:
        members: List[Address] = []
        while True:
            token = self._peek()
            if token is None:
                break
            if token.kind == SPECIAL and token.value == ";":
                self.pos += 1
                break
            if token.kind == SPECIAL and token.value == ",":
                self.pos += 1
                continue
            start = self.pos
            members.extend(self._parse_address())
            if self.pos == start:
                self.pos += 1
        return members

    def _finish_angle_addr(self, phrase: List[Token]) -> List[Address]:
        collected: List[Token] = []
        while True:
            token = self._peek()
            if token is None:
                break
            if token.kind == SPECIAL and token.value in ">;":
                if token.value == ">":
                    self.pos += 1
                break
            if token.kind == SPECIAL and token.value == ",":
                following = self.tokens[self.pos + 1] if self.pos + 1 < len(self.tokens) else None
                # obsolete route list "<@a,@b:user@host>"
                if not (following and following.kind == SPECIAL and following.value == "@"):
                    break
            self.pos += 1
            if token.kind != COMMENT:
                collected.append(token)

        # drop obsolete route "@relay1,@relay2:"
        for index in range(len(collected) - 1, -1, -1):
            if collected[index].kind == SPECIAL and collected[index].value == ":":
                collected = collected[index + 1:]
                break

        self._skip_to_separator()
        address = "".join(
            _word_text(t) for t in collected if t.kind != SPECIAL or t.value == "@"
        )
        if not address:
            return []
        return [Address(name=_phrase_text(phrase), address=address)]

    def _finish_addr_spec(self, phrase: List[Token]) -> List[Address]:
        words = [t for t in phrase if t.kind != COMMENT]
        name = ""
        # "John Doe john@example.com": the last word is the local part
        split_at = len(words)
        for index in range(len(words) - 1, 0, -1):
            if words[index].space_before:
                split_at = index
                break
        if split_at < len(words) and len(words) > 1:
            name = _phrase_text(words[:split_at])
            local_words = words[split_at:]
        else:
            local_words = words
        local = "".join(_word_text(t) for t in local_words)

        domain_parts: List[str] = []
        trailing_comment = ""
        while True:
            token = self._peek()
            if token is None or token.kind == SPECIAL:
                break
            if token.kind == COMMENT:
                trailing_comment = trailing_comment or token.value
                self.pos += 1
                continue
            if domain_parts and token.space_before:
                if not (domain_parts[-1].endswith(".") or token.value.startswith(".")):
                    break
            domain_parts.append(token.value)
            self.pos += 1

        for token in self._skip_to_separator():
            if token.kind == COMMENT and not trailing_comment:
                trailing_comment = token.value

        if not local:
            return []
        domain = "".join(domain_parts)
        address = f"{local}@{domain}" if domain else local
        if not name and trailing_comment:
            name = decode_encoded_words(trailing_comment).strip()
        return [Address(name=name, address=address)]

    def _skip_to_separator(self) -> List[Token]:
        skipped: List[Token] = []
        while True:
            token = self._peek()
            if token is None or _is_comma_or_semicolon(token):
                return skipped
            skipped.append(token)
            self.pos += 1


def parse_address_list(value: str) -> List[Address]:
    """
    Parse a mailbox-list / address-list header value.

    Groups are flattened to their members, comments are skipped and display
    names are RFC 2047 decoded.

    Args:
        value: Unfolded raw header value

    Returns:
        Addresses in header order (empty for an empty or unusable value)
    """
    if not value or not value.strip():
        return []
    return _AddressListParser(tokenize(value)).parse()


def parse_address(value: str) -> Optional[Address]:
    """Parse a single mailbox, returning the first address found."""
    addresses = parse_address_list(value)
    return addresses[0] if addresses else None
