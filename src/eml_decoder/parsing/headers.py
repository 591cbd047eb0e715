"""
Header block splitting and typed header decoding.

The header block is split from the body and unfolded into raw (name, value)
occurrences. Each known header name is then dispatched to a typed decoder.
Every decoder returns ``(value, was_defaulted)``: a malformed value degrades to
the documented default, is logged at debug level and never stops the remaining
headers from being decoded.
"""

import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import unquote_to_bytes

import structlog

from ..decoding.charsets import decode_text
from ..decoding.encoded_words import decode_encoded_words
from ..decoding.transfer import CTE_7BIT, normalize_transfer_encoding
from ..models.email_document import (
    DEFAULT_MEDIA_TYPE,
    Address,
    ContentDispositionHeader,
    ContentTypeHeader,
    Headers,
)
from .addresses import parse_address_list, remove_comments

logger = structlog.get_logger(__name__)

RawHeader = Tuple[str, str]
DateParser = Callable[[str], Optional[datetime]]
AddressParser = Callable[[str], Sequence[Address]]

_HEADER_LINE = re.compile(rb"^([!-9;-~]+)[ \t]*:(.*)$", re.DOTALL)
_LINE = re.compile(rb"[^\n]*\n|[^\n]+")

_MEDIA_TYPE = re.compile(r"^[!#$%&'*+.^_`|~0-9a-z-]+/[!#$%&'*+.^_`|~0-9a-z-]+$")
_PARAM_NAME = re.compile(r"^([^*]+)(?:\*(\d+))?(\*)?$")
_MILITARY_ZONE = re.compile(r"\s([A-IK-Za-ik-z])$")
_BRACKETED_ID = re.compile(r"<([^<>]*)>")
_ID_SEPARATORS = re.compile(r"[\s,]+")

_LOWERCASE_PARAMS = frozenset({"charset", "micalg", "protocol"})
_ENCODED_WORD_PARAMS = frozenset({"name", "filename"})
_DISPOSITIONS = frozenset({"inline", "attachment"})


# ---------------------------------------------------------------------------
# Header block
# ---------------------------------------------------------------------------


def _decode_header_bytes(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def split_message(data: bytes) -> Tuple[List[RawHeader], bytes]:
    """
    Split a message (or MIME part) into unfolded headers and body.

    The header block ends at the first empty line, or at the first line that is
    neither a header nor a continuation line. A leading mbox "From " envelope
    line is skipped.

    Args:
        data: Raw message bytes, CRLF or LF line endings

    Returns:
        (raw headers in original order, body bytes)
    """
    collected: List[Tuple[bytes, bytearray]] = []
    first_line = True

    for match in _LINE.finditer(data):
        line = match.group(0)
        content = line.rstrip(b"\r\n")

        if not content:
            return _finish_headers(collected), data[match.end():]

        header = _HEADER_LINE.match(content)

        if first_line:
            first_line = False
            if header is None and content.startswith(b"From "):
                continue

        if content[:1] in (b" ", b"\t") and collected:
            # unfolding only removes the line break
            collected[-1][1].extend(content)
            continue

        if header is None:
            return _finish_headers(collected), data[match.start():]

        collected.append((header.group(1), bytearray(header.group(2))))

    return _finish_headers(collected), b""


def _finish_headers(collected: List[Tuple[bytes, bytearray]]) -> List[RawHeader]:
    return [
        (name.decode("ascii"), _decode_header_bytes(bytes(value)).strip())
        for name, value in collected
    ]


# ---------------------------------------------------------------------------
# Field decoders
# ---------------------------------------------------------------------------


def parse_date(value: str) -> Optional[datetime]:
    """
    Parse an RFC 5322 date-time, None when it cannot be understood.

    Comments are ignored, obsolete zone names are accepted and military
    single-letter zones are read as -0000 (unknown offset, naive result).
    """
    text = " ".join(remove_comments(value).split())
    if not text:
        return None
    text = _MILITARY_ZONE.sub(" -0000", text)
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None


def decode_date(
    value: str, date_parser: Optional[DateParser] = None
) -> Tuple[Optional[datetime], bool]:
    parser = date_parser or parse_date
    try:
        parsed = parser(value)
    except Exception as e:
        logger.debug("date_parser_failed", value=value, error=str(e))
        return None, True
    return parsed, parsed is None


def decode_addresses(
    values: Iterable[str], address_parser: Optional[AddressParser] = None
) -> Tuple[Tuple[Address, ...], bool]:
    """Decode every occurrence of an address field and concatenate the results."""
    parser = address_parser or parse_address_list
    addresses: List[Address] = []
    defaulted = False
    for value in values:
        try:
            parsed = list(parser(value))
        except Exception as e:
            logger.debug("address_parser_failed", value=value, error=str(e))
            defaulted = True
            continue
        if not parsed and value.strip():
            defaulted = True
        addresses.extend(parsed)
    return tuple(addresses), defaulted


def parse_message_ids(value: str) -> List[str]:
    """
    Extract message identifiers, angle brackets stripped.

    Bracketed identifiers are preferred; when there are none, whitespace or
    comma separated tokens are accepted.
    """
    text = remove_comments(value)
    ids = ["".join(m.split()) for m in _BRACKETED_ID.findall(text)]
    ids = [i for i in ids if i]
    if ids:
        return ids
    return [t.strip("<>") for t in _ID_SEPARATORS.split(text) if t.strip("<>")]


def decode_message_id(value: str) -> Tuple[str, bool]:
    ids = parse_message_ids(value)
    if not ids:
        return "", True
    return ids[0], False


def decode_message_ids(values: Iterable[str]) -> Tuple[Tuple[str, ...], bool]:
    ids: List[str] = []
    defaulted = False
    for value in values:
        found = parse_message_ids(value)
        if not found and value.strip():
            defaulted = True
        ids.extend(found)
    return tuple(ids), defaulted


def decode_unstructured(value: str) -> Tuple[str, bool]:
    return decode_encoded_words(value).strip(), False


def decode_keywords(values: Iterable[str]) -> Tuple[Tuple[str, ...], bool]:
    keywords = []
    for value in values:
        for item in value.split(","):
            keyword = decode_encoded_words(item).strip()
            if keyword:
                keywords.append(keyword)
    return tuple(keywords), False


def decode_transfer_encoding_header(value: str) -> Tuple[str, bool]:
    label = value.strip().strip("\"'").strip().lower()
    cte = normalize_transfer_encoding(value)
    return cte, cte == CTE_7BIT and label != CTE_7BIT


def decode_content_id(value: str) -> Tuple[str, bool]:
    return decode_message_id(value)


# ---------------------------------------------------------------------------
# Content-Type / Content-Disposition
# ---------------------------------------------------------------------------


def split_parameters(value: str) -> List[str]:
    """Split a header value on ";" outside quoted strings."""
    items: List[str] = []
    current: List[str] = []
    in_quotes = False
    escaped = False
    for ch in value:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\" and in_quotes:
            current.append(ch)
            escaped = True
        elif ch == '"':
            current.append(ch)
            in_quotes = not in_quotes
        elif ch == ";" and not in_quotes:
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
    items.append("".join(current))
    return items


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == '"':
        body = value[1:-1] if value.endswith('"') else value[1:]
        return re.sub(r"\\(.)", r"\1", body)
    return value


def parse_parameters(items: Iterable[str], default_charset: str = "utf-8") -> Dict[str, str]:
    """
    Parse "key=value" parameter items into a lower-cased mapping.

    RFC 2231 continuations (name*0, name*1*, ...) are reassembled and tagged
    values (name*=charset'lang'value) are percent-decoded and charset-decoded;
    they take precedence over a plain parameter of the same name. RFC 2047
    encoded-words in name/filename are decoded.
    """
    params: Dict[str, str] = {}
    # name -> [(section, extended, raw value)]
    sections: Dict[str, List[Tuple[int, bool, str]]] = {}

    for item in items:
        key, sep, raw_value = item.partition("=")
        key = key.strip().lower()
        if not sep or not key:
            continue
        value = _unquote(raw_value)

        match = _PARAM_NAME.match(key)
        if match is None or (match.group(2) is None and match.group(3) is None):
            params.setdefault(key, value)
            continue

        name = match.group(1)
        section = int(match.group(2)) if match.group(2) is not None else 0
        sections.setdefault(name, []).append((section, match.group(3) is not None, value))

    for name, parts in sections.items():
        params[name] = _join_rfc2231(sorted(parts, key=lambda p: p[0]), default_charset)

    for name, value in params.items():
        if name in _LOWERCASE_PARAMS:
            params[name] = value.lower()
        elif name in _ENCODED_WORD_PARAMS and "=?" in value:
            params[name] = decode_encoded_words(value)

    return params


def _join_rfc2231(parts: List[Tuple[int, bool, str]], default_charset: str) -> str:
    if not any(extended for _, extended, _ in parts):
        return "".join(value for _, _, value in parts)

    charset = ""
    raw = bytearray()
    for index, (_, extended, value) in enumerate(parts):
        if extended:
            if index == 0 and value.count("'") >= 2:
                charset, _, value = value.split("'", 2)
            raw.extend(unquote_to_bytes(value))
        else:
            raw.extend(value.encode("utf-8"))
    return decode_text(bytes(raw), charset or default_charset, default_charset, detect=False)


def parse_content_type(
    value: str, default_charset: str = "utf-8"
) -> Tuple[ContentTypeHeader, bool]:
    """
    Parse a Content-Type header value.

    An unparseable media type falls back to text/plain; its parameters are
    still kept.
    """
    items = split_parameters(value)
    media_type = " ".join(remove_comments(items[0]).split()).lower()
    params = parse_parameters(items[1:], default_charset)

    if "=" in media_type:
        # no media type at all, only parameters
        params = parse_parameters(items, default_charset)
        media_type = ""

    if not _MEDIA_TYPE.match(media_type):
        return ContentTypeHeader(media_type=DEFAULT_MEDIA_TYPE, params=params), True
    return ContentTypeHeader(media_type=media_type, params=params), False


def parse_content_disposition(
    value: str, default_charset: str = "utf-8"
) -> Tuple[ContentDispositionHeader, bool]:
    """
    Parse a Content-Disposition header value.

    Unknown disposition types are treated as "attachment" (RFC 2183).
    """
    items = split_parameters(value)
    disposition = " ".join(remove_comments(items[0]).split()).lower()
    params = parse_parameters(items[1:], default_charset)

    if "=" in disposition:
        params = parse_parameters(items, default_charset)
        disposition = ""

    defaulted = False
    if disposition and disposition not in _DISPOSITIONS:
        disposition = "attachment"
        defaulted = True
    return ContentDispositionHeader(disposition=disposition, params=params), defaulted


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_DATE = "date"
_ADDRESSES = "addresses"
_MESSAGE_ID = "message-id"
_MESSAGE_IDS = "message-ids"
_TEXT = "text"
_KEYWORDS = "keywords"
_RECEIVED = "received"
_CONTENT_TYPE = "content-type"
_CONTENT_DISPOSITION = "content-disposition"
_TRANSFER_ENCODING = "transfer-encoding"
_CONTENT_ID = "content-id"

# lower-case header name -> (Headers field, decoder kind)
HEADER_FIELDS: Dict[str, Tuple[str, str]] = {
    "date": ("date", _DATE),
    "subject": ("subject", _TEXT),
    "sender": ("sender", _ADDRESSES),
    "from": ("from_", _ADDRESSES),
    "reply-to": ("reply_to", _ADDRESSES),
    "to": ("to", _ADDRESSES),
    "cc": ("cc", _ADDRESSES),
    "bcc": ("bcc", _ADDRESSES),
    "message-id": ("message_id", _MESSAGE_ID),
    "in-reply-to": ("in_reply_to", _MESSAGE_IDS),
    "references": ("references", _MESSAGE_IDS),
    "comments": ("comments", _TEXT),
    "keywords": ("keywords", _KEYWORDS),
    "received": ("received", _RECEIVED),
    "resent-date": ("resent_date", _DATE),
    "resent-from": ("resent_from", _ADDRESSES),
    "resent-sender": ("resent_sender", _ADDRESSES),
    "resent-to": ("resent_to", _ADDRESSES),
    "resent-cc": ("resent_cc", _ADDRESSES),
    "resent-bcc": ("resent_bcc", _ADDRESSES),
    "resent-message-id": ("resent_message_id", _MESSAGE_ID),
    "content-type": ("content_type", _CONTENT_TYPE),
    "content-disposition": ("content_disposition", _CONTENT_DISPOSITION),
    "content-transfer-encoding": ("content_transfer_encoding", _TRANSFER_ENCODING),
    "content-id": ("content_id", _CONTENT_ID),
}


def _decode_field(
    kind: str,
    values: List[str],
    date_parser: Optional[DateParser],
    address_parser: Optional[AddressParser],
    default_charset: str,
):
    first = values[0]
    if kind == _DATE:
        return decode_date(first, date_parser)
    if kind == _ADDRESSES:
        return decode_addresses(values, address_parser)
    if kind == _MESSAGE_ID:
        return decode_message_id(first)
    if kind == _MESSAGE_IDS:
        return decode_message_ids(values)
    if kind == _TEXT:
        return decode_unstructured(first)
    if kind == _KEYWORDS:
        return decode_keywords(values)
    if kind == _RECEIVED:
        return tuple(values), False
    if kind == _CONTENT_TYPE:
        return parse_content_type(first, default_charset)
    if kind == _CONTENT_DISPOSITION:
        return parse_content_disposition(first, default_charset)
    if kind == _TRANSFER_ENCODING:
        return decode_transfer_encoding_header(first)
    return decode_content_id(first)


def decode_headers(
    raw_headers: Sequence[RawHeader],
    date_parser: Optional[DateParser] = None,
    address_parser: Optional[AddressParser] = None,
    default_charset: str = "utf-8",
) -> Headers:
    """
    Decode raw header occurrences into a Headers model.

    Single-valued fields use their first occurrence; address, message-id list,
    keyword and Received fields combine all occurrences in order. Unknown
    headers are kept verbatim in extra_headers, keyed by the spelling of their
    first occurrence.

    Args:
        raw_headers: (name, unfolded value) pairs as returned by split_message
        date_parser: Replacement for parse_date
        address_parser: Replacement for parse_address_list
        default_charset: Charset for RFC 2231 values that declare none

    Returns:
        Headers model (never raises on malformed values)
    """
    known: Dict[str, List[str]] = {}
    extra: Dict[str, List[str]] = {}
    spellings: Dict[str, str] = {}

    for name, value in raw_headers:
        key = name.lower()
        if key in HEADER_FIELDS:
            known.setdefault(key, []).append(value)
        else:
            spelling = spellings.setdefault(key, name)
            extra.setdefault(spelling, []).append(value)

    fields = {}
    for key, values in known.items():
        field, kind = HEADER_FIELDS[key]
        value, defaulted = _decode_field(
            kind, values, date_parser, address_parser, default_charset
        )
        if defaulted:
            logger.debug("header_defaulted", header=key, value=values[0][:200])
        fields[field] = value

    fields["extra_headers"] = {name: tuple(values) for name, values in extra.items()}
    return Headers(**fields)
