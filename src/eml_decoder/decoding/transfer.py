"""
Content-Transfer-Encoding decoding.

Turns a raw MIME payload back into the bytes the sender encoded. Both decoders are
lenient: broken base64 padding, stray line breaks or malformed quoted-printable
escapes degrade the output locally instead of raising.
"""

import binascii
import re

import structlog

logger = structlog.get_logger(__name__)

CTE_7BIT = "7bit"
CTE_8BIT = "8bit"
CTE_BINARY = "binary"
CTE_QUOTED_PRINTABLE = "quoted-printable"
CTE_BASE64 = "base64"

TRANSFER_ENCODINGS = (CTE_7BIT, CTE_8BIT, CTE_BINARY, CTE_QUOTED_PRINTABLE, CTE_BASE64)

# Spellings seen in the wild for the two real encodings
_CTE_ALIASES = {
    "quotedprintable": CTE_QUOTED_PRINTABLE,
    "quoted_printable": CTE_QUOTED_PRINTABLE,
    "qp": CTE_QUOTED_PRINTABLE,
    "base-64": CTE_BASE64,
    "b64": CTE_BASE64,
}

_NON_BASE64 = re.compile(rb"[^A-Za-z0-9+/]")
_URLSAFE_TO_STANDARD = bytes.maketrans(b"-_", b"+/")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_LINE_SPLIT = re.compile(rb"(\r\n|\n|\r)")


def normalize_transfer_encoding(token: str) -> str:
    """
    Normalize a Content-Transfer-Encoding token.

    Args:
        token: Raw header value (may be empty, quoted, mixed case)

    Returns:
        One of TRANSFER_ENCODINGS; missing and unknown tokens map to "7bit"
    """
    label = (token or "").strip().strip("\"'").strip().lower()
    if not label:
        return CTE_7BIT
    label = _CTE_ALIASES.get(label, label)
    if label not in TRANSFER_ENCODINGS:
        logger.debug("unknown_transfer_encoding", token=token, fallback=CTE_7BIT)
        return CTE_7BIT
    return label


def decode_base64(data: bytes) -> bytes:
    """
    Decode base64 tolerating line breaks, junk bytes and padding variance.

    Everything outside the alphabet (including "=") is dropped, URL-safe
    characters are mapped back, and padding is recomputed. A dangling
    single character, which cannot encode a byte, is discarded.
    """
    cleaned = _NON_BASE64.sub(b"", data.translate(_URLSAFE_TO_STANDARD))
    remainder = len(cleaned) % 4
    if remainder == 1:
        cleaned = cleaned[:-1]
    elif remainder:
        cleaned += b"=" * (4 - remainder)
    if not cleaned:
        return b""
    return binascii.a2b_base64(cleaned)


def decode_quoted_printable(data: bytes) -> bytes:
    """
    Decode quoted-printable (RFC 2045 section 6.7).

    Hard line breaks are preserved as they appear in the input, trailing
    whitespace on hard lines is dropped, "=" at the end of a line (optionally
    followed by transport padding) is a soft break. "=" not followed by two hex
    digits is kept literally.
    """
    out = bytearray()
    pieces = _LINE_SPLIT.split(data)
    # pieces alternate: line, separator, line, separator, ..., line
    for index in range(0, len(pieces), 2):
        line = pieces[index]
        separator = pieces[index + 1] if index + 1 < len(pieces) else b""

        stripped = line.rstrip(b" \t")
        soft_break = stripped.endswith(b"=")
        if soft_break:
            stripped = stripped[:-1]
        elif not separator:
            # last line without line break keeps its trailing whitespace
            stripped = line

        out += unquote_qp(stripped)
        if not soft_break:
            out += separator
    return bytes(out)


def unquote_qp(line: bytes) -> bytes:
    """Replace =XX escapes in a single line; anything else is copied as is."""
    out = bytearray()
    i = 0
    length = len(line)
    while i < length:
        byte = line[i]
        if (
            byte == 0x3D  # "="
            and i + 2 < length
            and line[i + 1] in _HEX_DIGITS
            and line[i + 2] in _HEX_DIGITS
        ):
            out.append(int(line[i + 1:i + 3], 16))
            i += 3
            continue
        out.append(byte)
        i += 1
    return bytes(out)


def decode_transfer_encoding(data: bytes, encoding: str) -> bytes:
    """
    Decode a payload according to its Content-Transfer-Encoding.

    Args:
        data: Raw payload bytes as found between the MIME delimiters
        encoding: Content-Transfer-Encoding token

    Returns:
        Decoded bytes (7bit, 8bit and binary are passed through unchanged)
    """
    cte = normalize_transfer_encoding(encoding)
    if cte == CTE_BASE64:
        return decode_base64(data)
    if cte == CTE_QUOTED_PRINTABLE:
        return decode_quoted_printable(data)
    return data
