"""
RFC 2047 encoded-word decoding for header values.

Handles ``=?charset?B?...?=`` and ``=?charset?Q?...?=`` tokens. Whitespace between
two adjacent encoded-words is not part of the text and is dropped. Consecutive
words in the same charset are decoded together, so a multi-byte character that a
mailer split across two words comes back whole.
"""

import re
from typing import List, Optional, Tuple

import structlog

from .charsets import decode_text
from .transfer import decode_base64, unquote_qp

logger = structlog.get_logger(__name__)

ENCODED_WORD_PATTERN = re.compile(r"=\?([^?\s]+)\?([bBqQ])\?([^?]*)\?=")

_BASE64_TEXT = re.compile(r"^[A-Za-z0-9+/]*=*$")


def _decode_payload(encoding: str, text: str) -> Optional[bytes]:
    """Decode the text of one encoded-word, None if it is malformed."""
    try:
        raw = text.encode("ascii")
    except UnicodeEncodeError:
        return None

    if encoding.upper() == "B":
        if not _BASE64_TEXT.match(text):
            return None
        return decode_base64(raw)

    return unquote_qp(raw.replace(b"_", b" "))


def decode_encoded_word(word: str) -> Optional[Tuple[str, bytes]]:
    """
    Decode a single encoded-word.

    Args:
        word: Complete token, e.g. "=?utf-8?q?caf=C3=A9?="

    Returns:
        (charset, decoded bytes) or None if the token is not a valid encoded-word
    """
    match = ENCODED_WORD_PATTERN.fullmatch(word)
    if match is None:
        return None
    return _decode_match(match)


def _decode_match(match: "re.Match[str]") -> Optional[Tuple[str, bytes]]:
    charset, encoding, text = match.groups()
    # RFC 2231 allows a language suffix: =?utf-8*en?q?...?=
    charset = charset.split("*", 1)[0]
    payload = _decode_payload(encoding, text)
    if payload is None:
        return None
    return charset, payload


def decode_encoded_words(value: str) -> str:
    """
    Decode every encoded-word in a header value.

    Text outside encoded-words is kept verbatim. A token that cannot be decoded
    is passed through literally.

    Args:
        value: Unfolded header value

    Returns:
        Decoded Unicode text
    """
    if not value or "=?" not in value:
        return value or ""

    out: List[str] = []
    # (charset, bytes) runs waiting to be converted to text
    pending: List[Tuple[str, bytes]] = []
    position = 0
    previous_was_word = False

    def flush() -> None:
        for charset, raw in pending:
            out.append(decode_text(raw, charset, detect=False))
        pending.clear()

    for match in ENCODED_WORD_PATTERN.finditer(value):
        gap = value[position:match.start()]
        decoded = _decode_match(match)

        if decoded is None:
            logger.debug("encoded_word_passthrough", word=match.group(0))
            flush()
            out.append(gap)
            out.append(match.group(0))
            previous_was_word = False
        else:
            if not previous_was_word or gap.strip():
                flush()
                out.append(gap)
            charset, raw = decoded
            if pending and pending[-1][0].lower() == charset.lower():
                pending[-1] = (pending[-1][0], pending[-1][1] + raw)
            else:
                pending.append((charset, raw))
            previous_was_word = True

        position = match.end()

    flush()
    out.append(value[position:])
    return "".join(out)
