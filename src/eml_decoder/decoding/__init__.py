# Byte-level decoders for charsets, transfer encodings and RFC 2047 words

from .charsets import (
    CHARSET_REGISTRY,
    decode_iso2022_jp,
    decode_text,
    is_known_charset,
    lookup_converter,
    normalize_charset_name,
)
from .encoded_words import decode_encoded_word, decode_encoded_words
from .transfer import (
    TRANSFER_ENCODINGS,
    decode_base64,
    decode_quoted_printable,
    decode_transfer_encoding,
    normalize_transfer_encoding,
)

__all__ = [
    "CHARSET_REGISTRY",
    "decode_iso2022_jp",
    "decode_text",
    "is_known_charset",
    "lookup_converter",
    "normalize_charset_name",
    "decode_encoded_word",
    "decode_encoded_words",
    "TRANSFER_ENCODINGS",
    "decode_base64",
    "decode_quoted_printable",
    "decode_transfer_encoding",
    "normalize_transfer_encoding",
]
