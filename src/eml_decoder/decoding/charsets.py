"""
Charset conversion registry.

Maps normalized charset labels to converter functions (bytes -> str). The registry
is built once at import time and exposed read-only. Converters never raise: bytes
that do not belong to the charset become U+FFFD.

ISO-2022-JP is the one stateful encoding in the table. Its converter scans escape
sequences and keeps track of the character set currently shifted in, instead of
mapping bytes one by one.
"""

import codecs
import re
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import charset_normalizer
import structlog

logger = structlog.get_logger(__name__)

Converter = Callable[[bytes], str]

REPLACEMENT_CHAR = "\ufffd"


def _codec_chain(*codec_names: str) -> Converter:
    """
    Build a converter trying each codec strictly, in order.

    The last codec is applied with errors="replace" when none decodes cleanly,
    so supersets (cp932 over shift_jis, cp949 over euc_kr) only kick in when needed.
    """

    def convert(data: bytes) -> str:
        for name in codec_names:
            try:
                return data.decode(name)
            except (UnicodeDecodeError, LookupError):
                continue
        try:
            return data.decode(codec_names[-1], errors="replace")
        except LookupError:
            return data.decode("utf-8", errors="replace")

    return convert


def _decode_us_ascii(data: bytes) -> str:
    # Mail labelled us-ascii regularly carries 8-bit text
    try:
        return data.decode("ascii")
    except UnicodeDecodeError:
        pass
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


# ---------------------------------------------------------------------------
# ISO-2022-JP
# ---------------------------------------------------------------------------

_ASCII = "ascii"
_ROMAN = "jis-x-0201-roman"
_KATAKANA = "jis-x-0201-katakana"
_JIS0208 = "jis-x-0208"
_JIS0212 = "jis-x-0212"
_GB2312 = "gb2312"
_KSC5601 = "ksc5601"

# Escape sequence -> designated set (None: announcement only, no shift)
_ISO2022_ESCAPES: Dict[bytes, Optional[str]] = {
    b"\x1b(B": _ASCII,
    b"\x1b(J": _ROMAN,
    b"\x1b(H": _ROMAN,
    b"\x1b(I": _KATAKANA,
    b"\x1b$@": _JIS0208,
    b"\x1b$B": _JIS0208,
    b"\x1b$(@": _JIS0208,
    b"\x1b$(B": _JIS0208,
    b"\x1b$(D": _JIS0212,
    b"\x1b$A": _GB2312,
    b"\x1b$(C": _KSC5601,
    b"\x1b&@": None,
}

# Double-byte sets: (EUC codec used for the 8-bit form, per-character prefix)
_DOUBLE_BYTE_SETS: Dict[str, Tuple[str, bytes]] = {
    _JIS0208: ("euc_jp", b""),
    _JIS0212: ("euc_jp", b"\x8f"),
    _GB2312: ("gb2312", b""),
    _KSC5601: ("euc_kr", b""),
}

_ESC = 0x1B
_SO = 0x0E
_SI = 0x0F


def _decode_double_byte_run(run: bytes, charset: str) -> str:
    codec, prefix = _DOUBLE_BYTE_SETS[charset]
    euc = bytearray()
    for i in range(0, len(run) - 1, 2):
        euc += prefix
        euc.append(run[i] | 0x80)
        euc.append(run[i + 1] | 0x80)
    text = bytes(euc).decode(codec, errors="replace")
    if len(run) % 2:
        text += REPLACEMENT_CHAR
    return text


def _decode_single_byte(byte: int, charset: str) -> str:
    if charset == _KATAKANA and 0x21 <= byte <= 0x5F:
        return chr(0xFF61 + byte - 0x21)
    if charset == _ROMAN:
        if byte == 0x5C:
            return "\u00a5"
        if byte == 0x7E:
            return "\u203e"
    if byte < 0x80:
        return chr(byte)
    # 8-bit half-width katakana sent unshifted by some mailers
    if 0xA1 <= byte <= 0xDF:
        return chr(0xFF61 + byte - 0xA1)
    return REPLACEMENT_CHAR


def decode_iso2022_jp(data: bytes) -> str:
    """
    Decode ISO-2022-JP (and the common JP-1/JP-2 designations).

    Tracks the active G0 set through escape sequences. Double-byte runs are
    converted to their EUC form and decoded in one go. CR/LF always pass through.
    """
    out: List[str] = []
    charset = _ASCII
    shifted_out_from: Optional[str] = None
    i = 0
    length = len(data)

    while i < length:
        byte = data[i]

        if byte == _ESC:
            for size in (4, 3):
                designation = data[i:i + size]
                if designation in _ISO2022_ESCAPES:
                    target = _ISO2022_ESCAPES[designation]
                    if target is not None:
                        charset = target
                    i += size
                    break
            else:
                out.append(REPLACEMENT_CHAR)
                i += 1
            continue

        if byte == _SO:
            shifted_out_from, charset = charset, _KATAKANA
            i += 1
            continue
        if byte == _SI:
            if shifted_out_from is not None:
                charset, shifted_out_from = shifted_out_from, None
            i += 1
            continue

        if charset in _DOUBLE_BYTE_SETS and 0x21 <= byte <= 0x7E:
            end = i
            while end < length and 0x21 <= data[end] <= 0x7E:
                end += 1
            out.append(_decode_double_byte_run(data[i:end], charset))
            i = end
            continue

        out.append(_decode_single_byte(byte, charset))
        i += 1

    return "".join(out)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_ISO_8859_PATTERN = re.compile(r"^(?:iso)?-?8859-?(\d{1,2})(?:-[ie])?(?::\d{4})?$")
_WINDOWS_PATTERN = re.compile(r"^(?:windows|win|x-cp|cp|ms)-?(125\d|874)$")

_ALIASES: Dict[str, str] = {}


def _alias(canonical: str, *names: str) -> None:
    _ALIASES[canonical] = canonical
    for name in names:
        _ALIASES[name] = canonical


_alias("us-ascii", "ascii", "us", "iso646-us", "ansi-x3.4-1968", "ansi-x3.4-1986",
       "cp367", "ibm367", "iso-ir-6", "csascii", "646")
_alias("utf-8", "utf8", "unicode-1-1-utf-8", "x-unicode20utf8", "unicode-2-0-utf-8")
_alias("utf-7", "utf7", "unicode-1-1-utf-7", "csunicode11utf7")
_alias("utf-16", "utf16", "ucs-2", "unicode", "csunicode")
_alias("utf-16le", "utf16le", "ucs-2le")
_alias("utf-16be", "utf16be", "ucs-2be")
_alias("utf-32", "utf32", "ucs-4")
_alias("utf-32le", "utf32le")
_alias("utf-32be", "utf32be")
_alias("iso-8859-1", "latin1", "latin-1", "l1", "iso-ir-100", "cp819", "ibm819",
       "csisolatin1")
_alias("iso-8859-2", "latin2", "latin-2", "l2", "iso-ir-101", "csisolatin2")
_alias("iso-8859-3", "latin3", "latin-3", "l3", "iso-ir-109")
_alias("iso-8859-4", "latin4", "latin-4", "l4", "iso-ir-110")
_alias("iso-8859-5", "cyrillic", "iso-ir-144", "csisolatincyrillic")
_alias("iso-8859-6", "arabic", "iso-ir-127", "asmo-708", "ecma-114")
_alias("iso-8859-7", "greek", "greek8", "iso-ir-126", "elot-928", "ecma-118")
_alias("iso-8859-8", "hebrew", "iso-ir-138")
_alias("iso-8859-9", "latin5", "latin-5", "l5", "iso-ir-148")
_alias("iso-8859-10", "latin6", "latin-6", "l6", "iso-ir-157")
_alias("iso-8859-11", "thai")
_alias("iso-8859-13", "latin7", "latin-7", "l7")
_alias("iso-8859-14", "latin8", "latin-8", "l8", "iso-celtic")
_alias("iso-8859-15", "latin9", "latin-9", "l9", "latin0")
_alias("iso-8859-16", "latin10", "latin-10", "l10")
_alias("windows-874", "tis-620", "tis620", "dos-874")
_alias("koi8-r", "koi8r", "koi8", "cskoi8r")
_alias("koi8-u", "koi8u", "koi8-ru")
_alias("gbk", "cp936", "ms936", "windows-936", "x-gbk", "gb2312", "gb-2312", "euc-cn",
       "x-euc-cn", "csgb2312", "gb-2312-80", "chinese", "iso-ir-58", "csiso58gb231280")
_alias("gb18030", "gb-18030")
_alias("big5", "big-5", "cn-big5", "x-x-big5", "csbig5", "cp950", "windows-950")
_alias("big5-hkscs", "big5hkscs")
_alias("euc-jp", "eucjp", "x-euc-jp", "cseucpkdfmtjapanese", "ujis")
_alias("shift-jis", "shiftjis", "sjis", "x-sjis", "s-jis", "ms-kanji", "csshiftjis",
       "windows-31j", "cp932", "ms932", "x-ms-cp932")
_alias("euc-kr", "euckr", "ks-c-5601-1987", "ks-c-5601-1989", "ksc5601", "ksc-5601",
       "korean", "cseuckr", "cp949", "windows-949", "x-windows-949", "uhc",
       "iso-ir-149", "csksc56011987")
_alias("iso-2022-jp", "csiso2022jp", "iso-2022-jp-1", "iso-2022-jp-2", "csiso2022jp2",
       "jis", "x-jis")
_alias("iso-2022-kr", "csiso2022kr")


def _build_registry() -> Mapping[str, Converter]:
    registry: Dict[str, Converter] = {
        "us-ascii": _decode_us_ascii,
        "utf-8": _codec_chain("utf-8"),
        "utf-7": _codec_chain("utf-7"),
        "utf-16": _codec_chain("utf-16"),
        "utf-16le": _codec_chain("utf-16-le"),
        "utf-16be": _codec_chain("utf-16-be"),
        "utf-32": _codec_chain("utf-32"),
        "utf-32le": _codec_chain("utf-32-le"),
        "utf-32be": _codec_chain("utf-32-be"),
        "windows-874": _codec_chain("cp874"),
        "koi8-r": _codec_chain("koi8_r"),
        "koi8-u": _codec_chain("koi8_u"),
        "gbk": _codec_chain("gbk", "gb18030"),
        "gb18030": _codec_chain("gb18030"),
        "big5": _codec_chain("big5", "cp950", "big5hkscs"),
        "big5-hkscs": _codec_chain("big5hkscs"),
        "euc-jp": _codec_chain("euc_jp", "euc_jis_2004"),
        "shift-jis": _codec_chain("shift_jis", "cp932"),
        "euc-kr": _codec_chain("euc_kr", "cp949"),
        "iso-2022-jp": decode_iso2022_jp,
        "iso-2022-kr": _codec_chain("iso2022_kr"),
    }
    for number in (1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 14, 15, 16):
        registry[f"iso-8859-{number}"] = _codec_chain(f"iso8859_{number}")
    for number in range(1250, 1259):
        registry[f"windows-{number}"] = _codec_chain(f"cp{number}")
    return MappingProxyType(registry)


CHARSET_REGISTRY: Mapping[str, Converter] = _build_registry()


def normalize_charset_name(label: Optional[str]) -> str:
    """
    Normalize a charset label for registry lookup.

    Lower-cases, drops surrounding quotes/whitespace, maps "_" and spaces to "-",
    then resolves aliases and the iso-8859-N / windows-125N spelling variants.
    Labels outside the table come back normalized but otherwise untouched.
    """
    if not label:
        return ""
    name = label.strip().strip("\"'").strip().lower()
    name = re.sub(r"[_\s]+", "-", name)
    if name in _ALIASES:
        return _ALIASES[name]

    match = _ISO_8859_PATTERN.match(name)
    if match and f"iso-8859-{int(match.group(1))}" in CHARSET_REGISTRY:
        return f"iso-8859-{int(match.group(1))}"

    match = _WINDOWS_PATTERN.match(name)
    if match:
        return f"windows-{match.group(1)}"

    return name


def lookup_converter(label: Optional[str]) -> Optional[Converter]:
    """
    Find the converter for a charset label.

    Falls back to the interpreter's codec registry for labels outside the table.

    Returns:
        Converter, or None when the label is empty or unknown
    """
    name = normalize_charset_name(label)
    if not name:
        return None
    converter = CHARSET_REGISTRY.get(name)
    if converter is not None:
        return converter
    try:
        codec = codecs.lookup(name)
    except LookupError:
        return None
    # base64, rot13, zlib and friends are not charsets
    if not getattr(codec, "_is_text_encoding", True):
        return None
    return _codec_chain(codec.name)


def is_known_charset(label: Optional[str]) -> bool:
    return lookup_converter(label) is not None


def decode_text(
    data: bytes,
    charset: Optional[str],
    default_charset: str = "utf-8",
    detect: bool = True,
) -> str:
    """
    Convert bytes in the given charset to text.

    Args:
        data: Raw (transfer-decoded) bytes
        charset: Declared charset label, may be empty or unknown
        default_charset: Last-resort charset when nothing else fits
        detect: Use charset-normalizer when the label is missing/unknown
            and the bytes are not valid UTF-8

    Returns:
        Decoded text, never raises
    """
    if not data:
        return ""

    converter = lookup_converter(charset)
    if converter is not None:
        return converter(data)

    if charset:
        logger.debug("unknown_charset_fallback", charset=charset, fallback="utf-8")

    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass

    if detect:
        detected = charset_normalizer.from_bytes(data).best()
        if detected is not None:
            logger.debug("charset_detected", declared=charset, detected=detected.encoding)
            return str(detected)

    fallback = lookup_converter(default_charset) or CHARSET_REGISTRY["utf-8"]
    return fallback(data)
