"""
Unit tests for Content-Transfer-Encoding decoding (decoding/transfer.py).
"""

import base64
import quopri

import pytest

from eml_decoder.decoding.transfer import (
    decode_base64,
    decode_quoted_printable,
    decode_transfer_encoding,
    normalize_transfer_encoding,
    unquote_qp,
)
from tests.fixtures.emails import JPEG_BYTES, PDF_BYTES


class TestNormalizeTransferEncoding:
    """Tests for normalize_transfer_encoding()."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "token,expected",
        [
            ("base64", "base64"),
            ("BASE64", "base64"),
            (' "Quoted-Printable" ', "quoted-printable"),
            ("8bit", "8bit"),
            ("binary", "binary"),
            ("", "7bit"),
            (None, "7bit"),
            ("x-uuencode", "7bit"),
        ],
    )
    def test_tokens(self, token, expected):
        """Test case, quoting, missing and unknown tokens."""
        assert normalize_transfer_encoding(token) == expected


class TestDecodeBase64:
    """Tests for decode_base64()."""

    @pytest.mark.unit
    def test_binary_round_trip(self):
        """Test that wrapped base64 gives back the exact bytes."""
        encoded = base64.encodebytes(PDF_BYTES + JPEG_BYTES)
        assert decode_base64(encoded) == PDF_BYTES + JPEG_BYTES

    @pytest.mark.unit
    def test_crlf_line_breaks(self):
        """Test base64 wrapped with CRLF."""
        encoded = base64.encodebytes(JPEG_BYTES).replace(b"\n", b"\r\n")
        assert decode_base64(encoded) == JPEG_BYTES

    @pytest.mark.unit
    def test_missing_padding(self):
        """Test base64 without its trailing padding."""
        assert decode_base64(b"SGVsbG8") == b"Hello"
        assert decode_base64(b"SGk") == b"Hi"

    @pytest.mark.unit
    def test_surplus_and_midstream_padding(self):
        """Test extra "=" characters anywhere in the input."""
        assert decode_base64(b"SGVs==bG8===") == b"Hello"

    @pytest.mark.unit
    def test_junk_bytes_ignored(self):
        """Test that bytes outside the alphabet are skipped."""
        assert decode_base64(b"SGVs*bG8h\x00 ") == b"Hello!"

    @pytest.mark.unit
    def test_urlsafe_alphabet(self):
        """Test URL-safe characters."""
        data = b"\xfb\xff\xfe"
        assert decode_base64(base64.urlsafe_b64encode(data)) == data

    @pytest.mark.unit
    def test_dangling_character(self):
        """Test that a single leftover character is dropped."""
        assert decode_base64(b"SGVsbG8hS") == b"Hello!"

    @pytest.mark.unit
    def test_empty(self):
        """Test empty input."""
        assert decode_base64(b"") == b""
        assert decode_base64(b"\r\n") == b""


class TestDecodeQuotedPrintable:
    """Tests for decode_quoted_printable()."""

    @pytest.mark.unit
    def test_hex_escapes_either_case(self):
        """Test =XX escapes in upper and lower case."""
        assert decode_quoted_printable(b"Caf=C3=A9 caf=c3=a9") == "Café café".encode("utf-8")

    @pytest.mark.unit
    def test_soft_line_breaks(self):
        """Test "=" at end of line joins lines."""
        assert decode_quoted_printable(b"long li=\nne\r\nnext") == b"long line\r\nnext"

    @pytest.mark.unit
    def test_soft_break_with_transport_padding(self):
        """Test whitespace after a soft break "="."""
        assert decode_quoted_printable(b"abc= \t\ndef") == b"abcdef"

    @pytest.mark.unit
    def test_trailing_whitespace_on_hard_lines(self):
        """Test that trailing whitespace of hard lines is removed."""
        assert decode_quoted_printable(b"one  \ntwo\t\nthree") == b"one\ntwo\nthree"

    @pytest.mark.unit
    def test_stray_equals_kept(self):
        """Test that "=" without two hex digits is kept literally."""
        assert decode_quoted_printable(b"a=b =Z1 100%=") == b"a=b =Z1 100%"
        assert unquote_qp(b"x=4") == b"x=4"

    @pytest.mark.unit
    def test_binary_round_trip(self):
        """Test that quoted-printable recovers arbitrary bytes."""
        data = bytes(range(256)) + b"\r\nend"
        encoded = quopri.encodestring(data)
        assert decode_quoted_printable(encoded) == quopri.decodestring(encoded)


class TestDecodeTransferEncoding:
    """Tests for decode_transfer_encoding() dispatch."""

    @pytest.mark.unit
    def test_dispatch(self):
        """Test each encoding token."""
        assert decode_transfer_encoding(b"SGk=", "base64") == b"Hi"
        assert decode_transfer_encoding(b"H=69", "quoted-printable") == b"Hi"
        assert decode_transfer_encoding(b"H=69", "7bit") == b"H=69"
        assert decode_transfer_encoding(b"\xff\x00", "binary") == b"\xff\x00"
        assert decode_transfer_encoding(b"H=69", "x-unknown") == b"H=69"
