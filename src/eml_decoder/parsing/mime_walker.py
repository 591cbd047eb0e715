"""
MIME tree walker.

Builds the part tree of a message: multipart bodies are cut at their boundary
delimiter lines and every block is parsed again as a complete part, depth-first.
Leaves are transfer-decoded here, and text leaves are charset-decoded; routing
them to body slots or files is left to the classifier.
"""

import re
from typing import List, Optional

import structlog

from ..config import Settings, settings as default_settings
from ..decoding.charsets import decode_text
from ..decoding.transfer import decode_transfer_encoding
from ..models.email_document import Headers
from ..models.mime_tree import LeafPart, MimePart, MultipartPart
from .headers import AddressParser, DateParser, decode_headers, split_message

logger = structlog.get_logger(__name__)

MULTIPART_SIGNED = "multipart/signed"

_GUESS_BOUNDARY = re.compile(rb"^--([^\r\n]*?)[ \t]*\r?$", re.MULTILINE)


def _delimiter_pattern(boundary: str) -> "re.Pattern[bytes]":
    return re.compile(
        rb"^--" + re.escape(boundary.encode("utf-8")) + rb"(--)?[ \t]*\r?$",
        re.MULTILINE,
    )


def _skip_line_break(data: bytes, position: int) -> int:
    if data.startswith(b"\r\n", position):
        return position + 2
    if data.startswith(b"\n", position):
        return position + 1
    return position


def _before_line_break(data: bytes, position: int) -> int:
    if position >= 2 and data[position - 2:position] == b"\r\n":
        return position - 2
    if position >= 1 and data[position - 1:position] == b"\n":
        return position - 1
    return position


def guess_boundary(body: bytes) -> str:
    """Take the boundary from the first "--" line of a body, "" if there is none."""
    match = _GUESS_BOUNDARY.search(body)
    if match is None:
        return ""
    return match.group(1).decode("utf-8", errors="replace").strip()


def split_multipart(body: bytes, boundary: str) -> Optional[List[bytes]]:
    """
    Cut a multipart body into its raw sub-part blocks.

    The line break in front of a delimiter line belongs to the delimiter.
    Preamble and epilogue are discarded; without a terminal delimiter the last
    block runs to the end of the body.

    Returns:
        Blocks in order, or None when the boundary never occurs
    """
    blocks: List[bytes] = []
    start = None
    found = False

    for match in _delimiter_pattern(boundary).finditer(body):
        found = True
        if start is not None:
            end = max(_before_line_break(body, match.start()), start)
            blocks.append(body[start:end])
        if match.group(1):
            start = None
            break
        start = _skip_line_break(body, match.end())

    if not found:
        return None
    if start is not None:
        blocks.append(body[start:])
    return blocks


class MimeWalker:
    """
    Recursive-descent builder of the MIME part tree.

    Args:
        settings: Charset defaults and structural limits
        date_parser: Replacement date parser for part headers
        address_parser: Replacement address list parser for part headers
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        date_parser: Optional[DateParser] = None,
        address_parser: Optional[AddressParser] = None,
    ):
        self.settings = settings or default_settings
        self.date_parser = date_parser
        self.address_parser = address_parser

    def decode_headers(self, raw_headers) -> Headers:
        return decode_headers(
            raw_headers,
            date_parser=self.date_parser,
            address_parser=self.address_parser,
            default_charset=self.settings.default_charset,
        )

    def walk(self, data: bytes) -> MimePart:
        """Parse a complete message into its part tree."""
        raw_headers, body = split_message(data)
        return self.build(self.decode_headers(raw_headers), body)

    def build(
        self,
        headers: Headers,
        body: bytes,
        depth: int = 0,
        parent_media_type: str = "",
        inherited_charset: str = "",
        forced_attachment: bool = False,
    ) -> MimePart:
        """
        Build the subtree for one part whose headers are already decoded.

        Args:
            headers: Decoded headers of the part
            body: Raw body bytes following the header block
            depth: Nesting depth (0 for the message itself)
            parent_media_type: Media type of the enclosing multipart
            inherited_charset: Charset of the closest ancestor declaring one
            forced_attachment: Keep the part opaque (signature of multipart/signed)
        """
        content_type = headers.content_type
        charset = content_type.get_param("charset") or inherited_charset

        if forced_attachment or not content_type.is_multipart:
            return self._leaf(headers, body, parent_media_type, charset, forced_attachment)

        if depth >= self.settings.max_nesting_depth:
            logger.debug(
                "max_nesting_depth_reached",
                depth=depth,
                media_type=content_type.media_type,
            )
            return self._leaf(headers, body, parent_media_type, charset)

        boundary = content_type.get_param("boundary").strip()
        if not boundary:
            boundary = guess_boundary(body)
            logger.debug("boundary_guessed", media_type=content_type.media_type, boundary=boundary)

        blocks = split_multipart(body, boundary) if boundary else None
        if blocks is None:
            logger.debug("multipart_without_boundary", media_type=content_type.media_type)
            return self._leaf(headers, body, parent_media_type, charset)

        signed = content_type.media_type == MULTIPART_SIGNED
        children: List[MimePart] = []
        for block in blocks:
            if not block.strip():
                continue
            raw_headers, child_body = split_message(block)
            children.append(
                self.build(
                    self.decode_headers(raw_headers),
                    child_body,
                    depth=depth + 1,
                    parent_media_type=content_type.media_type,
                    inherited_charset=charset,
                    forced_attachment=signed and len(children) == 1,
                )
            )

        return MultipartPart(headers=headers, boundary=boundary, children=tuple(children))

    def _leaf(
        self,
        headers: Headers,
        body: bytes,
        parent_media_type: str,
        charset: str,
        forced_attachment: bool = False,
    ) -> LeafPart:
        data = decode_transfer_encoding(body, headers.content_transfer_encoding)
        text = None
        if headers.content_type.main_type == "text" and not forced_attachment:
            text = decode_text(
                data,
                charset,
                default_charset=self.settings.default_charset,
                detect=self.settings.detect_unknown_charsets,
            )
        return LeafPart(
            headers=headers,
            data=data,
            text=text,
            parent_media_type=parent_media_type,
            forced_attachment=forced_attachment,
        )


def walk_message(data: bytes, settings: Optional[Settings] = None) -> MimePart:
    """Parse raw message bytes into a part tree with default options."""
    return MimeWalker(settings).walk(data)
