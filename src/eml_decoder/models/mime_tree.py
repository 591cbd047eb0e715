"""
MIME part tree models.

The walker produces a tree of parts: multipart containers own their children,
leaves carry transfer-decoded payloads. There are no cycles, so plain nesting is
enough.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .email_document import Headers


@dataclass(frozen=True)
class LeafPart:
    """
    A single non-multipart body segment.

    Attributes:
        headers: Decoded headers of this part
        data: Payload after Content-Transfer-Encoding decoding
        text: Charset-decoded payload for text/* parts, None otherwise
        parent_media_type: Media type of the enclosing multipart ("" at top level)
        forced_attachment: True for the signature part of multipart/signed
    """

    headers: Headers
    data: bytes
    text: Optional[str] = None
    parent_media_type: str = ""
    forced_attachment: bool = False

    @property
    def media_type(self) -> str:
        return self.headers.content_type.media_type


@dataclass(frozen=True)
class MultipartPart:
    """A multipart container and its ordered children."""

    headers: Headers
    boundary: str
    children: Tuple["MimePart", ...] = ()

    @property
    def media_type(self) -> str:
        return self.headers.content_type.media_type


MimePart = Union[LeafPart, MultipartPart]


def iter_leaves(part: MimePart) -> Iterator[LeafPart]:
    """Yield the leaves of a part tree in depth-first pre-order."""
    if isinstance(part, LeafPart):
        yield part
        return
    for child in part.children:
        yield from iter_leaves(child)
