"""
Leaf classification.

Routes every leaf of the MIME tree, in traversal order, to one of the body
slots (text, html, enriched text), the inline files or the attached files.
The first matching rule wins:

1. the signature leaf of multipart/signed is attached;
2. a leaf with a Content-ID is inline, whatever its disposition;
3. Content-Disposition: attachment is attached;
4. Content-Disposition: inline is inline;
5. text/plain, text/html and text/enriched fill their body slot when it is
   still empty;
6. a non-text leaf directly inside multipart/related is inline;
7. anything else is attached.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..models.email_document import AttachedFile, InlineFile
from ..models.mime_tree import LeafPart, MimePart, iter_leaves

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
TEXT_ENRICHED = "text/enriched"
MULTIPART_RELATED = "multipart/related"

# media type -> body slot
BODY_SLOTS: Dict[str, str] = {
    TEXT_PLAIN: "text",
    TEXT_HTML: "html",
    TEXT_ENRICHED: "enriched_text",
}

ATTACHED = "attached"
INLINE = "inline"


def normalize_body_text(text: str) -> str:
    """CRLF to LF, then strip leading and trailing line breaks."""
    return text.replace("\r\n", "\n").strip("\r\n")


def classify_leaf(leaf: LeafPart, filled_slots) -> str:
    """
    Decide where a leaf goes.

    Args:
        leaf: Leaf to route
        filled_slots: Body slots already taken by earlier leaves

    Returns:
        A BODY_SLOTS value, ATTACHED or INLINE
    """
    headers = leaf.headers
    disposition = headers.content_disposition.disposition

    if leaf.forced_attachment:
        return ATTACHED
    if headers.content_id:
        return INLINE
    if disposition == "attachment":
        return ATTACHED
    if disposition == "inline":
        return INLINE

    slot = BODY_SLOTS.get(leaf.media_type)
    if slot is not None and slot not in filled_slots:
        return slot

    if leaf.parent_media_type == MULTIPART_RELATED and headers.content_type.main_type != "text":
        return INLINE
    return ATTACHED


def _attached_file(leaf: LeafPart) -> AttachedFile:
    return AttachedFile(
        content_type=leaf.headers.content_type,
        content_disposition=leaf.headers.content_disposition,
        data=leaf.data,
    )


def _inline_file(leaf: LeafPart) -> InlineFile:
    return InlineFile(
        content_type=leaf.headers.content_type,
        content_disposition=leaf.headers.content_disposition,
        data=leaf.data,
        content_id=leaf.headers.content_id,
    )


@dataclass
class Classification:
    """Mutable accumulator, turned into an Email by the parser facade."""

    text: Optional[str] = None
    html: Optional[str] = None
    enriched_text: Optional[str] = None
    # attached and inline files interleaved in traversal order
    files: List[Union[AttachedFile, InlineFile]] = field(default_factory=list)

    @property
    def filled_slots(self):
        return {slot for slot in BODY_SLOTS.values() if getattr(self, slot) is not None}

    @property
    def attached_files(self) -> List[AttachedFile]:
        return [f for f in self.files if isinstance(f, AttachedFile)]

    @property
    def inline_files(self) -> List[InlineFile]:
        return [f for f in self.files if isinstance(f, InlineFile)]


def classify(root: MimePart) -> Classification:
    """
    Route every leaf of a part tree.

    A top-level message that is not multipart is a single leaf and goes through
    the same rules. Later text leaves of an already filled kind become
    attachments.
    """
    result = Classification()
    for leaf in iter_leaves(root):
        target = classify_leaf(leaf, result.filled_slots)
        if target == ATTACHED:
            result.files.append(_attached_file(leaf))
        elif target == INLINE:
            result.files.append(_inline_file(leaf))
        else:
            setattr(result, target, normalize_body_text(leaf.text or ""))
    return result
