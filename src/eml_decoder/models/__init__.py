# Data models for the email decoder

from .email_document import (
    DEFAULT_MEDIA_TYPE,
    Address,
    AttachedFile,
    ContentDispositionHeader,
    ContentTypeHeader,
    Email,
    Headers,
    InlineFile,
    MessageId,
)
from .mime_tree import LeafPart, MimePart, MultipartPart, iter_leaves

__all__ = [
    "DEFAULT_MEDIA_TYPE",
    "Address",
    "AttachedFile",
    "ContentDispositionHeader",
    "ContentTypeHeader",
    "Email",
    "Headers",
    "InlineFile",
    "MessageId",
    "LeafPart",
    "MultipartPart",
    "MimePart",
    "iter_leaves",
]
