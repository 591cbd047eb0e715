"""
Email document model - the decoded representation of one RFC 5322 message.

This module defines the core data structures produced by the decoder. Every model
is frozen and parameter mappings are read-only views: an Email is built once per
parse call and never mutated afterwards.
"""

import posixpath
import re
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Identifier from Message-ID/References with its angle brackets stripped
MessageId = str

DEFAULT_MEDIA_TYPE = "text/plain"

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def _read_only(value):
    if value is None:
        return None
    return MappingProxyType(dict(value))


def _plain_dict(value):
    if value is None:
        return None
    return dict(value)


class Address(BaseModel):
    """A mailbox with its decoded display name."""

    model_config = ConfigDict(frozen=True)

    name: str = Field("", description="Decoded display name (may be empty)")
    address: str = Field(description="Mailbox as local@domain")


class ContentTypeHeader(BaseModel):
    """Parsed Content-Type header."""

    model_config = ConfigDict(frozen=True)

    media_type: str = Field(
        DEFAULT_MEDIA_TYPE, description="Lower-case type/subtype, never empty"
    )
    params: Mapping[str, str] = Field(
        default_factory=dict,
        validate_default=True,
        description="Read-only parameters keyed by lower-case name",
    )

    @field_validator("params", mode="after")
    @classmethod
    def freeze_params(cls, v):
        return _read_only(v)

    @field_serializer("params")
    def serialize_params(self, v):
        return _plain_dict(v)

    def get_param(self, name: str, default: str = "") -> str:
        """Case-insensitive parameter lookup."""
        return self.params.get(name.lower(), default)

    @property
    def main_type(self) -> str:
        return self.media_type.partition("/")[0]

    @property
    def is_multipart(self) -> bool:
        return self.main_type == "multipart"


class ContentDispositionHeader(BaseModel):
    """
    Parsed Content-Disposition header.

    Unlike ContentTypeHeader, params stays None when the header is absent
    altogether, and is only a (possibly empty) mapping when the header was present.
    """

    model_config = ConfigDict(frozen=True)

    disposition: str = Field("", description='"inline", "attachment" or ""')
    params: Optional[Mapping[str, str]] = Field(
        None, description="Read-only parameters keyed by lower-case name, None if header absent"
    )

    @field_validator("params", mode="after")
    @classmethod
    def freeze_params(cls, v):
        return _read_only(v)

    @field_serializer("params")
    def serialize_params(self, v):
        return _plain_dict(v)

    def get_param(self, name: str, default: str = "") -> str:
        """Case-insensitive parameter lookup."""
        if self.params is None:
            return default
        return self.params.get(name.lower(), default)


class Headers(BaseModel):
    """Decoded message or part headers."""

    model_config = ConfigDict(frozen=True)

    date: Optional[datetime] = Field(None, description="Parsed Date, None if missing or invalid")
    subject: str = Field("", description="Decoded Subject")

    sender: Tuple[Address, ...] = Field(default_factory=tuple)
    from_: Tuple[Address, ...] = Field(default_factory=tuple, description="From addresses")
    reply_to: Tuple[Address, ...] = Field(default_factory=tuple)
    to: Tuple[Address, ...] = Field(default_factory=tuple)
    cc: Tuple[Address, ...] = Field(default_factory=tuple)
    bcc: Tuple[Address, ...] = Field(default_factory=tuple)

    message_id: MessageId = Field("", description="Message-ID without angle brackets")
    in_reply_to: Tuple[MessageId, ...] = Field(default_factory=tuple)
    references: Tuple[MessageId, ...] = Field(default_factory=tuple)

    comments: str = Field("", description="Decoded Comments")
    keywords: Tuple[str, ...] = Field(default_factory=tuple)
    received: Tuple[str, ...] = Field(
        default_factory=tuple, description="Raw Received values in header order"
    )

    resent_date: Optional[datetime] = None
    resent_from: Tuple[Address, ...] = Field(default_factory=tuple)
    resent_sender: Tuple[Address, ...] = Field(default_factory=tuple)
    resent_to: Tuple[Address, ...] = Field(default_factory=tuple)
    resent_cc: Tuple[Address, ...] = Field(default_factory=tuple)
    resent_bcc: Tuple[Address, ...] = Field(default_factory=tuple)
    resent_message_id: MessageId = ""

    content_type: ContentTypeHeader = Field(default_factory=ContentTypeHeader)
    content_disposition: ContentDispositionHeader = Field(
        default_factory=ContentDispositionHeader
    )
    content_transfer_encoding: str = Field("7bit", description="Lower-case CTE token")
    content_id: str = Field("", description="Content-ID without angle brackets")

    # Anything not modeled above, one raw value per occurrence
    extra_headers: Mapping[str, Tuple[str, ...]] = Field(default_factory=dict, validate_default=True)

    @field_validator("extra_headers", mode="after")
    @classmethod
    def freeze_extra_headers(cls, v):
        """Wrap in a read-only view."""
        return _read_only(v)

    @field_serializer("extra_headers")
    def serialize_extra_headers(self, v):
        return _plain_dict(v)


def _sanitize_filename(name: str) -> str:
    name = posixpath.basename(name.replace("\\", "/"))
    name = _UNSAFE_FILENAME_CHARS.sub("_", name)
    return name.strip(". ")


class _File(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_type: ContentTypeHeader = Field(default_factory=ContentTypeHeader)
    content_disposition: ContentDispositionHeader = Field(
        default_factory=ContentDispositionHeader
    )
    data: bytes = Field(b"", description="Transfer-decoded payload")

    @property
    def filename(self) -> str:
        """
        Safe base name for the file.

        Taken from the Content-Disposition filename, falling back to the
        Content-Type name parameter. Empty when neither is present.
        """
        raw = self.content_disposition.get_param("filename") or self.content_type.get_param(
            "name"
        )
        return _sanitize_filename(raw) if raw else ""


class AttachedFile(_File):
    """A leaf routed to the attachments of the message."""


class InlineFile(_File):
    """A leaf meant to be rendered inside the message body (e.g. cid: images)."""

    content_id: str = Field("", description="Content-ID without angle brackets")


class Email(BaseModel):
    """
    Fully decoded email.

    Produced by the parser facade; file ordering follows the pre-order
    traversal of the MIME tree.
    """

    model_config = ConfigDict(frozen=True)

    headers: Headers = Field(default_factory=Headers)

    text: str = Field("", description="First text/plain body")
    enriched_text: str = Field("", description="First text/enriched body (RFC 1896)")
    html: str = Field("", description="First text/html body")

    attached_files: Tuple[AttachedFile, ...] = Field(default_factory=tuple)
    inline_files: Tuple[InlineFile, ...] = Field(default_factory=tuple)
