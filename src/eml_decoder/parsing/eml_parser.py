"""
Email parser for .eml files (RFC 5322/MIME format).

Facade over the header decoder, MIME walker and classifier. Reads the whole input
once, then decodes headers, bodies and files deterministically. Only a failure to
read the input is raised; everything malformed inside the message degrades to a
default value.
"""

import mimetypes
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Union

import structlog

from ..config import Settings, settings as default_settings
from ..errors import EmailReadError
from ..models.email_document import AttachedFile, ContentTypeHeader, Email, InlineFile
from .classifier import classify
from .headers import AddressParser, DateParser, split_message
from .mime_walker import MimeWalker

logger = structlog.get_logger(__name__)

EmailFile = Union[AttachedFile, InlineFile]
FileFilter = Callable[[ContentTypeHeader], bool]
FileHandler = Callable[[EmailFile], None]
EmailSource = Union[BinaryIO, bytes, bytearray, memoryview]


def read_stream(stream: EmailSource) -> bytes:
    """
    Read all bytes of the input.

    Raises:
        EmailReadError: If the stream cannot be read
    """
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return bytes(stream)
    try:
        data = stream.read()
    except (OSError, ValueError) as e:
        raise EmailReadError(f"Failed to read email stream: {str(e)}") from e
    if data is None:
        return b""
    if isinstance(data, str):
        # text-mode stream
        return data.encode("utf-8")
    return bytes(data)


class Parser:
    """
    Configurable email parser.

    Args:
        headers_only: Decode only the top-level header block
        skip_attachments: Decode bodies but collect no files
        date_parser: Replacement for the RFC 5322 date parser
        address_parser: Replacement for the address list parser
        file_filter: Files whose ContentTypeHeader is rejected are not collected
        file_handler: Called with every collected file, in traversal order
        settings: Settings for this parser (defaults to the global settings)
    """

    def __init__(
        self,
        headers_only: bool = False,
        skip_attachments: bool = False,
        date_parser: Optional[DateParser] = None,
        address_parser: Optional[AddressParser] = None,
        file_filter: Optional[FileFilter] = None,
        file_handler: Optional[FileHandler] = None,
        settings: Optional[Settings] = None,
    ):
        self.headers_only = headers_only
        self.skip_attachments = skip_attachments
        self.file_filter = file_filter
        self.file_handler = file_handler
        self.settings = settings or default_settings
        self.walker = MimeWalker(self.settings, date_parser, address_parser)

    def parse(self, stream: EmailSource) -> Email:
        """
        Parse one message from a binary stream or bytes.

        Args:
            stream: Binary file-like object (read to the end) or raw bytes

        Returns:
            Decoded Email

        Raises:
            EmailReadError: If the stream cannot be read
        """
        data = read_stream(stream)
        logger.info("parse_started", size_bytes=len(data), headers_only=self.headers_only)

        raw_headers, body = split_message(data)
        headers = self.walker.decode_headers(raw_headers)

        if self.headers_only:
            email = Email(headers=headers)
            logger.info("parse_finished", headers=len(raw_headers))
            return email

        result = classify(self.walker.build(headers, body))
        files = self._collect_files(result.files)

        email = Email(
            headers=headers,
            text=result.text or "",
            enriched_text=result.enriched_text or "",
            html=result.html or "",
            attached_files=tuple(f for f in files if isinstance(f, AttachedFile)),
            inline_files=tuple(f for f in files if isinstance(f, InlineFile)),
        )
        logger.info(
            "parse_finished",
            headers=len(raw_headers),
            text_length=len(email.text),
            html_length=len(email.html),
            attached_files=len(email.attached_files),
            inline_files=len(email.inline_files),
        )
        return email

    def parse_bytes(self, data: bytes) -> Email:
        return self.parse(data)

    def parse_file(self, path: Union[str, Path]) -> Email:
        """
        Parse a .eml file.

        Raises:
            FileNotFoundError: If file doesn't exist
            EmailReadError: If the file cannot be read
        """
        with open(path, "rb") as f:
            return self.parse(f)

    def _collect_files(self, candidates: List[EmailFile]) -> List[EmailFile]:
        if self.skip_attachments:
            return []

        limit = self.settings.max_attachments
        collected: List[EmailFile] = []
        for file in candidates:
            if self.file_filter is not None and not self.file_filter(file.content_type):
                continue
            if limit and len(collected) >= limit:
                logger.warning(
                    "file_dropped",
                    reason="max_attachments",
                    limit=limit,
                    media_type=file.content_type.media_type,
                    filename=file.filename,
                )
                continue
            collected.append(file)
            if self.file_handler is not None:
                self.file_handler(file)
        return collected


def parse(stream: EmailSource) -> Email:
    """
    Parse one message with default options.

    Raises:
        EmailReadError: If the stream cannot be read
    """
    return Parser().parse(stream)


def parse_bytes(data: bytes) -> Email:
    """Parse raw .eml bytes with default options."""
    return Parser().parse(data)


def parse_file(path: Union[str, Path]) -> Email:
    """
    Parse a .eml file with default options.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    return Parser().parse_file(path)


def _unique_path(directory: Path, filename: str) -> Path:
    candidate = directory / filename
    stem, suffix = candidate.stem, candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{counter}{suffix}"
        counter += 1
    return candidate


def save_files_to_directory(directory: Union[str, Path]) -> FileHandler:
    """
    Build a file handler writing every collected file under a directory.

    Files are stored under their sanitized filename; unnamed files get a name
    derived from their media type. A numeric suffix avoids overwriting.

    Args:
        directory: Target directory (created if missing)

    Returns:
        Callable usable as Parser(file_handler=...)
    """
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)

    def handler(file: EmailFile) -> None:
        name = file.filename
        if not name:
            extension = mimetypes.guess_extension(file.content_type.media_type) or ".bin"
            name = f"attachment{extension}"
        path = _unique_path(target, name)
        path.write_bytes(file.data)
        logger.debug("file_saved", path=str(path), size_bytes=len(file.data))

    return handler
