"""
eml-decoder: decode RFC 5322 / MIME messages into structured emails.

    >>> from eml_decoder import parse_file
    >>> email = parse_file("message.eml")
    >>> email.headers.subject, email.text
"""

from .errors import EmailReadError
from .models import AttachedFile, Email, Headers, InlineFile
from .parsing import Parser, parse, parse_bytes, parse_file, save_files_to_directory
from .version import __version__

__all__ = [
    "__version__",
    "EmailReadError",
    "Email",
    "Headers",
    "AttachedFile",
    "InlineFile",
    "Parser",
    "parse",
    "parse_bytes",
    "parse_file",
    "save_files_to_directory",
]
