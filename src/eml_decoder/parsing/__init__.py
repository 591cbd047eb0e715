# Email parsing module

from .addresses import parse_address, parse_address_list
from .classifier import classify
from .eml_parser import (
    Parser,
    parse,
    parse_bytes,
    parse_file,
    save_files_to_directory,
)
from .headers import (
    decode_headers,
    parse_content_disposition,
    parse_content_type,
    parse_date,
    parse_message_ids,
    split_message,
)
from .mime_walker import MimeWalker, walk_message

__all__ = [
    "Parser",
    "parse",
    "parse_bytes",
    "parse_file",
    "save_files_to_directory",
    "parse_address",
    "parse_address_list",
    "decode_headers",
    "parse_content_type",
    "parse_content_disposition",
    "parse_date",
    "parse_message_ids",
    "split_message",
    "MimeWalker",
    "walk_message",
    "classify",
]
