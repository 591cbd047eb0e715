"""
CLI module for the email decoder.

Provides the ``eml-decoder`` command for batch decoding of .eml files.
"""

from eml_decoder.cli.parse import main

__all__ = ["main"]
